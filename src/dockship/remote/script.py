"""Typed remote scripts built from ordered, independently skippable steps."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

from dockship.lib.errors import DeploymentError
from dockship.lib.logging_config import get_logger
from dockship.models.remote import ScriptReport, StepResult, StepStatus
from dockship.remote.runner import RemoteCommandRunner

logger = get_logger(__name__)


@dataclass(frozen=True)
class ScriptStep:
    """One idempotent step of a remote script.

    Attributes:
        name: Identifier reported in results and logs
        action: Command that brings the host into the desired state
        check: Command that exits 0 when the desired state already holds;
            the action is skipped in that case. None always runs the action.
        fatal: Whether a failing action aborts the script
        sudo: Run the action with elevated privileges (checks never are)
    """

    name: str
    action: str
    check: str | None = None
    fatal: bool = True
    sudo: bool = False


@dataclass
class RemoteScript:
    """An ordered list of ScriptSteps executed over a RemoteCommandRunner.

    Fatal failures raise ``error_cls``; non-fatal failures are logged as
    warnings and recorded in the report, and execution continues.

    Example:
        >>> script = RemoteScript("provision", error_cls=ProvisioningError)
        >>> script.add("docker", "curl -fsSL https://get.docker.com | sh",
        ...            check="command -v docker", sudo=True)
        >>> report = script.execute(runner)
    """

    name: str
    steps: list[ScriptStep] = field(default_factory=list)
    error_cls: type[DeploymentError] = DeploymentError

    def add(
        self,
        name: str,
        action: str,
        *,
        check: str | None = None,
        fatal: bool = True,
        sudo: bool = False,
    ) -> RemoteScript:
        """Append a step and return the script for chaining."""
        self.steps.append(
            ScriptStep(name=name, action=action, check=check, fatal=fatal, sudo=sudo)
        )
        return self

    def __iter__(self) -> Iterator[ScriptStep]:
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)

    def execute(self, runner: RemoteCommandRunner) -> ScriptReport:
        """Run every step in order and return the per-step report.

        Raises:
            DeploymentError: ``error_cls`` when a fatal step fails
        """
        report = ScriptReport()
        for step in self.steps:
            result = run_step(runner, step, self.error_cls)
            report.steps.append(result)
        return report


def run_step(
    runner: RemoteCommandRunner,
    step: ScriptStep,
    error_cls: type[DeploymentError] = DeploymentError,
) -> StepResult:
    """Execute a single step: check, then act if needed.

    Raises:
        DeploymentError: ``error_cls`` when the step is fatal and fails
    """
    if step.check is not None and runner.run(step.check).ok:
        logger.debug(f"{step.name}: already satisfied")
        return StepResult(name=step.name, status=StepStatus.SKIPPED, fatal=step.fatal)

    logger.info(f"{step.name}: running")
    result = runner.run(step.action, sudo=step.sudo)
    if result.ok:
        return StepResult(
            name=step.name,
            status=StepStatus.APPLIED,
            fatal=step.fatal,
            detail=result.output,
        )

    detail = result.stderr.strip() or result.output or f"exit status {result.exit_code}"
    if step.fatal:
        logger.error(f"{step.name} failed: {detail}")
        raise error_cls(operation=step.name, message=detail)

    logger.warning(f"{step.name} failed (continuing): {detail}")
    return StepResult(
        name=step.name, status=StepStatus.FAILED, fatal=False, detail=detail
    )
