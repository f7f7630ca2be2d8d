"""Models for remote command execution and scripted step results."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class CommandResult(BaseModel):
    """Outcome of a single remote command or transfer.

    Attributes:
        command: The command line that was executed (for logging)
        exit_code: Process exit status (255 for ssh connection failures)
        stdout: Captured standard output
        stderr: Captured standard error
    """

    model_config = ConfigDict(frozen=True)

    command: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        """Whether the command exited with status 0."""
        return self.exit_code == 0

    @property
    def output(self) -> str:
        """Stripped stdout."""
        return self.stdout.strip()


class StepStatus(str, Enum):
    """What happened to a scripted step."""

    SKIPPED = "skipped"
    APPLIED = "applied"
    FAILED = "failed"


class StepResult(BaseModel):
    """Result of executing one ScriptStep."""

    model_config = ConfigDict(frozen=True)

    name: str
    status: StepStatus
    fatal: bool = True
    detail: str = ""


class ScriptReport(BaseModel):
    """Ordered results of a RemoteScript run."""

    steps: list[StepResult] = Field(default_factory=list)

    @property
    def applied(self) -> list[str]:
        """Names of steps whose action ran successfully."""
        return [s.name for s in self.steps if s.status == StepStatus.APPLIED]

    @property
    def skipped(self) -> list[str]:
        """Names of steps already satisfied on the host."""
        return [s.name for s in self.steps if s.status == StepStatus.SKIPPED]

    @property
    def warnings(self) -> list[StepResult]:
        """Non-fatal failures."""
        return [s for s in self.steps if s.status == StepStatus.FAILED]

    def get(self, name: str) -> StepResult | None:
        """Return the result for a step by name."""
        for step in self.steps:
            if step.name == name:
                return step
        return None
