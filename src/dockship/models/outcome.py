"""Pipeline phases, exit codes and the terminal deployment outcome."""

from __future__ import annotations

from enum import Enum, IntEnum

from pydantic import BaseModel, ConfigDict, Field


class Phase(str, Enum):
    """Pipeline phases in execution order."""

    CONFIG = "config"
    SOURCE = "source"
    CONNECTIVITY = "connectivity"
    PROVISION = "provision"
    PUBLISH = "publish"
    LAUNCH = "launch"
    PROXY = "proxy"
    VALIDATE = "validate"
    CLEANUP = "cleanup"


class ExitCode(IntEnum):
    """Process exit codes, one band per fatal phase."""

    SUCCESS = 0
    UNEXPECTED = 1
    CONFIG = 10
    SOURCE = 15
    CONNECTIVITY = 20
    PROVISION = 30
    PUBLISH = 40
    LAUNCH = 50
    PROXY = 60
    CLEANUP = 70

    @classmethod
    def for_phase(cls, phase: Phase) -> ExitCode:
        """Return the exit code band for a failing phase.

        Validation never fails a run, so it maps to SUCCESS.
        """
        if phase == Phase.VALIDATE:
            return cls.SUCCESS
        return cls[phase.name]


class Verdict(str, Enum):
    """Classification of the post-deployment health checks."""

    HEALTHY = "healthy"
    BACKEND_MASKED = "backend-masked"
    PROXY_MISCONFIGURED = "proxy-misconfigured"
    UNREACHABLE = "unreachable"
    RUNTIME_INACTIVE = "runtime-inactive"
    NOT_VALIDATED = "not-validated"


class ProbeResult(BaseModel):
    """Result of a single diagnostic check.

    Attributes:
        name: Check identifier (e.g. "runtime", "backend_http")
        ok: Whether the check passed
        detail: Human-readable description of what was observed
    """

    model_config = ConfigDict(frozen=True)

    name: str
    ok: bool
    detail: str = ""


class DeploymentOutcome(BaseModel):
    """Terminal record of a deployment run. Reported, never persisted.

    Attributes:
        phase: Last phase reached (the failing phase on abort)
        success: Whether the deployment succeeded overall
        detail: Diagnostic summary
        verdict: Health classification from validation
        checks: Individual validation probe results
        release: Name of the release published in this run, if any
    """

    model_config = ConfigDict(frozen=True)

    phase: Phase
    success: bool
    detail: str = ""
    verdict: Verdict = Verdict.NOT_VALIDATED
    checks: list[ProbeResult] = Field(default_factory=list)
    release: str | None = None

    @property
    def exit_code(self) -> ExitCode:
        """Exit code for this outcome.

        A failed validation does not change the exit code.
        """
        if self.success or self.phase == Phase.VALIDATE:
            return ExitCode.SUCCESS
        return ExitCode.for_phase(self.phase)
