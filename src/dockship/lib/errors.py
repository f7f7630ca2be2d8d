"""Custom exception hierarchy for dockship configuration and deployments."""

from __future__ import annotations

from dockship.models.outcome import Phase


class DockshipError(Exception):
    """Base exception for all dockship errors.

    All dockship-specific exceptions inherit from this class, enabling
    centralized exception handling in the orchestrator and CLI.
    """

    phase: Phase | None = None


class ConfigError(DockshipError):
    """Exception raised for configuration errors.

    Raised when configuration loading, merging or validation fails, or when
    a required parameter is missing in non-interactive mode.

    Attributes:
        field: The configuration field that caused the error
        message: Human-readable error message describing the issue
    """

    phase = Phase.CONFIG

    def __init__(self, field: str, message: str) -> None:
        """Initialize ConfigError with field and message.

        Args:
            field: Configuration field name where error occurred
            message: Descriptive error message
        """
        self.field = field
        self.message = message
        super().__init__(f"Configuration error in '{field}': {message}")


class DeploymentError(DockshipError):
    """Exception raised when a deployment operation fails.

    Attributes:
        operation: Short name of the operation that failed
        message: Human-readable error message
    """

    def __init__(self, operation: str, message: str) -> None:
        """Initialize DeploymentError with the failing operation.

        Args:
            operation: Operation name (e.g. "transfer", "activate")
            message: Descriptive error message
        """
        self.operation = operation
        self.message = message
        super().__init__(f"{operation}: {message}")


class SourceError(DeploymentError):
    """Raised when the working tree cannot be retrieved from source control."""

    phase = Phase.SOURCE


class ConnectivityError(DeploymentError):
    """Raised when the remote host cannot be reached over SSH."""

    phase = Phase.CONNECTIVITY


class ProvisioningError(DeploymentError):
    """Raised when a required dependency cannot be installed or started."""

    phase = Phase.PROVISION


class PublishError(DeploymentError):
    """Raised when a release cannot be created, populated or activated."""

    phase = Phase.PUBLISH


class LaunchError(DeploymentError):
    """Raised when the workload cannot be built or started."""

    phase = Phase.LAUNCH


class ProxyConfigError(DeploymentError):
    """Raised when the reverse-proxy site cannot be installed or validated."""

    phase = Phase.PROXY


class TemplateRenderError(ProxyConfigError):
    """Raised when a rendered payload still contains unresolved placeholders.

    Detected locally, before anything is uploaded to the remote host.
    """

    def __init__(self, template: str, message: str) -> None:
        """Create a render error for the named template."""
        self.template = template
        super().__init__(operation="render", message=f"{template}: {message}")


class CleanupError(DeploymentError):
    """Raised when teardown cannot proceed."""

    phase = Phase.CLEANUP

