"""Pydantic models for deployment configuration and release bookkeeping.

This module defines the immutable DeploymentConfig consumed by every
pipeline stage, together with the values derived per deployment: the
Release being published, the WorkloadDescriptor chosen for it and the
ProxySite rendered for it.
"""

import re
from enum import Enum
from pathlib import PurePosixPath
from typing import Annotated

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)

from dockship.lib.masking import mask_secret
from dockship.models.remote import ScriptReport, StepResult

# Branch names may contain "/", which is folded to "-" in release names.
BRANCH_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._/-]*$")
SITE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")
CONTAINER_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_.-]*$")
IMAGE_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9._/-]*$")
TIMESTAMP_PATTERN = re.compile(r"^\d{14}$")


class DeploymentConfig(BaseModel):
    """Immutable configuration for one deployment run.

    Built once by the config loader and passed to every component; no stage
    reads environment state on its own.

    Attributes:
        repository_url: Git repository to deploy (HTTPS or SSH URL, or path)
        branch: Branch to check out and name releases after
        host: Remote host name or address
        user: SSH user that owns releases and runs containers
        ssh_key_path: Private key used for SSH and rsync
        git_token: Personal access token for HTTPS clones (optional)
        app_port: Port the workload listens on inside the host
        site_name: nginx site identifier, also the compose project name
        app_base: Remote base directory holding releases and the current link
        container_name: Container name for the single-image strategy
        image_name: Image repository for the single-image strategy
        ssh_port: Remote SSH port
        connect_timeout: SSH connection-establishment timeout in seconds
        http_timeout: Timeout for HTTP reachability probes in seconds
        keep_logs: Number of run logs retained locally
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    repository_url: str = Field(..., min_length=1, description="Git repository URL")
    branch: str = Field(default="main", description="Branch to deploy")
    host: str = Field(..., min_length=1, description="Remote host")
    user: str = Field(..., min_length=1, description="Remote SSH user")
    ssh_key_path: str = Field(..., min_length=1, description="SSH private key path")
    git_token: SecretStr | None = Field(
        default=None, description="Personal access token for HTTPS clones"
    )
    app_port: Annotated[int, Field(ge=1, le=65535)] = Field(
        default=8000, description="Internal port of the workload"
    )
    site_name: str = Field(default="myapp", description="nginx site identifier")
    app_base: str = Field(default="/opt/myapp", description="Remote app base dir")
    container_name: str = Field(default="myapp", description="Container name")
    image_name: str = Field(default="myapp", description="Image repository name")
    ssh_port: Annotated[int, Field(ge=1, le=65535)] = Field(
        default=22, description="Remote SSH port"
    )
    connect_timeout: Annotated[int, Field(ge=1)] = Field(
        default=10, description="SSH connect timeout (seconds)"
    )
    http_timeout: Annotated[float, Field(gt=0)] = Field(
        default=5.0, description="HTTP probe timeout (seconds)"
    )
    keep_logs: Annotated[int, Field(ge=1)] = Field(
        default=30, description="Run logs to keep"
    )

    @field_validator("branch")
    @classmethod
    def validate_branch(cls, v: str) -> str:
        """Validate branch name characters."""
        if not BRANCH_PATTERN.match(v) or ".." in v:
            raise ValueError(
                f"Invalid branch name: {v!r}. "
                "Use letters, numbers, '.', '_', '/', '-'"
            )
        return v

    @field_validator("site_name")
    @classmethod
    def validate_site_name(cls, v: str) -> str:
        """Validate site name is usable as a file name."""
        if not SITE_NAME_PATTERN.match(v):
            raise ValueError(
                f"Invalid site name: {v!r}. Use letters, numbers, '.', '_', '-'"
            )
        return v

    @field_validator("container_name")
    @classmethod
    def validate_container_name(cls, v: str) -> str:
        """Validate container name against Docker's naming rules."""
        if not CONTAINER_NAME_PATTERN.match(v):
            raise ValueError(f"Invalid container name: {v!r}")
        return v

    @field_validator("image_name")
    @classmethod
    def validate_image_name(cls, v: str) -> str:
        """Validate image repository name."""
        if not IMAGE_NAME_PATTERN.match(v):
            raise ValueError(
                f"Invalid image name: {v!r}. "
                "Must contain only lowercase letters, numbers, '.', '_', '/', '-'"
            )
        return v

    @field_validator("app_base")
    @classmethod
    def validate_app_base(cls, v: str) -> str:
        """Require an absolute, non-root remote path."""
        path = PurePosixPath(v)
        if not path.is_absolute() or str(path) == "/":
            raise ValueError(f"app_base must be an absolute path below '/': {v!r}")
        return str(path)

    @field_validator("git_token")
    @classmethod
    def validate_git_token(cls, v: SecretStr | None) -> SecretStr | None:
        """Treat an empty token as no token."""
        if v is not None and not v.get_secret_value():
            return None
        return v

    @model_validator(mode="after")
    def validate_non_empty(self) -> "DeploymentConfig":
        """Reject whitespace-only values for required string fields."""
        for name in ("repository_url", "branch", "host", "user", "ssh_key_path"):
            if not str(getattr(self, name)).strip():
                raise ValueError(f"{name} must not be empty")
        return self

    @property
    def target(self) -> str:
        """SSH destination in ``user@host`` form."""
        return f"{self.user}@{self.host}"

    @property
    def releases_dir(self) -> str:
        """Remote directory holding one subdirectory per release."""
        return str(PurePosixPath(self.app_base) / "releases")

    @property
    def current_link(self) -> str:
        """Remote path of the symlink naming the active release."""
        return str(PurePosixPath(self.app_base) / "current")

    @property
    def masked_token(self) -> str:
        """Git token in masked form, safe for logs."""
        if self.git_token is None:
            return ""
        return mask_secret(self.git_token.get_secret_value())

    def summary(self) -> dict[str, str]:
        """Loggable view of the configuration with credentials masked."""
        return {
            "repository": self.repository_url,
            "branch": self.branch,
            "target": self.target,
            "ssh_key": self.ssh_key_path,
            "git_token": self.masked_token or "(none)",
            "app_port": str(self.app_port),
            "site": self.site_name,
            "app_base": self.app_base,
        }


class Release(BaseModel):
    """An immutable, timestamped release directory on the remote host.

    Attributes:
        branch: Branch the release was built from
        timestamp: Second-resolution UTC timestamp (YYYYmmddHHMMSS)
        releases_dir: Parent directory of all releases
    """

    model_config = ConfigDict(frozen=True)

    branch: str
    timestamp: str
    releases_dir: str

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp(cls, v: str) -> str:
        """Validate the timestamp format."""
        if not TIMESTAMP_PATTERN.match(v):
            raise ValueError(f"Invalid release timestamp: {v!r}")
        return v

    @property
    def name(self) -> str:
        """Directory name ``<branch>-<timestamp>``."""
        return f"{self.branch.replace('/', '-')}-{self.timestamp}"

    @property
    def path(self) -> str:
        """Absolute remote path of the release directory."""
        return str(PurePosixPath(self.releases_dir) / self.name)


class WorkloadStrategy(str, Enum):
    """How the workload of a release is started."""

    COMPOSE = "compose"
    SINGLE_IMAGE = "single-image"


class WorkloadDescriptor(BaseModel):
    """Launch plan derived from the active release's contents."""

    model_config = ConfigDict(frozen=True)

    strategy: WorkloadStrategy
    internal_port: int
    manifest_path: str | None = None
    image_name: str | None = None

    @model_validator(mode="after")
    def validate_target(self) -> "WorkloadDescriptor":
        """Each strategy needs its own target."""
        if self.strategy == WorkloadStrategy.COMPOSE and not self.manifest_path:
            raise ValueError("manifest_path is required for the compose strategy")
        if self.strategy == WorkloadStrategy.SINGLE_IMAGE and not self.image_name:
            raise ValueError("image_name is required for the single-image strategy")
        return self


class ProxyLayout(str, Enum):
    """nginx configuration directory layouts."""

    SPLIT = "split"
    CONF_D = "conf.d"


class ProxySite(BaseModel):
    """A rendered nginx site, ready to upload."""

    model_config = ConfigDict(frozen=True)

    site_name: str
    internal_port: int
    content: str


class ProvisionReport(BaseModel):
    """Result of DependencyProvisioner.provision()."""

    os_family: str = "unknown"
    package_manager: str | None = None
    compose_command: str = "docker compose"
    script: ScriptReport = Field(default_factory=ScriptReport)


class LaunchResult(BaseModel):
    """Result of WorkloadLauncher.launch()."""

    descriptor: WorkloadDescriptor
    steps: list[StepResult] = Field(default_factory=list)
    image: str | None = None
    container_name: str | None = None
