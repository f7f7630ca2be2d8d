"""Dockship - Deploy a Dockerized git repository to a remote Linux host.

Dockship provisions a fresh or existing host over SSH, publishes each deploy
as a timestamped release, switches the live release atomically and puts nginx
in front of the running containers.

Main features:
- Idempotent provisioning of Docker, Docker Compose and nginx
- Timestamped releases with an atomic ``current`` symlink swap
- Docker Compose or single-Dockerfile workloads
- nginx reverse proxy with fail-closed configuration testing
- Post-deployment health verdicts
"""

from dockship.config.loader import ConfigLoader
from dockship.deploy.orchestrator import Orchestrator
from dockship.lib.errors import ConfigError, DeploymentError, DockshipError
from dockship.models.deployment import DeploymentConfig
from dockship.models.outcome import DeploymentOutcome, ExitCode

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "ConfigLoader",
    "ConfigError",
    "DeploymentConfig",
    "DeploymentError",
    "DeploymentOutcome",
    "DockshipError",
    "ExitCode",
    "Orchestrator",
]
