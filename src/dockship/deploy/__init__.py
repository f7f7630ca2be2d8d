"""Dockship deployment engine.

This package provides the deployment pipeline: host provisioning, release
publishing, workload launch, nginx configuration, validation and teardown.
"""

from dockship.deploy.cleanup import Teardown
from dockship.deploy.launcher import WorkloadLauncher
from dockship.deploy.orchestrator import Orchestrator
from dockship.deploy.provisioner import DependencyProvisioner
from dockship.deploy.proxy import ProxyConfigurer, render_site
from dockship.deploy.publisher import ReleasePublisher, make_timestamp
from dockship.deploy.source import SourceFetcher
from dockship.deploy.validator import DeploymentValidator, classify

__all__ = [
    "DependencyProvisioner",
    "DeploymentValidator",
    "Orchestrator",
    "ProxyConfigurer",
    "ReleasePublisher",
    "SourceFetcher",
    "Teardown",
    "WorkloadLauncher",
    "classify",
    "make_timestamp",
    "render_site",
]
