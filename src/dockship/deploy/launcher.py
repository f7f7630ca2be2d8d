"""Workload launch for the active release.

A release that carries a compose manifest is started as a compose stack;
anything else is built into a single image and run as one container bound to
the loopback interface. nginx is the only public ingress.
"""

from __future__ import annotations

import shlex
from pathlib import PurePosixPath

from dockship.config.defaults import COMPOSE_MANIFESTS
from dockship.lib.errors import LaunchError
from dockship.lib.logging_config import get_logger
from dockship.models.deployment import (
    DeploymentConfig,
    LaunchResult,
    Release,
    WorkloadDescriptor,
    WorkloadStrategy,
)
from dockship.remote.runner import RemoteCommandRunner
from dockship.remote.script import RemoteScript

logger = get_logger(__name__)


class WorkloadLauncher:
    """Select a launch strategy for a release and (re)start its workload.

    Args:
        runner: Remote command runner for the target host
        config: Deployment configuration
        compose_command: Compose invocation reported by provisioning
            (``docker compose`` or ``docker-compose``)
    """

    def __init__(
        self,
        runner: RemoteCommandRunner,
        config: DeploymentConfig,
        compose_command: str = "docker compose",
    ) -> None:
        self.runner = runner
        self.config = config
        self.compose_command = compose_command

    def find_manifest(self, release_path: str) -> str | None:
        """Return the first recognized compose manifest in the release."""
        for filename in COMPOSE_MANIFESTS:
            candidate = str(PurePosixPath(release_path) / filename)
            if self.runner.file_exists(candidate):
                return candidate
        return None

    def describe(self, release: Release, internal_port: int) -> WorkloadDescriptor:
        """Derive the WorkloadDescriptor for a release.

        A compose manifest always wins, even when a Dockerfile is present.
        """
        manifest = self.find_manifest(release.path)
        if manifest:
            return WorkloadDescriptor(
                strategy=WorkloadStrategy.COMPOSE,
                manifest_path=manifest,
                internal_port=internal_port,
            )
        return WorkloadDescriptor(
            strategy=WorkloadStrategy.SINGLE_IMAGE,
            image_name=f"{self.config.image_name}:{release.name}",
            internal_port=internal_port,
        )

    def launch(self, release: Release, internal_port: int) -> LaunchResult:
        """Start the workload of the active release.

        Raises:
            LaunchError: If the build, ``up`` or ``run`` step fails
        """
        descriptor = self.describe(release, internal_port)
        logger.info(
            f"Launching {release.name} with the {descriptor.strategy.value} strategy"
        )

        if descriptor.strategy == WorkloadStrategy.COMPOSE:
            script = self.compose_script(release, descriptor)
            report = script.execute(self.runner)
            return LaunchResult(descriptor=descriptor, steps=report.steps)

        script = self.single_image_script(release, descriptor)
        report = script.execute(self.runner)
        return LaunchResult(
            descriptor=descriptor,
            steps=report.steps,
            image=descriptor.image_name,
            container_name=self.config.container_name,
        )

    def compose_script(
        self, release: Release, descriptor: WorkloadDescriptor
    ) -> RemoteScript:
        """Idempotent restart of the compose stack.

        The project name is pinned to the site name so the stack started from
        a previous release is found and brought down.
        """
        manifest = descriptor.manifest_path or ""
        base = (
            f"cd {shlex.quote(release.path)} && {self.compose_command} "
            f"-p {shlex.quote(self.config.site_name)} -f {shlex.quote(manifest)}"
        )
        return (
            RemoteScript("compose", error_cls=LaunchError)
            .add("compose-down", f"{base} down --remove-orphans", fatal=False)
            .add("compose-pull", f"{base} pull --ignore-pull-failures", fatal=False)
            .add("compose-up", f"{base} up -d --build --remove-orphans")
        )

    def single_image_script(
        self, release: Release, descriptor: WorkloadDescriptor
    ) -> RemoteScript:
        """Build one image and replace the well-known container with it."""
        image = shlex.quote(descriptor.image_name or "")
        name = shlex.quote(self.config.container_name)
        port = descriptor.internal_port
        return (
            RemoteScript("single-image", error_cls=LaunchError)
            .add("docker-build", f"docker build -t {image} {shlex.quote(release.path)}")
            .add("docker-remove", f"docker rm -f {name}", fatal=False)
            .add(
                "docker-run",
                f"docker run -d --name {name} --restart unless-stopped "
                f"-p 127.0.0.1:{port}:{port} {image}",
            )
        )
