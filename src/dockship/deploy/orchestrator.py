"""Deployment pipeline orchestration.

Runs the stages in order, each one a hard gate:

    config -> connectivity -> provision -> publish -> launch -> proxy -> validate

The proxy site is rendered during the config phase so a broken template
aborts the run before the remote host is contacted. Fatal errors end the run
with the failing phase recorded; nothing already done is rolled back.
Validation is diagnostic and never changes the exit code.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import httpx

from dockship.deploy.cleanup import Teardown
from dockship.deploy.launcher import WorkloadLauncher
from dockship.deploy.provisioner import DependencyProvisioner
from dockship.deploy.proxy import ProxyConfigurer
from dockship.deploy.publisher import ReleasePublisher, make_timestamp
from dockship.deploy.validator import DeploymentValidator
from dockship.lib.errors import DockshipError
from dockship.lib.logging_config import get_logger, register_secret
from dockship.models.deployment import DeploymentConfig
from dockship.models.outcome import DeploymentOutcome, Phase
from dockship.remote.runner import RemoteCommandRunner, SSHRunner, ping_host

logger = get_logger(__name__)


class Orchestrator:
    """Sequence the deployment components for one run.

    Owns the single DeploymentConfig and hands it to every component.

    Args:
        config: Validated deployment configuration
        runner: Remote runner; an SSHRunner for ``config`` when None
        proxy_template: Custom nginx site template (Jinja2)
        http_client: HTTP client for the public validation probe
        timestamp: Release timestamp; fixed once per run
        ping: Local reachability probe, warning-only

    Example:
        >>> outcome = Orchestrator(config).run(Path("./checkout"))
        >>> outcome.exit_code
        <ExitCode.SUCCESS: 0>
    """

    def __init__(
        self,
        config: DeploymentConfig,
        runner: RemoteCommandRunner | None = None,
        *,
        proxy_template: str | None = None,
        http_client: httpx.Client | None = None,
        timestamp: str | None = None,
        ping: Callable[[str], bool] = ping_host,
    ) -> None:
        self.config = config
        self.runner = runner or SSHRunner(config)
        self.timestamp = timestamp or make_timestamp()
        self.ping = ping

        self.provisioner = DependencyProvisioner(self.runner, config)
        self.publisher = ReleasePublisher(self.runner, config)
        self.proxy = ProxyConfigurer(self.runner, config, template=proxy_template)
        self.validator = DeploymentValidator(self.runner, config, client=http_client)

        if config.git_token is not None:
            register_secret(config.git_token.get_secret_value())

    def run(self, local_tree: str | Path) -> DeploymentOutcome:
        """Deploy ``local_tree`` to the target host.

        Returns:
            DeploymentOutcome; on a fatal error ``phase`` is the failing phase
            and ``success`` is False
        """
        phase = Phase.CONFIG
        release_name: str | None = None
        try:
            logger.info(f"Deploying {self.config.branch} to {self.config.target}")
            site = self.proxy.render(self.config.app_port)

            phase = Phase.CONNECTIVITY
            self.check_connectivity()

            phase = Phase.PROVISION
            provision_report = self.provisioner.provision()

            phase = Phase.PUBLISH
            release = self.publisher.publish(local_tree, timestamp=self.timestamp)
            release_name = release.name

            phase = Phase.LAUNCH
            launcher = WorkloadLauncher(
                self.runner, self.config, provision_report.compose_command
            )
            launcher.launch(release, self.config.app_port)

            phase = Phase.PROXY
            self.proxy.configure(site)
        except DockshipError as exc:
            failed = exc.phase or phase
            logger.error(f"Deployment aborted during {failed.value}: {exc}")
            return DeploymentOutcome(
                phase=failed,
                success=False,
                detail=str(exc),
                release=release_name,
            )

        outcome = self.validate()
        return outcome.model_copy(update={"release": release_name})

    def check_connectivity(self) -> None:
        """Ping (warning only), then require a working SSH session.

        Raises:
            ConnectivityError: If the SSH probe fails
        """
        if not self.ping(self.config.host):
            logger.warning(
                f"{self.config.host} did not answer ping; continuing with SSH check"
            )
        self.runner.check_connectivity()
        logger.info(f"SSH connectivity to {self.config.target} OK")

    def validate(self) -> DeploymentOutcome:
        """Run validation; errors here are reported, never raised."""
        try:
            return self.validator.validate()
        except DockshipError as exc:
            logger.warning(f"Validation could not complete: {exc}")
            return DeploymentOutcome(
                phase=Phase.VALIDATE, success=False, detail=str(exc)
            )

    def teardown(self) -> DeploymentOutcome:
        """Remove the deployment from the host (``--cleanup``)."""
        phase = Phase.CONNECTIVITY
        try:
            self.check_connectivity()
            phase = Phase.CLEANUP
            report = Teardown(self.runner, self.config).run()
        except DockshipError as exc:
            failed = exc.phase or phase
            logger.error(f"Cleanup aborted during {failed.value}: {exc}")
            return DeploymentOutcome(phase=failed, success=False, detail=str(exc))

        detail = f"removed: {', '.join(report.applied) or 'nothing'}"
        if report.warnings:
            detail += f"; warnings: {', '.join(w.name for w in report.warnings)}"
        return DeploymentOutcome(phase=Phase.CLEANUP, success=True, detail=detail)
