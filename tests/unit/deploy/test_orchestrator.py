"""End-to-end pipeline scenarios against a fake remote host."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING
from unittest.mock import MagicMock

import httpx
import pytest

from dockship.deploy.orchestrator import Orchestrator
from dockship.models.deployment import DeploymentConfig
from dockship.models.outcome import ExitCode, Phase, Verdict

if TYPE_CHECKING:
    from tests.conftest import FakeRunner

TIMESTAMP = "20250101000000"


@pytest.fixture
def http_client() -> httpx.Client:
    """Public endpoint answering 200."""
    return httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200)))


def _orchestrator(
    config: DeploymentConfig,
    runner: FakeRunner,
    http_client: httpx.Client,
    **kwargs: object,
) -> Orchestrator:
    kwargs.setdefault("ping", lambda host: True)
    return Orchestrator(
        config,
        runner,
        http_client=http_client,
        timestamp=TIMESTAMP,
        **kwargs,  # type: ignore[arg-type]
    )


class TestRun:
    """Tests for Orchestrator.run."""

    def test_first_deploy_single_image(
        self,
        runner: FakeRunner,
        config: DeploymentConfig,
        local_tree: Path,
        http_client: httpx.Client,
    ) -> None:
        """Test a first deployment of a Dockerfile-only repository."""
        runner.on("readlink", exit_code=1)
        runner.on("test -f", exit_code=1)

        outcome = _orchestrator(config, runner, http_client).run(local_tree)

        assert outcome.success is True
        assert outcome.exit_code == ExitCode.SUCCESS
        assert outcome.verdict == Verdict.HEALTHY
        assert outcome.release == "main-20250101000000"
        assert runner.ran(
            "mv -Tf /opt/myapp/.current-main-20250101000000 /opt/myapp/current"
        )
        assert runner.ran("-p 127.0.0.1:8000:8000 myapp:main-20250101000000")
        assert not runner.ran("proxy_pass")
        assert "proxy_pass http://127.0.0.1:8000;" in runner.uploads[
            "/tmp/dockship-myapp.conf"
        ]

    def test_stage_order(
        self,
        runner: FakeRunner,
        config: DeploymentConfig,
        local_tree: Path,
        http_client: httpx.Client,
    ) -> None:
        """Test stages run strictly in pipeline order."""
        _orchestrator(config, runner, http_client).run(local_tree)

        order = [
            runner.index("echo SSH_OK"),
            runner.index("/etc/os-release"),
            runner.index("releases/main-20250101000000/"),
            runner.index("mv -Tf"),
            runner.index("up -d --build"),
            runner.index("nginx -t"),
            runner.index("systemctl reload nginx"),
            runner.index("docker inspect --format"),
        ]
        assert order == sorted(order)

    def test_redeploy_compose(
        self,
        runner: FakeRunner,
        config: DeploymentConfig,
        local_tree: Path,
        http_client: httpx.Client,
    ) -> None:
        """Test a redeploy restarts the pinned compose project."""
        runner.on("readlink", stdout="/opt/myapp/releases/main-20241231000000\n")

        outcome = _orchestrator(config, runner, http_client).run(local_tree)

        assert outcome.success is True
        assert runner.ran("docker compose -p myapp -f")
        assert runner.ran("down --remove-orphans")
        assert runner.ran("mv -Tf")

    def test_unresolved_placeholder_never_contacts_host(
        self,
        runner: FakeRunner,
        config: DeploymentConfig,
        local_tree: Path,
        http_client: httpx.Client,
    ) -> None:
        """Test a broken proxy template aborts before any remote call."""
        ping = MagicMock(return_value=True)
        orchestrator = _orchestrator(
            config,
            runner,
            http_client,
            proxy_template="proxy_pass http://127.0.0.1:__APP_PORT__;",
            ping=ping,
        )

        outcome = orchestrator.run(local_tree)

        assert outcome.success is False
        assert outcome.phase == Phase.PROXY
        assert outcome.exit_code == ExitCode.PROXY
        assert "__APP_PORT__" in outcome.detail
        assert runner.calls == []
        ping.assert_not_called()

    def test_unreachable_host(
        self,
        runner: FakeRunner,
        config: DeploymentConfig,
        local_tree: Path,
        http_client: httpx.Client,
    ) -> None:
        """Test an SSH failure aborts before provisioning."""
        runner.on("echo SSH_OK", exit_code=255, stderr="Connection timed out")
        orchestrator = _orchestrator(
            config, runner, http_client, ping=lambda host: False
        )

        outcome = orchestrator.run(local_tree)

        assert outcome.phase == Phase.CONNECTIVITY
        assert outcome.exit_code == 20
        assert "Connection timed out" in outcome.detail
        assert runner.commands == ["echo SSH_OK"]
        assert outcome.release is None

    def test_ping_failure_is_warning(
        self,
        runner: FakeRunner,
        config: DeploymentConfig,
        local_tree: Path,
        http_client: httpx.Client,
    ) -> None:
        """Test hosts that drop ICMP can still be deployed to."""
        orchestrator = _orchestrator(
            config, runner, http_client, ping=lambda host: False
        )

        assert orchestrator.run(local_tree).success is True

    def test_launch_failure(
        self,
        runner: FakeRunner,
        config: DeploymentConfig,
        local_tree: Path,
        http_client: httpx.Client,
    ) -> None:
        """Test a failed launch keeps the release and skips the proxy."""
        runner.on("up -d --build", exit_code=1, stderr="no space left on device")

        outcome = _orchestrator(config, runner, http_client).run(local_tree)

        assert outcome.phase == Phase.LAUNCH
        assert outcome.exit_code == 50
        assert outcome.release == "main-20250101000000"
        assert not runner.ran("nginx -t")
        assert not runner.ran("rm -rf")

    def test_publish_failure(
        self,
        runner: FakeRunner,
        config: DeploymentConfig,
        local_tree: Path,
        http_client: httpx.Client,
    ) -> None:
        """Test a failed sync never activates or launches."""
        runner.transfer_exit = 23

        outcome = _orchestrator(config, runner, http_client).run(local_tree)

        assert outcome.exit_code == ExitCode.PUBLISH
        assert not runner.ran("mv -Tf")
        assert not runner.ran("up -d --build")

    def test_proxy_check_failure(
        self,
        runner: FakeRunner,
        config: DeploymentConfig,
        local_tree: Path,
        http_client: httpx.Client,
    ) -> None:
        """Test a failed nginx syntax check is fatal and skips the reload."""
        runner.on("nginx -t", exit_code=1, stderr="[emerg]")

        outcome = _orchestrator(config, runner, http_client).run(local_tree)

        assert outcome.exit_code == ExitCode.PROXY
        assert not runner.ran("systemctl reload nginx")
        assert outcome.verdict == Verdict.NOT_VALIDATED

    def test_validation_failure_exits_zero(
        self,
        runner: FakeRunner,
        config: DeploymentConfig,
        local_tree: Path,
    ) -> None:
        """Test an unhealthy verdict is reported without failing the run."""

        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        client = httpx.Client(transport=httpx.MockTransport(refuse))

        outcome = _orchestrator(config, runner, client).run(local_tree)

        assert outcome.phase == Phase.VALIDATE
        assert outcome.success is False
        assert outcome.verdict == Verdict.PROXY_MISCONFIGURED
        assert outcome.exit_code == ExitCode.SUCCESS
        assert outcome.release == "main-20250101000000"


class TestTeardown:
    """Tests for Orchestrator.teardown."""

    def test_cleanup(
        self, runner: FakeRunner, config: DeploymentConfig, http_client: httpx.Client
    ) -> None:
        """Test teardown removes the project directory."""
        runner.on("! test -e", exit_code=1)

        outcome = _orchestrator(config, runner, http_client).teardown()

        assert outcome.phase == Phase.CLEANUP
        assert outcome.success is True
        assert "remove-project" in outcome.detail
        assert runner.ran("rm -rf /opt/myapp")

    def test_cleanup_unreachable(
        self, runner: FakeRunner, config: DeploymentConfig, http_client: httpx.Client
    ) -> None:
        """Test teardown needs a working connection."""
        runner.on("echo SSH_OK", exit_code=255)

        outcome = _orchestrator(config, runner, http_client).teardown()

        assert outcome.exit_code == ExitCode.CONNECTIVITY
        assert not runner.ran("rm -rf")
