"""Tests for ReleasePublisher and atomic activation."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from dockship.deploy.publisher import (
    ReleasePublisher,
    activation_command,
    make_timestamp,
)
from dockship.lib.errors import PublishError
from dockship.models.deployment import DeploymentConfig

if TYPE_CHECKING:
    from tests.conftest import FakeRunner

TIMESTAMP = "20250101000000"
RELEASE_PATH = "/opt/myapp/releases/main-20250101000000"


class TestHelpers:
    """Tests for timestamp and activation helpers."""

    def test_make_timestamp(self) -> None:
        """Test timestamps have second resolution."""
        now = datetime(2025, 1, 1, 12, 30, 45, tzinfo=timezone.utc)

        assert make_timestamp(now) == "20250101123045"

    def test_activation_is_rename(self) -> None:
        """Test the link is replaced by renaming a fresh symlink over it."""
        command = activation_command(RELEASE_PATH, "/opt/myapp/current", ".tmp")

        assert command == (
            f"ln -sfn {RELEASE_PATH} /opt/myapp/.tmp && "
            "mv -Tf /opt/myapp/.tmp /opt/myapp/current"
        )


class TestPublish:
    """Tests for ReleasePublisher.publish."""

    def test_first_deploy(
        self, runner: FakeRunner, config: DeploymentConfig, local_tree: Path
    ) -> None:
        """Test a release is created, synced, locked down and activated."""
        runner.on("readlink", exit_code=1)

        release = ReleasePublisher(runner, config).publish(local_tree, TIMESTAMP)

        assert release.name == "main-20250101000000"
        assert release.path == RELEASE_PATH
        assert runner.index("mkdir -p") < runner.index(f"{RELEASE_PATH}/")
        assert runner.index(f"{RELEASE_PATH}/") < runner.index("chmod -R")
        assert runner.index("chmod -R") < runner.index("mv -Tf")
        assert runner.index("mv -Tf") < runner.index("chown -h")

    def test_sync_mirrors_tree(
        self, runner: FakeRunner, config: DeploymentConfig, local_tree: Path
    ) -> None:
        """Test the tree is mirrored without VCS metadata or dependencies."""
        ReleasePublisher(runner, config).publish(local_tree, TIMESTAMP)

        assert runner.last_transfer == {
            "local_path": local_tree,
            "remote_path": f"{RELEASE_PATH}/",
            "excludes": (".git", "node_modules"),
            "mirror_delete": True,
        }

    def test_directory_owned_by_user(
        self, runner: FakeRunner, config: DeploymentConfig, local_tree: Path
    ) -> None:
        """Test the release directory is created for the deploying user."""
        ReleasePublisher(runner, config).publish(local_tree, TIMESTAMP)

        assert (
            "mkdir -p /opt/myapp/releases && "
            f"mkdir {RELEASE_PATH} && chown deploy:deploy {RELEASE_PATH}"
            in runner.sudo_commands
        )
        assert f"chmod -R u+rwX,g+rX,g-w,o-rwx {RELEASE_PATH}" in runner.sudo_commands

    def test_redeploy_never_removes_current(
        self, runner: FakeRunner, config: DeploymentConfig, local_tree: Path
    ) -> None:
        """Test the current link is swapped, never deleted first."""
        runner.on("readlink", stdout="/opt/myapp/releases/main-20241231000000\n")

        ReleasePublisher(runner, config).publish(local_tree, TIMESTAMP)

        swap = next(c for c in runner.commands if "mv -Tf" in c)
        assert swap.endswith("/opt/myapp/current")
        assert not any(
            c.startswith("rm") and "/opt/myapp/current" in c for c in runner.commands
        )

    def test_existing_release_not_overwritten(
        self, runner: FakeRunner, config: DeploymentConfig, local_tree: Path
    ) -> None:
        """Test an existing release directory is never synced into again."""
        runner.on(
            f"mkdir {RELEASE_PATH}",
            exit_code=1,
            stderr=f"mkdir: cannot create directory '{RELEASE_PATH}': File exists",
        )

        with pytest.raises(PublishError) as exc_info:
            ReleasePublisher(runner, config).publish(local_tree, TIMESTAMP)

        assert exc_info.value.operation == "create-release"
        assert "File exists" in exc_info.value.message
        assert runner.last_transfer is None
        assert not runner.ran("mv -Tf")

    def test_transfer_failure_not_activated(
        self, runner: FakeRunner, config: DeploymentConfig, local_tree: Path
    ) -> None:
        """Test a failed sync leaves the previous release active."""
        runner.transfer_exit = 23

        with pytest.raises(PublishError) as exc_info:
            ReleasePublisher(runner, config).publish(local_tree, TIMESTAMP)

        assert exc_info.value.operation == "transfer"
        assert "23" in exc_info.value.message
        assert not runner.ran("mv -Tf")
        assert not runner.ran("chmod -R")

    def test_activation_failure(
        self, runner: FakeRunner, config: DeploymentConfig, local_tree: Path
    ) -> None:
        """Test a failed swap is reported as a publish error."""
        runner.on("mv -Tf", exit_code=1, stderr="mv: cannot move")

        with pytest.raises(PublishError) as exc_info:
            ReleasePublisher(runner, config).publish(local_tree, TIMESTAMP)

        assert exc_info.value.operation == "activate"
        assert "previous release remains active" in exc_info.value.message

    def test_chown_failure_is_warning(
        self, runner: FakeRunner, config: DeploymentConfig, local_tree: Path
    ) -> None:
        """Test link ownership is best effort."""
        runner.on("chown -h", exit_code=1)

        release = ReleasePublisher(runner, config).publish(local_tree, TIMESTAMP)

        assert release.name == "main-20250101000000"

    def test_missing_local_tree(
        self, runner: FakeRunner, config: DeploymentConfig, tmp_path: Path
    ) -> None:
        """Test nothing happens remotely when the tree does not exist."""
        with pytest.raises(PublishError, match="Local tree not found"):
            ReleasePublisher(runner, config).publish(tmp_path / "absent", TIMESTAMP)

        assert runner.calls == []

    def test_branch_with_slash(
        self, runner: FakeRunner, config: DeploymentConfig, local_tree: Path
    ) -> None:
        """Test release directories stay flat for nested branch names."""
        feature = config.model_copy(update={"branch": "feature/login"})

        release = ReleasePublisher(runner, feature).publish(local_tree, TIMESTAMP)

        assert release.path == "/opt/myapp/releases/feature-login-20250101000000"


class TestCurrentRelease:
    """Tests for ReleasePublisher.current_release."""

    def test_resolves_link(self, runner: FakeRunner, config: DeploymentConfig) -> None:
        """Test the current link target is returned."""
        runner.on("readlink", stdout=f"{RELEASE_PATH}\n")

        assert ReleasePublisher(runner, config).current_release() == RELEASE_PATH

    def test_no_link(self, runner: FakeRunner, config: DeploymentConfig) -> None:
        """Test a host without a current link."""
        runner.on("readlink", exit_code=1)

        assert ReleasePublisher(runner, config).current_release() is None
