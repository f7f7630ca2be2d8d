"""Release publishing and atomic activation.

A release is a new directory under ``<app_base>/releases`` named
``<branch>-<timestamp>``. It is mirrored from the local working tree, locked
down, and then activated by atomically replacing the ``current`` symlink.
Releases are never modified after activation and never pruned here.
"""

from __future__ import annotations

import shlex
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath

from dockship.config.defaults import EXCLUDE_PATTERNS
from dockship.lib.errors import PublishError
from dockship.lib.logging_config import get_logger
from dockship.models.deployment import DeploymentConfig, Release
from dockship.remote.runner import RemoteCommandRunner

logger = get_logger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"
RELEASE_PERMISSIONS = "u+rwX,g+rX,g-w,o-rwx"


def make_timestamp(now: datetime | None = None) -> str:
    """Return a second-resolution UTC release timestamp."""
    return (now or datetime.now(timezone.utc)).strftime(TIMESTAMP_FORMAT)


def activation_command(target: str, link: str, temp_name: str) -> str:
    """Shell command that atomically points ``link`` at ``target``.

    A fresh symlink is created next to ``link`` and renamed over it with
    ``mv -T``, which is a single rename(2). ``link`` therefore always
    resolves to either the previous or the new release, never to nothing.
    """
    temp_link = str(PurePosixPath(link).parent / temp_name)
    return (
        f"ln -sfn {shlex.quote(target)} {shlex.quote(temp_link)} && "
        f"mv -Tf {shlex.quote(temp_link)} {shlex.quote(link)}"
    )


class ReleasePublisher:
    """Create, populate and activate releases on the remote host.

    Example:
        >>> publisher = ReleasePublisher(runner, config)
        >>> release = publisher.publish(Path("./build/myapp"))
        >>> release.name
        'main-20250101000000'
    """

    def __init__(
        self,
        runner: RemoteCommandRunner,
        config: DeploymentConfig,
        excludes: tuple[str, ...] = EXCLUDE_PATTERNS,
    ) -> None:
        self.runner = runner
        self.config = config
        self.excludes = excludes

    def new_release(self, timestamp: str | None = None) -> Release:
        """Describe the release for this run without touching the host."""
        return Release(
            branch=self.config.branch,
            timestamp=timestamp or make_timestamp(),
            releases_dir=self.config.releases_dir,
        )

    def current_release(self) -> str | None:
        """Return the path the current link resolves to, if it exists."""
        result = self.runner.run(f"readlink {shlex.quote(self.config.current_link)}")
        if not result.ok or not result.output:
            return None
        return result.output

    def publish(self, local_tree: str | Path, timestamp: str | None = None) -> Release:
        """Publish ``local_tree`` as a new release and activate it.

        Args:
            local_tree: Local directory holding the working tree to ship
            timestamp: Release timestamp; one value per orchestration run

        Returns:
            The activated Release

        Raises:
            PublishError: If any step fails. Before activation the previous
                release stays current; the new directory is left on disk.
        """
        tree = Path(local_tree)
        if not tree.is_dir():
            raise PublishError(
                operation="publish", message=f"Local tree not found: {local_tree}"
            )

        release = self.new_release(timestamp)
        previous = self.current_release()
        logger.info(f"Publishing release {release.name} to {release.path}")
        if previous:
            logger.info(f"Currently active release: {previous}")

        self.create(release)
        self.sync(tree, release)
        self.lock_down(release)
        self.activate(release)
        return release

    def create(self, release: Release) -> None:
        """Create the release directory owned by the deploying user.

        The release directory itself must not exist yet; a populated release
        is never written to again.
        """
        parent = shlex.quote(release.releases_dir)
        path = shlex.quote(release.path)
        owner = shlex.quote(f"{self.config.user}:{self.config.user}")
        result = self.runner.run(
            f"mkdir -p {parent} && mkdir {path} && chown {owner} {path}", sudo=True
        )
        if not result.ok:
            raise PublishError(
                operation="create-release",
                message=(
                    f"Cannot create {release.path} (it may already exist): "
                    f"{result.stderr.strip()}"
                ),
            )

    def sync(self, tree: Path, release: Release) -> None:
        """Mirror the local tree into the release directory."""
        result = self.runner.transfer(
            tree,
            f"{release.path}/",
            excludes=self.excludes,
            mirror_delete=True,
        )
        if not result.ok:
            raise PublishError(
                operation="transfer",
                message=(
                    f"File sync to {release.path} failed with exit code "
                    f"{result.exit_code}; release not activated. "
                    f"{result.stderr.strip()}"
                ),
            )
        logger.info(f"Synced {tree} to {release.path}")

    def lock_down(self, release: Release) -> None:
        """Make the populated tree group-readable and world-denied."""
        result = self.runner.run(
            f"chmod -R {RELEASE_PERMISSIONS} {shlex.quote(release.path)}", sudo=True
        )
        if not result.ok:
            raise PublishError(
                operation="permissions",
                message=f"Cannot set permissions on {release.path}: "
                f"{result.stderr.strip()}",
            )

    def activate(self, release: Release) -> None:
        """Atomically repoint the current link at ``release``."""
        link = self.config.current_link
        swap = activation_command(release.path, link, f".current-{release.name}")
        result = self.runner.run(swap, sudo=True)
        if not result.ok:
            raise PublishError(
                operation="activate",
                message=f"Activation of {release.name} failed; previous release "
                f"remains active. {result.stderr.strip()}",
            )

        owner = shlex.quote(f"{self.config.user}:{self.config.user}")
        chown = self.runner.run(f"chown -h {owner} {shlex.quote(link)}", sudo=True)
        if not chown.ok:
            logger.warning(f"Could not set ownership of {link}: {chown.stderr.strip()}")
        logger.info(f"Activated release {release.name}")
