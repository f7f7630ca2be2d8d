"""Remote command execution and file transfer over SSH.

RemoteCommandRunner is the capability interface the deployment components
depend on; SSHRunner implements it with the system ``ssh`` and ``rsync``
binaries. Tests substitute a scripted fake.
"""

from __future__ import annotations

import shlex
import subprocess  # nosec B404
from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path

from dockship.lib.errors import ConnectivityError
from dockship.lib.logging_config import get_logger
from dockship.models.deployment import DeploymentConfig
from dockship.models.remote import CommandResult

logger = get_logger(__name__)

CONNECTIVITY_MARKER = "SSH_OK"
SSH_CONNECTION_FAILED = 255


class RemoteCommandRunner(ABC):
    """Abstract capability for running commands on, and copying to, one host."""

    @abstractmethod
    def run(self, command: str, *, sudo: bool = False) -> CommandResult:
        """Run a shell command on the remote host and wait for it.

        Args:
            command: Command line interpreted by the remote shell.
            sudo: Run the whole command line through ``sudo -n sh -c``.

        Returns:
            CommandResult with exit status and captured output.
        """

    @abstractmethod
    def transfer(
        self,
        local_path: str | Path,
        remote_path: str,
        *,
        excludes: Sequence[str] = (),
        mirror_delete: bool = False,
    ) -> CommandResult:
        """Copy a local file or directory tree to the remote host.

        Args:
            local_path: File or directory to copy. Directory contents are
                copied into ``remote_path``.
            remote_path: Destination path on the remote host.
            excludes: Patterns excluded from the transfer.
            mirror_delete: Delete remote files that do not exist locally.

        Returns:
            CommandResult of the transfer.
        """

    def file_exists(self, path: str) -> bool:
        """Return True if ``path`` is a regular file on the remote host."""
        return self.run(f"test -f {shlex.quote(path)}").ok

    def dir_exists(self, path: str) -> bool:
        """Return True if ``path`` is a directory on the remote host."""
        return self.run(f"test -d {shlex.quote(path)}").ok

    def check_connectivity(self) -> None:
        """Verify the host accepts a non-interactive SSH session.

        Raises:
            ConnectivityError: If the probe command does not succeed
        """
        result = self.run(f"echo {CONNECTIVITY_MARKER}")
        if not result.ok or CONNECTIVITY_MARKER not in result.stdout:
            detail = result.stderr.strip() or f"exit status {result.exit_code}"
            raise ConnectivityError(
                operation="connect",
                message=(
                    f"SSH connectivity check failed: {detail}. "
                    "Check network, credentials and key permissions."
                ),
            )


class SSHRunner(RemoteCommandRunner):
    """RemoteCommandRunner backed by the OpenSSH client and rsync.

    Host keys follow the "accept new, reject changed" policy and connection
    establishment is bounded by ``config.connect_timeout``. Commands that run
    long on the remote side (installs, builds) are not given any additional
    timeout.

    Example:
        >>> runner = SSHRunner(config)
        >>> runner.run("uname -m").output
        'x86_64'
    """

    def __init__(
        self,
        config: DeploymentConfig,
        *,
        ssh_binary: str = "ssh",
        rsync_binary: str = "rsync",
    ) -> None:
        self.config = config
        self.ssh_binary = ssh_binary
        self.rsync_binary = rsync_binary

    def ssh_options(self) -> list[str]:
        """Options shared by ssh invocations and rsync's remote shell."""
        return [
            "-o",
            "BatchMode=yes",
            "-o",
            "StrictHostKeyChecking=accept-new",
            "-o",
            f"ConnectTimeout={self.config.connect_timeout}",
            "-p",
            str(self.config.ssh_port),
            "-i",
            self.config.ssh_key_path,
        ]

    def build_ssh_cmd(self, command: str, *, sudo: bool = False) -> list[str]:
        """Build the local argument list for running ``command`` remotely."""
        remote = f"sudo -n sh -c {shlex.quote(command)}" if sudo else command
        return [self.ssh_binary, *self.ssh_options(), self.config.target, "--", remote]

    def build_rsync_cmd(
        self,
        local_path: str | Path,
        remote_path: str,
        *,
        excludes: Sequence[str] = (),
        mirror_delete: bool = False,
    ) -> list[str]:
        """Build the rsync argument list for a transfer."""
        source = str(local_path)
        if Path(local_path).is_dir() and not source.endswith("/"):
            # Trailing slash copies the directory's contents, not the directory
            source += "/"
        remote_shell = shlex.join([self.ssh_binary, *self.ssh_options()])
        cmd = [self.rsync_binary, "-az"]
        if mirror_delete:
            cmd.append("--delete")
        cmd.extend(f"--exclude={pattern}" for pattern in excludes)
        cmd.extend(["-e", remote_shell, source, f"{self.config.target}:{remote_path}"])
        return cmd

    def run(self, command: str, *, sudo: bool = False) -> CommandResult:
        display = f"sudo {command}" if sudo else command
        return self._execute(self.build_ssh_cmd(command, sudo=sudo), display)

    def transfer(
        self,
        local_path: str | Path,
        remote_path: str,
        *,
        excludes: Sequence[str] = (),
        mirror_delete: bool = False,
    ) -> CommandResult:
        cmd = self.build_rsync_cmd(
            local_path, remote_path, excludes=excludes, mirror_delete=mirror_delete
        )
        return self._execute(cmd, f"rsync {local_path} -> {remote_path}")

    def _execute(self, cmd: list[str], display: str) -> CommandResult:
        logger.debug(f"$ {display}")
        try:
            completed = subprocess.run(  # noqa: S603  # nosec B603
                cmd,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise ConnectivityError(
                operation="connect",
                message=f"Required client binary not found: {cmd[0]}",
            ) from exc

        result = CommandResult(
            command=display,
            exit_code=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )
        if result.stderr.strip():
            logger.debug(f"stderr ({display}): {result.stderr.strip()}")
        if result.exit_code == SSH_CONNECTION_FAILED:
            logger.debug(f"ssh reported a connection failure for: {display}")
        logger.debug(f"exit {result.exit_code}: {display}")
        return result


def ping_host(host: str, timeout: int = 2) -> bool:
    """Send a single ICMP echo to ``host`` from the local machine.

    Many hosts drop ICMP, so callers treat a failure as a warning only.
    """
    try:
        completed = subprocess.run(  # noqa: S603  # nosec B603 B607
            ["ping", "-c", "1", "-W", str(timeout), host],  # noqa: S607
            capture_output=True,
            text=True,
            check=False,
        )
    except FileNotFoundError:
        logger.debug("ping binary not available; skipping reachability check")
        return False
    return completed.returncode == 0
