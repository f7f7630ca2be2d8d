"""Local working tree retrieval from git.

Clones the configured branch into a work directory, or updates an existing
clone in place. A git token is only ever passed on the command line of the
git subprocess; it is not written to the clone's configuration or the logs.
"""

from __future__ import annotations

import subprocess  # nosec B404
from pathlib import Path, PurePosixPath
from urllib.parse import urlsplit

from dockship.lib.errors import SourceError
from dockship.lib.logging_config import get_logger, register_secret
from dockship.lib.masking import inject_token, mask_secret
from dockship.models.deployment import DeploymentConfig

logger = get_logger(__name__)


def repository_dir_name(repository_url: str) -> str:
    """Derive a directory name from a repository URL or path.

    Example:
        >>> repository_dir_name("https://github.com/acme/blog.git")
        'blog'
    """
    path = urlsplit(repository_url).path or repository_url
    if ":" in path and "/" not in path.split(":", 1)[0]:
        # scp-style git@host:org/repo.git
        path = path.split(":", 1)[1]
    name = PurePosixPath(path.rstrip("/")).name
    if name.endswith(".git"):
        name = name[: -len(".git")]
    return name or "repository"


class SourceFetcher:
    """Produce a local working tree for the configured repository and branch.

    Example:
        >>> tree = SourceFetcher(config, Path(".dockship/src")).fetch()
    """

    def __init__(self, config: DeploymentConfig, workdir: str | Path) -> None:
        self.config = config
        self.workdir = Path(workdir)
        self._token: str | None = None
        if config.git_token is not None:
            self._token = config.git_token.get_secret_value()
        register_secret(self._token)

    @property
    def checkout_dir(self) -> Path:
        """Directory the repository is cloned into."""
        return self.workdir / repository_dir_name(self.config.repository_url)

    def fetch(self) -> Path:
        """Clone or update the working tree and return its path.

        Raises:
            SourceError: If a git command fails or git is not installed
        """
        url = inject_token(self.config.repository_url, self._token)
        branch = self.config.branch
        target = self.checkout_dir

        if (target / ".git").is_dir():
            logger.info(f"Updating existing checkout {target} ({branch})")
            self._git(["fetch", "--depth", "1", url, branch], cwd=target)
            self._git(["checkout", "-B", branch, "FETCH_HEAD"], cwd=target)
            self._git(["reset", "--hard", "FETCH_HEAD"], cwd=target)
            self._git(["clean", "-fdx"], cwd=target)
        else:
            logger.info(
                f"Cloning {self.config.repository_url} ({branch}) into {target}"
            )
            self.workdir.mkdir(parents=True, exist_ok=True)
            self._git(
                ["clone", "--depth", "1", "--branch", branch, "--single-branch"]
                + [url, str(target)]
            )
            # Keep the token out of .git/config
            self._git(
                ["remote", "set-url", "origin", self.config.repository_url], cwd=target
            )

        return target

    def _git(self, args: list[str], cwd: Path | None = None) -> str:
        try:
            result = subprocess.run(  # noqa: S603  # nosec B603 B607
                ["git", *args],  # noqa: S607
                cwd=str(cwd) if cwd else None,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise SourceError(operation="git", message="git is not installed") from exc

        stderr = result.stderr.strip()
        if self._token:
            stderr = stderr.replace(self._token, mask_secret(self._token))
        if stderr:
            logger.debug(f"git {args[0]}: {stderr}")
        if result.returncode != 0:
            raise SourceError(
                operation=f"git {args[0]}",
                message=stderr or f"exit status {result.returncode}",
            )
        return result.stdout.strip()
