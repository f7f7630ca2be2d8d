"""Pytest configuration and shared fixtures for dockship tests."""

from __future__ import annotations

import logging
from collections.abc import Callable, Generator, Sequence
from pathlib import Path
from typing import Any

import pytest

from dockship.lib.logging_config import LOGGER_NAME
from dockship.models.deployment import DeploymentConfig
from dockship.models.remote import CommandResult
from dockship.remote.runner import CONNECTIVITY_MARKER, RemoteCommandRunner

Handler = Callable[[str, bool], int]


class FakeRunner(RemoteCommandRunner):
    """Scripted RemoteCommandRunner that records every call.

    Commands are matched against registered rules by substring; the most
    recently registered matching rule wins. Unmatched commands succeed with
    empty output, so a fresh FakeRunner models a fully provisioned host.
    """

    def __init__(self, transfer_exit: int = 0) -> None:
        self.rules: list[tuple[str, CommandResult | Handler]] = []
        self.calls: list[tuple[str, Any, Any]] = []
        self.uploads: dict[str, str] = {}
        self.last_transfer: dict[str, Any] | None = None
        self.transfer_exit = transfer_exit
        self.on(f"echo {CONNECTIVITY_MARKER}", stdout=f"{CONNECTIVITY_MARKER}\n")

    def on(
        self,
        pattern: str,
        exit_code: int = 0,
        stdout: str = "",
        stderr: str = "",
        handler: Handler | None = None,
    ) -> FakeRunner:
        """Register a response for commands containing ``pattern``.

        A ``handler`` receives (command, sudo) and returns an exit code.
        """
        response: CommandResult | Handler = handler or CommandResult(
            command=pattern, exit_code=exit_code, stdout=stdout, stderr=stderr
        )
        self.rules.insert(0, (pattern, response))
        return self

    def run(self, command: str, *, sudo: bool = False) -> CommandResult:
        self.calls.append(("run", command, sudo))
        for pattern, response in self.rules:
            if pattern in command:
                if isinstance(response, CommandResult):
                    return response.model_copy(update={"command": command})
                return CommandResult(command=command, exit_code=response(command, sudo))
        return CommandResult(command=command, exit_code=0)

    def transfer(
        self,
        local_path: str | Path,
        remote_path: str,
        *,
        excludes: Sequence[str] = (),
        mirror_delete: bool = False,
    ) -> CommandResult:
        self.calls.append(("transfer", str(local_path), remote_path))
        local = Path(local_path)
        if local.is_file():
            self.uploads[remote_path] = local.read_text(encoding="utf-8")
        self.last_transfer = {
            "local_path": local,
            "remote_path": remote_path,
            "excludes": tuple(excludes),
            "mirror_delete": mirror_delete,
        }
        return CommandResult(
            command=f"rsync {local_path} {remote_path}",
            exit_code=self.transfer_exit,
            stderr="rsync error" if self.transfer_exit else "",
        )

    @property
    def commands(self) -> list[str]:
        """Remote command lines, in execution order."""
        return [call[1] for call in self.calls if call[0] == "run"]

    @property
    def sudo_commands(self) -> list[str]:
        """Remote command lines that were run with sudo."""
        return [call[1] for call in self.calls if call[0] == "run" and call[2]]

    def ran(self, fragment: str) -> bool:
        """Whether any command containing ``fragment`` was run."""
        return any(fragment in command for command in self.commands)

    def index(self, fragment: str) -> int:
        """Position in ``calls`` of the first call mentioning ``fragment``."""
        for position, call in enumerate(self.calls):
            if any(fragment in str(part) for part in call[1:]):
                return position
        raise AssertionError(f"no call mentions {fragment!r}")


@pytest.fixture
def runner() -> FakeRunner:
    """A fake remote host where every command succeeds."""
    return FakeRunner()


@pytest.fixture
def config() -> DeploymentConfig:
    """A complete deployment configuration for a test host."""
    return DeploymentConfig(
        repository_url="https://github.com/acme/blog.git",
        branch="main",
        host="203.0.113.10",
        user="deploy",
        ssh_key_path="/home/deploy/.ssh/id_ed25519",
        app_port=8000,
    )


@pytest.fixture
def local_tree(tmp_path: Path) -> Path:
    """A small working tree to publish."""
    tree = tmp_path / "checkout"
    tree.mkdir()
    (tree / "Dockerfile").write_text("FROM python:3.12-slim\n")
    (tree / "app.py").write_text("print('hello')\n")
    return tree


@pytest.fixture(autouse=True)
def reset_dockship_logger() -> Generator[None]:
    """Undo setup_logging() so handlers and files do not leak between tests."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


# Configure pytest
def pytest_configure(config: Any) -> None:
    """Configure pytest with marker options."""
    config.addinivalue_line(
        "markers",
        "unit: marks tests as unit tests",
    )
