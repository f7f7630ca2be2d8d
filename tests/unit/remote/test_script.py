"""Tests for RemoteScript step execution."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from dockship.lib.errors import DeploymentError, ProvisioningError
from dockship.models.remote import StepStatus
from dockship.remote.script import RemoteScript, ScriptStep, run_step

if TYPE_CHECKING:
    from tests.conftest import FakeRunner


class TestRunStep:
    """Tests for run_step."""

    def test_skips_when_check_passes(self, runner: FakeRunner) -> None:
        """Test a satisfied check skips the action."""
        step = ScriptStep(name="docker", action="install docker", check="has docker")

        result = run_step(runner, step)

        assert result.status == StepStatus.SKIPPED
        assert runner.commands[-1] == "has docker"
        assert not runner.ran("install docker")

    def test_runs_action_when_check_fails(self, runner: FakeRunner) -> None:
        """Test a failing check runs the action."""
        runner.on("has docker", exit_code=1)
        step = ScriptStep(
            name="docker", action="install docker", check="has docker", sudo=True
        )

        result = run_step(runner, step)

        assert result.status == StepStatus.APPLIED
        assert runner.calls[-2] == ("run", "has docker", False)
        assert runner.calls[-1] == ("run", "install docker", True)

    def test_no_check_always_runs(self, runner: FakeRunner) -> None:
        """Test steps without a check always act."""
        result = run_step(runner, ScriptStep(name="up", action="compose up"))

        assert result.status == StepStatus.APPLIED
        assert runner.commands == ["compose up"]

    def test_fatal_failure_raises(self, runner: FakeRunner) -> None:
        """Test a fatal failure raises the given error class."""
        runner.on("install nginx", exit_code=100, stderr="E: Unable to locate package")
        step = ScriptStep(name="install-nginx", action="install nginx")

        with pytest.raises(ProvisioningError) as exc_info:
            run_step(runner, step, ProvisioningError)

        assert exc_info.value.operation == "install-nginx"
        assert "Unable to locate package" in exc_info.value.message

    def test_non_fatal_failure_recorded(self, runner: FakeRunner) -> None:
        """Test a non-fatal failure is reported and does not raise."""
        runner.on("compose pull", exit_code=1)
        step = ScriptStep(name="pull", action="compose pull", fatal=False)

        result = run_step(runner, step)

        assert result.status == StepStatus.FAILED
        assert result.detail == "exit status 1"


class TestRemoteScript:
    """Tests for RemoteScript."""

    def test_add_chains(self) -> None:
        """Test steps are appended in order."""
        script = RemoteScript("demo").add("a", "cmd-a").add("b", "cmd-b", fatal=False)

        assert [s.name for s in script] == ["a", "b"]
        assert len(script) == 2

    def test_execute_report(self, runner: FakeRunner) -> None:
        """Test the report separates applied, skipped and failed steps."""
        runner.on("check-a", exit_code=0)
        runner.on("check-b", exit_code=1)
        runner.on("cmd-c", exit_code=2)
        script = (
            RemoteScript("demo")
            .add("a", "cmd-a", check="check-a")
            .add("b", "cmd-b", check="check-b")
            .add("c", "cmd-c", fatal=False)
        )

        report = script.execute(runner)

        assert report.skipped == ["a"]
        assert report.applied == ["b"]
        assert [w.name for w in report.warnings] == ["c"]
        assert report.get("c") is not None

    def test_execute_stops_on_fatal(self, runner: FakeRunner) -> None:
        """Test steps after a fatal failure never run."""
        runner.on("cmd-a", exit_code=1)
        script = RemoteScript("demo").add("a", "cmd-a").add("b", "cmd-b")

        with pytest.raises(DeploymentError):
            script.execute(runner)

        assert not runner.ran("cmd-b")
