"""Tests for phases, exit codes and deployment outcomes."""

import pytest

from dockship.models.outcome import DeploymentOutcome, ExitCode, Phase, Verdict


class TestExitCode:
    """Tests for ExitCode."""

    def test_for_phase(self) -> None:
        """Test each fatal phase has its own band."""
        assert ExitCode.for_phase(Phase.CONFIG) == ExitCode.CONFIG
        assert ExitCode.for_phase(Phase.CONNECTIVITY) == 20
        assert ExitCode.for_phase(Phase.PROXY) == 60

    def test_validate_never_fails(self) -> None:
        """Test validation maps to success."""
        assert ExitCode.for_phase(Phase.VALIDATE) == ExitCode.SUCCESS

    def test_bands_are_distinct(self) -> None:
        """Test no two phases share an exit code."""
        codes = [ExitCode.for_phase(p) for p in Phase if p != Phase.VALIDATE]

        assert len(set(codes)) == len(codes)
        assert ExitCode.SUCCESS not in codes


class TestDeploymentOutcome:
    """Tests for DeploymentOutcome.exit_code."""

    def test_success(self) -> None:
        """Test a healthy outcome exits zero."""
        outcome = DeploymentOutcome(
            phase=Phase.VALIDATE, success=True, verdict=Verdict.HEALTHY
        )

        assert outcome.exit_code == ExitCode.SUCCESS

    def test_failed_validation_exits_zero(self) -> None:
        """Test an unhealthy verdict does not change the exit code."""
        outcome = DeploymentOutcome(
            phase=Phase.VALIDATE, success=False, verdict=Verdict.BACKEND_MASKED
        )

        assert outcome.exit_code == ExitCode.SUCCESS

    @pytest.mark.parametrize(
        ("phase", "code"),
        [(Phase.PUBLISH, 40), (Phase.LAUNCH, 50), (Phase.CLEANUP, 70)],
    )
    def test_fatal_phase(self, phase: Phase, code: int) -> None:
        """Test a failed phase exits with its band."""
        outcome = DeploymentOutcome(phase=phase, success=False)

        assert int(outcome.exit_code) == code
        assert outcome.verdict == Verdict.NOT_VALIDATED
