"""Tests for servicedeploy.updater build-verify-restart-rollback orchestration."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock

from conftest import FakeBuilder, FakeSupervisor
from servicedeploy.components.build_manager import BuildManager
from servicedeploy.updater import Updater
from servicedeploy.utils.errors import BuildError, ConfigurationError, RollbackError, SupervisorError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_updater(target, options, make_reporter, supervisor, builder) -> Updater:
    return Updater(
        target,
        options,
        supervisor=supervisor,
        builder=builder,
        reporter=make_reporter(supervisor, settle_seconds=3, log_lines=10),
    )


# ---------------------------------------------------------------------------
# Success path
# ---------------------------------------------------------------------------


class TestUpdateSuccess:
    """Build succeeds: restart on the new artifact and report."""

    def test_end_to_end_success(self, target, options, make_reporter, sleeps) -> None:
        supervisor = FakeSupervisor(running=True)
        builder = FakeBuilder(produce_artifact=True, supervisor=supervisor)
        updater = _make_updater(target, options, make_reporter, supervisor, builder)

        result = updater.run()

        assert result.success is True
        assert result.exit_code == 0
        assert result.error is None
        assert result.steps_completed == ["check_project", "record_service_state", "stop", "build", "restart"]
        assert sleeps == [3]
        assert result.status_report.running is True
        assert len(result.status_report.recent_log_lines) == 10

    def test_stop_happens_before_build_and_start_after(self, target, options, make_reporter) -> None:
        supervisor = FakeSupervisor(running=True)
        builder = FakeBuilder(produce_artifact=True, supervisor=supervisor)
        _make_updater(target, options, make_reporter, supervisor, builder).run()

        actions = [c[0] for c in supervisor.mutating_calls]
        assert actions == ["stop", "start"]
        assert builder.calls == 1

    def test_restarts_on_newly_built_artifact(self, target, options, make_reporter) -> None:
        supervisor = FakeSupervisor(running=True)
        builder = FakeBuilder(produce_artifact=True, supervisor=supervisor)
        _make_updater(target, options, make_reporter, supervisor, builder).run()

        assert supervisor.running is True
        assert supervisor.started_binaries == [target.binary_path]

    def test_restart_not_skipped_when_service_was_stopped(self, target, options, make_reporter) -> None:
        supervisor = FakeSupervisor(running=False)
        builder = FakeBuilder(produce_artifact=True, supervisor=supervisor)
        result = _make_updater(target, options, make_reporter, supervisor, builder).run()

        assert result.success is True
        assert ("start", "watering-backend") in supervisor.calls

    def test_stop_failure_is_not_fatal(self, target, options, make_reporter, caplog) -> None:
        supervisor = FakeSupervisor(running=True, fail={"stop"})
        builder = FakeBuilder(produce_artifact=True, supervisor=supervisor)

        with caplog.at_level(logging.WARNING):
            result = _make_updater(target, options, make_reporter, supervisor, builder).run()

        assert result.success is True
        assert builder.calls == 1
        assert any("Failed to stop" in r.message for r in caplog.records)

    def test_status_query_failure_does_not_change_outcome(self, target, options, make_reporter) -> None:
        supervisor = FakeSupervisor(running=True)
        builder = FakeBuilder(produce_artifact=True, supervisor=supervisor)
        updater = _make_updater(target, options, make_reporter, supervisor, builder)
        original_start = supervisor.start

        # Break every advisory query once the restart has been issued
        def start_then_break(service):
            original_start(service)
            supervisor.fail = {"is_active", "status", "recent_logs"}

        supervisor.start = start_then_break

        result = updater.run()

        assert result.success is True
        assert result.exit_code == 0
        assert result.status_report.running is None
        assert result.status_report.errors


# ---------------------------------------------------------------------------
# Failure paths
# ---------------------------------------------------------------------------


class TestUpdateBuildFailure:
    """Build fails: roll back by restarting the old binary, still fail the run."""

    def test_end_to_end_rollback(self, target, options, make_reporter) -> None:
        supervisor = FakeSupervisor(running=True)
        builder = FakeBuilder(produce_artifact=False)
        result = _make_updater(target, options, make_reporter, supervisor, builder).run()

        assert result.success is False
        assert result.exit_code != 0
        assert isinstance(result.error, BuildError)
        assert not isinstance(result.error, RollbackError)
        assert result.compound_failure is False
        assert "restart" not in result.steps_completed

        # Post-run query: the service is back up
        assert supervisor.is_active("watering-backend") is True
        assert [c[0] for c in supervisor.mutating_calls] == ["stop", "start"]

    def test_rollback_keeps_stopped_service_stopped(self, target, options, make_reporter) -> None:
        supervisor = FakeSupervisor(running=False)
        builder = FakeBuilder(produce_artifact=False)
        result = _make_updater(target, options, make_reporter, supervisor, builder).run()

        assert isinstance(result.error, BuildError)
        assert supervisor.running is False
        assert ("start", "watering-backend") not in supervisor.calls

    def test_unknown_prior_state_is_treated_as_running(self, target, options, make_reporter) -> None:
        supervisor = FakeSupervisor(running=True, fail={"is_active"})
        builder = FakeBuilder(produce_artifact=False)
        updater = _make_updater(target, options, make_reporter, supervisor, builder)
        result = updater.run()

        assert updater.was_running is True
        assert isinstance(result.error, BuildError)
        assert supervisor.running is True

    def test_rollback_restart_failure_is_compound(self, target, options, make_reporter, caplog) -> None:
        supervisor = FakeSupervisor(running=True, fail={"start"})
        builder = FakeBuilder(produce_artifact=False)

        with caplog.at_level(logging.CRITICAL):
            result = _make_updater(target, options, make_reporter, supervisor, builder).run()

        assert isinstance(result.error, RollbackError)
        assert result.compound_failure is True
        assert result.exit_code == 2
        assert any(r.levelno == logging.CRITICAL for r in caplog.records)

    def test_restart_failure_after_successful_build_is_fatal(self, target, options, make_reporter) -> None:
        supervisor = FakeSupervisor(running=True, fail={"start"})
        builder = FakeBuilder(produce_artifact=True, supervisor=supervisor)
        result = _make_updater(target, options, make_reporter, supervisor, builder).run()

        assert result.success is False
        assert isinstance(result.error, SupervisorError)
        assert result.compound_failure is False
        assert result.exit_code == 1

    def test_missing_manifest_aborts_before_any_call(self, target, options, make_reporter) -> None:
        (target.project_directory / "Cargo.toml").unlink()
        supervisor = FakeSupervisor(running=True)
        builder = FakeBuilder()
        result = _make_updater(target, options, make_reporter, supervisor, builder).run()

        assert isinstance(result.error, ConfigurationError)
        assert supervisor.calls == []
        assert builder.calls == 0

    def test_undecodable_build_output_still_rolls_back(self, target, options, make_reporter) -> None:
        supervisor = FakeSupervisor(running=True)
        builder = BuildManager(["sh", "-c", "printf 'error: \\377\\376 bad bytes\\n' >&2; exit 101"])
        result = _make_updater(target, options, make_reporter, supervisor, builder).run()

        assert isinstance(result.error, BuildError)
        assert not isinstance(result.error, RollbackError)
        assert result.error.build_result.return_code == 101
        assert "bad bytes" in result.error.build_result.log_output
        assert supervisor.running is True
        assert [c[0] for c in supervisor.mutating_calls] == ["stop", "start"]

    def test_builder_crash_rolls_back(self, target, options, make_reporter, caplog) -> None:
        supervisor = FakeSupervisor(running=True)
        builder = MagicMock()
        builder.build.side_effect = RuntimeError("target/ is unreadable")

        with caplog.at_level(logging.ERROR):
            result = _make_updater(target, options, make_reporter, supervisor, builder).run()

        assert isinstance(result.error, BuildError)
        assert result.error.build_result.succeeded is False
        assert result.exit_code == 1
        assert supervisor.running is True
        assert "restart" not in result.steps_completed
        assert any("target/ is unreadable" in r.message for r in caplog.records)
