"""Tests for jobmonitor.execution.models."""

import pytest

from jobmonitor.execution.models import (
    ConnectionState,
    StepRecord,
    StepStatus,
    StreamSession,
    format_duration,
)


class TestStepStatus:
    @pytest.mark.parametrize(
        ("wire", "expected"),
        [
            ("0", StepStatus.SUCCESS),
            ("1", StepStatus.FAILED),
            ("2", StepStatus.RUNNING),
            (0, StepStatus.SUCCESS),
            ("success", StepStatus.SUCCESS),
            ("FAILED", StepStatus.FAILED),
            ("pending", StepStatus.PENDING),
        ],
    )
    def test_from_wire(self, wire, expected):
        assert StepStatus.from_wire(wire) is expected

    def test_from_wire_unknown(self):
        with pytest.raises(ValueError):
            StepStatus.from_wire("9")

    def test_terminal(self):
        assert StepStatus.SUCCESS.is_terminal
        assert StepStatus.FAILED.is_terminal
        assert not StepStatus.RUNNING.is_terminal
        assert not StepStatus.PENDING.is_terminal


class TestConnectionState:
    def test_active_states(self):
        assert ConnectionState.CONNECTING.is_active
        assert ConnectionState.OPEN.is_active
        assert not ConnectionState.IDLE.is_active
        assert not ConnectionState.CLOSED.is_active


class TestStepRecord:
    def test_append_output_newline_joined(self):
        record = StepRecord(step_order=1)
        record.append_output("a")
        record.append_output("b")
        assert record.output == "a\nb"

    def test_defaults_to_running(self):
        assert StepRecord(step_order=1).status == StepStatus.RUNNING

    def test_to_dict(self):
        data = StepRecord(step_order=2, step_name="load", duration_ms=5).to_dict()
        assert data["step_order"] == 2
        assert data["status"] == "running"
        assert data["start_time"] is None
        assert data["duration_ms"] == 5


class TestStreamSession:
    def test_steps_sorted_by_order(self):
        session = StreamSession(job_log_id=1)
        for order in (3, 1, 2):
            session.put_step(StepRecord(step_order=order))
        assert [s.step_order for s in session.steps] == [1, 2, 3]

    def test_new_session_state(self):
        session = StreamSession(job_log_id=1)
        assert session.connection_state == ConnectionState.IDLE
        assert not session.is_complete
        assert session.steps == []

    def test_snapshot_is_a_copy(self):
        session = StreamSession(job_log_id=1)
        session.put_step(StepRecord(step_order=1, output="a"))
        snapshot = session.snapshot()
        session.get_step(1).append_output("b")
        assert snapshot.steps[0].output == "a"


class TestStreamSnapshot:
    def _snapshot(self, *statuses, complete=False):
        session = StreamSession(job_log_id=5, is_complete=complete)
        for order, status in enumerate(statuses, start=1):
            session.put_step(StepRecord(step_order=order, status=status))
        return session.snapshot()

    def test_all_success(self):
        assert self._snapshot(StepStatus.SUCCESS, StepStatus.SUCCESS).all_success
        assert not self._snapshot(StepStatus.SUCCESS, StepStatus.RUNNING).all_success

    def test_all_success_needs_steps(self):
        assert not self._snapshot().all_success

    def test_has_error(self):
        assert self._snapshot(StepStatus.SUCCESS, StepStatus.FAILED).has_error
        assert not self._snapshot(StepStatus.SUCCESS).has_error

    def test_active_step(self):
        snapshot = self._snapshot(StepStatus.SUCCESS, StepStatus.RUNNING, StepStatus.RUNNING)
        assert snapshot.active_step.step_order == 3

    def test_no_active_step_once_complete(self):
        assert self._snapshot(StepStatus.RUNNING, complete=True).active_step is None

    def test_to_dict(self):
        data = self._snapshot(StepStatus.SUCCESS, complete=True).to_dict()
        assert data["job_log_id"] == 5
        assert data["is_complete"] is True
        assert data["all_success"] is True
        assert data["connection_state"] == "idle"
        assert len(data["steps"]) == 1


class TestFormatDuration:
    @pytest.mark.parametrize(
        ("ms", "expected"),
        [
            (None, "-"),
            (0, "0 ms"),
            (850, "850 ms"),
            (1500, "1.5 s"),
            (59_900, "59.9 s"),
            (185_000, "3m 05s"),
            (3_720_000, "1h 02m"),
        ],
    )
    def test_format(self, ms, expected):
        assert format_duration(ms) == expected
