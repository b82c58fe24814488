"""Tests for jobmonitor.execution.session.

Covers:
- Connection lifecycle (open, acknowledge, close, reconnect, retarget)
- Folding step events into records
- Completion, channel errors and server close
- Stale callbacks from cancelled subscriptions
"""

import pytest

from jobmonitor.core.errors import ChannelError, StreamProtocolError
from jobmonitor.execution.events import Complete, Heartbeat, StepEnd, StepLog, StepStart
from jobmonitor.execution.models import ConnectionState, StepStatus
from jobmonitor.execution.session import ExecutionStreamReconstructor

JOB = 42


@pytest.fixture
def callbacks():
    return {"complete": 0, "errors": [], "events": [], "closed": 0}


@pytest.fixture
def make_stream(callbacks):
    def _make(transport, job_log_id=JOB, **kwargs):
        def on_complete():
            callbacks["complete"] += 1

        def on_closed():
            callbacks["closed"] += 1

        return ExecutionStreamReconstructor(
            transport,
            job_log_id,
            on_complete=on_complete,
            on_error=callbacks["errors"].append,
            on_event=callbacks["events"].append,
            on_closed=on_closed,
            **kwargs,
        )

    return _make


def _run_step(transport, order=1, name="extract", *logs, status=StepStatus.SUCCESS):
    transport.publish(JOB, StepStart(step_order=order, step_name=name))
    for line in logs:
        transport.publish(JOB, StepLog(step_order=order, output=line))
    transport.publish(JOB, StepEnd(step_order=order, status=status, duration_ms=10))


# ------------------------------------------------------------------ #
# Lifecycle
# ------------------------------------------------------------------ #


class TestLifecycle:
    def test_initially_idle(self, memory_transport, make_stream):
        stream = make_stream(memory_transport)
        assert stream.connection_state == ConnectionState.IDLE
        assert not stream.is_complete
        assert stream.steps == []

    def test_open_waits_for_acknowledgement(self, manual_transport, make_stream):
        stream = make_stream(manual_transport)
        stream.open()
        assert stream.connection_state == ConnectionState.CONNECTING
        manual_transport.acknowledge(JOB)
        assert stream.connection_state == ConnectionState.OPEN
        assert stream.is_connected

    def test_open_is_idempotent(self, memory_transport, make_stream):
        """A second open() while open does not subscribe again."""
        stream = make_stream(memory_transport)
        stream.open()
        stream.open()
        assert memory_transport.subscribe_calls == 1
        assert memory_transport.subscription_count(JOB) == 1

    def test_open_while_connecting_is_noop(self, manual_transport, make_stream):
        stream = make_stream(manual_transport)
        stream.open()
        stream.open()
        assert manual_transport.subscribe_calls == 1

    def test_close(self, memory_transport, make_stream, callbacks):
        stream = make_stream(memory_transport)
        stream.open()
        stream.close()
        assert stream.connection_state == ConnectionState.CLOSED
        assert memory_transport.subscription_count(JOB) == 0
        assert callbacks["closed"] == 1

    def test_double_close_is_safe(self, memory_transport, make_stream, callbacks):
        stream = make_stream(memory_transport)
        stream.open()
        stream.close()
        stream.close()
        assert stream.connection_state == ConnectionState.CLOSED
        assert callbacks["closed"] == 1

    def test_close_before_open(self, memory_transport, make_stream):
        stream = make_stream(memory_transport)
        stream.close()
        assert stream.connection_state == ConnectionState.CLOSED

    def test_context_manager_closes(self, memory_transport, make_stream):
        with make_stream(memory_transport) as stream:
            stream.open()
        assert stream.connection_state == ConnectionState.CLOSED
        assert memory_transport.subscription_count() == 0

    def test_reconnect_keeps_steps(self, memory_transport, make_stream):
        stream = make_stream(memory_transport)
        stream.open()
        _run_step(memory_transport, 1, "extract", "rows=10")
        stream.reconnect()
        assert stream.connection_state == ConnectionState.OPEN
        assert [s.step_name for s in stream.steps] == ["extract"]
        assert memory_transport.subscribe_calls == 2
        assert memory_transport.subscription_count(JOB) == 1

    def test_retarget_starts_fresh_session(self, memory_transport, make_stream):
        stream = make_stream(memory_transport)
        stream.open()
        _run_step(memory_transport)
        memory_transport.publish(JOB, Complete())
        old_session = stream.session

        stream.open()
        stream.retarget(43)

        assert stream.job_log_id == 43
        assert stream.session is not old_session
        assert stream.steps == []
        assert not stream.is_complete
        assert old_session.is_complete
        assert stream.connection_state == ConnectionState.OPEN
        assert memory_transport.subscription_count(JOB) == 0
        assert memory_transport.subscription_count(43) == 1

    def test_retarget_same_id_is_noop(self, memory_transport, make_stream):
        stream = make_stream(memory_transport)
        stream.open()
        session = stream.session
        stream.retarget(JOB)
        assert stream.session is session
        assert memory_transport.subscribe_calls == 1

    def test_retarget_idle_stays_idle(self, memory_transport, make_stream):
        stream = make_stream(memory_transport)
        stream.retarget(43)
        assert stream.connection_state == ConnectionState.IDLE
        assert memory_transport.subscribe_calls == 0

    def test_subscribe_failure_closes_session(self, make_stream):
        class BrokenTransport:
            def subscribe(self, job_log_id, **handlers):
                raise RuntimeError("no running event loop")

        stream = make_stream(BrokenTransport())
        with pytest.raises(RuntimeError):
            stream.open()
        assert stream.connection_state == ConnectionState.CLOSED


# ------------------------------------------------------------------ #
# Folding
# ------------------------------------------------------------------ #


class TestFolding:
    def test_start_log_end(self, memory_transport, make_stream):
        """start, log a, log b, end success folds into one record."""
        stream = make_stream(memory_transport)
        stream.open()
        _run_step(memory_transport, 1, "extract", "a", "b")

        [record] = stream.steps
        assert record.output == "a\nb"
        assert record.status == StepStatus.SUCCESS
        assert record.duration_ms == 10

    def test_orphan_log_dropped(self, memory_transport, make_stream):
        stream = make_stream(memory_transport)
        stream.open()
        memory_transport.publish(JOB, StepLog(step_order=1, output="early"))
        assert stream.steps == []

    def test_orphan_end_dropped(self, memory_transport, make_stream):
        stream = make_stream(memory_transport)
        stream.open()
        memory_transport.publish(JOB, StepEnd(step_order=3, status=StepStatus.FAILED))
        assert stream.steps == []

    def test_steps_sorted_regardless_of_arrival(self, memory_transport, make_stream):
        stream = make_stream(memory_transport)
        stream.open()
        for order in (3, 1, 2):
            memory_transport.publish(JOB, StepStart(step_order=order, step_name=f"s{order}"))
        assert [s.step_order for s in stream.steps] == [1, 2, 3]

    def test_interleaved_steps(self, memory_transport, make_stream):
        stream = make_stream(memory_transport)
        stream.open()
        memory_transport.publish(JOB, StepStart(step_order=1))
        memory_transport.publish(JOB, StepStart(step_order=2))
        memory_transport.publish(JOB, StepLog(step_order=2, output="two"))
        memory_transport.publish(JOB, StepLog(step_order=1, output="one"))
        assert [s.output for s in stream.steps] == ["one", "two"]

    def test_second_end_is_noop(self, memory_transport, make_stream):
        """A terminal status is never overwritten by a later step_end."""
        stream = make_stream(memory_transport)
        stream.open()
        _run_step(memory_transport, status=StepStatus.FAILED)
        memory_transport.publish(JOB, StepEnd(step_order=1, status=StepStatus.SUCCESS))
        assert stream.steps[0].status == StepStatus.FAILED

    def test_log_after_end_still_appends(self, memory_transport, make_stream):
        stream = make_stream(memory_transport)
        stream.open()
        _run_step(memory_transport, 1, "extract", "a")
        memory_transport.publish(JOB, StepLog(step_order=1, output="late"))
        assert stream.steps[0].output == "a\nlate"
        assert stream.steps[0].status == StepStatus.SUCCESS

    def test_restart_of_finished_step_replaces_record(self, memory_transport, make_stream):
        stream = make_stream(memory_transport)
        stream.open()
        _run_step(memory_transport, 1, "extract", "a")
        memory_transport.publish(JOB, StepStart(step_order=1, step_name="retry"))
        [record] = stream.steps
        assert record.status == StepStatus.RUNNING
        assert record.step_name == "retry"
        assert record.output == ""

    def test_protected_restart_dropped(self, memory_transport, make_stream):
        stream = make_stream(memory_transport, protect_terminal_steps=True)
        stream.open()
        _run_step(memory_transport, 1, "extract", "a")
        memory_transport.publish(JOB, StepStart(step_order=1, step_name="retry"))
        assert stream.steps[0].status == StepStatus.SUCCESS
        assert stream.steps[0].step_name == "extract"

    def test_restart_of_running_step_replaces_record(self, memory_transport, make_stream):
        stream = make_stream(memory_transport, protect_terminal_steps=True)
        stream.open()
        memory_transport.publish(JOB, StepStart(step_order=1, step_name="first"))
        memory_transport.publish(JOB, StepStart(step_order=1, step_name="second"))
        assert stream.steps[0].step_name == "second"

    def test_heartbeat_changes_nothing(self, memory_transport, make_stream, callbacks):
        stream = make_stream(memory_transport)
        stream.open()
        memory_transport.publish(JOB, Heartbeat())
        assert stream.steps == []
        assert callbacks["events"] == []

    def test_unknown_frames_ignored(self, memory_transport, make_stream, callbacks):
        stream = make_stream(memory_transport)
        stream.open()
        memory_transport.publish_frame(JOB, "connected", {"message": "hello"})
        assert stream.steps == []
        assert callbacks["errors"] == []

    def test_invalid_payload_dropped(self, memory_transport, make_stream, callbacks):
        stream = make_stream(memory_transport)
        stream.open()
        memory_transport.publish_frame(JOB, "step_start", {"stepName": "no order"})
        assert stream.steps == []
        assert callbacks["errors"] == []
        assert stream.connection_state == ConnectionState.OPEN

    def test_on_event_forwards_step_events(self, memory_transport, make_stream, callbacks):
        stream = make_stream(memory_transport)
        stream.open()
        _run_step(memory_transport, 1, "extract", "a")
        assert [e.kind for e in callbacks["events"]] == ["step_start", "step_log", "step_end"]

    def test_dropped_events_not_forwarded(self, memory_transport, make_stream, callbacks):
        """Orphans and repeated step_end never reach the callback."""
        stream = make_stream(memory_transport)
        stream.open()
        memory_transport.publish(JOB, StepLog(step_order=9, output="orphan"))
        _run_step(memory_transport, 1, "extract", "a")
        memory_transport.publish(JOB, StepEnd(step_order=1, status=StepStatus.FAILED))
        assert [e.kind for e in callbacks["events"]] == ["step_start", "step_log", "step_end"]

    def test_on_event_directly(self, memory_transport, make_stream):
        """Events can be folded without a transport."""
        stream = make_stream(memory_transport)
        stream.on_event(StepStart(step_order=1))
        stream.on_event(StepLog(step_order=1, output="x"))
        assert stream.steps[0].output == "x"


# ------------------------------------------------------------------ #
# Completion, errors and server close
# ------------------------------------------------------------------ #


class TestCompletion:
    def test_complete_sets_flag_calls_back_and_closes(self, memory_transport, make_stream, callbacks):
        stream = make_stream(memory_transport)
        stream.open()
        _run_step(memory_transport)
        memory_transport.publish(JOB, Complete())

        assert stream.is_complete
        assert callbacks["complete"] == 1
        assert stream.connection_state == ConnectionState.CLOSED
        assert memory_transport.subscription_count(JOB) == 0

    def test_complete_is_monotonic(self, memory_transport, make_stream):
        stream = make_stream(memory_transport)
        stream.open()
        memory_transport.publish(JOB, Complete())
        stream.on_event(Heartbeat())
        stream.reconnect()
        memory_transport.publish(JOB, StepStart(step_order=5))
        assert stream.is_complete

    def test_snapshot_summary(self, memory_transport, make_stream):
        stream = make_stream(memory_transport)
        stream.open()
        _run_step(memory_transport, 1)
        _run_step(memory_transport, 2, "load", status=StepStatus.FAILED)
        memory_transport.publish(JOB, Complete())
        snapshot = stream.snapshot()
        assert snapshot.is_complete
        assert snapshot.has_error
        assert not snapshot.all_success


class TestErrors:
    def test_channel_error_closes_and_reports(self, memory_transport, make_stream, callbacks):
        stream = make_stream(memory_transport)
        stream.open()
        error = ChannelError("dropped")
        memory_transport.fail(JOB, error)

        assert callbacks["errors"] == [error]
        assert stream.connection_state == ConnectionState.CLOSED
        assert memory_transport.subscription_count(JOB) == 0

    def test_no_automatic_reconnect(self, memory_transport, make_stream):
        stream = make_stream(memory_transport)
        stream.open()
        memory_transport.fail(JOB, ChannelError("dropped"))
        assert memory_transport.subscribe_calls == 1

    def test_reconnect_after_error(self, memory_transport, make_stream):
        stream = make_stream(memory_transport)
        stream.open()
        _run_step(memory_transport)
        memory_transport.fail(JOB, ChannelError("dropped"))
        stream.reconnect()
        assert stream.connection_state == ConnectionState.OPEN
        assert len(stream.steps) == 1

    def test_protocol_error_keeps_connection(self, memory_transport, make_stream, callbacks):
        stream = make_stream(memory_transport)
        stream.open()
        error = StreamProtocolError("not json")
        memory_transport.fail(JOB, error)
        assert callbacks["errors"] == [error]
        assert stream.connection_state == ConnectionState.OPEN

    def test_server_close(self, memory_transport, make_stream, callbacks):
        stream = make_stream(memory_transport)
        stream.open()
        memory_transport.end_stream(JOB)
        assert stream.connection_state == ConnectionState.CLOSED
        assert not stream.is_complete
        assert callbacks["closed"] == 1
        assert callbacks["errors"] == []


class TestStaleCallbacks:
    def test_events_after_close_ignored(self, memory_transport, make_stream):
        """Callbacks captured before close() cannot reach the session."""
        stream = make_stream(memory_transport)
        stream.open()
        subscription = next(iter(memory_transport._subscriptions.values()))
        stream.close()

        subscription.on_frame("step_start", {"stepOrder": 1})
        subscription.on_open()
        subscription.on_error(ChannelError("late"))

        assert stream.steps == []
        assert stream.connection_state == ConnectionState.CLOSED

    def test_old_subscription_ignored_after_reconnect(self, memory_transport, make_stream):
        stream = make_stream(memory_transport)
        stream.open()
        old = next(iter(memory_transport._subscriptions.values()))
        stream.reconnect()

        old.on_frame("step_start", {"stepOrder": 9})
        old.on_close()

        assert stream.steps == []
        assert stream.connection_state == ConnectionState.OPEN

    def test_old_job_ignored_after_retarget(self, memory_transport, make_stream):
        stream = make_stream(memory_transport)
        stream.open()
        old = next(iter(memory_transport._subscriptions.values()))
        stream.retarget(43)

        old.on_frame("step_start", {"stepOrder": 1})
        assert stream.steps == []

    def test_error_during_subscribe(self, make_stream, callbacks):
        """A transport that fails synchronously leaves nothing subscribed."""

        class FailingTransport:
            def __init__(self):
                self.cancelled = False

            def subscribe(self, job_log_id, *, on_open, on_frame, on_error, on_close):
                on_error(ChannelError("refused"))
                transport = self

                class _Sub:
                    def cancel(self):
                        transport.cancelled = True

                return _Sub()

        transport = FailingTransport()
        stream = make_stream(transport)
        stream.open()
        assert stream.connection_state == ConnectionState.CLOSED
        assert transport.cancelled
        assert len(callbacks["errors"]) == 1
