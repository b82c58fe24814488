"""
Execution stream reconstructor.

Folds the step events of one running job into a :class:`StreamSession` and
owns the session's subscription to the event channel.

Manifesto:
    - **One session per viewer:** state lives with the reconstructor, never in
      a module-level cache
    - **Out-of-order tolerant:** steps are keyed by ``step_order``; orphan
      ``step_end`` events are ignored
    - **No surprise reconnects:** after an error or server close the session
      stays closed until someone calls :meth:`reconnect`
    - **Stale callbacks are dropped:** each subscription carries a token;
      callbacks from a subscription that is no longer current are ignored

Lifecycle::

    stream = ExecutionStreamReconstructor(transport, job_log_id=42,
                                          on_complete=done.set)
    stream.open()            # idle → connecting → (ack) → open
    ...                      # step_start / step_log / step_end fold in
    # complete frame         → is_complete, on_complete(), closed
    stream.reconnect()       # closed → connecting; steps are kept
    stream.retarget(43)      # new, empty session for another execution

Tags:
    job-monitor, execution, streaming, state-machine, sse

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Callable
from functools import partial
from typing import Any, assert_never

from pydantic import ValidationError as PydanticValidationError

from jobmonitor.core.errors import JobMonitorError, StreamProtocolError
from jobmonitor.core.logging import get_logger
from jobmonitor.execution.events import (
    Complete,
    Heartbeat,
    StepEnd,
    StepEvent,
    StepLog,
    StepStart,
    decode_step_event,
)
from jobmonitor.execution.models import (
    ConnectionState,
    StepRecord,
    StepStatus,
    StreamSession,
    StreamSnapshot,
)
from jobmonitor.execution.transports import StepEventTransport, Subscription

__all__ = ["ExecutionStreamReconstructor"]

logger = get_logger(__name__)


class ExecutionStreamReconstructor:
    """Maintain a live :class:`StreamSession` for one job execution.

    Args:
        transport: Opens the event channel.
        job_log_id: Execution to follow.
        on_complete: Called once when the ``complete`` event arrives.
        on_error: Called with channel errors and protocol errors.
        on_event: Called with every step event that changed the session
            (heartbeats and ``complete`` are not forwarded).
        on_closed: Called whenever the session enters ``closed``.
        protect_terminal_steps: Drop ``step_start`` events that would
            restart a step already finished instead of replacing it.
    """

    def __init__(
        self,
        transport: StepEventTransport,
        job_log_id: int,
        *,
        on_complete: Callable[[], None] | None = None,
        on_error: Callable[[Exception], None] | None = None,
        on_event: Callable[[StepEvent], None] | None = None,
        on_closed: Callable[[], None] | None = None,
        protect_terminal_steps: bool = False,
    ) -> None:
        self._transport = transport
        self._on_complete = on_complete
        self._on_error = on_error
        self._on_event = on_event
        self._on_closed = on_closed
        self._protect_terminal_steps = protect_terminal_steps

        self._session = StreamSession(job_log_id=job_log_id)
        self._subscription: Subscription | None = None
        self._token: object | None = None
        self._log = logger.bind(job_log_id=job_log_id)

    # ── Read access ──────────────────────────────────────────────────

    @property
    def session(self) -> StreamSession:
        return self._session

    @property
    def job_log_id(self) -> int:
        return self._session.job_log_id

    @property
    def connection_state(self) -> ConnectionState:
        return self._session.connection_state

    @property
    def is_connected(self) -> bool:
        return self._session.connection_state == ConnectionState.OPEN

    @property
    def is_complete(self) -> bool:
        return self._session.is_complete

    @property
    def steps(self) -> list[StepRecord]:
        return self._session.steps

    def snapshot(self) -> StreamSnapshot:
        return self._session.snapshot()

    # ── Lifecycle ────────────────────────────────────────────────────

    def open(self) -> None:
        """Subscribe to the channel. No-op while connecting or open."""
        if self._session.connection_state.is_active:
            return

        token = object()
        self._token = token
        self._session.connection_state = ConnectionState.CONNECTING
        self._log.info("stream_connecting")

        try:
            subscription = self._transport.subscribe(
                self._session.job_log_id,
                on_open=partial(self._handle_open, token),
                on_frame=partial(self._handle_frame, token),
                on_error=partial(self._handle_error, token),
                on_close=partial(self._handle_close, token),
            )
        except Exception:
            self._token = None
            self._set_closed()
            raise

        if self._token is token:
            self._subscription = subscription
        else:
            # closed while subscribing (synchronous error or complete)
            subscription.cancel()

    def close(self) -> None:
        """Cancel the subscription and enter ``closed``. Idempotent."""
        subscription, self._subscription = self._subscription, None
        self._token = None
        if subscription is not None:
            subscription.cancel()
        self._set_closed()

    def reconnect(self) -> None:
        """Close and open again. Steps and completion are kept."""
        self._log.info("stream_reconnecting")
        self.close()
        self.open()

    def retarget(self, job_log_id: int) -> None:
        """Follow another execution with a fresh, empty session.

        The old subscription is cancelled.  If the old session was
        connecting or open, the new one is opened straight away.
        """
        if job_log_id == self._session.job_log_id:
            return
        was_active = self._session.connection_state.is_active
        self.close()
        self._session = StreamSession(job_log_id=job_log_id)
        self._log = logger.bind(job_log_id=job_log_id)
        self._log.info("stream_retargeted")
        if was_active:
            self.open()

    def __enter__(self) -> ExecutionStreamReconstructor:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _set_closed(self) -> None:
        if self._session.connection_state == ConnectionState.CLOSED:
            return
        self._session.connection_state = ConnectionState.CLOSED
        self._log.info("stream_closed", steps=self._session.step_count)
        if self._on_closed is not None:
            self._on_closed()

    # ── Transport callbacks ──────────────────────────────────────────

    def _handle_open(self, token: object) -> None:
        if token is not self._token:
            return
        if self._session.connection_state == ConnectionState.CONNECTING:
            self._session.connection_state = ConnectionState.OPEN
            self._log.info("stream_opened")

    def _handle_frame(self, token: object, kind: str, payload: dict[str, Any]) -> None:
        if token is not self._token:
            return
        try:
            event = decode_step_event(kind, payload)
        except PydanticValidationError as exc:
            self._log.warning(
                "step_event_invalid",
                kind=kind,
                errors=exc.error_count(),
                detail=exc.errors(include_url=False)[0]["msg"],
            )
            return
        if event is None:
            self._log.debug("step_event_ignored", kind=kind)
            return
        self.on_event(event)

    def _handle_error(self, token: object, error: Exception) -> None:
        if token is not self._token:
            return

        if isinstance(error, StreamProtocolError):
            self._log.warning(
                "stream_frame_unparseable",
                error=error.message,
                context=error.context.to_dict(),
            )
            self._notify_error(error)
            return

        details = error.to_dict() if isinstance(error, JobMonitorError) else {"error": str(error)}
        self._log.warning("stream_error", **details)
        subscription, self._subscription = self._subscription, None
        self._token = None
        if subscription is not None:
            subscription.cancel()
        self._set_closed()
        self._notify_error(error)

    def _handle_close(self, token: object) -> None:
        if token is not self._token:
            return
        self._log.info("stream_ended_by_server", complete=self._session.is_complete)
        self._subscription = None
        self._token = None
        self._set_closed()

    def _notify_error(self, error: Exception) -> None:
        if self._on_error is not None:
            self._on_error(error)

    # ── Fold ─────────────────────────────────────────────────────────

    def on_event(self, event: StepEvent) -> None:
        """Apply one step event to the session.

        Events dropped as orphans or protected restarts are not passed to
        the ``on_event`` callback.
        """
        match event:
            case Heartbeat():
                return
            case Complete():
                self._complete()
                return
            case StepStart():
                applied = self._start_step(event)
            case StepLog():
                applied = self._append_log(event)
            case StepEnd():
                applied = self._end_step(event)
            case _:
                assert_never(event)

        if applied and self._on_event is not None:
            self._on_event(event)

    def _start_step(self, event: StepStart) -> bool:
        existing = self._session.get_step(event.step_order)
        if existing is not None and existing.is_terminal:
            if self._protect_terminal_steps:
                self._log.warning(
                    "step_restart_dropped",
                    step_order=event.step_order,
                    status=existing.status.value,
                )
                return False
            self._log.warning(
                "step_restarted",
                step_order=event.step_order,
                status=existing.status.value,
            )

        self._session.put_step(
            StepRecord(
                step_order=event.step_order,
                step_id=event.step_id,
                step_name=event.step_name,
                status=StepStatus.RUNNING,
                start_time=event.timestamp,
            )
        )
        self._log.debug("step_started", step_order=event.step_order, step_name=event.step_name)
        return True

    def _append_log(self, event: StepLog) -> bool:
        record = self._session.get_step(event.step_order)
        if record is None:
            self._log.debug("step_log_orphaned", step_order=event.step_order)
            return False
        record.append_output(event.output)
        return True

    def _end_step(self, event: StepEnd) -> bool:
        record = self._session.get_step(event.step_order)
        if record is None:
            self._log.debug("step_end_orphaned", step_order=event.step_order)
            return False
        if record.is_terminal:
            self._log.debug("step_end_ignored", step_order=event.step_order)
            return False

        record.status = event.status
        record.error = event.error
        record.end_time = event.timestamp
        record.duration_ms = event.duration_ms
        self._log.debug(
            "step_finished",
            step_order=event.step_order,
            status=event.status.value,
            duration_ms=event.duration_ms,
        )
        return True

    def _complete(self) -> None:
        self._session.mark_complete()
        self._log.info("stream_complete", steps=self._session.step_count)
        if self._on_complete is not None:
            self._on_complete()
        self.close()
