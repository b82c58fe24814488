"""
In-memory step event transport.

Manifesto:
    Test suites and demos need a channel that delivers step events
    immediately, in order, without a server.

Frames are delivered synchronously to every live subscription for the job
log id.  By default a subscription is acknowledged as soon as it is made;
pass ``auto_open=False`` to drive the handshake by hand with
:meth:`InMemoryStepEventTransport.acknowledge`.

Tags:
    job-monitor, execution, transport, in-memory, testing

Doc-Types:
    api-reference
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any

from jobmonitor.execution.events import StepEvent, encode_step_event
from jobmonitor.execution.transports import (
    CloseHandler,
    ErrorHandler,
    FrameHandler,
    OpenHandler,
)

__all__ = ["InMemoryStepEventTransport", "MemorySubscription"]


@dataclass
class MemorySubscription:
    """Subscription record; ``cancel()`` detaches it from the transport."""

    id: str
    job_log_id: int
    on_open: OpenHandler
    on_frame: FrameHandler
    on_error: ErrorHandler
    on_close: CloseHandler
    active: bool = True

    def cancel(self) -> None:
        self.active = False


class InMemoryStepEventTransport:
    """In-process transport for tests and single-process demos.

    Example::

        transport = InMemoryStepEventTransport()
        stream = ExecutionStreamReconstructor(transport, 42)
        stream.open()
        transport.publish(42, StepStart(step_order=1, step_name="extract"))
        transport.publish(42, Complete())
        assert stream.is_complete
    """

    def __init__(self, *, auto_open: bool = True) -> None:
        self._subscriptions: dict[str, MemorySubscription] = {}
        self._auto_open = auto_open
        self.subscribe_calls = 0

    def subscribe(
        self,
        job_log_id: int,
        *,
        on_open: OpenHandler,
        on_frame: FrameHandler,
        on_error: ErrorHandler,
        on_close: CloseHandler,
    ) -> MemorySubscription:
        sub = MemorySubscription(
            id=f"sub_{uuid.uuid4().hex[:12]}",
            job_log_id=job_log_id,
            on_open=on_open,
            on_frame=on_frame,
            on_error=on_error,
            on_close=on_close,
        )
        self._subscriptions[sub.id] = sub
        self.subscribe_calls += 1
        if self._auto_open:
            sub.on_open()
        return sub

    def _live(self, job_log_id: int) -> list[MemorySubscription]:
        self._subscriptions = {k: s for k, s in self._subscriptions.items() if s.active}
        return [s for s in self._subscriptions.values() if s.job_log_id == job_log_id]

    def acknowledge(self, job_log_id: int) -> None:
        """Report the channel open to every subscriber of ``job_log_id``."""
        for sub in self._live(job_log_id):
            sub.on_open()

    def publish(self, job_log_id: int, event: StepEvent) -> None:
        """Deliver ``event`` encoded exactly as the server would send it."""
        kind, payload = encode_step_event(event)
        self.publish_frame(job_log_id, kind, payload)

    def publish_frame(self, job_log_id: int, kind: str, payload: dict[str, Any]) -> None:
        """Deliver a raw named frame."""
        for sub in self._live(job_log_id):
            if sub.active:
                sub.on_frame(kind, dict(payload))

    def fail(self, job_log_id: int, error: Exception) -> None:
        """Report a channel failure to every subscriber of ``job_log_id``."""
        for sub in self._live(job_log_id):
            if sub.active:
                sub.on_error(error)

    def end_stream(self, job_log_id: int) -> None:
        """Simulate the server closing the stream."""
        for sub in self._live(job_log_id):
            if sub.active:
                sub.active = False
                sub.on_close()

    def subscription_count(self, job_log_id: int | None = None) -> int:
        """Number of live subscriptions, optionally for one job log id."""
        live = [s for s in self._subscriptions.values() if s.active]
        if job_log_id is not None:
            live = [s for s in live if s.job_log_id == job_log_id]
        return len(live)
