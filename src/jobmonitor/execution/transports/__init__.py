"""Event channel transports for execution step streams.

Why This Package Exists
-----------------------
The reconstructor folds step events into a session; it should not care
whether those events arrive over HTTP Server-Sent Events or are pushed by a
test.  A transport opens a channel for one job log id and reports four
things back through callbacks: the channel opened, a named frame arrived,
the channel failed, the server ended the stream.

Usage::

    transport = SSEStepEventTransport(get_settings())
    subscription = transport.subscribe(
        42,
        on_open=lambda: print("open"),
        on_frame=lambda kind, payload: print(kind, payload),
        on_error=lambda exc: print("error", exc),
        on_close=lambda: print("closed"),
    )
    ...
    subscription.cancel()

After ``cancel()`` a transport should stop delivering; the reconstructor
also discards late callbacks from subscriptions it no longer owns.

Modules
-------
memory      InMemoryStepEventTransport -- synchronous delivery, tests and demos
sse         SSEStepEventTransport -- httpx streaming GET, text/event-stream
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

__all__ = [
    "CloseHandler",
    "ErrorHandler",
    "FrameHandler",
    "OpenHandler",
    "StepEventTransport",
    "Subscription",
]


# ── Callback Types ───────────────────────────────────────────────────────

OpenHandler = Callable[[], None]
FrameHandler = Callable[[str, dict[str, Any]], None]
ErrorHandler = Callable[[Exception], None]
CloseHandler = Callable[[], None]


# ── Protocols ────────────────────────────────────────────────────────────


@runtime_checkable
class Subscription(Protocol):
    """Handle to one open channel."""

    def cancel(self) -> None:
        """Stop delivery and release the channel. Safe to call twice."""
        ...


@runtime_checkable
class StepEventTransport(Protocol):
    """Opens event channels for job executions."""

    def subscribe(
        self,
        job_log_id: int,
        *,
        on_open: OpenHandler,
        on_frame: FrameHandler,
        on_error: ErrorHandler,
        on_close: CloseHandler,
    ) -> Subscription:
        """Open a channel for ``job_log_id``.

        Args:
            job_log_id: Execution whose step events to stream
            on_open: Called once the channel is acknowledged
            on_frame: Called with ``(event_name, payload)`` per frame
            on_error: Called with a :class:`~jobmonitor.core.errors.ChannelError`
                when the channel fails, or a
                :class:`~jobmonitor.core.errors.StreamProtocolError` for a
                frame that is not JSON
            on_close: Called when the server ends the stream

        Returns:
            Subscription whose ``cancel()`` closes the channel
        """
        ...
