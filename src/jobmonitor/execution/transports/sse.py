"""
Server-Sent Events transport over httpx.

Manifesto:
    Execution step events stream from the dashboard API as
    ``text/event-stream``; the client side should be one streaming GET, a
    line decoder, and nothing else.

Wire format (one frame)::

    event: step_log
    data: {"type":"step_log","jobLogId":42,"stepOrder":1,"output":"rows=10"}

Lines starting with ``:`` are comments (keep-alives) and are skipped.  The
frame name falls back to the payload's ``type`` key, then to ``message``.
Frames with an empty ``data`` are dropped.

The channel runs as an asyncio task, so :meth:`SSEStepEventTransport.subscribe`
must be called from inside a running event loop.

Tags:
    job-monitor, execution, transport, sse, httpx, streaming

Doc-Types:
    api-reference
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field

import httpx

from jobmonitor.core.errors import ChannelError, StreamProtocolError
from jobmonitor.core.logging import get_logger
from jobmonitor.core.settings import JobMonitorSettings, get_settings
from jobmonitor.execution.transports import (
    CloseHandler,
    ErrorHandler,
    FrameHandler,
    OpenHandler,
)

__all__ = ["SSEDecoder", "SSEFrame", "SSEStepEventTransport", "TaskSubscription"]

logger = get_logger(__name__)


@dataclass(frozen=True)
class SSEFrame:
    """One dispatched Server-Sent Event."""

    event: str
    data: str
    id: str | None = None


@dataclass
class SSEDecoder:
    """Incremental line decoder for ``text/event-stream`` bodies."""

    _event: str = ""
    _data: list[str] = field(default_factory=list)
    _id: str | None = None

    def feed(self, line: str) -> SSEFrame | None:
        """Consume one line (without its newline); return a frame on blank lines."""
        line = line.rstrip("\r")
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "event":
            self._event = value
        elif name == "data":
            self._data.append(value)
        elif name == "id":
            self._id = value
        return None

    def _dispatch(self) -> SSEFrame | None:
        if not self._data and not self._event:
            return None
        frame = SSEFrame(event=self._event, data="\n".join(self._data), id=self._id)
        self._event = ""
        self._data = []
        return frame


class TaskSubscription:
    """Subscription backed by the asyncio task that reads the stream."""

    def __init__(self, task: asyncio.Task[None]) -> None:
        self._task = task

    @property
    def task(self) -> asyncio.Task[None]:
        return self._task

    @property
    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> None:
        if not self._task.done():
            self._task.cancel()


class SSEStepEventTransport:
    """Streams step events with ``httpx.AsyncClient.stream``.

    Args:
        settings: Source of the API URL, stream path and token.
            Defaults to :func:`~jobmonitor.core.settings.get_settings`.
        client: Shared client to use.  When omitted, each subscription
            creates and closes its own.
        connect_timeout: Seconds allowed to establish the connection.
            Reads never time out; the server sends heartbeats.
    """

    def __init__(
        self,
        settings: JobMonitorSettings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        connect_timeout: float = 10.0,
    ) -> None:
        self._settings = settings or get_settings()
        self._client = client
        self._timeout = httpx.Timeout(connect_timeout, read=None)

    def subscribe(
        self,
        job_log_id: int,
        *,
        on_open: OpenHandler,
        on_frame: FrameHandler,
        on_error: ErrorHandler,
        on_close: CloseHandler,
    ) -> TaskSubscription:
        loop = asyncio.get_running_loop()
        task = loop.create_task(
            self._run(job_log_id, on_open, on_frame, on_error, on_close),
            name=f"job-log-stream-{job_log_id}",
        )
        return TaskSubscription(task)

    async def _run(
        self,
        job_log_id: int,
        on_open: OpenHandler,
        on_frame: FrameHandler,
        on_error: ErrorHandler,
        on_close: CloseHandler,
    ) -> None:
        url = self._settings.stream_url(job_log_id)
        headers = {
            "Accept": "text/event-stream",
            "Cache-Control": "no-cache",
            **self._settings.auth_headers(),
        }
        client = self._client or httpx.AsyncClient(timeout=self._timeout)
        log = logger.bind(job_log_id=job_log_id, url=url)

        try:
            async with client.stream("GET", url, headers=headers) as response:
                if response.status_code != httpx.codes.OK:
                    log.warning("sse_bad_status", http_status=response.status_code)
                    on_error(
                        ChannelError(
                            f"Stream request failed with HTTP {response.status_code}"
                        ).with_context(
                            job_log_id=job_log_id,
                            url=url,
                            http_status=response.status_code,
                        )
                    )
                    return

                log.debug("sse_connected")
                on_open()
                decoder = SSEDecoder()
                async for line in response.aiter_lines():
                    frame = decoder.feed(line)
                    if frame is not None:
                        self._deliver(job_log_id, frame, on_frame, on_error)

            log.debug("sse_stream_ended")
            on_close()
        except httpx.HTTPError as exc:
            log.warning("sse_connection_failed", error=str(exc))
            on_error(
                ChannelError("Stream connection failed", cause=exc).with_context(
                    job_log_id=job_log_id,
                    url=url,
                )
            )
        except Exception as exc:
            # a subscriber callback raised
            log.exception("sse_handler_failed")
            on_error(
                ChannelError("Stream handler failed", retryable=False, cause=exc).with_context(
                    job_log_id=job_log_id,
                    url=url,
                )
            )
        finally:
            if self._client is None:
                await client.aclose()

    @staticmethod
    def _deliver(
        job_log_id: int,
        frame: SSEFrame,
        on_frame: FrameHandler,
        on_error: ErrorHandler,
    ) -> None:
        if not frame.data:
            return
        try:
            payload = json.loads(frame.data)
        except json.JSONDecodeError as exc:
            on_error(
                StreamProtocolError("Frame data is not valid JSON", cause=exc).with_context(
                    job_log_id=job_log_id,
                    sse_event=frame.event or None,
                )
            )
            return
        if not isinstance(payload, dict):
            on_error(
                StreamProtocolError("Frame data is not a JSON object").with_context(
                    job_log_id=job_log_id,
                    sse_event=frame.event or None,
                )
            )
            return
        kind = frame.event or payload.get("type") or "message"
        on_frame(str(kind), payload)
