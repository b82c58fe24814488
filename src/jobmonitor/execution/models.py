"""Execution-log state: step records, stream sessions and snapshots.

ARCHITECTURE
────────────
::

    StreamSession (one per job log id, owned by one viewer)
      ├── connection_state ─ idle → connecting → open → closed
      ├── is_complete      ─ monotonic; never reverts for this instance
      └── steps            ─ {step_order: StepRecord}, exposed sorted by order

    StepRecord
      ├── created by step_start       (status = running)
      ├── output appended by step_log (newline-joined)
      └── finished by step_end        (status = success | failed)

    StreamSnapshot ─ immutable copy handed to presentation code

Related modules:
    events.py  ─ typed step events folded into a session
    session.py ─ ExecutionStreamReconstructor (subscription lifecycle + fold)
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class StepStatus(str, Enum):
    """Status of one execution step.

    The dashboard API encodes statuses as ``"0"`` (success), ``"1"``
    (failed) and ``"2"`` (running); :meth:`from_wire` accepts those codes
    as well as the names below.
    """

    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STEP_STATUSES

    @classmethod
    def from_wire(cls, value: Any) -> StepStatus:
        """Decode a wire status code or name.

        Raises:
            ValueError: If ``value`` is neither a known code nor a name.
        """
        if isinstance(value, StepStatus):
            return value
        text = str(value).strip().lower()
        if text in WIRE_STATUS_CODES:
            return WIRE_STATUS_CODES[text]
        return cls(text)


TERMINAL_STEP_STATUSES: frozenset[StepStatus] = frozenset({
    StepStatus.SUCCESS,
    StepStatus.FAILED,
})

WIRE_STATUS_CODES: dict[str, StepStatus] = {
    "0": StepStatus.SUCCESS,
    "1": StepStatus.FAILED,
    "2": StepStatus.RUNNING,
}


class ConnectionState(str, Enum):
    """Lifecycle of a session's subscription.

    ::

        IDLE → CONNECTING → OPEN → CLOSED
                   ↑                  │
                   └── open()/reconnect()
    """

    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"

    @property
    def is_active(self) -> bool:
        return self in (ConnectionState.CONNECTING, ConnectionState.OPEN)


@dataclass
class StepRecord:
    """One step of a running job, keyed by ``step_order``."""

    step_order: int
    step_name: str = ""
    step_id: int | None = None
    status: StepStatus = StepStatus.RUNNING
    output: str = ""
    error: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    duration_ms: int | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def append_output(self, text: str) -> None:
        """Append a log chunk, newline-joined with what is already there."""
        self.output = f"{self.output}\n{text}" if self.output else text

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "step_order": self.step_order,
            "step_id": self.step_id,
            "step_name": self.step_name,
            "status": self.status.value,
            "output": self.output,
            "error": self.error,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration_ms": self.duration_ms,
        }


@dataclass
class StreamSession:
    """Live state aggregated for one job execution's step stream."""

    job_log_id: int
    connection_state: ConnectionState = ConnectionState.IDLE
    is_complete: bool = False
    _steps: dict[int, StepRecord] = field(default_factory=dict, repr=False)

    @property
    def steps(self) -> list[StepRecord]:
        """Step records sorted by ``step_order``, whatever the arrival order."""
        return [self._steps[order] for order in sorted(self._steps)]

    @property
    def step_count(self) -> int:
        return len(self._steps)

    def get_step(self, step_order: int) -> StepRecord | None:
        return self._steps.get(step_order)

    def put_step(self, record: StepRecord) -> None:
        self._steps[record.step_order] = record

    def mark_complete(self) -> None:
        self.is_complete = True

    def snapshot(self) -> StreamSnapshot:
        """Immutable view for presentation code."""
        return StreamSnapshot(
            job_log_id=self.job_log_id,
            connection_state=self.connection_state,
            is_complete=self.is_complete,
            steps=tuple(dataclasses.replace(step) for step in self.steps),
        )


@dataclass(frozen=True)
class StreamSnapshot:
    """Copy of a session's state at one point in time."""

    job_log_id: int
    connection_state: ConnectionState
    is_complete: bool
    steps: tuple[StepRecord, ...] = ()

    @property
    def is_connected(self) -> bool:
        return self.connection_state == ConnectionState.OPEN

    @property
    def all_success(self) -> bool:
        """True when there is at least one step and every step succeeded."""
        return bool(self.steps) and all(s.status == StepStatus.SUCCESS for s in self.steps)

    @property
    def has_error(self) -> bool:
        return any(s.status == StepStatus.FAILED for s in self.steps)

    @property
    def active_step(self) -> StepRecord | None:
        """Highest-ordered running step while the execution is in progress."""
        if self.is_complete:
            return None
        running = [s for s in self.steps if s.status == StepStatus.RUNNING]
        return running[-1] if running else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_log_id": self.job_log_id,
            "connection_state": self.connection_state.value,
            "is_complete": self.is_complete,
            "all_success": self.all_success,
            "has_error": self.has_error,
            "steps": [step.to_dict() for step in self.steps],
        }


def format_duration(duration_ms: int | None) -> str:
    """Render a step duration (``850 ms``, ``2.4 s``, ``3m 05s``, ``1h 02m``)."""
    if duration_ms is None or duration_ms < 0:
        return "-"
    if duration_ms < 1000:
        return f"{duration_ms} ms"
    seconds = duration_ms / 1000
    if seconds < 60:
        return f"{seconds:.1f} s"
    minutes, secs = divmod(int(seconds), 60)
    if minutes < 60:
        return f"{minutes}m {secs:02d}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes:02d}m"


__all__ = [
    "TERMINAL_STEP_STATUSES",
    "WIRE_STATUS_CODES",
    "ConnectionState",
    "StepRecord",
    "StepStatus",
    "StreamSession",
    "StreamSnapshot",
    "format_duration",
]
