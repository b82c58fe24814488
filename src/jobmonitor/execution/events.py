"""Typed step events received on an execution's event channel.

Frames on the channel are named (``event: step_start``) and carry a JSON
object with camelCase keys.  ``decode_step_event`` turns one frame into a
member of the :data:`StepEvent` union; folding those events into a
session is the reconstructor's job.

Wire payload keys::

    {
      "type": "step_end",
      "jobLogId": 42,
      "stepId": 7,
      "stepOrder": 2,
      "stepName": "load",
      "status": "0",            # "0" success, "1" failed, "2" running
      "output": "...",
      "error": "...",
      "timestamp": "2024-05-01T10:00:03+00:00",
      "data": {"durationMs": 1500}
    }

Unknown frame names (the server greets with ``connected``) decode to
``None``; payloads that fail validation raise :class:`pydantic.ValidationError`.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from jobmonitor.execution.models import StepStatus


class _WireEvent(BaseModel):
    """Fields every frame may carry."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    job_log_id: int | None = None
    timestamp: datetime | None = None


class StepStart(_WireEvent):
    """A step began running."""

    kind: Literal["step_start"] = "step_start"
    step_order: int
    step_id: int | None = None
    step_name: str = ""


class StepLog(_WireEvent):
    """A chunk of output from a running step."""

    kind: Literal["step_log"] = "step_log"
    step_order: int
    output: str = ""

    @field_validator("output", mode="before")
    @classmethod
    def _none_is_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class StepEnd(_WireEvent):
    """A step finished with a terminal status."""

    kind: Literal["step_end"] = "step_end"
    step_order: int
    status: StepStatus
    error: str | None = None
    duration_ms: int | None = Field(default=None, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _lift_duration(cls, data: Any) -> Any:
        """Move ``data.durationMs`` up to a top-level ``durationMs``."""
        if isinstance(data, Mapping):
            extra = data.get("data")
            if isinstance(extra, Mapping) and "durationMs" in extra and "durationMs" not in data:
                data = {**data, "durationMs": extra["durationMs"]}
        return data

    @field_validator("status", mode="before")
    @classmethod
    def _decode_status(cls, value: Any) -> StepStatus:
        status = StepStatus.from_wire(value)
        if not status.is_terminal:
            raise ValueError(f"step_end status must be success or failed, got {value!r}")
        return status

    @field_validator("error", mode="before")
    @classmethod
    def _blank_error_is_none(cls, value: Any) -> Any:
        return None if value == "" else value


class Complete(_WireEvent):
    """The execution finished; no more step events follow."""

    kind: Literal["complete"] = "complete"


class Heartbeat(_WireEvent):
    """Keep-alive; carries no state."""

    kind: Literal["heartbeat"] = "heartbeat"


StepEvent: TypeAlias = StepStart | StepLog | StepEnd | Complete | Heartbeat

EVENT_TYPES: dict[str, type[_WireEvent]] = {
    "step_start": StepStart,
    "step_log": StepLog,
    "step_end": StepEnd,
    "complete": Complete,
    "heartbeat": Heartbeat,
}


def decode_step_event(kind: str, payload: Mapping[str, Any]) -> StepEvent | None:
    """Validate one frame's payload as the event named ``kind``.

    Returns:
        The typed event, or ``None`` when ``kind`` is not a step event.

    Raises:
        pydantic.ValidationError: If the payload does not fit the event.
    """
    model = EVENT_TYPES.get(kind)
    if model is None:
        return None
    return model.model_validate(payload)  # type: ignore[return-value]


def encode_step_event(event: StepEvent) -> tuple[str, dict[str, Any]]:
    """Frame name and camelCase payload for ``event``, as the server sends it."""
    payload = event.model_dump(mode="json", by_alias=True, exclude_none=True, exclude={"kind"})
    if isinstance(event, StepEnd):
        payload["status"] = event.status.value
        duration = payload.pop("durationMs", None)
        if duration is not None:
            payload["data"] = {"durationMs": duration}
    payload["type"] = event.kind
    return event.kind, payload


__all__ = [
    "EVENT_TYPES",
    "Complete",
    "Heartbeat",
    "StepEnd",
    "StepEvent",
    "StepLog",
    "StepStart",
    "decode_step_event",
    "encode_step_event",
]
