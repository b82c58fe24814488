"""
Execution log stream.

Reconstructs the live, step-by-step state of a running job from the event
channel the dashboard API exposes for each execution.

Modules
-------
models      StepStatus, StepRecord, StreamSession, StreamSnapshot, format_duration
events      Typed step events and the frame decoder
session     ExecutionStreamReconstructor (subscription lifecycle + fold)
transports  In-memory and Server-Sent Events channels
"""

from jobmonitor.execution.events import (
    Complete,
    Heartbeat,
    StepEnd,
    StepEvent,
    StepLog,
    StepStart,
    decode_step_event,
    encode_step_event,
)
from jobmonitor.execution.models import (
    ConnectionState,
    StepRecord,
    StepStatus,
    StreamSession,
    StreamSnapshot,
    format_duration,
)
from jobmonitor.execution.session import ExecutionStreamReconstructor
from jobmonitor.execution.transports import StepEventTransport, Subscription
from jobmonitor.execution.transports.memory import InMemoryStepEventTransport
from jobmonitor.execution.transports.sse import SSEStepEventTransport

__all__ = [
    "Complete",
    "ConnectionState",
    "ExecutionStreamReconstructor",
    "Heartbeat",
    "InMemoryStepEventTransport",
    "SSEStepEventTransport",
    "StepEnd",
    "StepEvent",
    "StepEventTransport",
    "StepLog",
    "StepRecord",
    "StepStart",
    "StepStatus",
    "StreamSession",
    "StreamSnapshot",
    "Subscription",
    "decode_step_event",
    "encode_step_event",
    "format_duration",
]
