"""Core typed contracts shared by the bus, actors, listeners and the event log."""

from __future__ import annotations

import dataclasses
import enum
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Dict, Optional


def now_ms() -> int:
    return int(time.time() * 1000)


def new_id(prefix: str) -> str:
    return "{0}_{1}".format(prefix, uuid.uuid4().hex)


class MessageKind(enum.Enum):
    """Closed set of routable message kinds. Each kind owns its own channels."""

    OPEN_COMMAND = "OpenCommand"
    CLOSE_COMMAND = "CloseCommand"
    COMMANDED_STATE_CHANGED = "CommandedStateChanged"
    SENSOR_CHANGED = "SensorChanged"
    STATE_QUERY = "StateQuery"
    HANDLER_FAULT = "HandlerFault"


class Message:
    """Base for bus messages; concrete messages pin ``kind`` as a class attribute."""

    kind: ClassVar[MessageKind]


EventHandler = Callable[[Any], None]
EventPredicate = Callable[[Any], bool]


class ShutterBusError(RuntimeError):
    """Base error for bus and actor failures."""


class WaitTimeoutError(ShutterBusError, TimeoutError):
    """Raised when no matching event arrives before a wait deadline."""


class ResponseSlotError(ShutterBusError):
    """Raised when a one-shot response slot is assigned twice."""


class QueryTimeoutError(WaitTimeoutError):
    """Raised when a point query is not answered before its deadline."""


@dataclass(frozen=True)
class HandlerFault(Message):
    """Published on the broadcast channel when a subscriber handler raises."""

    kind: ClassVar[MessageKind] = MessageKind.HANDLER_FAULT

    subscription_id: str
    fault_kind: MessageKind
    identity: Optional[str]
    error_type: str
    error: str


def message_payload(message: Any) -> Dict[str, Any]:
    """Flatten a message dataclass into JSON-friendly fields (shallow)."""
    if not dataclasses.is_dataclass(message):
        return {"value": _plain(message)}
    return {item.name: _plain(getattr(message, item.name)) for item in dataclasses.fields(message)}


def _plain(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


@dataclass(frozen=True)
class EventRecord:
    """One persisted event log row."""

    event_id: str
    pid: int
    ts_ms: int
    component: str
    event_kind: str
    payload: Dict[str, Any] = field(default_factory=dict)
