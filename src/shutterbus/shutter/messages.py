"""Commands, notifications and queries exchanged with shutter actors."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import ClassVar

from shutterbus.kernel.response import ResponseSlot
from shutterbus.kernel.types import Message, MessageKind


class ShutterState(enum.Enum):
    CLOSED = "Closed"
    OPEN = "Open"


@dataclass(frozen=True)
class OpenCommand(Message):
    kind: ClassVar[MessageKind] = MessageKind.OPEN_COMMAND

    shutter_id: str


@dataclass(frozen=True)
class CloseCommand(Message):
    kind: ClassVar[MessageKind] = MessageKind.CLOSE_COMMAND

    shutter_id: str


@dataclass(frozen=True)
class CommandedStateChanged(Message):
    """The actor applied a commanded state (optimistically, before confirmation)."""

    kind: ClassVar[MessageKind] = MessageKind.COMMANDED_STATE_CHANGED

    shutter_id: str
    state: ShutterState


@dataclass(frozen=True)
class SensorChanged(Message):
    """Hardware feedback reporting the physically observed state."""

    kind: ClassVar[MessageKind] = MessageKind.SENSOR_CHANGED

    shutter_id: str
    actual_state: ShutterState


@dataclass(frozen=True)
class ShutterStateSnapshot:
    shutter_id: str
    state: ShutterState


@dataclass(frozen=True)
class StateQuery(Message):
    """Point query answered by the actor owning ``shutter_id`` through ``response``."""

    kind: ClassVar[MessageKind] = MessageKind.STATE_QUERY

    shutter_id: str
    response: "ResponseSlot[ShutterStateSnapshot]" = field(
        default_factory=ResponseSlot, compare=False, repr=False
    )


@dataclass(frozen=True)
class ConfirmationResult:
    shutter_id: str
    state: ShutterState
    confirmed: bool
    elapsed_ms: int


@dataclass(frozen=True)
class ShutterTimings:
    """Simulated feedback delays and the confirmation deadline, in seconds."""

    open_feedback_delay: float = 2.45
    close_feedback_delay: float = 1.45
    confirm_timeout: float = 3.0

    def feedback_delay(self, state: ShutterState) -> float:
        if state is ShutterState.OPEN:
            return self.open_feedback_delay
        return self.close_feedback_delay
