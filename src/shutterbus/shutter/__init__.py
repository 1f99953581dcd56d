"""Shutter actor, its messages and the notification listener."""

from .messages import (
    CloseCommand,
    CommandedStateChanged,
    ConfirmationResult,
    OpenCommand,
    SensorChanged,
    ShutterState,
    ShutterStateSnapshot,
    ShutterTimings,
    StateQuery,
)
from .actor import ShutterActor
from .listener import ShutterNotificationListener
from .client import publish_state_query, query_shutter_state, send_close, send_open

__all__ = [
    "CloseCommand",
    "CommandedStateChanged",
    "ConfirmationResult",
    "OpenCommand",
    "SensorChanged",
    "ShutterState",
    "ShutterStateSnapshot",
    "ShutterTimings",
    "StateQuery",
    "ShutterActor",
    "ShutterNotificationListener",
    "publish_state_query",
    "query_shutter_state",
    "send_close",
    "send_open",
]
