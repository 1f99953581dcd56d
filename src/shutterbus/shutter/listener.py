"""Passive listener forwarding shutter notifications to the logs."""

from __future__ import annotations

from typing import List, Optional

from shutterbus.kernel.debug_log import DebugLogWriter
from shutterbus.kernel.eventbus import EventBus, Subscription
from shutterbus.kernel.eventlog import EventLog
from shutterbus.kernel.types import Message, MessageKind, message_payload
from shutterbus.shutter.messages import CommandedStateChanged, SensorChanged


class ShutterNotificationListener:
    """Subscribes to the broadcast notification channels; never writes back to actors."""

    def __init__(
        self,
        bus: EventBus,
        *,
        event_log: Optional[EventLog] = None,
        debug_log: Optional[DebugLogWriter] = None,
    ) -> None:
        self._event_log = event_log
        self._debug_log = debug_log or DebugLogWriter.disabled()
        self._disposed = False
        self._subscriptions: List[Subscription] = [
            bus.subscribe(MessageKind.COMMANDED_STATE_CHANGED, self._handle_commanded_state_changed),
            bus.subscribe(MessageKind.SENSOR_CHANGED, self._handle_sensor_changed),
        ]

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        for subscription in self._subscriptions:
            subscription.cancel()

    def _handle_commanded_state_changed(self, notification: CommandedStateChanged) -> None:
        self._forward(notification, notification.shutter_id)

    def _handle_sensor_changed(self, notification: SensorChanged) -> None:
        self._forward(notification, notification.shutter_id)

    def _forward(self, notification: Message, shutter_id: str) -> None:
        component = "Shutter_{0}".format(shutter_id)
        if self._event_log is not None:
            self._event_log.append(component, type(notification).__name__, message_payload(notification))
        self._debug_log.write_message(notification, component="listener", identity=shutter_id)
