"""Runtime container wiring the bus, logs and shutter components."""

from __future__ import annotations

from typing import Dict, List, Optional

from shutterbus.config import Settings
from shutterbus.kernel.debug_log import DebugLogWriter
from shutterbus.kernel.eventbus import EventBus
from shutterbus.kernel.eventlog import EventLog
from shutterbus.kernel.types import HandlerFault, MessageKind
from shutterbus.shutter.actor import ShutterActor
from shutterbus.shutter.listener import ShutterNotificationListener


class Runtime:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.debug_log = DebugLogWriter(
            logs_dir=settings.logs_path,
            enabled=settings.logs_enabled,
            max_file_bytes=settings.logs_max_file_bytes,
            max_files=settings.logs_max_files,
        )
        self.event_log = EventLog(settings.event_log_file)
        self.bus = EventBus(max_workers=settings.max_workers, debug_log=self.debug_log)
        self.shutters: Dict[str, ShutterActor] = {}
        self.listeners: List[ShutterNotificationListener] = []
        self.bus.subscribe(MessageKind.HANDLER_FAULT, self._record_fault)

    def add_shutter(self, shutter_id: str) -> ShutterActor:
        existing = self.shutters.get(shutter_id)
        if existing is not None and not existing.disposed:
            raise ValueError("shutter already registered: {0}".format(shutter_id))
        actor = ShutterActor(
            shutter_id,
            self.bus,
            timings=self.settings.timings,
            event_log=self.event_log,
            debug_log=self.debug_log,
        )
        self.shutters[shutter_id] = actor
        return actor

    def remove_shutter(self, shutter_id: str) -> Optional[ShutterActor]:
        actor = self.shutters.pop(shutter_id, None)
        if actor is not None:
            actor.dispose()
        return actor

    def add_listener(self) -> ShutterNotificationListener:
        listener = ShutterNotificationListener(
            self.bus,
            event_log=self.event_log,
            debug_log=self.debug_log,
        )
        self.listeners.append(listener)
        return listener

    def close(self) -> None:
        for actor in list(self.shutters.values()):
            actor.dispose()
        for listener in self.listeners:
            listener.dispose()
        self.bus.close()
        self.event_log.close()

    def __enter__(self) -> "Runtime":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _record_fault(self, fault: HandlerFault) -> None:
        self.event_log.append(
            "bus",
            "HandlerFault",
            {
                "subscription_id": fault.subscription_id,
                "kind": fault.fault_kind.value,
                "identity": fault.identity,
                "error_type": fault.error_type,
                "error": fault.error,
            },
        )
