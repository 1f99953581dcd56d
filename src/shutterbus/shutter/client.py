"""Publisher-side helpers for talking to shutters through the bus."""

from __future__ import annotations

from typing import Optional

from shutterbus.kernel.eventbus import EventBus
from shutterbus.kernel.types import QueryTimeoutError, WaitTimeoutError
from shutterbus.shutter.messages import (
    CloseCommand,
    OpenCommand,
    ShutterStateSnapshot,
    StateQuery,
)


def send_open(bus: EventBus, shutter_id: str) -> None:
    bus.publish(OpenCommand(shutter_id=shutter_id), identity=shutter_id)


def send_close(bus: EventBus, shutter_id: str) -> None:
    bus.publish(CloseCommand(shutter_id=shutter_id), identity=shutter_id)


def publish_state_query(bus: EventBus, shutter_id: str) -> StateQuery:
    """Publish a query and hand back the pending slot; it stays unfulfilled for unknown ids."""
    query = StateQuery(shutter_id=shutter_id)
    bus.publish(query, identity=shutter_id)
    return query


def query_shutter_state(
    bus: EventBus,
    shutter_id: str,
    timeout: Optional[float] = None,
) -> ShutterStateSnapshot:
    query = publish_state_query(bus, shutter_id)
    try:
        return query.response.wait(timeout=timeout)
    except WaitTimeoutError:
        raise QueryTimeoutError(
            "no shutter answered state query for {0} within {1}s".format(shutter_id, timeout)
        ) from None
