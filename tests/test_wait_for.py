from __future__ import annotations

import threading
import time

import pytest

from shutterbus.kernel.types import MessageKind, WaitTimeoutError
from shutterbus.shutter.messages import SensorChanged, ShutterState


def _publish_later(bus, delay, event, identity=None):
    timer = threading.Timer(delay, bus.publish, args=(event,), kwargs={"identity": identity})
    timer.daemon = True
    timer.start()
    return timer


def test_wait_for_resolves_before_timeout(bus):
    started = time.monotonic()
    pending = bus.wait_for(MessageKind.SENSOR_CHANGED, timeout=1.0)
    _publish_later(bus, 0.2, SensorChanged(shutter_id="001", actual_state=ShutterState.OPEN))

    event = pending.result(timeout=2.0)
    elapsed = time.monotonic() - started

    assert event == SensorChanged(shutter_id="001", actual_state=ShutterState.OPEN)
    assert 0.2 <= elapsed < 1.0


def test_wait_for_times_out_when_event_is_late(bus, recorder_factory):
    late = recorder_factory()
    bus.subscribe(MessageKind.SENSOR_CHANGED, late)

    started = time.monotonic()
    pending = bus.wait_for(MessageKind.SENSOR_CHANGED, timeout=0.2)
    _publish_later(bus, 0.5, SensorChanged(shutter_id="001", actual_state=ShutterState.OPEN))

    with pytest.raises(WaitTimeoutError):
        pending.result(timeout=2.0)
    assert time.monotonic() - started < 0.5

    # the late event still reaches ordinary subscribers
    assert len(late.wait_count(1, timeout=2.0)) == 1


def test_wait_for_skips_events_failing_predicate(bus):
    pending = bus.wait_for(
        MessageKind.SENSOR_CHANGED,
        predicate=lambda event: event.actual_state is ShutterState.CLOSED,
        timeout=1.0,
    )
    bus.publish(SensorChanged(shutter_id="001", actual_state=ShutterState.OPEN))
    bus.publish(SensorChanged(shutter_id="001", actual_state=ShutterState.CLOSED))

    assert pending.result(timeout=2.0).actual_state is ShutterState.CLOSED


def test_wait_for_scoped_identity(bus):
    pending = bus.wait_for(MessageKind.SENSOR_CHANGED, timeout=1.0, identity="002")
    bus.publish(SensorChanged(shutter_id="001", actual_state=ShutterState.OPEN), identity="001")
    bus.publish(SensorChanged(shutter_id="002", actual_state=ShutterState.OPEN), identity="002")

    assert pending.result(timeout=2.0).shutter_id == "002"


def test_wait_for_ignores_events_published_before_the_call(bus):
    bus.publish(SensorChanged(shutter_id="001", actual_state=ShutterState.OPEN))
    pending = bus.wait_for(MessageKind.SENSOR_CHANGED, timeout=0.2)

    with pytest.raises(WaitTimeoutError):
        pending.result(timeout=2.0)


def test_wait_for_releases_its_subscription(bus):
    pending = bus.wait_for(MessageKind.SENSOR_CHANGED, timeout=0.1)
    with pytest.raises(WaitTimeoutError):
        pending.result(timeout=2.0)

    # a later publish finds no live subscriber and the future keeps its first outcome
    bus.publish(SensorChanged(shutter_id="001", actual_state=ShutterState.OPEN))
    time.sleep(0.05)
    assert isinstance(pending.exception(), WaitTimeoutError)


def test_wait_for_without_timeout_waits_for_event(bus):
    pending = bus.wait_for(MessageKind.SENSOR_CHANGED)
    assert pending.done() is False

    bus.publish(SensorChanged(shutter_id="001", actual_state=ShutterState.CLOSED))

    assert pending.result(timeout=2.0).actual_state is ShutterState.CLOSED


def test_cancelling_the_future_stops_waiting(bus):
    pending = bus.wait_for(MessageKind.SENSOR_CHANGED, timeout=5.0)
    assert pending.cancel() is True

    bus.publish(SensorChanged(shutter_id="001", actual_state=ShutterState.CLOSED))
    time.sleep(0.05)
    assert pending.cancelled() is True
