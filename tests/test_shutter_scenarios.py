"""End-to-end command cycles with the default hardware timings."""

from __future__ import annotations

from shutterbus.kernel.types import MessageKind
from shutterbus.shutter import SensorChanged, ShutterActor, ShutterState, ShutterTimings


def test_open_is_confirmed_within_default_timeout(bus):
    actor = ShutterActor("001", bus)
    try:
        outcome = actor.open().result(timeout=5.0)

        assert outcome.confirmed is True
        assert outcome.state is ShutterState.OPEN
        assert 2450 <= outcome.elapsed_ms < 3000
    finally:
        actor.dispose()


def test_slow_feedback_fails_confirmation_but_still_arrives(bus, recorder_factory):
    sensors = recorder_factory()
    bus.subscribe(MessageKind.SENSOR_CHANGED, sensors)
    actor = ShutterActor("001", bus, timings=ShutterTimings(confirm_timeout=1.0))
    try:
        outcome = actor.open().result(timeout=3.0)

        assert outcome.confirmed is False
        assert 1000 <= outcome.elapsed_ms < 2000
        assert actor.state is ShutterState.OPEN

        late = sensors.wait_count(1, timeout=3.0)
        assert late == [SensorChanged(shutter_id="001", actual_state=ShutterState.OPEN)]
    finally:
        actor.dispose()
