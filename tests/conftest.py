from __future__ import annotations

import threading
import time
from typing import Any, Callable, List, Optional

import pytest

from shutterbus.kernel.eventbus import EventBus
from shutterbus.shutter.messages import ShutterTimings


class Recorder:
    """Thread-safe event sink usable as a bus handler."""

    def __init__(self, delay: float = 0.0) -> None:
        self.events: List[Any] = []
        self.stamps: List[float] = []
        self._delay = delay
        self._condition = threading.Condition()

    def __call__(self, event: Any) -> None:
        if self._delay:
            time.sleep(self._delay)
        with self._condition:
            self.events.append(event)
            self.stamps.append(time.monotonic())
            self._condition.notify_all()

    def wait_count(self, count: int, timeout: float = 2.0) -> List[Any]:
        with self._condition:
            self._condition.wait_for(lambda: len(self.events) >= count, timeout=timeout)
            return list(self.events)

    def wait_match(self, predicate: Callable[[Any], bool], timeout: float = 2.0) -> Optional[Any]:
        with self._condition:
            found = self._condition.wait_for(
                lambda: any(predicate(item) for item in self.events),
                timeout=timeout,
            )
            if not found:
                return None
            return next(item for item in self.events if predicate(item))


@pytest.fixture
def bus():
    instance = EventBus(max_workers=4)
    try:
        yield instance
    finally:
        instance.close()


@pytest.fixture
def recorder_factory():
    return Recorder


@pytest.fixture
def fast_timings() -> ShutterTimings:
    return ShutterTimings(open_feedback_delay=0.3, close_feedback_delay=0.15, confirm_timeout=0.6)
