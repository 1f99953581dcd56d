"""Single-assignment response slot carried by point queries."""

from __future__ import annotations

import threading
from typing import Generic, Optional, TypeVar

from shutterbus.kernel.types import ResponseSlotError, WaitTimeoutError

T = TypeVar("T")


class ResponseSlot(Generic[T]):
    """First-and-only-answer-wins slot.

    Fulfilling twice raises ``ResponseSlotError``; waiters block until the slot
    is set or their own deadline passes.
    """

    def __init__(self) -> None:
        self._condition = threading.Condition(threading.Lock())
        self._value: Optional[T] = None
        self._done = False

    @property
    def done(self) -> bool:
        with self._condition:
            return self._done

    def fulfill(self, value: T) -> None:
        with self._condition:
            if self._done:
                raise ResponseSlotError("response slot already fulfilled")
            self._value = value
            self._done = True
            self._condition.notify_all()

    def wait(self, timeout: Optional[float] = None) -> T:
        with self._condition:
            if not self._condition.wait_for(lambda: self._done, timeout=timeout):
                raise WaitTimeoutError("response slot not fulfilled within {0}s".format(timeout))
            return self._value  # type: ignore[return-value]
