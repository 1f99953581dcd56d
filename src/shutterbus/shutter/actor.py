"""Shutter actor: a commanded device confirmed by simulated hardware feedback."""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future
from typing import Any, Callable, Dict, List, Optional, Set

from shutterbus.kernel.debug_log import DebugLogWriter
from shutterbus.kernel.eventbus import EventBus, Subscription
from shutterbus.kernel.eventlog import EventLog
from shutterbus.kernel.types import (
    Message,
    MessageKind,
    ShutterBusError,
    WaitTimeoutError,
    message_payload,
)
from shutterbus.shutter.messages import (
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


class ShutterActor:
    """Owns one shutter's state and reacts to commands scoped to its identity.

    Commands apply the new state optimistically, announce it, and race the
    matching ``SensorChanged`` against ``timings.confirm_timeout``. A failed
    confirmation is reported but never rolls the state back.
    """

    def __init__(
        self,
        shutter_id: str,
        bus: EventBus,
        *,
        timings: Optional[ShutterTimings] = None,
        event_log: Optional[EventLog] = None,
        debug_log: Optional[DebugLogWriter] = None,
        initial_state: ShutterState = ShutterState.CLOSED,
    ) -> None:
        self.shutter_id = str(shutter_id)
        self._bus = bus
        self._timings = timings or ShutterTimings()
        self._event_log = event_log
        self._debug_log = debug_log or DebugLogWriter.disabled()
        self._lock = threading.RLock()
        self._state_changed = threading.Condition(self._lock)
        self._state = initial_state
        self._timers: Set[threading.Timer] = set()
        self._latest_confirmation: Optional["Future[ConfirmationResult]"] = None
        self._disposed = False
        self._subscriptions: List[Subscription] = self._start()

    @property
    def name(self) -> str:
        return "Shutter_{0}".format(self.shutter_id)

    @property
    def state(self) -> ShutterState:
        with self._lock:
            return self._state

    @property
    def disposed(self) -> bool:
        with self._lock:
            return self._disposed

    @property
    def latest_confirmation(self) -> Optional["Future[ConfirmationResult]"]:
        with self._lock:
            return self._latest_confirmation

    def snapshot(self) -> ShutterStateSnapshot:
        with self._lock:
            return ShutterStateSnapshot(shutter_id=self.shutter_id, state=self._state)

    def pending_feedback(self) -> int:
        with self._lock:
            return len(self._timers)

    def open(self) -> "Future[ConfirmationResult]":
        return self._command(ShutterState.OPEN)

    def close(self) -> "Future[ConfirmationResult]":
        return self._command(ShutterState.CLOSED)

    def wait_for_state(
        self,
        expected: ShutterState,
        timeout: Optional[float] = None,
        poll_interval: float = 0.5,
    ) -> int:
        """Block until the commanded state equals ``expected``; returns elapsed ms."""
        started = time.monotonic()
        deadline = None if timeout is None else started + timeout
        with self._state_changed:
            while True:
                if self._disposed:
                    raise ShutterBusError("{0} is disposed".format(self.name))
                if self._state is expected:
                    break
                wait_sec = poll_interval
                if deadline is not None:
                    wait_sec = min(wait_sec, deadline - time.monotonic())
                    if wait_sec <= 0:
                        raise WaitTimeoutError(
                            "{0} did not reach {1} within {2}s".format(self.name, expected.value, timeout)
                        )
                if not self._state_changed.wait(timeout=wait_sec):
                    self._log("debug", "wait", "still waiting", {"expected": expected.value})
        elapsed_ms = int((time.monotonic() - started) * 1000)
        self._log("info", "wait", "reached commanded state", {"state": expected.value, "elapsed_ms": elapsed_ms})
        return elapsed_ms

    def dispose(self) -> None:
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
            timers = list(self._timers)
            self._timers.clear()
            self._state_changed.notify_all()
        for subscription in self._subscriptions:
            subscription.cancel()
        for timer in timers:
            timer.cancel()
        self._log("info", "lifecycle", "disposed", {"cancelled_feedback": len(timers)})

    def _start(self) -> List[Subscription]:
        self._handlers: Dict[MessageKind, Callable[[Any], None]] = {
            MessageKind.OPEN_COMMAND: self._handle_open_command,
            MessageKind.CLOSE_COMMAND: self._handle_close_command,
            MessageKind.STATE_QUERY: self._handle_state_query,
            # simulated IO
            MessageKind.COMMANDED_STATE_CHANGED: self._handle_commanded_state_changed,
        }
        # one serial inbox: a query published after a command sees that command applied
        return [self._bus.subscribe_inbox(list(self._handlers), self._dispatch, identity=self.shutter_id)]

    def _dispatch(self, message: Message) -> None:
        self._handlers[message.kind](message)

    def _handle_open_command(self, command: OpenCommand) -> None:
        self._record(type(command).__name__, message_payload(command))
        self.open()

    def _handle_close_command(self, command: CloseCommand) -> None:
        self._record(type(command).__name__, message_payload(command))
        self.close()

    def _handle_state_query(self, query: StateQuery) -> None:
        query.response.fulfill(self.snapshot())

    def _handle_commanded_state_changed(self, notification: CommandedStateChanged) -> None:
        state = notification.state
        delay = self._timings.feedback_delay(state)

        def fire() -> None:
            with self._lock:
                self._timers.discard(timer)
            self._announce(SensorChanged(shutter_id=self.shutter_id, actual_state=state))

        timer = threading.Timer(delay, fire)
        timer.daemon = True
        with self._lock:
            if self._disposed:
                return
            self._timers.add(timer)
            timer.start()
        self._log("debug", "feedback", "sensor feedback scheduled", {"state": state.value, "delay_sec": delay})

    def _command(self, target: ShutterState) -> "Future[ConfirmationResult]":
        started = time.monotonic()
        with self._lock:
            if self._disposed:
                raise ShutterBusError("{0} is disposed".format(self.name))
            self._state = target
            self._state_changed.notify_all()
        self._log("info", "command", "commanded", {"state": target.value})

        result: "Future[ConfirmationResult]" = Future()
        sensor = self._bus.wait_for(
            MessageKind.SENSOR_CHANGED,
            predicate=lambda event: event.actual_state is target,
            timeout=self._timings.confirm_timeout,
            identity=self.shutter_id,
        )
        sensor.add_done_callback(lambda done: self._finish_confirmation(done, target, started, result))
        with self._lock:
            self._latest_confirmation = result
        self._announce(CommandedStateChanged(shutter_id=self.shutter_id, state=target))
        return result

    def _finish_confirmation(
        self,
        sensor: "Future[Any]",
        target: ShutterState,
        started: float,
        result: "Future[ConfirmationResult]",
    ) -> None:
        confirmed = not sensor.cancelled() and sensor.exception() is None
        outcome = ConfirmationResult(
            shutter_id=self.shutter_id,
            state=target,
            confirmed=confirmed,
            elapsed_ms=int((time.monotonic() - started) * 1000),
        )
        data = {"state": target.value, "confirmed": confirmed, "elapsed_ms": outcome.elapsed_ms}
        if confirmed:
            self._log("info", "confirmation", "sensor confirmed", data)
        else:
            self._log("error", "confirmation", "sensor did not confirm commanded state", data)
        command_name = "OpenShutter" if target is ShutterState.OPEN else "CloseShutter"
        self._record(command_name, data)
        result.set_result(outcome)

    def _announce(self, message: Message) -> None:
        self._bus.publish(message)
        self._bus.publish(message, identity=self.shutter_id)

    def _record(self, event_kind: str, payload: Dict[str, Any]) -> None:
        if self._event_log is None:
            return
        try:
            self._event_log.append(self.name, event_kind, payload)
        except Exception as exc:
            self._log("error", "event_log", "event log append failed", {"error": str(exc)})

    def _log(self, level: str, kind: str, message: str, data: Dict[str, Any]) -> None:
        self._debug_log.write_entry(
            level=level,
            component=self.name,
            kind=kind,
            identity=self.shutter_id,
            message=message,
            data=data,
        )
