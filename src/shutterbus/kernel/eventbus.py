"""In-process event bus with broadcast, scoped and wildcard routing."""

from __future__ import annotations

import queue
import re
import threading
from concurrent.futures import Future, InvalidStateError, ThreadPoolExecutor
from concurrent.futures import wait as futures_wait
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Tuple

from shutterbus.kernel.debug_log import DebugLogWriter
from shutterbus.kernel.types import (
    EventHandler,
    EventPredicate,
    HandlerFault,
    Message,
    MessageKind,
    WaitTimeoutError,
    new_id,
)

DEFAULT_MAX_WORKERS = 8

_CLOSED = object()

IdentityMatcher = Callable[[str], bool]


def compile_identity_pattern(pattern: Optional[str]) -> IdentityMatcher:
    """Compile a glob-style identity pattern where ``*`` matches any run of characters."""
    text = pattern or ""
    if not text or text == "*":
        return lambda identity: True
    if "*" not in text:
        return lambda identity: identity == text
    regex = re.compile(".*".join(re.escape(part) for part in text.split("*")), re.DOTALL)
    return lambda identity: regex.fullmatch(identity) is not None


def matches_wildcard(identity: str, pattern: Optional[str]) -> bool:
    return compile_identity_pattern(pattern)(identity)


class Subscription:
    """Live registration on one or more channels sharing a single inbox.

    With a handler, events are drained serially on the bus worker pool. Without
    one, events queue up and are consumed by iterating or calling ``get``.
    """

    def __init__(
        self,
        bus: "EventBus",
        channels: List["_Channel"],
        kind: MessageKind,
        handler: Optional[EventHandler] = None,
        identity: Optional[str] = None,
        pattern: Optional[str] = None,
    ) -> None:
        self.subscription_id = new_id("sub")
        self.kind = kind
        self.identity = identity
        self.pattern = pattern
        self._bus = bus
        self._channels = list(channels)
        self._handler = handler
        self._inbox: "queue.SimpleQueue[Any]" = queue.SimpleQueue()
        self._lock = threading.Lock()
        self._draining = False
        self._cancelled = False

    @property
    def active(self) -> bool:
        with self._lock:
            return not self._cancelled

    def cancel(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
        for channel in self._channels:
            channel.detach(self)
        self._inbox.put(_CLOSED)

    def get(self, timeout: Optional[float] = None) -> Optional[Any]:
        """Next event in pull mode; ``None`` once cancelled."""
        if self._handler is not None:
            raise RuntimeError("handler subscriptions cannot be polled")
        try:
            item = self._inbox.get(timeout=timeout)
        except queue.Empty:
            raise WaitTimeoutError(
                "no {0} event within {1}s".format(self.kind.value, timeout)
            ) from None
        if item is _CLOSED:
            self._inbox.put(_CLOSED)
            return None
        return item

    def __iter__(self):
        while True:
            item = self.get()
            if item is None:
                return
            yield item

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.cancel()

    def _deliver(self, event: Any) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._inbox.put(event)
            if self._handler is None or self._draining:
                return
            self._draining = True
        if not self._bus._spawn(self._drain):
            with self._lock:
                self._draining = False

    def _drain(self) -> None:
        while True:
            with self._lock:
                if self._cancelled:
                    self._draining = False
                    return
                try:
                    event = self._inbox.get_nowait()
                except queue.Empty:
                    self._draining = False
                    return
            try:
                self._handler(event)  # type: ignore[misc]
            except Exception as exc:
                self._bus._report_fault(self, event, exc)


class _Channel:
    """Subscriber list for one (kind, key) address."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscriptions: List[Subscription] = []

    def attach(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscriptions.append(subscription)

    def detach(self, subscription: Subscription) -> None:
        with self._lock:
            try:
                self._subscriptions.remove(subscription)
            except ValueError:
                return

    def snapshot(self) -> List[Subscription]:
        with self._lock:
            return list(self._subscriptions)


class _WildcardChannel:
    def __init__(self, pattern: str) -> None:
        self.pattern = pattern
        self.matches = compile_identity_pattern(pattern)
        self.channel = _Channel()


class EventBus:
    """Typed pub-sub scoped to one process.

    Channels are created lazily on first publish or subscribe and are never
    removed. ``publish`` only enqueues; it never runs subscriber code.
    """

    def __init__(
        self,
        max_workers: int = DEFAULT_MAX_WORKERS,
        debug_log: Optional[DebugLogWriter] = None,
    ) -> None:
        self._lock = threading.Lock()
        self._broadcast: Dict[MessageKind, _Channel] = {}
        self._scoped: Dict[Tuple[MessageKind, str], _Channel] = {}
        self._wildcards: Dict[MessageKind, List[_WildcardChannel]] = {}
        self._debug_log = debug_log or DebugLogWriter.disabled()
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, int(max_workers)),
            thread_name_prefix="shutterbus",
        )
        self._tasks: Set[Future] = set()
        self._closed = False

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def publish(self, event: Message, identity: Optional[str] = None) -> None:
        kind = event.kind
        if identity is None:
            targets = self._broadcast_channel(kind).snapshot()
        else:
            targets = self._scoped_channel(kind, identity).snapshot()
            with self._lock:
                wildcards = list(self._wildcards.get(kind, ()))
            for wildcard in wildcards:
                if wildcard.matches(identity):
                    targets.extend(wildcard.channel.snapshot())

        for subscription in targets:
            subscription._deliver(event)

    def subscribe(
        self,
        kind: MessageKind,
        handler: Optional[EventHandler] = None,
        identity: Optional[str] = None,
    ) -> Subscription:
        if identity is None:
            channel = self._broadcast_channel(kind)
        else:
            channel = self._scoped_channel(kind, identity)
        subscription = Subscription(self, [channel], kind, handler=handler, identity=identity)
        channel.attach(subscription)
        return subscription

    def subscribe_inbox(
        self,
        kinds: Sequence[MessageKind],
        handler: EventHandler,
        identity: str,
    ) -> Subscription:
        """One serial inbox fed by the scoped channels of several kinds.

        Events published from one thread are handled in publish order even
        across kinds.
        """
        channels = [self._scoped_channel(kind, identity) for kind in kinds]
        subscription = Subscription(self, channels, kinds[0], handler=handler, identity=identity)
        for channel in channels:
            channel.attach(subscription)
        return subscription

    def subscribe_wildcard(
        self,
        kind: MessageKind,
        pattern: str,
        handler: Optional[EventHandler] = None,
    ) -> Subscription:
        wildcard = _WildcardChannel(pattern)
        subscription = Subscription(self, [wildcard.channel], kind, handler=handler, pattern=pattern)
        wildcard.channel.attach(subscription)
        with self._lock:
            self._wildcards.setdefault(kind, []).append(wildcard)
        return subscription

    def wait_for(
        self,
        kind: MessageKind,
        predicate: Optional[EventPredicate] = None,
        timeout: Optional[float] = None,
        identity: Optional[str] = None,
    ) -> "Future[Any]":
        """Future of the next matching event, failing with ``WaitTimeoutError``.

        The ephemeral subscription is registered before this returns; whichever
        of event or timer settles the future first wins and the other is dropped.
        """
        future: "Future[Any]" = Future()
        handles: Dict[str, Any] = {}

        def settle(result: Any = None, error: Optional[BaseException] = None) -> None:
            try:
                if error is not None:
                    future.set_exception(error)
                else:
                    future.set_result(result)
            except InvalidStateError:
                return

        def on_event(event: Any) -> None:
            if future.done():
                return
            if predicate is not None and not predicate(event):
                return
            settle(result=event)

        def on_timeout() -> None:
            if future.done():
                return
            self._debug_log.write_entry(
                level="warn",
                component="bus",
                kind="wait_timeout",
                identity=identity,
                event_kind=kind.value,
                message="wait_for timed out",
                data={"timeout_sec": timeout},
            )
            settle(error=WaitTimeoutError("no matching {0} within {1}s".format(kind.value, timeout)))

        def cleanup(_done: "Future[Any]") -> None:
            subscription = handles.get("subscription")
            if subscription is not None:
                subscription.cancel()
            timer = handles.get("timer")
            if timer is not None:
                timer.cancel()

        handles["subscription"] = self.subscribe(kind, on_event, identity=identity)
        if timeout is not None:
            timer = threading.Timer(max(0.0, float(timeout)), on_timeout)
            timer.daemon = True
            handles["timer"] = timer
            timer.start()
        future.add_done_callback(cleanup)
        return future

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            channels = list(self._broadcast.values()) + list(self._scoped.values())
            for wildcards in self._wildcards.values():
                channels.extend(wildcard.channel for wildcard in wildcards)
        for channel in channels:
            for subscription in channel.snapshot():
                subscription.cancel()
        with self._lock:
            running = list(self._tasks)
        if running:
            futures_wait(running)
            self._debug_log.write_entry(
                level="debug",
                component="bus",
                kind="lifecycle",
                message="waited for running handlers on close",
                data={"tasks": len(running)},
            )
        self._executor.shutdown(wait=True)

    def channel_count(self) -> int:
        with self._lock:
            wildcard_total = sum(len(items) for items in self._wildcards.values())
            return len(self._broadcast) + len(self._scoped) + wildcard_total

    def pending_tasks(self) -> int:
        with self._lock:
            return len(self._tasks)

    def _broadcast_channel(self, kind: MessageKind) -> _Channel:
        with self._lock:
            channel = self._broadcast.get(kind)
            if channel is None:
                channel = _Channel()
                self._broadcast[kind] = channel
            return channel

    def _scoped_channel(self, kind: MessageKind, identity: str) -> _Channel:
        key = (kind, identity)
        with self._lock:
            channel = self._scoped.get(key)
            if channel is None:
                channel = _Channel()
                self._scoped[key] = channel
            return channel

    def _spawn(self, fn: Callable[[], None]) -> bool:
        with self._lock:
            if self._closed:
                return False
            task = self._executor.submit(fn)
            self._tasks.add(task)
        task.add_done_callback(self._forget_task)
        return True

    def _forget_task(self, task: Future) -> None:
        with self._lock:
            self._tasks.discard(task)

    def _report_fault(self, subscription: Subscription, event: Any, exc: Exception) -> None:
        kind = getattr(event, "kind", subscription.kind)
        self._debug_log.write_entry(
            level="error",
            component="bus",
            kind="handler_fault",
            identity=subscription.identity or subscription.pattern,
            event_kind=kind.value,
            message="subscriber handler raised",
            data={
                "subscription_id": subscription.subscription_id,
                "error_type": type(exc).__name__,
                "error": str(exc),
            },
        )
        if kind is MessageKind.HANDLER_FAULT:
            return
        self.publish(
            HandlerFault(
                subscription_id=subscription.subscription_id,
                fault_kind=kind,
                identity=subscription.identity or subscription.pattern,
                error_type=type(exc).__name__,
                error=str(exc),
            )
        )
