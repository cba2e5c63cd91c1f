"""
Session event bus.

Delivery contract:
- Each subscription sees events in publish order, at most once each.
- Listener failures are logged and never reach the publisher or other listeners.
- Sync listeners run inline; coroutine listeners run on a per-subscription
  queue worker so a slow listener only delays itself.
"""

import asyncio
import itertools
import logging
from typing import Any, AsyncIterator, Callable, Coroutine, FrozenSet, Iterable, List, Optional, Union

from .models import WalletEvent, WalletEventType


logger = logging.getLogger(__name__)

SyncListener = Callable[[WalletEvent], None]
AsyncListener = Callable[[WalletEvent], Coroutine[Any, Any, None]]
Listener = Union[SyncListener, AsyncListener]

_STOP = object()


class Subscription:
    """Handle returned by EventBus.subscribe()."""

    def __init__(
        self,
        bus: "EventBus",
        listener: Listener,
        events: Optional[FrozenSet[WalletEventType]] = None,
    ):
        self._bus = bus
        self.listener = listener
        self.events = events
        self.is_async = asyncio.iscoroutinefunction(listener)
        self.active = True

        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None

    def wants(self, event: WalletEvent) -> bool:
        return self.active and (self.events is None or event.type in self.events)

    def deliver(self, event: WalletEvent) -> None:
        if not self.wants(event):
            return

        if not self.is_async:
            try:
                self.listener(event)
            except Exception:
                logger.exception("Event listener %r failed on %s", self.listener, event.type.value)
            return

        if self._queue is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                logger.warning("No running loop; dropping %s for async listener", event.type.value)
                return
            self._queue = asyncio.Queue()
            self._worker = loop.create_task(self._run())
        self._queue.put_nowait(event)

    async def _run(self) -> None:
        assert self._queue is not None
        while True:
            event = await self._queue.get()
            try:
                if event is _STOP:
                    return
                await self.listener(event)
            except Exception:
                logger.exception("Event listener %r failed on %s", self.listener, event.type.value)
            finally:
                self._queue.task_done()

    async def join(self) -> None:
        """Wait until every queued event has been handled."""
        if self._queue is not None:
            await self._queue.join()

    def unsubscribe(self) -> None:
        """Stop delivery. Events already queued are still handled. Idempotent."""
        if not self.active:
            return
        self.active = False
        self._bus._remove(self)
        if self._queue is not None:
            self._queue.put_nowait(_STOP)

    async def aclose(self) -> None:
        self.unsubscribe()
        if self._worker is not None:
            await asyncio.gather(self._worker, return_exceptions=True)


class EventStream:
    """
    Async iterator over published events.

    Usage:
        async with bus.stream() as events:
            async for event in events:
                ...
    """

    def __init__(self, bus: "EventBus", events: Optional[FrozenSet[WalletEventType]] = None):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._subscription = bus.subscribe(self._queue.put_nowait, events)

    def close(self) -> None:
        if self._subscription.active:
            self._subscription.unsubscribe()
            self._queue.put_nowait(_STOP)

    def __aiter__(self) -> AsyncIterator[WalletEvent]:
        return self

    async def __anext__(self) -> WalletEvent:
        event = await self._queue.get()
        if event is _STOP:
            raise StopAsyncIteration
        return event

    async def __aenter__(self) -> "EventStream":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.close()


class EventBus:
    """Fan-out of WalletEvents to subscriptions."""

    def __init__(self):
        self._subscriptions: List[Subscription] = []
        self._sequence = itertools.count(1)

    def subscribe(
        self,
        listener: Listener,
        events: Optional[Iterable[Union[WalletEventType, str]]] = None,
    ) -> Subscription:
        """Register a listener, optionally filtered to some event types."""
        wanted = frozenset(WalletEventType(e) for e in events) if events is not None else None
        subscription = Subscription(self, listener, wanted)
        self._subscriptions.append(subscription)
        return subscription

    def stream(self, events: Optional[Iterable[Union[WalletEventType, str]]] = None) -> EventStream:
        wanted = frozenset(WalletEventType(e) for e in events) if events is not None else None
        return EventStream(self, wanted)

    def publish(self, event_type: WalletEventType, payload: Any = None) -> WalletEvent:
        event = WalletEvent(type=event_type, payload=payload, sequence=next(self._sequence))
        logger.debug("Publishing %s #%d", event_type.value, event.sequence)
        for subscription in list(self._subscriptions):
            subscription.deliver(event)
        return event

    async def join(self) -> None:
        """Wait for every async listener to finish its queued events."""
        for subscription in list(self._subscriptions):
            await subscription.join()

    async def aclose(self) -> None:
        for subscription in list(self._subscriptions):
            await subscription.aclose()

    def _remove(self, subscription: Subscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def __len__(self) -> int:
        return len(self._subscriptions)
