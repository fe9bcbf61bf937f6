"""In-process topic broker: publish -> hand off to every subscription of the topic.

Subscriptions behave like unbuffered channels by default: publish() returns
only after each subscriber has taken the event, so a slow subscriber throttles
every producer of its topic. A positive capacity lets that many events wait
per subscription before publishers block.
"""

import asyncio
import logging
from collections import defaultdict, deque
from typing import AsyncIterator, Callable

from microsaas.events.models import Event

logger = logging.getLogger(__name__)

__all__ = ["Broker", "Subscription", "SubscriptionClosed"]


class SubscriptionClosed(Exception):
    """Receive attempted on a closed subscription."""

    def __init__(self, topic: str) -> None:
        super().__init__(f"subscription to '{topic}' is closed")
        self.topic = topic


class Subscription:
    """Receive endpoint for one consumer of a topic. FIFO per subscription."""

    def __init__(
        self,
        topic: str,
        capacity: int = 0,
        on_close: Callable[["Subscription"], None] | None = None,
    ) -> None:
        self.topic = topic
        self._capacity = capacity
        self._on_close = on_close
        self._buffer: deque[Event] = deque()
        # Publishers waiting for hand-off; future resolves True when taken, False when dropped
        self._senders: deque[tuple[Event, asyncio.Future[bool]]] = deque()
        self._receivers: deque[asyncio.Future[Event]] = deque()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def deliver(self, event: Event) -> bool:
        """Hand the event to this subscription. Returns False if it was dropped (closed)."""
        if self._closed:
            return False
        while self._receivers:
            waiter = self._receivers.popleft()
            if not waiter.done():
                waiter.set_result(event)
                return True
        if len(self._buffer) < self._capacity:
            self._buffer.append(event)
            return True
        accepted: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
        self._senders.append((event, accepted))
        return await accepted

    async def receive(self) -> Event:
        """Wait for the next event. Raises SubscriptionClosed once closed."""
        if self._closed:
            raise SubscriptionClosed(self.topic)
        if self._buffer:
            event = self._buffer.popleft()
            self._refill()
            return event
        while self._senders:
            event, accepted = self._senders.popleft()
            if not accepted.done():
                accepted.set_result(True)
                return event
        waiter: asyncio.Future[Event] = asyncio.get_running_loop().create_future()
        self._receivers.append(waiter)
        try:
            return await waiter
        except asyncio.CancelledError:
            # Cancelled after a publisher already handed the event over
            if waiter.done() and not waiter.cancelled() and waiter.exception() is None:
                self._buffer.appendleft(waiter.result())
            raise

    def _refill(self) -> None:
        while self._senders and len(self._buffer) < self._capacity:
            event, accepted = self._senders.popleft()
            if not accepted.done():
                self._buffer.append(event)
                accepted.set_result(True)

    def close(self) -> None:
        """Close the subscription. Blocked publishers are released, queued events dropped."""
        if self._closed:
            return
        self._closed = True
        self._buffer.clear()
        while self._senders:
            _, accepted = self._senders.popleft()
            if not accepted.done():
                accepted.set_result(False)
        while self._receivers:
            waiter = self._receivers.popleft()
            if not waiter.done():
                waiter.set_exception(SubscriptionClosed(self.topic))
        if self._on_close is not None:
            self._on_close(self)

    async def __aiter__(self) -> AsyncIterator[Event]:
        while True:
            try:
                yield await self.receive()
            except SubscriptionClosed:
                return


class Broker:
    """Topic-based pub/sub. Construct once at startup and pass to producers and consumers."""

    def __init__(self, capacity: int = 0) -> None:
        if capacity < 0:
            raise ValueError(f"capacity must be >= 0, got {capacity}")
        self._capacity = capacity
        self._topics: dict[str, list[Subscription]] = defaultdict(list)

    @property
    def capacity(self) -> int:
        return self._capacity

    def subscribe(self, topic: str) -> Subscription:
        """Register a new subscription. Intended for startup-time wiring."""
        subscription = Subscription(topic, self._capacity, on_close=self._remove)
        self._topics[topic].append(subscription)
        logger.debug("Subscribed to '%s' (%d subscribers)", topic, len(self._topics[topic]))
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.close()

    def _remove(self, subscription: Subscription) -> None:
        subscribers = self._topics.get(subscription.topic)
        if not subscribers:
            return
        try:
            subscribers.remove(subscription)
        except ValueError:
            return
        if not subscribers:
            del self._topics[subscription.topic]

    async def publish(self, event: Event, topic: str) -> int:
        """Deliver event to every current subscriber of topic, one after another.

        Returns the number of subscriptions that took the event. Without
        subscribers the event is dropped and 0 is returned.
        """
        subscribers = list(self._topics.get(topic, ()))
        if not subscribers:
            logger.debug("No subscribers for '%s', dropping event %s (%s)", topic, event.id, event.type)
            return 0
        delivered = 0
        for subscription in subscribers:
            if await subscription.deliver(event):
                delivered += 1
        return delivered

    def subscriber_count(self, topic: str) -> int:
        return len(self._topics.get(topic, ()))

    def close(self) -> None:
        """Close every subscription of every topic."""
        for subscribers in list(self._topics.values()):
            for subscription in list(subscribers):
                subscription.close()
