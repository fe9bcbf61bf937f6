"""Generic consume loop: drain one subscription until cancellation."""

import asyncio
import enum
import logging
from typing import Awaitable, Callable

from microsaas.events.broker import Subscription, SubscriptionClosed
from microsaas.events.models import Event

logger = logging.getLogger(__name__)

__all__ = ["ConsumerState", "EventHandler", "TopicConsumer"]

EventHandler = Callable[[Event], Awaitable[None]]


class ConsumerState(str, enum.Enum):
    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"


class TopicConsumer:
    """Runs handler for every event received on subscription.

    A handler failure is logged and affects only that event. Setting the
    cancellation event closes the subscription and ends the loop; events still
    waiting in the subscription are not drained. Stopped is terminal.
    """

    def __init__(self, name: str, subscription: Subscription, handler: EventHandler) -> None:
        self.name = name
        self._subscription = subscription
        self._handler = handler
        self._state = ConsumerState.CREATED
        self._task: asyncio.Task[None] | None = None

    @property
    def state(self) -> ConsumerState:
        return self._state

    @property
    def subscription(self) -> Subscription:
        return self._subscription

    @property
    def task(self) -> asyncio.Task[None] | None:
        return self._task

    def start(self, cancel: asyncio.Event) -> asyncio.Task[None]:
        """Spawn the consume loop as an asyncio Task and return it without waiting."""
        if self._state is not ConsumerState.CREATED:
            raise RuntimeError(f"{self.name} consumer is {self._state.value}, cannot start")
        logger.info("%s service starting...", self.name)
        self._state = ConsumerState.RUNNING
        self._task = asyncio.create_task(self._run(cancel), name=f"{self.name}-consumer")
        return self._task

    async def wait_stopped(self, timeout: float | None = None) -> bool:
        """Wait for the loop to finish. Returns False if it is still running after timeout."""
        if self._task is None:
            return self._state is ConsumerState.STOPPED
        done, _ = await asyncio.wait({self._task}, timeout=timeout)
        return bool(done)

    async def _run(self, cancel: asyncio.Event) -> None:
        cancelled = asyncio.create_task(cancel.wait())
        receive: asyncio.Task[Event] | None = None
        try:
            while True:
                receive = asyncio.create_task(self._subscription.receive())
                done, _ = await asyncio.wait(
                    {receive, cancelled}, return_when=asyncio.FIRST_COMPLETED
                )
                if cancelled in done:
                    if receive.done() and not receive.cancelled() and receive.exception() is None:
                        # Publisher already counted this event as delivered
                        await self._handle(receive.result())
                    else:
                        receive.cancel()
                    break
                try:
                    event = receive.result()
                except SubscriptionClosed:
                    logger.warning("%s subscription closed externally", self.name)
                    break
                await self._handle(event)
        finally:
            cancelled.cancel()
            if receive is not None and not receive.done():
                receive.cancel()
            self._subscription.close()
            self._state = ConsumerState.STOPPED
            logger.info("%s service stopped.", self.name)

    async def _handle(self, event: Event) -> None:
        logger.debug(
            "Received %s event: type=%s time=%s user=%s",
            self.name,
            event.type,
            event.time.isoformat(),
            event.user,
        )
        try:
            await self._handler(event)
        except Exception as e:
            logger.exception("%s handler failed for event %s/%s: %s", self.name, event.type, event.id, e)
