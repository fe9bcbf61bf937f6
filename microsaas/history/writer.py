"""History writer: persist every event published to the history topic."""

import logging

from microsaas.events.broker import Subscription
from microsaas.events.consumer import TopicConsumer
from microsaas.events.models import Event
from microsaas.history.storer import HistoryStorer

logger = logging.getLogger(__name__)


class HistoryWriter(TopicConsumer):
    """Consumer of the history topic. A failed store loses that event, not the loop."""

    def __init__(self, subscription: Subscription, storer: HistoryStorer) -> None:
        super().__init__("History", subscription, self.store)
        self._storer = storer

    async def store(self, event: Event) -> None:
        try:
            await self._storer.store(event)
        except Exception as e:
            logger.error("Failed to store history event %s (%s): %s", event.id, event.type, e)
