"""Notification dispatcher: evaluate events from the notification topic for follow-up actions."""

import logging
from typing import Awaitable, Callable

from microsaas.events.broker import Subscription
from microsaas.events.consumer import TopicConsumer
from microsaas.events.models import Event
from microsaas.mail.service import Mailer

logger = logging.getLogger(__name__)

NotificationHandler = Callable[[Event], Awaitable[None]]


class NotificationDispatcher(TopicConsumer):
    """Consumer of the notification topic.

    Dispatch is keyed by event type. No notification type is implemented
    yet, so every event resolves to no action.
    """

    def __init__(self, subscription: Subscription, mailer: Mailer) -> None:
        super().__init__("Notification", subscription, self.send)
        self._mailer = mailer
        self._handlers: dict[str, NotificationHandler] = {}

    @property
    def mailer(self) -> Mailer:
        return self._mailer

    async def send(self, event: Event) -> None:
        handler = self._handlers.get(event.type)
        if handler is None:
            return
        await handler(event)
