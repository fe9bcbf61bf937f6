"""Event pipeline: immutable envelopes, topic broker and consume loops."""

from microsaas.events.broker import Broker, Subscription, SubscriptionClosed
from microsaas.events.consumer import ConsumerState, TopicConsumer
from microsaas.events.models import NIL_USER, EmailData, Event
from microsaas.events.topics import EventTypes, Topics

__all__ = [
    "NIL_USER",
    "Broker",
    "ConsumerState",
    "EmailData",
    "Event",
    "EventTypes",
    "Subscription",
    "SubscriptionClosed",
    "TopicConsumer",
    "Topics",
]
