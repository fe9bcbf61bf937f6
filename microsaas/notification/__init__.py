"""Event-triggered notifications."""

from microsaas.notification.dispatcher import NotificationDispatcher

__all__ = ["NotificationDispatcher"]
