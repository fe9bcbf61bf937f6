"""Topic names and event types known to the pipeline."""


class Topics:
    """Logical event streams. Subscribers are wired once at startup."""

    # Every event here is persisted by the history writer
    HISTORY = "history"

    # Evaluated by the notification dispatcher for follow-up actions
    NOTIFICATION = "notification"


class EventTypes:
    """Event type tags. Open-ended: producers may add their own."""

    EMAIL_SENT = "email_sent"
