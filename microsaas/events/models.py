"""Event envelope and payload models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

__all__ = ["NIL_USER", "EmailData", "Event"]

NIL_USER = UUID(int=0)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Event:
    """Immutable event passed from producers to every subscriber of a topic.

    data is the payload; its shape depends on type. Payloads read back from
    storage are generic JSON structures, see microsaas.events.payloads.
    """

    type: str
    data: Any = None
    user: UUID = NIL_USER
    id: UUID = field(default_factory=uuid4)
    time: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class EmailData:
    """Payload of an email_sent event."""

    from_address: str
    to: str
    subject: str
    body: str
