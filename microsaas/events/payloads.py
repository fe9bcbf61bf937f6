"""Payload registry: event type -> payload codec.

Storage keeps event data as JSON text. Reading it back yields generic JSON
(dicts, lists, scalars); decode_payload turns that into the registered
payload class for the event's type so consumers do not cast at run time.
"""

import dataclasses
import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable
from uuid import UUID

from microsaas.events.models import EmailData, Event
from microsaas.events.topics import EventTypes

__all__ = [
    "PayloadCodec",
    "decode_payload",
    "dumps_payload",
    "loads_payload",
    "register_payload",
    "registered_types",
]


@dataclass(frozen=True)
class PayloadCodec:
    """Converts one payload class to and from its generic JSON form."""

    payload_type: type
    to_json: Callable[[Any], Any]
    from_json: Callable[[Any], Any]


_REGISTRY: dict[str, PayloadCodec] = {}


def register_payload(
    event_type: str,
    payload_type: type,
    to_json: Callable[[Any], Any] | None = None,
    from_json: Callable[[Any], Any] | None = None,
) -> None:
    """Register the payload class of an event type.

    Dataclasses need no converters: fields map to JSON keys one to one.
    """
    if to_json is None:
        to_json = dataclasses.asdict
    if from_json is None:
        from_json = lambda data: payload_type(**data)  # noqa: E731
    _REGISTRY[event_type] = PayloadCodec(payload_type, to_json, from_json)


def registered_types() -> list[str]:
    return sorted(_REGISTRY)


def _encode_default(obj: Any) -> Any:
    """json.dumps hook: payload classes, dataclasses, UUIDs and datetimes. Anything else is an error."""
    for codec in _REGISTRY.values():
        if isinstance(obj, codec.payload_type):
            return codec.to_json(obj)
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        # Shallow, so nested payload classes still go through their codec
        return {f.name: getattr(obj, f.name) for f in dataclasses.fields(obj)}
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def dumps_payload(data: Any) -> str:
    """Serialize event data to JSON text. Raises TypeError/ValueError if not encodable."""
    return json.dumps(data, ensure_ascii=False, default=_encode_default)


def loads_payload(raw: str | bytes) -> Any:
    """Parse stored JSON text into a generic structure. Raises json.JSONDecodeError."""
    return json.loads(raw)


def decode_payload(event: Event) -> Any:
    """Return event.data as the payload class registered for event.type.

    Already typed payloads and unregistered types are returned unchanged.
    """
    codec = _REGISTRY.get(event.type)
    if codec is None or isinstance(event.data, codec.payload_type):
        return event.data
    if not isinstance(event.data, dict):
        raise ValueError(f"{event.type} payload must be an object, got {type(event.data).__name__}")
    return codec.from_json(event.data)


def _email_to_json(data: EmailData) -> dict[str, str]:
    return {"from": data.from_address, "to": data.to, "subject": data.subject, "body": data.body}


def _email_from_json(data: dict[str, Any]) -> EmailData:
    return EmailData(
        from_address=data.get("from", ""),
        to=data.get("to", ""),
        subject=data.get("subject", ""),
        body=data.get("body", ""),
    )


register_payload(EventTypes.EMAIL_SENT, EmailData, _email_to_json, _email_from_json)
