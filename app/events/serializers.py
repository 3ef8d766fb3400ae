"""
Explicit outbox serialization for every domain event the service emits.

Each event type is registered with the function that extracts its aggregate id
and the function that lists exactly the fields persisted in the payload. An
event type without an entry cannot be written to the outbox.
"""
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Type
from uuid import UUID

from app.core.errors import EventSerializationError
from app.domain.events import OrderCreated, OrderLineAdded
from app.domain.values import OrderLine


@dataclass(frozen=True)
class EventSerializer:
    aggregate_id: Callable[[Any], Optional[str]]
    payload: Callable[[Any], Dict[str, Any]]


@dataclass(frozen=True)
class SerializedEvent:
    aggregate_id: UUID
    event_type: str
    event_version: int
    payload: Dict[str, Any]


def _line_payload(line: OrderLine) -> Dict[str, Any]:
    return {
        "sku": str(line.sku),
        "quantity": line.quantity.value,
        "unit_price": line.unit_price.to_dict(),
        "subtotal": line.subtotal.to_dict(),
    }


def _order_created_payload(event: OrderCreated) -> Dict[str, Any]:
    return {
        "order_id": event.order_id,
        "currency": event.currency,
        "occurred_on": event.occurred_on.isoformat(),
    }


def _order_line_added_payload(event: OrderLineAdded) -> Dict[str, Any]:
    return {
        "order_id": event.order_id,
        "line": _line_payload(event.line),
        "new_total": event.new_total.to_dict(),
        "occurred_on": event.occurred_on.isoformat(),
    }


_SERIALIZERS: Dict[Type[Any], EventSerializer] = {
    OrderCreated: EventSerializer(
        aggregate_id=lambda event: event.order_id,
        payload=_order_created_payload,
    ),
    OrderLineAdded: EventSerializer(
        aggregate_id=lambda event: event.order_id,
        payload=_order_line_added_payload,
    ),
}


def register_serializer(event_type: Type[Any], serializer: EventSerializer) -> None:
    """Registers outbox serialization for an additional event type."""
    _SERIALIZERS[event_type] = serializer


def serialize_event(event: Any) -> SerializedEvent:
    """Converts one domain event into the values stored in an outbox row."""
    event_name = type(event).__name__
    serializer = _SERIALIZERS.get(type(event))
    if serializer is None:
        raise EventSerializationError(f"No outbox serializer registered for event: {event_name}")

    raw_id = serializer.aggregate_id(event)
    if not raw_id:
        raise EventSerializationError(f"Cannot extract aggregate ID from event: {event_name}")
    try:
        aggregate_id = UUID(str(raw_id))
    except ValueError:
        raise EventSerializationError(f"Invalid aggregate ID {raw_id!r} on event: {event_name}")

    version = getattr(event, "event_version", 1)
    if version <= 0:
        raise EventSerializationError(f"Event version must be positive on event: {event_name}")

    return SerializedEvent(
        aggregate_id=aggregate_id,
        event_type=event_name,
        event_version=version,
        payload=serializer.payload(event),
    )
