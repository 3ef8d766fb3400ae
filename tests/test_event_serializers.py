import uuid
from dataclasses import dataclass
from typing import ClassVar

import pytest

from app.core.errors import EventSerializationError
from app.domain.events import OrderCreated, OrderLineAdded
from app.domain.values import Money, OrderLine, Quantity, Sku
from app.events.serializers import EventSerializer, register_serializer, serialize_event


@dataclass(frozen=True)
class UnregisteredEvent:
    order_id: str


@dataclass(frozen=True)
class ZeroVersionEvent:
    event_version: ClassVar[int] = 0
    order_id: str


def test_order_created_payload():
    order_id = str(uuid.uuid4())
    serialized = serialize_event(OrderCreated(order_id=order_id, currency="EUR"))

    assert serialized.aggregate_id == uuid.UUID(order_id)
    assert serialized.event_type == "OrderCreated"
    assert serialized.event_version == 1
    assert set(serialized.payload) == {"order_id", "currency", "occurred_on"}
    assert serialized.payload["currency"] == "EUR"


def test_order_line_added_payload():
    line = OrderLine(Sku.create("BOOK001"), Quantity.create(2), Money.create("29.99", "EUR"))
    event = OrderLineAdded(order_id=str(uuid.uuid4()), line=line, new_total=Money.create("59.98", "EUR"))

    payload = serialize_event(event).payload

    assert payload["line"] == {
        "sku": "BOOK001",
        "quantity": 2,
        "unit_price": {"amount": 29.99, "currency": "EUR"},
        "subtotal": {"amount": 59.98, "currency": "EUR"},
    }
    assert payload["new_total"] == {"amount": 59.98, "currency": "EUR"}


def test_unregistered_event_is_rejected():
    with pytest.raises(EventSerializationError, match="UnregisteredEvent"):
        serialize_event(UnregisteredEvent(order_id=str(uuid.uuid4())))


@pytest.mark.parametrize("order_id", ["", "not-a-uuid"])
def test_missing_or_invalid_aggregate_id_is_rejected(order_id):
    with pytest.raises(EventSerializationError):
        serialize_event(OrderCreated(order_id=order_id, currency="EUR"))


def test_registered_event_must_have_positive_version():
    register_serializer(
        ZeroVersionEvent,
        EventSerializer(aggregate_id=lambda e: e.order_id, payload=lambda e: {"order_id": e.order_id}),
    )
    with pytest.raises(EventSerializationError, match="version"):
        serialize_event(ZeroVersionEvent(order_id=str(uuid.uuid4())))
