from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import ClassVar

from app.domain.values import Money, OrderLine


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class OrderCreated:
    """Emitted once when an order aggregate is created."""

    event_version: ClassVar[int] = 1

    order_id: str
    currency: str
    occurred_on: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class OrderLineAdded:
    """Emitted for every accepted line. Carries the order total after the line was added."""

    event_version: ClassVar[int] = 1

    order_id: str
    line: OrderLine
    new_total: Money
    occurred_on: datetime = field(default_factory=_utcnow)
