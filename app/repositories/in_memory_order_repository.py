import uuid
from typing import Dict, Optional, Tuple

from app.domain.order import Order
from app.domain.values import OrderLine

OrderSnapshot = Tuple[str, Tuple[OrderLine, ...]]


class InMemoryOrderRepository:
    """
    Dictionary-backed stand-in for OrderRepository, used when the service runs
    without PostgreSQL. Writes are staged until the owning unit of work commits.
    """

    def __init__(self, committed: Dict[str, OrderSnapshot]):
        self._committed = committed
        self.staged: Dict[str, OrderSnapshot] = {}

    async def next_id(self) -> str:
        return str(uuid.uuid4())

    async def save(self, order: Order) -> None:
        # Snapshot, so later mutations of the aggregate are not visible until saved again
        self.staged[order.id] = (order.currency, tuple(order.lines))

    async def find_by_id(self, order_id: str) -> Optional[Order]:
        snapshot = self.staged.get(order_id) or self._committed.get(order_id)
        if snapshot is None:
            return None
        currency, lines = snapshot
        return Order.rehydrate(order_id, currency, lines)
