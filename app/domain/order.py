from typing import Iterable, List, Tuple, Union

from app.domain.events import OrderCreated, OrderLineAdded
from app.domain.values import Money, OrderLine, Quantity, Sku

OrderEvent = Union[OrderCreated, OrderLineAdded]


class Order:
    """
    Order aggregate. Every successful mutation appends to an in-memory event buffer.

    The buffer is never drained automatically: callers clear it with clear_events()
    only after the events were durably written to the outbox.
    """

    def __init__(self, order_id: str, currency: str):
        self._id = order_id
        self._currency = currency
        self._lines: List[OrderLine] = []
        self._total = Money.zero(currency)
        self._events: List[OrderEvent] = []

    @classmethod
    def create(cls, order_id: str, currency: str) -> "Order":
        if not order_id or not str(order_id).strip():
            raise ValueError("Order ID cannot be empty")
        if not currency or not currency.strip():
            raise ValueError("Currency cannot be empty")

        # Money.zero validates the currency format before anything is recorded
        order = cls(order_id, currency)
        order._record(OrderCreated(order_id=order_id, currency=currency))
        return order

    @classmethod
    def rehydrate(cls, order_id: str, currency: str, lines: Iterable[OrderLine]) -> "Order":
        """Rebuilds an order loaded from storage. No events are buffered."""
        order = cls(order_id, currency)
        for line in lines:
            order._lines.append(line)
            order._total = order._total.add(line.subtotal)
        return order

    def add_line(self, sku: Sku, quantity: Quantity, unit_price: Money) -> None:
        if unit_price.currency != self._currency:
            raise ValueError("Unit price currency must match order currency")
        if any(line.sku == sku for line in self._lines):
            raise ValueError("Cannot add duplicate SKU to order")

        line = OrderLine(sku=sku, quantity=quantity, unit_price=unit_price)
        new_total = self._total.add(line.subtotal)

        self._lines.append(line)
        self._total = new_total
        self._record(OrderLineAdded(order_id=self._id, line=line, new_total=new_total))

    @property
    def id(self) -> str:
        return self._id

    @property
    def currency(self) -> str:
        return self._currency

    @property
    def total(self) -> Money:
        return self._total

    @property
    def lines(self) -> Tuple[OrderLine, ...]:
        return tuple(self._lines)

    def get_events(self) -> Tuple[OrderEvent, ...]:
        """Snapshot of buffered events in emission order."""
        return tuple(self._events)

    def clear_events(self) -> None:
        self._events.clear()

    def _record(self, event: OrderEvent) -> None:
        self._events.append(event)
