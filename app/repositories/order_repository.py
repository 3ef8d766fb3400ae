import uuid
from typing import Optional

from tortoise.backends.base.client import BaseDBAsyncClient

from app.domain.order import Order
from app.domain.values import Money, OrderLine, Quantity, Sku
from app.models.order import OrderItemRecord, OrderRecord, OrderStatus


class OrderRepository:
    """Persists the order aggregate. Every statement runs on the connection it was built with."""

    def __init__(self, connection: BaseDBAsyncClient):
        self._conn = connection

    async def next_id(self) -> str:
        return str(uuid.uuid4())

    async def save(self, order: Order) -> None:
        """Upserts the order row and replaces all of its lines."""
        total = order.total
        record = await OrderRecord.get_or_none(id=order.id).using_db(self._conn)

        if record is None:
            await OrderRecord.create(
                id=order.id,
                customer_id=order.id,  # No customer concept yet; the order id stands in
                status=OrderStatus.PENDING,
                total_amount=total.amount,
                currency=total.currency,
                using_db=self._conn,
            )
        else:
            record.total_amount = total.amount
            record.currency = total.currency
            await record.save(update_fields=["total_amount", "currency", "updated_at"], using_db=self._conn)

        await OrderItemRecord.filter(order_id=order.id).using_db(self._conn).delete()
        if order.lines:
            await OrderItemRecord.bulk_create(
                [
                    OrderItemRecord(
                        order_id=order.id,
                        position=position,
                        sku=str(line.sku),
                        quantity=line.quantity.value,
                        unit_price=line.unit_price.amount,
                        line_total=line.subtotal.amount,
                        currency=line.unit_price.currency,
                    )
                    for position, line in enumerate(order.lines)
                ],
                using_db=self._conn,
            )

    async def find_by_id(self, order_id: str) -> Optional[Order]:
        """Rebuilds the aggregate with an empty event buffer, or returns None."""
        try:
            uuid.UUID(str(order_id))
        except ValueError:
            return None

        record = await OrderRecord.get_or_none(id=order_id).using_db(self._conn)
        if record is None:
            return None

        items = await OrderItemRecord.filter(order_id=order_id).using_db(self._conn).order_by("position")
        lines = [
            OrderLine(
                sku=Sku.create(item.sku),
                quantity=Quantity.create(item.quantity),
                unit_price=Money.create(item.unit_price, item.currency),
            )
            for item in items
        ]
        return Order.rehydrate(str(record.id), record.currency, lines)
