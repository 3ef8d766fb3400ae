import logging
import re
from dataclasses import dataclass
from typing import Any

from app.core.errors import AppError, NotFoundError, ValidationError
from app.core.result import Err, Ok, Result
from app.core.unit_of_work import UnitOfWork, UnitOfWorkContext
from app.domain.order import Order
from app.domain.values import Money, Quantity, Sku
from app.services.pricing_service import StaticPricingService

log = logging.getLogger(__name__)

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


@dataclass(frozen=True)
class CreateOrderResult:
    order_id: str
    currency: str


@dataclass(frozen=True)
class AddItemResult:
    order_id: str
    sku: str
    quantity: int
    unit_price: Money
    total: Money


async def _persist(ctx: UnitOfWorkContext, order: Order) -> Result[Any, AppError]:
    """Saves the aggregate and appends its buffered events on the same transaction."""
    await ctx.orders.save(order)
    return await ctx.outbox.publish(order.get_events())


async def create_order(uow: UnitOfWork, currency: str) -> Result[CreateOrderResult, AppError]:
    """
    FAST PATH: creates an empty order and its OrderCreated outbox row atomically.
    Delivery of the event is left to the outbox dispatcher.
    """
    if not currency or not _CURRENCY_RE.match(currency):
        return Err(ValidationError("Invalid currency format"))

    async def work(ctx: UnitOfWorkContext):
        order_id = await ctx.orders.next_id()
        try:
            order = Order.create(order_id, currency)
        except ValueError as e:
            return Err(ValidationError(str(e)))

        published = await _persist(ctx, order)
        if published.is_err():
            return published
        return order

    result = await uow.run(work)
    if result.is_err():
        return result

    order: Order = result.value
    # Events are durable only now that the transaction committed
    order.clear_events()
    log.info(f"Order {order.id} created in {order.currency}")
    return Ok(CreateOrderResult(order_id=order.id, currency=order.currency))


async def add_item_to_order(
    uow: UnitOfWork,
    pricing: StaticPricingService,
    order_id: str,
    sku: str,
    quantity: int,
) -> Result[AddItemResult, AppError]:
    """Prices the SKU in the order's currency, adds the line and records OrderLineAdded."""
    try:
        sku_value = Sku.create(sku)
        quantity_value = Quantity.create(quantity)
    except ValueError as e:
        return Err(ValidationError(str(e)))

    async def work(ctx: UnitOfWorkContext):
        order = await ctx.orders.find_by_id(order_id)
        if order is None:
            return Err(NotFoundError(f"Order {order_id} not found"))

        price = await pricing.get_current_price(sku_value, order.currency)
        if price.is_err():
            return price

        try:
            order.add_line(sku_value, quantity_value, price.value)
        except ValueError as e:
            return Err(ValidationError(str(e)))

        published = await _persist(ctx, order)
        if published.is_err():
            return published
        return order, price.value

    result = await uow.run(work)
    if result.is_err():
        return result

    order, unit_price = result.value
    order.clear_events()
    log.info(f"Added {quantity_value.value} x {sku_value} to order {order.id}, total {order.total.amount}")
    return Ok(
        AddItemResult(
            order_id=order.id,
            sku=str(sku_value),
            quantity=quantity_value.value,
            unit_price=unit_price,
            total=order.total,
        )
    )
