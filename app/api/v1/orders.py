import logging

from fastapi import APIRouter, Depends, status

from app.api.dependencies import get_pricing_service, get_unit_of_work
from app.core.unit_of_work import UnitOfWork
from app.schemas.order import (
    AddItemRequest,
    AddItemResponse,
    CreateOrderRequest,
    CreateOrderResponse,
    MoneyResponse,
)
from app.schemas.response import SuccessResponse
from app.services.order_service import add_item_to_order, create_order
from app.services.pricing_service import StaticPricingService

router = APIRouter()
log = logging.getLogger("uvicorn")


@router.post("", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_order_endpoint(request_data: CreateOrderRequest, uow: UnitOfWork = Depends(get_unit_of_work)):
    """
    Opens an empty order. The OrderCreated event is written to the outbox in the
    same transaction and delivered later by the dispatcher.
    """
    log.info(f"Creating order with currency: {request_data.currency}")
    result = await create_order(uow, request_data.currency)
    if result.is_err():
        log.error(f"Failed to create order: {result.error.message}")
        # Mapped to a status code by the AppError handler
        raise result.error

    created = result.value
    log.info(f"Order {created.order_id} created successfully.")
    data = CreateOrderResponse(order_id=created.order_id, currency=created.currency).model_dump()
    return SuccessResponse(data=data)


@router.post("/{order_id}/items", response_model=SuccessResponse)
async def add_item_endpoint(
    order_id: str,
    request_data: AddItemRequest,
    uow: UnitOfWork = Depends(get_unit_of_work),
    pricing: StaticPricingService = Depends(get_pricing_service),
):
    """Adds a SKU line priced in the order's currency and returns the new total."""
    log.info(f"Adding item to order {order_id}: SKU={request_data.sku}, quantity={request_data.quantity}")
    result = await add_item_to_order(uow, pricing, order_id, request_data.sku, request_data.quantity)
    if result.is_err():
        log.error(f"Failed to add item to order {order_id}: {result.error.message}")
        raise result.error

    added = result.value
    data = AddItemResponse(
        order_id=added.order_id,
        sku=added.sku,
        quantity=added.quantity,
        unit_price=MoneyResponse(amount=added.unit_price.amount, currency=added.unit_price.currency),
        total=MoneyResponse(amount=added.total.amount, currency=added.total.currency),
    ).model_dump(mode="json")
    return SuccessResponse(data=data)
