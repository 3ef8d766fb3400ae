from decimal import Decimal

from pydantic import BaseModel


class CreateOrderRequest(BaseModel):
    """Request body for opening a new order."""
    currency: str


class AddItemRequest(BaseModel):
    """Request body for adding one SKU line to an order."""
    sku: str
    quantity: int


class MoneyResponse(BaseModel):
    amount: Decimal
    currency: str


class CreateOrderResponse(BaseModel):
    """Response schema for a newly created order (201 Created)."""
    order_id: str
    currency: str


class AddItemResponse(BaseModel):
    """Response schema after a line was added, with the new order total."""
    order_id: str
    sku: str
    quantity: int
    unit_price: MoneyResponse
    total: MoneyResponse
