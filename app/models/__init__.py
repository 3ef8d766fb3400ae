# app/models/__init__.py
from .order import OrderItemRecord, OrderRecord, OrderStatus
from .outbox import OutboxEvent

# Export all models
__all__ = [
    "OrderItemRecord",
    "OrderRecord",
    "OrderStatus",
    "OutboxEvent",
]
