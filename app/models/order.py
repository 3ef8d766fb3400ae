from enum import Enum
from tortoise import fields, models
import uuid


class OrderStatus(str, Enum):
    PENDING = "PENDING"  # Initial state, lines can still be added
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"


class OrderRecord(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    customer_id = fields.CharField(max_length=255)
    status = fields.CharEnumField(OrderStatus, default=OrderStatus.PENDING)
    total_amount = fields.DecimalField(max_digits=12, decimal_places=2, default=0)
    currency = fields.CharField(max_length=3)
    created_at = fields.DatetimeField(auto_now_add=True)
    updated_at = fields.DatetimeField(auto_now=True)

    class Meta:
        table = "orders"
        indexes = [
            ("customer_id",),
            ("status",),
            ("created_at",),
            ("updated_at",),
        ]


class OrderItemRecord(models.Model):
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    order = fields.ForeignKeyField("models.OrderRecord", related_name="items")
    position = fields.IntField() # Keeps lines in the order they were added
    sku = fields.CharField(max_length=100)
    quantity = fields.IntField()
    unit_price = fields.DecimalField(max_digits=12, decimal_places=2)
    line_total = fields.DecimalField(max_digits=12, decimal_places=2)
    currency = fields.CharField(max_length=3)
    created_at = fields.DatetimeField(auto_now_add=True)

    class Meta:
        table = "order_items"
        indexes = [
            ("order_id",),
            ("sku",),
            ("order_id", "position"),
        ]
