from tortoise import fields, models
from tortoise.validators import MinLengthValidator, MinValueValidator
import uuid

from app.schemas.outbox import EventRecord


class OutboxEvent(models.Model):
    """
    The Outbox table stores events atomically with the aggregate's own rows.
    A row is pending while published_at is NULL; setting it is the only update a row ever gets.
    """
    id = fields.UUIDField(primary_key=True, default=uuid.uuid4)
    aggregate_id = fields.UUIDField() # ID of the aggregate that emitted the event
    aggregate_type = fields.CharField(max_length=100, validators=[MinLengthValidator(1)]) # e.g., 'Order'
    event_type = fields.CharField(max_length=100, validators=[MinLengthValidator(1)]) # e.g., 'OrderCreated'
    event_data = fields.JSONField() # Serialized event payload
    event_version = fields.IntField(default=1, validators=[MinValueValidator(1)])
    created_at = fields.DatetimeField(auto_now_add=True)
    published_at = fields.DatetimeField(null=True) # NULL = pending delivery

    class Meta:
        table = "outbox"
        indexes = [
            ("aggregate_id",),
            ("aggregate_type",),
            ("event_type",),
            ("created_at",),
            ("published_at", "created_at"),  # Polling for unpublished rows in creation order
        ]

    def to_record(self) -> EventRecord:
        return EventRecord(
            id=self.id,
            aggregate_id=self.aggregate_id,
            aggregate_type=self.aggregate_type,
            event_type=self.event_type,
            payload=self.event_data,
            event_version=self.event_version,
            created_at=self.created_at,
            published_at=self.published_at,
        )
