import logging
import uuid
from datetime import timedelta
from typing import Any, List, Sequence

from tortoise import timezone

from app.core.errors import AppError, InfraError
from app.core.result import Err, Ok, Result
from app.events.serializers import serialize_event
from app.schemas.outbox import EventRecord

log = logging.getLogger(__name__)


class InMemoryEventSink:
    """
    Stand-in for OutboxStore when the service runs without PostgreSQL.

    Events go through the same serializers as outbox rows and count as delivered
    as soon as the owning unit of work commits; there is no dispatcher.
    """

    def __init__(self, aggregate_type: str = "Order"):
        if not aggregate_type:
            raise ValueError("aggregate_type cannot be empty")
        self._aggregate_type = aggregate_type
        self.staged: List[EventRecord] = []

    async def publish(self, events: Sequence[Any]) -> Result[int, AppError]:
        if not events:
            return Ok(0)

        now = timezone.now()
        try:
            records = []
            for index, event in enumerate(events):
                serialized = serialize_event(event)
                created_at = now + timedelta(microseconds=index)
                records.append(
                    EventRecord(
                        id=uuid.uuid4(),
                        aggregate_id=serialized.aggregate_id,
                        aggregate_type=self._aggregate_type,
                        event_type=serialized.event_type,
                        payload=serialized.payload,
                        event_version=serialized.event_version,
                        created_at=created_at,
                        published_at=created_at,
                    )
                )
        except AppError as e:
            log.error(f"Event batch rejected: {e}")
            return Err(e)
        except Exception as e:
            log.error(f"Event batch rejected: {e}")
            return Err(InfraError(f"Failed to serialize events: {e}"))

        self.staged.extend(records)
        return Ok(len(records))
