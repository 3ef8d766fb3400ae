import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, List, Optional, Sequence

from tortoise import timezone
from tortoise.backends.base.client import BaseDBAsyncClient

from app.core.db import Database
from app.core.errors import AppError, DatabaseUnavailableError, InfraError
from app.core.result import Err, Ok, Result
from app.events.serializers import serialize_event
from app.models.outbox import OutboxEvent

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConnectionScope:
    """
    Where outbox writes go. A borrowed scope writes on a connection whose transaction
    somebody else owns and never commits or releases it; an owned scope opens and
    finishes its own transaction for every call.
    """

    owns_connection: bool
    connection: Optional[BaseDBAsyncClient] = None
    database: Optional[Database] = None

    @classmethod
    def borrowed(cls, connection: BaseDBAsyncClient) -> "ConnectionScope":
        return cls(owns_connection=False, connection=connection)

    @classmethod
    def owned(cls, database: Database) -> "ConnectionScope":
        return cls(owns_connection=True, database=database)


class OutboxStore:
    """Appends domain events to the outbox table as part of the caller's transaction."""

    def __init__(self, scope: ConnectionScope, aggregate_type: str = "Order"):
        if not aggregate_type:
            raise ValueError("aggregate_type cannot be empty")
        self._scope = scope
        self._aggregate_type = aggregate_type

    async def publish(self, events: Sequence[Any]) -> Result[int, AppError]:
        """
        Persists all events or none of them. Returns Ok(number of rows written),
        or Err(InfraError) when an event cannot be serialized or the insert fails.
        """
        if not events:
            return Ok(0)

        # 1. Serialize the whole batch before touching the database
        try:
            rows = self._build_rows(events)
        except AppError as e:
            log.error(f"Outbox batch rejected: {e}")
            return Err(e)
        except Exception as e:
            log.error(f"Outbox batch rejected: {e}")
            return Err(InfraError(f"Failed to serialize events for outbox: {e}"))

        # 2. One bulk insert on the active connection
        try:
            if self._scope.owns_connection:
                async with self._scope.database.transaction() as conn:
                    await OutboxEvent.bulk_create(rows, using_db=conn)
            else:
                await OutboxEvent.bulk_create(rows, using_db=self._scope.connection)
        except DatabaseUnavailableError:
            raise
        except Exception as e:
            log.error(f"Failed to publish {len(rows)} events to outbox: {e}")
            return Err(InfraError(f"Failed to publish events to outbox: {e}"))

        log.debug(f"Appended {len(rows)} events to outbox for {self._aggregate_type}")
        return Ok(len(rows))

    def _build_rows(self, events: Sequence[Any]) -> List[OutboxEvent]:
        now = timezone.now()
        rows = []
        for index, event in enumerate(events):
            serialized = serialize_event(event)
            rows.append(
                OutboxEvent(
                    id=uuid.uuid4(),
                    aggregate_id=serialized.aggregate_id,
                    aggregate_type=self._aggregate_type,
                    event_type=serialized.event_type,
                    event_data=serialized.payload,
                    event_version=serialized.event_version,
                    # Strictly increasing within the batch so pollers see emission order
                    created_at=now + timedelta(microseconds=index),
                    published_at=None,
                )
            )
        return rows
