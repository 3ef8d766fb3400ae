import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class EventRecord(BaseModel):
    """Immutable view of one outbox row, as handed to publishers."""

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID
    aggregate_id: uuid.UUID
    aggregate_type: str = Field(..., min_length=1)
    event_type: str = Field(..., min_length=1)
    payload: Dict[str, Any]
    event_version: int = Field(..., gt=0)
    created_at: datetime
    published_at: Optional[datetime] = None


class DispatcherStats(BaseModel):
    """Process-local counters of one dispatcher instance. Reset on restart."""

    total_processed: int = 0
    total_published: int = 0
    total_failed: int = 0
    last_run: Optional[datetime] = None
    is_running: bool = False


class OutboxStats(BaseModel):
    """Live row counts of the outbox table."""

    unpublished: int
    published: int
    total: int


class OutboxStatsResponse(BaseModel):
    dispatcher: Optional[DispatcherStats] = None
    outbox: OutboxStats
