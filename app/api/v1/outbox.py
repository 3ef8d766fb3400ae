from typing import Optional

from fastapi import APIRouter, Depends

from app.api.dependencies import get_database, get_dispatcher, get_unit_of_work
from app.consumers.outbox_dispatcher import OutboxDispatcher, count_outbox_rows
from app.core.db import Database
from app.schemas.outbox import OutboxStats, OutboxStatsResponse
from app.schemas.response import SuccessResponse

router = APIRouter()


@router.get("/stats", response_model=SuccessResponse)
async def outbox_stats_endpoint(
    database: Optional[Database] = Depends(get_database),
    dispatcher: Optional[OutboxDispatcher] = Depends(get_dispatcher),
    unit_of_work=Depends(get_unit_of_work),
):
    """Dispatcher counters (when it runs in this process) and live outbox row counts."""
    if database is not None:
        outbox = await count_outbox_rows(database)
    else:
        # In memory, events count as delivered once their transaction commits
        delivered = len(unit_of_work.published_events)
        outbox = OutboxStats(unpublished=0, published=delivered, total=delivered)

    data = OutboxStatsResponse(
        dispatcher=dispatcher.get_stats() if dispatcher is not None else None,
        outbox=outbox,
    )
    return SuccessResponse(data=data.model_dump(mode="json"))
