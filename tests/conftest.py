import uuid
from datetime import timedelta

import pytest
import pytest_asyncio
from tortoise import timezone

from app.core.config import OutboxConfig
from app.core.db import Database
from app.core.unit_of_work import UnitOfWork
from app.models.outbox import OutboxEvent


@pytest_asyncio.fixture
async def database():
    """Fresh in-memory SQLite database with all tables created."""
    db = Database("sqlite://:memory:")
    await db.connect(generate_schemas=True)
    yield db
    await db.close()


@pytest.fixture
def uow(database):
    return UnitOfWork(database)


@pytest.fixture
def outbox_config():
    # Fast timings so dispatcher tests do not sleep for seconds
    return OutboxConfig(batch_size=50, poll_interval_ms=20, max_retries=0, retry_delay_ms=1)


async def insert_outbox_rows(count, *, age=timedelta(0), published_at=None, event_type="OrderCreated"):
    """Inserts `count` outbox rows in creation order and returns them."""
    base = timezone.now() - age
    rows = [
        OutboxEvent(
            id=uuid.uuid4(),
            aggregate_id=uuid.uuid4(),
            aggregate_type="Order",
            event_type=event_type,
            event_data={"sequence": index},
            event_version=1,
            created_at=base + timedelta(microseconds=index),
            published_at=published_at,
        )
        for index in range(count)
    ]
    await OutboxEvent.bulk_create(rows)
    return rows


@pytest.fixture
def insert_rows(database):
    return insert_outbox_rows
