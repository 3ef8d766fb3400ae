# scripts/migrate.py
import asyncio
import logging

from app.core.config import LOG_FORMAT, LOG_LEVEL
from app.core.db import Database

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
log = logging.getLogger(__name__)

# Statements the ORM schema generator cannot express. PostgreSQL only.
POSTGRES_STATEMENTS = [
    # Pending rows are the hot path of every poll cycle
    "CREATE INDEX IF NOT EXISTS idx_outbox_unpublished ON outbox (created_at) WHERE published_at IS NULL",
    "CREATE INDEX IF NOT EXISTS idx_outbox_unpublished_composite "
    "ON outbox (aggregate_type, event_type, created_at) WHERE published_at IS NULL",
    "ALTER TABLE outbox DROP CONSTRAINT IF EXISTS chk_outbox_event_version_positive",
    "ALTER TABLE outbox ADD CONSTRAINT chk_outbox_event_version_positive CHECK (event_version > 0)",
    "ALTER TABLE outbox DROP CONSTRAINT IF EXISTS chk_outbox_aggregate_type_not_empty",
    "ALTER TABLE outbox ADD CONSTRAINT chk_outbox_aggregate_type_not_empty CHECK (LENGTH(TRIM(aggregate_type)) > 0)",
    "ALTER TABLE outbox DROP CONSTRAINT IF EXISTS chk_outbox_event_type_not_empty",
    "ALTER TABLE outbox ADD CONSTRAINT chk_outbox_event_type_not_empty CHECK (LENGTH(TRIM(event_type)) > 0)",
    "ALTER TABLE order_items DROP CONSTRAINT IF EXISTS chk_order_items_quantity_positive",
    "ALTER TABLE order_items ADD CONSTRAINT chk_order_items_quantity_positive CHECK (quantity > 0)",
]


def is_postgres(db_url: str) -> bool:
    return db_url.startswith(("postgres://", "postgresql://", "asyncpg://", "psycopg://"))


async def migrate(database: Database):
    """Creates missing tables, then applies the PostgreSQL-only indexes and constraints. Safe to re-run."""
    await database.connect(generate_schemas=True)
    try:
        if is_postgres(database.db_url):
            async with database.transaction() as conn:
                for statement in POSTGRES_STATEMENTS:
                    await conn.execute_script(statement)
            log.info(f"Applied {len(POSTGRES_STATEMENTS)} PostgreSQL statements.")
        log.info("Migrations completed successfully.")
    finally:
        await database.close()


async def main():
    await migrate(Database())


if __name__ == "__main__":
    asyncio.run(main())
