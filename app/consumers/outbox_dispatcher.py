"""
Outbox dispatcher: delivers pending outbox rows to a pluggable publisher.

Each poll cycle claims up to batch_size rows with published_at IS NULL, oldest
first, using SELECT ... FOR UPDATE SKIP LOCKED, so any number of dispatchers
(in this process or others) can poll the same table without blocking on each
other's claims. The claiming transaction commits before the publisher runs and
the lock is not held across the publish call. Until the batch is marked, a
different instance may therefore claim and deliver the same rows again. This
is accepted: delivery is at-least-once and consumers must be idempotent.
Marking only touches rows that are still unpublished, so published_at is set
exactly once per row.

A failed publish leaves the rows unpublished and they are picked up by a
later cycle.
"""
import asyncio
import contextlib
import logging
from datetime import timedelta
from typing import Awaitable, Callable, List, Optional
from uuid import UUID

from tenacity import AsyncRetrying, before_sleep_log, stop_after_attempt, wait_fixed
from tortoise import timezone
from tortoise.queryset import QuerySet

from app.core.config import OutboxConfig
from app.core.db import Database
from app.core.errors import DatabaseUnavailableError
from app.models.outbox import OutboxEvent
from app.schemas.outbox import DispatcherStats, EventRecord, OutboxStats

log = logging.getLogger(__name__)

Publisher = Callable[[List[EventRecord]], Awaitable[None]]

SHUTDOWN_POLL_SECONDS = 0.1

COUNT_OUTBOX_ROWS_SQL = (
    "SELECT "
    "SUM(CASE WHEN published_at IS NULL THEN 1 ELSE 0 END) AS unpublished, "
    "SUM(CASE WHEN published_at IS NOT NULL THEN 1 ELSE 0 END) AS published, "
    "COUNT(*) AS total "
    f"FROM {OutboxEvent._meta.db_table}"
)


async def default_publisher(records: List[EventRecord]) -> None:
    """Used when the host supplies no publisher: logs every record."""
    for record in records:
        log.info(
            f"Publishing event {record.event_type} (ID: {record.id}) "
            f"for {record.aggregate_type} {record.aggregate_id}: {record.payload}"
        )


class OutboxDispatcher:
    """Polls the outbox table, hands claimed batches to the publisher and marks them published."""

    def __init__(self, database: Database, config: OutboxConfig, publisher: Optional[Publisher] = None):
        self._database = database
        self._config = config
        self._publisher = publisher or default_publisher
        self._stats = DispatcherStats()
        self._processing = False
        self._task: Optional[asyncio.Task] = None
        self._stop_requested = asyncio.Event()

    # ----------- Lifecycle -----------

    def start(self) -> None:
        """Starts polling: one cycle right away, then one every poll interval. Needs a running loop."""
        if self._task is not None and not self._task.done():
            log.warning("OutboxDispatcher already running")
            return

        if not self._config.enabled:
            log.info("OutboxDispatcher is disabled in configuration")
            return

        log.info(
            f"Starting OutboxDispatcher (poll_interval={self._config.poll_interval_ms}ms, "
            f"batch_size={self._config.batch_size}, max_retries={self._config.max_retries})"
        )
        self._stop_requested = asyncio.Event()
        self._stats.is_running = True
        self._task = asyncio.create_task(self._run_loop(), name="outbox-dispatcher")
        self._task.add_done_callback(self._on_loop_done)

    def stop(self) -> None:
        """No new cycles start after this call. A cycle already running is not interrupted."""
        if self._task is None:
            return
        self._stop_requested.set()
        self._stats.is_running = False
        log.info("OutboxDispatcher stopped")

    async def join(self) -> None:
        """Waits for the polling loop to end. Re-raises the error that ended it, if any."""
        if self._task is not None:
            await asyncio.shield(self._task)

    async def shutdown(self, timeout: Optional[float] = None) -> None:
        """
        Stops polling and waits until no cycle is in flight. With a timeout, gives up
        after that many seconds and cancels the loop; unmarked rows are redelivered later.
        """
        log.info("Shutting down OutboxDispatcher...")
        self.stop()
        task, self._task = self._task, None
        try:
            async with asyncio.timeout(timeout):
                if task is not None:
                    await task
                # A manually triggered cycle may still be running
                while self._processing:
                    await asyncio.sleep(SHUTDOWN_POLL_SECONDS)
        except TimeoutError:
            log.error(f"OutboxDispatcher did not stop within {timeout}s, cancelling")
            if task is not None:
                task.cancel()
            return
        log.info("OutboxDispatcher shutdown complete")

    async def _run_loop(self) -> None:
        interval = self._config.poll_interval_ms / 1000
        while not self._stop_requested.is_set():
            try:
                await self.process_outbox()
            except DatabaseUnavailableError as e:
                log.critical(f"OutboxDispatcher cannot reach the database, stopping: {e}")
                raise

            # Wait for the next tick, or wake up early on stop()
            with contextlib.suppress(TimeoutError):
                async with asyncio.timeout(interval):
                    await self._stop_requested.wait()

    def _on_loop_done(self, task: asyncio.Task) -> None:
        self._stats.is_running = False
        if not task.cancelled() and task.exception() is not None:
            log.error(f"OutboxDispatcher loop ended with error: {task.exception()}")

    # ----------- Poll cycle -----------

    async def process_outbox(self) -> int:
        """
        Runs one poll cycle and returns the number of rows this instance marked published.
        Skipped when a previous cycle of this instance is still in flight.
        """
        if self._processing:
            log.debug("Skipping outbox processing - already in progress")
            return 0

        self._processing = True
        self._stats.last_run = timezone.now()
        try:
            records = await self._claim_batch()
            if not records:
                return 0

            log.info(f"Processing {len(records)} unpublished events")
            return await self._deliver(records)
        except DatabaseUnavailableError:
            self._stats.total_failed += 1
            raise
        except Exception as e:
            self._stats.total_failed += 1
            log.error(f"Failed to process outbox: {e}")
            return 0
        finally:
            self._processing = False

    def _claim_query(self, created_before=None) -> QuerySet[OutboxEvent]:
        """Oldest unpublished rows, locked, skipping rows other claimants hold."""
        query = OutboxEvent.filter(published_at__isnull=True)
        if created_before is not None:
            query = query.filter(created_at__lt=created_before)
        return query.order_by("created_at").limit(self._config.batch_size).select_for_update(skip_locked=True)

    async def _claim_batch(self, created_before=None) -> List[EventRecord]:
        async with self._database.transaction() as conn:
            rows = await self._claim_query(created_before).using_db(conn)
        # Committed: the lock is released before the publisher is called
        return [row.to_record() for row in rows]

    async def _deliver(self, records: List[EventRecord]) -> int:
        await self._publish(records)
        self._stats.total_processed += len(records)

        marked = await self._mark_published([record.id for record in records])
        self._stats.total_published += marked
        log.info(f"Successfully published {len(records)} events, {marked} marked as published")
        return marked

    async def _publish(self, records: List[EventRecord]) -> None:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._config.max_retries + 1),
            wait=wait_fixed(self._config.retry_delay_ms / 1000),
            before_sleep=before_sleep_log(log, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                await self._publisher(records)

    async def _mark_published(self, event_ids: List[UUID]) -> int:
        if not event_ids:
            return 0
        async with self._database.transaction() as conn:
            # Rows another instance already marked keep their original timestamp
            return await (
                OutboxEvent.filter(id__in=event_ids, published_at__isnull=True)
                .using_db(conn)
                .update(published_at=timezone.now())
            )

    # ----------- Maintenance -----------

    async def retry_failed_events(self, max_age_ms: int = 300_000) -> int:
        """
        Sweeps rows that are still unpublished more than max_age_ms after creation,
        independently of the poll cadence. Returns the number of rows marked published.
        """
        if max_age_ms < 0:
            raise ValueError("max_age_ms cannot be negative")

        cutoff = timezone.now() - timedelta(milliseconds=max_age_ms)
        try:
            records = await self._claim_batch(created_before=cutoff)
            if not records:
                return 0
            log.info(f"Retrying {len(records)} stuck events")
            return await self._deliver(records)
        except DatabaseUnavailableError:
            self._stats.total_failed += 1
            raise
        except Exception as e:
            self._stats.total_failed += 1
            log.error(f"Failed to retry stuck events: {e}")
            return 0

    async def cleanup_published_events(self, older_than_days: int = 30) -> int:
        """Deletes published rows older than the retention horizon. Pending rows are never deleted."""
        if older_than_days < 0:
            raise ValueError("older_than_days cannot be negative")

        cutoff = timezone.now() - timedelta(days=older_than_days)
        async with self._database.transaction() as conn:
            deleted = await (
                OutboxEvent.filter(published_at__isnull=False, published_at__lt=cutoff)
                .using_db(conn)
                .delete()
            )
        if deleted:
            log.info(f"Cleaned up {deleted} old published events")
        return deleted

    # ----------- Observability -----------

    def get_stats(self) -> DispatcherStats:
        return self._stats.model_copy()

    async def get_outbox_stats(self) -> OutboxStats:
        return await count_outbox_rows(self._database)


async def count_outbox_rows(database: Database) -> OutboxStats:
    """Live pending and published row counts."""
    # One statement, so the three numbers come from the same snapshot
    rows = await database.client().execute_query_dict(COUNT_OUTBOX_ROWS_SQL)
    counts = rows[0]
    return OutboxStats(
        unpublished=int(counts["unpublished"] or 0),
        published=int(counts["published"] or 0),
        total=int(counts["total"] or 0),
    )
