import asyncio
import logging
import signal

from app.consumers.outbox_dispatcher import OutboxDispatcher
from app.core.config import GRACEFUL_SHUTDOWN_TIMEOUT, LOG_FORMAT, LOG_LEVEL, get_outbox_config
from app.core.db import Database

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
log = logging.getLogger(__name__)

STATS_INTERVAL_SECONDS = 30


async def _report_stats(dispatcher: OutboxDispatcher):
    """Logs dispatcher and table counters periodically."""
    while True:
        await asyncio.sleep(STATS_INTERVAL_SECONDS)
        try:
            outbox = await dispatcher.get_outbox_stats()
            log.info(f"Dispatcher stats: {dispatcher.get_stats().model_dump()} | Outbox: {outbox.model_dump()}")
        except Exception as e:
            log.warning(f"Could not collect outbox stats: {e}")


async def run_outbox_worker():
    """Standalone dispatcher process. Runs until SIGINT/SIGTERM or until the database becomes unreachable."""
    database = Database()
    await database.connect()

    dispatcher = OutboxDispatcher(database, get_outbox_config())
    stop_requested = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_requested.set)

    log.info("--- Outbox Worker Started ---")
    dispatcher.start()
    reporter = asyncio.create_task(_report_stats(dispatcher))
    loop_ended = asyncio.create_task(dispatcher.join())
    stop_waiter = asyncio.create_task(stop_requested.wait())

    try:
        await asyncio.wait({loop_ended, stop_waiter}, return_when=asyncio.FIRST_COMPLETED)
        if stop_requested.is_set():
            log.info("Shutdown signal received")
        await dispatcher.shutdown(timeout=GRACEFUL_SHUTDOWN_TIMEOUT)
    finally:
        for task in (reporter, loop_ended, stop_waiter):
            task.cancel()
        await asyncio.gather(reporter, loop_ended, stop_waiter, return_exceptions=True)
        await database.close()
        log.info("--- Outbox Worker Stopped ---")


if __name__ == "__main__":
    asyncio.run(run_outbox_worker())
