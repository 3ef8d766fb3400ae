import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from tortoise.backends.base.client import BaseDBAsyncClient

from app.core.db import Database
from app.core.errors import AppError, DatabaseUnavailableError, InfraError
from app.core.result import Err, Ok, Result
from app.events.in_memory_sink import InMemoryEventSink
from app.events.outbox_store import ConnectionScope, OutboxStore
from app.repositories.in_memory_order_repository import InMemoryOrderRepository, OrderSnapshot
from app.repositories.order_repository import OrderRepository
from app.schemas.outbox import EventRecord

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnitOfWorkContext:
    """Repositories and stores bound to a single connection (None when running in memory)."""

    connection: Optional[BaseDBAsyncClient]
    orders: Union[OrderRepository, InMemoryOrderRepository]
    outbox: Union[OutboxStore, InMemoryEventSink]


Work = Callable[[UnitOfWorkContext], Awaitable[Any]]


class _RollbackRequested(Exception):
    def __init__(self, failure: Err):
        super().__init__(repr(failure))
        self.failure = failure


class _ReadFinished(Exception):
    def __init__(self, value: Any):
        super().__init__("read finished")
        self.value = value


class UnitOfWork:
    """
    Atomic boundary for an aggregate write and its outbox write.

    run() commits when the work returns normally and rolls back when it raises or
    returns an Err. Failures come back as Err values; only DatabaseUnavailableError
    (pool exhausted past its timeout) is raised to the caller.
    """

    def __init__(self, database: Database, aggregate_type: str = "Order"):
        self._database = database
        self._aggregate_type = aggregate_type

    def _bind(self, connection: BaseDBAsyncClient) -> UnitOfWorkContext:
        return UnitOfWorkContext(
            connection=connection,
            orders=OrderRepository(connection),
            outbox=OutboxStore(ConnectionScope.borrowed(connection), aggregate_type=self._aggregate_type),
        )

    async def run(self, work: Work) -> Result[Any, AppError]:
        try:
            async with self._database.transaction() as conn:
                value = await work(self._bind(conn))
                if isinstance(value, Err):
                    # Leaving the block with an exception makes the transaction roll back
                    raise _RollbackRequested(value)
        except _RollbackRequested as rollback:
            log.info(f"Transaction rolled back: {rollback.failure.error}")
            return rollback.failure
        except DatabaseUnavailableError:
            raise
        except AppError as e:
            log.info(f"Transaction rolled back: {e}")
            return Err(e)
        except Exception as e:
            log.error(f"Transaction failed and was rolled back: {e}")
            return Err(InfraError(f"Transaction failed: {e}"))

        if isinstance(value, Ok):
            return value
        return Ok(value)

    async def query(self, work: Work) -> Result[Any, AppError]:
        """
        Like run() but always rolls back. Intended for reads: all handles still share
        one connection for the whole call, so reads are consistent within it.
        """
        try:
            async with self._database.transaction() as conn:
                # Always leave with an exception so the transaction rolls back
                raise _ReadFinished(await work(self._bind(conn)))
        except _ReadFinished as finished:
            value = finished.value
        except DatabaseUnavailableError:
            raise
        except AppError as e:
            return Err(e)
        except Exception as e:
            log.error(f"Query failed: {e}")
            return Err(InfraError(f"Query failed: {e}"))

        if isinstance(value, (Ok, Err)):
            return value
        return Ok(value)


class InMemoryUnitOfWork:
    """
    Same contract as UnitOfWork for running without PostgreSQL. Writes of one run()
    are staged and applied together when the work succeeds; runs are serialized.
    """

    def __init__(self, aggregate_type: str = "Order"):
        self._aggregate_type = aggregate_type
        self._orders: Dict[str, OrderSnapshot] = {}
        self._events: List[EventRecord] = []
        self._lock = asyncio.Lock()

    @property
    def published_events(self) -> List[EventRecord]:
        return list(self._events)

    def _bind(self) -> UnitOfWorkContext:
        return UnitOfWorkContext(
            connection=None,
            orders=InMemoryOrderRepository(self._orders),
            outbox=InMemoryEventSink(aggregate_type=self._aggregate_type),
        )

    async def run(self, work: Work) -> Result[Any, AppError]:
        async with self._lock:
            ctx = self._bind()
            try:
                value = await work(ctx)
            except AppError as e:
                log.info(f"Transaction rolled back: {e}")
                return Err(e)
            except Exception as e:
                log.error(f"Transaction failed and was rolled back: {e}")
                return Err(InfraError(f"Transaction failed: {e}"))

            if isinstance(value, Err):
                log.info(f"Transaction rolled back: {value.error}")
                return value

            self._orders.update(ctx.orders.staged)
            self._events.extend(ctx.outbox.staged)

        if isinstance(value, Ok):
            return value
        return Ok(value)

    async def query(self, work: Work) -> Result[Any, AppError]:
        """Like run() but staged writes are always discarded."""
        try:
            value = await work(self._bind())
        except AppError as e:
            return Err(e)
        except Exception as e:
            log.error(f"Query failed: {e}")
            return Err(InfraError(f"Query failed: {e}"))

        if isinstance(value, (Ok, Err)):
            return value
        return Ok(value)
