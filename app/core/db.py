import asyncio
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from logging import INFO
from typing import Any, AsyncIterator, Dict, List, Optional
from urllib.parse import urlsplit

from tortoise import Tortoise, connections
from tortoise.backends.base.client import BaseDBAsyncClient
from tortoise.backends.base.config_generator import generate_config
from tortoise.transactions import in_transaction

from app.core.config import DB_CONNECT_TIMEOUT, DB_POOL_MAX_SIZE, DB_POOL_MIN_SIZE, DB_URL
from app.core.errors import DatabaseUnavailableError

# Set logging level for Tortoise ORM
logging.getLogger('tortoise').setLevel(INFO)
log = logging.getLogger(__name__)

# Define all models modules for the ORM
MODELS_MODULES = [
    "app.models.order",
    "app.models.outbox",
]


class Database:
    """
    Owns the ORM connection pool. Built once by the host application, opened at
    startup, closed at shutdown, and handed to the Unit of Work and the dispatcher.
    """

    def __init__(
        self,
        db_url: str = DB_URL,
        *,
        modules: Optional[List[str]] = None,
        connection_name: str = "default",
        pool_min_size: int = DB_POOL_MIN_SIZE,
        pool_max_size: int = DB_POOL_MAX_SIZE,
        connect_timeout: float = DB_CONNECT_TIMEOUT,
    ):
        self.db_url = db_url
        self.modules = modules or list(MODELS_MODULES)
        self.connection_name = connection_name
        self.pool_min_size = pool_min_size
        self.pool_max_size = pool_max_size
        self.connect_timeout = connect_timeout

    @property
    def safe_url(self) -> str:
        """The database URL without credentials, for logs."""
        parts = urlsplit(self.db_url)
        # Not .hostname/.port: "sqlite://:memory:" has no numeric port
        netloc = parts.netloc.rpartition("@")[2]
        return f"{parts.scheme}://{netloc}{parts.path}"

    def _build_config(self) -> Dict[str, Any]:
        config = generate_config(
            self.db_url,
            app_modules={"models": self.modules},
            connection_label=self.connection_name,
        )
        connection = config["connections"][self.connection_name]
        if not connection["engine"].endswith("sqlite"):
            # Pool bounds; callers beyond max size wait up to connect_timeout
            connection["credentials"].update(
                {
                    "minsize": self.pool_min_size,
                    "maxsize": self.pool_max_size,
                    "timeout": self.connect_timeout,
                }
            )
        config["use_tz"] = True
        config["timezone"] = "UTC"
        return config

    async def connect(self, generate_schemas: bool = False) -> None:
        """Initializes the ORM connection pool and optionally creates missing tables."""
        try:
            await Tortoise.init(config=self._build_config())
            if generate_schemas:
                await Tortoise.generate_schemas(safe=True)
            log.info(f"Database connection established ({self.safe_url}).")
        except Exception as e:
            log.error(f"FATAL ERROR: Could not connect to database at {self.safe_url}. Error: {e}")
            # Re-raise to prevent the application from starting without a database
            raise

    async def close(self) -> None:
        """Closes all database connections."""
        await Tortoise.close_connections()
        log.info("Database connections closed.")

    def client(self) -> BaseDBAsyncClient:
        """The pooled client, for statements that need no explicit transaction."""
        return connections.get(self.connection_name)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[BaseDBAsyncClient]:
        """
        Opens a transaction on one pooled connection. Commits on normal exit, rolls back
        when the block raises, and always hands the connection back to the pool.
        """
        async with AsyncExitStack() as stack:
            try:
                async with asyncio.timeout(self.connect_timeout):
                    connection = await stack.enter_async_context(in_transaction(self.connection_name))
            except TimeoutError as exc:
                raise DatabaseUnavailableError(
                    f"No database connection available within {self.connect_timeout}s"
                ) from exc
            yield connection

    async def healthcheck(self) -> bool:
        try:
            await self.client().execute_query("SELECT 1")
            return True
        except Exception as e:
            log.warning(f"Database health check failed: {e}")
            return False
