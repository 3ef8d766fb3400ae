import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.api.v1.orders import router as orders_router
from app.api.v1.outbox import router as outbox_router
from app.consumers.outbox_dispatcher import OutboxDispatcher
from app.core.config import (
    GRACEFUL_SHUTDOWN_TIMEOUT,
    LOG_FORMAT,
    LOG_LEVEL,
    PROJECT_NAME,
    RUN_DISPATCHER_IN_APP,
    USE_POSTGRES,
    VERSION,
    get_outbox_config,
)
from app.core.db import Database
from app.core.exception_handlers import setup_exception_handlers
from app.core.unit_of_work import InMemoryUnitOfWork, UnitOfWork
from app.services.pricing_service import StaticPricingService

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handles startup and shutdown events."""
    log.info(f"Starting {PROJECT_NAME} v{VERSION} ({'PostgreSQL' if USE_POSTGRES else 'in-memory'} persistence)...")
    app.state.database = None
    app.state.pricing = StaticPricingService()
    app.state.dispatcher = None

    if USE_POSTGRES:
        database = Database()
        await database.connect()  # Fails startup when the database is unreachable
        app.state.database = database
        app.state.unit_of_work = UnitOfWork(database)

        if RUN_DISPATCHER_IN_APP:
            dispatcher = OutboxDispatcher(database, get_outbox_config())
            dispatcher.start()
            app.state.dispatcher = dispatcher
    else:
        app.state.unit_of_work = InMemoryUnitOfWork()

    try:
        yield
    finally:
        if app.state.dispatcher is not None:
            await app.state.dispatcher.shutdown(timeout=GRACEFUL_SHUTDOWN_TIMEOUT)
        if app.state.database is not None:
            await app.state.database.close()
        log.info(f"{PROJECT_NAME} stopped.")


app = FastAPI(
    title=PROJECT_NAME,
    version=VERSION,
    lifespan=lifespan,
    # Configure API documentation and paths
    docs_url="/docs",
    redoc_url="/redoc"
)

# Include routers for modular API structure
app.include_router(orders_router, prefix="/api/v1/orders", tags=["Order Management"])
app.include_router(outbox_router, prefix="/api/v1/outbox", tags=["Outbox"])

setup_exception_handlers(app)


@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check(request: Request):
    """Health check endpoint. Answers 503 when the database is configured but unreachable."""
    database = getattr(request.app.state, "database", None)
    if database is None:
        return {"status": "ok", "app_name": PROJECT_NAME, "database": "in_memory"}

    if await database.healthcheck():
        return {"status": "ok", "app_name": PROJECT_NAME, "database": "up"}
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "degraded", "app_name": PROJECT_NAME, "database": "down"},
    )
