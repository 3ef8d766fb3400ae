import os

from pydantic import BaseModel, ConfigDict, Field

# Database Configuration
# Uses default credentials for local Docker Compose setup
DB_URL = os.getenv("DATABASE_URL", "postgres://user:password@db:5432/orders_db")
DB_POOL_MIN_SIZE = int(os.getenv("DB_POOL_MIN_SIZE", 1))
DB_POOL_MAX_SIZE = int(os.getenv("DB_POOL_MAX_SIZE", 20))
DB_CONNECT_TIMEOUT = float(os.getenv("DB_CONNECT_TIMEOUT", 30)) # Seconds to wait for a pooled connection

# Application Metadata
PROJECT_NAME = "Order Outbox Service"
VERSION = "1.0.0"

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Run the outbox dispatcher inside the API process (the worker can run it standalone instead)
RUN_DISPATCHER_IN_APP = os.getenv("RUN_DISPATCHER_IN_APP", "true").lower() == "true"

# Without PostgreSQL the API keeps orders and events in process memory and runs no dispatcher
USE_POSTGRES = os.getenv("USE_POSTGRES", "false").lower() == "true"

# Seconds to wait for the dispatcher to finish its in-flight cycle on shutdown
GRACEFUL_SHUTDOWN_TIMEOUT = float(os.getenv("GRACEFUL_SHUTDOWN_TIMEOUT", 10))


class OutboxConfig(BaseModel):
    """Validated options for the outbox dispatcher."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    batch_size: int = Field(50, ge=1, le=1000, description="Rows claimed per poll cycle.")
    poll_interval_ms: int = Field(5000, ge=1, description="Delay between poll cycles.")
    max_retries: int = Field(3, ge=0, description="Extra publisher attempts inside one cycle.")
    retry_delay_ms: int = Field(1000, ge=1, description="Delay between publisher attempts.")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def get_outbox_config() -> OutboxConfig:
    """Builds the outbox options from the environment. Raises pydantic.ValidationError on bad values."""
    return OutboxConfig(
        enabled=_env_bool("OUTBOX_ENABLED", True),
        batch_size=int(os.getenv("OUTBOX_BATCH_SIZE", 50)),
        poll_interval_ms=int(os.getenv("OUTBOX_POLL_INTERVAL", 5000)),
        max_retries=int(os.getenv("OUTBOX_MAX_RETRIES", 3)),
        retry_delay_ms=int(os.getenv("OUTBOX_RETRY_DELAY", 1000)),
    )
