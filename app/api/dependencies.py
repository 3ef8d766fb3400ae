from typing import Optional, Union

from fastapi import Request

from app.consumers.outbox_dispatcher import OutboxDispatcher
from app.core.db import Database
from app.core.unit_of_work import InMemoryUnitOfWork, UnitOfWork
from app.services.pricing_service import StaticPricingService

# Collaborators are built once in the lifespan handler and stored on app.state


def get_database(request: Request) -> Optional[Database]:
    # None when the service runs with in-memory persistence
    return getattr(request.app.state, "database", None)


def get_unit_of_work(request: Request) -> Union[UnitOfWork, InMemoryUnitOfWork]:
    return request.app.state.unit_of_work


def get_pricing_service(request: Request) -> StaticPricingService:
    return request.app.state.pricing


def get_dispatcher(request: Request) -> Optional[OutboxDispatcher]:
    return getattr(request.app.state, "dispatcher", None)
