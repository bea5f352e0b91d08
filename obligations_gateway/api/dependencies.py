"""Dependency injection for FastAPI endpoints"""

from datetime import date
from typing import Generator, Optional

from fastapi import Query, Request

from obligations_gateway.config import settings
from obligations_gateway.infrastructure.clients.notifier import ChangeNotifier
from obligations_gateway.infrastructure.clients.rest_store import RestObligationStore
from obligations_gateway.infrastructure.database.repositories import SqlObligationStore
from obligations_gateway.infrastructure.database.session import SessionLocal
from obligations_gateway.infrastructure.store import ObligationStore
from obligations_gateway.utils.date_utils import today_in


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_store() -> Generator[ObligationStore, None, None]:
    """Provide the configured obligation store; a database session is opened only for the SQL backend"""
    if settings.obligations_backend == "rest":
        store = RestObligationStore()
        try:
            yield store
        finally:
            store.close()
    else:
        db = SessionLocal()
        try:
            yield SqlObligationStore(db)
        finally:
            db.close()


def get_notifier() -> ChangeNotifier:
    """Provide change notification client instance"""
    return ChangeNotifier()


def get_today(
    today: Optional[date] = Query(None, description="Calendar date to evaluate cycles on (defaults to now)"),
) -> date:
    """Caller-supplied 'today', or the current date in the configured timezone"""
    return today or today_in(settings.timezone)
