"""Shared FastAPI dependencies."""

from typing import Optional

from fastapi import Header

from db.session import get_session_factory
from services.reservation_service import ReservationService


_service: Optional[ReservationService] = None


def get_reservation_service() -> ReservationService:
    """Process-wide service bound to the configured database."""
    global _service

    if _service is None:
        _service = ReservationService(get_session_factory())
    return _service


def get_actor_id(x_actor_id: Optional[str] = Header(None, max_length=100)) -> Optional[str]:
    """Staff or guest identifier recorded in the audit trail."""
    return x_actor_id
