"""Database layer for the table allocation engine."""

from .base import Base, TimestampMixin
from .models_sqlalchemy import (
    Restaurant,
    Policy,
    Shift,
    Block,
    Area,
    DiningTable,
    GuestProfile,
    Reservation,
    AuditLog,
)
from .session import (
    create_engine,
    create_session_factory,
    get_engine,
    get_session_factory,
    get_session_context,
    init_db,
    drop_db,
    close_db,
    DatabaseConfig,
)

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    # Models
    "Restaurant",
    "Policy",
    "Shift",
    "Block",
    "Area",
    "DiningTable",
    "GuestProfile",
    "Reservation",
    "AuditLog",
    # Session
    "create_engine",
    "create_session_factory",
    "get_engine",
    "get_session_factory",
    "get_session_context",
    "init_db",
    "drop_db",
    "close_db",
    "DatabaseConfig",
]
