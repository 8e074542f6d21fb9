"""Domain layer for the table allocation engine."""

from .enums import (
    ReservationStatus,
    AuditAction,
    RejectionReason,
    DayOfWeek,
)
from .models import (
    GuestInfo,
    ReservationCreate,
    ReservationModify,
    TransitionRequest,
    ReservationCancelRequest,
    TableReassignRequest,
    AvailabilityResult,
    SlotAvailability,
    ReservationRecord,
    GuestProfileRecord,
    AuditLogEntry,
)

__all__ = [
    # Enums
    "ReservationStatus",
    "AuditAction",
    "RejectionReason",
    "DayOfWeek",
    # Models
    "GuestInfo",
    "ReservationCreate",
    "ReservationModify",
    "TransitionRequest",
    "ReservationCancelRequest",
    "TableReassignRequest",
    "AvailabilityResult",
    "SlotAvailability",
    "ReservationRecord",
    "GuestProfileRecord",
    "AuditLogEntry",
]
