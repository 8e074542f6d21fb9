"""Domain enums for the table allocation engine."""

from enum import Enum


class ReservationStatus(str, Enum):
    """Reservation status enumeration."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    SEATED = "seated"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"

    @classmethod
    def active(cls) -> tuple:
        """Statuses that hold a table and count toward shift covers."""
        return (cls.PENDING, cls.CONFIRMED, cls.SEATED)

    @classmethod
    def terminal(cls) -> tuple:
        return (cls.COMPLETED, cls.CANCELLED, cls.NO_SHOW)


class AuditAction(str, Enum):
    """Audit log action types."""

    CREATED = "created"
    CONFIRMED = "confirmed"
    SEATED = "seated"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"
    MODIFIED = "modified"
    TABLE_REASSIGNED = "table_reassigned"


class RejectionReason(str, Enum):
    """Machine-readable reasons an allocation request is turned down."""

    TOO_SOON = "too_soon"
    TOO_FAR_AHEAD = "too_far_ahead"
    MODIFICATIONS_DISABLED = "modifications_disabled"
    MODIFICATION_CUTOFF_PASSED = "modification_cutoff_passed"
    CLOSED = "closed"
    NO_SERVICE = "no_service"
    SHIFT_CONFIGURATION_ERROR = "shift_configuration_error"
    SHIFT_FULLY_BOOKED = "shift_fully_booked"
    NO_TABLES = "no_tables"
    TABLE_UNSUITABLE = "table_unsuitable"


class DayOfWeek(int, Enum):
    """Days of the week, numbered like ``date.weekday()``."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6
