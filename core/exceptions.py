"""Error kinds raised by the allocation engine."""

from typing import Any, Dict, Optional

from domain.enums import RejectionReason


class ReservationError(Exception):
    """Base error with a stable code, a message and an HTTP status hint."""

    code = "reservation_error"
    status_code = 400
    retryable = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        payload = {"error": type(self).__name__, "code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class InvalidInputError(ReservationError):
    """Malformed date, time or party size."""

    code = "invalid_input"
    status_code = 400


class NotAvailableError(ReservationError):
    """Policy, block, shift, capacity or table rejection."""

    code = "not_available"
    status_code = 409

    def __init__(self, reason: RejectionReason, message: str, details: Optional[Dict[str, Any]] = None):
        self.reason = reason
        super().__init__(message, details)

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["reason"] = self.reason.value
        return payload


class ConflictError(ReservationError):
    """Lost a concurrency race against another allocation."""

    code = "conflict"
    status_code = 409
    retryable = True


class BusyError(ReservationError):
    """Could not obtain the allocation lock before the timeout."""

    code = "busy"
    status_code = 503
    retryable = True


class NotFoundError(ReservationError):
    """Unknown reservation, restaurant or table."""

    code = "not_found"
    status_code = 404


class InvalidTransitionError(ReservationError):
    """Lifecycle transition not allowed from the current status."""

    code = "invalid_transition"
    status_code = 409


class ForbiddenError(ReservationError):
    """Raised by the authorization collaborator; never by the engine itself."""

    code = "forbidden"
    status_code = 403
