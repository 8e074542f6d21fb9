"""Domain models using Pydantic v2 for the table allocation engine."""

from datetime import date, time, datetime
from typing import Optional, Dict, Any
from uuid import UUID

from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from .enums import ReservationStatus, AuditAction, RejectionReason


PHONE_PATTERN = r"^\+?[1-9]\d{6,14}$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class GuestInfo(BaseModel):
    """Who the reservation is for."""

    name: str = Field(..., min_length=1, max_length=200, description="Guest name")
    email: Optional[str] = Field(None, max_length=254, pattern=EMAIL_PATTERN)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN, description="Phone number in E.164 format")
    occasion: Optional[str] = Field(None, max_length=100)
    special_requests: Optional[str] = Field(None, max_length=1000)

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v

    @model_validator(mode="after")
    def require_contact(self) -> "GuestInfo":
        """A guest profile is matched by email or phone, so one of them is needed."""
        if not self.email and not self.phone:
            raise ValueError("Either email or phone is required")
        return self


class ReservationCreate(BaseModel):
    """Request to book a table."""

    restaurant_id: UUID
    reservation_date: date
    start_time: time
    party_size: int = Field(..., ge=1, le=100, description="Number of guests")
    guest: GuestInfo
    actor_id: Optional[str] = Field(None, max_length=100)

    model_config = ConfigDict(str_strip_whitespace=True)


class ReservationModify(BaseModel):
    """Change of date, time or party size for an existing reservation."""

    reservation_date: Optional[date] = None
    start_time: Optional[time] = None
    party_size: Optional[int] = Field(None, ge=1, le=100)
    actor_id: Optional[str] = Field(None, max_length=100)


class TransitionRequest(BaseModel):
    """Staff action on a reservation."""

    actor_id: Optional[str] = Field(None, max_length=100)


class ReservationCancelRequest(TransitionRequest):
    """Request to cancel a reservation."""

    reason: Optional[str] = Field(None, max_length=500)


class TableReassignRequest(TransitionRequest):
    """Move a reservation to another table."""

    table_id: UUID


class AvailabilityResult(BaseModel):
    """Outcome of a read-only availability check."""

    available: bool
    reason: Optional[RejectionReason] = None
    message: Optional[str] = None
    table_id: Optional[UUID] = None
    table_number: Optional[str] = None
    shift_id: Optional[UUID] = None
    shift_name: Optional[str] = None


class SlotAvailability(BaseModel):
    """One bookable time of a shift and whether it can be honored."""

    time: str
    available: bool
    shift_name: str
    reason: Optional[RejectionReason] = None


class ReservationRecord(BaseModel):
    """Complete reservation record from database."""

    id: UUID
    restaurant_id: UUID
    table_id: UUID
    shift_id: Optional[UUID] = None
    guest_profile_id: Optional[UUID] = None
    reservation_date: date
    start_time: time
    end_time: time
    party_size: int
    status: ReservationStatus
    confirmation_code: str
    guest_name: str
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    occasion: Optional[str] = None
    special_requests: Optional[str] = None
    cancellation_reason: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    seated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class GuestProfileRecord(BaseModel):
    """Guest profile with derived visit statistics."""

    id: UUID
    email: Optional[str] = None
    phone: Optional[str] = None
    first_name: str
    last_name: str
    total_visits: int
    avg_party_size: Optional[float] = None
    last_visit_date: Optional[date] = None
    no_show_count: int

    model_config = ConfigDict(from_attributes=True)


class AuditLogEntry(BaseModel):
    """Audit log entry model."""

    id: int
    reservation_id: UUID
    action: AuditAction
    actor_id: Optional[str] = Field(None, max_length=100)
    changes: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
