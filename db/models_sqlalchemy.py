"""SQLAlchemy models for venue configuration, guests, reservations and the audit trail."""

from datetime import datetime, date, time
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    Time,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from .base import Base, TimestampMixin
from domain.enums import ReservationStatus


class Restaurant(Base, TimestampMixin):
    """Venue owning all scheduling configuration."""

    __tablename__ = "restaurants"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")

    policy: Mapped[Optional["Policy"]] = relationship(back_populates="restaurant", uselist=False)
    shifts: Mapped[List["Shift"]] = relationship(
        back_populates="restaurant", order_by="[Shift.day_of_week, Shift.start_time]"
    )
    blocks: Mapped[List["Block"]] = relationship(back_populates="restaurant")
    areas: Mapped[List["Area"]] = relationship(back_populates="restaurant")

    def __repr__(self) -> str:
        return f"<Restaurant(id={self.id}, name='{self.name}', timezone='{self.timezone}')>"


class Policy(Base):
    """Venue-level temporal booking rules."""

    __tablename__ = "policies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    restaurant_id: Mapped[UUID] = mapped_column(
        ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    min_advance_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_advance_days: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    allow_modifications: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    modification_cutoff_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    auto_confirm: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    restaurant: Mapped[Restaurant] = relationship(back_populates="policy")

    __table_args__ = (
        CheckConstraint("min_advance_minutes >= 0", name="min_advance_non_negative"),
        CheckConstraint("max_advance_days >= 1", name="max_advance_positive"),
        CheckConstraint("modification_cutoff_minutes >= 0", name="cutoff_non_negative"),
    )


class Shift(Base):
    """Recurring weekly service window; overnight when end_time < start_time."""

    __tablename__ = "shifts"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    restaurant_id: Mapped[UUID] = mapped_column(
        ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    slot_duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    max_covers: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    restaurant: Mapped[Restaurant] = relationship(back_populates="shifts")

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="day_of_week_range"),
        CheckConstraint("slot_duration_minutes >= 5", name="slot_duration_min"),
        CheckConstraint("max_covers IS NULL OR max_covers > 0", name="max_covers_positive"),
        Index("ix_shifts_restaurant_day", "restaurant_id", "day_of_week"),
    )

    def __repr__(self) -> str:
        return (
            f"<Shift(name='{self.name}', day={self.day_of_week}, "
            f"{self.start_time}-{self.end_time}, max_covers={self.max_covers})>"
        )


class Block(Base):
    """Closure window over an inclusive date range, optionally limited to a time window."""

    __tablename__ = "blocks"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    restaurant_id: Mapped[UUID] = mapped_column(
        ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    end_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    restaurant: Mapped[Restaurant] = relationship(back_populates="blocks")

    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="date_range_ordered"),
    )


class Area(Base):
    """Dining area grouping tables."""

    __tablename__ = "areas"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    restaurant_id: Mapped[UUID] = mapped_column(
        ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    restaurant: Mapped[Restaurant] = relationship(back_populates="areas")
    tables: Mapped[List["DiningTable"]] = relationship(back_populates="area")


class DiningTable(Base):
    """Physical table with a seat range."""

    __tablename__ = "tables"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    restaurant_id: Mapped[UUID] = mapped_column(
        ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    area_id: Mapped[UUID] = mapped_column(ForeignKey("areas.id", ondelete="CASCADE"), nullable=False)
    number: Mapped[str] = mapped_column(String(20), nullable=False)
    min_seats: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    max_seats: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    area: Mapped[Area] = relationship(back_populates="tables")

    __table_args__ = (
        CheckConstraint("min_seats >= 1", name="min_seats_positive"),
        CheckConstraint("min_seats <= max_seats", name="seat_range_ordered"),
        Index("ix_tables_restaurant_number", "restaurant_id", "number", unique=True),
    )

    def __repr__(self) -> str:
        return f"<DiningTable(number='{self.number}', seats={self.min_seats}-{self.max_seats})>"


class GuestProfile(Base, TimestampMixin):
    """Guest identity across reservations; visit statistics are derived."""

    __tablename__ = "guest_profiles"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    email: Mapped[Optional[str]] = mapped_column(String(254), nullable=True, index=True)
    phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True, index=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    total_visits: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_party_size: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    last_visit_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    no_show_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<GuestProfile(id={self.id}, name='{self.first_name} {self.last_name}', "
            f"visits={self.total_visits}, no_shows={self.no_show_count})>"
        )


class Reservation(Base, TimestampMixin):
    """Committed booking bound to one table."""

    __tablename__ = "reservations"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    restaurant_id: Mapped[UUID] = mapped_column(
        ForeignKey("restaurants.id"), nullable=False
    )
    table_id: Mapped[UUID] = mapped_column(ForeignKey("tables.id"), nullable=False, index=True)
    shift_id: Mapped[Optional[UUID]] = mapped_column(ForeignKey("shifts.id"), nullable=True)
    guest_profile_id: Mapped[Optional[UUID]] = mapped_column(
        ForeignKey("guest_profiles.id"), nullable=True, index=True
    )

    reservation_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    party_size: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ReservationStatus.PENDING.value,
        index=True,
    )
    confirmation_code: Mapped[str] = mapped_column(String(16), nullable=False, unique=True)

    guest_name: Mapped[str] = mapped_column(String(200), nullable=False)
    guest_email: Mapped[Optional[str]] = mapped_column(String(254), nullable=True)
    guest_phone: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    occasion: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    special_requests: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    confirmed_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    seated_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    table: Mapped[DiningTable] = relationship()

    __table_args__ = (
        CheckConstraint("party_size >= 1", name="party_size_positive"),
        Index("ix_reservations_restaurant_date", "restaurant_id", "reservation_date"),
        Index("ix_reservations_table_date", "table_id", "reservation_date"),
        Index("ix_reservations_guest_status", "guest_profile_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Reservation(id={self.id}, code='{self.confirmation_code}', "
            f"date={self.reservation_date}, time={self.start_time}, "
            f"party={self.party_size}, status='{self.status}')>"
        )


class AuditLog(Base):
    """Append-only trail of reservation state changes."""

    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reservation_id: Mapped[UUID] = mapped_column(
        ForeignKey("reservations.id"), nullable=False, index=True
    )
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    actor_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    changes: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    __table_args__ = (
        Index("ix_audit_log_reservation_created", "reservation_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, action='{self.action}', "
            f"reservation_id={self.reservation_id}, actor='{self.actor_id}')>"
        )
