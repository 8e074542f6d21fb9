"""
Allocation transaction: decide and commit a table booking atomically.

Every attempt runs in its own database transaction. SQLite transactions
start with BEGIN IMMEDIATE (see db.session), PostgreSQL attempts run at
SERIALIZABLE isolation and take an advisory lock keyed by
(restaurant, date, shift) before reading reservations. Lost races,
serialization failures and confirmation-code collisions are retried with
exponential backoff; lock timeouts surface as BusyError.
"""

import hashlib
import logging
import secrets
import time as time_module
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Callable, List, Optional, TypeVar
from uuid import UUID

from sqlalchemy import func, select, text
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session, selectinload, sessionmaker

from core.exceptions import (
    BusyError,
    ConflictError,
    InvalidInputError,
    NotAvailableError,
    NotFoundError,
    ReservationError,
)
from core.logging import LogContext
from core.settings import settings
from core.utils_datetime import add_minutes, get_current_datetime
from db.models_sqlalchemy import (
    AuditLog,
    Area,
    DiningTable,
    Reservation,
    Restaurant,
    Shift,
)
from domain.enums import AuditAction, RejectionReason, ReservationStatus
from domain.models import GuestInfo
from services import table_allocator
from services.guest_profiles import get_or_create_guest_profile
from services.policy_evaluator import evaluate_booking_time
from services.scheduling import find_block, resolve_shift, service_datetime


logger = logging.getLogger(__name__)

T = TypeVar("T")

# Alphabet without look-alike characters (0/O, 1/I/L)
CONFIRMATION_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"

ACTIVE_STATUSES = [s.value for s in ReservationStatus.active()]

# SQLSTATEs meaning "another transaction won, try again"
RETRYABLE_SQLSTATES = {"40001", "40P01"}
LOCK_TIMEOUT_SQLSTATES = {"55P03"}


@dataclass
class AllocationRequest:
    """What is being asked for."""
    restaurant_id: UUID
    reservation_date: date
    start_time: time
    party_size: int
    exclude_reservation_id: Optional[UUID] = None
    original_start: Optional[datetime] = None


@dataclass
class Allocation:
    """A table and shift that can honor a request, decided inside a transaction."""
    restaurant: Restaurant
    table: DiningTable
    shift: Shift
    reservation_date: date
    start_time: time
    end_time: time
    party_size: int
    starts_at: datetime
    exclude_reservation_id: Optional[UUID] = None


def generate_confirmation_code(length: int = settings.confirmation_code_length) -> str:
    return "".join(secrets.choice(CONFIRMATION_ALPHABET) for _ in range(length))


def advisory_lock_key(restaurant_id: UUID, reservation_date: date, shift_id: UUID) -> int:
    """Signed 64-bit key for pg_advisory_xact_lock."""
    raw = f"{restaurant_id}:{reservation_date.isoformat()}:{shift_id}".encode()
    return int.from_bytes(hashlib.blake2b(raw, digest_size=8).digest(), "big", signed=True)


def _sqlstate(exc: DBAPIError) -> Optional[str]:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def translate_store_error(exc: DBAPIError) -> ReservationError:
    """
    Map a driver error to the engine's error kinds.

    Raises the original error again when it is not a concurrency failure.
    """
    state = _sqlstate(exc)
    message = str(getattr(exc, "orig", exc)).lower()

    if state in LOCK_TIMEOUT_SQLSTATES or "database is locked" in message:
        return BusyError("Reservation system is busy, please retry")
    if state in RETRYABLE_SQLSTATES or "could not serialize" in message or "deadlock" in message:
        return ConflictError("Concurrent update detected")
    if isinstance(exc, IntegrityError) and "confirmation_code" in message:
        return ConflictError("Confirmation code collision")
    raise exc


class AllocationTransaction:
    """
    Runs allocation work under retry and store-level isolation.

    Args:
        session_factory: Factory producing one session per attempt
        clock: Returns the current aware datetime
        duration_minutes: Fixed table occupancy per reservation
        max_attempts: Attempts before a conflict is surfaced
        backoff_seconds: Base of the exponential backoff between attempts
        lock_timeout_seconds: How long an attempt may wait for its lock
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        clock: Optional[Callable[[], datetime]] = None,
        duration_minutes: int = settings.reservation_duration_minutes,
        max_attempts: int = settings.allocation_max_attempts,
        backoff_seconds: float = settings.allocation_backoff_seconds,
        lock_timeout_seconds: float = settings.lock_timeout_seconds,
        code_length: int = settings.confirmation_code_length,
    ):
        self.session_factory = session_factory
        self.clock = clock or get_current_datetime
        self.duration_minutes = duration_minutes
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.lock_timeout_seconds = lock_timeout_seconds
        self.code_length = code_length

    # ------------------------------------------------------------------
    # Transaction runner
    # ------------------------------------------------------------------

    def execute(self, work: Callable[[Session], T], read_only: bool = False) -> T:
        """
        Run ``work`` in a fresh transaction, retrying lost races.

        Read-only work is rolled back and never retried; ``work`` must
        return plain values in that case since loaded rows are expired.
        """
        last_conflict: Optional[ConflictError] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                return self._attempt(work, read_only)
            except ConflictError as exc:
                last_conflict = exc
                if read_only or attempt == self.max_attempts:
                    break
                delay = self.backoff_seconds * (2 ** (attempt - 1))
                logger.warning(
                    "Allocation conflict, retrying",
                    extra={"attempt": attempt, "delay_seconds": delay, "detail": exc.message},
                )
                time_module.sleep(delay)

        logger.warning(
            "Allocation conflict not resolved",
            extra={"attempts": self.max_attempts, "detail": last_conflict.message},
        )
        raise ConflictError(
            "Could not complete the booking because of concurrent requests, please retry",
            details={"attempts": self.max_attempts},
        )

    def _attempt(self, work: Callable[[Session], T], read_only: bool) -> T:
        session = self.session_factory()
        try:
            self._prepare(session)
            result = work(session)
            if read_only:
                session.rollback()
            else:
                session.commit()
            return result
        except DBAPIError as exc:
            session.rollback()
            error = translate_store_error(exc)
            if isinstance(error, BusyError):
                logger.warning("Allocation lock timeout", extra={"detail": str(exc.orig)})
            raise error from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _prepare(self, session: Session) -> None:
        if session.get_bind().dialect.name == "postgresql":
            session.connection(execution_options={"isolation_level": "SERIALIZABLE"})
            session.execute(text(f"SET LOCAL lock_timeout = '{int(self.lock_timeout_seconds * 1000)}ms'"))

    def lock_shift(self, session: Session, restaurant_id: UUID, reservation_date: date, shift_id: UUID) -> None:
        """Serialize allocations for one shift on one date (PostgreSQL only)."""
        if session.get_bind().dialect.name != "postgresql":
            return
        key = advisory_lock_key(restaurant_id, reservation_date, shift_id)
        session.execute(select(func.pg_advisory_xact_lock(key)))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def load_restaurant(self, session: Session, restaurant_id: UUID) -> Restaurant:
        restaurant = session.get(
            Restaurant,
            restaurant_id,
            options=[
                selectinload(Restaurant.policy),
                selectinload(Restaurant.shifts),
                selectinload(Restaurant.blocks),
            ],
        )
        if restaurant is None:
            raise NotFoundError(f"Restaurant {restaurant_id} not found")
        return restaurant

    def active_reservations(
        self,
        session: Session,
        restaurant_id: UUID,
        reservation_date: date,
        exclude_reservation_id: Optional[UUID] = None,
        table_id: Optional[UUID] = None,
        shift_id: Optional[UUID] = None,
    ) -> List[Reservation]:
        query = select(Reservation).where(
            Reservation.restaurant_id == restaurant_id,
            Reservation.reservation_date == reservation_date,
            Reservation.status.in_(ACTIVE_STATUSES),
        )
        if exclude_reservation_id is not None:
            query = query.where(Reservation.id != exclude_reservation_id)
        if table_id is not None:
            query = query.where(Reservation.table_id == table_id)
        if shift_id is not None:
            query = query.where(Reservation.shift_id == shift_id)
        return list(session.scalars(query))

    def eligible_tables(self, session: Session, restaurant_id: UUID, party_size: int) -> List[DiningTable]:
        return list(session.scalars(
            select(DiningTable)
            .join(Area, DiningTable.area_id == Area.id)
            .where(
                DiningTable.restaurant_id == restaurant_id,
                DiningTable.is_active.is_(True),
                Area.is_active.is_(True),
                DiningTable.min_seats <= party_size,
                DiningTable.max_seats >= party_size,
            )
        ))

    # ------------------------------------------------------------------
    # Allocate (steps 1-9)
    # ------------------------------------------------------------------

    def allocate(self, session: Session, request: AllocationRequest, lock: bool = True) -> Allocation:
        """
        Decide which table and shift can honor ``request``.

        Raises:
            InvalidInputError: Party size below one
            NotFoundError: Unknown restaurant
            NotAvailableError: Any policy, block, shift, capacity or table rejection
        """
        if request.party_size < 1:
            raise InvalidInputError("Party size must be at least 1")

        restaurant = self.load_restaurant(session, request.restaurant_id)
        day, start = request.reservation_date, request.start_time

        # The instant depends on whether the time sits after midnight of an
        # overnight shift; rejections below still follow the documented order.
        try:
            covering = resolve_shift(restaurant.shifts, day, start)
        except NotAvailableError:
            covering = None
        starts_at = service_datetime(day, start, covering, restaurant.timezone)

        decision = evaluate_booking_time(
            starts_at, self.clock(), restaurant.policy, original_start=request.original_start
        )
        if not decision.accepted:
            raise NotAvailableError(decision.reason, decision.message)

        block = find_block(restaurant.blocks, day, start)
        if block is not None:
            raise NotAvailableError(
                RejectionReason.CLOSED,
                "Restaurant is closed for this time",
                details={"block_reason": block.reason} if block.reason else None,
            )

        shift = resolve_shift(restaurant.shifts, day, start)
        if shift is None:
            raise NotAvailableError(RejectionReason.NO_SERVICE, "No service during this time")

        if lock:
            self.lock_shift(session, restaurant.id, day, shift.id)

        if shift.max_covers is not None:
            in_shift = self.active_reservations(
                session, restaurant.id, day,
                exclude_reservation_id=request.exclude_reservation_id,
                shift_id=shift.id,
            )
            committed = table_allocator.committed_covers(in_shift)
            if table_allocator.exceeds_covers(committed, request.party_size, shift.max_covers):
                raise NotAvailableError(
                    RejectionReason.SHIFT_FULLY_BOOKED,
                    "Shift is fully booked",
                    details={"committed_covers": committed, "max_covers": shift.max_covers},
                )

        tables = self.eligible_tables(session, restaurant.id, request.party_size)
        interval = table_allocator.candidate_interval(shift, start, self.duration_minutes)
        existing = self.active_reservations(
            session, restaurant.id, day, exclude_reservation_id=request.exclude_reservation_id
        )
        shifts_by_id = {s.id: s for s in restaurant.shifts}
        busy = table_allocator.busy_table_ids(existing, interval, shifts_by_id)

        ranked = table_allocator.rank_tables(tables, request.party_size, busy)
        if not ranked:
            raise NotAvailableError(RejectionReason.NO_TABLES, "No tables available for this party size")

        return Allocation(
            restaurant=restaurant,
            table=ranked[0],
            shift=shift,
            reservation_date=day,
            start_time=start,
            end_time=add_minutes(start, self.duration_minutes),
            party_size=request.party_size,
            starts_at=starts_at,
            exclude_reservation_id=request.exclude_reservation_id,
        )

    # ------------------------------------------------------------------
    # Commit (step 10)
    # ------------------------------------------------------------------

    def commit(
        self,
        session: Session,
        allocation: Allocation,
        guest: GuestInfo,
        actor_id: Optional[str] = None,
    ) -> Reservation:
        """Insert the reservation row for an allocation and record it in the audit log."""
        policy = allocation.restaurant.policy
        auto_confirm = policy.auto_confirm if policy is not None else True
        now = self.clock()

        profile = get_or_create_guest_profile(session, guest)
        reservation = Reservation(
            restaurant_id=allocation.restaurant.id,
            table_id=allocation.table.id,
            shift_id=allocation.shift.id,
            guest_profile_id=profile.id,
            reservation_date=allocation.reservation_date,
            start_time=allocation.start_time,
            end_time=allocation.end_time,
            party_size=allocation.party_size,
            status=(ReservationStatus.CONFIRMED if auto_confirm else ReservationStatus.PENDING).value,
            confirmation_code=generate_confirmation_code(self.code_length),
            guest_name=guest.name,
            guest_email=guest.email,
            guest_phone=guest.phone,
            occasion=guest.occasion,
            special_requests=guest.special_requests,
            confirmed_at=now if auto_confirm else None,
        )
        session.add(reservation)
        session.flush()

        self.verify_invariants(session, allocation, reservation)

        session.add(AuditLog(
            reservation_id=reservation.id,
            action=AuditAction.CREATED.value,
            actor_id=actor_id,
            changes={
                "status": {"before": None, "after": reservation.status},
                "table_id": str(allocation.table.id),
                "party_size": allocation.party_size,
            },
            created_at=now,
        ))
        session.flush()
        session.refresh(reservation)
        return reservation

    def verify_invariants(self, session: Session, allocation: Allocation, reservation: Reservation) -> None:
        """
        Re-read what was just written and abort if another booking slipped in.

        Raises:
            ConflictError: The table is double-booked or the shift is over its covers
        """
        restaurant_id = allocation.restaurant.id
        day = allocation.reservation_date
        shifts_by_id = {s.id: s for s in allocation.restaurant.shifts}

        own = table_allocator.reservation_interval(reservation, shifts_by_id)
        same_table = self.active_reservations(
            session, restaurant_id, day,
            exclude_reservation_id=reservation.id,
            table_id=reservation.table_id,
        )
        for other in same_table:
            if table_allocator.reservation_interval(other, shifts_by_id).overlaps(own):
                raise ConflictError(
                    "Table was booked by a concurrent request",
                    details={"table_id": str(reservation.table_id)},
                )

        shift = allocation.shift
        if shift.max_covers is not None:
            in_shift = self.active_reservations(session, restaurant_id, day, shift_id=shift.id)
            if table_allocator.committed_covers(in_shift) > shift.max_covers:
                raise ConflictError(
                    "Shift capacity was taken by a concurrent request",
                    details={"shift_id": str(shift.id)},
                )

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def allocate_and_commit(
        self,
        request: AllocationRequest,
        guest: GuestInfo,
        actor_id: Optional[str] = None,
    ) -> Reservation:
        def work(session: Session) -> Reservation:
            allocation = self.allocate(session, request)
            return self.commit(session, allocation, guest, actor_id)

        with LogContext(
            logger,
            restaurant_id=str(request.restaurant_id),
            service_date=request.reservation_date.isoformat(),
            party_size=request.party_size,
        ) as log_ctx:
            try:
                reservation = self.execute(work)
            except NotAvailableError as exc:
                log_ctx.log("info", "Allocation rejected", reason=exc.reason.value)
                raise
            log_ctx.log(
                "info",
                "Allocation committed",
                reservation_id=str(reservation.id),
                table_id=str(reservation.table_id),
            )
        return reservation
