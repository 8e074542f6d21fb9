"""
Reservation Service for the table allocation engine.
Entry point for collaborators: availability browsing, booking, modification,
table reassignment, lifecycle transitions and lookups.
"""
import logging
from datetime import date, datetime, time, timedelta
from typing import Callable, List, Optional, TypeVar, Union
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, sessionmaker

from core.exceptions import (
    InvalidInputError,
    InvalidTransitionError,
    NotAvailableError,
    NotFoundError,
)
from core.settings import settings
from core.utils_datetime import (
    format_time,
    get_current_datetime,
    get_timezone,
    parse_date,
    parse_time_of_day,
)
from db.models_sqlalchemy import AuditLog, DiningTable, GuestProfile, Reservation
from domain.enums import AuditAction, RejectionReason, ReservationStatus
from domain.models import AvailabilityResult, GuestInfo, SlotAvailability
from services import table_allocator
from services.allocation import AllocationRequest, AllocationTransaction, translate_store_error
from services.scheduling import service_datetime, shift_slots
from services.state_machine import (
    CANCEL,
    COMPLETE,
    CONFIRM,
    MARK_NO_SHOW,
    SEAT,
    ReservationStateMachine,
    Transition,
    append_audit_entry,
)


logger = logging.getLogger(__name__)

T = TypeVar("T")

DateLike = Union[str, date]
TimeLike = Union[str, time]

MODIFIABLE_STATUSES = (ReservationStatus.PENDING, ReservationStatus.CONFIRMED)


def _validate_party_size(party_size: int) -> int:
    if isinstance(party_size, bool) or not isinstance(party_size, int) or party_size < 1:
        raise InvalidInputError("Party size must be a positive integer")
    return party_size


class ReservationService:
    """Service for allocating tables and managing reservations."""

    def __init__(
        self,
        session_factory: sessionmaker,
        clock: Optional[Callable[[], datetime]] = None,
        duration_minutes: int = settings.reservation_duration_minutes,
        max_attempts: int = settings.allocation_max_attempts,
        backoff_seconds: float = settings.allocation_backoff_seconds,
        lock_timeout_seconds: float = settings.lock_timeout_seconds,
    ):
        """
        Initialize the reservation service.

        Args:
            session_factory: SQLAlchemy session factory owned by the process
            clock: Returns the current aware datetime (defaults to UTC now)
            duration_minutes: How long a reservation holds its table
            max_attempts: Bounded retries for lost allocation races
            backoff_seconds: Base delay of the exponential backoff
            lock_timeout_seconds: Wait limit before a booking reports busy
        """
        self.session_factory = session_factory
        self.clock = clock or get_current_datetime
        self.duration_minutes = duration_minutes
        self.allocator = AllocationTransaction(
            session_factory,
            clock=self.clock,
            duration_minutes=duration_minutes,
            max_attempts=max_attempts,
            backoff_seconds=backoff_seconds,
            lock_timeout_seconds=lock_timeout_seconds,
        )
        self.state_machine = ReservationStateMachine(self.clock)

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    def check_availability(
        self,
        restaurant_id: UUID,
        reservation_date: DateLike,
        start_time: TimeLike,
        party_size: int,
    ) -> AvailabilityResult:
        """
        Check whether a booking could be honored, without committing anything.

        Returns:
            AvailabilityResult with the table and shift that would be used,
            or the rejection reason
        """
        request = AllocationRequest(
            restaurant_id=restaurant_id,
            reservation_date=parse_date(reservation_date),
            start_time=parse_time_of_day(start_time),
            party_size=_validate_party_size(party_size),
        )

        def work(session: Session) -> AvailabilityResult:
            try:
                allocation = self.allocator.allocate(session, request, lock=False)
            except NotAvailableError as exc:
                return AvailabilityResult(available=False, reason=exc.reason, message=exc.message)
            return AvailabilityResult(
                available=True,
                table_id=allocation.table.id,
                table_number=allocation.table.number,
                shift_id=allocation.shift.id,
                shift_name=allocation.shift.name,
            )

        return self.allocator.execute(work, read_only=True)

    def list_available_slots(
        self,
        restaurant_id: UUID,
        reservation_date: DateLike,
        party_size: int,
    ) -> List[SlotAvailability]:
        """
        Every slot of every active shift on the date, each run through the
        availability check.

        Args:
            restaurant_id: Restaurant to browse
            reservation_date: Service date
            party_size: Size of the party

        Returns:
            Slots ordered by shift start, then time
        """
        day = parse_date(reservation_date)
        _validate_party_size(party_size)

        def work(session: Session) -> List[SlotAvailability]:
            restaurant = self.allocator.load_restaurant(session, restaurant_id)
            shifts = sorted(
                (s for s in restaurant.shifts if s.is_active and s.day_of_week == day.weekday()),
                key=lambda s: s.start_time,
            )

            slots = []
            for shift in shifts:
                for slot in shift_slots(shift):
                    request = AllocationRequest(
                        restaurant_id=restaurant_id,
                        reservation_date=day,
                        start_time=parse_time_of_day(slot),
                        party_size=party_size,
                    )
                    try:
                        self.allocator.allocate(session, request, lock=False)
                    except NotAvailableError as exc:
                        slots.append(SlotAvailability(
                            time=slot, available=False, shift_name=shift.name, reason=exc.reason
                        ))
                    else:
                        slots.append(SlotAvailability(time=slot, available=True, shift_name=shift.name))
            return slots

        return self.allocator.execute(work, read_only=True)

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------

    def create_reservation(
        self,
        restaurant_id: UUID,
        reservation_date: DateLike,
        start_time: TimeLike,
        party_size: int,
        guest: GuestInfo,
        actor_id: Optional[str] = None,
    ) -> Reservation:
        """
        Allocate a table and commit the reservation in one transaction.

        Raises:
            InvalidInputError: Malformed date, time or party size
            NotFoundError: Unknown restaurant
            NotAvailableError: The request cannot be honored
            ConflictError: Concurrent bookings kept winning the race
            BusyError: The allocation lock was not obtained in time
        """
        request = AllocationRequest(
            restaurant_id=restaurant_id,
            reservation_date=parse_date(reservation_date),
            start_time=parse_time_of_day(start_time),
            party_size=_validate_party_size(party_size),
        )
        reservation = self.allocator.allocate_and_commit(request, guest, actor_id)

        logger.info(
            "Reservation created",
            extra={
                "reservation_id": str(reservation.id),
                "restaurant_id": str(restaurant_id),
                "table_id": str(reservation.table_id),
                "party_size": reservation.party_size,
            },
        )
        return reservation

    def modify_reservation(
        self,
        reservation_id: UUID,
        reservation_date: Optional[DateLike] = None,
        start_time: Optional[TimeLike] = None,
        party_size: Optional[int] = None,
        actor_id: Optional[str] = None,
    ) -> Reservation:
        """
        Move a pending or confirmed reservation to a new date, time or party size.

        The venue's modification rules are checked against the original
        start; the new request then goes through the full allocation, not
        counting the reservation's own table and covers.
        """
        new_date = parse_date(reservation_date) if reservation_date is not None else None
        new_time = parse_time_of_day(start_time) if start_time is not None else None
        new_size = _validate_party_size(party_size) if party_size is not None else None

        def work(session: Session) -> Reservation:
            existing = self._get_for_update(session, reservation_id)
            if ReservationStatus(existing.status) not in MODIFIABLE_STATUSES:
                raise InvalidTransitionError(
                    "Only pending or confirmed reservations can be modified",
                    details={"status": existing.status},
                )

            restaurant = self.allocator.load_restaurant(session, existing.restaurant_id)
            shifts_by_id = {s.id: s for s in restaurant.shifts}
            original_start = service_datetime(
                existing.reservation_date,
                existing.start_time,
                shifts_by_id.get(existing.shift_id),
                restaurant.timezone,
            )

            request = AllocationRequest(
                restaurant_id=existing.restaurant_id,
                reservation_date=new_date if new_date is not None else existing.reservation_date,
                start_time=new_time if new_time is not None else existing.start_time,
                party_size=new_size or existing.party_size,
                exclude_reservation_id=existing.id,
                original_start=original_start,
            )
            allocation = self.allocator.allocate(session, request)

            before = {
                "reservation_date": existing.reservation_date.isoformat(),
                "start_time": format_time(existing.start_time),
                "party_size": existing.party_size,
                "table_id": str(existing.table_id),
            }
            existing.reservation_date = allocation.reservation_date
            existing.start_time = allocation.start_time
            existing.end_time = allocation.end_time
            existing.party_size = allocation.party_size
            existing.table_id = allocation.table.id
            existing.shift_id = allocation.shift.id
            session.flush()

            self.allocator.verify_invariants(session, allocation, existing)

            after = {
                "reservation_date": existing.reservation_date.isoformat(),
                "start_time": format_time(existing.start_time),
                "party_size": existing.party_size,
                "table_id": str(existing.table_id),
            }
            append_audit_entry(
                session, existing.id, AuditAction.MODIFIED, actor_id,
                {"before": before, "after": after}, self.clock(),
            )
            session.flush()
            session.refresh(existing)
            return existing

        reservation = self.allocator.execute(work)
        logger.info("Reservation modified", extra={"reservation_id": str(reservation_id)})
        return reservation

    def reassign_table(
        self,
        reservation_id: UUID,
        table_id: UUID,
        actor_id: Optional[str] = None,
    ) -> Reservation:
        """
        Staff move of a reservation to another table.

        Raises:
            NotFoundError: Unknown reservation or table
            InvalidTransitionError: Reservation is no longer active
            NotAvailableError: Table unsuitable or already booked at that time
        """
        def work(session: Session) -> Reservation:
            reservation = self._get_for_update(session, reservation_id)
            if ReservationStatus(reservation.status) not in ReservationStatus.active():
                raise InvalidTransitionError(
                    "Only active reservations can change tables",
                    details={"status": reservation.status},
                )

            table = session.get(DiningTable, table_id)
            if table is None or table.restaurant_id != reservation.restaurant_id:
                raise NotFoundError(f"Table {table_id} not found")
            if not table.area.is_active or not table_allocator.fits_party(table, reservation.party_size):
                raise NotAvailableError(
                    RejectionReason.TABLE_UNSUITABLE,
                    f"Table {table.number} cannot seat a party of {reservation.party_size}",
                )
            if table.id == reservation.table_id:
                return reservation

            restaurant = self.allocator.load_restaurant(session, reservation.restaurant_id)
            if reservation.shift_id is not None:
                self.allocator.lock_shift(
                    session, restaurant.id, reservation.reservation_date, reservation.shift_id
                )

            shifts_by_id = {s.id: s for s in restaurant.shifts}
            own = table_allocator.reservation_interval(reservation, shifts_by_id)
            others = self.allocator.active_reservations(
                session, restaurant.id, reservation.reservation_date,
                exclude_reservation_id=reservation.id,
                table_id=table.id,
            )
            if table_allocator.busy_table_ids(others, own, shifts_by_id):
                raise NotAvailableError(
                    RejectionReason.TABLE_UNSUITABLE,
                    f"Table {table.number} is already booked at this time",
                )

            previous_table_id = reservation.table_id
            reservation.table_id = table.id
            append_audit_entry(
                session, reservation.id, AuditAction.TABLE_REASSIGNED, actor_id,
                {"table_id": {"before": str(previous_table_id), "after": str(table.id)}},
                self.clock(),
            )
            session.flush()
            session.refresh(reservation)
            return reservation

        reservation = self.allocator.execute(work)
        logger.info(
            "Reservation table reassigned",
            extra={"reservation_id": str(reservation_id), "table_id": str(table_id)},
        )
        return reservation

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def confirm(self, reservation_id: UUID, actor_id: Optional[str] = None) -> Reservation:
        return self._transition(reservation_id, CONFIRM, actor_id)

    def seat(self, reservation_id: UUID, actor_id: Optional[str] = None) -> Reservation:
        return self._transition(reservation_id, SEAT, actor_id)

    def complete(self, reservation_id: UUID, actor_id: Optional[str] = None) -> Reservation:
        """Finish a seated reservation and rebuild the guest's visit statistics."""
        return self._transition(reservation_id, COMPLETE, actor_id)

    def mark_no_show(self, reservation_id: UUID, actor_id: Optional[str] = None) -> Reservation:
        return self._transition(reservation_id, MARK_NO_SHOW, actor_id)

    def cancel(
        self,
        reservation_id: UUID,
        actor_id: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Reservation:
        """
        Cancel a reservation.

        Cancelling an already-cancelled reservation succeeds without
        changing anything, so duplicate client retries are harmless.
        """
        def work(session: Session) -> Reservation:
            reservation = self._get_for_update(session, reservation_id)
            if reservation.status == ReservationStatus.CANCELLED.value:
                logger.info(
                    "Reservation already cancelled",
                    extra={"reservation_id": str(reservation_id)},
                )
                return reservation
            try:
                return self.state_machine.apply(
                    session, reservation_id, CANCEL, actor_id,
                    values={"cancellation_reason": reason},
                )
            except InvalidTransitionError:
                # A concurrent cancel may have committed after our read
                current = session.get(Reservation, reservation_id, populate_existing=True)
                if current is not None and current.status == ReservationStatus.CANCELLED.value:
                    logger.info(
                        "Reservation cancelled concurrently",
                        extra={"reservation_id": str(reservation_id)},
                    )
                    return current
                raise

        return self._in_transaction(work)

    def _transition(self, reservation_id: UUID, transition: Transition, actor_id: Optional[str]) -> Reservation:
        return self._in_transaction(
            lambda session: self.state_machine.apply(session, reservation_id, transition, actor_id)
        )

    def _in_transaction(self, work: Callable[[Session], T]) -> T:
        """Single attempt; transitions are guarded by their status precondition instead of retries."""
        session = self.session_factory()
        try:
            result = work(session)
            session.commit()
            return result
        except DBAPIError as exc:
            session.rollback()
            raise translate_store_error(exc) from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _get_for_update(self, session: Session, reservation_id: UUID) -> Reservation:
        reservation = session.get(Reservation, reservation_id)
        if reservation is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")
        return reservation

    def get_reservation(self, reservation_id: UUID) -> Reservation:
        """
        Get a reservation by ID.

        Raises:
            NotFoundError: If reservation not found
        """
        with self.session_factory() as session:
            return self._get_for_update(session, reservation_id)

    def find_by_confirmation_code(self, code: str) -> Reservation:
        with self.session_factory() as session:
            reservation = session.scalars(
                select(Reservation).where(Reservation.confirmation_code == code.strip().upper())
            ).first()
            if reservation is None:
                raise NotFoundError("Reservation not found")
            return reservation

    def list_reservations(
        self,
        restaurant_id: UUID,
        reservation_date: Optional[DateLike] = None,
        status: Optional[ReservationStatus] = None,
    ) -> List[Reservation]:
        """
        List reservations of a restaurant.

        Args:
            restaurant_id: Restaurant to list
            reservation_date: Only this service date (optional)
            status: Only this status (optional)

        Returns:
            Reservations ordered by date and start time
        """
        query = select(Reservation).where(Reservation.restaurant_id == restaurant_id)
        if reservation_date is not None:
            query = query.where(Reservation.reservation_date == parse_date(reservation_date))
        if status is not None:
            query = query.where(Reservation.status == ReservationStatus(status).value)
        query = query.order_by(Reservation.reservation_date, Reservation.start_time)

        with self.session_factory() as session:
            return list(session.scalars(query))

    def get_audit_trail(self, reservation_id: UUID) -> List[AuditLog]:
        """Audit entries of a reservation, oldest first. For display only."""
        with self.session_factory() as session:
            return list(session.scalars(
                select(AuditLog)
                .where(AuditLog.reservation_id == reservation_id)
                .order_by(AuditLog.created_at, AuditLog.id)
            ))

    def find_no_show_candidates(
        self,
        restaurant_id: UUID,
        now: Optional[datetime] = None,
        grace_minutes: int = 15,
    ) -> List[Reservation]:
        """
        Confirmed reservations whose start plus ``grace_minutes`` has passed.

        Used by the external no-show job, which then calls ``mark_no_show``.
        """
        now = now or self.clock()

        with self.session_factory() as session:
            restaurant = self.allocator.load_restaurant(session, restaurant_id)
            shifts_by_id = {s.id: s for s in restaurant.shifts}
            local_today = now.astimezone(get_timezone(restaurant.timezone)).date()

            confirmed = session.scalars(
                select(Reservation).where(
                    Reservation.restaurant_id == restaurant_id,
                    Reservation.status == ReservationStatus.CONFIRMED.value,
                    Reservation.reservation_date <= local_today,
                ).order_by(Reservation.reservation_date, Reservation.start_time)
            )

            overdue = []
            for reservation in confirmed:
                starts_at = service_datetime(
                    reservation.reservation_date,
                    reservation.start_time,
                    shifts_by_id.get(reservation.shift_id),
                    restaurant.timezone,
                )
                if starts_at + timedelta(minutes=grace_minutes) <= now:
                    overdue.append(reservation)
            return overdue

    def get_guest_profile(self, guest_profile_id: UUID) -> GuestProfile:
        with self.session_factory() as session:
            profile = session.get(GuestProfile, guest_profile_id)
            if profile is None:
                raise NotFoundError(f"Guest profile {guest_profile_id} not found")
            return profile
