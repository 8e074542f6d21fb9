"""Tests for reservation changes, table reassignment and lookups."""
from datetime import datetime, time
from uuid import uuid4

import pytest
import pytz

from core.exceptions import InvalidTransitionError, NotAvailableError, NotFoundError
from db.models_sqlalchemy import Policy
from domain.enums import AuditAction, RejectionReason, ReservationStatus
from tests.conftest import FIXED_NOW, FRIDAY, MONDAY


@pytest.mark.integration
class TestModifyReservation:
    """Moving a reservation to another time or party size."""

    def test_modify_time(self, book, reservation_service):
        """Test a new time is allocated and the change is audited."""
        reservation = book("19:00", party_size=2)

        modified = reservation_service.modify_reservation(reservation.id, start_time="20:00", actor_id="guest")

        assert modified.start_time == time(20, 0)
        assert modified.end_time == time(22, 0)
        assert modified.confirmation_code == reservation.confirmation_code

        trail = reservation_service.get_audit_trail(reservation.id)
        assert trail[-1].action == AuditAction.MODIFIED.value
        assert trail[-1].changes["before"]["start_time"] == "19:00"
        assert trail[-1].changes["after"]["start_time"] == "20:00"

    def test_modify_does_not_conflict_with_itself(self, book, reservation_service, venue):
        """Test moving by 30 minutes keeps the only fitting table."""
        reservation = book("19:00", party_size=6)

        modified = reservation_service.modify_reservation(reservation.id, start_time="19:30")

        assert modified.table_id == venue.tables["4"]

    def test_modify_party_size_changes_table(self, book, reservation_service, venue):
        reservation = book("19:00", party_size=2)

        modified = reservation_service.modify_reservation(reservation.id, party_size=5)

        assert modified.table_id == venue.tables["4"]
        assert modified.party_size == 5

    def test_modify_to_other_shift(self, book, reservation_service, venue):
        reservation = book("19:00")

        modified = reservation_service.modify_reservation(reservation.id, start_time="12:30")

        assert modified.shift_id == venue.shifts["Lunch"]

    def test_modify_rejected_keeps_original(self, book, reservation_service):
        """Test a rejected change leaves the reservation untouched."""
        book("19:00", party_size=6)
        mine = book("21:00", party_size=6)

        with pytest.raises(NotAvailableError) as exc_info:
            reservation_service.modify_reservation(mine.id, start_time="20:00")

        assert exc_info.value.reason == RejectionReason.NO_TABLES
        assert reservation_service.get_reservation(mine.id).start_time == time(21, 0)

    def test_modifications_disabled(self, book, reservation_service, update_row, venue):
        reservation = book("19:00")
        update_row(Policy, venue.policy_id, allow_modifications=False)

        with pytest.raises(NotAvailableError) as exc_info:
            reservation_service.modify_reservation(reservation.id, start_time="20:00")

        assert exc_info.value.reason == RejectionReason.MODIFICATIONS_DISABLED

    def test_modification_cutoff(self, book, reservation_service, clock):
        """Test the cutoff is measured against the original start."""
        reservation = book("12:00", reservation_date=FIXED_NOW.date())
        clock.now = datetime(2025, 6, 2, 10, 30, tzinfo=pytz.utc)

        with pytest.raises(NotAvailableError) as exc_info:
            reservation_service.modify_reservation(reservation.id, start_time="13:00")

        assert exc_info.value.reason == RejectionReason.MODIFICATION_CUTOFF_PASSED

    def test_cancelled_cannot_be_modified(self, book, reservation_service):
        reservation = book("19:00")
        reservation_service.cancel(reservation.id)

        with pytest.raises(InvalidTransitionError):
            reservation_service.modify_reservation(reservation.id, start_time="20:00")


@pytest.mark.integration
class TestReassignTable:
    """Staff moving a reservation to another table."""

    def test_reassign(self, book, reservation_service, venue):
        reservation = book("19:00", party_size=2)

        moved = reservation_service.reassign_table(reservation.id, venue.tables["3"], actor_id="host-1")

        assert moved.table_id == venue.tables["3"]
        trail = reservation_service.get_audit_trail(reservation.id)
        assert trail[-1].action == AuditAction.TABLE_REASSIGNED.value
        assert trail[-1].changes["table_id"]["after"] == str(venue.tables["3"])

    def test_reassign_outside_seat_range(self, book, reservation_service, venue):
        reservation = book("19:00", party_size=4)

        with pytest.raises(NotAvailableError) as exc_info:
            reservation_service.reassign_table(reservation.id, venue.tables["1"])

        assert exc_info.value.reason == RejectionReason.TABLE_UNSUITABLE

    def test_reassign_inactive_table(self, book, reservation_service, venue):
        reservation = book("19:00", party_size=2)

        with pytest.raises(NotAvailableError):
            reservation_service.reassign_table(reservation.id, venue.tables["5"])

    def test_reassign_onto_booked_table(self, book, reservation_service, venue):
        """Test a move that would double-book the target table is refused."""
        first = book("19:00", party_size=2)
        second = book("19:30", party_size=2)
        assert second.table_id == venue.tables["2"]

        with pytest.raises(NotAvailableError) as exc_info:
            reservation_service.reassign_table(first.id, venue.tables["2"])

        assert exc_info.value.reason == RejectionReason.TABLE_UNSUITABLE
        assert reservation_service.get_reservation(first.id).table_id == venue.tables["1"]

    def test_reassign_unknown_table(self, book, reservation_service):
        reservation = book("19:00")

        with pytest.raises(NotFoundError):
            reservation_service.reassign_table(reservation.id, uuid4())


@pytest.mark.integration
class TestLookups:
    """Read-only queries."""

    def test_get_reservation_not_found(self, reservation_service):
        with pytest.raises(NotFoundError):
            reservation_service.get_reservation(uuid4())

    def test_find_by_confirmation_code(self, book, reservation_service):
        reservation = book("19:00")

        found = reservation_service.find_by_confirmation_code(reservation.confirmation_code.lower())

        assert found.id == reservation.id

    def test_find_by_unknown_code(self, reservation_service):
        with pytest.raises(NotFoundError):
            reservation_service.find_by_confirmation_code("NOPE2345")

    def test_list_reservations(self, book, reservation_service, venue):
        """Test filters by date and status, ordered by start time."""
        late = book("20:00")
        early = book("12:00")
        book("23:00", reservation_date=FRIDAY)
        reservation_service.cancel(late.id)

        monday = reservation_service.list_reservations(venue.restaurant_id, MONDAY)
        confirmed = reservation_service.list_reservations(
            venue.restaurant_id, MONDAY, ReservationStatus.CONFIRMED
        )

        assert [r.id for r in monday] == [early.id, late.id]
        assert [r.id for r in confirmed] == [early.id]
        assert len(reservation_service.list_reservations(venue.restaurant_id)) == 3


@pytest.mark.integration
class TestNoShowCandidates:
    """Confirmed reservations past their start plus grace."""

    def test_grace_period(self, book, reservation_service, venue):
        reservation = book("12:00", reservation_date=FIXED_NOW.date())

        before = reservation_service.find_no_show_candidates(
            venue.restaurant_id, datetime(2025, 6, 2, 12, 10, tzinfo=pytz.utc), grace_minutes=15
        )
        after = reservation_service.find_no_show_candidates(
            venue.restaurant_id, datetime(2025, 6, 2, 12, 20, tzinfo=pytz.utc), grace_minutes=15
        )

        assert before == []
        assert [r.id for r in after] == [reservation.id]

    def test_seated_and_marked_excluded(self, book, reservation_service, venue):
        seated = book("12:00", reservation_date=FIXED_NOW.date())
        missed = book("12:30", reservation_date=FIXED_NOW.date())
        reservation_service.seat(seated.id)
        reservation_service.mark_no_show(missed.id)

        overdue = reservation_service.find_no_show_candidates(
            venue.restaurant_id, datetime(2025, 6, 2, 14, 0, tzinfo=pytz.utc)
        )

        assert overdue == []

    def test_after_midnight_start(self, book, reservation_service, venue):
        """Test a 01:00 booking of a Friday late shift starts on Saturday."""
        reservation = book("01:00", reservation_date=FRIDAY)

        friday_night = reservation_service.find_no_show_candidates(
            venue.restaurant_id, datetime(2025, 6, 6, 23, 0, tzinfo=pytz.utc)
        )
        saturday = reservation_service.find_no_show_candidates(
            venue.restaurant_id, datetime(2025, 6, 7, 1, 30, tzinfo=pytz.utc)
        )

        assert friday_night == []
        assert [r.id for r in saturday] == [reservation.id]
