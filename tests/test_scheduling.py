"""Unit tests for shift resolution, closure blocks and slot generation."""
from datetime import date, datetime, time
from types import SimpleNamespace

import pytest
import pytz

from core.exceptions import NotAvailableError
from domain.enums import RejectionReason
from services.scheduling import (
    SlotSequence,
    find_block,
    is_blocked,
    resolve_shift,
    service_datetime,
    service_offset,
    window_contains,
)


FRIDAY = date(2025, 6, 6)
MONDAY = date(2025, 6, 9)


def make_shift(name, day_of_week, start, end, is_active=True, slot=30):
    return SimpleNamespace(
        name=name,
        day_of_week=day_of_week,
        start_time=start,
        end_time=end,
        slot_duration_minutes=slot,
        is_active=is_active,
    )


def make_block(start_date, end_date=None, start_time=None, end_time=None, reason=None):
    return SimpleNamespace(
        start_date=start_date,
        end_date=end_date or start_date,
        start_time=start_time,
        end_time=end_time,
        reason=reason,
    )


LATE_NIGHT = make_shift("Late Night", 4, time(22, 0), time(2, 0))
DINNER = make_shift("Dinner", 0, time(18, 0), time(22, 0))


@pytest.mark.unit
class TestWindowContains:
    """Half-open window membership with overnight wrap."""

    @pytest.mark.parametrize("value,expected", [
        (time(22, 0), True),
        (time(23, 30), True),
        (time(1, 0), True),
        (time(1, 59), True),
        (time(2, 0), False),
        (time(10, 0), False),
        (time(21, 59), False),
    ])
    def test_overnight_window(self, value, expected):
        """Test 22:00-02:00 covers late evening and early morning only."""
        assert window_contains(time(22, 0), time(2, 0), value) is expected

    def test_same_day_window_end_exclusive(self):
        """Test the end of a same-day window is excluded."""
        assert window_contains(time(18, 0), time(22, 0), time(18, 0)) is True
        assert window_contains(time(18, 0), time(22, 0), time(22, 0)) is False


@pytest.mark.unit
class TestShiftResolver:
    """Finding the covering shift."""

    def test_resolves_overnight_shift(self):
        """Test both sides of midnight resolve to the overnight shift."""
        assert resolve_shift([LATE_NIGHT], FRIDAY, time(23, 30)) is LATE_NIGHT
        assert resolve_shift([LATE_NIGHT], FRIDAY, time(1, 0)) is LATE_NIGHT

    def test_no_service(self):
        """Test a time outside every shift yields None."""
        assert resolve_shift([LATE_NIGHT], FRIDAY, time(10, 0)) is None

    def test_other_weekday_ignored(self):
        """Test shifts of another weekday do not match."""
        assert resolve_shift([DINNER], FRIDAY, time(19, 0)) is None

    def test_inactive_shift_ignored(self):
        """Test inactive shifts are skipped."""
        inactive = make_shift("Dinner", 0, time(18, 0), time(22, 0), is_active=False)
        assert resolve_shift([inactive], MONDAY, time(19, 0)) is None

    def test_overlapping_shifts_rejected(self):
        """Test two active shifts covering the same time are a configuration error."""
        early = make_shift("Early Dinner", 0, time(17, 0), time(20, 0))

        with pytest.raises(NotAvailableError) as exc_info:
            resolve_shift([DINNER, early], MONDAY, time(19, 0))

        assert exc_info.value.reason == RejectionReason.SHIFT_CONFIGURATION_ERROR

    def test_adjacent_shifts_not_ambiguous(self):
        """Test back-to-back shifts share no minute."""
        late = make_shift("Late", 0, time(22, 0), time(23, 30))
        assert resolve_shift([DINNER, late], MONDAY, time(22, 0)) is late


@pytest.mark.unit
class TestServiceDay:
    """Placement of times on the service-day timeline."""

    def test_offset_after_midnight(self):
        """Test 01:00 in an overnight shift is 25 hours into the service day."""
        assert service_offset(LATE_NIGHT, time(1, 0)) == 25 * 60
        assert service_offset(LATE_NIGHT, time(23, 0)) == 23 * 60

    def test_offset_without_shift(self):
        assert service_offset(None, time(1, 0)) == 60

    def test_datetime_after_midnight_is_next_calendar_day(self):
        """Test the instant of an after-midnight booking falls on the next day."""
        moment = service_datetime(FRIDAY, time(1, 0), LATE_NIGHT, "Europe/Bratislava")

        assert moment.date() == date(2025, 6, 7)
        assert moment == pytz.timezone("Europe/Bratislava").localize(datetime(2025, 6, 7, 1, 0))

    def test_datetime_before_midnight_same_day(self):
        moment = service_datetime(FRIDAY, time(23, 0), LATE_NIGHT, "UTC")

        assert moment == datetime(2025, 6, 6, 23, 0, tzinfo=pytz.utc)


@pytest.mark.unit
class TestBlockChecker:
    """Closures over date ranges and time windows."""

    def test_full_day_block(self):
        """Test a block without times closes the whole day."""
        block = make_block(MONDAY, reason="Private event")

        assert find_block([block], MONDAY, time(12, 0)) is block
        assert is_blocked([block], MONDAY, time(23, 0)) is True

    def test_block_with_one_time_closes_whole_day(self):
        """Test a block missing either time is treated as all-day."""
        block = make_block(MONDAY, start_time=time(18, 0))

        assert is_blocked([block], MONDAY, time(9, 0)) is True

    def test_timed_block(self):
        """Test a timed block closes only its window."""
        block = make_block(MONDAY, start_time=time(18, 0), end_time=time(20, 0))

        assert is_blocked([block], MONDAY, time(19, 0)) is True
        assert is_blocked([block], MONDAY, time(20, 0)) is False
        assert is_blocked([block], MONDAY, time(12, 0)) is False

    def test_date_range_inclusive(self):
        """Test both ends of the date range are blocked."""
        block = make_block(date(2025, 6, 6), end_date=date(2025, 6, 9))

        assert is_blocked([block], date(2025, 6, 6), time(12, 0)) is True
        assert is_blocked([block], date(2025, 6, 9), time(12, 0)) is True
        assert is_blocked([block], date(2025, 6, 10), time(12, 0)) is False

    def test_overnight_timed_block(self):
        block = make_block(FRIDAY, start_time=time(23, 0), end_time=time(1, 0))

        assert is_blocked([block], FRIDAY, time(0, 30)) is True
        assert is_blocked([block], FRIDAY, time(1, 30)) is False


@pytest.mark.unit
class TestSlotSequence:
    """Bookable times generated lazily per shift."""

    def test_same_day_slots(self):
        """Test slots run from start inclusive to end exclusive."""
        slots = SlotSequence(time(18, 0), time(20, 0), 30)

        assert list(slots) == ["18:00", "18:30", "19:00", "19:30"]
        assert len(slots) == 4

    def test_overnight_slots(self):
        """Test slots of an overnight shift wrap past midnight."""
        slots = SlotSequence(time(22, 0), time(2, 0), 60)

        assert list(slots) == ["22:00", "23:00", "00:00", "01:00"]

    def test_uneven_step(self):
        """Test the last slot is the final step before the end."""
        slots = SlotSequence(time(18, 0), time(19, 0), 25)

        assert list(slots) == ["18:00", "18:25", "18:50"]
        assert len(slots) == 3

    def test_restartable(self):
        """Test iterating twice yields the same sequence."""
        slots = SlotSequence(time(11, 0), time(12, 0), 15)

        assert list(slots) == list(slots)

    def test_step_too_small(self):
        with pytest.raises(ValueError, match="at least 5 minutes"):
            SlotSequence(time(11, 0), time(12, 0), 4)
