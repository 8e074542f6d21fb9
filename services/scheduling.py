"""
Shift resolution, closure blocks and slot generation.

Times of day are placed on a "service-day" timeline measured in minutes
from the service date's midnight. A window whose end is not after its
start wraps past midnight, so its end and any time before its start are
shifted by 24 hours.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Iterable, Iterator, List, Optional

from core.exceptions import NotAvailableError
from core.utils_datetime import (
    MINUTES_PER_DAY,
    format_time,
    localize,
    minutes_of_day,
)
from domain.enums import RejectionReason


logger = logging.getLogger(__name__)


def wraps_midnight(start: time, end: time) -> bool:
    """True when ``[start, end)`` runs past midnight."""
    return minutes_of_day(end) <= minutes_of_day(start)


def window_bounds(start: time, end: time) -> tuple:
    """Start and end of a window in service-day minutes."""
    start_min = minutes_of_day(start)
    end_min = minutes_of_day(end)
    if end_min <= start_min:
        end_min += MINUTES_PER_DAY
    return start_min, end_min


def offset_in_window(start: time, end: time, value: time) -> int:
    """Service-day minutes of ``value`` relative to the window it belongs to."""
    value_min = minutes_of_day(value)
    if wraps_midnight(start, end) and value_min < minutes_of_day(start):
        value_min += MINUTES_PER_DAY
    return value_min


def window_contains(start: time, end: time, value: time) -> bool:
    """Check ``start <= value < end`` with the overnight-wrap rule."""
    start_min, end_min = window_bounds(start, end)
    return start_min <= offset_in_window(start, end, value) < end_min


# ============================================================================
# Shift Resolver
# ============================================================================

def matching_shifts(shifts: Iterable, day: date, value: time) -> List:
    """All active shifts for ``day``'s weekday whose window covers ``value``."""
    weekday = day.weekday()
    return [
        shift for shift in shifts
        if shift.is_active
        and shift.day_of_week == weekday
        and window_contains(shift.start_time, shift.end_time, value)
    ]


def resolve_shift(shifts: Iterable, day: date, value: time):
    """
    Find the single shift covering a date and time.

    Returns:
        The covering shift, or None if there is no service at this time

    Raises:
        NotAvailableError: If more than one active shift covers the time
    """
    found = matching_shifts(shifts, day, value)
    if len(found) > 1:
        logger.error(
            "Overlapping shifts configured",
            extra={"service_date": day.isoformat(), "shift_names": [s.name for s in found]},
        )
        raise NotAvailableError(
            RejectionReason.SHIFT_CONFIGURATION_ERROR,
            "Shift configuration is ambiguous for this time",
            details={"shifts": [s.name for s in found]},
        )
    return found[0] if found else None


def service_offset(shift, value: time) -> int:
    """Service-day minutes of a time inside ``shift``; plain minutes when no shift."""
    if shift is None:
        return minutes_of_day(value)
    return offset_in_window(shift.start_time, shift.end_time, value)


def service_datetime(day: date, value: time, shift, tz_name: str) -> datetime:
    """
    Wall-clock instant of a reservation.

    Times in the after-midnight part of an overnight shift fall on the
    calendar day following the service date.
    """
    calendar_day = day
    if service_offset(shift, value) >= MINUTES_PER_DAY:
        calendar_day = day + timedelta(days=1)
    return localize(calendar_day, value, tz_name)


# ============================================================================
# Block Checker
# ============================================================================

def find_block(blocks: Iterable, day: date, value: time):
    """
    Return the first block closing the venue at this date and time.

    A block without a complete time window closes the whole day.
    """
    for block in blocks:
        if not (block.start_date <= day <= block.end_date):
            continue
        if block.start_time is None or block.end_time is None:
            return block
        if window_contains(block.start_time, block.end_time, value):
            return block
    return None


def is_blocked(blocks: Iterable, day: date, value: time) -> bool:
    return find_block(blocks, day, value) is not None


# ============================================================================
# Slot Generator
# ============================================================================

class SlotSequence:
    """
    Bookable times of a shift, from start (inclusive) to end (exclusive).

    Iterating again starts over; nothing is computed until iterated.
    """

    def __init__(self, start: time, end: time, step_minutes: int):
        if step_minutes < 5:
            raise ValueError("Slot duration must be at least 5 minutes")
        self.start = start
        self.end = end
        self.step_minutes = step_minutes

    def __iter__(self) -> Iterator[str]:
        current, end_min = window_bounds(self.start, self.end)
        while current < end_min:
            yield format_time(time((current // 60) % 24, current % 60))
            current += self.step_minutes

    def __len__(self) -> int:
        start_min, end_min = window_bounds(self.start, self.end)
        return -(-(end_min - start_min) // self.step_minutes)

    def __repr__(self) -> str:
        return (
            f"SlotSequence({format_time(self.start)}-{format_time(self.end)}, "
            f"every {self.step_minutes}min)"
        )


def shift_slots(shift) -> SlotSequence:
    return SlotSequence(shift.start_time, shift.end_time, shift.slot_duration_minutes)
