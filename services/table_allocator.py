"""
Capacity counting and table selection.
Works on already-loaded rows; the allocation transaction does the reading.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set

from core.utils_datetime import MINUTES_PER_DAY, minutes_of_day
from services.scheduling import service_offset


@dataclass(frozen=True)
class Interval:
    """Half-open ``[start, end)`` span in service-day minutes."""
    start: int
    end: int

    def overlaps(self, other: "Interval") -> bool:
        return self.start < other.end and other.start < self.end


def candidate_interval(shift, start_time, duration_minutes: int) -> Interval:
    start = service_offset(shift, start_time)
    return Interval(start, start + duration_minutes)


def reservation_interval(reservation, shifts_by_id: Dict) -> Interval:
    """
    Interval a committed reservation occupies, using its own stored duration.

    The stored end time may have wrapped past midnight, so the duration is
    taken modulo one day.
    """
    shift = shifts_by_id.get(reservation.shift_id)
    start = service_offset(shift, reservation.start_time)
    duration = (minutes_of_day(reservation.end_time) - minutes_of_day(reservation.start_time)) % MINUTES_PER_DAY
    return Interval(start, start + (duration or MINUTES_PER_DAY))


# ============================================================================
# Capacity Counter
# ============================================================================

def committed_covers(reservations: Iterable) -> int:
    """Sum of party sizes over the given active reservations."""
    return sum(r.party_size for r in reservations)


def exceeds_covers(committed: int, party_size: int, max_covers: Optional[int]) -> bool:
    if max_covers is None:
        return False
    return committed + party_size > max_covers


# ============================================================================
# Table Allocator
# ============================================================================

def fits_party(table, party_size: int) -> bool:
    return table.is_active and table.min_seats <= party_size <= table.max_seats


def busy_table_ids(
    reservations: Iterable,
    interval: Interval,
    shifts_by_id: Dict,
) -> Set:
    """Tables holding an active reservation whose interval intersects ``interval``."""
    return {
        r.table_id for r in reservations
        if reservation_interval(r, shifts_by_id).overlaps(interval)
    }


def rank_tables(tables: Iterable, party_size: int, busy: Set) -> List:
    """
    Free tables that seat the party, best fit first.

    Smallest ``max_seats`` wins, then the lowest table number, so the
    same inputs always pick the same table.
    """
    free = [t for t in tables if fits_party(t, party_size) and t.id not in busy]
    return sorted(free, key=lambda t: (t.max_seats, t.number))


def select_table(tables: Iterable, party_size: int, busy: Set):
    ranked = rank_tables(tables, party_size, busy)
    return ranked[0] if ranked else None
