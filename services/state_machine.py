"""
Reservation lifecycle transitions.

    PENDING -> CONFIRMED -> SEATED -> COMPLETED
    PENDING, CONFIRMED, SEATED -> CANCELLED
    CONFIRMED, SEATED -> NO_SHOW

Each transition is a single-row UPDATE guarded by the expected source
status, so of two concurrent identical transitions exactly one succeeds.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from core.exceptions import InvalidTransitionError, NotFoundError
from db.models_sqlalchemy import AuditLog, Reservation
from domain.enums import AuditAction, ReservationStatus
from services.guest_profiles import increment_no_show_count, recompute_guest_stats


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transition:
    name: str
    sources: Tuple[ReservationStatus, ...]
    target: ReservationStatus
    timestamp_field: str
    action: AuditAction
    error: str


CONFIRM = Transition(
    name="confirm",
    sources=(ReservationStatus.PENDING,),
    target=ReservationStatus.CONFIRMED,
    timestamp_field="confirmed_at",
    action=AuditAction.CONFIRMED,
    error="Only pending reservations can be confirmed",
)

SEAT = Transition(
    name="seat",
    sources=(ReservationStatus.CONFIRMED,),
    target=ReservationStatus.SEATED,
    timestamp_field="seated_at",
    action=AuditAction.SEATED,
    error="Only confirmed reservations can be seated",
)

COMPLETE = Transition(
    name="complete",
    sources=(ReservationStatus.SEATED,),
    target=ReservationStatus.COMPLETED,
    timestamp_field="completed_at",
    action=AuditAction.COMPLETED,
    error="Only seated reservations can be completed",
)

CANCEL = Transition(
    name="cancel",
    sources=(ReservationStatus.PENDING, ReservationStatus.CONFIRMED, ReservationStatus.SEATED),
    target=ReservationStatus.CANCELLED,
    timestamp_field="cancelled_at",
    action=AuditAction.CANCELLED,
    error="Only pending, confirmed or seated reservations can be cancelled",
)

MARK_NO_SHOW = Transition(
    name="mark_no_show",
    sources=(ReservationStatus.CONFIRMED, ReservationStatus.SEATED),
    target=ReservationStatus.NO_SHOW,
    timestamp_field="completed_at",
    action=AuditAction.NO_SHOW,
    error="Only confirmed or seated reservations can be marked as no-show",
)

TRANSITIONS: Dict[str, Transition] = {
    t.name: t for t in (CONFIRM, SEAT, COMPLETE, CANCEL, MARK_NO_SHOW)
}


def can_transition(status: ReservationStatus, transition: Transition) -> bool:
    return status in transition.sources


def append_audit_entry(
    session: Session,
    reservation_id: UUID,
    action: AuditAction,
    actor_id: Optional[str],
    changes: Dict[str, Any],
    created_at: datetime,
) -> AuditLog:
    """Add an entry to the append-only audit trail."""
    entry = AuditLog(
        reservation_id=reservation_id,
        action=action.value,
        actor_id=actor_id,
        changes=changes,
        created_at=created_at,
    )
    session.add(entry)
    return entry


class ReservationStateMachine:
    """Applies lifecycle transitions inside a caller-owned transaction."""

    def __init__(self, clock: Callable[[], datetime]):
        self.clock = clock

    def apply(
        self,
        session: Session,
        reservation_id: UUID,
        transition: Transition,
        actor_id: Optional[str] = None,
        values: Optional[Dict[str, Any]] = None,
    ) -> Reservation:
        """
        Move a reservation along ``transition``.

        Args:
            session: Open session; the caller commits
            reservation_id: Reservation to transition
            transition: One of the module-level transitions
            actor_id: Who performed the action
            values: Extra columns to set (e.g. cancellation_reason)

        Returns:
            The refreshed reservation

        Raises:
            NotFoundError: Unknown reservation
            InvalidTransitionError: Current status is not a valid source
        """
        reservation = session.get(Reservation, reservation_id)
        if reservation is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")

        before = ReservationStatus(reservation.status)
        if not can_transition(before, transition):
            raise InvalidTransitionError(
                transition.error,
                details={"status": before.value, "transition": transition.name},
            )

        now = self.clock()
        extra = dict(values or {})
        result = session.execute(
            update(Reservation)
            .where(
                Reservation.id == reservation_id,
                Reservation.status.in_([s.value for s in transition.sources]),
            )
            .values(
                status=transition.target.value,
                **{transition.timestamp_field: now},
                **extra,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidTransitionError(
                "Reservation is not in the expected state",
                details={"transition": transition.name},
            )

        changes = {"status": {"before": before.value, "after": transition.target.value}}
        changes.update({key: value for key, value in extra.items() if value is not None})
        append_audit_entry(session, reservation_id, transition.action, actor_id, changes, now)

        if transition is COMPLETE and reservation.guest_profile_id is not None:
            recompute_guest_stats(session, reservation.guest_profile_id)
        elif transition is MARK_NO_SHOW and reservation.guest_profile_id is not None:
            increment_no_show_count(session, reservation.guest_profile_id)

        session.flush()
        session.refresh(reservation)

        logger.info(
            f"Reservation {transition.target.value}",
            extra={
                "reservation_id": str(reservation_id),
                "status_before": before.value,
                "actor_id": actor_id,
            },
        )
        return reservation
