"""Reservation endpoints: booking, changes, lifecycle and lookups."""

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from apps.api.deps import get_actor_id, get_reservation_service
from domain.enums import ReservationStatus
from domain.models import (
    AuditLogEntry,
    GuestProfileRecord,
    ReservationCancelRequest,
    ReservationCreate,
    ReservationModify,
    ReservationRecord,
    TableReassignRequest,
    TransitionRequest,
)
from services.reservation_service import ReservationService


router = APIRouter(tags=["reservations"])


@router.post("/reservations", response_model=ReservationRecord, status_code=status.HTTP_201_CREATED)
def create_reservation(
    body: ReservationCreate,
    actor_id: Optional[str] = Depends(get_actor_id),
    service: ReservationService = Depends(get_reservation_service),
):
    """
    Book a table.

    Returns 409 with a ``reason`` when the request cannot be honored, and
    409/503 with ``code`` conflict/busy when it should be retried.
    """
    return service.create_reservation(
        body.restaurant_id,
        body.reservation_date,
        body.start_time,
        body.party_size,
        body.guest,
        actor_id=body.actor_id or actor_id,
    )


@router.get("/reservations/by-code/{code}", response_model=ReservationRecord)
def find_by_confirmation_code(
    code: str,
    service: ReservationService = Depends(get_reservation_service),
):
    return service.find_by_confirmation_code(code)


@router.get("/reservations/{reservation_id}", response_model=ReservationRecord)
def get_reservation(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
):
    return service.get_reservation(reservation_id)


@router.patch("/reservations/{reservation_id}", response_model=ReservationRecord)
def modify_reservation(
    reservation_id: UUID,
    body: ReservationModify,
    actor_id: Optional[str] = Depends(get_actor_id),
    service: ReservationService = Depends(get_reservation_service),
):
    """Change date, time or party size of a pending or confirmed reservation."""
    return service.modify_reservation(
        reservation_id,
        reservation_date=body.reservation_date,
        start_time=body.start_time,
        party_size=body.party_size,
        actor_id=body.actor_id or actor_id,
    )


@router.post("/reservations/{reservation_id}/table", response_model=ReservationRecord)
def reassign_table(
    reservation_id: UUID,
    body: TableReassignRequest,
    actor_id: Optional[str] = Depends(get_actor_id),
    service: ReservationService = Depends(get_reservation_service),
):
    return service.reassign_table(reservation_id, body.table_id, actor_id=body.actor_id or actor_id)


@router.post("/reservations/{reservation_id}/confirm", response_model=ReservationRecord)
def confirm_reservation(
    reservation_id: UUID,
    body: Optional[TransitionRequest] = None,
    actor_id: Optional[str] = Depends(get_actor_id),
    service: ReservationService = Depends(get_reservation_service),
):
    return service.confirm(reservation_id, actor_id=(body and body.actor_id) or actor_id)


@router.post("/reservations/{reservation_id}/seat", response_model=ReservationRecord)
def seat_reservation(
    reservation_id: UUID,
    body: Optional[TransitionRequest] = None,
    actor_id: Optional[str] = Depends(get_actor_id),
    service: ReservationService = Depends(get_reservation_service),
):
    return service.seat(reservation_id, actor_id=(body and body.actor_id) or actor_id)


@router.post("/reservations/{reservation_id}/complete", response_model=ReservationRecord)
def complete_reservation(
    reservation_id: UUID,
    body: Optional[TransitionRequest] = None,
    actor_id: Optional[str] = Depends(get_actor_id),
    service: ReservationService = Depends(get_reservation_service),
):
    return service.complete(reservation_id, actor_id=(body and body.actor_id) or actor_id)


@router.post("/reservations/{reservation_id}/no-show", response_model=ReservationRecord)
def mark_no_show(
    reservation_id: UUID,
    body: Optional[TransitionRequest] = None,
    actor_id: Optional[str] = Depends(get_actor_id),
    service: ReservationService = Depends(get_reservation_service),
):
    return service.mark_no_show(reservation_id, actor_id=(body and body.actor_id) or actor_id)


@router.post("/reservations/{reservation_id}/cancel", response_model=ReservationRecord)
def cancel_reservation(
    reservation_id: UUID,
    body: Optional[ReservationCancelRequest] = None,
    actor_id: Optional[str] = Depends(get_actor_id),
    service: ReservationService = Depends(get_reservation_service),
):
    """Cancel a reservation; cancelling twice is not an error."""
    return service.cancel(
        reservation_id,
        actor_id=(body and body.actor_id) or actor_id,
        reason=body.reason if body else None,
    )


@router.get("/reservations/{reservation_id}/audit", response_model=List[AuditLogEntry])
def get_audit_trail(
    reservation_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
):
    return service.get_audit_trail(reservation_id)


@router.get("/restaurants/{restaurant_id}/reservations", response_model=List[ReservationRecord])
def list_reservations(
    restaurant_id: UUID,
    reservation_date: Optional[date] = Query(None, alias="date", description="Filter by service date"),
    reservation_status: Optional[ReservationStatus] = Query(None, alias="status", description="Filter by status"),
    service: ReservationService = Depends(get_reservation_service),
):
    return service.list_reservations(restaurant_id, reservation_date, reservation_status)


@router.get("/restaurants/{restaurant_id}/no-show-candidates", response_model=List[ReservationRecord])
def find_no_show_candidates(
    restaurant_id: UUID,
    grace_minutes: int = Query(15, ge=0, le=240),
    service: ReservationService = Depends(get_reservation_service),
):
    """Confirmed reservations past their start plus the grace period."""
    return service.find_no_show_candidates(restaurant_id, grace_minutes=grace_minutes)


@router.get("/guests/{guest_profile_id}", response_model=GuestProfileRecord)
def get_guest_profile(
    guest_profile_id: UUID,
    service: ReservationService = Depends(get_reservation_service),
):
    return service.get_guest_profile(guest_profile_id)
