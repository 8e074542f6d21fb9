"""Availability endpoints: single-time checks and slot browsing."""

from datetime import date, time
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from apps.api.deps import get_reservation_service
from domain.models import AvailabilityResult, SlotAvailability
from services.reservation_service import ReservationService


router = APIRouter(prefix="/restaurants/{restaurant_id}", tags=["availability"])


@router.get("/availability", response_model=AvailabilityResult)
def check_availability(
    restaurant_id: UUID,
    reservation_date: date = Query(..., alias="date", description="Service date (YYYY-MM-DD)"),
    start_time: time = Query(..., alias="time", description="Requested time (HH:MM)"),
    party_size: int = Query(..., ge=1, le=100),
    service: ReservationService = Depends(get_reservation_service),
):
    """
    Check whether a party could be seated at the given time.

    Nothing is reserved; a later booking may still be rejected.
    """
    return service.check_availability(restaurant_id, reservation_date, start_time, party_size)


@router.get("/slots", response_model=List[SlotAvailability])
def list_available_slots(
    restaurant_id: UUID,
    reservation_date: date = Query(..., alias="date", description="Service date (YYYY-MM-DD)"),
    party_size: int = Query(..., ge=1, le=100),
    service: ReservationService = Depends(get_reservation_service),
):
    """List every slot of the day's shifts with its availability."""
    return service.list_available_slots(restaurant_id, reservation_date, party_size)
