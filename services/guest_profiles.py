"""
Guest profile matching and visit statistics.

Statistics are recomputed from the full reservation history on every
completion so that retroactive corrections are picked up.
"""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from db.models_sqlalchemy import GuestProfile, Reservation
from domain.enums import ReservationStatus
from domain.models import GuestInfo


logger = logging.getLogger(__name__)


def split_name(name: str) -> tuple:
    """Split a full name into first and last; a single word is used for both."""
    parts = name.split()
    first_name = parts[0] if parts else "Guest"
    last_name = " ".join(parts[1:]) or first_name
    return first_name, last_name


def get_or_create_guest_profile(session: Session, guest: GuestInfo) -> GuestProfile:
    """
    Find a profile by email or phone, creating one on first booking.

    Args:
        session: Open session of the booking transaction
        guest: Guest contact details

    Returns:
        GuestProfile (new profiles are flushed so they have an id)
    """
    conditions = []
    if guest.email:
        conditions.append(GuestProfile.email == guest.email)
    if guest.phone:
        conditions.append(GuestProfile.phone == guest.phone)

    profile = session.scalars(
        select(GuestProfile).where(or_(*conditions)).order_by(GuestProfile.created_at).limit(1)
    ).first()
    if profile is not None:
        return profile

    first_name, last_name = split_name(guest.name)
    profile = GuestProfile(
        email=guest.email,
        phone=guest.phone,
        first_name=first_name,
        last_name=last_name,
        total_visits=0,
        no_show_count=0,
    )
    session.add(profile)
    session.flush()
    logger.info("Created guest profile", extra={"guest_profile_id": str(profile.id)})
    return profile


def recompute_guest_stats(session: Session, guest_profile_id: UUID) -> Optional[GuestProfile]:
    """
    Rebuild visit count, average party size and last visit date.

    Args:
        session: Open session
        guest_profile_id: Profile to rebuild

    Returns:
        The updated profile, or None if it does not exist
    """
    profile = session.get(GuestProfile, guest_profile_id)
    if profile is None:
        return None

    total_visits, avg_party_size, last_visit_date = session.execute(
        select(
            func.count(Reservation.id),
            func.avg(Reservation.party_size),
            func.max(Reservation.reservation_date),
        ).where(
            Reservation.guest_profile_id == guest_profile_id,
            Reservation.status == ReservationStatus.COMPLETED.value,
        )
    ).one()

    profile.total_visits = total_visits
    profile.avg_party_size = float(avg_party_size) if avg_party_size is not None else None
    profile.last_visit_date = last_visit_date
    session.flush()

    logger.info(
        "Recomputed guest stats",
        extra={"guest_profile_id": str(guest_profile_id), "total_visits": total_visits},
    )
    return profile


def increment_no_show_count(session: Session, guest_profile_id: UUID) -> None:
    """Atomic ``no_show_count + 1`` on the profile row."""
    session.execute(
        update(GuestProfile)
        .where(GuestProfile.id == guest_profile_id)
        .values(no_show_count=GuestProfile.no_show_count + 1)
        .execution_options(synchronize_session=False)
    )
