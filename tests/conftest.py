"""Pytest configuration and fixtures for the table allocation engine tests."""
from datetime import date, datetime, time
from types import SimpleNamespace

import pytest
import pytz
from sqlalchemy import update

from db.models_sqlalchemy import Area, Block, DiningTable, Policy, Restaurant, Shift
from db.session import create_engine, create_session_factory, get_session_context, init_db
from domain.enums import DayOfWeek
from domain.models import GuestInfo
from services.reservation_service import ReservationService


FIXED_NOW = datetime(2025, 6, 2, 9, 0, tzinfo=pytz.utc)  # Monday morning
MONDAY = date(2025, 6, 9)
FRIDAY = date(2025, 6, 6)


class FrozenClock:
    """Clock returning a settable instant."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture(scope="function")
def db_engine(tmp_path):
    """File-backed SQLite database so that worker threads share it."""
    engine = create_engine(f"sqlite:///{tmp_path / 'reservations.db'}", busy_timeout=30)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture(scope="function")
def clock():
    return FrozenClock(FIXED_NOW)


@pytest.fixture(scope="function")
def venue(session_factory):
    """
    Seed one restaurant:
    Monday lunch 11:00-15:00 (40 covers) and dinner 18:00-22:00 (20 covers),
    Friday late night 22:00-02:00 (uncapped), four usable tables and two
    that must never be picked.
    """
    with get_session_context(session_factory) as session:
        restaurant = Restaurant(name="Bistro Dunaj", timezone="UTC")
        session.add(restaurant)
        session.flush()

        policy = Policy(
            restaurant_id=restaurant.id,
            min_advance_minutes=60,
            max_advance_days=30,
            allow_modifications=True,
            modification_cutoff_minutes=120,
            auto_confirm=True,
        )
        shifts = [
            Shift(restaurant_id=restaurant.id, name="Lunch", day_of_week=DayOfWeek.MONDAY.value,
                  start_time=time(11, 0), end_time=time(15, 0), slot_duration_minutes=30, max_covers=40),
            Shift(restaurant_id=restaurant.id, name="Dinner", day_of_week=DayOfWeek.MONDAY.value,
                  start_time=time(18, 0), end_time=time(22, 0), slot_duration_minutes=30, max_covers=20),
            Shift(restaurant_id=restaurant.id, name="Late Night", day_of_week=DayOfWeek.FRIDAY.value,
                  start_time=time(22, 0), end_time=time(2, 0), slot_duration_minutes=30, max_covers=None),
        ]
        main = Area(restaurant_id=restaurant.id, name="Main Room", is_active=True)
        terrace = Area(restaurant_id=restaurant.id, name="Terrace", is_active=False)
        session.add_all([policy, *shifts, main, terrace])
        session.flush()

        tables = [
            DiningTable(restaurant_id=restaurant.id, area_id=main.id, number="1", min_seats=1, max_seats=2),
            DiningTable(restaurant_id=restaurant.id, area_id=main.id, number="2", min_seats=2, max_seats=4),
            DiningTable(restaurant_id=restaurant.id, area_id=main.id, number="3", min_seats=2, max_seats=4),
            DiningTable(restaurant_id=restaurant.id, area_id=main.id, number="4", min_seats=4, max_seats=6),
            DiningTable(restaurant_id=restaurant.id, area_id=main.id, number="5", min_seats=1, max_seats=8,
                        is_active=False),
            DiningTable(restaurant_id=restaurant.id, area_id=terrace.id, number="6", min_seats=1, max_seats=8),
        ]
        session.add_all(tables)
        session.flush()

        return SimpleNamespace(
            restaurant_id=restaurant.id,
            policy_id=policy.id,
            shifts={s.name: s.id for s in shifts},
            tables={t.number: t.id for t in tables},
        )


@pytest.fixture(scope="function")
def update_row(session_factory):
    """Change configuration rows between bookings."""
    def _update(model, row_id, **values):
        with get_session_context(session_factory) as session:
            session.execute(update(model).where(model.id == row_id).values(**values))
    return _update


@pytest.fixture(scope="function")
def add_block(session_factory, venue):
    def _add(start_date, end_date=None, start_time=None, end_time=None, reason=None):
        with get_session_context(session_factory) as session:
            session.add(Block(
                restaurant_id=venue.restaurant_id,
                start_date=start_date,
                end_date=end_date or start_date,
                start_time=start_time,
                end_time=end_time,
                reason=reason,
            ))
    return _add


@pytest.fixture(scope="function")
def reservation_service(session_factory, clock):
    return ReservationService(session_factory, clock=clock, backoff_seconds=0)


@pytest.fixture(scope="function")
def guest():
    return GuestInfo(name="Jana Novak", email="Jana.Novak@example.com", phone="+421900123456")


@pytest.fixture(scope="function")
def book(reservation_service, venue, guest):
    """Factory fixture booking a table at the seeded restaurant."""
    def _book(start_time, party_size=2, reservation_date=MONDAY, guest_info=None, actor_id=None):
        return reservation_service.create_reservation(
            venue.restaurant_id,
            reservation_date,
            start_time,
            party_size,
            guest_info or guest,
            actor_id=actor_id,
        )
    return _book


@pytest.fixture(scope="function")
def pending_policy(venue, update_row):
    """Switch the restaurant to manual confirmation."""
    update_row(Policy, venue.policy_id, auto_confirm=False)
