"""Initial schema - venue configuration, guests, reservations and audit log.

Revision ID: 001
Revises:
Create Date: 2026-01-12

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    ]


def upgrade() -> None:
    """Create initial database tables."""
    op.create_table(
        'restaurants',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('timezone', sa.String(length=64), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_restaurants'))
    )
    op.create_index(op.f('ix_restaurants_created_at'), 'restaurants', ['created_at'], unique=False)

    op.create_table(
        'policies',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('restaurant_id', sa.Uuid(), nullable=False),
        sa.Column('min_advance_minutes', sa.Integer(), nullable=False),
        sa.Column('max_advance_days', sa.Integer(), nullable=False),
        sa.Column('allow_modifications', sa.Boolean(), nullable=False),
        sa.Column('modification_cutoff_minutes', sa.Integer(), nullable=False),
        sa.Column('auto_confirm', sa.Boolean(), nullable=False),
        sa.CheckConstraint('min_advance_minutes >= 0', name=op.f('ck_policies_min_advance_non_negative')),
        sa.CheckConstraint('max_advance_days >= 1', name=op.f('ck_policies_max_advance_positive')),
        sa.CheckConstraint('modification_cutoff_minutes >= 0', name=op.f('ck_policies_cutoff_non_negative')),
        sa.ForeignKeyConstraint(['restaurant_id'], ['restaurants.id'], name=op.f('fk_policies_restaurant_id_restaurants'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_policies')),
        sa.UniqueConstraint('restaurant_id', name=op.f('uq_policies_restaurant_id'))
    )

    op.create_table(
        'shifts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('restaurant_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('day_of_week', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('slot_duration_minutes', sa.Integer(), nullable=False),
        sa.Column('max_covers', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.CheckConstraint('day_of_week BETWEEN 0 AND 6', name=op.f('ck_shifts_day_of_week_range')),
        sa.CheckConstraint('slot_duration_minutes >= 5', name=op.f('ck_shifts_slot_duration_min')),
        sa.CheckConstraint('max_covers IS NULL OR max_covers > 0', name=op.f('ck_shifts_max_covers_positive')),
        sa.ForeignKeyConstraint(['restaurant_id'], ['restaurants.id'], name=op.f('fk_shifts_restaurant_id_restaurants'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_shifts'))
    )
    op.create_index(op.f('ix_shifts_restaurant_id'), 'shifts', ['restaurant_id'], unique=False)
    op.create_index('ix_shifts_restaurant_day', 'shifts', ['restaurant_id', 'day_of_week'], unique=False)

    op.create_table(
        'blocks',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('restaurant_id', sa.Uuid(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=True),
        sa.Column('end_time', sa.Time(), nullable=True),
        sa.Column('reason', sa.String(length=200), nullable=True),
        sa.CheckConstraint('start_date <= end_date', name=op.f('ck_blocks_date_range_ordered')),
        sa.ForeignKeyConstraint(['restaurant_id'], ['restaurants.id'], name=op.f('fk_blocks_restaurant_id_restaurants'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_blocks'))
    )
    op.create_index(op.f('ix_blocks_restaurant_id'), 'blocks', ['restaurant_id'], unique=False)

    op.create_table(
        'areas',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('restaurant_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['restaurant_id'], ['restaurants.id'], name=op.f('fk_areas_restaurant_id_restaurants'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_areas'))
    )
    op.create_index(op.f('ix_areas_restaurant_id'), 'areas', ['restaurant_id'], unique=False)

    op.create_table(
        'tables',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('restaurant_id', sa.Uuid(), nullable=False),
        sa.Column('area_id', sa.Uuid(), nullable=False),
        sa.Column('number', sa.String(length=20), nullable=False),
        sa.Column('min_seats', sa.Integer(), nullable=False),
        sa.Column('max_seats', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.CheckConstraint('min_seats >= 1', name=op.f('ck_tables_min_seats_positive')),
        sa.CheckConstraint('min_seats <= max_seats', name=op.f('ck_tables_seat_range_ordered')),
        sa.ForeignKeyConstraint(['area_id'], ['areas.id'], name=op.f('fk_tables_area_id_areas'), ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['restaurant_id'], ['restaurants.id'], name=op.f('fk_tables_restaurant_id_restaurants'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_tables'))
    )
    op.create_index(op.f('ix_tables_restaurant_id'), 'tables', ['restaurant_id'], unique=False)
    op.create_index('ix_tables_restaurant_number', 'tables', ['restaurant_id', 'number'], unique=True)

    op.create_table(
        'guest_profiles',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(length=254), nullable=True),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('total_visits', sa.Integer(), nullable=False),
        sa.Column('avg_party_size', sa.Float(), nullable=True),
        sa.Column('last_visit_date', sa.Date(), nullable=True),
        sa.Column('no_show_count', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_guest_profiles'))
    )
    op.create_index(op.f('ix_guest_profiles_email'), 'guest_profiles', ['email'], unique=False)
    op.create_index(op.f('ix_guest_profiles_phone'), 'guest_profiles', ['phone'], unique=False)
    op.create_index(op.f('ix_guest_profiles_created_at'), 'guest_profiles', ['created_at'], unique=False)

    op.create_table(
        'reservations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('restaurant_id', sa.Uuid(), nullable=False),
        sa.Column('table_id', sa.Uuid(), nullable=False),
        sa.Column('shift_id', sa.Uuid(), nullable=True),
        sa.Column('guest_profile_id', sa.Uuid(), nullable=True),
        sa.Column('reservation_date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('party_size', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('confirmation_code', sa.String(length=16), nullable=False),
        sa.Column('guest_name', sa.String(length=200), nullable=False),
        sa.Column('guest_email', sa.String(length=254), nullable=True),
        sa.Column('guest_phone', sa.String(length=20), nullable=True),
        sa.Column('occasion', sa.String(length=100), nullable=True),
        sa.Column('special_requests', sa.Text(), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('seated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('party_size >= 1', name=op.f('ck_reservations_party_size_positive')),
        sa.ForeignKeyConstraint(['guest_profile_id'], ['guest_profiles.id'], name=op.f('fk_reservations_guest_profile_id_guest_profiles')),
        sa.ForeignKeyConstraint(['restaurant_id'], ['restaurants.id'], name=op.f('fk_reservations_restaurant_id_restaurants')),
        sa.ForeignKeyConstraint(['shift_id'], ['shifts.id'], name=op.f('fk_reservations_shift_id_shifts')),
        sa.ForeignKeyConstraint(['table_id'], ['tables.id'], name=op.f('fk_reservations_table_id_tables')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_reservations')),
        sa.UniqueConstraint('confirmation_code', name=op.f('uq_reservations_confirmation_code'))
    )
    op.create_index(op.f('ix_reservations_table_id'), 'reservations', ['table_id'], unique=False)
    op.create_index(op.f('ix_reservations_guest_profile_id'), 'reservations', ['guest_profile_id'], unique=False)
    op.create_index(op.f('ix_reservations_status'), 'reservations', ['status'], unique=False)
    op.create_index(op.f('ix_reservations_created_at'), 'reservations', ['created_at'], unique=False)
    op.create_index('ix_reservations_restaurant_date', 'reservations', ['restaurant_id', 'reservation_date'], unique=False)
    op.create_index('ix_reservations_table_date', 'reservations', ['table_id', 'reservation_date'], unique=False)
    op.create_index('ix_reservations_guest_status', 'reservations', ['guest_profile_id', 'status'], unique=False)

    op.create_table(
        'audit_log',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('reservation_id', sa.Uuid(), nullable=False),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('actor_id', sa.String(length=100), nullable=True),
        sa.Column('changes', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['reservation_id'], ['reservations.id'], name=op.f('fk_audit_log_reservation_id_reservations')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_audit_log'))
    )
    op.create_index(op.f('ix_audit_log_reservation_id'), 'audit_log', ['reservation_id'], unique=False)
    op.create_index(op.f('ix_audit_log_action'), 'audit_log', ['action'], unique=False)
    op.create_index(op.f('ix_audit_log_actor_id'), 'audit_log', ['actor_id'], unique=False)
    op.create_index(op.f('ix_audit_log_created_at'), 'audit_log', ['created_at'], unique=False)
    op.create_index('ix_audit_log_reservation_created', 'audit_log', ['reservation_id', 'created_at'], unique=False)


def downgrade() -> None:
    """Drop all tables."""
    op.drop_index('ix_audit_log_reservation_created', table_name='audit_log')
    op.drop_index(op.f('ix_audit_log_created_at'), table_name='audit_log')
    op.drop_index(op.f('ix_audit_log_actor_id'), table_name='audit_log')
    op.drop_index(op.f('ix_audit_log_action'), table_name='audit_log')
    op.drop_index(op.f('ix_audit_log_reservation_id'), table_name='audit_log')
    op.drop_table('audit_log')

    op.drop_index('ix_reservations_guest_status', table_name='reservations')
    op.drop_index('ix_reservations_table_date', table_name='reservations')
    op.drop_index('ix_reservations_restaurant_date', table_name='reservations')
    op.drop_index(op.f('ix_reservations_created_at'), table_name='reservations')
    op.drop_index(op.f('ix_reservations_status'), table_name='reservations')
    op.drop_index(op.f('ix_reservations_guest_profile_id'), table_name='reservations')
    op.drop_index(op.f('ix_reservations_table_id'), table_name='reservations')
    op.drop_table('reservations')

    op.drop_index(op.f('ix_guest_profiles_created_at'), table_name='guest_profiles')
    op.drop_index(op.f('ix_guest_profiles_phone'), table_name='guest_profiles')
    op.drop_index(op.f('ix_guest_profiles_email'), table_name='guest_profiles')
    op.drop_table('guest_profiles')

    op.drop_index('ix_tables_restaurant_number', table_name='tables')
    op.drop_index(op.f('ix_tables_restaurant_id'), table_name='tables')
    op.drop_table('tables')

    op.drop_index(op.f('ix_areas_restaurant_id'), table_name='areas')
    op.drop_table('areas')

    op.drop_index(op.f('ix_blocks_restaurant_id'), table_name='blocks')
    op.drop_table('blocks')

    op.drop_index('ix_shifts_restaurant_day', table_name='shifts')
    op.drop_index(op.f('ix_shifts_restaurant_id'), table_name='shifts')
    op.drop_table('shifts')

    op.drop_table('policies')

    op.drop_index(op.f('ix_restaurants_created_at'), table_name='restaurants')
    op.drop_table('restaurants')
