"""initial scheduling schema

Revision ID: e1f2a3b4c5d6
Revises: 
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'e1f2a3b4c5d6'
down_revision = None
branch_labels = None
depends_on = None

ACTIVE_WHERE = sa.text("status IN ('PENDING', 'CONFIRMED')")
WAITING_WHERE = sa.text("status = 'WAITING'")


def upgrade():
    op.create_table(
        'resources',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('kind', sa.String(length=20), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('capacity', sa.Integer(), nullable=False),
        sa.Column('base_price', sa.Integer(), nullable=False),
        sa.Column('peak_start', sa.Time(), nullable=True),
        sa.Column('peak_end', sa.Time(), nullable=True),
        sa.Column('peak_multiplier', sa.Float(), nullable=False),
        sa.Column('member_discount_pct', sa.Float(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('capacity >= 1', name='ck_resource_capacity_positive'),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('resources', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_resources_kind'), ['kind'], unique=False)

    op.create_table(
        'availability_templates',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('resource_id', sa.Integer(), nullable=False),
        sa.Column('day_of_week', sa.Integer(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('slot_minutes', sa.Integer(), nullable=False),
        sa.Column('break_minutes', sa.Integer(), nullable=False),
        sa.Column('max_sessions_per_day', sa.Integer(), nullable=True),
        sa.Column('is_available', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('day_of_week BETWEEN 0 AND 6', name='ck_template_day_of_week'),
        sa.CheckConstraint('start_time < end_time', name='ck_template_time_order'),
        sa.CheckConstraint('slot_minutes > 0', name='ck_template_slot_minutes'),
        sa.CheckConstraint('break_minutes >= 0', name='ck_template_break_minutes'),
        sa.ForeignKeyConstraint(['resource_id'], ['resources.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('availability_templates', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_availability_templates_resource_id'), ['resource_id'], unique=False)
        batch_op.create_index('ix_templates_resource_day', ['resource_id', 'day_of_week'], unique=False)

    op.create_table(
        'cancellation_policies',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('resource_id', sa.Integer(), nullable=False),
        sa.Column('min_notice_hours', sa.Integer(), nullable=False),
        sa.Column('refund_percentage', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('min_notice_hours >= 0', name='ck_policy_notice'),
        sa.CheckConstraint('refund_percentage BETWEEN 0 AND 100', name='ck_policy_refund'),
        sa.ForeignKeyConstraint(['resource_id'], ['resources.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('resource_id')
    )

    op.create_table(
        'slots',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('resource_id', sa.Integer(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False),
        sa.Column('occupancy', sa.Integer(), nullable=False),
        sa.Column('base_price', sa.Integer(), nullable=False),
        sa.Column('final_price', sa.Integer(), nullable=False),
        sa.Column('classification', sa.String(length=10), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('block_reason', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('occupancy >= 0 AND occupancy <= capacity', name='ck_slot_occupancy'),
        sa.ForeignKeyConstraint(['resource_id'], ['resources.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('resource_id', 'date', 'start_time', name='uq_resource_date_start')
    )
    with op.batch_alter_table('slots', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_slots_resource_id'), ['resource_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_slots_date'), ['date'], unique=False)
        batch_op.create_index(batch_op.f('ix_slots_status'), ['status'], unique=False)

    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('slot_id', sa.Integer(), nullable=False),
        sa.Column('resource_id', sa.Integer(), nullable=False),
        sa.Column('resource_kind', sa.String(length=20), nullable=False),
        sa.Column('booking_date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('requester_id', sa.Integer(), nullable=False),
        sa.Column('is_member', sa.Boolean(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('price_paid', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('waitlist_entry_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('cancel_reason', sa.String(length=255), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['resource_id'], ['resources.id'], ),
        sa.ForeignKeyConstraint(['slot_id'], ['slots.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('bookings', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_bookings_slot_id'), ['slot_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_bookings_resource_id'), ['resource_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_bookings_booking_date'), ['booking_date'], unique=False)
        batch_op.create_index(batch_op.f('ix_bookings_requester_id'), ['requester_id'], unique=False)
        batch_op.create_index(
            'uq_booking_requester_active',
            ['requester_id', 'resource_kind', 'booking_date', 'start_time'],
            unique=True,
            sqlite_where=ACTIVE_WHERE,
            postgresql_where=ACTIVE_WHERE,
        )

    op.create_table(
        'waitlist_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('resource_id', sa.Integer(), nullable=False),
        sa.Column('requester_id', sa.Integer(), nullable=False),
        sa.Column('is_member', sa.Boolean(), nullable=False),
        sa.Column('preferred_date', sa.Date(), nullable=False),
        sa.Column('preferred_start_time', sa.Time(), nullable=True),
        sa.Column('preferred_end_time', sa.Time(), nullable=True),
        sa.Column('priority', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('booking_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ),
        sa.ForeignKeyConstraint(['resource_id'], ['resources.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('waitlist_entries', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_waitlist_entries_resource_id'), ['resource_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_waitlist_entries_requester_id'), ['requester_id'], unique=False)
        batch_op.create_index('ix_waitlist_bucket', ['resource_id', 'preferred_date', 'status'], unique=False)
        batch_op.create_index(
            'uq_waitlist_requester_waiting',
            ['resource_id', 'requester_id', 'preferred_date'],
            unique=True,
            sqlite_where=WAITING_WHERE,
            postgresql_where=WAITING_WHERE,
        )

    op.create_table(
        'daily_analytics',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('resource_id', sa.Integer(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('total_slots', sa.Integer(), nullable=False),
        sa.Column('total_capacity', sa.Integer(), nullable=False),
        sa.Column('total_bookings', sa.Integer(), nullable=False),
        sa.Column('total_cancellations', sa.Integer(), nullable=False),
        sa.Column('total_revenue', sa.Integer(), nullable=False),
        sa.Column('peak_bookings', sa.Integer(), nullable=False),
        sa.Column('off_peak_bookings', sa.Integer(), nullable=False),
        sa.Column('member_bookings', sa.Integer(), nullable=False),
        sa.Column('non_member_bookings', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['resource_id'], ['resources.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('resource_id', 'date', name='uq_analytics_resource_date')
    )
    with op.batch_alter_table('daily_analytics', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_daily_analytics_resource_id'), ['resource_id'], unique=False)

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=80), nullable=False),
        sa.Column('entity', sa.String(length=80), nullable=True),
        sa.Column('entity_id', sa.String(length=80), nullable=True),
        sa.Column('ip', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.Column('metadata_json', sa.Text(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('audit_logs', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_audit_logs_timestamp'), ['timestamp'], unique=False)


def downgrade():
    op.drop_table('audit_logs')
    op.drop_table('daily_analytics')
    op.drop_table('waitlist_entries')
    op.drop_table('bookings')
    op.drop_table('slots')
    op.drop_table('cancellation_policies')
    op.drop_table('availability_templates')
    op.drop_table('resources')
