"""Initial database schema

Revision ID: 0001
Revises:
Create Date: 2025-08-02 12:30:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade database schema."""
    # Create costumes table
    op.create_table('costumes',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('slug', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('size', sa.String(length=50), nullable=True),
        sa.Column('difficulty', sa.String(length=50), nullable=True),
        sa.Column('setup_time_minutes', sa.Integer(), nullable=True),
        sa.Column('price_per_12_hours', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('price_per_day', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('price_per_week', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('is_available', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('price_per_day > 0', name='ck_costume_daily_rate_positive'),
        sa.CheckConstraint('price_per_week > 0', name='ck_costume_weekly_rate_positive'),
        sa.CheckConstraint(
            'price_per_12_hours IS NULL OR price_per_12_hours > 0',
            name='ck_costume_half_day_rate_positive'
        ),
        sa.CheckConstraint('length(name) > 0', name='ck_costume_name_not_empty'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug')
    )
    op.create_index(op.f('ix_costumes_slug'), 'costumes', ['slug'], unique=False)

    # Create availability_blocks table
    op.create_table('availability_blocks',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('costume_id', sa.Uuid(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('end_date >= start_date', name='ck_block_dates_ordered'),
        sa.ForeignKeyConstraint(['costume_id'], ['costumes.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_availability_blocks_costume_id'), 'availability_blocks', ['costume_id'], unique=False)

    # Create bookings table
    op.create_table('bookings',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('booking_reference', sa.String(length=32), nullable=False),
        sa.Column('costume_id', sa.Uuid(), nullable=False),
        sa.Column('customer_name', sa.String(length=200), nullable=False),
        sa.Column('customer_email', sa.String(length=320), nullable=False),
        sa.Column('customer_phone', sa.String(length=50), nullable=False),
        sa.Column('special_requests', sa.Text(), nullable=True),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=False),
        sa.Column('duration_code', sa.String(length=8), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('blocked_until', sa.DateTime(), nullable=True),
        sa.Column('total_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('security_deposit', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('late_fee_per_hour', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('actual_return_date', sa.DateTime(), nullable=True),
        sa.Column('late_fee_amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('security_deposit_refunded', sa.Boolean(), nullable=False),
        sa.Column('refund_amount', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('refund_notes', sa.Text(), nullable=True),
        sa.Column('refund_processed_at', sa.DateTime(), nullable=True),
        sa.Column('messenger_opened', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('end_date > start_date', name='ck_booking_dates_ordered'),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled', 'expired')",
            name='ck_booking_status_valid'
        ),
        sa.CheckConstraint('total_price >= 0', name='ck_booking_total_non_negative'),
        sa.CheckConstraint(
            "status != 'pending' OR blocked_until IS NOT NULL",
            name='ck_booking_pending_has_hold'
        ),
        sa.CheckConstraint('length(customer_name) > 0', name='ck_booking_customer_name_not_empty'),
        sa.ForeignKeyConstraint(['costume_id'], ['costumes.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('booking_reference')
    )
    op.create_index(op.f('ix_bookings_booking_reference'), 'bookings', ['booking_reference'], unique=False)
    op.create_index(op.f('ix_bookings_costume_id'), 'bookings', ['costume_id'], unique=False)
    op.create_index(op.f('ix_bookings_status'), 'bookings', ['status'], unique=False)
    op.create_index(op.f('ix_bookings_blocked_until'), 'bookings', ['blocked_until'], unique=False)
    op.create_index('ix_bookings_costume_dates', 'bookings', ['costume_id', 'start_date', 'end_date'], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table('bookings')
    op.drop_table('availability_blocks')
    op.drop_table('costumes')
