"""add_reviews

Revision ID: 9a4f6c2e1b83
Revises: 5c1e2a9b7d40
Create Date: 2026-10-19 16:40:03.517290

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '9a4f6c2e1b83'
down_revision: Union[str, Sequence[str], None] = '5c1e2a9b7d40'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'reviews',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('booking_id', sa.Uuid(), sa.ForeignKey('bookings.id', ondelete='CASCADE'), nullable=False),
        sa.Column('vendor_id', sa.Uuid(), sa.ForeignKey('vendors.id', ondelete='CASCADE'), nullable=False),
        sa.Column('customer_user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('comment', sa.String(length=1000), nullable=True),
        sa.Column('reply', sa.String(length=1000), nullable=True),
        sa.Column('replied_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('booking_id', name='uq_reviews_booking_id'),
        sa.CheckConstraint('rating BETWEEN 1 AND 5', name='review_rating_range'),
    )
    op.create_index('ix_reviews_vendor_created', 'reviews', ['vendor_id', 'created_at'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_reviews_vendor_created', table_name='reviews')
    op.drop_table('reviews')
