"""links and click_events

Revision ID: links_clicks_001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'links_clicks_001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- Links ---
    op.create_table('links',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('slug', sa.String(length=100), nullable=False),
        sa.Column('destination_url', sa.Text(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=True),
        sa.Column('password', sa.String(length=255), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('max_clicks', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('click_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('owner_id', sa.Uuid(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_links_slug'), 'links', ['slug'], unique=True)
    op.create_index(op.f('ix_links_owner_id'), 'links', ['owner_id'], unique=False)

    # --- Click events (append-only) ---
    op.create_table('click_events',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('link_id', sa.Uuid(), nullable=False),
        sa.Column('ip_hash', sa.String(length=64), nullable=False),
        sa.Column('device', sa.String(length=20), nullable=False),
        sa.Column('browser', sa.String(length=50), nullable=False),
        sa.Column('os', sa.String(length=50), nullable=False),
        sa.Column('country', sa.String(length=100), nullable=True),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('referrer', sa.Text(), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['link_id'], ['links.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_click_events_dedupe', 'click_events', ['link_id', 'ip_hash', 'created_at'])
    op.create_index('ix_click_events_link_created', 'click_events', ['link_id', 'created_at'])


def downgrade() -> None:
    op.drop_index('ix_click_events_link_created', table_name='click_events')
    op.drop_index('ix_click_events_dedupe', table_name='click_events')
    op.drop_table('click_events')
    op.drop_index(op.f('ix_links_owner_id'), table_name='links')
    op.drop_index(op.f('ix_links_slug'), table_name='links')
    op.drop_table('links')
