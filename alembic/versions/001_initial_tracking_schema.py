"""Initial tracking schema - creates all tables

Revision ID: 001_initial_tracking_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000

Tracked users, their sessions and raw events, landing pages,
stored analytics rollups and funnel leads.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial_tracking_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables for session tracking and analytics"""

    # 1. Landing pages
    op.create_table(
        'landing_pages',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('url', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=True),
        sa.Column('total_visits', sa.Integer(), nullable=True),
        sa.Column('unique_users', sa.Integer(), nullable=True),
        sa.Column('conversion_rate', sa.Float(), nullable=True),
        sa.Column('last_access', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('url')
    )
    op.create_index(op.f('ix_landing_pages_id'), 'landing_pages', ['id'], unique=False)
    op.create_index(op.f('ix_landing_pages_last_access'), 'landing_pages', ['last_access'], unique=False)

    # 2. Tracked users (one per fingerprint)
    op.create_table(
        'tracked_users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('fingerprint', sa.String(), nullable=False),
        sa.Column('ip', sa.String(), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('location', sa.String(), nullable=True),
        sa.Column('referrer', sa.String(), nullable=True),
        sa.Column('first_visit', sa.DateTime(), nullable=True),
        sa.Column('last_activity', sa.DateTime(), nullable=True),
        sa.Column('sessions_count', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_tracked_users_id'), 'tracked_users', ['id'], unique=False)
    op.create_index(op.f('ix_tracked_users_fingerprint'), 'tracked_users', ['fingerprint'], unique=True)
    op.create_index(op.f('ix_tracked_users_last_activity'), 'tracked_users', ['last_activity'], unique=False)

    # 3. Sessions
    op.create_table(
        'user_sessions',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('landing_page_id', sa.Integer(), nullable=True),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=True),
        sa.Column('duration', sa.Float(), nullable=True),
        sa.Column('pages_viewed', sa.Integer(), nullable=True),
        sa.Column('interactions_count', sa.Integer(), nullable=True),
        sa.Column('entry_url', sa.String(), nullable=True),
        sa.Column('exit_url', sa.String(), nullable=True),
        sa.Column('is_converted', sa.Boolean(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['tracked_users.id'], ),
        sa.ForeignKeyConstraint(['landing_page_id'], ['landing_pages.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_user_sessions_user_id'), 'user_sessions', ['user_id'], unique=False)
    op.create_index(op.f('ix_user_sessions_landing_page_id'), 'user_sessions', ['landing_page_id'], unique=False)
    op.create_index(op.f('ix_user_sessions_start_time'), 'user_sessions', ['start_time'], unique=False)

    # 4. Raw events
    op.create_table(
        'session_events',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('session_id', sa.String(), nullable=False),
        sa.Column('type', sa.String(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=True),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(['session_id'], ['user_sessions.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_session_events_session_id'), 'session_events', ['session_id'], unique=False)
    op.create_index(op.f('ix_session_events_type'), 'session_events', ['type'], unique=False)
    op.create_index(op.f('ix_session_events_timestamp'), 'session_events', ['timestamp'], unique=False)

    # 5. Analytics rollups (one per period/key, overwritten on regeneration)
    op.create_table(
        'analytics_rollups',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('period', sa.String(), nullable=False),
        sa.Column('period_key', sa.String(), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('sample_size', sa.Integer(), nullable=True),
        sa.Column('confidence', sa.Float(), nullable=True),
        sa.Column('calculated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('period', 'period_key', name='uq_rollup_period_key')
    )
    op.create_index(op.f('ix_analytics_rollups_id'), 'analytics_rollups', ['id'], unique=False)
    op.create_index(op.f('ix_analytics_rollups_period_key'), 'analytics_rollups', ['period_key'], unique=False)

    # 6. Funnel leads
    op.create_table(
        'leads',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=True),
        sa.Column('type', sa.String(), nullable=True),
        sa.Column('value', sa.Float(), nullable=True),
        sa.Column('service', sa.String(), nullable=True),
        sa.Column('session_id', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['session_id'], ['user_sessions.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_leads_id'), 'leads', ['id'], unique=False)
    op.create_index(op.f('ix_leads_email'), 'leads', ['email'], unique=False)
    op.create_index(op.f('ix_leads_status'), 'leads', ['status'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_leads_status'), table_name='leads')
    op.drop_index(op.f('ix_leads_email'), table_name='leads')
    op.drop_index(op.f('ix_leads_id'), table_name='leads')
    op.drop_table('leads')

    op.drop_index(op.f('ix_analytics_rollups_period_key'), table_name='analytics_rollups')
    op.drop_index(op.f('ix_analytics_rollups_id'), table_name='analytics_rollups')
    op.drop_table('analytics_rollups')

    op.drop_index(op.f('ix_session_events_timestamp'), table_name='session_events')
    op.drop_index(op.f('ix_session_events_type'), table_name='session_events')
    op.drop_index(op.f('ix_session_events_session_id'), table_name='session_events')
    op.drop_table('session_events')

    op.drop_index(op.f('ix_user_sessions_start_time'), table_name='user_sessions')
    op.drop_index(op.f('ix_user_sessions_landing_page_id'), table_name='user_sessions')
    op.drop_index(op.f('ix_user_sessions_user_id'), table_name='user_sessions')
    op.drop_table('user_sessions')

    op.drop_index(op.f('ix_tracked_users_last_activity'), table_name='tracked_users')
    op.drop_index(op.f('ix_tracked_users_fingerprint'), table_name='tracked_users')
    op.drop_index(op.f('ix_tracked_users_id'), table_name='tracked_users')
    op.drop_table('tracked_users')

    op.drop_index(op.f('ix_landing_pages_last_access'), table_name='landing_pages')
    op.drop_index(op.f('ix_landing_pages_id'), table_name='landing_pages')
    op.drop_table('landing_pages')
