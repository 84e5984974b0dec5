"""Initial portfolio schema: accounts, content, contact inbox and analytics

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2025-10-20 18:17:18.000000
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a1b2c3d4e5f6'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=36), primary_key=True, nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'token_blocklist',
        sa.Column('id', sa.String(length=36), primary_key=True, nullable=False),
        sa.Column('jti', sa.String(length=64), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=True),
        sa.Column('revoked_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_token_blocklist_jti', 'token_blocklist', ['jti'], unique=True)

    op.create_table(
        'projects',
        sa.Column('id', sa.String(length=36), primary_key=True, nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('short_description', sa.String(length=500), nullable=False),
        sa.Column('technologies', sa.JSON(), nullable=False),
        sa.Column('images', sa.JSON(), nullable=False),
        sa.Column('live_url', sa.String(length=2048), nullable=True),
        sa.Column('github_url', sa.String(length=2048), nullable=True),
        sa.Column('featured', sa.Boolean(), nullable=False),
        sa.Column('order', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_projects_slug', 'projects', ['slug'], unique=True)
    op.create_index('ix_projects_status', 'projects', ['status'])

    op.create_table(
        'profiles',
        sa.Column('id', sa.String(length=36), primary_key=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('bio', sa.Text(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('profile_image', sa.String(length=2048), nullable=True),
        sa.Column('skills', sa.JSON(), nullable=False),
        sa.Column('experience', sa.JSON(), nullable=False),
        sa.Column('education', sa.JSON(), nullable=False),
        sa.Column('social_links', sa.JSON(), nullable=False),
        sa.Column('resume_url', sa.String(length=2048), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'contacts',
        sa.Column('id', sa.String(length=36), primary_key=True, nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('subject', sa.String(length=200), nullable=True),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_contacts_status', 'contacts', ['status'])
    op.create_index('ix_contacts_created_at', 'contacts', ['created_at'])

    op.create_table(
        'analytics',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column('page_url', sa.String(length=2048), nullable=False),
        sa.Column('page_title', sa.String(length=500), nullable=True),
        sa.Column('referrer', sa.String(length=2048), nullable=True),
        sa.Column('user_agent', sa.String(length=1024), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('country', sa.String(length=100), nullable=True),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('device', sa.String(length=50), nullable=True),
        sa.Column('browser', sa.String(length=100), nullable=True),
        sa.Column('session_id', sa.String(length=128), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_analytics_session_id', 'analytics', ['session_id'])
    op.create_index('ix_analytics_timestamp', 'analytics', ['timestamp'])
    op.create_index('ix_analytics_session_page_time', 'analytics', ['session_id', 'page_url', 'timestamp'])

    op.create_table(
        'page_views',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column('page_url', sa.String(length=2048), nullable=False),
        sa.Column('referrer', sa.String(length=2048), nullable=True),
        sa.Column('session_id', sa.String(length=128), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_page_views_session_id', 'page_views', ['session_id'])
    op.create_index('ix_page_views_timestamp', 'page_views', ['timestamp'])
    op.create_index('ix_page_views_session_time', 'page_views', ['session_id', 'timestamp'])

    op.create_table(
        'sessions',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column('session_id', sa.String(length=128), nullable=False),
        sa.Column('user_agent', sa.String(length=1024), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('country', sa.String(length=100), nullable=True),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('device', sa.String(length=50), nullable=True),
        sa.Column('browser', sa.String(length=100), nullable=True),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=True),
        sa.Column('page_views', sa.Integer(), nullable=False),
    )
    op.create_index('ix_sessions_session_id', 'sessions', ['session_id'], unique=True)
    op.create_index('ix_sessions_start_time', 'sessions', ['start_time'])
    op.create_index('ix_sessions_end_time', 'sessions', ['end_time'])

    op.create_table(
        'cleanup_schedules',
        sa.Column('id', sa.String(length=36), primary_key=True, nullable=False),
        sa.Column('enabled', sa.Boolean(), nullable=False),
        sa.Column('retention_days', sa.Integer(), nullable=False),
        sa.Column('schedule', sa.String(length=20), nullable=False),
        sa.Column('aggressive', sa.Boolean(), nullable=False),
        sa.Column('next_run', sa.DateTime(), nullable=False),
        sa.Column('last_run', sa.DateTime(), nullable=True),
        sa.Column('last_result', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_cleanup_schedules_next_run', 'cleanup_schedules', ['next_run'])


def downgrade() -> None:
    op.drop_index('ix_cleanup_schedules_next_run', table_name='cleanup_schedules')
    op.drop_table('cleanup_schedules')
    op.drop_index('ix_sessions_end_time', table_name='sessions')
    op.drop_index('ix_sessions_start_time', table_name='sessions')
    op.drop_index('ix_sessions_session_id', table_name='sessions')
    op.drop_table('sessions')
    op.drop_index('ix_page_views_session_time', table_name='page_views')
    op.drop_index('ix_page_views_timestamp', table_name='page_views')
    op.drop_index('ix_page_views_session_id', table_name='page_views')
    op.drop_table('page_views')
    op.drop_index('ix_analytics_session_page_time', table_name='analytics')
    op.drop_index('ix_analytics_timestamp', table_name='analytics')
    op.drop_index('ix_analytics_session_id', table_name='analytics')
    op.drop_table('analytics')
    op.drop_index('ix_contacts_created_at', table_name='contacts')
    op.drop_index('ix_contacts_status', table_name='contacts')
    op.drop_table('contacts')
    op.drop_table('profiles')
    op.drop_index('ix_projects_status', table_name='projects')
    op.drop_index('ix_projects_slug', table_name='projects')
    op.drop_table('projects')
    op.drop_index('ix_token_blocklist_jti', table_name='token_blocklist')
    op.drop_table('token_blocklist')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
