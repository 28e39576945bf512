"""Initial migration

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Admin users table
    op.create_table('admin_users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, default=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email')
    )

    # One row per client identity, versioned for optimistic writes
    op.create_table('attempt_records',
        sa.Column('identity', sa.String(length=64), nullable=False),
        sa.Column('ip_address', sa.String(length=45), nullable=False),
        sa.Column('failed_attempts', sa.Integer(), nullable=False, default=0),
        sa.Column('last_attempt_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cooldown_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('banned', sa.Boolean(), nullable=False, default=False),
        sa.Column('banned_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, default=1),
        sa.PrimaryKeyConstraint('identity')
    )
    op.create_index('ix_attempt_records_last_attempt_time', 'attempt_records', ['last_attempt_time'])
    op.create_index('ix_attempt_records_banned', 'attempt_records', ['banned'])

    # Login attempts audit log
    op.create_table('login_attempts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('identity', sa.String(length=64), nullable=False),
        sa.Column('ip_address', sa.String(length=45), nullable=False),
        sa.Column('credential_id', sa.String(length=255), nullable=True),
        sa.Column('endpoint', sa.String(length=100), nullable=False),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('browser', sa.String(length=50), nullable=False),
        sa.Column('os', sa.String(length=50), nullable=False),
        sa.Column('device', sa.String(length=50), nullable=False),
        sa.Column('success', sa.Boolean(), nullable=False, default=False),
        sa.Column('attempt_time', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_login_attempts_id', 'login_attempts', ['id'])
    op.create_index('ix_login_attempts_identity', 'login_attempts', ['identity'])
    op.create_index('ix_login_attempts_ip_address', 'login_attempts', ['ip_address'])
    op.create_index('ix_login_attempts_credential_id', 'login_attempts', ['credential_id'])
    op.create_index('ix_login_attempts_attempt_time', 'login_attempts', ['attempt_time'])

    # Security events
    op.create_table('security_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=50), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('username', sa.String(length=255), nullable=True),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_security_events_id', 'security_events', ['id'])
    op.create_index('ix_security_events_event_type', 'security_events', ['event_type'])
    op.create_index('ix_security_events_created_at', 'security_events', ['created_at'])


def downgrade() -> None:
    op.drop_table('security_events')
    op.drop_table('login_attempts')
    op.drop_table('attempt_records')
    op.drop_table('admin_users')
