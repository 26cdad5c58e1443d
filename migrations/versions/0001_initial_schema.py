"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2025-11-20 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('role', sa.String(16), nullable=False, server_default='owner'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('last_login', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'clubs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('owner_user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('address', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(64), nullable=True),
        sa.Column('currency', sa.String(8), nullable=False, server_default='kzt'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_clubs_owner_user_id', 'clubs', ['owner_user_id'])

    op.create_table(
        'groups',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('club_id', sa.String(36), sa.ForeignKey('clubs.id'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('sport', sa.String(64), nullable=True),
        sa.Column('capacity', sa.Integer(), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('coach_user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_groups_club_id', 'groups', ['club_id'])
    op.create_index('ix_groups_coach_user_id', 'groups', ['coach_user_id'])

    op.create_table(
        'students',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('club_id', sa.String(36), sa.ForeignKey('clubs.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('birth_date', sa.Date(), nullable=True),
        sa.Column('parent_contact', sa.JSON(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_students_club_id', 'students', ['club_id'])

    op.create_table(
        'sessions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('group_id', sa.String(36), sa.ForeignKey('groups.id'), nullable=False),
        sa.Column('start_at', sa.DateTime(), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False, server_default='60'),
        sa.Column('location', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_sessions_group_id', 'sessions', ['group_id'])
    op.create_index('ix_sessions_start_at', 'sessions', ['start_at'])

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('student_id', sa.String(36), sa.ForeignKey('students.id'), nullable=False),
        sa.Column('group_id', sa.String(36), sa.ForeignKey('groups.id'), nullable=False),
        sa.Column('total_sessions', sa.Integer(), nullable=False),
        sa.Column('remaining_sessions', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('starts_at', sa.DateTime(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('status', sa.String(16), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('total_sessions > 0', name='ck_subscriptions_total_positive'),
        sa.CheckConstraint(
            'remaining_sessions >= 0 AND remaining_sessions <= total_sessions',
            name='ck_subscriptions_remaining_bounds',
        ),
    )
    op.create_index('ix_subscriptions_student_id', 'subscriptions', ['student_id'])
    op.create_index('ix_subscriptions_group_id', 'subscriptions', ['group_id'])
    op.create_index('ix_subscriptions_created_at', 'subscriptions', ['created_at'])
    op.create_index('ix_subscriptions_eligibility', 'subscriptions', ['student_id', 'group_id', 'status'])

    op.create_table(
        'attendances',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('session_id', sa.String(36), sa.ForeignKey('sessions.id'), nullable=False),
        sa.Column('student_id', sa.String(36), sa.ForeignKey('students.id'), nullable=False),
        sa.Column('subscription_id', sa.String(36), sa.ForeignKey('subscriptions.id'), nullable=True),
        sa.Column('status', sa.String(16), nullable=False),
        sa.Column('noted_by', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('noted_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('session_id', 'student_id', name='uq_attendances_session_student'),
    )
    op.create_index('ix_attendances_session_id', 'attendances', ['session_id'])
    op.create_index('ix_attendances_student_id', 'attendances', ['student_id'])
    op.create_index('ix_attendances_subscription_id', 'attendances', ['subscription_id'])

    op.create_table(
        'payments',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('subscription_id', sa.String(36), sa.ForeignKey('subscriptions.id'), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('currency', sa.String(8), nullable=False),
        sa.Column('method', sa.String(16), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='pending'),
        sa.Column('provider_payment_id', sa.String(255), nullable=True, unique=True),
        sa.Column('provider_intent_id', sa.String(255), nullable=True),
        sa.Column('provider_metadata', sa.JSON(), nullable=True),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_payments_subscription_id', 'payments', ['subscription_id'])
    op.create_index('ix_payments_provider_intent_id', 'payments', ['provider_intent_id'])
    op.create_index('ix_payments_created_at', 'payments', ['created_at'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('payments')
    op.drop_table('attendances')
    op.drop_table('subscriptions')
    op.drop_table('sessions')
    op.drop_table('students')
    op.drop_table('groups')
    op.drop_table('clubs')
    op.drop_table('users')
