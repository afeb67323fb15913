"""create_roster_schema

Revision ID: a1c2e3f4b5d6
Revises:
Create Date: 2026-10-18 09:00:00.000000

로스터 버전 체인 스키마 생성.
역할/사용자/매장, 휴가/가용성, 로스터/근무/감사 로그/미매칭 이름, 알림 테이블.
Create the roster version chain schema: roles, users, venues and
memberships, time off and availability, rosters with their shifts, audit
history and unmatched names, and notifications.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID


# revision identifiers, used by Alembic.
revision: str = 'a1c2e3f4b5d6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # roles / users — 역할 레벨 1=admin … 4=staff
    op.create_table(
        'roles',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        'users',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('role_id', UUID(as_uuid=True), sa.ForeignKey('roles.id'), nullable=False),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # venues / user_venues — 매니저의 매장 범위 (Manager venue scope)
    op.create_table(
        'venues',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('code', sa.String(20), nullable=True, unique=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        'user_venues',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('venue_id', UUID(as_uuid=True), sa.ForeignKey('venues.id', ondelete='CASCADE'), nullable=False),
        sa.Column('is_primary', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'venue_id', name='uq_user_venue'),
    )

    # time_off_requests / availabilities — 충돌 검사 입력 (Conflict checker inputs)
    op.create_table(
        'time_off_requests',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(20), server_default='PENDING'),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_time_off_user_dates', 'time_off_requests', ['user_id', 'start_date', 'end_date'])
    op.create_table(
        'availabilities',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        # 0=일요일 … 6=토요일 (0=Sunday … 6=Saturday)
        sa.Column('day_of_week', sa.Integer(), nullable=False),
        sa.Column('is_available', sa.Boolean(), server_default=sa.text('true')),
        sa.Column('is_all_day', sa.Boolean(), server_default=sa.text('false')),
        sa.Column('start_time', sa.Time(), nullable=True),
        sa.Column('end_time', sa.Time(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'day_of_week', name='uq_availability_user_day'),
    )

    # rosters — 체인 내 버전 번호 고유 (Unique version number per chain)
    op.create_table(
        'rosters',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('venue_id', UUID(as_uuid=True), sa.ForeignKey('venues.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(20), server_default='DRAFT', nullable=False),
        sa.Column('revision', sa.Integer(), server_default='1', nullable=False),
        sa.Column('chain_id', sa.String(64), nullable=True),
        sa.Column('version_number', sa.Integer(), server_default='1', nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('parent_id', UUID(as_uuid=True), sa.ForeignKey('rosters.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_by', UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('published_by', UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('published_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('chain_id', 'version_number', name='uq_roster_chain_version'),
    )
    op.create_index('ix_rosters_chain_active', 'rosters', ['chain_id', 'is_active'])
    op.create_index('ix_rosters_venue_dates', 'rosters', ['venue_id', 'start_date', 'end_date'])

    # roster_shifts — has_conflict/conflict_type은 충돌 판정 캐시 (Cached verdict)
    op.create_table(
        'roster_shifts',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('roster_id', UUID(as_uuid=True), sa.ForeignKey('rosters.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('break_minutes', sa.Integer(), server_default='0', nullable=False),
        sa.Column('position', sa.String(100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('original_name', sa.String(255), nullable=True),
        sa.Column('has_conflict', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('conflict_type', sa.String(20), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_roster_shifts_roster', 'roster_shifts', ['roster_id'])
    op.create_index('ix_roster_shifts_user_date', 'roster_shifts', ['user_id', 'date'])

    # roster_history — 추가 전용 감사 로그 (Append-only audit log)
    op.create_table(
        'roster_history',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('roster_id', UUID(as_uuid=True), sa.ForeignKey('rosters.id', ondelete='CASCADE'), nullable=False),
        sa.Column('chain_id', sa.String(64), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('changes', JSONB(), nullable=True),
        sa.Column('shifts_snapshot', JSONB(), nullable=True),
        sa.Column('metadata', JSONB(), nullable=True),
        sa.Column('performed_by', UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_roster_history_roster_version', 'roster_history', ['roster_id', 'version'])
    op.create_index('ix_roster_history_chain', 'roster_history', ['chain_id'])

    op.create_table(
        'unmatched_roster_entries',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('roster_id', UUID(as_uuid=True), sa.ForeignKey('rosters.id', ondelete='CASCADE'), nullable=False),
        sa.Column('original_name', sa.String(255), nullable=False),
        sa.Column('suggested_user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('confidence', sa.Float(), nullable=True),
        sa.Column('resolved', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('resolved_user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # notifications — 기본 알림 수신 측 (Default notification sink)
    op.create_table(
        'notifications',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.String(1000), nullable=False),
        sa.Column('link', sa.String(500), nullable=True),
        sa.Column('is_read', sa.Boolean(), server_default=sa.text('false')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_notifications_user_read', 'notifications', ['user_id', 'is_read'])


def downgrade() -> None:
    op.drop_index('ix_notifications_user_read', table_name='notifications')
    op.drop_table('notifications')
    op.drop_table('unmatched_roster_entries')
    op.drop_index('ix_roster_history_chain', table_name='roster_history')
    op.drop_index('ix_roster_history_roster_version', table_name='roster_history')
    op.drop_table('roster_history')
    op.drop_index('ix_roster_shifts_user_date', table_name='roster_shifts')
    op.drop_index('ix_roster_shifts_roster', table_name='roster_shifts')
    op.drop_table('roster_shifts')
    op.drop_index('ix_rosters_venue_dates', table_name='rosters')
    op.drop_index('ix_rosters_chain_active', table_name='rosters')
    op.drop_table('rosters')
    op.drop_table('availabilities')
    op.drop_index('ix_time_off_user_dates', table_name='time_off_requests')
    op.drop_table('time_off_requests')
    op.drop_table('user_venues')
    op.drop_table('venues')
    op.drop_table('users')
    op.drop_table('roles')
