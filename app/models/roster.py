"""로스터 버전 체인 관련 SQLAlchemy ORM 모델 정의.

Roster version-chain SQLAlchemy ORM model definitions.
A roster covers one venue for one week. Successive edits of the same
venue/week form a *chain* (same ``chain_id``, increasing ``version_number``)
with at most one ``is_active`` member: the highest-versioned PUBLISHED one.

Tables:
    - rosters: 주간 로스터 (Weekly rosters, one row per chain version)
    - roster_shifts: 로스터 근무 배정 (Shift assignments or unfilled slots)
    - roster_history: 감사 로그 (Append-only audit entries with optional snapshots)
    - unmatched_roster_entries: 미매칭 직원 이름 (Extracted names not matched to a user)
"""

import uuid
from datetime import date, datetime, time, timezone
from enum import StrEnum

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base

# PostgreSQL에서는 JSONB, 그 외(테스트용 SQLite)에서는 JSON
# JSONB on PostgreSQL, plain JSON elsewhere (SQLite test database); None is stored as SQL NULL
JSONType = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")


class RosterStatus(StrEnum):
    """로스터 상태 값.

    Roster lifecycle states. PENDING_REVIEW is a legacy value that is only
    accepted as an alias of DRAFT by ``finalize``.
    """

    DRAFT = "DRAFT"
    APPROVED = "APPROVED"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"
    PENDING_REVIEW = "PENDING_REVIEW"


class ConflictType(StrEnum):
    """충돌 유형 — 우선순위 순서 (Conflict kinds, in priority order)."""

    TIME_OFF = "TIME_OFF"
    DOUBLE_BOOKED = "DOUBLE_BOOKED"
    AVAILABILITY = "AVAILABILITY"


class AuditAction(StrEnum):
    """로스터 감사 로그 액션 — 기록 가능한 모든 액션의 닫힌 목록.

    Closed set of actions written to ``roster_history``.
    """

    # 체인/버전 — Chain and version actions
    CHAIN_CREATED = "CHAIN_CREATED"
    VERSION_CREATED = "VERSION_CREATED"
    VERSION_ACTIVATED = "VERSION_ACTIVATED"
    VERSION_SUPERSEDED = "VERSION_SUPERSEDED"
    RESTORED_FROM_VERSION = "RESTORED_FROM_VERSION"
    ARCHIVED_BY_NEW_VERSION = "ARCHIVED_BY_NEW_VERSION"

    # 로스터 — Roster actions
    ROSTER_CREATED = "ROSTER_CREATED"
    ROSTER_UPDATED = "ROSTER_UPDATED"
    ROSTER_DELETED = "ROSTER_DELETED"
    ROSTER_COPIED = "ROSTER_COPIED"

    # 근무 — Shift actions
    SHIFTS_IMPORTED = "SHIFTS_IMPORTED"
    SHIFT_ADDED = "SHIFT_ADDED"
    SHIFT_REMOVED = "SHIFT_REMOVED"
    SHIFT_UPDATED = "SHIFT_UPDATED"
    SHIFTS_BULK_ADDED = "SHIFTS_BULK_ADDED"
    SHIFTS_BULK_UPDATE = "SHIFTS_BULK_UPDATE"

    # 상태 전이 — Lifecycle transitions
    FINALIZED = "FINALIZED"
    PUBLISHED = "PUBLISHED"
    PUBLISHED_AS_NEW_VERSION = "PUBLISHED_AS_NEW_VERSION"
    UNPUBLISHED = "UNPUBLISHED"
    REVERTED_TO_DRAFT = "REVERTED_TO_DRAFT"
    STATUS_ARCHIVED = "STATUS_ARCHIVED"

    # 병합/롤백 — Merge and rollback
    ROLLBACK_STARTED = "ROLLBACK_STARTED"
    ROLLBACK_COMPLETE = "ROLLBACK_COMPLETE"
    MERGE_STARTED = "MERGE_STARTED"
    MERGE_COMPLETE = "MERGE_COMPLETE"

    # 충돌 — Conflict actions
    CONFLICTS_DETECTED = "CONFLICTS_DETECTED"
    CONFLICT_RESOLVED = "CONFLICT_RESOLVED"
    UNMATCHED_RESOLVED = "UNMATCHED_RESOLVED"


# 액션 표시 이름 — Display labels for the history UI
AUDIT_ACTION_LABELS: dict[str, str] = {
    AuditAction.CHAIN_CREATED: "Version chain created",
    AuditAction.VERSION_CREATED: "New version created",
    AuditAction.VERSION_ACTIVATED: "Version activated",
    AuditAction.VERSION_SUPERSEDED: "Superseded by a newer version",
    AuditAction.RESTORED_FROM_VERSION: "Restored from an earlier version",
    AuditAction.ARCHIVED_BY_NEW_VERSION: "Archived by a new version",
    AuditAction.ROSTER_CREATED: "Roster created",
    AuditAction.ROSTER_UPDATED: "Roster details updated",
    AuditAction.ROSTER_DELETED: "Roster deleted",
    AuditAction.ROSTER_COPIED: "Roster copied from another week",
    AuditAction.SHIFTS_IMPORTED: "Shifts imported",
    AuditAction.SHIFT_ADDED: "Shift added",
    AuditAction.SHIFT_REMOVED: "Shift removed",
    AuditAction.SHIFT_UPDATED: "Shift updated",
    AuditAction.SHIFTS_BULK_ADDED: "Shifts added in bulk",
    AuditAction.SHIFTS_BULK_UPDATE: "Shifts updated in bulk",
    AuditAction.FINALIZED: "Finalized",
    AuditAction.PUBLISHED: "Published",
    AuditAction.PUBLISHED_AS_NEW_VERSION: "Published as new version",
    AuditAction.UNPUBLISHED: "Unpublished",
    AuditAction.REVERTED_TO_DRAFT: "Reverted to draft",
    AuditAction.STATUS_ARCHIVED: "Archived",
    AuditAction.ROLLBACK_STARTED: "Rollback started",
    AuditAction.ROLLBACK_COMPLETE: "Rollback complete",
    AuditAction.MERGE_STARTED: "Merge started",
    AuditAction.MERGE_COMPLETE: "Merge complete",
    AuditAction.CONFLICTS_DETECTED: "Conflicts detected",
    AuditAction.CONFLICT_RESOLVED: "Conflict resolved",
    AuditAction.UNMATCHED_RESOLVED: "Unmatched staff resolved",
}


class Roster(Base):
    """로스터 모델 — 한 매장의 한 주 근무표, 체인의 한 버전.

    Roster model — One scheduling unit for a venue over a date range,
    and one version within its chain.

    Status Flow:
        DRAFT → APPROVED → PUBLISHED → ARCHIVED
        - APPROVED/PUBLISHED → DRAFT (revert, audited)
        - ARCHIVED is terminal

    Attributes:
        id: 고유 식별자 UUID (Unique identifier)
        venue_id: 매장 FK (Owning venue)
        name: 로스터 이름 (Display name)
        description: 설명 (Optional description)
        start_date: 시작일 (First day, inclusive)
        end_date: 종료일 (Last day, inclusive)
        status: 상태 (DRAFT/APPROVED/PUBLISHED/ARCHIVED)
        revision: 편집 카운터 (Edit counter, bumped with every audited change)
        chain_id: 버전 체인 ID (Deterministic id of the venue/week chain)
        version_number: 체인 내 버전 번호 (Position within the chain, from 1)
        is_active: 현재 게시 버전 여부 (True iff this is the live version)
        parent_id: 직전 버전 FK (Direct predecessor, lineage display only)
        created_by: 작성자 FK (Creator)
        published_by: 게시자 FK (Publisher, set on publish)
        published_at: 게시 일시 (Publish timestamp)

    Constraints:
        uq_roster_chain_version: 체인 내 버전 번호 고유 (Unique version number per chain)
    """

    __tablename__ = "rosters"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # 매장 FK — Owning venue
    venue_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("venues.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # 기간 — Inclusive date range (usually one week)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    # 상태 — DRAFT | APPROVED | PUBLISHED | ARCHIVED
    status: Mapped[str] = mapped_column(String(20), default=RosterStatus.DRAFT, nullable=False)
    # 편집 카운터 — 감사 로그 기록과 함께만 증가 (Only ever bumped together with an audit entry)
    revision: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    # 버전 체인 — Version chain membership
    chain_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    version_number: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    parent_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("rosters.id", ondelete="SET NULL"), nullable=True)
    # 작성/게시 — Authorship
    created_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id"), nullable=True)
    published_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id"), nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint("chain_id", "version_number", name="uq_roster_chain_version"),
        Index("ix_rosters_chain_active", "chain_id", "is_active"),
        Index("ix_rosters_venue_dates", "venue_id", "start_date", "end_date"),
    )


class RosterShift(Base):
    """로스터 근무 모델 — 직원 배정 1건 또는 미배정 슬롯.

    Roster shift model — One staff assignment (or unfilled slot) on one roster.
    ``has_conflict``/``conflict_type`` cache the conflict checker's verdict as
    of the last check and are recomputed on every staff/date/time change.

    Attributes:
        roster_id: 소속 로스터 FK (Owning roster, deleted with it)
        user_id: 배정 직원 FK, None이면 미배정 (Assignee, None = unfilled slot)
        date: 근무일 (Shift date)
        start_time: 시작 시각 (Local wall-clock start)
        end_time: 종료 시각 (Local wall-clock end)
        break_minutes: 휴게 시간(분) (Unpaid break in minutes)
        position: 포지션 (Position/role label)
        notes: 메모 (Free-text notes)
        original_name: 원본 직원 이름 (Staff name as extracted from the source file)
        has_conflict: 충돌 여부 캐시 (Cached conflict flag)
        conflict_type: 충돌 유형 캐시 (Cached conflict type)
    """

    __tablename__ = "roster_shifts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    roster_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("rosters.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    break_minutes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    position: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    original_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # 충돌 캐시 — Cached conflict verdict
    has_conflict: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    conflict_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("ix_roster_shifts_roster", "roster_id"),
        Index("ix_roster_shifts_user_date", "user_id", "date"),
    )


class RosterHistory(Base):
    """로스터 감사 로그 모델 — 추가 전용, 수정/삭제 금지.

    Append-only audit entry for one action on one roster. ``version`` is the
    roster's ``revision`` after the entry was applied. ``shifts_snapshot``,
    when present, is a complete point-in-time copy of the shift set.

    JSON Snapshot Structure (shifts_snapshot):
        [
            {
                "id": "uuid",
                "user_id": "uuid" | null,
                "user_name": "Jane Doe" | null,
                "date": "2025-06-10",
                "start_time": "09:00",
                "end_time": "17:00",
                "break_minutes": 30,
                "position": "Bar" | null,
                "notes": "..." | null,
                "original_name": "Jane" | null
            },
            ...
        ]
    """

    __tablename__ = "roster_history"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    roster_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("rosters.id", ondelete="CASCADE"), nullable=False)
    chain_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    changes: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    shifts_snapshot: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    # "metadata"는 Declarative 예약어 — attribute name differs from column name
    meta: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)
    performed_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("ix_roster_history_roster_version", "roster_id", "version"),
        Index("ix_roster_history_chain", "chain_id"),
    )


class UnmatchedRosterEntry(Base):
    """미매칭 직원 이름 모델.

    Staff name found in an extracted roster that could not be matched to a
    user with sufficient confidence. Copied into new versions until resolved.
    """

    __tablename__ = "unmatched_roster_entries"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    roster_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("rosters.id", ondelete="CASCADE"), nullable=False)
    original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    suggested_user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    resolved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    resolved_user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
