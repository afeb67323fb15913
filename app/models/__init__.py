"""SQLAlchemy ORM 모델 패키지 — 모든 모델을 임포트하여 메타데이터에 등록.

SQLAlchemy ORM models package.
Imports all models so they are registered with Base.metadata for table creation.

Modules:
    user: 사용자 및 역할 (Users and roles)
    venue: 매장 및 사용자-매장 연결 (Venues and venue memberships)
    staff: 휴가 신청 및 가용성 (Time-off requests and availability)
    roster: 로스터, 근무, 감사 로그, 미매칭 이름 (Rosters, shifts, history, unmatched names)
    notification: 사용자 알림 (User notifications)
"""

from app.models.user import Role, User
from app.models.venue import Venue, UserVenue
from app.models.staff import Availability, TimeOffRequest, TimeOffStatus
from app.models.roster import (
    AUDIT_ACTION_LABELS,
    AuditAction,
    ConflictType,
    Roster,
    RosterHistory,
    RosterShift,
    RosterStatus,
    UnmatchedRosterEntry,
)
from app.models.notification import Notification

__all__ = [
    "Role",
    "User",
    "Venue",
    "UserVenue",
    "Availability",
    "TimeOffRequest",
    "TimeOffStatus",
    "AUDIT_ACTION_LABELS",
    "AuditAction",
    "ConflictType",
    "Roster",
    "RosterHistory",
    "RosterShift",
    "RosterStatus",
    "UnmatchedRosterEntry",
    "Notification",
]
