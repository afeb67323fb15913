"""로스터 감사 로그 서비스 — 이력 기록 및 조회.

Roster audit/history service.
``record`` bumps the roster's ``revision`` and appends a history row in the
caller's transaction, so the counter and the log always move together.
``record_event`` logs without bumping and never fails the caller.
"""

import logging
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.roster import AUDIT_ACTION_LABELS, Roster, RosterHistory, RosterShift
from app.repositories.history_repository import history_repository
from app.repositories.shift_repository import shift_repository
from app.repositories.user_repository import user_repository
from app.utils.exceptions import NotFoundError
from app.utils.time_utils import format_time

logger = logging.getLogger(__name__)


def shift_to_snapshot(shift: RosterShift, names: dict[UUID, str]) -> dict[str, Any]:
    """근무 1건을 비정규화된 스냅샷 딕셔너리로 변환합니다.

    Denormalize one shift into a snapshot entry that can be diffed or
    restored without further joins.
    """
    return {
        "id": str(shift.id),
        "user_id": str(shift.user_id) if shift.user_id else None,
        "user_name": names.get(shift.user_id) if shift.user_id else None,
        "date": shift.date.isoformat(),
        "start_time": format_time(shift.start_time),
        "end_time": format_time(shift.end_time),
        "break_minutes": shift.break_minutes or 0,
        "position": shift.position,
        "notes": shift.notes,
        "original_name": shift.original_name,
    }


class AuditService:
    """감사 로그 서비스 (Audit recorder and query surface)."""

    async def build_snapshot(self, db: AsyncSession, roster_id: UUID) -> list[dict[str, Any]]:
        """로스터의 현재 근무 전체를 스냅샷으로 만듭니다.

        Capture the complete current shift set of a roster.
        """
        shifts: Sequence[RosterShift] = await shift_repository.get_by_roster(db, roster_id)
        names: dict[UUID, str] = await user_repository.get_names(db, (s.user_id for s in shifts))
        return [shift_to_snapshot(s, names) for s in shifts]

    async def record(
        self,
        db: AsyncSession,
        roster: Roster,
        action: str,
        changes: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
        include_snapshot: bool = False,
        snapshot: list[dict[str, Any]] | None = None,
        performed_by: UUID | None = None,
    ) -> RosterHistory:
        """리비전을 증가시키고 감사 로그를 기록합니다.

        Increment ``roster.revision`` and append a history entry stamped with
        the new revision, inside the caller's transaction.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            roster: 대상 로스터 (Roster the action applies to)
            action: 액션 (AuditAction value)
            changes: 변경 내용 (Free-form change payload)
            metadata: 추가 메타데이터 (Extra metadata merged over the defaults)
            include_snapshot: 현재 근무 스냅샷 포함 여부 (Capture the live shift set)
            snapshot: 미리 만든 스냅샷 (Pre-built snapshot, wins over include_snapshot)
            performed_by: 수행 사용자 (Acting user)

        Returns:
            RosterHistory: 생성된 감사 항목 (Created entry)
        """
        if snapshot is None and include_snapshot:
            snapshot = await self.build_snapshot(db, roster.id)

        roster.revision = (roster.revision or 0) + 1
        entry: RosterHistory = RosterHistory(
            roster_id=roster.id,
            chain_id=roster.chain_id,
            version=roster.revision,
            action=str(action),
            changes=changes or {},
            shifts_snapshot=snapshot,
            meta={"version_number": roster.version_number, "status": roster.status, **(metadata or {})},
            performed_by=performed_by,
        )
        db.add(entry)
        await db.flush()
        return entry

    async def record_event(
        self,
        db: AsyncSession,
        roster: Roster,
        action: str,
        changes: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
        performed_by: UUID | None = None,
    ) -> RosterHistory | None:
        """리비전 증가 없이 이벤트를 기록합니다 (실패해도 예외 없음).

        Log an event at the current revision without bumping it. Runs in a
        savepoint; a failure is logged and the caller's transaction goes on.
        """
        try:
            async with db.begin_nested():
                entry: RosterHistory = RosterHistory(
                    roster_id=roster.id,
                    chain_id=roster.chain_id,
                    version=roster.revision,
                    action=str(action),
                    changes=changes or {},
                    meta={"version_number": roster.version_number, "status": roster.status, **(metadata or {})},
                    performed_by=performed_by,
                )
                db.add(entry)
            return entry
        except SQLAlchemyError as exc:
            logger.error("[audit] failed to record %s for roster=%s: %s", action, roster.id, exc)
            return None

    @staticmethod
    def serialize_entry(entry: RosterHistory, include_snapshot: bool = False) -> dict[str, Any]:
        """감사 항목 응답 딕셔너리 (Response dict for one entry)."""
        data: dict[str, Any] = {
            "id": str(entry.id),
            "roster_id": str(entry.roster_id),
            "chain_id": entry.chain_id,
            "version": entry.version,
            "action": entry.action,
            "label": AUDIT_ACTION_LABELS.get(entry.action, entry.action),
            "changes": entry.changes or {},
            "metadata": entry.meta or {},
            "performed_by": str(entry.performed_by) if entry.performed_by else None,
            "created_at": entry.created_at,
            "has_snapshot": entry.shifts_snapshot is not None,
        }
        if include_snapshot:
            data["shifts_snapshot"] = entry.shifts_snapshot
        return data

    async def get_audit_log(
        self,
        db: AsyncSession,
        roster_id: UUID,
        action: str | None = None,
        limit: int | None = None,
        include_snapshots: bool = False,
    ) -> list[dict]:
        """로스터 감사 로그 조회 — 스냅샷은 기본 제외.

        Entries of one roster, newest first. Snapshots are large and are
        only included on request.
        """
        entries = await history_repository.get_for_roster(
            db, roster_id, action=action, limit=limit or settings.AUDIT_LOG_DEFAULT_LIMIT
        )
        return [self.serialize_entry(e, include_snapshots) for e in entries]

    async def get_chain_audit_log(
        self,
        db: AsyncSession,
        chain_id: str,
        limit: int | None = None,
    ) -> list[dict]:
        """체인 전체 감사 로그 (Entries across a whole chain with roster name/version)."""
        rows = await history_repository.get_for_chain(
            db, chain_id, limit=limit or settings.CHAIN_AUDIT_LOG_DEFAULT_LIMIT
        )
        result: list[dict] = []
        for entry, roster_name, version_number in rows:
            data: dict = self.serialize_entry(entry)
            data["roster_name"] = roster_name
            data["version_number"] = version_number
            result.append(data)
        return result

    async def get_latest_snapshot(self, db: AsyncSession, roster_id: UUID) -> dict:
        """최신 스냅샷 조회 (Latest snapshot of a roster)."""
        entry: RosterHistory | None = await history_repository.get_latest_snapshot(db, roster_id)
        if entry is None:
            raise NotFoundError("No snapshot recorded for this roster")
        return self.serialize_entry(entry, include_snapshot=True)

    async def get_rollback_points(
        self,
        db: AsyncSession,
        roster_id: UUID,
        limit: int | None = None,
    ) -> list[dict]:
        """롤백 가능 지점 목록 (Snapshot-carrying entries with their shift counts)."""
        entries = await history_repository.get_snapshot_entries(
            db, roster_id, limit=limit or settings.ROLLBACK_POINTS_DEFAULT_LIMIT
        )
        return [
            {
                "id": str(e.id),
                "version": e.version,
                "action": e.action,
                "label": AUDIT_ACTION_LABELS.get(e.action, e.action),
                "created_at": e.created_at,
                "performed_by": str(e.performed_by) if e.performed_by else None,
                "shift_count": len(e.shifts_snapshot or []),
            }
            for e in entries
        ]


# 싱글턴 인스턴스 — Singleton instance
audit_service: AuditService = AuditService()
