"""병합 서비스 — 재업로드된 근무를 기존 DRAFT에 병합.

Merge service: preview and apply an incoming (re-extracted) shift set on
top of an existing draft. The caller picks which parts of the preview to
apply; everything selected is applied in one transaction between a
MERGE_STARTED entry (with the pre-merge snapshot) and MERGE_COMPLETE.
"""

import logging
from typing import Any
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.roster import AuditAction, Roster, RosterShift, RosterStatus
from app.repositories.roster_repository import roster_repository
from app.repositories.shift_repository import shift_repository
from app.schemas.shift import ShiftCreate
from app.schemas.version import ApplyMergeRequest, SnapshotShift
from app.services.audit_service import audit_service
from app.services.diff_service import diff_service
from app.services.notification_service import NotificationMessage, notification_service
from app.services.shift_service import shift_service
from app.utils.exceptions import BadRequestError, IllegalStateTransitionError, NotFoundError
from app.utils.time_utils import parse_time

logger = logging.getLogger(__name__)


class MergeService:
    """병합 서비스 (Merge preview/apply)."""

    async def _get_roster(self, db: AsyncSession, roster_id: UUID, for_update: bool = False) -> Roster:
        roster: Roster | None = await roster_repository.get_by_id(db, roster_id, for_update=for_update)
        if roster is None:
            raise NotFoundError("Roster not found")
        return roster

    async def preview_merge(self, db: AsyncSession, roster_id: UUID, incoming: list[SnapshotShift]) -> dict:
        """병합 미리보기 (Preview ``incoming`` against the roster's current shifts)."""
        await self._get_roster(db, roster_id)
        existing: list[dict[str, Any]] = await audit_service.build_snapshot(db, roster_id)
        return diff_service.preview_merge(existing, [s.model_dump() for s in incoming])

    async def apply_merge(
        self,
        db: AsyncSession,
        roster_id: UUID,
        request: ApplyMergeRequest,
        performed_by: UUID | None = None,
    ) -> tuple[dict, list[NotificationMessage]]:
        """선택한 병합 항목을 적용합니다.

        Apply the selected additions, removals and updates to a DRAFT roster.

        Returns:
            tuple[dict, list[NotificationMessage]]: (added/removed/updated 건수,
                추가된 근무의 직원에게 보낼 알림)
                (Counts, messages for staff who received added shifts)

        Raises:
            IllegalStateTransitionError: DRAFT가 아님 (Only drafts accept merges)
            BadRequestError: 잘못된 근무 데이터 (Malformed incoming shift)
        """
        roster: Roster = await self._get_roster(db, roster_id, for_update=True)
        if roster.status != RosterStatus.DRAFT:
            raise IllegalStateTransitionError("Can only merge into draft rosters")

        try:
            to_add: list[ShiftCreate] = (
                [shift_service.snapshot_to_create(s.model_dump()) for s in request.shifts_to_add]
                if request.add_shifts else []
            )
        except (ValidationError, ValueError) as exc:
            raise BadRequestError(f"Invalid shift in merge request: {exc}")

        await audit_service.record(
            db, roster, AuditAction.MERGE_STARTED,
            changes={
                "add_shifts": request.add_shifts,
                "remove_shifts": request.remove_shifts,
                "update_shifts": request.update_shifts,
                "requested_add": len(request.shifts_to_add),
                "requested_remove": len(request.shifts_to_remove),
                "requested_update": len(request.shifts_to_update),
            },
            include_snapshot=True,
            performed_by=performed_by,
        )

        removed: int = 0
        if request.remove_shifts:
            removed = await shift_repository.delete_many(db, roster.id, request.shifts_to_remove)

        added_user_ids: set[str] = set()
        added: int = 0
        if to_add:
            rows: list[dict[str, Any]] = await shift_service.prepare_rows(db, roster, to_add)
            created: list[RosterShift] = await shift_repository.bulk_create(db, rows)
            added = len(created)
            added_user_ids = {str(s.user_id) for s in created if s.user_id is not None}

        updated: int = 0
        if request.update_shifts:
            for entry in request.shifts_to_update:
                shift: RosterShift | None = await shift_repository.get_in_roster(db, roster.id, entry.id)
                if shift is None:
                    continue
                await self._apply_update(db, roster, shift, entry.updates)
                updated += 1
            await db.flush()

        await audit_service.record(
            db, roster, AuditAction.MERGE_COMPLETE,
            changes={"added": added, "removed": removed, "updated": updated},
            performed_by=performed_by,
        )
        logger.info("[roster.merge] roster=%s added=%d removed=%d updated=%d", roster.id, added, removed, updated)

        result: dict = {
            "success": True,
            "added": added,
            "removed": removed,
            "updated": updated,
            "revision": roster.revision,
        }
        return result, notification_service.build_merge_messages(added_user_ids)

    async def _apply_update(self, db: AsyncSession, roster: Roster, shift: RosterShift, updates: SnapshotShift) -> None:
        """병합 수정 1건 — 필드 반영 후 충돌 재판정 (Apply one update and recheck it)."""
        try:
            create: ShiftCreate = shift_service.snapshot_to_create(updates.model_dump())
        except (ValidationError, ValueError) as exc:
            raise BadRequestError(f"Invalid shift in merge request: {exc}")
        start = parse_time(create.start_time)
        end = parse_time(create.end_time)
        shift_service.validate_times(roster, create.date, start, end)

        shift.user_id = create.user_id
        shift.date = create.date
        shift.start_time = start
        shift.end_time = end
        shift.break_minutes = create.break_minutes
        shift.position = create.position
        shift.notes = create.notes
        await shift_service.refresh_conflict(db, shift)


# 싱글턴 인스턴스 — Singleton instance
merge_service: MergeService = MergeService()
