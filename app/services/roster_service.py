"""로스터 서비스 — 로스터 CRUD, 조회, 복사.

Roster Service — Roster CRUD, list/detail queries, adjacent-week navigation,
copy to another week and the staff-facing "my shifts" view.
New rosters are placed in the chain of their venue/week: the first one is
version 1, later ones join the existing chain behind its newest version.
"""

import logging
from datetime import date, timedelta
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import Select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.roster import AUDIT_ACTION_LABELS, AuditAction, Roster, RosterHistory, RosterShift, RosterStatus
from app.repositories.history_repository import history_repository
from app.repositories.roster_repository import roster_repository
from app.repositories.shift_repository import shift_repository
from app.repositories.user_repository import user_repository
from app.repositories.venue_repository import venue_repository
from app.schemas.roster import RosterCopyRequest, RosterCreate, RosterUpdate
from app.services.audit_service import audit_service
from app.services.chain_integrity_service import expected_active
from app.services.shift_service import shift_service
from app.services.version_chain_service import version_chain_service
from app.utils.exceptions import BadRequestError, IllegalStateTransitionError, NotFoundError, RosterNotEditableError
from app.utils.pagination import paginate
from app.utils.time_utils import format_time

logger = logging.getLogger(__name__)

# 승인 이력 화면에 표시할 액션 — Actions shown in the workflow history
WORKFLOW_ACTIONS: frozenset[str] = frozenset({
    AuditAction.ROSTER_CREATED,
    AuditAction.VERSION_CREATED,
    AuditAction.RESTORED_FROM_VERSION,
    AuditAction.FINALIZED,
    AuditAction.PUBLISHED,
    AuditAction.PUBLISHED_AS_NEW_VERSION,
    AuditAction.UNPUBLISHED,
    AuditAction.REVERTED_TO_DRAFT,
    AuditAction.VERSION_SUPERSEDED,
    AuditAction.VERSION_ACTIVATED,
    AuditAction.ARCHIVED_BY_NEW_VERSION,
    AuditAction.STATUS_ARCHIVED,
})


def describe_history_entry(entry: RosterHistory) -> str:
    """감사 항목을 사람이 읽을 수 있는 문장으로 (One-line description of an entry)."""
    changes: dict[str, Any] = entry.changes or {}
    label: str = AUDIT_ACTION_LABELS.get(entry.action, entry.action)
    if entry.action == AuditAction.FINALIZED and changes.get("has_conflicts"):
        return f"{label} with {changes.get('conflict_count', 0)} conflict(s)"
    if entry.action in (AuditAction.UNPUBLISHED, AuditAction.REVERTED_TO_DRAFT) and changes.get("reason"):
        return f"{label}: {changes['reason']}"
    if entry.action in (AuditAction.PUBLISHED, AuditAction.PUBLISHED_AS_NEW_VERSION):
        return f"{label}, {changes.get('staff_notified', 0)} staff notified"
    if entry.action == AuditAction.VERSION_CREATED and changes.get("source_version_number"):
        return f"{label} from version {changes['source_version_number']}"
    if entry.action == AuditAction.VERSION_SUPERSEDED and changes.get("superseded_by_version"):
        return f"{label} (version {changes['superseded_by_version']})"
    return label


class RosterService:
    """로스터 서비스 (Roster CRUD and queries)."""

    async def get_roster(self, db: AsyncSession, roster_id: UUID) -> Roster:
        roster: Roster | None = await roster_repository.get_by_id(db, roster_id)
        if roster is None:
            raise NotFoundError("Roster not found")
        return roster

    async def build_response(self, db: AsyncSession, roster: Roster) -> dict:
        """로스터 응답 딕셔너리 (Roster response with venue name and shift counts)."""
        counts: dict[str, int] = await shift_repository.count_for_roster(db, roster.id)
        return {
            "id": str(roster.id),
            "venue_id": str(roster.venue_id),
            "venue_name": await venue_repository.get_name(db, roster.venue_id),
            "name": roster.name,
            "description": roster.description,
            "start_date": roster.start_date,
            "end_date": roster.end_date,
            "status": roster.status,
            "revision": roster.revision,
            "chain_id": roster.chain_id,
            "version_number": roster.version_number,
            "is_active": roster.is_active,
            "parent_id": str(roster.parent_id) if roster.parent_id else None,
            "created_by": str(roster.created_by) if roster.created_by else None,
            "published_by": str(roster.published_by) if roster.published_by else None,
            "published_at": roster.published_at,
            "created_at": roster.created_at,
            "updated_at": roster.updated_at,
            "shift_count": counts["total"],
            "assigned_count": counts["assigned"],
            "conflict_count": counts["conflicts"],
        }

    # --- 생성/수정/삭제 (Create, update, delete) ---

    async def create_roster(self, db: AsyncSession, data: RosterCreate, performed_by: UUID | None = None) -> Roster:
        """새 DRAFT 로스터를 만들고 체인에 배치합니다.

        Create a DRAFT roster in the chain of its venue/week. A new chain
        starts at version 1 (ROSTER_CREATED); an existing chain is joined at
        its newest version plus one (VERSION_CREATED).
        """
        if await venue_repository.get_by_id(db, data.venue_id) is None:
            raise NotFoundError("Venue not found")

        chain_id, version_number = await version_chain_service.resolve_chain(db, data.venue_id, data.start_date)
        roster: Roster = await roster_repository.create(db, {
            "venue_id": data.venue_id,
            "name": data.name,
            "description": data.description,
            "start_date": data.start_date,
            "end_date": data.end_date,
            "status": RosterStatus.DRAFT,
            "chain_id": chain_id,
            "version_number": version_number,
            "is_active": False,
            "created_by": performed_by,
        })

        if version_number == 1:
            await audit_service.record(
                db, roster, AuditAction.ROSTER_CREATED,
                changes={"name": roster.name, "chain_id": chain_id},
                performed_by=performed_by,
            )
        else:
            await audit_service.record(
                db, roster, AuditAction.VERSION_CREATED,
                changes={"chain_id": chain_id, "new_version_number": version_number, "joined_existing_chain": True},
                performed_by=performed_by,
            )
        logger.info("[roster.create] roster=%s chain=%s v%d", roster.id, chain_id, version_number)
        return roster

    async def update_roster(
        self,
        db: AsyncSession,
        roster_id: UUID,
        data: RosterUpdate,
        performed_by: UUID | None = None,
    ) -> Roster:
        """DRAFT 로스터의 이름/설명/기간 수정 (Edit a draft's details)."""
        roster: Roster = await shift_service.get_draft_roster(db, roster_id, "be edited")
        update_data: dict[str, Any] = {
            k: v for k, v in data.model_dump(exclude_unset=True).items()
            if v is not None or k == "description"
        }
        start: date = update_data.get("start_date", roster.start_date)
        end: date = update_data.get("end_date", roster.end_date)
        if end < start:
            raise BadRequestError("end_date must be on or after start_date")

        before: dict[str, Any] = {k: getattr(roster, k) for k in update_data}
        await roster_repository.update(db, roster.id, update_data)

        await audit_service.record(
            db, roster, AuditAction.ROSTER_UPDATED,
            changes={
                "before": {k: v.isoformat() if isinstance(v, date) else v for k, v in before.items()},
                "after": {k: v.isoformat() if isinstance(v, date) else v for k, v in update_data.items()},
            },
            performed_by=performed_by,
        )
        return roster

    async def delete_roster(self, db: AsyncSession, roster_id: UUID) -> None:
        """DRAFT 로스터 삭제 — 근무/이력/미매칭 이름 포함 (Delete a draft with its children)."""
        roster: Roster = await self.get_roster(db, roster_id)
        if roster.status != RosterStatus.DRAFT:
            raise RosterNotEditableError(roster.status, "be deleted")
        await roster_repository.delete_with_children(db, roster.id)
        logger.info("[roster.delete] roster=%s chain=%s v%d", roster_id, roster.chain_id, roster.version_number)

    async def archive_roster(self, db: AsyncSession, roster_id: UUID, performed_by: UUID | None = None) -> Roster:
        """확정/게시된 로스터를 수동 보관합니다.

        Manually archive a non-draft roster. When it was the chain's live
        version, the highest remaining PUBLISHED member takes over inside the
        same transaction, with the chain rows locked first.
        """
        roster: Roster = await self.get_roster(db, roster_id)
        if roster.status == RosterStatus.ARCHIVED:
            raise IllegalStateTransitionError("Roster is already archived")
        if roster.status in (RosterStatus.DRAFT, RosterStatus.PENDING_REVIEW):
            raise IllegalStateTransitionError("Draft rosters cannot be archived; delete the draft instead")

        members: Sequence[Roster] = []
        if roster.chain_id is not None:
            members = await roster_repository.get_chain_members(db, roster.chain_id, for_update=True)

        previous_status: str = roster.status
        if not await roster_repository.transition_status(
            db, roster.id, (RosterStatus.APPROVED, RosterStatus.PUBLISHED),
            {"status": RosterStatus.ARCHIVED, "is_active": False},
        ):
            raise IllegalStateTransitionError(
                "Roster status was changed by another request. Reload the roster and try again."
            )
        roster.status = RosterStatus.ARCHIVED
        roster.is_active = False
        await audit_service.record(
            db, roster, AuditAction.STATUS_ARCHIVED,
            changes={"previous_status": previous_status, "new_status": RosterStatus.ARCHIVED},
            include_snapshot=True,
            performed_by=performed_by,
        )

        successor: Roster | None = expected_active([m for m in members if m.id != roster.id])
        if successor is not None and not successor.is_active:
            for member in members:
                if member.id != successor.id:
                    member.is_active = False
            successor.is_active = True
            await audit_service.record(
                db, successor, AuditAction.VERSION_ACTIVATED,
                changes={"replaced": str(roster.id), "replaced_version": roster.version_number},
                performed_by=performed_by,
            )
            logger.info(
                "[roster.archive] chain=%s v%d archived, v%d now active",
                roster.chain_id, roster.version_number, successor.version_number,
            )
        return roster

    async def copy_roster(
        self,
        db: AsyncSession,
        roster_id: UUID,
        data: RosterCopyRequest,
        performed_by: UUID | None = None,
    ) -> Roster:
        """로스터를 다른 주로 복사합니다.

        Copy a roster into the week starting at ``target_start_date``: a new
        DRAFT in that week's chain, every shift date moved by the same number
        of days and rechecked for conflicts.
        """
        source: Roster = await self.get_roster(db, roster_id)
        offset: int = (data.target_start_date - source.start_date).days
        if offset == 0:
            raise BadRequestError("Target week must differ from the source week")

        target_start: date = data.target_start_date
        target_end: date = source.end_date + timedelta(days=offset)
        new_roster: Roster = await self.create_roster(
            db,
            RosterCreate(
                venue_id=source.venue_id,
                name=data.name or f"{source.name} (copy)",
                description=source.description,
                start_date=target_start,
                end_date=target_end,
            ),
            performed_by,
        )

        snapshot: list[dict[str, Any]] = await audit_service.build_snapshot(db, source.id)
        copied: list[RosterShift] = await shift_service.insert_snapshot(db, new_roster, snapshot, day_offset=offset)
        await audit_service.record(
            db, new_roster, AuditAction.ROSTER_COPIED,
            changes={
                "source_roster_id": str(source.id),
                "day_offset": offset,
                "shift_count": len(copied),
                "conflict_count": sum(1 for s in copied if s.has_conflict),
            },
            include_snapshot=True,
            performed_by=performed_by,
        )
        return new_roster

    # --- 조회 (Queries) ---

    async def list_rosters(
        self,
        db: AsyncSession,
        venue_ids: list[UUID] | None = None,
        venue_id: UUID | None = None,
        status: str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        search: str | None = None,
        chain_id: str | None = None,
        include_superseded: bool = False,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[list[dict], int]:
        """로스터 목록 — 체인 정보 포함.

        Filtered, paginated roster list. Each row carries its chain summary
        (total versions, whether a draft is in flight).
        """
        query: Select = roster_repository.build_list_query(
            venue_ids=venue_ids,
            venue_id=venue_id,
            status=status,
            date_from=date_from,
            date_to=date_to,
            search=search,
            chain_id=chain_id,
            include_superseded=include_superseded,
        )
        rosters, total = await paginate(db, query, page, per_page)

        summaries: dict[str, dict | None] = {}
        items: list[dict] = []
        for roster in rosters:
            data: dict = await self.build_response(db, roster)
            if roster.chain_id and roster.chain_id not in summaries:
                summaries[roster.chain_id] = await version_chain_service.get_chain_summary(db, roster.chain_id)
            data["chain"] = summaries.get(roster.chain_id) if roster.chain_id else None
            items.append(data)
        return items, total

    async def get_roster_detail(self, db: AsyncSession, roster_id: UUID) -> dict:
        """로스터 상세 — 근무, 최근 이력, 체인 (Roster with shifts, recent history and chain)."""
        roster: Roster = await self.get_roster(db, roster_id)
        data: dict = await self.build_response(db, roster)
        data["shifts"] = await shift_service.list_shifts(db, roster.id)
        data["history"] = await audit_service.get_audit_log(db, roster.id, limit=20)
        data["chain"] = await version_chain_service.get_chain(db, roster.chain_id) if roster.chain_id else None
        data["unmatched_count"] = len(await roster_repository.get_unmatched_entries(db, roster.id, unresolved_only=True))
        return data

    async def get_adjacent(self, db: AsyncSession, roster_id: UUID) -> dict:
        """이전/다음 주 로스터 (Previous and next week of the same venue)."""
        roster: Roster = await self.get_roster(db, roster_id)
        previous: Roster | None = await roster_repository.find_adjacent(
            db, roster.venue_id, roster.start_date - timedelta(days=7)
        )
        following: Roster | None = await roster_repository.find_adjacent(
            db, roster.venue_id, roster.start_date + timedelta(days=7)
        )

        def _brief(r: Roster | None) -> dict | None:
            if r is None:
                return None
            return {
                "id": str(r.id),
                "name": r.name,
                "start_date": r.start_date,
                "end_date": r.end_date,
                "status": r.status,
                "version_number": r.version_number,
            }

        return {"previous": _brief(previous), "next": _brief(following)}

    async def get_my_shifts(
        self,
        db: AsyncSession,
        user_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[dict]:
        """직원 본인의 게시된 근무 (A staff member's shifts on live published rosters)."""
        rows = await shift_repository.get_published_for_user(db, user_id, date_from, date_to)
        venue_names: dict[UUID, str] = {}
        result: list[dict] = []
        for shift, roster in rows:
            if roster.venue_id not in venue_names:
                venue_names[roster.venue_id] = await venue_repository.get_name(db, roster.venue_id)
            result.append({
                "id": str(shift.id),
                "roster_id": str(roster.id),
                "roster_name": roster.name,
                "venue_id": str(roster.venue_id),
                "venue_name": venue_names[roster.venue_id],
                "date": shift.date,
                "start_time": format_time(shift.start_time),
                "end_time": format_time(shift.end_time),
                "break_minutes": shift.break_minutes or 0,
                "position": shift.position,
                "notes": shift.notes,
            })
        return result

    async def get_stats(self, db: AsyncSession, venue_id: UUID) -> dict:
        """매장의 상태별 로스터 수 (Roster counts per status for a venue)."""
        counts: dict[str, int] = await roster_repository.count_by_status(db, venue_id)
        return {
            "venue_id": str(venue_id),
            "total": sum(counts.values()),
            "draft": counts.get(RosterStatus.DRAFT, 0) + counts.get(RosterStatus.PENDING_REVIEW, 0),
            "approved": counts.get(RosterStatus.APPROVED, 0),
            "published": counts.get(RosterStatus.PUBLISHED, 0),
            "archived": counts.get(RosterStatus.ARCHIVED, 0),
        }

    async def list_finalized(self, db: AsyncSession, venue_ids: list[UUID] | None = None) -> list[dict]:
        """게시 대기 중인(APPROVED) 로스터 (Finalized rosters waiting to be published)."""
        rosters: Sequence[Roster] = await roster_repository.get_by_status(db, RosterStatus.APPROVED, venue_ids)
        return [await self.build_response(db, r) for r in rosters]

    async def get_approval_history(self, db: AsyncSession, roster_id: UUID) -> list[dict]:
        """상태 전이 이력 — 사람이 읽을 수 있는 설명 포함.

        Workflow history of a roster (creation, versioning and lifecycle
        transitions), oldest first, each with a readable description.
        """
        await self.get_roster(db, roster_id)
        entries: Sequence[RosterHistory] = await history_repository.get_for_roster(db, roster_id, ascending=True)
        workflow: list[RosterHistory] = [e for e in entries if e.action in WORKFLOW_ACTIONS]
        names: dict[UUID, str] = await user_repository.get_names(db, (e.performed_by for e in workflow))
        return [
            {
                "id": str(e.id),
                "action": e.action,
                "label": AUDIT_ACTION_LABELS.get(e.action, e.action),
                "description": describe_history_entry(e),
                "revision": e.version,
                "performed_by": str(e.performed_by) if e.performed_by else None,
                "performed_by_name": names.get(e.performed_by) if e.performed_by else None,
                "created_at": e.created_at,
            }
            for e in workflow
        ]


# 싱글턴 인스턴스 — Singleton instance
roster_service: RosterService = RosterService()
