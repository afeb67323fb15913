"""추출 결과 가져오기 서비스 — 후보 근무 → DRAFT 로스터.

Extraction import service.
Consumes the extraction producer's output (candidate shifts plus names it
could not match) and turns it into shifts on a DRAFT roster. Candidates whose
staff match is below EXTRACTION_MATCH_THRESHOLD are imported as unassigned
slots carrying the extracted name, to be resolved later.
"""

import logging
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.roster import AuditAction, Roster, RosterShift, UnmatchedRosterEntry
from app.models.user import User
from app.repositories.roster_repository import roster_repository
from app.repositories.shift_repository import shift_repository
from app.repositories.user_repository import user_repository
from app.schemas.roster import ExtractedShift, ImportExtractionRequest
from app.schemas.shift import ShiftCreate
from app.services.audit_service import audit_service
from app.services.shift_service import shift_service
from app.utils.exceptions import BadRequestError, NotFoundError

logger = logging.getLogger(__name__)


def _is_confident(candidate: ExtractedShift) -> bool:
    return candidate.staff_id is not None and candidate.match_confidence >= settings.EXTRACTION_MATCH_THRESHOLD


class ExtractionService:
    """추출 결과 가져오기 서비스 (Extraction import)."""

    async def import_extraction(
        self,
        db: AsyncSession,
        roster_id: UUID,
        data: ImportExtractionRequest,
        performed_by: UUID | None = None,
    ) -> dict:
        """추출된 후보 근무를 DRAFT 로스터에 가져옵니다.

        Import extracted candidates into a DRAFT roster. Confident matches
        become assigned shifts, the rest unassigned slots. Every unmatched
        name, explicit or implied by a low-confidence candidate, gets one
        unresolved ``UnmatchedRosterEntry``.

        Returns:
            dict: imported, assigned, unassigned, conflict_count, unmatched_entries
        """
        roster: Roster = await shift_service.get_draft_roster(db, roster_id, "import shifts")

        items: list[ShiftCreate] = [
            ShiftCreate(
                user_id=c.staff_id if _is_confident(c) else None,
                date=c.date,
                start_time=c.start_time,
                end_time=c.end_time,
                break_minutes=c.break_minutes,
                position=c.position,
                notes=c.notes,
                original_name=c.staff_name,
            )
            for c in data.candidates
        ]
        rows: list[dict[str, Any]] = await shift_service.prepare_rows(db, roster, items)
        created: list[RosterShift] = await shift_repository.bulk_create(db, rows)

        # 미매칭 이름 — 명시된 이름 + 신뢰도 미달 후보 (Explicit names, then low-confidence candidates)
        pending: dict[str, dict[str, Any]] = {}
        for name in data.unmatched_names:
            pending.setdefault(name.name.strip().lower(), {
                "original_name": name.name.strip(),
                "suggested_user_id": name.suggested_user_id,
                "confidence": name.confidence,
            })
        for candidate in data.candidates:
            if not _is_confident(candidate):
                pending.setdefault(candidate.staff_name.strip().lower(), {
                    "original_name": candidate.staff_name.strip(),
                    "suggested_user_id": candidate.staff_id,
                    "confidence": candidate.match_confidence,
                })

        existing: Sequence[UnmatchedRosterEntry] = await roster_repository.get_unmatched_entries(
            db, roster.id, unresolved_only=True
        )
        known: set[str] = {e.original_name.lower() for e in existing}
        new_entries: int = 0
        for key, values in pending.items():
            if key in known:
                continue
            db.add(UnmatchedRosterEntry(roster_id=roster.id, **values))
            new_entries += 1
        await db.flush()

        assigned: int = sum(1 for s in created if s.user_id is not None)
        conflicts: int = sum(1 for s in created if s.has_conflict)
        await audit_service.record(
            db, roster, AuditAction.SHIFTS_IMPORTED,
            changes={
                "count": len(created),
                "assigned": assigned,
                "unassigned": len(created) - assigned,
                "conflict_count": conflicts,
                "unmatched_names": sorted(v["original_name"] for v in pending.values()),
            },
            include_snapshot=True,
            performed_by=performed_by,
        )
        logger.info(
            "[roster.import] roster=%s imported=%d assigned=%d unmatched=%d",
            roster.id, len(created), assigned, new_entries,
        )
        return {
            "success": True,
            "imported": len(created),
            "assigned": assigned,
            "unassigned": len(created) - assigned,
            "conflict_count": conflicts,
            "unmatched_entries": new_entries,
        }

    async def list_unmatched(self, db: AsyncSession, roster_id: UUID, unresolved_only: bool = True) -> list[dict]:
        """로스터의 미매칭 이름 목록 (Unmatched names of a roster)."""
        entries: Sequence[UnmatchedRosterEntry] = await roster_repository.get_unmatched_entries(
            db, roster_id, unresolved_only=unresolved_only
        )
        names: dict[UUID, str] = await user_repository.get_names(
            db, [e.suggested_user_id for e in entries] + [e.resolved_user_id for e in entries]
        )
        return [
            {
                "id": str(e.id),
                "original_name": e.original_name,
                "suggested_user_id": str(e.suggested_user_id) if e.suggested_user_id else None,
                "suggested_user_name": names.get(e.suggested_user_id) if e.suggested_user_id else None,
                "confidence": e.confidence,
                "resolved": e.resolved,
                "resolved_user_id": str(e.resolved_user_id) if e.resolved_user_id else None,
                "resolved_user_name": names.get(e.resolved_user_id) if e.resolved_user_id else None,
            }
            for e in entries
        ]

    async def resolve_unmatched_entry(
        self,
        db: AsyncSession,
        roster_id: UUID,
        entry_id: UUID,
        user_id: UUID,
        performed_by: UUID | None = None,
    ) -> dict:
        """미매칭 이름을 직원에게 연결합니다.

        Resolve an unmatched name: every shift of the roster carrying that
        extracted name is assigned to ``user_id`` and rechecked for conflicts.
        """
        roster: Roster = await shift_service.get_draft_roster(db, roster_id, "resolve unmatched staff")
        entry: UnmatchedRosterEntry | None = await roster_repository.get_unmatched_entry(db, roster_id, entry_id)
        if entry is None:
            raise NotFoundError("Unmatched entry not found")
        if entry.resolved:
            raise BadRequestError("This name has already been resolved")
        user: User | None = await user_repository.get_by_id(db, user_id)
        if user is None:
            raise NotFoundError("User not found")

        shifts: Sequence[RosterShift] = await shift_repository.get_by_original_name(db, roster_id, entry.original_name)
        conflicts: int = 0
        for shift in shifts:
            shift.user_id = user.id
            verdict = await shift_service.refresh_conflict(db, shift)
            conflicts += int(verdict.has_conflict)

        entry.resolved = True
        entry.resolved_user_id = user.id
        await db.flush()

        await audit_service.record(
            db, roster, AuditAction.UNMATCHED_RESOLVED,
            changes={
                "original_name": entry.original_name,
                "user_id": str(user.id),
                "user_name": user.full_name,
                "shifts_updated": len(shifts),
            },
            performed_by=performed_by,
        )
        return {"success": True, "shifts_updated": len(shifts), "conflict_count": conflicts}


# 싱글턴 인스턴스 — Singleton instance
extraction_service: ExtractionService = ExtractionService()
