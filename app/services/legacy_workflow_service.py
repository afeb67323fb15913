"""레거시 승인 워크플로 호환 계층.

Legacy workflow aliases.
The old submit/approve/reject/recall review flow is mapped onto the
canonical finalize and revert transitions, so the state machine itself only
ever deals with DRAFT, APPROVED, PUBLISHED and ARCHIVED.
"""

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.roster import Roster, RosterStatus
from app.repositories.roster_repository import roster_repository
from app.services.lifecycle_service import lifecycle_service
from app.utils.exceptions import NotFoundError


class LegacyWorkflowService:
    """레거시 호출 → 표준 상태 전이 (Deprecated call shapes onto canonical transitions)."""

    async def submit_for_review(self, db: AsyncSession, roster_id: UUID, performed_by: UUID | None = None) -> dict:
        """검토 요청 → finalize."""
        return await lifecycle_service.finalize(db, roster_id, performed_by)

    async def approve_roster(
        self,
        db: AsyncSession,
        roster_id: UUID,
        performed_by: UUID | None = None,
        comment: str | None = None,
    ) -> dict:
        """승인 → DRAFT면 finalize, 이미 확정됐으면 그대로 성공.

        Approve: finalizes a draft; a roster that is already past DRAFT is
        reported as-is.
        """
        roster: Roster | None = await roster_repository.get_by_id(db, roster_id)
        if roster is None:
            raise NotFoundError("Roster not found")
        if roster.status in (RosterStatus.DRAFT, RosterStatus.PENDING_REVIEW):
            return await lifecycle_service.finalize(db, roster_id, performed_by, notes=comment)
        return {"success": True, "roster": {"id": str(roster.id), "status": roster.status}}

    async def reject_roster(
        self,
        db: AsyncSession,
        roster_id: UUID,
        performed_by: UUID | None = None,
        reason: str | None = None,
    ) -> dict:
        """반려 → revert_to_draft."""
        return await lifecycle_service.revert_to_draft(db, roster_id, performed_by, reason=reason)

    async def recall_submission(self, db: AsyncSession, roster_id: UUID, performed_by: UUID | None = None) -> dict:
        """제출 회수 → revert_to_draft."""
        return await lifecycle_service.revert_to_draft(db, roster_id, performed_by, reason="Recalled by user")


# 싱글턴 인스턴스 — Singleton instance
legacy_workflow_service: LegacyWorkflowService = LegacyWorkflowService()
