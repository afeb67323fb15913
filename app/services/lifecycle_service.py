"""로스터 상태 전이 서비스 — 확정(finalize), 게시(publish), 되돌리기(revert).

Roster lifecycle state machine.

    DRAFT ──finalize──▶ APPROVED ──publish──▶ PUBLISHED
      ▲                    │                     │
      └──────revert────────┴─────────────────────┘

Every transition is a compare-and-swap on ``status`` followed by its chain
updates and its audit entry, all inside the caller's transaction: either all
of it is committed or none of it is. Notifications are returned to the caller
and sent only after the commit.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.roster import AuditAction, Roster, RosterStatus
from app.repositories.roster_repository import roster_repository
from app.repositories.shift_repository import shift_repository
from app.repositories.venue_repository import venue_repository
from app.services.audit_service import audit_service
from app.services.notification_service import NotificationMessage, notification_service
from app.services.version_chain_service import version_chain_service
from app.utils.exceptions import BadRequestError, IllegalStateTransitionError, NotFoundError
from app.utils.time_utils import format_date_range

logger = logging.getLogger(__name__)

# finalize가 허용하는 시작 상태 — PENDING_REVIEW는 레거시 DRAFT 별칭
# States finalize accepts; PENDING_REVIEW is the legacy alias of DRAFT
FINALIZABLE: tuple[str, ...] = (RosterStatus.DRAFT, RosterStatus.PENDING_REVIEW)
REVERTIBLE: tuple[str, ...] = (RosterStatus.APPROVED, RosterStatus.PUBLISHED)


def _result(roster: Roster, **extra: Any) -> dict:
    return {"success": True, "roster": {"id": str(roster.id), "status": roster.status}, **extra}


class LifecycleService:
    """로스터 상태 전이 서비스 (Roster lifecycle state machine)."""

    async def _get_locked(self, db: AsyncSession, roster_id: UUID) -> Roster:
        roster: Roster | None = await roster_repository.get_by_id(db, roster_id, for_update=True)
        if roster is None:
            raise NotFoundError("Roster not found")
        return roster

    async def _swap_status(
        self,
        db: AsyncSession,
        roster: Roster,
        allowed_from: Sequence[str],
        values: dict[str, Any],
    ) -> None:
        """상태 CAS — 다른 요청이 먼저 바꿨으면 409.

        Compare-and-swap the roster's status. Losing the race raises
        IllegalStateTransitionError instead of applying the change twice.
        """
        if not await roster_repository.transition_status(db, roster.id, allowed_from, values):
            raise IllegalStateTransitionError(
                "Roster status was changed by another request. Reload the roster and try again."
            )
        for field, value in values.items():
            setattr(roster, field, value)

    async def finalize(
        self,
        db: AsyncSession,
        roster_id: UUID,
        performed_by: UUID | None = None,
        notes: str | None = None,
    ) -> dict:
        """DRAFT → APPROVED 확정.

        Finalize a draft: the manager's self-review checkpoint before
        publishing. Conflicts do not block; the result reports them so the
        caller can show a warning.

        Returns:
            dict: success, roster{id,status}, has_conflicts, conflict_count

        Raises:
            NotFoundError: 로스터 없음 (Roster not found)
            IllegalStateTransitionError: DRAFT가 아님 (Not a draft)
            BadRequestError: 배정된 근무 없음 (No assigned shifts)
        """
        roster: Roster = await self._get_locked(db, roster_id)
        if roster.status not in FINALIZABLE:
            raise IllegalStateTransitionError(
                f"Roster is already {roster.status.lower()}. Only draft rosters can be finalized."
            )

        counts: dict[str, int] = await shift_repository.count_for_roster(db, roster.id)
        if counts["assigned"] == 0:
            raise BadRequestError("Cannot finalize a roster with no assigned shifts")

        previous_status: str = roster.status
        await self._swap_status(db, roster, FINALIZABLE, {"status": RosterStatus.APPROVED})

        has_conflicts: bool = counts["conflicts"] > 0
        await audit_service.record(
            db, roster, AuditAction.FINALIZED,
            changes={
                "notes": notes,
                "finalized_by": str(performed_by) if performed_by else None,
                "has_conflicts": has_conflicts,
                "conflict_count": counts["conflicts"],
                "shift_count": counts["total"],
                "previous_status": previous_status,
                "new_status": RosterStatus.APPROVED,
            },
            include_snapshot=True,
            performed_by=performed_by,
        )
        logger.info("[roster.finalize] roster=%s conflicts=%d", roster.id, counts["conflicts"])

        message: str | None = None
        if has_conflicts:
            message = f"Roster finalized with {counts['conflicts']} conflicting shift(s). Review them before publishing."
        return _result(roster, has_conflicts=has_conflicts, conflict_count=counts["conflicts"], message=message)

    async def publish(
        self,
        db: AsyncSession,
        roster_id: UUID,
        performed_by: UUID | None = None,
    ) -> tuple[dict, list[NotificationMessage]]:
        """APPROVED → PUBLISHED 게시 — 체인의 활성 버전 교체.

        Publish a finalized roster and make it the chain's live version:

        1. other active or published chain members are deactivated and,
           when published, archived (VERSION_SUPERSEDED);
        2. the direct parent, if any, is archived (ARCHIVED_BY_NEW_VERSION);
        3. the roster becomes PUBLISHED and active, stamped with publisher/time;
        4. PUBLISHED or PUBLISHED_AS_NEW_VERSION is recorded with a snapshot.

        The chain rows are locked before any flag moves. Publishing is
        refused while a higher version of the chain is already published, so
        a chain holds at most one PUBLISHED member and it is the active one.

        Returns:
            tuple[dict, list[NotificationMessage]]: (결과, 커밋 후 보낼 알림)
                (Result with ``notified_count``, messages to dispatch after commit)
        """
        roster: Roster = await self._get_locked(db, roster_id)
        if roster.status in FINALIZABLE:
            raise IllegalStateTransitionError("Please finalize the roster before publishing")
        if roster.status == RosterStatus.PUBLISHED:
            raise IllegalStateTransitionError("Roster is already published")
        if roster.status != RosterStatus.APPROVED:
            raise IllegalStateTransitionError(f"Cannot publish roster with status: {roster.status}")

        chain_id: str = await version_chain_service.ensure_chain(db, roster)
        members: Sequence[Roster] = await roster_repository.get_chain_members(db, chain_id, for_update=True)
        others: list[Roster] = [m for m in members if m.id != roster.id]

        newer: list[int] = [
            m.version_number for m in others
            if m.status == RosterStatus.PUBLISHED and m.version_number > roster.version_number
        ]
        if newer:
            raise IllegalStateTransitionError(
                f"Version {max(newer)} of this roster is already published. "
                "Restore this version as a new draft instead of publishing it."
            )

        # 알림 비교 기준 — 직전 버전(부모), 없으면 현재 활성 버전
        # Notification baseline: the parent, else the currently live version
        baseline: Roster | None = next((m for m in others if m.id == roster.parent_id), None)
        if baseline is None:
            baseline = next((m for m in others if m.is_active), None)
        previous_snapshot: list[dict] | None = (
            await audit_service.build_snapshot(db, baseline.id) if baseline is not None else None
        )

        # 체인에 PUBLISHED는 게시 중인 이 버전 하나만 남김 (부모는 아래에서 보관)
        for member in others:
            if not member.is_active and member.status != RosterStatus.PUBLISHED:
                continue
            superseded_status: str = member.status
            member.is_active = False
            if member.status == RosterStatus.PUBLISHED and member.id != roster.parent_id:
                member.status = RosterStatus.ARCHIVED
            await audit_service.record(
                db, member, AuditAction.VERSION_SUPERSEDED,
                changes={
                    "superseded_by": str(roster.id),
                    "superseded_by_version": roster.version_number,
                    "previous_status": superseded_status,
                },
                performed_by=performed_by,
            )

        parent: Roster | None = next((m for m in others if m.id == roster.parent_id), None)
        if parent is None and roster.parent_id is not None:
            parent = await roster_repository.get_by_id(db, roster.parent_id, for_update=True)
        if parent is not None and parent.status != RosterStatus.ARCHIVED:
            previous_parent_status: str = parent.status
            parent.status = RosterStatus.ARCHIVED
            parent.is_active = False
            await audit_service.record(
                db, parent, AuditAction.ARCHIVED_BY_NEW_VERSION,
                changes={
                    "replaced_by": str(roster.id),
                    "replaced_by_version": roster.version_number,
                    "previous_status": previous_parent_status,
                },
                performed_by=performed_by,
            )

        previous_status: str = roster.status
        await self._swap_status(db, roster, (RosterStatus.APPROVED,), {
            "status": RosterStatus.PUBLISHED,
            "is_active": True,
            "published_by": performed_by,
            "published_at": datetime.now(timezone.utc),
        })

        snapshot: list[dict] = await audit_service.build_snapshot(db, roster.id)
        assigned_staff: set[str] = {s["user_id"] for s in snapshot if s.get("user_id")}
        action: str = AuditAction.PUBLISHED_AS_NEW_VERSION if roster.parent_id else AuditAction.PUBLISHED
        await audit_service.record(
            db, roster, action,
            changes={
                "staff_notified": len(assigned_staff),
                "shift_count": len(snapshot),
                "previous_status": previous_status,
                "new_status": RosterStatus.PUBLISHED,
                "replaced_version": str(roster.parent_id) if roster.parent_id else None,
            },
            snapshot=snapshot,
            performed_by=performed_by,
        )

        venue_name: str = await venue_repository.get_name(db, roster.venue_id)
        messages: list[NotificationMessage] = notification_service.build_publish_messages(
            venue_name,
            format_date_range(roster.start_date, roster.end_date),
            snapshot,
            previous_snapshot,
        )
        logger.info(
            "[roster.publish] roster=%s chain=%s v%d notifications=%d",
            roster.id, chain_id, roster.version_number, len(messages),
        )
        return _result(roster, notified_count=len(messages)), messages

    async def revert_to_draft(
        self,
        db: AsyncSession,
        roster_id: UUID,
        performed_by: UUID | None = None,
        reason: str | None = None,
    ) -> dict:
        """APPROVED/PUBLISHED → DRAFT 되돌리기.

        Send a finalized or published roster back to DRAFT. A published
        roster also stops being the live version. Earlier versions were
        archived when it was published, so none is reactivated and the
        chain is left without a live version.

        Raises:
            IllegalStateTransitionError: 이미 DRAFT 또는 ARCHIVED (Already draft, or archived)
        """
        roster: Roster = await self._get_locked(db, roster_id)
        if roster.status in FINALIZABLE:
            raise IllegalStateTransitionError("Roster is already a draft")
        if roster.status == RosterStatus.ARCHIVED:
            raise IllegalStateTransitionError("Cannot revert an archived roster")
        if roster.status not in REVERTIBLE:
            raise IllegalStateTransitionError(f"Cannot revert roster with status: {roster.status}")

        previous_status: str = roster.status
        await self._swap_status(db, roster, REVERTIBLE, {"status": RosterStatus.DRAFT, "is_active": False})

        action: str = (
            AuditAction.UNPUBLISHED if previous_status == RosterStatus.PUBLISHED else AuditAction.REVERTED_TO_DRAFT
        )
        await audit_service.record(
            db, roster, action,
            changes={"reason": reason, "previous_status": previous_status, "new_status": RosterStatus.DRAFT},
            include_snapshot=True,
            performed_by=performed_by,
        )
        logger.info("[roster.revert] roster=%s %s -> DRAFT", roster.id, previous_status)
        return _result(roster)


# 싱글턴 인스턴스 — Singleton instance
lifecycle_service: LifecycleService = LifecycleService()
