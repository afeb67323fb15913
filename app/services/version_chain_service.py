"""로스터 버전 체인 서비스 — 체인 식별, 새 버전, 복원, 비교, 롤백.

Roster version chain service.
All rosters for the same venue and week share a deterministic ``chain_id``;
edits to a published roster happen on a new DRAFT version in the same
chain, which becomes the live version when it is published.
"""

import hashlib
import logging
from datetime import date
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.roster import AuditAction, Roster, RosterHistory, RosterStatus, UnmatchedRosterEntry
from app.repositories.history_repository import history_repository
from app.repositories.roster_repository import roster_repository
from app.repositories.shift_repository import shift_repository
from app.repositories.user_repository import user_repository
from app.repositories.venue_repository import venue_repository
from app.services.audit_service import audit_service
from app.services.diff_service import diff_service
from app.services.shift_service import shift_service
from app.utils.exceptions import IllegalStateTransitionError, NotFoundError, RosterNotEditableError
from app.utils.time_utils import week_start

logger = logging.getLogger(__name__)


def derive_chain_id(venue_id: UUID, any_day: date) -> str:
    """매장/주 단위 체인 ID를 계산합니다.

    Deterministic chain id for the venue and the week containing ``any_day``.
    The same inputs always produce the same id.
    """
    seed: str = f"roster-chain:{venue_id}:{week_start(any_day).isoformat()}"
    return settings.ROSTER_CHAIN_ID_PREFIX + hashlib.sha256(seed.encode("utf-8")).hexdigest()[:24]


class VersionChainService:
    """버전 체인 관리 서비스 (Version chain manager)."""

    async def get_roster(self, db: AsyncSession, roster_id: UUID, for_update: bool = False) -> Roster:
        roster: Roster | None = await roster_repository.get_by_id(db, roster_id, for_update=for_update)
        if roster is None:
            raise NotFoundError("Roster not found")
        return roster

    async def resolve_chain(self, db: AsyncSession, venue_id: UUID, start_date: date) -> tuple[str, int]:
        """새 로스터가 들어갈 체인과 버전 번호를 결정합니다.

        Return ``(chain_id, next_version_number)`` for a roster of this
        venue/week; the version is 1 when the chain does not exist yet.
        """
        chain_id: str = derive_chain_id(venue_id, start_date)
        return chain_id, await roster_repository.get_max_version_number(db, chain_id) + 1

    async def ensure_chain(self, db: AsyncSession, roster: Roster) -> str:
        """체인 추적 이전의 로스터에 체인 ID를 부여합니다.

        Give a roster that predates chain tracking a derived ``chain_id``.
        It becomes version 1, or joins behind the existing members when the
        derived chain already has some.
        """
        if roster.chain_id:
            return roster.chain_id
        chain_id, version_number = await self.resolve_chain(db, roster.venue_id, roster.start_date)
        roster.chain_id = chain_id
        roster.version_number = version_number
        await db.flush()
        logger.info("[chain] assigned chain=%s v%d to legacy roster=%s", chain_id, version_number, roster.id)
        return chain_id

    async def copy_unmatched_entries(self, db: AsyncSession, source_id: UUID, target_id: UUID) -> int:
        """미해결 미매칭 이름을 복사 (Copy unresolved unmatched-name entries)."""
        entries: Sequence[UnmatchedRosterEntry] = await roster_repository.get_unmatched_entries(
            db, source_id, unresolved_only=True
        )
        for entry in entries:
            db.add(UnmatchedRosterEntry(
                roster_id=target_id,
                original_name=entry.original_name,
                suggested_user_id=entry.suggested_user_id,
                confidence=entry.confidence,
            ))
        await db.flush()
        return len(entries)

    async def create_new_version(
        self,
        db: AsyncSession,
        source_roster_id: UUID,
        performed_by: UUID | None = None,
        name: str | None = None,
    ) -> Roster:
        """게시된 로스터로부터 새 DRAFT 버전을 만듭니다.

        Branch a new DRAFT version off a PUBLISHED roster. The version number
        is the chain maximum plus one. Shifts are copied with fresh conflict
        verdicts and unresolved unmatched names are carried over. The new
        version stays inactive until it is published.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            source_roster_id: 원본 로스터 UUID (Published source roster)
            performed_by: 수행 사용자 (Acting user)
            name: 새 이름, 없으면 "{원본} v{n}" (Name, defaults to "{source} v{n}")

        Returns:
            Roster: 새 DRAFT 버전 (The new draft version)

        Raises:
            NotFoundError: 원본 없음 (Source roster not found)
            IllegalStateTransitionError: 원본이 PUBLISHED가 아님 (Source not PUBLISHED)
        """
        source: Roster = await self.get_roster(db, source_roster_id)
        if source.status != RosterStatus.PUBLISHED:
            raise IllegalStateTransitionError(
                f"Can only create new versions of published rosters (roster is {source.status.lower()})"
            )

        chain_id: str = await self.ensure_chain(db, source)
        next_version: int = await roster_repository.get_max_version_number(db, chain_id) + 1

        new_roster: Roster = await roster_repository.create(db, {
            "venue_id": source.venue_id,
            "name": name or f"{source.name} v{next_version}",
            "description": source.description,
            "start_date": source.start_date,
            "end_date": source.end_date,
            "status": RosterStatus.DRAFT,
            "chain_id": chain_id,
            "version_number": next_version,
            "is_active": False,
            "parent_id": source.id,
            "created_by": performed_by,
        })

        snapshot: list[dict[str, Any]] = await audit_service.build_snapshot(db, source.id)
        await shift_service.insert_snapshot(db, new_roster, snapshot)
        unmatched: int = await self.copy_unmatched_entries(db, source.id, new_roster.id)

        await audit_service.record(
            db, new_roster, AuditAction.VERSION_CREATED,
            changes={
                "source_roster_id": str(source.id),
                "source_version_number": source.version_number,
                "new_version_number": next_version,
                "shift_count": len(snapshot),
                "unmatched_count": unmatched,
            },
            include_snapshot=True,
            performed_by=performed_by,
        )
        logger.info("[chain] created v%d of chain=%s from roster=%s", next_version, chain_id, source.id)
        return new_roster

    # --- 조회 (Queries) ---

    async def get_chain(self, db: AsyncSession, chain_id: str) -> dict:
        """체인 전체 조회 — 활성 버전 표시 (Full chain with the active version flagged)."""
        members: Sequence[Roster] = await roster_repository.get_chain_members(db, chain_id)
        if not members:
            raise NotFoundError("Version chain not found")

        creators: dict[UUID, str] = await user_repository.get_names(db, (m.created_by for m in members))
        versions: list[dict] = []
        for member in members:
            counts: dict[str, int] = await shift_repository.count_for_roster(db, member.id)
            versions.append({
                "roster_id": str(member.id),
                "name": member.name,
                "version_number": member.version_number,
                "status": member.status,
                "is_active": member.is_active,
                "parent_id": str(member.parent_id) if member.parent_id else None,
                "published_at": member.published_at,
                "created_at": member.created_at,
                "shift_count": counts["total"],
                "created_by": creators.get(member.created_by) if member.created_by else None,
            })

        first: Roster = members[0]
        active: dict | None = next((v for v in versions if v["is_active"]), None)
        return {
            "chain_id": chain_id,
            "venue_id": str(first.venue_id),
            "venue_name": await venue_repository.get_name(db, first.venue_id),
            "week_start": first.start_date,
            "week_end": first.end_date,
            "versions": versions,
            "active_version": active,
            "total_versions": len(versions),
        }

    async def get_chain_for_roster(self, db: AsyncSession, roster_id: UUID) -> dict | None:
        """로스터가 속한 체인 (Chain of a roster, None for untracked rosters)."""
        roster: Roster = await self.get_roster(db, roster_id)
        if not roster.chain_id:
            return None
        return await self.get_chain(db, roster.chain_id)

    async def list_chains_for_venue(
        self,
        db: AsyncSession,
        venue_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[dict]:
        """매장의 체인 목록 (Chains of a venue in an optional date window)."""
        chain_ids: list[str] = await roster_repository.get_chain_ids_for_venue(db, venue_id, date_from, date_to)
        chains: list[dict] = [await self.get_chain(db, chain_id) for chain_id in chain_ids]
        return sorted(chains, key=lambda c: c["week_start"], reverse=True)

    async def get_chain_summary(self, db: AsyncSession, chain_id: str) -> dict | None:
        """목록 표시용 체인 요약 (Lightweight chain summary for list views)."""
        members: Sequence[Roster] = await roster_repository.get_chain_members(db, chain_id)
        if not members:
            return None
        active: Roster | None = next((m for m in members if m.is_active), None)
        return {
            "chain_id": chain_id,
            "total_versions": len(members),
            "active_version_number": active.version_number if active else None,
            "has_draft": any(m.status == RosterStatus.DRAFT for m in members),
            "latest_version_number": max(m.version_number for m in members),
        }

    # --- 복원 (Restore) ---

    async def restore_from_version(
        self,
        db: AsyncSession,
        source_roster_id: UUID,
        performed_by: UUID | None = None,
    ) -> Roster:
        """대체된 버전을 새 DRAFT로 복원합니다.

        Create a new DRAFT version that copies a superseded chain member's
        shifts. Any in-flight DRAFT of the chain is deleted first, together
        with its shifts, history and unmatched entries, so a restore replaces
        the pending draft rather than stacking a second one.

        Raises:
            NotFoundError: 원본 없음 (Source roster not found)
            IllegalStateTransitionError: 체인 밖, 활성 버전, 또는 DRAFT 원본
                (Untracked roster, active version or draft source)
        """
        source: Roster = await self.get_roster(db, source_roster_id)
        if not source.chain_id:
            raise IllegalStateTransitionError("This roster is not part of a version chain")
        if source.is_active:
            raise IllegalStateTransitionError("This version is already active; create a new version instead")
        if source.status == RosterStatus.DRAFT:
            raise IllegalStateTransitionError("Cannot restore from a draft version")

        members: Sequence[Roster] = await roster_repository.get_chain_members(db, source.chain_id, for_update=True)
        # 삭제되는 DRAFT의 번호는 재사용하지 않음
        next_version: int = max(m.version_number for m in members) + 1
        deleted: list[int] = []
        for member in members:
            if member.status == RosterStatus.DRAFT:
                deleted.append(member.version_number)
                await roster_repository.delete_with_children(db, member.id)

        restored: Roster = await roster_repository.create(db, {
            "venue_id": source.venue_id,
            "name": f"{source.name} (Restored)",
            "description": f"Restored from Version {source.version_number}",
            "start_date": source.start_date,
            "end_date": source.end_date,
            "status": RosterStatus.DRAFT,
            "chain_id": source.chain_id,
            "version_number": next_version,
            "is_active": False,
            "parent_id": None,
            "created_by": performed_by,
        })

        snapshot: list[dict[str, Any]] = await audit_service.build_snapshot(db, source.id)
        await shift_service.insert_snapshot(db, restored, snapshot)
        await self.copy_unmatched_entries(db, source.id, restored.id)

        await audit_service.record(
            db, restored, AuditAction.RESTORED_FROM_VERSION,
            changes={
                "source_roster_id": str(source.id),
                "source_version_number": source.version_number,
                "new_version_number": next_version,
                "replaced_draft_versions": deleted,
                "shift_count": len(snapshot),
            },
            include_snapshot=True,
            performed_by=performed_by,
        )
        logger.info(
            "[chain] restored v%d of chain=%s as v%d (replaced drafts=%s)",
            source.version_number, source.chain_id, next_version, deleted,
        )
        return restored

    # --- 비교/이력 (Compare and history) ---

    async def compare_versions(self, db: AsyncSession, roster_id_a: UUID, roster_id_b: UUID) -> dict:
        """두 로스터의 현재 근무를 비교 (Diff of two rosters' live shift sets, A → B)."""
        await self.get_roster(db, roster_id_a)
        await self.get_roster(db, roster_id_b)
        before: list[dict[str, Any]] = await audit_service.build_snapshot(db, roster_id_a)
        after: list[dict[str, Any]] = await audit_service.build_snapshot(db, roster_id_b)
        return diff_service.diff(before, after)

    async def get_version_history(self, db: AsyncSession, roster_id: UUID) -> dict:
        """로스터의 리비전 이력 (History of one roster by revision, newest first)."""
        roster: Roster = await self.get_roster(db, roster_id)
        entries: Sequence[RosterHistory] = await history_repository.get_for_roster(db, roster_id)
        names: dict[UUID, str] = await user_repository.get_names(db, (e.performed_by for e in entries))
        history: list[dict] = []
        for entry in entries:
            data: dict = audit_service.serialize_entry(entry)
            data["performed_by_name"] = names.get(entry.performed_by) if entry.performed_by else None
            history.append(data)
        return {"history": history, "current_revision": roster.revision}

    async def get_version_snapshot(self, db: AsyncSession, roster_id: UUID, revision: int) -> list[dict[str, Any]]:
        """특정 리비전의 근무 스냅샷.

        Shift set of a roster as of ``revision``: the snapshot stored on the
        entry written at that revision, or the live shifts when ``revision``
        is the current one.

        Raises:
            NotFoundError: 로스터 없음 또는 스냅샷 없음 (Roster or snapshot not found)
        """
        roster: Roster = await self.get_roster(db, roster_id)
        entry: RosterHistory | None = await history_repository.get_by_revision(db, roster_id, revision)
        if entry is not None:
            return list(entry.shifts_snapshot or [])
        if revision == roster.revision:
            return await audit_service.build_snapshot(db, roster_id)
        raise NotFoundError(
            f"Snapshot data not available for revision {revision}. "
            "Only revisions written by workflow actions carry comparison data."
        )

    async def get_version_diff(
        self,
        db: AsyncSession,
        roster_id: UUID,
        from_revision: int,
        to_revision: int,
    ) -> dict:
        """두 리비전 간 비교 (Diff between two revisions of one roster)."""
        before: list[dict[str, Any]] = await self.get_version_snapshot(db, roster_id, from_revision)
        after: list[dict[str, Any]] = await self.get_version_snapshot(db, roster_id, to_revision)
        return diff_service.diff(before, after)

    # --- 롤백 (Rollback) ---

    async def rollback_to_version(
        self,
        db: AsyncSession,
        roster_id: UUID,
        revision: int,
        performed_by: UUID | None = None,
    ) -> dict:
        """DRAFT 로스터의 근무를 이전 리비전 상태로 되돌립니다.

        Replace every shift of a DRAFT roster with the shift set recorded at
        ``revision``. The pre-rollback state is recorded first
        (ROLLBACK_STARTED with a snapshot), so the rollback itself can be
        rolled back; restored shifts get fresh conflict verdicts.

        Returns:
            dict: success, rolled_back_to, restored_shifts, revision
        """
        roster: Roster = await self.get_roster(db, roster_id, for_update=True)
        if roster.status != RosterStatus.DRAFT:
            raise RosterNotEditableError(roster.status, "be rolled back")

        target: list[dict[str, Any]] = await self.get_version_snapshot(db, roster_id, revision)

        await audit_service.record(
            db, roster, AuditAction.ROLLBACK_STARTED,
            changes={"rolling_back_to": revision},
            include_snapshot=True,
            performed_by=performed_by,
        )
        await shift_repository.delete_by_roster(db, roster_id)
        restored = await shift_service.insert_snapshot(db, roster, target)
        await audit_service.record(
            db, roster, AuditAction.ROLLBACK_COMPLETE,
            changes={"rolled_back_to": revision, "restored_shifts": len(restored)},
            performed_by=performed_by,
        )
        logger.info("[chain] roster=%s rolled back to revision %d (%d shifts)", roster_id, revision, len(restored))
        return {
            "success": True,
            "rolled_back_to": revision,
            "restored_shifts": len(restored),
            "revision": roster.revision,
        }


# 싱글턴 인스턴스 — Singleton instance
version_chain_service: VersionChainService = VersionChainService()
