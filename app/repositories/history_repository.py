"""로스터 감사 로그 레포지토리.

Roster History Repository — Append-only audit entry queries.
Entries are never updated; the only deletion path is removing a whole
DRAFT roster (``RosterRepository.delete_with_children``).
"""

from typing import Sequence
from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.roster import Roster, RosterHistory
from app.repositories.base import BaseRepository


class HistoryRepository(BaseRepository[RosterHistory]):
    """감사 로그 레포지토리 (Audit entry repository)."""

    def __init__(self) -> None:
        super().__init__(RosterHistory)

    async def get_for_roster(
        self,
        db: AsyncSession,
        roster_id: UUID,
        action: str | None = None,
        limit: int = 100,
        ascending: bool = False,
    ) -> Sequence[RosterHistory]:
        """로스터의 감사 로그를 조회합니다.

        Entries of one roster, newest first unless ``ascending``.
        """
        query: Select = select(RosterHistory).where(RosterHistory.roster_id == roster_id)
        if action is not None:
            query = query.where(RosterHistory.action == action)
        if ascending:
            query = query.order_by(RosterHistory.version, RosterHistory.created_at)
        else:
            query = query.order_by(RosterHistory.version.desc(), RosterHistory.created_at.desc())
        result = await db.execute(query.limit(limit))
        return result.scalars().all()

    async def get_for_chain(
        self,
        db: AsyncSession,
        chain_id: str,
        limit: int = 200,
    ) -> Sequence[tuple[RosterHistory, str, int]]:
        """체인 전체의 감사 로그 — 로스터 이름/버전 포함.

        Entries across every member of a chain, joined with the roster's name
        and version number, newest first.
        """
        result = await db.execute(
            select(RosterHistory, Roster.name, Roster.version_number)
            .join(Roster, Roster.id == RosterHistory.roster_id)
            .where(Roster.chain_id == chain_id)
            .order_by(RosterHistory.created_at.desc())
            .limit(limit)
        )
        return result.all()

    async def get_latest_snapshot(self, db: AsyncSession, roster_id: UUID) -> RosterHistory | None:
        """스냅샷이 있는 최신 항목 (Newest entry carrying a shift snapshot)."""
        result = await db.execute(
            select(RosterHistory)
            .where(RosterHistory.roster_id == roster_id, RosterHistory.shifts_snapshot.is_not(None))
            .order_by(RosterHistory.version.desc(), RosterHistory.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_snapshot_entries(
        self,
        db: AsyncSession,
        roster_id: UUID,
        limit: int = 10,
    ) -> Sequence[RosterHistory]:
        """스냅샷이 있는 항목 목록 — 롤백 지점 (Entries with snapshots, newest first)."""
        result = await db.execute(
            select(RosterHistory)
            .where(RosterHistory.roster_id == roster_id, RosterHistory.shifts_snapshot.is_not(None))
            .order_by(RosterHistory.version.desc(), RosterHistory.created_at.desc())
            .limit(limit)
        )
        return result.scalars().all()

    async def get_by_revision(
        self,
        db: AsyncSession,
        roster_id: UUID,
        revision: int,
    ) -> RosterHistory | None:
        """특정 리비전의 스냅샷 항목 (Snapshot-carrying entry written at a revision)."""
        result = await db.execute(
            select(RosterHistory)
            .where(
                RosterHistory.roster_id == roster_id,
                RosterHistory.version == revision,
                RosterHistory.shifts_snapshot.is_not(None),
            )
            .order_by(RosterHistory.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()


# 싱글턴 인스턴스 — Singleton instance
history_repository: HistoryRepository = HistoryRepository()
