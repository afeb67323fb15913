"""로스터 레포지토리 — 로스터 및 버전 체인 DB 쿼리 담당.

Roster Repository — Database queries for rosters and their version chains.
Status changes go through ``transition_status`` (compare-and-swap) so two
concurrent writers cannot both move the same roster.
"""

from datetime import date, timedelta
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import Select, and_, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.roster import Roster, RosterHistory, RosterShift, RosterStatus, UnmatchedRosterEntry
from app.repositories.base import BaseRepository


class RosterRepository(BaseRepository[Roster]):
    """로스터 레포지토리.

    Repository for roster CRUD, chain queries and status transitions.
    """

    def __init__(self) -> None:
        super().__init__(Roster)

    async def transition_status(
        self,
        db: AsyncSession,
        roster_id: UUID,
        allowed_from: Sequence[str],
        values: dict[str, Any],
    ) -> bool:
        """허용된 상태일 때만 로스터를 갱신합니다 (Compare-and-swap).

        Apply ``values`` only if the roster is still in one of ``allowed_from``.
        Returns False when another writer changed the status first.
        """
        result = await db.execute(
            update(Roster)
            .where(Roster.id == roster_id, Roster.status.in_(list(allowed_from)))
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1

    async def get_chain_members(
        self,
        db: AsyncSession,
        chain_id: str,
        for_update: bool = False,
    ) -> Sequence[Roster]:
        """체인의 모든 버전을 버전 번호순으로 조회합니다.

        Return every member of a chain ordered by version number.
        ``for_update`` locks the rows (ignored by SQLite).
        """
        query: Select = (
            select(Roster)
            .where(Roster.chain_id == chain_id)
            .order_by(Roster.version_number)
        )
        if for_update:
            query = query.with_for_update()
        result = await db.execute(query)
        return result.scalars().all()

    async def get_max_version_number(self, db: AsyncSession, chain_id: str) -> int:
        """체인 내 최대 버전 번호 (0 if the chain is empty)."""
        result = await db.execute(
            select(func.max(Roster.version_number)).where(Roster.chain_id == chain_id)
        )
        return result.scalar() or 0

    async def get_chain_draft(self, db: AsyncSession, chain_id: str) -> Roster | None:
        """체인의 진행 중인 DRAFT 버전 (In-flight draft of a chain, newest first)."""
        result = await db.execute(
            select(Roster)
            .where(Roster.chain_id == chain_id, Roster.status == RosterStatus.DRAFT)
            .order_by(Roster.version_number.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_all_chain_ids(self, db: AsyncSession) -> list[str]:
        """체인 ID 전체 목록 (Every distinct non-null chain id)."""
        result = await db.execute(
            select(Roster.chain_id).distinct().where(Roster.chain_id.is_not(None))
        )
        return [row for row in result.scalars().all()]

    async def get_chain_ids_for_venue(
        self,
        db: AsyncSession,
        venue_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[str]:
        """매장의 체인 ID 목록 (Chain ids of a venue, optionally within a date window)."""
        query: Select = select(Roster.chain_id).distinct().where(
            Roster.venue_id == venue_id, Roster.chain_id.is_not(None)
        )
        if date_from is not None:
            query = query.where(Roster.end_date >= date_from)
        if date_to is not None:
            query = query.where(Roster.start_date <= date_to)
        result = await db.execute(query)
        return [row for row in result.scalars().all()]

    def build_list_query(
        self,
        venue_ids: list[UUID] | None = None,
        venue_id: UUID | None = None,
        status: str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        search: str | None = None,
        chain_id: str | None = None,
        include_superseded: bool = False,
    ) -> Select:
        """목록 필터 쿼리를 구성합니다.

        Build the roster list query.

        Args:
            venue_ids: 접근 가능한 매장 목록, None이면 전체 (Accessible venues, None = all)
            venue_id: 특정 매장 필터 (Single venue filter)
            status: 상태 필터 (Status filter)
            date_from: 기간 시작 (Rosters ending on/after this date)
            date_to: 기간 종료 (Rosters starting on/before this date)
            search: 이름/설명 검색어 (Case-insensitive text search)
            chain_id: 체인 필터 (Chain filter)
            include_superseded: False면 대체된 버전 제외
                (False hides archived and inactive published versions)
        """
        query: Select = select(Roster)
        if venue_ids is not None:
            query = query.where(Roster.venue_id.in_(venue_ids))
        if venue_id is not None:
            query = query.where(Roster.venue_id == venue_id)
        if status is not None:
            query = query.where(Roster.status == status)
        if date_from is not None:
            query = query.where(Roster.end_date >= date_from)
        if date_to is not None:
            query = query.where(Roster.start_date <= date_to)
        if search:
            pattern: str = f"%{search.lower()}%"
            query = query.where(
                or_(
                    func.lower(Roster.name).like(pattern),
                    func.lower(func.coalesce(Roster.description, "")).like(pattern),
                )
            )
        if chain_id is not None:
            query = query.where(Roster.chain_id == chain_id)
        if not include_superseded:
            query = query.where(
                Roster.status != RosterStatus.ARCHIVED,
                or_(Roster.status != RosterStatus.PUBLISHED, Roster.is_active.is_(True)),
            )
        return query.order_by(Roster.start_date.desc(), Roster.version_number.desc())

    async def find_adjacent(
        self,
        db: AsyncSession,
        venue_id: UUID,
        around: date,
    ) -> Roster | None:
        """주어진 날짜 근처(±3일)에서 시작하는 같은 매장의 로스터를 찾습니다.

        Find a same-venue PUBLISHED or DRAFT roster starting within three days
        of ``around``, preferring the active version, then the newest one.
        """
        result = await db.execute(
            select(Roster)
            .where(
                Roster.venue_id == venue_id,
                Roster.start_date >= around - timedelta(days=3),
                Roster.start_date <= around + timedelta(days=3),
                Roster.status.in_([RosterStatus.PUBLISHED, RosterStatus.DRAFT]),
            )
            .order_by(Roster.is_active.desc(), Roster.version_number.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_by_status(
        self,
        db: AsyncSession,
        status: str,
        venue_ids: list[UUID] | None = None,
    ) -> Sequence[Roster]:
        """상태별 로스터 목록 (Rosters in a status, optionally venue-scoped)."""
        query: Select = select(Roster).where(Roster.status == status)
        if venue_ids is not None:
            query = query.where(Roster.venue_id.in_(venue_ids))
        result = await db.execute(query.order_by(Roster.updated_at.desc()))
        return result.scalars().all()

    async def count_by_status(self, db: AsyncSession, venue_id: UUID) -> dict[str, int]:
        """매장의 상태별 로스터 수 (Roster counts per status for one venue)."""
        result = await db.execute(
            select(Roster.status, func.count())
            .where(Roster.venue_id == venue_id)
            .group_by(Roster.status)
        )
        return {status: count for status, count in result.all()}

    async def delete_with_children(self, db: AsyncSession, roster_id: UUID) -> None:
        """로스터와 하위 레코드를 모두 삭제합니다.

        Delete a roster together with its shifts, history and unmatched
        entries. Children are deleted explicitly so the behavior does not
        depend on database-level cascades.
        """
        await db.execute(delete(RosterShift).where(RosterShift.roster_id == roster_id))
        await db.execute(delete(RosterHistory).where(RosterHistory.roster_id == roster_id))
        await db.execute(delete(UnmatchedRosterEntry).where(UnmatchedRosterEntry.roster_id == roster_id))
        await db.execute(
            update(Roster).where(Roster.parent_id == roster_id).values(parent_id=None)
        )
        await db.execute(delete(Roster).where(Roster.id == roster_id))
        await db.flush()

    async def get_unmatched_entries(
        self,
        db: AsyncSession,
        roster_id: UUID,
        unresolved_only: bool = False,
    ) -> Sequence[UnmatchedRosterEntry]:
        """로스터의 미매칭 이름 목록 (Unmatched-name entries of a roster)."""
        query: Select = select(UnmatchedRosterEntry).where(UnmatchedRosterEntry.roster_id == roster_id)
        if unresolved_only:
            query = query.where(UnmatchedRosterEntry.resolved.is_(False))
        result = await db.execute(query.order_by(UnmatchedRosterEntry.created_at))
        return result.scalars().all()

    async def get_unmatched_entry(
        self, db: AsyncSession, roster_id: UUID, entry_id: UUID
    ) -> UnmatchedRosterEntry | None:
        result = await db.execute(
            select(UnmatchedRosterEntry).where(
                and_(UnmatchedRosterEntry.id == entry_id, UnmatchedRosterEntry.roster_id == roster_id)
            )
        )
        return result.scalar_one_or_none()


# 싱글턴 인스턴스 — Singleton instance
roster_repository: RosterRepository = RosterRepository()
