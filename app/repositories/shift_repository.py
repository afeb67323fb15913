"""로스터 근무 레포지토리 — 근무 배정 DB 쿼리 담당.

Roster Shift Repository — Database queries for shifts on rosters.
"""

from datetime import date
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import Select, case, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.roster import Roster, RosterShift, RosterStatus
from app.repositories.base import BaseRepository


class ShiftRepository(BaseRepository[RosterShift]):
    """로스터 근무 레포지토리.

    Repository for roster shifts: per-roster listing, overlap candidates for
    the double-booking scan, and batched inserts.
    """

    def __init__(self) -> None:
        super().__init__(RosterShift)

    async def get_by_roster(self, db: AsyncSession, roster_id: UUID) -> Sequence[RosterShift]:
        """로스터의 모든 근무를 날짜/시각순으로 조회합니다.

        Return every shift of a roster ordered by date then start time.
        """
        result = await db.execute(
            select(RosterShift)
            .where(RosterShift.roster_id == roster_id)
            .order_by(RosterShift.date, RosterShift.start_time, RosterShift.position)
        )
        return result.scalars().all()

    async def get_in_roster(self, db: AsyncSession, roster_id: UUID, shift_id: UUID) -> RosterShift | None:
        """로스터 소속 확인과 함께 근무를 조회 (Shift lookup scoped to a roster)."""
        result = await db.execute(
            select(RosterShift).where(RosterShift.id == shift_id, RosterShift.roster_id == roster_id)
        )
        return result.scalar_one_or_none()

    async def get_double_booking_candidates(
        self,
        db: AsyncSession,
        user_id: UUID,
        shift_date: date,
        exclude_shift_id: UUID | None = None,
    ) -> Sequence[RosterShift]:
        """이중 배정 검사 대상 근무를 조회합니다.

        Same-staff, same-date shifts on DRAFT or PUBLISHED rosters.
        APPROVED and ARCHIVED rosters do not block new assignments.
        """
        query: Select = (
            select(RosterShift)
            .join(Roster, Roster.id == RosterShift.roster_id)
            .where(
                RosterShift.user_id == user_id,
                RosterShift.date == shift_date,
                Roster.status.in_([RosterStatus.DRAFT, RosterStatus.PUBLISHED]),
            )
        )
        if exclude_shift_id is not None:
            query = query.where(RosterShift.id != exclude_shift_id)
        result = await db.execute(query)
        return result.scalars().all()

    async def bulk_create(self, db: AsyncSession, rows: list[dict[str, Any]]) -> list[RosterShift]:
        """여러 근무를 한 번에 추가합니다 (Single batched insert)."""
        shifts: list[RosterShift] = [RosterShift(**row) for row in rows]
        db.add_all(shifts)
        await db.flush()
        return shifts

    async def delete_by_roster(self, db: AsyncSession, roster_id: UUID) -> int:
        """로스터의 모든 근무 삭제 (Delete every shift of a roster)."""
        result = await db.execute(delete(RosterShift).where(RosterShift.roster_id == roster_id))
        await db.flush()
        return result.rowcount or 0

    async def delete_many(self, db: AsyncSession, roster_id: UUID, shift_ids: list[UUID]) -> int:
        """지정 근무 삭제 (Delete the given shifts of a roster)."""
        if not shift_ids:
            return 0
        result = await db.execute(
            delete(RosterShift).where(RosterShift.roster_id == roster_id, RosterShift.id.in_(shift_ids))
        )
        await db.flush()
        return result.rowcount or 0

    async def count_for_roster(self, db: AsyncSession, roster_id: UUID) -> dict[str, int]:
        """근무 통계 — total / assigned / conflicts (Shift counts for one roster)."""
        result = await db.execute(
            select(
                func.count(RosterShift.id),
                func.count(RosterShift.user_id),
                func.coalesce(func.sum(case((RosterShift.has_conflict.is_(True), 1), else_=0)), 0),
            ).where(RosterShift.roster_id == roster_id)
        )
        total, assigned, conflicts = result.one()
        return {"total": total or 0, "assigned": assigned or 0, "conflicts": int(conflicts or 0)}

    async def get_by_original_name(
        self, db: AsyncSession, roster_id: UUID, original_name: str
    ) -> Sequence[RosterShift]:
        """원본 이름이 일치하는 근무 (Shifts carrying a given extracted name, case-insensitive)."""
        result = await db.execute(
            select(RosterShift).where(
                RosterShift.roster_id == roster_id,
                func.lower(RosterShift.original_name) == original_name.lower(),
            )
        )
        return result.scalars().all()

    async def get_published_for_user(
        self,
        db: AsyncSession,
        user_id: UUID,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> Sequence[tuple[RosterShift, Roster]]:
        """직원의 게시된 근무 목록 (A staff member's shifts on active published rosters)."""
        query: Select = (
            select(RosterShift, Roster)
            .join(Roster, Roster.id == RosterShift.roster_id)
            .where(
                RosterShift.user_id == user_id,
                Roster.status == RosterStatus.PUBLISHED,
                Roster.is_active.is_(True),
            )
        )
        if date_from is not None:
            query = query.where(RosterShift.date >= date_from)
        if date_to is not None:
            query = query.where(RosterShift.date <= date_to)
        result = await db.execute(query.order_by(RosterShift.date, RosterShift.start_time))
        return result.all()


# 싱글턴 인스턴스 — Singleton instance
shift_repository: ShiftRepository = ShiftRepository()
