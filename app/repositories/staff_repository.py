"""직원 휴가/가용성 레포지토리 — 충돌 검사용 읽기 전용 쿼리.

Staff Repository — Read-only queries over time-off and availability used by
the conflict checker.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.staff import Availability, TimeOffRequest, TimeOffStatus


class StaffRepository:
    """휴가/가용성 조회 레포지토리 (Time-off and availability lookups)."""

    async def get_approved_time_off(
        self,
        db: AsyncSession,
        user_id: UUID,
        on_date: date,
    ) -> TimeOffRequest | None:
        """날짜를 포함하는 승인된 휴가를 조회합니다 (양 끝 포함).

        Return an APPROVED time-off request covering ``on_date``, inclusive on
        both ends. Pending and rejected requests are ignored.
        """
        result = await db.execute(
            select(TimeOffRequest)
            .where(
                TimeOffRequest.user_id == user_id,
                TimeOffRequest.status == TimeOffStatus.APPROVED,
                TimeOffRequest.start_date <= on_date,
                TimeOffRequest.end_date >= on_date,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_availability(
        self,
        db: AsyncSession,
        user_id: UUID,
        day_of_week: int,
    ) -> Availability | None:
        """요일별 가용성 레코드 (Availability record for a day of week, 0=Sunday)."""
        result = await db.execute(
            select(Availability).where(
                Availability.user_id == user_id,
                Availability.day_of_week == day_of_week,
            )
        )
        return result.scalar_one_or_none()


# 싱글턴 인스턴스 — Singleton instance
staff_repository: StaffRepository = StaffRepository()
