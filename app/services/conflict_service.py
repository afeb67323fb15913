"""근무 충돌 검사 서비스.

Shift conflict checking service.
Evaluates a candidate assignment against approved time off, other shifts of
the same staff member, and declared weekly availability. Checking is
advisory: any internal failure is logged and reported as "no conflict".
"""

import logging
from dataclasses import dataclass
from datetime import date, time
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.roster import ConflictType
from app.models.staff import Availability
from app.repositories.shift_repository import shift_repository
from app.repositories.staff_repository import staff_repository
from app.utils.time_utils import availability_weekday, format_time, intervals_overlap, time_to_minutes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConflictResult:
    """충돌 검사 결과 (Conflict verdict for one candidate shift)."""

    has_conflict: bool
    conflict_type: ConflictType | None = None
    details: str | None = None

    @classmethod
    def none(cls) -> "ConflictResult":
        return cls(has_conflict=False)


class ConflictService:
    """근무 충돌 검사 서비스.

    Conflict checker. Rules run in priority order and the first rule that
    fires wins: TIME_OFF, then DOUBLE_BOOKED, then AVAILABILITY.
    """

    async def check_conflict(
        self,
        db: AsyncSession,
        user_id: UUID,
        shift_date: date,
        start_time: time,
        end_time: time,
        roster_id: UUID | None = None,
        exclude_shift_id: UUID | None = None,
    ) -> ConflictResult:
        """후보 근무의 충돌 여부를 판단합니다.

        Evaluate a candidate shift for ``user_id``.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            user_id: 배정 직원 UUID (Assigned staff member)
            shift_date: 근무일 (Shift date)
            start_time: 시작 시각 (Start time)
            end_time: 종료 시각 (End time)
            roster_id: 소속 로스터 UUID (Owning roster, used in failure logs)
            exclude_shift_id: 검사에서 제외할 근무 (Shift excluded from the
                double-booking scan, normally the shift being edited)

        Returns:
            ConflictResult: 충돌 판정 (Verdict; never raises)
        """
        try:
            # 1. 승인된 휴가 — Approved time off
            time_off = await staff_repository.get_approved_time_off(db, user_id, shift_date)
            if time_off is not None:
                return ConflictResult(True, ConflictType.TIME_OFF, "Staff member has approved time off on this date")

            # 2. 이중 배정 — Overlapping shift on a DRAFT or PUBLISHED roster
            candidates = await shift_repository.get_double_booking_candidates(db, user_id, shift_date, exclude_shift_id)
            for existing in candidates:
                if intervals_overlap(start_time, end_time, existing.start_time, existing.end_time):
                    return ConflictResult(True, ConflictType.DOUBLE_BOOKED, "Staff member has an overlapping shift")

            # 3. 가용성 — Declared availability for the day of week
            availability = await staff_repository.get_availability(db, user_id, availability_weekday(shift_date))
            if availability is not None:
                verdict: ConflictResult | None = self._check_availability(availability, start_time, end_time)
                if verdict is not None:
                    return verdict
        except Exception as exc:
            # 충돌 검사는 권고 사항 — fail open, never block shift creation
            logger.warning(
                "[conflict] check failed for user=%s date=%s roster=%s: %s",
                user_id, shift_date, roster_id, exc,
            )
            return ConflictResult.none()

        return ConflictResult.none()

    @staticmethod
    def _check_availability(availability: Availability, start_time: time, end_time: time) -> ConflictResult | None:
        """가용성 레코드와 근무 시간을 비교합니다.

        Compare a shift with an availability record. Missing window bounds
        default to 00:00 and 23:59.
        """
        if not availability.is_available:
            return ConflictResult(True, ConflictType.AVAILABILITY, "Staff member is not available on this day")
        if availability.is_all_day:
            return None

        window_start: str = format_time(availability.start_time) or "00:00"
        window_end: str = format_time(availability.end_time) or "23:59"
        if time_to_minutes(start_time) < time_to_minutes(window_start) or time_to_minutes(end_time) > time_to_minutes(window_end):
            return ConflictResult(
                True,
                ConflictType.AVAILABILITY,
                f"Shift time ({format_time(start_time)}-{format_time(end_time)}) is outside staff availability "
                f"({window_start}-{window_end})",
            )
        return None


# 싱글턴 인스턴스 — Singleton instance
conflict_service: ConflictService = ConflictService()
