"""근무 충돌 검사 테스트.

Conflict checker tests — Approved time off, double booking across rosters,
declared availability, rule priority and the fail-open behavior.
"""

from datetime import date, time

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.roster import ConflictType
from app.models.staff import Availability, TimeOffRequest, TimeOffStatus
from app.repositories.staff_repository import staff_repository
from app.services.conflict_service import conflict_service
from app.services.lifecycle_service import lifecycle_service
from app.services.version_chain_service import version_chain_service
from app.repositories.shift_repository import shift_repository
from tests.conftest import add_shift, create_roster

TUESDAY = date(2025, 6, 10)


@pytest_asyncio.fixture
async def roster_a(db: AsyncSession, venue):
    return await create_roster(db, venue, name="Harbour week 24")


@pytest_asyncio.fixture
async def roster_b(db: AsyncSession, other_venue):
    """다른 매장의 같은 주 로스터 — 별도 체인."""
    return await create_roster(db, other_venue, name="Rooftop week 24")


class TestDoubleBooking:
    """이중 배정 검사."""

    async def test_touching_shifts_do_not_conflict(self, db: AsyncSession, roster_a, roster_b, alice):
        """09-13 과 13-17 은 맞닿을 뿐 겹치지 않음."""
        await add_shift(db, roster_a, alice, TUESDAY, "09:00", "13:00")
        shift = await add_shift(db, roster_b, alice, TUESDAY, "13:00", "17:00")
        assert shift.has_conflict is False
        assert shift.conflict_type is None

    async def test_overlapping_shift_on_another_roster(self, db: AsyncSession, roster_a, roster_b, alice):
        """다른 로스터의 겹치는 근무 → DOUBLE_BOOKED."""
        await add_shift(db, roster_a, alice, TUESDAY, "09:00", "13:00")
        shift = await add_shift(db, roster_b, alice, TUESDAY, "12:00", "16:00")
        assert shift.has_conflict is True
        assert shift.conflict_type == ConflictType.DOUBLE_BOOKED

    async def test_other_staff_member_is_not_double_booked(self, db: AsyncSession, roster_a, roster_b, alice, bob):
        """같은 시간이라도 다른 직원이면 충돌 없음."""
        await add_shift(db, roster_a, alice, TUESDAY, "09:00", "13:00")
        shift = await add_shift(db, roster_b, bob, TUESDAY, "09:00", "13:00")
        assert shift.has_conflict is False

    async def test_approved_roster_does_not_block(self, db: AsyncSession, roster_a, roster_b, alice):
        """확정(APPROVED) 로스터의 근무는 이중 배정 검사 대상이 아님."""
        await add_shift(db, roster_a, alice, TUESDAY, "09:00", "17:00")
        await lifecycle_service.finalize(db, roster_a.id)
        shift = await add_shift(db, roster_b, alice, TUESDAY, "12:00", "16:00")
        assert shift.has_conflict is False

    async def test_new_version_copy_overlaps_published_parent(self, db: AsyncSession, roster_a, alice):
        """새 버전으로 복사된 근무 ↔ 게시된 부모 버전의 근무 → DOUBLE_BOOKED."""
        await add_shift(db, roster_a, alice, TUESDAY, "09:00", "17:00")
        await lifecycle_service.finalize(db, roster_a.id)
        await lifecycle_service.publish(db, roster_a.id)

        draft = await version_chain_service.create_new_version(db, roster_a.id)
        copied = await shift_repository.get_by_roster(db, draft.id)
        assert [(s.has_conflict, s.conflict_type) for s in copied] == [(True, ConflictType.DOUBLE_BOOKED)]

    async def test_archived_parent_stops_blocking(self, db: AsyncSession, roster_a, alice):
        """새 버전 게시로 부모가 보관되면 재검사 시 충돌 해소."""
        await add_shift(db, roster_a, alice, TUESDAY, "09:00", "17:00")
        await lifecycle_service.finalize(db, roster_a.id)
        await lifecycle_service.publish(db, roster_a.id)
        draft = await version_chain_service.create_new_version(db, roster_a.id)
        await lifecycle_service.finalize(db, draft.id)
        await lifecycle_service.publish(db, draft.id)

        copied = await shift_repository.get_by_roster(db, draft.id)
        verdict = await conflict_service.check_conflict(
            db, alice.id, TUESDAY, time(9, 0), time(17, 0),
            roster_id=draft.id, exclude_shift_id=copied[0].id,
        )
        assert verdict.has_conflict is False

    async def test_excluded_shift_is_skipped(self, db: AsyncSession, roster_a, alice):
        """수정 중인 근무 자신은 검사에서 제외."""
        shift = await add_shift(db, roster_a, alice, TUESDAY, "09:00", "13:00")
        verdict = await conflict_service.check_conflict(
            db, alice.id, TUESDAY, time(10, 0), time(12, 0),
            roster_id=roster_a.id, exclude_shift_id=shift.id,
        )
        assert verdict.has_conflict is False


class TestTimeOff:
    """승인된 휴가 검사."""

    async def test_approved_time_off_blocks(self, db: AsyncSession, roster_a, alice):
        """06-10 ~ 06-12 휴가 중 06-11 근무 → TIME_OFF."""
        db.add(TimeOffRequest(
            user_id=alice.id, start_date=date(2025, 6, 10), end_date=date(2025, 6, 12),
            status=TimeOffStatus.APPROVED,
        ))
        await db.flush()
        shift = await add_shift(db, roster_a, alice, date(2025, 6, 11), "09:00", "17:00")
        assert shift.conflict_type == ConflictType.TIME_OFF

    async def test_time_off_range_is_inclusive(self, db: AsyncSession, roster_a, alice):
        """휴가 마지막 날도 포함, 다음 날은 제외."""
        db.add(TimeOffRequest(
            user_id=alice.id, start_date=date(2025, 6, 10), end_date=date(2025, 6, 12),
            status=TimeOffStatus.APPROVED,
        ))
        await db.flush()
        last_day = await add_shift(db, roster_a, alice, date(2025, 6, 12), "09:00", "12:00")
        next_day = await add_shift(db, roster_a, alice, date(2025, 6, 13), "09:00", "12:00")
        assert last_day.conflict_type == ConflictType.TIME_OFF
        assert next_day.has_conflict is False

    async def test_pending_time_off_does_not_block(self, db: AsyncSession, roster_a, alice):
        """대기 중인 휴가는 충돌이 아님."""
        db.add(TimeOffRequest(
            user_id=alice.id, start_date=TUESDAY, end_date=TUESDAY, status=TimeOffStatus.PENDING,
        ))
        await db.flush()
        shift = await add_shift(db, roster_a, alice, TUESDAY)
        assert shift.has_conflict is False

    async def test_time_off_wins_over_double_booking(self, db: AsyncSession, roster_a, roster_b, alice):
        """규칙 우선순위 — TIME_OFF가 DOUBLE_BOOKED보다 먼저."""
        await add_shift(db, roster_a, alice, TUESDAY, "09:00", "13:00")
        db.add(TimeOffRequest(
            user_id=alice.id, start_date=TUESDAY, end_date=TUESDAY, status=TimeOffStatus.APPROVED,
        ))
        await db.flush()
        shift = await add_shift(db, roster_b, alice, TUESDAY, "12:00", "16:00")
        assert shift.conflict_type == ConflictType.TIME_OFF


class TestAvailability:
    """요일별 가용성 검사 (0=일요일, 화요일=2)."""

    async def _declare(self, db: AsyncSession, user, **fields):
        db.add(Availability(user_id=user.id, day_of_week=2, **fields))
        await db.flush()

    async def test_unavailable_day(self, db: AsyncSession, roster_a, alice):
        await self._declare(db, alice, is_available=False)
        shift = await add_shift(db, roster_a, alice, TUESDAY)
        assert shift.conflict_type == ConflictType.AVAILABILITY

    async def test_outside_window(self, db: AsyncSession, roster_a, alice):
        """10:00-18:00 가능, 09:00 시작 → AVAILABILITY."""
        await self._declare(db, alice, start_time=time(10, 0), end_time=time(18, 0))
        shift = await add_shift(db, roster_a, alice, TUESDAY, "09:00", "17:00")
        assert shift.conflict_type == ConflictType.AVAILABILITY

    async def test_inside_window(self, db: AsyncSession, roster_a, alice):
        await self._declare(db, alice, start_time=time(8, 0), end_time=time(18, 0))
        shift = await add_shift(db, roster_a, alice, TUESDAY, "09:00", "17:00")
        assert shift.has_conflict is False

    async def test_missing_start_defaults_to_midnight(self, db: AsyncSession, roster_a, alice):
        """시작 시각 미지정 → 00:00 부터 가능."""
        await self._declare(db, alice, start_time=None, end_time=time(14, 0))
        early = await add_shift(db, roster_a, alice, TUESDAY, "06:00", "13:00")
        late = await add_shift(db, roster_a, alice, TUESDAY, "13:30", "15:00", position="Floor")
        assert early.has_conflict is False
        assert late.conflict_type == ConflictType.AVAILABILITY

    async def test_all_day_skips_window(self, db: AsyncSession, roster_a, alice):
        await self._declare(db, alice, is_all_day=True, start_time=time(12, 0), end_time=time(13, 0))
        shift = await add_shift(db, roster_a, alice, TUESDAY, "09:00", "17:00")
        assert shift.has_conflict is False

    async def test_other_weekday_is_not_checked(self, db: AsyncSession, roster_a, alice):
        """수요일 근무는 화요일 가용성과 무관."""
        await self._declare(db, alice, is_available=False)
        shift = await add_shift(db, roster_a, alice, date(2025, 6, 11))
        assert shift.has_conflict is False


class TestFailOpen:
    """검사 실패 시 충돌 없음으로 처리."""

    async def test_lookup_failure_reports_no_conflict(self, db: AsyncSession, roster_a, alice, monkeypatch):
        async def _boom(*args, **kwargs):
            raise RuntimeError("time-off lookup unavailable")

        monkeypatch.setattr(staff_repository, "get_approved_time_off", _boom)
        verdict = await conflict_service.check_conflict(
            db, alice.id, TUESDAY, time(9, 0), time(17, 0), roster_id=roster_a.id
        )
        assert verdict.has_conflict is False
        assert verdict.conflict_type is None
