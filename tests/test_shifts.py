"""로스터 근무 API 테스트.

Roster shift API tests — Add, update, delete, bulk add, recheck and the
standalone conflict check. Every mutation requires a DRAFT roster and
stores the conflict verdict on the shift.
"""

from datetime import date
from uuid import uuid4

import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.roster import AuditAction, RosterHistory
from app.models.staff import TimeOffRequest, TimeOffStatus
from app.repositories.shift_repository import shift_repository
from app.services.lifecycle_service import lifecycle_service
from tests.conftest import add_shift, auth_header, create_roster

BASE_URL = "/api/v1/admin/rosters"


@pytest_asyncio.fixture
async def roster(db: AsyncSession, venue):
    return await create_roster(db, venue)


def _shift_payload(user=None, **overrides) -> dict:
    payload = {
        "user_id": str(user.id) if user is not None else None,
        "date": "2025-06-10",
        "start_time": "09:00",
        "end_time": "17:00",
        "break_minutes": 30,
        "position": "Bar",
    }
    payload.update(overrides)
    return payload


class TestAddShift:
    """근무 추가."""

    async def test_add_assigned_shift(self, client: AsyncClient, admin_token, roster, alice):
        """배정 근무 추가 — 직원 이름과 충돌 판정 포함."""
        res = await client.post(
            f"{BASE_URL}/{roster.id}/shifts",
            json=_shift_payload(alice),
            headers=auth_header(admin_token),
        )
        assert res.status_code == 201
        data = res.json()
        assert data["user_name"] == "Alice"
        assert data["start_time"] == "09:00"
        assert data["has_conflict"] is False

    async def test_add_unassigned_slot(self, client: AsyncClient, admin_token, roster):
        """미배정 슬롯은 충돌 검사 없이 저장."""
        res = await client.post(
            f"{BASE_URL}/{roster.id}/shifts",
            json=_shift_payload(None),
            headers=auth_header(admin_token),
        )
        assert res.status_code == 201
        assert res.json()["user_id"] is None
        assert res.json()["has_conflict"] is False

    async def test_date_outside_roster_period(self, client: AsyncClient, admin_token, roster, alice):
        """로스터 기간 밖 날짜 → 400."""
        res = await client.post(
            f"{BASE_URL}/{roster.id}/shifts",
            json=_shift_payload(alice, date="2025-06-20"),
            headers=auth_header(admin_token),
        )
        assert res.status_code == 400
        assert res.json()["success"] is False
        assert "outside the roster period" in res.json()["error"]

    async def test_end_before_start(self, client: AsyncClient, admin_token, roster, alice):
        res = await client.post(
            f"{BASE_URL}/{roster.id}/shifts",
            json=_shift_payload(alice, start_time="17:00", end_time="09:00"),
            headers=auth_header(admin_token),
        )
        assert res.status_code == 400
        assert res.json()["error"] == "End time must be after start time"

    async def test_malformed_time_is_rejected(self, client: AsyncClient, admin_token, roster, alice):
        """HH:MM 형식이 아니면 검증 단계에서 400."""
        res = await client.post(
            f"{BASE_URL}/{roster.id}/shifts",
            json=_shift_payload(alice, start_time="9am"),
            headers=auth_header(admin_token),
        )
        assert res.status_code == 400
        assert res.json()["success"] is False
        assert res.json()["error"].startswith("start_time")

    async def test_cannot_edit_finalized_roster(self, client: AsyncClient, db: AsyncSession, admin_token, roster, alice):
        """DRAFT가 아닌 로스터 → 409."""
        await add_shift(db, roster, alice)
        await lifecycle_service.finalize(db, roster.id)
        res = await client.post(
            f"{BASE_URL}/{roster.id}/shifts",
            json=_shift_payload(alice, date="2025-06-11"),
            headers=auth_header(admin_token),
        )
        assert res.status_code == 409
        assert "only draft rosters" in res.json()["error"]

    async def test_add_records_audit_entry(self, client: AsyncClient, db: AsyncSession, admin_token, roster, alice):
        """근무 추가 → SHIFT_ADDED 기록, 리비전 1 증가."""
        before = roster.revision
        await client.post(
            f"{BASE_URL}/{roster.id}/shifts",
            json=_shift_payload(alice),
            headers=auth_header(admin_token),
        )
        entries = (await db.execute(
            select(RosterHistory).where(
                RosterHistory.roster_id == roster.id,
                RosterHistory.action == AuditAction.SHIFT_ADDED,
            )
        )).scalars().all()
        assert len(entries) == 1
        assert entries[0].version == before + 1
        assert entries[0].changes["shift"]["user_name"] == "Alice"


class TestUpdateShift:
    """근무 수정."""

    async def test_reassign_recomputes_conflict(self, client: AsyncClient, db: AsyncSession, admin_token, roster, alice, bob):
        """휴가 중인 직원으로 재배정 → TIME_OFF."""
        db.add(TimeOffRequest(
            user_id=bob.id, start_date=date(2025, 6, 10), end_date=date(2025, 6, 10),
            status=TimeOffStatus.APPROVED,
        ))
        shift = await add_shift(db, roster, alice)
        res = await client.patch(
            f"{BASE_URL}/{roster.id}/shifts/{shift.id}",
            json={"user_id": str(bob.id)},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 200
        assert res.json()["user_name"] == "Bob"
        assert res.json()["conflict_type"] == "TIME_OFF"

    async def test_unassign_clears_conflict(self, client: AsyncClient, db: AsyncSession, admin_token, roster, alice):
        db.add(TimeOffRequest(
            user_id=alice.id, start_date=date(2025, 6, 10), end_date=date(2025, 6, 10),
            status=TimeOffStatus.APPROVED,
        ))
        shift = await add_shift(db, roster, alice)
        assert shift.has_conflict is True
        res = await client.patch(
            f"{BASE_URL}/{roster.id}/shifts/{shift.id}",
            json={"user_id": None},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 200
        assert res.json()["has_conflict"] is False
        assert res.json()["conflict_type"] is None

    async def test_notes_only_update_keeps_time(self, client: AsyncClient, db: AsyncSession, admin_token, roster, alice):
        shift = await add_shift(db, roster, alice)
        res = await client.patch(
            f"{BASE_URL}/{roster.id}/shifts/{shift.id}",
            json={"notes": "Cover the terrace"},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 200
        assert res.json()["notes"] == "Cover the terrace"
        assert res.json()["end_time"] == "17:00"

    async def test_unknown_shift(self, client: AsyncClient, admin_token, roster):
        res = await client.patch(
            f"{BASE_URL}/{roster.id}/shifts/00000000-0000-0000-0000-000000000000",
            json={"notes": "x"},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 404
        assert res.json()["error"] == "Shift not found"


class TestDeleteShift:
    """근무 삭제."""

    async def test_delete_shift(self, client: AsyncClient, db: AsyncSession, admin_token, roster, alice):
        shift = await add_shift(db, roster, alice)
        res = await client.delete(
            f"{BASE_URL}/{roster.id}/shifts/{shift.id}",
            headers=auth_header(admin_token),
        )
        assert res.status_code == 200
        assert res.json()["message"] == "Shift deleted"

        listing = await client.get(f"{BASE_URL}/{roster.id}/shifts", headers=auth_header(admin_token))
        assert listing.json() == []

        removed = (await db.execute(
            select(RosterHistory).where(
                RosterHistory.roster_id == roster.id,
                RosterHistory.action == AuditAction.SHIFT_REMOVED,
            )
        )).scalars().all()
        assert len(removed) == 1


class TestBulkAdd:
    """근무 일괄 추가."""

    async def test_bulk_add_flags_overlaps_within_batch(self, client: AsyncClient, db: AsyncSession, admin_token, roster, alice, bob):
        """같은 배치 안의 겹치는 근무도 DOUBLE_BOOKED."""
        res = await client.post(
            f"{BASE_URL}/{roster.id}/shifts/bulk",
            json={"shifts": [
                _shift_payload(alice, start_time="09:00", end_time="13:00"),
                _shift_payload(alice, start_time="12:00", end_time="16:00", position="Floor"),
                _shift_payload(bob, start_time="09:00", end_time="17:00", position="Kitchen"),
            ]},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 201
        assert res.json() == {"success": True, "created": 3}

        listing = (await client.get(f"{BASE_URL}/{roster.id}/shifts", headers=auth_header(admin_token))).json()
        flagged = [s for s in listing if s["has_conflict"]]
        assert len(flagged) == 1
        assert flagged[0]["position"] == "Floor"
        assert flagged[0]["conflict_type"] == "DOUBLE_BOOKED"

    async def test_empty_batch_is_rejected(self, client: AsyncClient, admin_token, roster):
        res = await client.post(
            f"{BASE_URL}/{roster.id}/shifts/bulk",
            json={"shifts": []},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 400


class TestRecheck:
    """충돌 재검사."""

    async def test_recheck_picks_up_new_time_off(self, client: AsyncClient, db: AsyncSession, admin_token, roster, alice, bob):
        """근무 배정 후 휴가 승인 → 재검사에서 감지, 리비전은 그대로."""
        await add_shift(db, roster, alice)
        await add_shift(db, roster, bob, position="Floor")
        db.add(TimeOffRequest(
            user_id=alice.id, start_date=date(2025, 6, 9), end_date=date(2025, 6, 15),
            status=TimeOffStatus.APPROVED,
        ))
        await db.flush()
        revision = roster.revision

        res = await client.post(f"{BASE_URL}/{roster.id}/shifts/recheck", headers=auth_header(admin_token))
        assert res.status_code == 200
        data = res.json()
        assert data["total_shifts"] == 2
        assert data["conflict_count"] == 1
        assert data["conflicts"][0]["user_name"] == "Alice"
        assert data["conflicts"][0]["conflict_type"] == "TIME_OFF"

        detected = (await db.execute(
            select(RosterHistory).where(
                RosterHistory.roster_id == roster.id,
                RosterHistory.action == AuditAction.CONFLICTS_DETECTED,
            )
        )).scalars().all()
        assert len(detected) == 1
        assert detected[0].version == revision
        assert roster.revision == revision

    async def test_recheck_without_conflicts_writes_nothing(self, client: AsyncClient, db: AsyncSession, admin_token, roster, alice):
        await add_shift(db, roster, alice)
        res = await client.post(f"{BASE_URL}/{roster.id}/shifts/recheck", headers=auth_header(admin_token))
        assert res.json()["conflict_count"] == 0
        detected = (await db.execute(
            select(RosterHistory).where(RosterHistory.action == AuditAction.CONFLICTS_DETECTED)
        )).scalars().all()
        assert detected == []


class TestCheckConflict:
    """저장 없이 충돌만 확인."""

    async def test_check_candidate(self, client: AsyncClient, db: AsyncSession, admin_token, roster, alice):
        await add_shift(db, roster, alice, start="09:00", end="13:00")
        res = await client.post(
            f"{BASE_URL}/{roster.id}/shifts/check-conflict",
            json={"user_id": str(alice.id), "date": "2025-06-10", "start_time": "12:00", "end_time": "14:00"},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 200
        assert res.json()["has_conflict"] is True
        assert res.json()["conflict_type"] == "DOUBLE_BOOKED"

    async def test_check_rejects_inverted_range(self, client: AsyncClient, admin_token, roster, alice):
        res = await client.post(
            f"{BASE_URL}/{roster.id}/shifts/check-conflict",
            json={"user_id": str(alice.id), "date": "2025-06-10", "start_time": "14:00", "end_time": "12:00"},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 400
        assert res.json()["error"] == "end_time must be after start_time"


class TestShiftRepositoryWrites:
    """기본 레포지토리 update/delete."""

    async def test_update_and_delete(self, db: AsyncSession, roster, alice):
        shift = await add_shift(db, roster, alice)
        updated = await shift_repository.update(db, shift.id, {"notes": "Cover close", "user_id": None})
        assert updated is shift
        assert (shift.notes, shift.user_id) == ("Cover close", None)

        assert await shift_repository.delete(db, shift.id) is True
        assert await shift_repository.get_by_id(db, shift.id) is None

    async def test_unknown_id(self, db: AsyncSession):
        assert await shift_repository.update(db, uuid4(), {"notes": "x"}) is None
        assert await shift_repository.delete(db, uuid4()) is False
