"""로스터 상태 전이 테스트.

Roster lifecycle tests — finalize, publish, revert and archive, the legacy
review aliases, and a full publish → new version → republish round trip.
"""

from datetime import date
from uuid import UUID

import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.roster import AuditAction, Roster, RosterHistory, RosterStatus
from app.models.staff import TimeOffRequest, TimeOffStatus
from app.repositories.shift_repository import shift_repository
from app.services.lifecycle_service import lifecycle_service
from tests.conftest import add_shift, auth_header, create_roster

BASE_URL = "/api/v1/admin/rosters"


@pytest_asyncio.fixture
async def roster(db: AsyncSession, venue):
    return await create_roster(db, venue)


async def _actions(db: AsyncSession, roster_id) -> list[str]:
    rows = (await db.execute(
        select(RosterHistory.action)
        .where(RosterHistory.roster_id == roster_id)
        .order_by(RosterHistory.version)
    )).scalars().all()
    return list(rows)


class TestFinalize:
    """DRAFT → APPROVED."""

    async def test_finalize_requires_assigned_shift(self, client: AsyncClient, db: AsyncSession, admin_token, roster):
        """미배정 슬롯만 있으면 확정 불가."""
        await add_shift(db, roster, None)
        res = await client.post(f"{BASE_URL}/{roster.id}/finalize", headers=auth_header(admin_token))
        assert res.status_code == 400
        assert res.json() == {"success": False, "error": "Cannot finalize a roster with no assigned shifts"}

    async def test_finalize_clean_roster(self, client: AsyncClient, db: AsyncSession, admin_token, roster, alice):
        await add_shift(db, roster, alice)
        res = await client.post(
            f"{BASE_URL}/{roster.id}/finalize",
            json={"notes": "Checked with the floor lead"},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 200
        data = res.json()
        assert data["success"] is True
        assert data["roster"]["status"] == "APPROVED"
        assert data["has_conflicts"] is False
        assert data["conflict_count"] == 0

        entry = (await db.execute(
            select(RosterHistory).where(
                RosterHistory.roster_id == roster.id,
                RosterHistory.action == AuditAction.FINALIZED,
            )
        )).scalar_one()
        assert entry.changes["notes"] == "Checked with the floor lead"
        assert len(entry.shifts_snapshot) == 1

    async def test_conflicts_do_not_block(self, client: AsyncClient, db: AsyncSession, admin_token, roster, alice):
        """충돌이 있어도 확정 — 경고만 반환."""
        db.add(TimeOffRequest(
            user_id=alice.id, start_date=date(2025, 6, 10), end_date=date(2025, 6, 10),
            status=TimeOffStatus.APPROVED,
        ))
        await add_shift(db, roster, alice)
        res = await client.post(f"{BASE_URL}/{roster.id}/finalize", headers=auth_header(admin_token))
        assert res.status_code == 200
        data = res.json()
        assert data["roster"]["status"] == "APPROVED"
        assert data["has_conflicts"] is True
        assert data["conflict_count"] == 1
        assert "1 conflicting shift" in data["message"]

    async def test_finalize_twice(self, client: AsyncClient, db: AsyncSession, admin_token, roster, alice):
        await add_shift(db, roster, alice)
        await client.post(f"{BASE_URL}/{roster.id}/finalize", headers=auth_header(admin_token))
        res = await client.post(f"{BASE_URL}/{roster.id}/finalize", headers=auth_header(admin_token))
        assert res.status_code == 409
        assert "already approved" in res.json()["error"]

    async def test_legacy_pending_review_is_finalizable(self, db: AsyncSession, roster, alice):
        """레거시 PENDING_REVIEW 상태도 DRAFT처럼 확정 가능."""
        await add_shift(db, roster, alice)
        roster.status = RosterStatus.PENDING_REVIEW
        await db.flush()
        result = await lifecycle_service.finalize(db, roster.id)
        assert result["roster"]["status"] == RosterStatus.APPROVED


class TestPublish:
    """APPROVED → PUBLISHED."""

    async def test_publish_requires_finalize(self, client: AsyncClient, db: AsyncSession, admin_token, roster, alice):
        await add_shift(db, roster, alice)
        res = await client.post(f"{BASE_URL}/{roster.id}/publish", headers=auth_header(admin_token))
        assert res.status_code == 409
        assert res.json()["error"] == "Please finalize the roster before publishing"

    async def test_first_publish(self, client: AsyncClient, db: AsyncSession, admin_token, admin_user, roster, alice, bob, sink):
        """첫 게시 — 활성화, 게시자 기록, 배정 직원마다 알림 1건."""
        await add_shift(db, roster, alice)
        await add_shift(db, roster, alice, day=date(2025, 6, 11))
        await add_shift(db, roster, bob, position="Floor")
        await add_shift(db, roster, None, position="Kitchen")
        await client.post(f"{BASE_URL}/{roster.id}/finalize", headers=auth_header(admin_token))

        res = await client.post(f"{BASE_URL}/{roster.id}/publish", headers=auth_header(admin_token))
        assert res.status_code == 200
        assert res.json()["roster"]["status"] == "PUBLISHED"
        assert res.json()["notified_count"] == 2

        assert roster.is_active is True
        assert roster.published_by == admin_user.id
        assert roster.published_at is not None
        assert AuditAction.PUBLISHED in await _actions(db, roster.id)

        by_user = {m.user_id: m for m in sink.messages}
        assert set(by_user) == {alice.id, bob.id}
        assert by_user[alice.id].type == "ROSTER_PUBLISHED"
        assert "You have 2 shifts scheduled at Harbour Bar" in by_user[alice.id].message
        assert "Jun 9 - Jun 15, 2025" in by_user[alice.id].message

    async def test_publish_twice(self, client: AsyncClient, db: AsyncSession, admin_token, roster, alice):
        await add_shift(db, roster, alice)
        await client.post(f"{BASE_URL}/{roster.id}/finalize", headers=auth_header(admin_token))
        await client.post(f"{BASE_URL}/{roster.id}/publish", headers=auth_header(admin_token))
        res = await client.post(f"{BASE_URL}/{roster.id}/publish", headers=auth_header(admin_token))
        assert res.status_code == 409
        assert res.json()["error"] == "Roster is already published"

    async def test_notification_failure_keeps_publish(self, client: AsyncClient, db: AsyncSession, admin_token, roster, alice, sink, monkeypatch):
        """알림 전송 실패는 게시를 되돌리지 않음."""
        async def _broken(message):
            raise ConnectionError("push gateway down")

        monkeypatch.setattr(sink, "notify", _broken)
        await add_shift(db, roster, alice)
        await client.post(f"{BASE_URL}/{roster.id}/finalize", headers=auth_header(admin_token))
        res = await client.post(f"{BASE_URL}/{roster.id}/publish", headers=auth_header(admin_token))
        assert res.status_code == 200
        assert roster.status == RosterStatus.PUBLISHED

    async def test_sibling_is_superseded_and_archived(self, db: AsyncSession, venue, alice, bob):
        """부모가 아닌 이전 게시 버전 → 비활성 + 보관, VERSION_SUPERSEDED 기록."""
        first = await create_roster(db, venue, name="Week 24")
        await add_shift(db, first, alice)
        await lifecycle_service.finalize(db, first.id)
        await lifecycle_service.publish(db, first.id)

        second = await create_roster(db, venue, name="Week 24 (rebuilt)")
        assert second.chain_id == first.chain_id
        assert second.version_number == 2
        await add_shift(db, second, bob)
        await lifecycle_service.finalize(db, second.id)
        await lifecycle_service.publish(db, second.id)

        assert first.status == RosterStatus.ARCHIVED
        assert first.is_active is False
        assert second.is_active is True
        actions = await _actions(db, first.id)
        assert AuditAction.VERSION_SUPERSEDED in actions
        assert AuditAction.ARCHIVED_BY_NEW_VERSION not in actions

    async def test_lower_version_cannot_be_published_over_newer(self, client: AsyncClient, db: AsyncSession, admin_token, venue, alice):
        """더 높은 버전이 이미 게시되어 있으면 게시 거부."""
        first = await create_roster(db, venue)
        second = await create_roster(db, venue, name="Week 24 alt")
        for r in (first, second):
            await add_shift(db, r, alice)
            await lifecycle_service.finalize(db, r.id)
        await lifecycle_service.publish(db, second.id)

        res = await client.post(f"{BASE_URL}/{first.id}/publish", headers=auth_header(admin_token))
        assert res.status_code == 409
        assert "Version 2 of this roster is already published" in res.json()["error"]
        assert second.is_active is True


class TestRevertAndArchive:
    """되돌리기와 보관."""

    async def test_revert_published(self, client: AsyncClient, db: AsyncSession, admin_token, roster, alice):
        """게시 취소 → DRAFT, 비활성, UNPUBLISHED 기록."""
        await add_shift(db, roster, alice)
        await client.post(f"{BASE_URL}/{roster.id}/finalize", headers=auth_header(admin_token))
        await client.post(f"{BASE_URL}/{roster.id}/publish", headers=auth_header(admin_token))

        res = await client.post(
            f"{BASE_URL}/{roster.id}/revert",
            json={"reason": "Wrong week"},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 200
        assert res.json()["roster"]["status"] == "DRAFT"
        assert roster.is_active is False
        assert (await _actions(db, roster.id))[-1] == AuditAction.UNPUBLISHED

    async def test_revert_approved(self, db: AsyncSession, roster, alice):
        await add_shift(db, roster, alice)
        await lifecycle_service.finalize(db, roster.id)
        await lifecycle_service.revert_to_draft(db, roster.id, reason="More changes")
        assert roster.status == RosterStatus.DRAFT
        assert (await _actions(db, roster.id))[-1] == AuditAction.REVERTED_TO_DRAFT

    async def test_revert_draft(self, client: AsyncClient, admin_token, roster):
        res = await client.post(f"{BASE_URL}/{roster.id}/revert", headers=auth_header(admin_token))
        assert res.status_code == 409
        assert res.json()["error"] == "Roster is already a draft"

    async def test_supervisor_can_revert(self, client: AsyncClient, db: AsyncSession, supervisor_token, roster, alice):
        """되돌리기는 편집 권한 — 슈퍼바이저(레벨 3)도 가능."""
        await add_shift(db, roster, alice)
        await lifecycle_service.finalize(db, roster.id)
        res = await client.post(
            f"{BASE_URL}/{roster.id}/revert",
            json={"reason": "One more swap"},
            headers=auth_header(supervisor_token),
        )
        assert res.status_code == 200
        assert res.json()["roster"]["status"] == "DRAFT"

    async def test_supervisor_cannot_publish(self, client: AsyncClient, db: AsyncSession, supervisor_token, roster, alice):
        await add_shift(db, roster, alice)
        await lifecycle_service.finalize(db, roster.id)
        res = await client.post(f"{BASE_URL}/{roster.id}/publish", headers=auth_header(supervisor_token))
        assert res.status_code == 403
        assert res.json()["error"] == "Missing permission: rosters:publish"

    async def test_archive_and_terminal(self, client: AsyncClient, db: AsyncSession, admin_token, roster, alice):
        """보관은 종료 상태 — 되돌리기 불가."""
        await add_shift(db, roster, alice)
        await client.post(f"{BASE_URL}/{roster.id}/finalize", headers=auth_header(admin_token))
        await client.post(f"{BASE_URL}/{roster.id}/publish", headers=auth_header(admin_token))

        res = await client.post(f"{BASE_URL}/{roster.id}/archive", headers=auth_header(admin_token))
        assert res.status_code == 200
        assert roster.status == RosterStatus.ARCHIVED
        assert roster.is_active is False

        res = await client.post(f"{BASE_URL}/{roster.id}/revert", headers=auth_header(admin_token))
        assert res.status_code == 409
        assert res.json()["error"] == "Cannot revert an archived roster"

    async def test_draft_cannot_be_archived(self, client: AsyncClient, admin_token, roster):
        res = await client.post(f"{BASE_URL}/{roster.id}/archive", headers=auth_header(admin_token))
        assert res.status_code == 409


class TestLegacyAliases:
    """레거시 submit/approve/reject 호출."""

    async def test_submit_approve_reject(self, client: AsyncClient, db: AsyncSession, admin_token, roster, alice):
        await add_shift(db, roster, alice)

        res = await client.post(f"{BASE_URL}/{roster.id}/submit", headers=auth_header(admin_token))
        assert res.json()["roster"]["status"] == "APPROVED"

        # 이미 확정된 로스터의 승인은 그대로 성공
        res = await client.post(f"{BASE_URL}/{roster.id}/approve", headers=auth_header(admin_token))
        assert res.status_code == 200
        assert res.json()["roster"]["status"] == "APPROVED"

        res = await client.post(f"{BASE_URL}/{roster.id}/reject", headers=auth_header(admin_token))
        assert res.json()["roster"]["status"] == "DRAFT"


class TestVersionRoundTrip:
    """게시 → 새 버전 → 재배정 → 재게시 전체 흐름."""

    async def test_republish_replaces_live_version(
        self, client: AsyncClient, db: AsyncSession, admin_token, roster, alice, bob, sink,
    ):
        headers = auth_header(admin_token)
        await add_shift(db, roster, alice, start="09:00", end="17:00")
        await add_shift(db, roster, bob, day=date(2025, 6, 11), position="Floor")
        await client.post(f"{BASE_URL}/{roster.id}/finalize", headers=headers)
        await client.post(f"{BASE_URL}/{roster.id}/publish", headers=headers)
        sink.messages.clear()

        # 새 버전 — v2 DRAFT, v1은 계속 활성
        res = await client.post(f"/api/v1/admin/rosters/{roster.id}/versions", headers=headers)
        assert res.status_code == 201
        v2 = res.json()
        assert v2["version_number"] == 2
        assert v2["status"] == "DRAFT"
        assert v2["is_active"] is False
        assert v2["parent_id"] == str(roster.id)
        assert v2["shift_count"] == 2
        assert roster.is_active is True

        # Alice의 화요일 근무를 Bob에게 재배정
        shifts = await shift_repository.get_by_roster(db, UUID(v2["id"]))
        tuesday = next(s for s in shifts if s.date == date(2025, 6, 10))
        res = await client.patch(
            f"{BASE_URL}/{v2['id']}/shifts/{tuesday.id}",
            json={"user_id": str(bob.id)},
            headers=headers,
        )
        assert res.status_code == 200

        await client.post(f"{BASE_URL}/{v2['id']}/finalize", headers=headers)
        res = await client.post(f"{BASE_URL}/{v2['id']}/publish", headers=headers)
        assert res.status_code == 200

        # v1 보관, v2 활성 — 체인의 활성 버전은 정확히 1개
        assert roster.status == RosterStatus.ARCHIVED
        assert roster.is_active is False
        members = (await db.execute(select(Roster).where(Roster.chain_id == roster.chain_id))).scalars().all()
        assert [m.version_number for m in members if m.is_active] == [2]
        assert AuditAction.ARCHIVED_BY_NEW_VERSION in await _actions(db, roster.id)
        assert AuditAction.PUBLISHED_AS_NEW_VERSION in await _actions(db, v2["id"])

        # 재게시 알림 — Alice는 재배정 안내, Bob은 배정 안내
        by_user = {m.user_id: m for m in sink.messages}
        assert set(by_user) == {alice.id, bob.id}
        assert all(m.type == "ROSTER_UPDATED" for m in sink.messages)
        assert "1 shift reassigned away" in by_user[alice.id].message
        assert "1 shift assigned to you" in by_user[bob.id].message
