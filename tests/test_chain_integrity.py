"""체인 무결성 테스트.

Chain integrity tests — Diagnose chains whose active flags break the
"exactly one active, the highest published" rule, repair them, and check
that a second repair changes nothing.
"""

import warnings

import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.exc import SAWarning
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.roster import AuditAction, RosterHistory, RosterStatus
from app.repositories.roster_repository import roster_repository
from app.services.chain_integrity_service import chain_integrity_service, inspect_chain
from app.services.lifecycle_service import lifecycle_service
from app.services.roster_service import roster_service
from app.services.version_chain_service import version_chain_service
from tests.conftest import add_shift, auth_header, create_roster

BASE_URL = "/api/v1/admin/chain-integrity"


@pytest_asyncio.fixture
async def two_published(db: AsyncSession, venue, alice):
    """v1 게시 → v2 게시 (v1 보관, v2 활성)."""
    v1 = await create_roster(db, venue)
    await add_shift(db, v1, alice)
    await lifecycle_service.finalize(db, v1.id)
    await lifecycle_service.publish(db, v1.id)
    v2 = await version_chain_service.create_new_version(db, v1.id)
    await lifecycle_service.finalize(db, v2.id)
    await lifecycle_service.publish(db, v2.id)
    return v1, v2


class TestInspectChain:
    """단일 체인 점검 규칙."""

    async def test_consistent_chain(self, db: AsyncSession, two_published):
        v1, v2 = two_published
        assert inspect_chain(v1.chain_id, [v1, v2]) is None

    async def test_draft_only_chain_without_active_is_consistent(self, db: AsyncSession, venue):
        roster = await create_roster(db, venue)
        assert inspect_chain(roster.chain_id, [roster]) is None

    async def test_active_draft_is_flagged(self, db: AsyncSession, venue):
        roster = await create_roster(db, venue)
        roster.is_active = True
        finding = inspect_chain(roster.chain_id, [roster])
        assert finding["issue"] == "Chain has no published version but 1 active version(s)"
        assert finding["expected_active_id"] is None


class TestDiagnoseAndRepair:
    """점검/복구."""

    async def test_two_active_members(self, db: AsyncSession, two_published):
        """활성 2개 → 진단 후 복구, 재실행 시 변경 없음."""
        v1, v2 = two_published
        v1.status = RosterStatus.PUBLISHED
        v1.is_active = True
        await db.flush()

        report = await chain_integrity_service.diagnose(db)
        assert report["chains_checked"] == 1
        assert report["issue_count"] == 1
        assert report["issues"][0]["issue"] == "Expected exactly 1 active version, found 2"
        assert report["issues"][0]["expected_active_version"] == 2

        result = await chain_integrity_service.repair(db)
        assert result["repaired"] == 1
        assert result["details"][0]["version_number"] == 2
        assert result["details"][0]["fixed_count"] == 1
        assert v1.is_active is False
        assert v2.is_active is True

        again = await chain_integrity_service.repair(db)
        assert again == {"repaired": 0, "details": []}
        assert (await chain_integrity_service.diagnose(db))["issue_count"] == 0

    async def test_wrong_member_active(self, db: AsyncSession, two_published):
        """낮은 버전이 활성 → 최고 게시 버전으로 이동."""
        v1, v2 = two_published
        v1.status = RosterStatus.PUBLISHED
        v1.is_active = True
        v2.is_active = False
        await db.flush()

        report = await chain_integrity_service.diagnose(db)
        assert report["issues"][0]["issue"] == "Active version is v1, expected v2"

        result = await chain_integrity_service.repair(db)
        assert result["details"][0]["fixed_count"] == 2
        assert (v1.is_active, v2.is_active) == (False, True)

    async def test_published_chain_without_active(self, db: AsyncSession, two_published):
        _, v2 = two_published
        v2.is_active = False
        await db.flush()
        result = await chain_integrity_service.repair(db)
        assert result["details"][0]["active_version_id"] == str(v2.id)
        assert v2.is_active is True

    async def test_chain_queries_emit_no_sqlalchemy_warnings(self, db: AsyncSession, two_published, venue):
        """체인 ID 조회 시 SAWarning 없음."""
        with warnings.catch_warnings():
            warnings.simplefilter("error", SAWarning)
            assert (await chain_integrity_service.diagnose(db))["chains_checked"] == 1
            assert (await chain_integrity_service.repair(db))["repaired"] == 0
            assert await roster_repository.get_chain_ids_for_venue(db, venue.id) == [two_published[0].chain_id]


class TestChainIntegrityApi:
    """관리자 전용 API."""

    async def test_admin_can_diagnose(self, client: AsyncClient, admin_token, two_published):
        res = await client.get(f"{BASE_URL}/diagnose", headers=auth_header(admin_token))
        assert res.status_code == 200
        assert res.json()["issue_count"] == 0

    async def test_admin_can_repair(self, client: AsyncClient, db: AsyncSession, admin_token, two_published):
        v1, _ = two_published
        v1.status = RosterStatus.PUBLISHED
        v1.is_active = True
        await db.flush()
        res = await client.post(f"{BASE_URL}/repair", headers=auth_header(admin_token))
        assert res.status_code == 200
        assert res.json()["repaired"] == 1

    async def test_manager_is_forbidden(self, client: AsyncClient, manager_token):
        res = await client.get(f"{BASE_URL}/diagnose", headers=auth_header(manager_token))
        assert res.status_code == 403
        assert res.json()["success"] is False

    async def test_requires_authentication(self, client: AsyncClient):
        res = await client.post(f"{BASE_URL}/repair")
        assert res.status_code == 401


async def _assert_consistent(db: AsyncSession) -> None:
    report = await chain_integrity_service.diagnose(db)
    assert report["issue_count"] == 0, report["issues"]


async def _finalize_and_publish(db: AsyncSession, roster) -> None:
    await lifecycle_service.finalize(db, roster.id)
    await _assert_consistent(db)
    await lifecycle_service.publish(db, roster.id)
    await _assert_consistent(db)


class TestInvariantAcrossOperations:
    """상태 전이마다 체인 규칙 유지 — 활성 1개 = 최고 게시 버전."""

    async def test_publish_revert_archive_restore_sequence(self, db: AsyncSession, venue, alice, bob):
        v1 = await create_roster(db, venue)
        await add_shift(db, v1, alice)
        await _assert_consistent(db)
        await _finalize_and_publish(db, v1)

        # 같은 주에 새로 만든 로스터 → 체인 v2, 게시 시 v1 보관
        v2 = await create_roster(db, venue, name="Week 24 (rebuilt)")
        await add_shift(db, v2, bob)
        await _assert_consistent(db)
        await _finalize_and_publish(db, v2)
        assert (v1.status, v1.is_active) == (RosterStatus.ARCHIVED, False)

        # v2 게시 취소 → 게시 버전 없음, 활성 없음
        await lifecycle_service.revert_to_draft(db, v2.id, reason="Wrong staff")
        await _assert_consistent(db)
        assert (v1.is_active, v2.is_active) == (False, False)

        await _finalize_and_publish(db, v2)

        v3 = await version_chain_service.create_new_version(db, v2.id)
        await _assert_consistent(db)
        await _finalize_and_publish(db, v3)
        assert v2.status == RosterStatus.ARCHIVED

        await roster_service.archive_roster(db, v3.id)
        await _assert_consistent(db)

        restored = await version_chain_service.restore_from_version(db, v2.id)
        await _assert_consistent(db)
        await _finalize_and_publish(db, restored)
        assert restored.is_active is True

        await lifecycle_service.revert_to_draft(db, restored.id)
        await _assert_consistent(db)

    async def test_archiving_live_version_promotes_next_published(self, db: AsyncSession, two_published):
        """활성 버전 보관 → 남은 최고 게시 버전이 활성으로."""
        v1, v2 = two_published
        # 이전 방식으로 게시 상태가 남아 있던 버전
        v1.status = RosterStatus.PUBLISHED
        await db.flush()

        await roster_service.archive_roster(db, v2.id)
        assert (v2.status, v2.is_active) == (RosterStatus.ARCHIVED, False)
        assert v1.is_active is True
        activated = (await db.execute(
            select(RosterHistory.action).where(RosterHistory.roster_id == v1.id)
        )).scalars().all()
        assert AuditAction.VERSION_ACTIVATED in activated
        await _assert_consistent(db)

    async def test_archiving_approved_version_keeps_live_one(self, db: AsyncSession, two_published):
        _, v2 = two_published
        v3 = await version_chain_service.create_new_version(db, v2.id)
        await lifecycle_service.finalize(db, v3.id)
        await roster_service.archive_roster(db, v3.id)
        assert v2.is_active is True
        await _assert_consistent(db)
