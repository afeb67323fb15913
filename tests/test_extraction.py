"""추출 결과 가져오기 테스트.

Extraction import tests — Confident matches become assigned shifts, weak
ones unassigned slots plus unmatched-name entries, and resolving a name
assigns every shift that carries it.
"""

import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.services.lifecycle_service import lifecycle_service
from tests.conftest import add_shift, auth_header, create_roster

BASE_URL = "/api/v1/admin/rosters"


@pytest_asyncio.fixture
async def roster(db: AsyncSession, venue):
    return await create_roster(db, venue)


def _candidate(name, staff=None, confidence=0.0, day="2025-06-10", start="09:00", end="17:00", **extra) -> dict:
    candidate = {
        "staff_name": name,
        "staff_id": str(staff.id) if staff is not None else None,
        "date": day,
        "start_time": start,
        "end_time": end,
        "match_confidence": confidence,
    }
    candidate.update(extra)
    return candidate


class TestImport:
    """후보 근무 가져오기."""

    async def test_import_splits_confident_and_weak_matches(self, client: AsyncClient, admin_token, roster, alice, bob):
        """신뢰도 0.8 이상만 배정, 나머지는 미배정 + 미매칭 이름."""
        res = await client.post(
            f"{BASE_URL}/{roster.id}/import",
            json={
                "candidates": [
                    _candidate("Alice", alice, 0.95),
                    _candidate("Rob", bob, 0.5, day="2025-06-11"),
                    _candidate("Jo", None, 0.0, day="2025-06-12", position="Floor"),
                ],
                "unmatched_names": [{"name": "Sam"}],
            },
            headers=auth_header(admin_token),
        )
        assert res.status_code == 200
        data = res.json()
        assert data["imported"] == 3
        assert data["assigned"] == 1
        assert data["unassigned"] == 2
        assert data["unmatched_entries"] == 3

        unmatched = (await client.get(f"{BASE_URL}/{roster.id}/unmatched", headers=auth_header(admin_token))).json()
        by_name = {u["original_name"]: u for u in unmatched}
        assert set(by_name) == {"Rob", "Jo", "Sam"}
        assert by_name["Rob"]["suggested_user_name"] == "Bob"
        assert by_name["Rob"]["confidence"] == 0.5

        shifts = (await client.get(f"{BASE_URL}/{roster.id}/shifts", headers=auth_header(admin_token))).json()
        assert sorted((s["original_name"], s["user_name"]) for s in shifts) == [
            ("Alice", "Alice"), ("Jo", None), ("Rob", None),
        ]

    async def test_reimport_does_not_duplicate_unmatched_names(self, client: AsyncClient, admin_token, roster):
        payload = {"candidates": [_candidate("Jo")]}
        await client.post(f"{BASE_URL}/{roster.id}/import", json=payload, headers=auth_header(admin_token))
        res = await client.post(
            f"{BASE_URL}/{roster.id}/import",
            json={"candidates": [_candidate("jo", day="2025-06-13")]},
            headers=auth_header(admin_token),
        )
        assert res.json()["unmatched_entries"] == 0

    async def test_imported_shifts_are_conflict_checked(self, client: AsyncClient, db: AsyncSession, admin_token, roster, alice):
        await add_shift(db, roster, alice, start="08:00", end="12:00", position="Kitchen")
        res = await client.post(
            f"{BASE_URL}/{roster.id}/import",
            json={"candidates": [_candidate("Alice", alice, 1.0)]},
            headers=auth_header(admin_token),
        )
        assert res.json()["conflict_count"] == 1

    async def test_import_into_finalized_roster(self, client: AsyncClient, db: AsyncSession, admin_token, roster, alice):
        await add_shift(db, roster, alice)
        await lifecycle_service.finalize(db, roster.id)
        res = await client.post(
            f"{BASE_URL}/{roster.id}/import",
            json={"candidates": [_candidate("Jo", day="2025-06-11")]},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 409
        assert "only draft rosters can import shifts" in res.json()["error"]

    async def test_confidence_out_of_range(self, client: AsyncClient, admin_token, roster):
        res = await client.post(
            f"{BASE_URL}/{roster.id}/import",
            json={"candidates": [_candidate("Jo", confidence=1.5)]},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 400


class TestResolveUnmatched:
    """미매칭 이름 해결."""

    async def _import_jo(self, client: AsyncClient, token: str, roster) -> dict:
        await client.post(
            f"{BASE_URL}/{roster.id}/import",
            json={"candidates": [
                _candidate("Jo"),
                _candidate("Jo", day="2025-06-12", start="10:00", end="14:00"),
            ]},
            headers=auth_header(token),
        )
        unmatched = (await client.get(f"{BASE_URL}/{roster.id}/unmatched", headers=auth_header(token))).json()
        return unmatched[0]

    async def test_resolve_assigns_every_shift_with_the_name(self, client: AsyncClient, admin_token, roster, bob):
        entry = await self._import_jo(client, admin_token, roster)
        res = await client.post(
            f"{BASE_URL}/{roster.id}/unmatched/{entry['id']}/resolve",
            json={"user_id": str(bob.id)},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 200
        assert res.json()["shifts_updated"] == 2

        shifts = (await client.get(f"{BASE_URL}/{roster.id}/shifts", headers=auth_header(admin_token))).json()
        assert {s["user_name"] for s in shifts} == {"Bob"}

        remaining = (await client.get(f"{BASE_URL}/{roster.id}/unmatched", headers=auth_header(admin_token))).json()
        assert remaining == []
        everything = (await client.get(
            f"{BASE_URL}/{roster.id}/unmatched",
            params={"unresolved_only": "false"},
            headers=auth_header(admin_token),
        )).json()
        assert everything[0]["resolved_user_name"] == "Bob"

    async def test_resolve_twice(self, client: AsyncClient, admin_token, roster, bob):
        entry = await self._import_jo(client, admin_token, roster)
        url = f"{BASE_URL}/{roster.id}/unmatched/{entry['id']}/resolve"
        await client.post(url, json={"user_id": str(bob.id)}, headers=auth_header(admin_token))
        res = await client.post(url, json={"user_id": str(bob.id)}, headers=auth_header(admin_token))
        assert res.status_code == 400
        assert res.json()["error"] == "This name has already been resolved"

    async def test_resolve_unknown_user(self, client: AsyncClient, admin_token, roster):
        entry = await self._import_jo(client, admin_token, roster)
        res = await client.post(
            f"{BASE_URL}/{roster.id}/unmatched/{entry['id']}/resolve",
            json={"user_id": "00000000-0000-0000-0000-000000000000"},
            headers=auth_header(admin_token),
        )
        assert res.status_code == 404
        assert res.json()["error"] == "User not found"
