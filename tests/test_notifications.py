"""알림 테스트.

Notification tests — Publish message building (first publish and republish
diffs), post-commit dispatch through the sink, the database sink, and the
staff notification inbox.
"""

from uuid import UUID

import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.notification import Notification
from app.services.notification_service import (
    ROSTER_PUBLISHED,
    ROSTER_UPDATED,
    DatabaseNotificationSink,
    NotificationMessage,
    notification_service,
)
from tests.conftest import auth_header

APP_NOTIFY_URL = "/api/v1/app/my/notifications"

ALICE = "11111111-1111-1111-1111-111111111111"
BOB = "22222222-2222-2222-2222-222222222222"
CARA = "33333333-3333-3333-3333-333333333333"


def _shift(user_id, user_name, day="2025-06-10", start="09:00", end="17:00", position="Bar") -> dict:
    return {
        "user_id": user_id,
        "user_name": user_name,
        "date": day,
        "start_time": start,
        "end_time": end,
        "break_minutes": 0,
        "position": position,
        "notes": None,
    }


class TestBuildPublishMessages:
    """게시 알림 메시지 구성."""

    def test_first_publish(self):
        """첫 게시 — 배정 직원마다 근무 수 안내."""
        snapshot = [
            _shift(ALICE, "Alice"),
            _shift(ALICE, "Alice", day="2025-06-11"),
            _shift(BOB, "Bob"),
            _shift(None, None, day="2025-06-12"),
        ]
        messages = notification_service.build_publish_messages("Harbour Bar", "Jun 9 - Jun 15, 2025", snapshot, None)
        by_user = {str(m.user_id): m for m in messages}
        assert set(by_user) == {ALICE, BOB}
        assert by_user[ALICE].type == ROSTER_PUBLISHED
        assert by_user[ALICE].title == "New Shifts Published"
        assert by_user[ALICE].message == "You have 2 shifts scheduled at Harbour Bar for Jun 9 - Jun 15, 2025."
        assert by_user[BOB].message == "You have 1 shift scheduled at Harbour Bar for Jun 9 - Jun 15, 2025."

    def test_republish_summarizes_each_users_changes(self):
        """재게시 — 변경된 직원은 요약, 나머지는 변경 없음 안내."""
        previous = [_shift(ALICE, "Alice"), _shift(CARA, "Cara", day="2025-06-13")]
        new = [_shift(BOB, "Bob"), _shift(CARA, "Cara", day="2025-06-13")]
        messages = notification_service.build_publish_messages("Harbour Bar", "Jun 9 - Jun 15, 2025", new, previous)
        by_user = {str(m.user_id): m for m in messages}

        assert all(m.type == ROSTER_UPDATED for m in messages)
        assert by_user[ALICE].title == "Roster Updated"
        assert "1 shift reassigned away" in by_user[ALICE].message
        assert "1 shift assigned to you" in by_user[BOB].message
        assert by_user[CARA].title == "Roster Republished"
        assert by_user[CARA].message.endswith("Your 1 shift remains unchanged.")

    def test_republish_without_changes(self):
        snapshot = [_shift(ALICE, "Alice"), _shift(ALICE, "Alice", day="2025-06-11")]
        messages = notification_service.build_publish_messages("Harbour Bar", "Jun 9 - Jun 15, 2025", snapshot, snapshot)
        assert len(messages) == 1
        assert messages[0].title == "Roster Republished"
        assert "Your 2 shifts remain unchanged." in messages[0].message

    def test_removed_user_is_still_told(self):
        """모든 근무가 빠진 직원도 알림 1건."""
        previous = [_shift(ALICE, "Alice", day="2025-06-14", position="Floor")]
        messages = notification_service.build_publish_messages("Harbour Bar", "Jun 9 - Jun 15, 2025", [], previous)
        assert [str(m.user_id) for m in messages] == [ALICE]
        assert "1 shift removed" in messages[0].message

    def test_merge_messages(self):
        messages = notification_service.build_merge_messages({BOB, ALICE})
        assert [str(m.user_id) for m in messages] == [ALICE, BOB]
        assert all(m.type == ROSTER_UPDATED for m in messages)


class TestDispatch:
    """전송 — 실패는 기록만, 예외 없음."""

    async def test_dispatch_counts_deliveries(self, sink):
        messages = [
            NotificationMessage(user_id=UUID(ALICE), type=ROSTER_PUBLISHED, title="t", message="m"),
            NotificationMessage(user_id=UUID(BOB), type=ROSTER_PUBLISHED, title="t", message="m"),
        ]
        assert await notification_service.dispatch(messages) == 2
        assert len(sink.messages) == 2

    async def test_dispatch_nothing(self, sink):
        assert await notification_service.dispatch([]) == 0

    async def test_failed_send_is_swallowed(self, sink, monkeypatch):
        async def _fail(message):
            if str(message.user_id) == ALICE:
                raise ConnectionError("push gateway down")
            sink.messages.append(message)

        monkeypatch.setattr(sink, "notify", _fail)
        messages = [
            NotificationMessage(user_id=UUID(ALICE), type=ROSTER_UPDATED, title="t", message="m"),
            NotificationMessage(user_id=UUID(BOB), type=ROSTER_UPDATED, title="t", message="m"),
        ]
        assert await notification_service.dispatch(messages) == 1
        assert [str(m.user_id) for m in sink.messages] == [BOB]


class TestDatabaseSink:
    """기본 수신 측 — notifications 테이블에 저장."""

    async def test_writes_notification_row(self, db: AsyncSession, session_factory, alice):
        await db.commit()
        db_sink = DatabaseNotificationSink(session_factory)
        await db_sink.notify(NotificationMessage(
            user_id=alice.id,
            type=ROSTER_PUBLISHED,
            title="New Shifts Published",
            message="You have 1 shift scheduled at Harbour Bar for Jun 9 - Jun 15, 2025.",
            link="/my/shifts",
        ))

        rows = (await db.execute(select(Notification).where(Notification.user_id == alice.id))).scalars().all()
        assert len(rows) == 1
        assert rows[0].title == "New Shifts Published"
        assert rows[0].link == "/my/shifts"
        assert rows[0].is_read is False


@pytest_asyncio.fixture
async def inbox(db: AsyncSession, alice, bob):
    """Alice 알림 3건(1건 읽음), Bob 알림 1건."""
    rows = [
        Notification(user_id=alice.id, type=ROSTER_PUBLISHED, title="New Shifts Published", message="a1"),
        Notification(user_id=alice.id, type=ROSTER_UPDATED, title="Roster Updated", message="a2"),
        Notification(user_id=alice.id, type=ROSTER_UPDATED, title="Roster Republished", message="a3", is_read=True),
        Notification(user_id=bob.id, type=ROSTER_PUBLISHED, title="New Shifts Published", message="b1"),
    ]
    db.add_all(rows)
    await db.flush()
    return rows


class TestInboxApi:
    """직원 알림함 API."""

    async def test_list_my_notifications(self, client: AsyncClient, staff_token, inbox):
        res = await client.get(APP_NOTIFY_URL, headers=auth_header(staff_token))
        assert res.status_code == 200
        data = res.json()
        assert data["total"] == 3
        assert {n["message"] for n in data["items"]} == {"a1", "a2", "a3"}

    async def test_unread_only(self, client: AsyncClient, staff_token, inbox):
        res = await client.get(APP_NOTIFY_URL, params={"unread_only": "true"}, headers=auth_header(staff_token))
        assert res.json()["total"] == 2

    async def test_unread_count(self, client: AsyncClient, staff_token, inbox):
        res = await client.get(f"{APP_NOTIFY_URL}/unread-count", headers=auth_header(staff_token))
        assert res.status_code == 200
        assert res.json() == {"unread_count": 2}

    async def test_mark_read(self, client: AsyncClient, staff_token, inbox):
        res = await client.patch(f"{APP_NOTIFY_URL}/{inbox[0].id}/read", headers=auth_header(staff_token))
        assert res.status_code == 200
        assert res.json()["message"] == "Notification marked as read"
        count = await client.get(f"{APP_NOTIFY_URL}/unread-count", headers=auth_header(staff_token))
        assert count.json()["unread_count"] == 1

    async def test_cannot_mark_someone_elses(self, client: AsyncClient, staff_token, inbox):
        """다른 직원의 알림 → 404."""
        res = await client.patch(f"{APP_NOTIFY_URL}/{inbox[3].id}/read", headers=auth_header(staff_token))
        assert res.status_code == 404
        assert res.json()["error"] == "Notification not found"

    async def test_requires_authentication(self, client: AsyncClient):
        res = await client.get(APP_NOTIFY_URL)
        assert res.status_code == 401
