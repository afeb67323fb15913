"""알림 서비스 — 로스터 게시/병합 알림 구성 및 전송.

Notification Service — Builds roster notifications and hands them to the
notification sink. Messages are built inside the triggering transaction but
only dispatched after it commits; delivery is fire-and-forget, so a failed
send is logged and never undoes the roster change that caused it.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Protocol, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import settings
from app.database import async_session
from app.models.notification import Notification
from app.repositories.notification_repository import notification_repository
from app.services.diff_service import diff_service

logger = logging.getLogger(__name__)

# 알림 유형 — Notification types
ROSTER_PUBLISHED: str = "ROSTER_PUBLISHED"
ROSTER_UPDATED: str = "ROSTER_UPDATED"


@dataclass(frozen=True)
class NotificationMessage:
    """전송 대기 중인 알림 1건 (One notification waiting to be sent)."""

    user_id: UUID
    type: str
    title: str
    message: str
    link: str | None = None


class NotificationSink(Protocol):
    """알림 수신 측 인터페이스 (Where notifications are delivered)."""

    async def notify(self, message: NotificationMessage) -> None: ...


class DatabaseNotificationSink:
    """알림을 notifications 테이블에 저장하는 기본 수신 측.

    Default sink: stores each message as a ``Notification`` row. Every
    message uses its own session so sends can run concurrently.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = async_session) -> None:
        self._session_factory: async_sessionmaker[AsyncSession] = session_factory

    async def notify(self, message: NotificationMessage) -> None:
        async with self._session_factory() as session:
            session.add(
                Notification(
                    user_id=message.user_id,
                    type=message.type,
                    title=message.title,
                    message=message.message,
                    link=message.link,
                )
            )
            await session.commit()


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def _describe_user_changes(counts: dict[str, int]) -> str:
    """사용자별 변경 집계를 문장으로 (Plain-language summary of one user's changes)."""
    parts: list[str] = []
    if counts.get("added"):
        parts.append(f"{_plural(counts['added'], 'new shift')}")
    if counts.get("removed"):
        parts.append(f"{_plural(counts['removed'], 'shift')} removed")
    if counts.get("assigned"):
        parts.append(f"{_plural(counts['assigned'], 'shift')} assigned to you")
    if counts.get("reassigned_away"):
        parts.append(f"{_plural(counts['reassigned_away'], 'shift')} reassigned away")
    if counts.get("modified"):
        parts.append(f"{_plural(counts['modified'], 'shift')} modified")
    return ", ".join(parts)


class NotificationService:
    """알림 서비스.

    Builds roster notifications, dispatches them through the configured
    sink and serves the staff-facing notification inbox.
    """

    def __init__(self, sink: NotificationSink | None = None) -> None:
        self._sink: NotificationSink = sink or DatabaseNotificationSink()

    @property
    def sink(self) -> NotificationSink:
        return self._sink

    def set_sink(self, sink: NotificationSink) -> None:
        """알림 수신 측 교체 — 테스트/외부 연동용 (Swap the delivery sink)."""
        self._sink = sink

    # --- 전송 (Dispatch) ---

    async def dispatch(self, messages: Sequence[NotificationMessage]) -> int:
        """알림을 동시에 전송합니다.

        Send every message concurrently. Failures are logged per message and
        never raised.

        Returns:
            int: 전송 성공 건수 (Number of messages delivered)
        """
        if not messages:
            return 0
        results: list[Any] = await asyncio.gather(
            *(self._sink.notify(m) for m in messages),
            return_exceptions=True,
        )
        delivered: int = 0
        for message, result in zip(messages, results):
            if isinstance(result, BaseException):
                logger.error("[notify] failed to notify user=%s type=%s: %s", message.user_id, message.type, result)
            else:
                delivered += 1
        return delivered

    # --- 메시지 구성 (Message builders) ---

    def build_publish_messages(
        self,
        venue_name: str,
        date_range: str,
        new_snapshot: list[dict[str, Any]],
        previous_snapshot: list[dict[str, Any]] | None,
    ) -> list[NotificationMessage]:
        """게시 알림 메시지를 구성합니다.

        Build one message per staff member touched by a publish.

        On a first publish (no previous live version) every assigned staff
        member is told how many shifts they have. On a republish the two
        snapshots are diffed: affected users get a summary of their own
        changes, staff whose shifts did not change get an "unchanged"
        message, so every assigned staff member receives exactly one.

        Args:
            venue_name: 매장 이름 (Venue display name)
            date_range: 기간 문자열 (Roster period, e.g. "Jun 9 - Jun 15, 2025")
            new_snapshot: 게시되는 로스터의 스냅샷 (Snapshot of the roster being published)
            previous_snapshot: 직전 게시 버전 스냅샷, 첫 게시면 None
                (Snapshot of the previously live version, None on first publish)
        """
        shift_counts: dict[str, int] = {}
        for shift in new_snapshot:
            if shift.get("user_id"):
                uid: str = str(shift["user_id"])
                shift_counts[uid] = shift_counts.get(uid, 0) + 1

        messages: list[NotificationMessage] = []
        if previous_snapshot is None:
            for uid, count in shift_counts.items():
                messages.append(NotificationMessage(
                    user_id=UUID(uid),
                    type=ROSTER_PUBLISHED,
                    title="New Shifts Published",
                    message=f"You have {_plural(count, 'shift')} scheduled at {venue_name} for {date_range}.",
                    link=settings.NOTIFICATION_LINK,
                ))
            return messages

        per_user: dict[str, dict[str, int]] = diff_service.per_user_changes(
            diff_service.diff(previous_snapshot, new_snapshot)
        )
        for uid, counts in per_user.items():
            summary: str = _describe_user_changes(counts)
            if not summary:
                continue
            messages.append(NotificationMessage(
                user_id=UUID(uid),
                type=ROSTER_UPDATED,
                title="Roster Updated",
                message=f"{venue_name} roster ({date_range}) updated: {summary}. Please review your schedule.",
                link=settings.NOTIFICATION_LINK,
            ))

        for uid, count in shift_counts.items():
            if uid in per_user:
                continue
            messages.append(NotificationMessage(
                user_id=UUID(uid),
                type=ROSTER_UPDATED,
                title="Roster Republished",
                message=(
                    f"The roster for {venue_name} ({date_range}) has been updated. "
                    f"Your {_plural(count, 'shift')} {'remains' if count == 1 else 'remain'} unchanged."
                ),
                link=settings.NOTIFICATION_LINK,
            ))
        return messages

    def build_merge_messages(self, user_ids: set[str]) -> list[NotificationMessage]:
        """병합으로 근무가 추가된 직원 알림 (Staff who received shifts in a merge)."""
        return [
            NotificationMessage(
                user_id=UUID(uid),
                type=ROSTER_UPDATED,
                title="Roster Updated",
                message="A roster you're assigned to has been updated. Please check your shifts.",
                link=settings.NOTIFICATION_LINK,
            )
            for uid in sorted(user_ids)
        ]

    # --- 직원 알림함 (Staff inbox) ---

    async def list_notifications(
        self,
        db: AsyncSession,
        user_id: UUID,
        unread_only: bool = False,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[Sequence[Notification], int]:
        """사용자의 알림 목록 (Paginated notifications of a user)."""
        return await notification_repository.get_user_notifications(db, user_id, unread_only, page, per_page)

    async def get_unread_count(self, db: AsyncSession, user_id: UUID) -> int:
        return await notification_repository.get_unread_count(db, user_id)

    async def mark_read(self, db: AsyncSession, user_id: UUID, notification_id: UUID) -> bool:
        """단일 알림을 읽음 처리합니다 (Mark one notification as read)."""
        return await notification_repository.mark_as_read(db, user_id, notification_id)


# 싱글턴 인스턴스 — Singleton instance
notification_service: NotificationService = NotificationService()
