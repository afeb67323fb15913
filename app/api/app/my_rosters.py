"""앱 내 근무/알림 라우터 — 직원용 API.

App My-Roster Router — A staff member's published shifts and roster
notifications.
"""

from datetime import date
from typing import Annotated, Sequence
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.database import get_db
from app.models.notification import Notification
from app.models.user import User
from app.schemas.common import MessageResponse, PaginatedResponse
from app.services.notification_service import notification_service
from app.services.roster_service import roster_service
from app.utils.exceptions import NotFoundError

router: APIRouter = APIRouter()


@router.get("/shifts")
async def get_my_shifts(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    date_from: Annotated[date | None, Query()] = None,
    date_to: Annotated[date | None, Query()] = None,
) -> list[dict]:
    """내 근무 목록 — 게시된 활성 로스터만.

    My shifts on live published rosters. Drafts and superseded versions are
    never shown to staff.

    Args:
        db: 비동기 데이터베이스 세션 (Async database session)
        current_user: 인증된 사용자 (Authenticated user)
        date_from: 시작일 필터 (From date)
        date_to: 종료일 필터 (To date)

    Returns:
        list[dict]: 근무 목록 (Shifts with roster and venue names)
    """
    return await roster_service.get_my_shifts(db, current_user.id, date_from, date_to)


@router.get("/notifications", response_model=PaginatedResponse)
async def list_my_notifications(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
    unread_only: Annotated[bool, Query()] = False,
    page: Annotated[int, Query(ge=1)] = 1,
    per_page: Annotated[int, Query(ge=1, le=100)] = 20,
) -> dict:
    """내 알림 목록 (My roster notifications, newest first)."""
    notifications: Sequence[Notification]
    notifications, total = await notification_service.list_notifications(
        db, current_user.id, unread_only=unread_only, page=page, per_page=per_page
    )
    items: list[dict] = [
        {
            "id": str(n.id),
            "type": n.type,
            "title": n.title,
            "message": n.message,
            "link": n.link,
            "is_read": n.is_read,
            "created_at": n.created_at,
        }
        for n in notifications
    ]
    return {"items": items, "total": total, "page": page, "per_page": per_page}


@router.get("/notifications/unread-count")
async def get_unread_count(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    count: int = await notification_service.get_unread_count(db, current_user.id)
    return {"unread_count": count}


@router.patch("/notifications/{notification_id}/read", response_model=MessageResponse)
async def mark_notification_read(
    notification_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> dict:
    """알림 읽음 처리 (Mark one of my notifications as read)."""
    if not await notification_service.mark_read(db, current_user.id, notification_id):
        raise NotFoundError("Notification not found")
    await db.commit()
    return {"message": "Notification marked as read"}
