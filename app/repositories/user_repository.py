"""사용자 레포지토리 — 사용자 및 매장 소속 조회.

User Repository — User lookups and venue memberships.
"""

from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.user import User
from app.models.venue import UserVenue
from app.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """사용자 레포지토리 (User repository)."""

    def __init__(self) -> None:
        super().__init__(User)

    async def get_with_role(self, db: AsyncSession, user_id: UUID) -> User | None:
        """역할을 함께 로드하여 사용자 조회 (User with role eager-loaded)."""
        result = await db.execute(
            select(User).options(selectinload(User.role)).where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_names(self, db: AsyncSession, user_ids: Iterable[UUID | None]) -> dict[UUID, str]:
        """사용자 ID → 이름 매핑을 한 번의 쿼리로 조회합니다.

        Resolve display names for a set of user ids in one query.
        ``None`` ids (unassigned slots) are ignored.
        """
        ids: set[UUID] = {uid for uid in user_ids if uid is not None}
        if not ids:
            return {}
        result = await db.execute(select(User.id, User.full_name).where(User.id.in_(ids)))
        return {row.id: row.full_name for row in result.all()}

    async def get_user_venue_ids(self, db: AsyncSession, user_id: UUID) -> list[UUID]:
        """사용자가 소속된 매장 ID 목록 (Venue ids the user belongs to)."""
        result = await db.execute(
            select(UserVenue.venue_id).where(UserVenue.user_id == user_id)
        )
        return list(result.scalars().all())


# 싱글턴 인스턴스 — Singleton instance
user_repository: UserRepository = UserRepository()
