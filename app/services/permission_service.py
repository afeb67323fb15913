"""Permission 서비스 — 로스터 권한(capability) 검사.

Permission Service — Capability gate for roster operations.
Role level maps to a fixed capability set; managers and supervisors are
further scoped to the venues listed in ``user_venues``. Admins see every
venue.
"""

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.roster import Roster
from app.models.user import User
from app.repositories.user_repository import user_repository
from app.utils.exceptions import ForbiddenError

# 권한 코드 — Capability codes
ROSTERS_READ: str = "rosters:read"
ROSTERS_CREATE: str = "rosters:create"
ROSTERS_EDIT: str = "rosters:edit"
ROSTERS_PUBLISH: str = "rosters:publish"
ROSTERS_DELETE: str = "rosters:delete"
ADMIN: str = "admin"

# 역할 레벨별 권한 — 숫자가 작을수록 높은 권한 (Lower level = more authority)
LEVEL_CAPABILITIES: dict[int, frozenset[str]] = {
    1: frozenset({ROSTERS_READ, ROSTERS_CREATE, ROSTERS_EDIT, ROSTERS_PUBLISH, ROSTERS_DELETE, ADMIN}),
    2: frozenset({ROSTERS_READ, ROSTERS_CREATE, ROSTERS_EDIT, ROSTERS_PUBLISH, ROSTERS_DELETE}),
    3: frozenset({ROSTERS_READ, ROSTERS_CREATE, ROSTERS_EDIT}),
    4: frozenset({ROSTERS_READ}),
}


class PermissionService:

    def capabilities(self, user: User) -> frozenset[str]:
        """사용자의 권한 집합 (Capabilities granted by the user's role level)."""
        if user.role is None:
            return frozenset()
        return LEVEL_CAPABILITIES.get(user.role.level, frozenset())

    def has_capability(self, user: User, capability: str) -> bool:
        return capability in self.capabilities(user)

    def require_capability(self, user: User, capability: str) -> User:
        """권한이 없으면 403 (Raise ForbiddenError unless the user holds ``capability``)."""
        if not self.has_capability(user, capability):
            raise ForbiddenError(f"Missing permission: {capability}")
        return user

    async def get_accessible_venue_ids(self, db: AsyncSession, user: User) -> list[UUID] | None:
        """접근 가능한 매장 ID 목록.

        Venue ids the user may work with. None means every venue (admin);
        an empty list means none are assigned.
        """
        if self.has_capability(user, ADMIN):
            return None
        return await user_repository.get_user_venue_ids(db, user.id)

    async def check_venue_access(self, db: AsyncSession, user: User, venue_id: UUID) -> None:
        """매장 접근 권한 확인 — 불가 시 403 (Raise unless the venue is in scope)."""
        accessible: list[UUID] | None = await self.get_accessible_venue_ids(db, user)
        if accessible is not None and venue_id not in accessible:
            raise ForbiddenError("No access to this venue")

    async def check_roster_access(
        self,
        db: AsyncSession,
        user: User,
        roster: Roster,
        capability: str = ROSTERS_READ,
    ) -> None:
        """로스터에 대한 권한 + 매장 범위 확인 (Capability and venue scope for one roster)."""
        self.require_capability(user, capability)
        await self.check_venue_access(db, user, roster.venue_id)


permission_service: PermissionService = PermissionService()
