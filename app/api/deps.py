"""FastAPI 의존성 주입 모듈 — 인증 및 권한 검사.

FastAPI dependency injection module — Authentication and authorization.
Provides reusable dependencies for extracting the current user from JWT
and enforcing the roster capability gate on API endpoints.

Authentication Flow:
    1. 클라이언트가 Authorization: Bearer <token> 헤더를 전송
       (Client sends Authorization: Bearer <token> header)
    2. decode_token()이 JWT를 검증하고 페이로드를 반환
       (decode_token verifies JWT and returns payload)
    3. 페이로드의 "sub" 필드로 DB에서 사용자를 조회
       (User is fetched from DB using payload "sub" field)
    4. 사용자 활성 상태를 확인 (User active status is verified)

Authorization Flow (require_permission):
    1. get_current_user로 사용자 인증 (User authenticated via get_current_user)
    2. 역할 레벨의 권한 집합에 요청 권한이 있는지 확인
       (Role level's capability set must contain the capability)
    3. 없으면 403 Forbidden (Returns 403 otherwise)

Roster-level venue scoping is checked by ``get_roster_for``.
"""

from typing import Annotated, Awaitable, Callable
from uuid import UUID

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models.roster import Roster
from app.models.user import User
from app.repositories.roster_repository import roster_repository
from app.repositories.user_repository import user_repository
from app.services.permission_service import permission_service
from app.utils.exceptions import NotFoundError, UnauthorizedError
from app.utils.jwt import decode_token

# HTTP Bearer 토큰 추출기 — auto_error=False로 401을 직접 발생
# (Token extractor; missing headers are reported as 401 by get_current_user)
security: HTTPBearer = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """JWT 토큰에서 현재 인증된 사용자를 추출합니다.

    Decode JWT from the Authorization header and return the authenticated user
    with its role loaded.

    Raises:
        UnauthorizedError(401): 토큰 누락/무효/만료, 사용자 없음/비활성
            (Missing, invalid or expired token; unknown or inactive user)
    """
    if credentials is None:
        raise UnauthorizedError()
    try:
        payload: dict = decode_token(credentials.credentials)
        # 토큰 타입 검증 — Reject non-access tokens
        if payload.get("type") != "access":
            raise UnauthorizedError("Invalid token type")
        user_id: UUID = UUID(payload["sub"])
    except UnauthorizedError:
        raise
    except (jwt.ExpiredSignatureError, jwt.InvalidTokenError, KeyError, ValueError, TypeError):
        raise UnauthorizedError("Invalid or expired token")

    user: User | None = await user_repository.get_with_role(db, user_id)
    if user is None or not user.is_active:
        raise UnauthorizedError("User not found or inactive")
    return user


def require_permission(capability: str) -> Callable[..., Awaitable[User]]:
    """권한 기반 검사 의존성 팩토리.

    Dependency factory enforcing one capability code
    (e.g. ``"rosters:publish"``). Returns the authenticated user.
    """
    async def _check(
        current_user: Annotated[User, Depends(get_current_user)],
    ) -> User:
        return permission_service.require_capability(current_user, capability)
    return _check


async def get_roster_for(
    db: AsyncSession,
    user: User,
    roster_id: UUID,
    capability: str,
) -> Roster:
    """로스터 조회 + 권한/매장 범위 확인.

    Load a roster and verify the caller holds ``capability`` for its venue.

    Raises:
        NotFoundError(404): 로스터 없음 (Unknown roster)
        ForbiddenError(403): 권한 또는 매장 범위 밖 (Missing capability or venue out of scope)
    """
    roster: Roster | None = await roster_repository.get_by_id(db, roster_id)
    if roster is None:
        raise NotFoundError("Roster not found")
    await permission_service.check_roster_access(db, user, roster, capability)
    return roster
