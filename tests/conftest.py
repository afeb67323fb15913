"""테스트 인프라 — 테스트별 SQLite DB, 세션, httpx 클라이언트 픽스처.

Test infrastructure — Per-test SQLite database (aiosqlite), session, and
httpx client fixtures. Every test gets a fresh database file, so no cleanup
between tests is needed. Notifications are captured by an in-memory sink.
"""

from collections.abc import AsyncGenerator
from datetime import date, timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.database import Base, get_db
from app.main import app
from app.models import *  # noqa: F401,F403 — register all models with metadata
from app.schemas.roster import RosterCreate
from app.schemas.shift import ShiftCreate
from app.services.notification_service import NotificationMessage, notification_service
from app.services.roster_service import roster_service
from app.services.shift_service import shift_service
from app.utils.jwt import create_access_token

# 테스트 기준 주 — 2025-06-09(월) ~ 2025-06-15(일)
WEEK_START: date = date(2025, 6, 9)
WEEK_END: date = date(2025, 6, 15)


# ---------------------------------------------------------------------------
# Function-scoped: 엔진, 세션, 클라이언트
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """테스트용 async 엔진 — 임시 SQLite 파일에 스키마를 생성합니다."""
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'roster_test.db'}", echo=False)

    # SAVEPOINT(begin_nested) 지원 — pysqlite/aiosqlite의 자체 트랜잭션 처리를 끄고 직접 BEGIN
    @event.listens_for(eng.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(eng.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """각 테스트에 격리된 DB 세션을 제공합니다."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """FastAPI 테스트 클라이언트 — DB 세션을 오버라이드합니다."""
    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db

    app.dependency_overrides[get_db] = _override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# 알림 수집 — Notification capture
# ---------------------------------------------------------------------------
class RecordingSink:
    """전송된 알림을 메모리에 모으는 테스트용 수신 측."""

    def __init__(self) -> None:
        self.messages: list[NotificationMessage] = []

    async def notify(self, message: NotificationMessage) -> None:
        self.messages.append(message)


@pytest.fixture(autouse=True)
def sink() -> RecordingSink:
    """모든 테스트에서 알림을 DB 대신 메모리로 보냅니다."""
    original = notification_service.sink
    recording = RecordingSink()
    notification_service.set_sink(recording)
    yield recording
    notification_service.set_sink(original)


# ---------------------------------------------------------------------------
# 헬퍼 픽스처: 테스트용 데이터 생성
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def roles(db: AsyncSession):
    """기본 4개 역할을 생성합니다."""
    from app.models.user import Role
    result = {}
    for name, level in [("admin", 1), ("manager", 2), ("supervisor", 3), ("staff", 4)]:
        role = Role(name=name, level=level)
        db.add(role)
        await db.flush()
        result[name] = role
    return result


async def _make_user(db: AsyncSession, role, email: str, full_name: str):
    from app.models.user import User
    user = User(role_id=role.id, email=email, full_name=full_name)
    db.add(user)
    await db.flush()
    return user


@pytest_asyncio.fixture
async def venue(db: AsyncSession):
    """테스트 매장을 생성합니다."""
    from app.models.venue import Venue
    v = Venue(name="Harbour Bar", code="HB01")
    db.add(v)
    await db.flush()
    return v


@pytest_asyncio.fixture
async def other_venue(db: AsyncSession):
    """두 번째 매장 — 매니저 소속이 아님."""
    from app.models.venue import Venue
    v = Venue(name="Rooftop Cafe", code="RC01")
    db.add(v)
    await db.flush()
    return v


@pytest_asyncio.fixture
async def admin_user(db: AsyncSession, roles):
    """관리자 사용자를 생성합니다."""
    return await _make_user(db, roles["admin"], "admin@test.com", "Test Admin")


@pytest_asyncio.fixture
async def manager_user(db: AsyncSession, roles, venue):
    """매니저 사용자를 생성하고 테스트 매장에 연결합니다."""
    from app.models.venue import UserVenue
    user = await _make_user(db, roles["manager"], "manager@test.com", "Test Manager")
    db.add(UserVenue(user_id=user.id, venue_id=venue.id, is_primary=True))
    await db.flush()
    return user


@pytest_asyncio.fixture
async def supervisor_user(db: AsyncSession, roles, venue):
    """슈퍼바이저(레벨 3) — 테스트 매장 소속, 게시 권한 없음."""
    from app.models.venue import UserVenue
    user = await _make_user(db, roles["supervisor"], "supervisor@test.com", "Test Supervisor")
    db.add(UserVenue(user_id=user.id, venue_id=venue.id, is_primary=True))
    await db.flush()
    return user


@pytest_asyncio.fixture
async def alice(db: AsyncSession, roles):
    """직원 Alice."""
    return await _make_user(db, roles["staff"], "alice@test.com", "Alice")


@pytest_asyncio.fixture
async def bob(db: AsyncSession, roles):
    """직원 Bob."""
    return await _make_user(db, roles["staff"], "bob@test.com", "Bob")


def make_token(user) -> str:
    """테스트용 JWT 액세스 토큰을 생성합니다."""
    return create_access_token({"sub": str(user.id)})


@pytest.fixture
def admin_token(admin_user) -> str:
    return make_token(admin_user)


@pytest.fixture
def manager_token(manager_user) -> str:
    return make_token(manager_user)


@pytest.fixture
def supervisor_token(supervisor_user) -> str:
    return make_token(supervisor_user)


@pytest.fixture
def staff_token(alice) -> str:
    return make_token(alice)


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# 서비스 헬퍼 — Service-level builders
# ---------------------------------------------------------------------------
async def create_roster(db: AsyncSession, venue, start: date = WEEK_START, name: str = "Week 24"):
    """DRAFT 로스터를 생성합니다 (start부터 7일)."""
    return await roster_service.create_roster(
        db,
        RosterCreate(venue_id=venue.id, name=name, start_date=start, end_date=start + timedelta(days=6)),
    )


async def add_shift(
    db: AsyncSession,
    roster,
    user=None,
    day: date = date(2025, 6, 10),
    start: str = "09:00",
    end: str = "17:00",
    position: str | None = "Bar",
    **extra,
):
    """로스터에 근무 1건을 추가합니다."""
    return await shift_service.add_shift(
        db,
        roster.id,
        ShiftCreate(
            user_id=user.id if user is not None else None,
            date=day,
            start_time=start,
            end_time=end,
            position=position,
            **extra,
        ),
    )
