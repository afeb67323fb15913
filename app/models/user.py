"""사용자 및 역할 관련 SQLAlchemy ORM 모델 정의.

User and Role SQLAlchemy ORM model definitions.
Users are consumed read-only by the roster engine: as shift assignees,
notification recipients, and as the acting user recorded on audit entries.

Tables:
    - roles: 역할 (Roles, level-based hierarchy)
    - users: 사용자 계정 (User accounts)
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import String, Boolean, DateTime, Integer, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class Role(Base):
    """역할 모델 — 권한 수준을 정의.

    Role model — Lower level numbers indicate higher authority:
        1 = admin, 2 = manager, 3 = supervisor, 4 = staff

    Attributes:
        id: 고유 식별자 UUID (Unique identifier)
        name: 역할 이름 (Role name, e.g. "manager")
        level: 권한 레벨 (Permission level, 1=highest)
        created_at: 생성 일시 UTC (Creation timestamp)
    """

    __tablename__ = "roles"

    # 역할 고유 식별자 — Role unique identifier
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # 역할 이름 — Role display name (고유, unique)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    # 권한 레벨 — Permission level (1=admin 최고 권한, 4=staff 최저 권한)
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    users = relationship("User", back_populates="role")


class User(Base):
    """사용자 모델 — 시스템 사용자 계정 정보.

    User model — Staff members, managers and administrators.

    Attributes:
        id: 고유 식별자 UUID (Unique identifier)
        role_id: 역할 FK (Assigned role foreign key)
        email: 이메일 (Email address, unique)
        full_name: 실명 (Full display name)
        is_active: 활성 상태 (Active status)
        created_at: 생성 일시 UTC (Creation timestamp)
        updated_at: 수정 일시 UTC (Last update timestamp)

    Relationships:
        role: 사용자 역할 (Assigned role)
        user_venues: 소속 매장 연결 (Venue memberships)
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # 역할 FK — Assigned role (역할 삭제 시 제한됨, role deletion is restricted)
    role_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("roles.id"), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    # 활성 상태 — 비활성 사용자는 인증 불가 (Inactive users cannot authenticate)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    # 관계 — Relationships
    role = relationship("Role", back_populates="users")
    user_venues = relationship("UserVenue", back_populates="user", cascade="all, delete-orphan")
