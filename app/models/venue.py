"""매장(Venue) 및 사용자-매장 연결 모델.

Venue and User-Venue association models.
A roster belongs to exactly one venue; managers are scoped to the venues
they are linked to through ``user_venues``.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class Venue(Base):
    """매장 모델.

    Venue model — A physical location with its own weekly rosters.

    Attributes:
        id: 고유 식별자 (Primary key UUID)
        name: 매장 이름 (Venue display name)
        code: 매장 코드 (Short unique code)
        is_active: 운영 여부 (Whether the venue is operating)
    """

    __tablename__ = "venues"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str | None] = mapped_column(String(20), unique=True, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    user_venues = relationship("UserVenue", back_populates="venue", cascade="all, delete-orphan")


class UserVenue(Base):
    """사용자-매장 연결 테이블.

    User-Venue association table for many-to-many relationships.

    Attributes:
        id: 고유 식별자 (Primary key UUID)
        user_id: 사용자 ID (User UUID)
        venue_id: 매장 ID (Venue UUID)
        is_primary: 주 근무 매장 여부 (Primary venue flag)
    """

    __tablename__ = "user_venues"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    venue_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("venues.id", ondelete="CASCADE"),
        nullable=False,
    )
    is_primary: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        UniqueConstraint("user_id", "venue_id", name="uq_user_venue"),
    )

    user = relationship("User", back_populates="user_venues")
    venue = relationship("Venue", back_populates="user_venues")
