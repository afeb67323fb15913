"""직원 휴가/가용성 모델 — 충돌 검사 입력 데이터.

Staff time-off and availability models.
Both are owned by other parts of the product; the conflict checker only
reads them.

Tables:
    - time_off_requests: 휴가 신청 (Time-off requests, inclusive date ranges)
    - availabilities: 요일별 근무 가능 시간 (Weekly availability per day-of-week)
"""

import uuid
from datetime import date, datetime, time, timezone
from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text, Time, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class TimeOffStatus:
    """휴가 신청 상태 값 (Time-off request status values)."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class TimeOffRequest(Base):
    """휴가 신청 모델.

    Time-off request. Only APPROVED requests block shift assignment;
    the date range is inclusive on both ends.
    """

    __tablename__ = "time_off_requests"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    # 상태 — PENDING | APPROVED | REJECTED | CANCELLED
    status: Mapped[str] = mapped_column(String(20), default=TimeOffStatus.PENDING)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("ix_time_off_user_dates", "user_id", "start_date", "end_date"),
    )


class Availability(Base):
    """요일별 가용성 모델.

    Declared weekly availability for one staff member and one day of week.

    Attributes:
        day_of_week: 요일 0=일요일 … 6=토요일 (0=Sunday … 6=Saturday)
        is_available: 근무 가능 여부 (False blocks every shift that day)
        is_all_day: 종일 가능 여부 (True skips the time-window check)
        start_time: 가능 시작 시각, None이면 00:00 (Window start, None means 00:00)
        end_time: 가능 종료 시각, None이면 23:59 (Window end, None means 23:59)
    """

    __tablename__ = "availabilities"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)
    is_all_day: Mapped[bool] = mapped_column(Boolean, default=False)
    start_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    end_time: Mapped[time | None] = mapped_column(Time, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint("user_id", "day_of_week", name="uq_availability_user_day"),
    )
