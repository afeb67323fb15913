"""로스터 근무 Pydantic 스키마.

Roster shift request/response schemas.
Times travel as "HH:MM" strings (local wall-clock, no timezone).
"""

import datetime
from uuid import UUID

from pydantic import BaseModel, Field

_TIME_PATTERN: str = r"^([01]\d|2[0-3]):[0-5]\d$"


class ShiftCreate(BaseModel):
    """근무 생성 요청 스키마.

    Shift creation request. ``user_id`` None creates an unfilled slot.
    """

    user_id: UUID | None = None  # 배정 직원, None이면 미배정 (Assignee or unfilled slot)
    date: datetime.date  # 근무일 (Shift date, must fall inside the roster period)
    start_time: str = Field(..., pattern=_TIME_PATTERN)  # 시작 "HH:MM"
    end_time: str = Field(..., pattern=_TIME_PATTERN)  # 종료 "HH:MM"
    break_minutes: int = Field(0, ge=0, le=720)  # 휴게 시간(분) (Break minutes)
    position: str | None = Field(None, max_length=100)  # 포지션 (Position label)
    notes: str | None = None  # 메모 (Free-text notes)
    original_name: str | None = Field(None, max_length=255)  # 원본 이름 (Extracted staff name)


class ShiftUpdate(BaseModel):
    """근무 수정 요청 스키마 — 전달된 필드만 반영 (exclude_unset).

    Partial shift update; only fields present in the request are applied.
    Sending ``user_id: null`` unassigns the shift.
    """

    user_id: UUID | None = None
    date: datetime.date | None = None
    start_time: str | None = Field(None, pattern=_TIME_PATTERN)
    end_time: str | None = Field(None, pattern=_TIME_PATTERN)
    break_minutes: int | None = Field(None, ge=0, le=720)
    position: str | None = Field(None, max_length=100)
    notes: str | None = None


class ShiftBulkCreate(BaseModel):
    """근무 일괄 생성 요청 (Bulk shift creation request)."""

    shifts: list[ShiftCreate] = Field(..., min_length=1)


class ShiftResponse(BaseModel):
    """근무 응답 스키마 (Shift response)."""

    id: str
    roster_id: str
    user_id: str | None
    user_name: str | None
    date: datetime.date
    start_time: str
    end_time: str
    break_minutes: int
    position: str | None
    notes: str | None
    original_name: str | None
    has_conflict: bool
    conflict_type: str | None


class ConflictEntry(BaseModel):
    """재검사 결과의 충돌 항목 (One conflicting shift in a recheck result)."""

    shift_id: str
    user_id: str
    user_name: str | None
    date: datetime.date
    start_time: str
    end_time: str
    conflict_type: str
    conflict_details: str | None


class RecheckResponse(BaseModel):
    """전체 재검사 결과 (Bulk recheck result)."""

    success: bool = True
    total_shifts: int
    conflict_count: int
    conflicts: list[ConflictEntry]


class ConflictCheckRequest(BaseModel):
    """단건 충돌 검사 요청 (Ad-hoc conflict check for a candidate shift)."""

    user_id: UUID
    date: datetime.date
    start_time: str = Field(..., pattern=_TIME_PATTERN)
    end_time: str = Field(..., pattern=_TIME_PATTERN)
    exclude_shift_id: UUID | None = None


class ConflictCheckResponse(BaseModel):
    has_conflict: bool
    conflict_type: str | None
    details: str | None
