"""로스터 Pydantic 스키마 — 생성/수정/상태 전이/가져오기.

Roster request/response schemas: CRUD, lifecycle transitions and the
extraction import contract.
"""

import datetime
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

_TIME_PATTERN: str = r"^([01]\d|2[0-3]):[0-5]\d$"


# === 로스터 (Roster) 스키마 ===

class RosterCreate(BaseModel):
    """로스터 생성 요청 스키마.

    Roster creation request. The chain is resolved from the venue and the
    week containing ``start_date``.
    """

    venue_id: UUID  # 매장 UUID (Venue)
    name: str = Field(..., min_length=1, max_length=255)  # 로스터 이름 (Name)
    description: str | None = None  # 설명 (Description)
    start_date: datetime.date  # 시작일 (First day, inclusive)
    end_date: datetime.date  # 종료일 (Last day, inclusive)

    @model_validator(mode="after")
    def _check_range(self) -> "RosterCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class RosterUpdate(BaseModel):
    """로스터 수정 요청 스키마 — DRAFT만 수정 가능 (DRAFT rosters only)."""

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    start_date: datetime.date | None = None
    end_date: datetime.date | None = None


class RosterCopyRequest(BaseModel):
    """다른 주로 로스터 복사 요청 (Copy a roster to another week)."""

    target_start_date: datetime.date  # 대상 주 시작일 (Start date of the target week)
    name: str | None = Field(None, max_length=255)  # 새 이름, 없으면 자동 (New name, derived when omitted)


class RosterSummary(BaseModel):
    """상태 전이 결과의 로스터 요약 (Roster id/status in a lifecycle result)."""

    id: str
    status: str


class LifecycleResponse(BaseModel):
    """상태 전이 결과 스키마.

    Lifecycle transition result: ``{success, roster:{id,status}}`` plus the
    conflict warning (finalize) or the notified staff count (publish).
    """

    success: bool = True
    roster: RosterSummary
    has_conflicts: bool | None = None
    conflict_count: int | None = None
    notified_count: int | None = None
    message: str | None = None


class FinalizeRequest(BaseModel):
    notes: str | None = None  # 검토 메모 (Self-review notes)


class RevertRequest(BaseModel):
    reason: str | None = None  # 되돌리는 사유 (Reason for reverting)


# === 추출 결과 가져오기 (Extraction import) 스키마 ===

class ExtractedShift(BaseModel):
    """추출기가 생성한 후보 근무.

    Candidate shift produced by the extraction collaborator.
    ``match_confidence`` is the confidence of the staff match in [0, 1].
    """

    staff_name: str
    staff_id: UUID | None = None
    date: datetime.date
    start_time: str = Field(..., pattern=_TIME_PATTERN)
    end_time: str = Field(..., pattern=_TIME_PATTERN)
    break_minutes: int = Field(0, ge=0, le=720)
    position: str | None = None
    notes: str | None = None
    match_confidence: float = Field(0.0, ge=0.0, le=1.0)


class UnmatchedName(BaseModel):
    """매칭되지 않은 이름 (Extracted name without a confident match)."""

    name: str = Field(..., min_length=1)
    suggested_user_id: UUID | None = None
    confidence: float | None = Field(None, ge=0.0, le=1.0)


class ImportExtractionRequest(BaseModel):
    """추출 결과 가져오기 요청 (Import an extraction result into a draft)."""

    candidates: list[ExtractedShift] = Field(default_factory=list)
    unmatched_names: list[UnmatchedName] = Field(default_factory=list)


class ResolveUnmatchedRequest(BaseModel):
    """미매칭 이름 해결 요청 (Resolve an unmatched name to a user)."""

    user_id: UUID
