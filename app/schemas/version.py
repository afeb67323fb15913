"""버전 체인/병합/롤백 Pydantic 스키마.

Version chain, merge and rollback request schemas.
"""

from uuid import UUID

from pydantic import BaseModel, Field

_TIME_PATTERN: str = r"^([01]\d|2[0-3]):[0-5]\d$"


class SnapshotShift(BaseModel):
    """스냅샷 형태의 근무 — 병합 입력 (Shift in snapshot shape, merge input)."""

    id: str | None = None
    user_id: str | None = None
    user_name: str | None = None
    date: str  # "YYYY-MM-DD"
    start_time: str = Field(..., pattern=_TIME_PATTERN)
    end_time: str = Field(..., pattern=_TIME_PATTERN)
    break_minutes: int = Field(0, ge=0, le=720)
    position: str | None = None
    notes: str | None = None
    original_name: str | None = None


class MergePreviewRequest(BaseModel):
    incoming: list[SnapshotShift] = Field(default_factory=list)


class ShiftUpdateEntry(BaseModel):
    """병합 시 수정할 기존 근무 (Existing shift to update during a merge)."""

    id: UUID
    updates: SnapshotShift


class ApplyMergeRequest(BaseModel):
    """병합 적용 요청 — 부분 적용 지원.

    Apply a previewed merge. Each flag gates its list so a caller can, for
    example, apply additions but skip removals.
    """

    add_shifts: bool = True
    remove_shifts: bool = False
    update_shifts: bool = True
    shifts_to_add: list[SnapshotShift] = Field(default_factory=list)
    shifts_to_remove: list[UUID] = Field(default_factory=list)
    shifts_to_update: list[ShiftUpdateEntry] = Field(default_factory=list)


class RollbackRequest(BaseModel):
    revision: int = Field(..., ge=1)  # 되돌릴 리비전 (Target revision)


class NewVersionRequest(BaseModel):
    name: str | None = Field(None, max_length=255)  # 새 버전 이름 (Defaults to "{source} v{n}")
