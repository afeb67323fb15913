"""관리자 근무 라우터 — 로스터 근무 관리 API.

Admin Shift Router — Shift CRUD nested under a roster, bulk add, full
conflict recheck and an ad-hoc conflict check. Mutations require the roster
to be DRAFT; every write stores a fresh conflict verdict.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_roster_for, require_permission
from app.database import get_db
from app.models.roster import RosterShift
from app.models.user import User
from app.schemas.common import MessageResponse
from app.schemas.shift import (
    ConflictCheckRequest,
    ConflictCheckResponse,
    RecheckResponse,
    ShiftBulkCreate,
    ShiftCreate,
    ShiftResponse,
    ShiftUpdate,
)
from app.services.conflict_service import ConflictResult, conflict_service
from app.services.permission_service import ROSTERS_EDIT, ROSTERS_READ
from app.services.shift_service import shift_service
from app.utils.exceptions import BadRequestError
from app.utils.time_utils import parse_time

router: APIRouter = APIRouter()


@router.get("/rosters/{roster_id}/shifts", response_model=list[ShiftResponse])
async def list_shifts(
    roster_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_READ))],
) -> list[dict]:
    """로스터의 근무 목록 (Shifts of a roster ordered by date and start time)."""
    await get_roster_for(db, current_user, roster_id, ROSTERS_READ)
    return await shift_service.list_shifts(db, roster_id)


@router.post("/rosters/{roster_id}/shifts", response_model=ShiftResponse, status_code=201)
async def add_shift(
    roster_id: UUID,
    data: ShiftCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_EDIT))],
) -> dict:
    """근무를 추가합니다.

    Add a shift to a DRAFT roster. A conflict does not reject the shift; it
    is stored on the shift as ``has_conflict``/``conflict_type``.

    Args:
        roster_id: 로스터 UUID (Roster UUID)
        data: 근무 생성 데이터 (Shift creation data)
        db: 비동기 데이터베이스 세션 (Async database session)
        current_user: 편집 권한 사용자 (User holding rosters:edit)

    Returns:
        dict: 생성된 근무 (Created shift with its conflict verdict)
    """
    await get_roster_for(db, current_user, roster_id, ROSTERS_EDIT)
    shift: RosterShift = await shift_service.add_shift(db, roster_id, data, current_user.id)
    await db.commit()
    return await shift_service.build_response(db, shift)


@router.post("/rosters/{roster_id}/shifts/bulk", status_code=201)
async def bulk_add_shifts(
    roster_id: UUID,
    data: ShiftBulkCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_EDIT))],
) -> dict:
    """근무 일괄 추가 (Add many shifts in one batch)."""
    await get_roster_for(db, current_user, roster_id, ROSTERS_EDIT)
    created: int = await shift_service.bulk_add(db, roster_id, data.shifts, current_user.id)
    await db.commit()
    return {"success": True, "created": created}


@router.post("/rosters/{roster_id}/shifts/recheck", response_model=RecheckResponse)
async def recheck_conflicts(
    roster_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_EDIT))],
) -> dict:
    """모든 근무의 충돌을 재검사합니다.

    Recompute the conflict verdict of every assigned shift, e.g. after time
    off was approved or availability changed.
    """
    await get_roster_for(db, current_user, roster_id, ROSTERS_EDIT)
    result: dict = await shift_service.recheck_all(db, roster_id, current_user.id)
    await db.commit()
    return result


@router.post("/rosters/{roster_id}/shifts/check-conflict", response_model=ConflictCheckResponse)
async def check_conflict(
    roster_id: UUID,
    data: ConflictCheckRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_READ))],
) -> dict:
    """후보 근무의 충돌 여부만 확인 — 저장하지 않음 (Check a candidate shift without saving it)."""
    await get_roster_for(db, current_user, roster_id, ROSTERS_READ)
    start = parse_time(data.start_time)
    end = parse_time(data.end_time)
    if end <= start:
        raise BadRequestError("end_time must be after start_time")
    verdict: ConflictResult = await conflict_service.check_conflict(
        db, data.user_id, data.date, start, end,
        roster_id=roster_id, exclude_shift_id=data.exclude_shift_id,
    )
    return {
        "has_conflict": verdict.has_conflict,
        "conflict_type": verdict.conflict_type.value if verdict.conflict_type else None,
        "details": verdict.details,
    }


@router.patch("/rosters/{roster_id}/shifts/{shift_id}", response_model=ShiftResponse)
async def update_shift(
    roster_id: UUID,
    shift_id: UUID,
    data: ShiftUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_EDIT))],
) -> dict:
    await get_roster_for(db, current_user, roster_id, ROSTERS_EDIT)
    shift: RosterShift = await shift_service.update_shift(db, roster_id, shift_id, data, current_user.id)
    await db.commit()
    return await shift_service.build_response(db, shift)


@router.delete("/rosters/{roster_id}/shifts/{shift_id}", response_model=MessageResponse)
async def delete_shift(
    roster_id: UUID,
    shift_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_EDIT))],
) -> dict:
    await get_roster_for(db, current_user, roster_id, ROSTERS_EDIT)
    await shift_service.delete_shift(db, roster_id, shift_id, current_user.id)
    await db.commit()
    return {"message": "Shift deleted"}
