"""관리자 로스터 라우터 — 로스터 CRUD, 상태 전이, 가져오기 API.

Admin Roster Router — Roster CRUD, lifecycle transitions (finalize, publish,
revert), the legacy review aliases, copy to another week, extraction import
and unmatched-name resolution.
"""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_roster_for, require_permission
from app.database import get_db
from app.models.roster import Roster
from app.models.user import User
from app.schemas.common import MessageResponse, PaginatedResponse
from app.schemas.roster import (
    FinalizeRequest,
    ImportExtractionRequest,
    LifecycleResponse,
    ResolveUnmatchedRequest,
    RevertRequest,
    RosterCopyRequest,
    RosterCreate,
    RosterUpdate,
)
from app.services.extraction_service import extraction_service
from app.services.legacy_workflow_service import legacy_workflow_service
from app.services.lifecycle_service import lifecycle_service
from app.services.notification_service import notification_service
from app.services.permission_service import (
    ROSTERS_CREATE,
    ROSTERS_DELETE,
    ROSTERS_EDIT,
    ROSTERS_PUBLISH,
    ROSTERS_READ,
    permission_service,
)
from app.services.roster_service import roster_service

router: APIRouter = APIRouter()


@router.get("", response_model=PaginatedResponse)
async def list_rosters(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_READ))],
    venue_id: Annotated[UUID | None, Query()] = None,
    status: Annotated[str | None, Query()] = None,
    date_from: Annotated[date | None, Query()] = None,
    date_to: Annotated[date | None, Query()] = None,
    search: Annotated[str | None, Query()] = None,
    chain_id: Annotated[str | None, Query()] = None,
    include_superseded: Annotated[bool, Query()] = False,
    page: Annotated[int, Query(ge=1)] = 1,
    per_page: Annotated[int, Query(ge=1, le=100)] = 20,
) -> dict:
    """로스터 목록을 조회합니다.

    List rosters with filters. Managers only see rosters of their venues;
    superseded versions (archived, inactive published) are hidden unless
    ``include_superseded`` is set.

    Args:
        db: 비동기 데이터베이스 세션 (Async database session)
        current_user: 조회 권한 사용자 (User holding rosters:read)
        venue_id: 매장 필터 (Venue filter)
        status: 상태 필터 (Status filter)
        date_from: 기간 시작 (Rosters ending on/after)
        date_to: 기간 종료 (Rosters starting on/before)
        search: 이름/설명 검색 (Text search)
        chain_id: 체인 필터 (Chain filter)
        include_superseded: 대체된 버전 포함 (Include superseded versions)
        page: 페이지 번호 (Page number)
        per_page: 페이지당 항목 수 (Items per page)

    Returns:
        dict: 페이지네이션된 로스터 목록 (Paginated roster list)
    """
    venue_ids: list[UUID] | None = await permission_service.get_accessible_venue_ids(db, current_user)
    if venue_id is not None:
        await permission_service.check_venue_access(db, current_user, venue_id)

    items, total = await roster_service.list_rosters(
        db,
        venue_ids=venue_ids,
        venue_id=venue_id,
        status=status,
        date_from=date_from,
        date_to=date_to,
        search=search,
        chain_id=chain_id,
        include_superseded=include_superseded,
        page=page,
        per_page=per_page,
    )
    return {"items": items, "total": total, "page": page, "per_page": per_page}


@router.get("/finalized")
async def list_finalized(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_PUBLISH))],
) -> list[dict]:
    """게시 대기 중인 확정 로스터 목록 (Finalized rosters ready to publish)."""
    venue_ids: list[UUID] | None = await permission_service.get_accessible_venue_ids(db, current_user)
    return await roster_service.list_finalized(db, venue_ids)


@router.get("/stats")
async def get_stats(
    venue_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_READ))],
) -> dict:
    """매장의 상태별 로스터 수 (Roster counts per status for a venue)."""
    await permission_service.check_venue_access(db, current_user, venue_id)
    return await roster_service.get_stats(db, venue_id)


@router.post("", status_code=201)
async def create_roster(
    data: RosterCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_CREATE))],
) -> dict:
    """새 DRAFT 로스터를 생성합니다.

    Create a DRAFT roster. It joins the version chain of its venue/week,
    starting a new chain at version 1 when none exists.
    """
    await permission_service.check_venue_access(db, current_user, data.venue_id)
    roster: Roster = await roster_service.create_roster(db, data, current_user.id)
    await db.commit()
    return await roster_service.build_response(db, roster)


@router.get("/{roster_id}")
async def get_roster(
    roster_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_READ))],
) -> dict:
    """로스터 상세 — 근무, 이력, 체인 포함 (Roster with shifts, history and chain)."""
    await get_roster_for(db, current_user, roster_id, ROSTERS_READ)
    return await roster_service.get_roster_detail(db, roster_id)


@router.patch("/{roster_id}")
async def update_roster(
    roster_id: UUID,
    data: RosterUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_EDIT))],
) -> dict:
    """DRAFT 로스터 정보를 수정합니다 (Edit a draft's name, description or dates)."""
    await get_roster_for(db, current_user, roster_id, ROSTERS_EDIT)
    roster: Roster = await roster_service.update_roster(db, roster_id, data, current_user.id)
    await db.commit()
    return await roster_service.build_response(db, roster)


@router.delete("/{roster_id}", response_model=MessageResponse)
async def delete_roster(
    roster_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_DELETE))],
) -> dict:
    """DRAFT 로스터를 삭제합니다 (Delete a draft with its shifts and history)."""
    await get_roster_for(db, current_user, roster_id, ROSTERS_DELETE)
    await roster_service.delete_roster(db, roster_id)
    await db.commit()
    return {"message": "Roster deleted"}


@router.post("/{roster_id}/archive")
async def archive_roster(
    roster_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_PUBLISH))],
) -> dict:
    await get_roster_for(db, current_user, roster_id, ROSTERS_PUBLISH)
    roster: Roster = await roster_service.archive_roster(db, roster_id, current_user.id)
    await db.commit()
    return await roster_service.build_response(db, roster)


@router.post("/{roster_id}/copy", status_code=201)
async def copy_roster(
    roster_id: UUID,
    data: RosterCopyRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_CREATE))],
) -> dict:
    """로스터를 다른 주로 복사합니다.

    Copy a roster into another week as a new DRAFT. Shift dates move by the
    week delta and every copied shift is rechecked for conflicts.
    """
    await get_roster_for(db, current_user, roster_id, ROSTERS_CREATE)
    roster: Roster = await roster_service.copy_roster(db, roster_id, data, current_user.id)
    await db.commit()
    return await roster_service.build_response(db, roster)


@router.get("/{roster_id}/adjacent")
async def get_adjacent(
    roster_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_READ))],
) -> dict:
    """이전/다음 주 로스터 (Previous and next week of the same venue)."""
    await get_roster_for(db, current_user, roster_id, ROSTERS_READ)
    return await roster_service.get_adjacent(db, roster_id)


@router.get("/{roster_id}/approval-history")
async def get_approval_history(
    roster_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_READ))],
) -> list[dict]:
    await get_roster_for(db, current_user, roster_id, ROSTERS_READ)
    return await roster_service.get_approval_history(db, roster_id)


# ---------------------------------------------------------------------------
# 상태 전이 — Lifecycle transitions
# ---------------------------------------------------------------------------

@router.post("/{roster_id}/finalize", response_model=LifecycleResponse)
async def finalize_roster(
    roster_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_EDIT))],
    data: FinalizeRequest | None = None,
) -> dict:
    """로스터를 확정합니다 (DRAFT → APPROVED).

    Finalize a draft. Conflicts do not block finalizing; they are reported
    as ``has_conflicts``/``conflict_count`` for the manager to review.

    Args:
        roster_id: 로스터 UUID (Roster UUID)
        db: 비동기 데이터베이스 세션 (Async database session)
        current_user: 편집 권한 사용자 (User holding rosters:edit)
        data: 검토 메모 (Optional self-review notes)

    Returns:
        dict: success, roster{id,status}, has_conflicts, conflict_count
    """
    await get_roster_for(db, current_user, roster_id, ROSTERS_EDIT)
    result: dict = await lifecycle_service.finalize(
        db, roster_id, current_user.id, notes=data.notes if data else None
    )
    await db.commit()
    return result


@router.post("/{roster_id}/publish", response_model=LifecycleResponse)
async def publish_roster(
    roster_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_PUBLISH))],
) -> dict:
    """확정된 로스터를 게시합니다 (APPROVED → PUBLISHED).

    Publish a finalized roster and make it the chain's live version. Staff
    notifications are sent after the commit; a failed notification does not
    undo the publish.
    """
    await get_roster_for(db, current_user, roster_id, ROSTERS_PUBLISH)
    result, messages = await lifecycle_service.publish(db, roster_id, current_user.id)
    await db.commit()
    await notification_service.dispatch(messages)
    return result


@router.post("/{roster_id}/revert", response_model=LifecycleResponse)
async def revert_roster(
    roster_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_EDIT))],
    data: RevertRequest | None = None,
) -> dict:
    """확정/게시된 로스터를 DRAFT로 되돌립니다 (APPROVED/PUBLISHED → DRAFT)."""
    await get_roster_for(db, current_user, roster_id, ROSTERS_EDIT)
    result: dict = await lifecycle_service.revert_to_draft(
        db, roster_id, current_user.id, reason=data.reason if data else None
    )
    await db.commit()
    return result


# 레거시 검토 흐름 — Legacy review aliases (submit/approve/reject/recall)

@router.post("/{roster_id}/submit", response_model=LifecycleResponse, deprecated=True)
async def submit_roster(
    roster_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_EDIT))],
) -> dict:
    await get_roster_for(db, current_user, roster_id, ROSTERS_EDIT)
    result: dict = await legacy_workflow_service.submit_for_review(db, roster_id, current_user.id)
    await db.commit()
    return result


@router.post("/{roster_id}/approve", response_model=LifecycleResponse, deprecated=True)
async def approve_roster(
    roster_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_PUBLISH))],
    data: FinalizeRequest | None = None,
) -> dict:
    await get_roster_for(db, current_user, roster_id, ROSTERS_PUBLISH)
    result: dict = await legacy_workflow_service.approve_roster(
        db, roster_id, current_user.id, comment=data.notes if data else None
    )
    await db.commit()
    return result


@router.post("/{roster_id}/reject", response_model=LifecycleResponse, deprecated=True)
async def reject_roster(
    roster_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_PUBLISH))],
    data: RevertRequest | None = None,
) -> dict:
    await get_roster_for(db, current_user, roster_id, ROSTERS_PUBLISH)
    result: dict = await legacy_workflow_service.reject_roster(
        db, roster_id, current_user.id, reason=data.reason if data else None
    )
    await db.commit()
    return result


@router.post("/{roster_id}/recall", response_model=LifecycleResponse, deprecated=True)
async def recall_roster(
    roster_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_EDIT))],
) -> dict:
    await get_roster_for(db, current_user, roster_id, ROSTERS_EDIT)
    result: dict = await legacy_workflow_service.recall_submission(db, roster_id, current_user.id)
    await db.commit()
    return result


# ---------------------------------------------------------------------------
# 추출 결과 가져오기 — Extraction import and unmatched names
# ---------------------------------------------------------------------------

@router.post("/{roster_id}/import")
async def import_extraction(
    roster_id: UUID,
    data: ImportExtractionRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_EDIT))],
) -> dict:
    """추출된 후보 근무를 DRAFT 로스터로 가져옵니다.

    Import the extraction producer's candidates into a draft. Low-confidence
    matches become unassigned slots plus unmatched-name entries.
    """
    await get_roster_for(db, current_user, roster_id, ROSTERS_EDIT)
    result: dict = await extraction_service.import_extraction(db, roster_id, data, current_user.id)
    await db.commit()
    return result


@router.get("/{roster_id}/unmatched")
async def list_unmatched(
    roster_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_READ))],
    unresolved_only: Annotated[bool, Query()] = True,
) -> list[dict]:
    await get_roster_for(db, current_user, roster_id, ROSTERS_READ)
    return await extraction_service.list_unmatched(db, roster_id, unresolved_only)


@router.post("/{roster_id}/unmatched/{entry_id}/resolve")
async def resolve_unmatched(
    roster_id: UUID,
    entry_id: UUID,
    data: ResolveUnmatchedRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_EDIT))],
) -> dict:
    """미매칭 이름을 직원에게 연결합니다 (Assign an unmatched name's shifts to a user)."""
    await get_roster_for(db, current_user, roster_id, ROSTERS_EDIT)
    result: dict = await extraction_service.resolve_unmatched_entry(
        db, roster_id, entry_id, data.user_id, current_user.id
    )
    await db.commit()
    return result
