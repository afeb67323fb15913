"""관리자 버전 라우터 — 버전 체인, 비교, 롤백, 병합, 감사 로그 API.

Admin Version Router — Version chain queries, new versions and restores,
comparison and revision diffs, rollback, merge preview/apply and the audit
log views.
"""

from datetime import date
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_roster_for, require_permission
from app.database import get_db
from app.models.roster import Roster
from app.models.user import User
from app.schemas.version import ApplyMergeRequest, MergePreviewRequest, NewVersionRequest, RollbackRequest
from app.services.audit_service import audit_service
from app.services.merge_service import merge_service
from app.services.notification_service import notification_service
from app.services.permission_service import (
    ROSTERS_CREATE,
    ROSTERS_EDIT,
    ROSTERS_READ,
    permission_service,
)
from app.services.roster_service import roster_service
from app.services.version_chain_service import version_chain_service

router: APIRouter = APIRouter()


async def _check_chain_access(db: AsyncSession, user: User, chain: dict) -> None:
    await permission_service.check_venue_access(db, user, UUID(chain["venue_id"]))


# ---------------------------------------------------------------------------
# 체인 조회 — Chain queries
# ---------------------------------------------------------------------------

@router.get("/chains/{chain_id}")
async def get_chain(
    chain_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_READ))],
) -> dict:
    """버전 체인 전체 조회 (Every version of a chain, active one flagged)."""
    chain: dict = await version_chain_service.get_chain(db, chain_id)
    await _check_chain_access(db, current_user, chain)
    return chain


@router.get("/chains/{chain_id}/audit-log")
async def get_chain_audit_log(
    chain_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_READ))],
    limit: Annotated[int | None, Query(ge=1, le=1000)] = None,
) -> list[dict]:
    """체인 전체 감사 로그 (Audit entries across every version of a chain)."""
    chain: dict = await version_chain_service.get_chain(db, chain_id)
    await _check_chain_access(db, current_user, chain)
    return await audit_service.get_chain_audit_log(db, chain_id, limit)


@router.get("/venues/{venue_id}/chains")
async def list_venue_chains(
    venue_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_READ))],
    date_from: Annotated[date | None, Query()] = None,
    date_to: Annotated[date | None, Query()] = None,
) -> list[dict]:
    await permission_service.check_venue_access(db, current_user, venue_id)
    return await version_chain_service.list_chains_for_venue(db, venue_id, date_from, date_to)


@router.get("/rosters/{roster_id}/chain")
async def get_roster_chain(
    roster_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_READ))],
) -> dict | None:
    """로스터가 속한 체인 — 체인 밖이면 null (Chain of a roster, null when untracked)."""
    await get_roster_for(db, current_user, roster_id, ROSTERS_READ)
    return await version_chain_service.get_chain_for_roster(db, roster_id)


# ---------------------------------------------------------------------------
# 새 버전/복원 — New versions and restores
# ---------------------------------------------------------------------------

@router.post("/rosters/{roster_id}/versions", status_code=201)
async def create_new_version(
    roster_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_CREATE))],
    data: NewVersionRequest | None = None,
) -> dict:
    """게시된 로스터에서 새 DRAFT 버전을 만듭니다.

    Branch a new DRAFT version off a published roster. The published version
    stays live until the new one is published.

    Args:
        roster_id: 원본 로스터 UUID (Published source roster)
        db: 비동기 데이터베이스 세션 (Async database session)
        current_user: 생성 권한 사용자 (User holding rosters:create)
        data: 새 버전 이름 (Optional name)

    Returns:
        dict: 새 버전 로스터 (The new draft version)
    """
    await get_roster_for(db, current_user, roster_id, ROSTERS_CREATE)
    roster: Roster = await version_chain_service.create_new_version(
        db, roster_id, current_user.id, name=data.name if data else None
    )
    await db.commit()
    return await roster_service.build_response(db, roster)


@router.post("/rosters/{roster_id}/restore", status_code=201)
async def restore_version(
    roster_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_CREATE))],
) -> dict:
    """대체된 버전을 새 DRAFT로 복원합니다.

    Restore a superseded version as a new draft. A draft already pending in
    the chain is replaced.
    """
    await get_roster_for(db, current_user, roster_id, ROSTERS_CREATE)
    roster: Roster = await version_chain_service.restore_from_version(db, roster_id, current_user.id)
    await db.commit()
    return await roster_service.build_response(db, roster)


# ---------------------------------------------------------------------------
# 비교/이력 — Comparison and revision history
# ---------------------------------------------------------------------------

@router.get("/versions/compare")
async def compare_versions(
    roster_a: UUID,
    roster_b: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_READ))],
) -> dict:
    """두 로스터의 근무 비교 — A → B (Diff of two rosters' current shifts)."""
    await get_roster_for(db, current_user, roster_a, ROSTERS_READ)
    await get_roster_for(db, current_user, roster_b, ROSTERS_READ)
    return await version_chain_service.compare_versions(db, roster_a, roster_b)


@router.get("/rosters/{roster_id}/versions/history")
async def get_version_history(
    roster_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_READ))],
) -> dict:
    await get_roster_for(db, current_user, roster_id, ROSTERS_READ)
    return await version_chain_service.get_version_history(db, roster_id)


@router.get("/rosters/{roster_id}/versions/diff")
async def get_version_diff(
    roster_id: UUID,
    from_revision: Annotated[int, Query(ge=1)],
    to_revision: Annotated[int, Query(ge=1)],
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_READ))],
) -> dict:
    """두 리비전 간 근무 비교 (Diff between two revisions of one roster)."""
    await get_roster_for(db, current_user, roster_id, ROSTERS_READ)
    return await version_chain_service.get_version_diff(db, roster_id, from_revision, to_revision)


@router.get("/rosters/{roster_id}/versions/{revision}/snapshot")
async def get_version_snapshot(
    roster_id: UUID,
    revision: int,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_READ))],
) -> dict:
    await get_roster_for(db, current_user, roster_id, ROSTERS_READ)
    shifts: list[dict[str, Any]] = await version_chain_service.get_version_snapshot(db, roster_id, revision)
    return {"revision": revision, "shifts": shifts}


# ---------------------------------------------------------------------------
# 롤백 — Rollback
# ---------------------------------------------------------------------------

@router.get("/rosters/{roster_id}/rollback-points")
async def get_rollback_points(
    roster_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_READ))],
    limit: Annotated[int | None, Query(ge=1, le=100)] = None,
) -> list[dict]:
    """롤백 가능한 리비전 목록 (Revisions carrying a snapshot)."""
    await get_roster_for(db, current_user, roster_id, ROSTERS_READ)
    return await audit_service.get_rollback_points(db, roster_id, limit)


@router.post("/rosters/{roster_id}/rollback")
async def rollback_roster(
    roster_id: UUID,
    data: RollbackRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_EDIT))],
) -> dict:
    """DRAFT 로스터의 근무를 이전 리비전으로 되돌립니다.

    Replace a draft's shifts with those recorded at ``revision``. The
    pre-rollback state is kept as a new rollback point.
    """
    await get_roster_for(db, current_user, roster_id, ROSTERS_EDIT)
    result: dict = await version_chain_service.rollback_to_version(db, roster_id, data.revision, current_user.id)
    await db.commit()
    return result


# ---------------------------------------------------------------------------
# 병합 — Merge
# ---------------------------------------------------------------------------

@router.post("/rosters/{roster_id}/merge/preview")
async def preview_merge(
    roster_id: UUID,
    data: MergePreviewRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_READ))],
) -> dict:
    """재업로드 근무의 병합 미리보기 (Preview merging an incoming shift set)."""
    await get_roster_for(db, current_user, roster_id, ROSTERS_READ)
    return await merge_service.preview_merge(db, roster_id, data.incoming)


@router.post("/rosters/{roster_id}/merge/apply")
async def apply_merge(
    roster_id: UUID,
    data: ApplyMergeRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_EDIT))],
) -> dict:
    """선택한 병합 항목을 적용합니다.

    Apply the selected additions, removals and updates in one transaction.
    Staff who received added shifts are notified after the commit.
    """
    await get_roster_for(db, current_user, roster_id, ROSTERS_EDIT)
    result, messages = await merge_service.apply_merge(db, roster_id, data, current_user.id)
    await db.commit()
    await notification_service.dispatch(messages)
    return result


# ---------------------------------------------------------------------------
# 감사 로그 — Audit log
# ---------------------------------------------------------------------------

@router.get("/rosters/{roster_id}/audit-log")
async def get_audit_log(
    roster_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_READ))],
    action: Annotated[str | None, Query()] = None,
    limit: Annotated[int | None, Query(ge=1, le=1000)] = None,
    include_snapshots: Annotated[bool, Query()] = False,
) -> list[dict]:
    """로스터 감사 로그 (Audit entries of one roster, newest first)."""
    await get_roster_for(db, current_user, roster_id, ROSTERS_READ)
    return await audit_service.get_audit_log(db, roster_id, action, limit, include_snapshots)


@router.get("/rosters/{roster_id}/snapshot/latest")
async def get_latest_snapshot(
    roster_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ROSTERS_READ))],
) -> dict:
    await get_roster_for(db, current_user, roster_id, ROSTERS_READ)
    return await audit_service.get_latest_snapshot(db, roster_id)
