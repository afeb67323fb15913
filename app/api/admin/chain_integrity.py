"""관리자 체인 무결성 라우터 — 점검/복구 API (관리자 전용).

Admin Chain Integrity Router — Diagnose and repair the active-version flags
of every version chain. Admin capability only.
"""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import require_permission
from app.database import get_db
from app.models.user import User
from app.services.chain_integrity_service import chain_integrity_service
from app.services.permission_service import ADMIN

router: APIRouter = APIRouter()


@router.get("/diagnose")
async def diagnose_chains(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ADMIN))],
) -> dict:
    """모든 체인 점검 — 읽기 전용 (Report chains whose active flags are wrong)."""
    return await chain_integrity_service.diagnose(db)


@router.post("/repair")
async def repair_chains(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_permission(ADMIN))],
) -> dict:
    """위반 체인 복구.

    Repair every flagged chain so that its highest published version is the
    only active one. Running it again on a repaired database changes nothing.
    """
    result: dict = await chain_integrity_service.repair(db)
    await db.commit()
    return result
