"""관리자 API 라우터 패키지 — 모든 관리자 엔드포인트 통합.

Admin API Router package — Aggregates all admin-facing endpoints
into a single router for inclusion in the FastAPI application.

Included routers:
    - rosters: 로스터 CRUD, 상태 전이, 가져오기 (Roster CRUD, lifecycle, import)
    - shifts: 로스터 근무 관리 (Shifts nested under rosters)
    - versions: 버전 체인, 비교, 롤백, 병합, 감사 로그
      (Version chains, comparison, rollback, merge, audit log)
    - chain_integrity: 체인 무결성 점검/복구 (Chain integrity diagnose/repair)
"""

from fastapi import APIRouter

from app.api.admin.chain_integrity import router as chain_integrity_router
from app.api.admin.rosters import router as rosters_router
from app.api.admin.shifts import router as shifts_router
from app.api.admin.versions import router as versions_router

admin_router: APIRouter = APIRouter()

# 로스터: /rosters 하위 (Roster CRUD and lifecycle)
admin_router.include_router(rosters_router, prefix="/rosters", tags=["Rosters"])
# 근무: /rosters/{roster_id}/shifts 형태 (nested under rosters)
admin_router.include_router(shifts_router, tags=["Roster Shifts"])
# 버전: /chains, /versions, /rosters/{roster_id}/... 형태 (Version surface)
admin_router.include_router(versions_router, tags=["Roster Versions"])
# 체인 무결성: /chain-integrity 하위 (Admin diagnostics)
admin_router.include_router(chain_integrity_router, prefix="/chain-integrity", tags=["Chain Integrity"])
