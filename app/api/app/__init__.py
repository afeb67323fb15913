"""앱 API 라우터 패키지 — 모든 앱(직원용) 엔드포인트 통합.

App API Router package — Aggregates all app-facing (employee) endpoints
into a single router for inclusion in the FastAPI application.

Included routers:
    - my_rosters: 내 근무 및 알림 (My published shifts and notifications)
"""

from fastapi import APIRouter

from app.api.app.my_rosters import router as my_rosters_router

app_router: APIRouter = APIRouter()

# 내 근무/알림: /my 하위 (My shifts and notifications)
app_router.include_router(my_rosters_router, prefix="/my", tags=["My Rosters"])
