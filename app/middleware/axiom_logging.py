"""Axiom API 로깅 미들웨어.

Axiom API logging middleware.
Ships one structured event per API call to Axiom: method, path, the roster
or chain being acted on, the acting role, status code, duration and, for
failures, the reason from the ``{"success": false, "error": ...}`` envelope.
Sensitive fields are masked and shift lists are summarized by size. When
Axiom is not configured the middleware is a pass-through.
"""

import json
import logging
import re
import time
from typing import Any

from axiom_py import Client as AxiomClient
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.config import settings

logger = logging.getLogger(__name__)

# 마스킹 대상 필드 패턴 — Fields to mask in request bodies
_SENSITIVE_KEYS = re.compile(
    r"(password|secret|token|authorization|api_key|credential)",
    re.IGNORECASE,
)

# 크기만 기록할 목록 필드 — Lists logged by length only (shift payloads can be large)
_SUMMARIZED_KEYS: frozenset[str] = frozenset({
    "shifts", "candidates", "incoming", "shifts_to_add", "shifts_to_update", "shifts_to_remove",
})

# 로깅 제외 경로 — Paths excluded from logging
_SKIP_PATHS: frozenset[str] = frozenset({"/health", "/docs", "/redoc", "/openapi.json"})

# 경로에서 로스터/체인 식별자 추출 — Roster and chain ids embedded in the path
_ROSTER_PATH = re.compile(r"/rosters/([0-9a-fA-F-]{36})")
_CHAIN_PATH = re.compile(r"/chains/([^/]+)")


def _mask_body(data: Any, depth: int = 0) -> Any:
    """민감 필드 마스킹 + 큰 목록 요약 (Mask secrets, summarize large lists)."""
    if depth > 4:
        return "..."
    if isinstance(data, dict):
        masked: dict[str, Any] = {}
        for key, value in data.items():
            if _SENSITIVE_KEYS.search(key):
                masked[key] = "***"
            elif key in _SUMMARIZED_KEYS and isinstance(value, list):
                masked[key] = f"<{len(value)} items>"
            else:
                masked[key] = _mask_body(value, depth + 1)
        return masked
    if isinstance(data, list):
        return [_mask_body(item, depth + 1) for item in data[:20]]
    return data


def _error_reason(body: bytes) -> str:
    """실패 응답 본문에서 사유 추출 (Reason from a failure envelope)."""
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return body.decode("utf-8", errors="replace")[:500]
    if isinstance(payload, dict):
        reason = payload.get("error") or payload.get("detail") or payload
        return str(reason)[:500]
    return str(payload)[:500]


def build_event(
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    query_params: dict[str, str] | None = None,
    request_body: Any = None,
    error: str | None = None,
) -> dict[str, Any]:
    """Axiom 이벤트 구성 (One log event for a finished request)."""
    event: dict[str, Any] = {
        "method": method,
        "path": path,
        "status_code": status_code,
        "duration_ms": duration_ms,
        "outcome": "success" if status_code < 400 else "failure",
    }
    roster_match = _ROSTER_PATH.search(path)
    if roster_match:
        event["roster_id"] = roster_match.group(1)
    chain_match = _CHAIN_PATH.search(path)
    if chain_match:
        event["chain_id"] = chain_match.group(1)
    if query_params:
        event["query_params"] = _mask_body(query_params)
    if request_body is not None:
        event["request_body"] = request_body
    if error:
        event["error"] = error
    return event


class AxiomLoggingMiddleware(BaseHTTPMiddleware):
    """모든 API 요청/응답을 Axiom에 로깅하는 미들웨어.

    Middleware that logs every API request and its outcome to Axiom.
    """

    def __init__(self, app: Any) -> None:
        super().__init__(app)
        self._client: AxiomClient | None = None
        self._dataset: str = settings.AXIOM_DATASET

        if settings.AXIOM_API_TOKEN and settings.AXIOM_DATASET:
            self._client = AxiomClient(token=settings.AXIOM_API_TOKEN)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        # Axiom 미설정 또는 제외 경로 — Pass through
        if self._client is None or request.url.path in _SKIP_PATHS:
            return await call_next(request)

        started: float = time.perf_counter()
        method: str = request.method
        path: str = request.url.path
        query_params: dict[str, str] | None = dict(request.query_params) if request.query_params else None

        request_body: Any = None
        if method in ("POST", "PUT", "PATCH"):
            body_bytes: bytes = await request.body()
            if body_bytes:
                try:
                    request_body = _mask_body(json.loads(body_bytes))
                except (json.JSONDecodeError, UnicodeDecodeError):
                    request_body = "(non-json body)"

        error: str | None = None
        status_code: int = 500
        try:
            response: Response = await call_next(request)
            status_code = response.status_code

            # 실패 응답은 본문을 읽어 사유 기록 후 다시 감쌈 — Read and re-wrap failure bodies
            if status_code >= 400:
                body: bytes = b""
                async for chunk in response.body_iterator:
                    body += chunk if isinstance(chunk, bytes) else chunk.encode("utf-8")
                error = _error_reason(body)
                response = Response(
                    content=body,
                    status_code=status_code,
                    headers=dict(response.headers),
                    media_type=response.media_type,
                )
        except Exception as exc:
            error = f"{type(exc).__name__}: {str(exc)[:300]}"
            raise
        finally:
            event: dict[str, Any] = build_event(
                method,
                path,
                status_code,
                round((time.perf_counter() - started) * 1000, 2),
                query_params=query_params,
                request_body=request_body,
                error=error,
            )
            try:
                self._client.ingest_events(self._dataset, [event])
            except Exception as exc:
                # 로깅 실패는 요청 결과에 영향 없음 — Log shipping never fails the request
                logger.warning("[axiom] failed to ingest event for %s %s: %s", method, path, exc)

        return response
