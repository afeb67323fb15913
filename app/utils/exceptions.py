"""커스텀 HTTP 예외 클래스 모듈.

Custom HTTP exception classes module.
Provides pre-configured HTTPException subclasses for the roster error taxonomy:
validation, forbidden, not-found, duplicate and illegal state transitions.
Services raise these for early exit; the application exception handlers in
``app.main`` turn them into ``{"success": false, "error": ...}`` results.

Usage:
    from app.utils.exceptions import NotFoundError, IllegalStateTransitionError
    raise NotFoundError("Roster not found")
    raise IllegalStateTransitionError("Roster is draft; publish requires approved")
"""

from fastapi import HTTPException, status


class NotFoundError(HTTPException):
    """404 Not Found 예외 — 요청한 리소스를 찾을 수 없을 때 사용.

    404 Not Found exception.
    Raised when a roster, shift, history entry or chain member does not exist.

    Args:
        detail: 오류 메시지 (Error message, default: "Resource not found")
    """

    def __init__(self, detail: str = "Resource not found") -> None:
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class DuplicateError(HTTPException):
    """409 Conflict 예외 — 중복 리소스 생성 시도 시 사용.

    409 Conflict exception.
    Raised when attempting to create a resource that violates a uniqueness constraint.

    Args:
        detail: 오류 메시지 (Error message, default: "Resource already exists")
    """

    def __init__(self, detail: str = "Resource already exists") -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class ForbiddenError(HTTPException):
    """403 Forbidden 예외 — 권한 부족 시 사용.

    403 Forbidden exception.
    Raised when the capability gate rejects the caller (missing capability
    or roster venue outside the caller's venue set).

    Args:
        detail: 오류 메시지 (Error message, default: "Insufficient permissions")
    """

    def __init__(self, detail: str = "Insufficient permissions") -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class UnauthorizedError(HTTPException):
    """401 Unauthorized 예외 — 인증 실패 시 사용.

    401 Unauthorized exception.
    Raised when the bearer token is missing, invalid, or expired.

    Args:
        detail: 오류 메시지 (Error message, default: "Authentication required")
    """

    def __init__(self, detail: str = "Authentication required") -> None:
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class BadRequestError(HTTPException):
    """400 Bad Request 예외 — 잘못된 요청 데이터 시 사용.

    400 Bad Request exception.
    Raised for validation failures beyond what Pydantic catches
    (e.g. end date before start date, malformed "HH:MM" times).

    Args:
        detail: 오류 메시지 (Error message, default: "Bad request")
    """

    def __init__(self, detail: str = "Bad request") -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class IllegalStateTransitionError(HTTPException):
    """409 상태 전이 오류 — 현재 상태에서 허용되지 않는 작업.

    409 Conflict exception for illegal lifecycle transitions
    (publish a draft, revert an archived roster, finalize an empty roster).
    The message names the current and the required status.

    Args:
        detail: 오류 메시지 (Error message)
    """

    def __init__(self, detail: str = "Illegal state transition") -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class RosterNotEditableError(IllegalStateTransitionError):
    """수정 불가 로스터 — DRAFT 상태가 아닌 로스터의 변경 시도.

    Raised when a shift mutation targets a roster that is not DRAFT, or when a
    concurrent writer already moved the roster out of the expected status.
    """

    def __init__(self, current_status: str, action: str = "edit shifts") -> None:
        super().__init__(
            f"Roster is {current_status.lower()}; only draft rosters can {action}. "
            "Revert it to draft first."
        )
        self.current_status: str = current_status
