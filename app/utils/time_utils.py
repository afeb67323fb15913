"""시간/날짜 변환 유틸리티 모듈.

Time and date helper module.
Shift times are local wall-clock values with no timezone conversion:
"HH:MM" strings on the wire and in snapshots, ``datetime.time`` in the database.
"""

from datetime import date, time, timedelta

from app.config import settings
from app.utils.exceptions import BadRequestError


def parse_time(time_str: str | time | None) -> time | None:
    """시간 문자열을 time 객체로 변환합니다.

    Parse an "HH:MM" (or "HH:MM:SS") string to a time object.

    Args:
        time_str: 시간 문자열 또는 time 객체 또는 None (Time string, time, or None)

    Returns:
        time | None: 파싱된 time 객체 또는 None (Parsed time or None)

    Raises:
        BadRequestError: 형식이 잘못된 경우 (Malformed time string)
    """
    if time_str is None or isinstance(time_str, time):
        return time_str
    parts: list[str] = time_str.strip().split(":")
    try:
        return time(int(parts[0]), int(parts[1]))
    except (IndexError, ValueError):
        raise BadRequestError(f"Invalid time '{time_str}', expected HH:MM")


def format_time(t: time | str | None) -> str | None:
    """time 객체를 "HH:MM" 문자열로 변환합니다.

    Format a time object to an "HH:MM" string. Strings pass through normalized.
    """
    if t is None:
        return None
    if isinstance(t, str):
        parsed: time | None = parse_time(t)
        return parsed.strftime("%H:%M") if parsed else None
    return t.strftime("%H:%M")


def time_to_minutes(t: time | str) -> int:
    """자정 기준 분 단위 값 (Minutes since midnight)."""
    parsed: time | None = parse_time(t)
    return parsed.hour * 60 + parsed.minute


def intervals_overlap(start_a: time | str, end_a: time | str, start_b: time | str, end_b: time | str) -> bool:
    """두 시간 구간의 겹침 여부를 판단합니다.

    Half-open interval overlap test for [start_a, end_a) and [start_b, end_b).
    Touching intervals (one ends exactly when the other starts) do not overlap.
    """
    return time_to_minutes(start_a) < time_to_minutes(end_b) and time_to_minutes(end_a) > time_to_minutes(start_b)


def week_start(d: date) -> date:
    """주어진 날짜가 속한 주의 시작일을 반환합니다.

    Return the first day of the week containing ``d``.
    The first weekday comes from ROSTER_WEEK_STARTS_ON (0 = Monday).
    """
    offset: int = (d.weekday() - settings.ROSTER_WEEK_STARTS_ON) % 7
    return d - timedelta(days=offset)


def availability_weekday(d: date) -> int:
    """가용성 레코드용 요일 번호 (0=일요일 … 6=토요일).

    Day-of-week index used by availability records, where 0 is Sunday.
    """
    return (d.weekday() + 1) % 7


def format_date_range(start: date, end: date) -> str:
    """알림 메시지용 기간 문자열 — e.g. "Jun 9 - Jun 15, 2025"."""
    return f"{start.strftime('%b')} {start.day} - {end.strftime('%b')} {end.day}, {end.year}"
