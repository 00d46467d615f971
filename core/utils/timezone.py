"""
타임존 유틸리티

내부 저장: UTC 원칙 준수를 위한 헬퍼 함수.
DB에는 마이크로초 정밀도의 ISO-8601 문자열로 저장.
"""

from datetime import date, datetime, timedelta, timezone


def now_utc() -> datetime:
    """현재 UTC 시간 반환 (타임존 명시)

    datetime.now(timezone.utc)의 축약형.

    Returns:
        현재 UTC 시간 (tzinfo=timezone.utc)
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """datetime을 UTC로 정규화 (naive면 UTC로 간주)"""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_db_timestamp(dt: datetime) -> str:
    """datetime을 DB 저장용 문자열로 변환

    문자열 정렬 순서가 시간 순서와 일치하도록 항상 UTC, 마이크로초 고정 폭.

    Example:
        >>> to_db_timestamp(datetime(2024, 2, 20, 16, 0, tzinfo=timezone.utc))
        '2024-02-20T16:00:00.000000+00:00'
    """
    return ensure_utc(dt).isoformat(timespec="microseconds")


def from_db_timestamp(value: str) -> datetime:
    """DB 저장 문자열을 UTC datetime으로 변환"""
    return ensure_utc(datetime.fromisoformat(value))


def next_timestamp(now: datetime, previous: datetime | None) -> datetime:
    """단조 증가하는 타임스탬프 반환

    시계 해상도가 낮거나 역행하더라도 이전 값보다 최소 1µs 뒤를 보장.

    Args:
        now: 현재 시각
        previous: 직전에 기록된 시각 (없으면 None)

    Returns:
        max(now, previous + 1µs)
    """
    now = ensure_utc(now)
    if previous is None:
        return now
    floor = ensure_utc(previous) + timedelta(microseconds=1)
    return now if now > floor else floor


def years_before(day: date, years: int = 1) -> date:
    """N년 전 같은 날짜 (2월 29일은 2월 28일로 보정)"""
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        return day.replace(year=day.year - years, day=28)
