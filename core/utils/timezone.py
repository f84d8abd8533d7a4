"""
타임존 유틸리티

내부 저장: UTC 원칙 준수를 위한 헬퍼 함수.
예산 기간 판정은 posting 시각의 UTC 날짜 기준.
"""

from datetime import date, datetime, time, timedelta, timezone


def now_utc() -> datetime:
    """현재 UTC 시간 반환 (타임존 명시)

    datetime.now(timezone.utc)의 축약형.

    Returns:
        현재 UTC 시간 (tzinfo=timezone.utc)
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """datetime을 UTC로 정규화

    Args:
        dt: datetime 객체 (naive면 UTC로 간주)

    Returns:
        UTC 타임존의 datetime

    Example:
        >>> to_utc(datetime(2026, 10, 18, 9, 0, tzinfo=timezone(timedelta(hours=9)))).hour
        0
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def today_utc() -> date:
    """현재 UTC 날짜"""
    return now_utc().date()


def utc_day_start(day: date) -> datetime:
    """날짜의 UTC 00:00"""
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def utc_day_end_exclusive(day: date) -> datetime:
    """다음 날 UTC 00:00 (구간 끝, 미포함)"""
    return utc_day_start(day + timedelta(days=1))


def format_ts(dt: datetime) -> str:
    """DB 저장용 UTC ISO 문자열 (마이크로초 고정)

    자릿수가 고정되어 문자열 비교 = 시간 비교.

    Example:
        >>> format_ts(datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc))
        '2026-10-18T09:00:00.000000+00:00'
    """
    return to_utc(dt).isoformat(timespec="microseconds")
