"""
유틸리티 패키지

타임존 처리 등 공통 유틸리티
"""

from core.utils.timezone import (
    format_ts,
    now_utc,
    to_utc,
    today_utc,
    utc_day_end_exclusive,
    utc_day_start,
)

__all__ = [
    "format_ts",
    "now_utc",
    "to_utc",
    "today_utc",
    "utc_day_end_exclusive",
    "utc_day_start",
]
