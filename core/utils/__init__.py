"""
유틸리티 패키지

타임존 처리 등 공통 유틸리티
"""

from core.utils.timezone import (
    ensure_utc,
    from_db_timestamp,
    next_timestamp,
    now_utc,
    to_db_timestamp,
    years_before,
)

__all__ = [
    "ensure_utc",
    "from_db_timestamp",
    "next_timestamp",
    "now_utc",
    "to_db_timestamp",
    "years_before",
]
