"""
복식부기 타입 정의

Ledger 시스템에서 사용하는 Enum, 값 객체, 상수 정의
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum


# 계정 계층 구분자 (예: "Expenses:Food")
ACCOUNT_SEPARATOR = ":"


class BucketUnit(str, Enum):
    """추이 집계 구간 단위

    str을 상속하여 쿼리 파라미터에서 바로 변환 가능.
    """

    DAY = "day"
    WEEK = "week"  # ISO 주 (월요일 시작)
    MONTH = "month"


@dataclass(frozen=True)
class EntrySpec:
    """거래 항목 입력

    amount가 None인 항목이 하나뿐이면 같은 통화의 합이 0이 되도록 자동 계산.
    """

    account_name: str
    currency: str
    amount: int | None = None


@dataclass(frozen=True)
class Account:
    """계정"""

    id: str
    owner: str
    name: str
    created_at: datetime


@dataclass(frozen=True)
class TransactionEntry:
    """거래 항목 (단일 통화, 단일 계정, 부호 있는 최소 단위 금액)"""

    id: str
    transaction_id: str
    order: int
    account_id: str
    account_name: str
    currency: str
    amount: int


@dataclass(frozen=True)
class Transaction:
    """거래 (헤더 + 순서가 보장된 항목 목록)"""

    id: str
    owner: str
    date: date
    payee: str
    notes: str
    created_at: datetime
    updated_at: datetime
    entries: tuple[TransactionEntry, ...] = ()


@dataclass(frozen=True)
class TransactionCursor:
    """거래 목록 키셋 커서 (date DESC, created_at DESC 정렬 기준)"""

    after_date: date
    after_created_at: datetime


@dataclass(frozen=True)
class TransactionPage:
    """거래 목록 한 페이지"""

    transactions: list[Transaction] = field(default_factory=list)
    next_cursor: TransactionCursor | None = None


@dataclass(frozen=True)
class TrendPoint:
    """추이 한 점

    running_total은 해당 구간까지 (조회 기간 이전 포함) 전체 누적 합계.
    """

    bucket_start: date
    currency: str
    minor_units: int
    running_total: int


@dataclass(frozen=True)
class PeriodBalance:
    """구간별 (비누적) 합계"""

    bucket_start: date
    currency: str
    minor_units: int
    amount: int


# 초기 통화 (code, symbol, minor_units)
DEFAULT_CURRENCIES: list[tuple[str, str, int]] = [
    ("USD", "$", 2),
    ("EUR", "€", 2),
    ("GBP", "£", 2),
    ("CAD", "$", 2),
    ("JPY", "¥", 0),
    ("KRW", "₩", 0),
]
