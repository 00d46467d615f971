"""
잔액 집계

계정 하위 트리 기준 통화별 잔액과 구간별 누적 추이 계산.
읽기 전용이며 커밋된 데이터만 조회 (읽기 전용 어댑터 사용 가능).

추이 계산 순서:
1. SQL: 거래일 x 통화 단위 합계
2. Python: 거래일을 구간 시작일로 절삭 후 구간별 합산
3. 통화별로 구간 오름차순 누적 합계
4. 누적 계산이 끝난 뒤 최근 1년 구간만 남김 (누적 기준은 전체 이력)
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable, Mapping
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Any

from core.constants import Defaults
from core.ledger.accounts import SubtreePredicate
from core.ledger.currency import CurrencyAmount, CurrencyCatalog
from core.ledger.types import BucketUnit, PeriodBalance, TrendPoint
from core.utils.timezone import now_utc, years_before

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


def truncate_date(day: date, unit: BucketUnit | str) -> date:
    """날짜를 구간 시작일로 절삭

    - day: 그대로
    - week: 해당 ISO 주의 월요일
    - month: 해당 월 1일
    """
    unit = BucketUnit(unit)
    if unit == BucketUnit.DAY:
        return day
    if unit == BucketUnit.WEEK:
        return day - timedelta(days=day.weekday())
    return day.replace(day=1)


def window_start(today: date, unit: BucketUnit | str) -> date:
    """조회 기간 시작 구간 (오늘로부터 1년 전을 같은 단위로 절삭)"""
    return truncate_date(years_before(today, Defaults.LOOKBACK_YEARS), unit)


def bucket_contributions(
    rows: list[tuple[Any, ...]],
    unit: BucketUnit | str,
) -> tuple[dict[tuple[date, str], int], dict[str, int]]:
    """(거래일, 통화, 소수 자릿수, 합계) 행을 구간별 합계로 변환

    Returns:
        ((구간 시작일, 통화) -> 합계, 통화 -> 소수 자릿수)
    """
    sums: dict[tuple[date, str], int] = defaultdict(int)
    minor_units: dict[str, int] = {}
    for raw_date, currency, units, amount in rows:
        day = raw_date if isinstance(raw_date, date) else date.fromisoformat(raw_date)
        sums[(truncate_date(day, unit), currency)] += amount
        minor_units[currency] = units
    return dict(sums), minor_units


def fold_running_totals(
    contributions: Mapping[tuple[date, str], int],
    minor_units: Mapping[str, int],
) -> list[TrendPoint]:
    """구간별 합계를 통화별 누적 합계로 변환

    입력에 있는 (구간, 통화) 조합만 출력 (빈 구간은 만들지 않음).

    Returns:
        구간 오름차순, 같은 구간 내 통화 오름차순
    """
    running: dict[str, int] = defaultdict(int)
    points: list[TrendPoint] = []
    for (bucket, currency) in sorted(contributions):
        running[currency] += contributions[(bucket, currency)]
        points.append(TrendPoint(
            bucket_start=bucket,
            currency=currency,
            minor_units=minor_units.get(currency, 0),
            running_total=running[currency],
        ))
    return points


class BalanceAggregator:
    """잔액/추이 집계기

    Args:
        db: SQLite 어댑터 (읽기 전용 가능)
        currencies: 통화 카탈로그 (None이면 같은 db로 생성)
        clock: 현재 시각 함수
    """

    def __init__(
        self,
        db: SQLiteAdapter,
        currencies: CurrencyCatalog | None = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.db = db
        self.currencies = currencies or CurrencyCatalog(db)
        self.clock = clock

    @staticmethod
    def _subtree(
        owner: str,
        account_subtree: SubtreePredicate | str | None,
    ) -> tuple[str, tuple[Any, ...]]:
        if account_subtree is None:
            return "a.owner = ?", (owner,)
        if isinstance(account_subtree, str):
            account_subtree = SubtreePredicate(owner, account_subtree)
        return account_subtree.sql("a")

    async def total_by_currency(
        self,
        owner: str,
        account_subtree: SubtreePredicate | str | None = None,
    ) -> dict[str, int]:
        """통화별 합계

        Args:
            owner: 소유자
            account_subtree: 하위 트리 (계정 이름 또는 조건, None이면 전체 원장)

        Returns:
            통화 -> 부호 있는 합계 (통화 오름차순, 항목 없는 통화 제외)
        """
        clause, params = self._subtree(owner, account_subtree)
        rows = await self.db.fetchall(
            f"""
            SELECT e.currency, SUM(e.amount)
            FROM transaction_entry e
            JOIN account a ON a.id = e.account_id
            JOIN "transaction" t ON t.id = e.transaction_id
            WHERE t.owner = ? AND {clause}
            GROUP BY e.currency
            ORDER BY e.currency
            """,
            (owner, *params),
        )
        return {row[0]: row[1] for row in rows}

    async def get_account_balance(
        self,
        owner: str,
        account_subtree: SubtreePredicate | str | None = None,
    ) -> list[CurrencyAmount]:
        """통화별 합계를 표시용 금액으로 반환"""
        totals = await self.total_by_currency(owner, account_subtree)
        currencies = await self.currencies.get_many(totals)
        return [
            CurrencyAmount(currencies[code], value)
            for code, value in totals.items()
            if code in currencies
        ]

    async def _daily_rows(
        self,
        owner: str,
        account_subtree: SubtreePredicate | str | None,
    ) -> list[tuple[Any, ...]]:
        clause, params = self._subtree(owner, account_subtree)
        return await self.db.fetchall(
            f"""
            SELECT t.date, e.currency, c.minor_units, SUM(e.amount)
            FROM transaction_entry e
            JOIN account a ON a.id = e.account_id
            JOIN "transaction" t ON t.id = e.transaction_id
            JOIN currency c ON c.code = e.currency
            WHERE t.owner = ? AND {clause}
            GROUP BY t.date, e.currency
            """,
            (owner, *params),
        )

    async def trend(
        self,
        owner: str,
        account_subtree: SubtreePredicate | str | None,
        bucket_unit: BucketUnit | str,
    ) -> list[TrendPoint]:
        """구간별 누적 잔액 추이

        조회 기간은 최근 1년 고정 (변경 불가).
        running_total은 기간 이전 이력까지 포함한 누적값.

        Args:
            owner: 소유자
            account_subtree: 하위 트리
            bucket_unit: day / week / month

        Returns:
            TrendPoint 목록 (구간 오름차순, 통화 오름차순)
        """
        unit = BucketUnit(bucket_unit)
        rows = await self._daily_rows(owner, account_subtree)

        contributions, minor_units = bucket_contributions(rows, unit)
        points = fold_running_totals(contributions, minor_units)

        start = window_start(self.clock().date(), unit)
        visible = [p for p in points if p.bucket_start >= start]

        logger.debug(
            "추이 계산",
            extra={
                "owner": owner,
                "unit": unit.value,
                "buckets": len(points),
                "visible": len(visible),
            },
        )
        return visible

    async def monthly_balance(
        self,
        owner: str,
        account_subtree: SubtreePredicate | str | None,
    ) -> list[PeriodBalance]:
        """최근 1년 월별 합계 (비누적)

        Returns:
            PeriodBalance 목록 (월 오름차순, 통화 오름차순)
        """
        rows = await self._daily_rows(owner, account_subtree)
        contributions, minor_units = bucket_contributions(rows, BucketUnit.MONTH)

        start = window_start(self.clock().date(), BucketUnit.MONTH)
        return [
            PeriodBalance(
                bucket_start=bucket,
                currency=currency,
                minor_units=minor_units[currency],
                amount=contributions[(bucket, currency)],
            )
            for (bucket, currency) in sorted(contributions)
            if bucket >= start
        ]
