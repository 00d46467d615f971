"""
통화 카탈로그

통화 코드/기호/소수 자릿수 참조 데이터 관리.
금액은 항상 최소 단위 정수로 다룸 (부동소수점 오차 방지).
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from core.errors import (
    ConflictError,
    NotFoundError,
    ReferentialIntegrityError,
    UnknownCurrencyError,
    ValidationError,
)

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)

_INTEGER_RE = re.compile(r"^[+-]?\d+$")


@dataclass(frozen=True)
class Currency:
    """통화

    Args:
        code: 3자리 통화 코드 (예: USD)
        minor_units: 소수 자릿수 (예: USD=2, JPY=0)
        symbol: 표시 기호 (빈 문자열 허용)
    """

    code: str
    minor_units: int
    symbol: str = ""

    def parse_amount(self, raw_amount: str) -> int:
        """문자열 금액을 최소 단위 정수로 변환

        공백과 천 단위 구분자(,)는 무시.

        Example:
            >>> Currency("USD", 2).parse_amount("1,234.5")
            123450
            >>> Currency("USD", 2).parse_amount("-.05")
            -5

        Args:
            raw_amount: 금액 문자열

        Returns:
            amount * 10^minor_units

        Raises:
            ValidationError: 숫자가 아니거나 소수 자릿수를 초과한 경우
        """
        cleaned = raw_amount.replace(",", "").replace(" ", "")

        whole, sep, decimals = cleaned.rpartition(".")
        if not sep:
            whole, decimals = cleaned, ""

        if len(decimals) > self.minor_units:
            raise ValidationError(
                f"{self.code} allows at most {self.minor_units} decimal places, "
                f"got {len(decimals)}",
                {"amount": "too many decimal places"},
            )

        number = whole + decimals.ljust(self.minor_units, "0")
        if whole in ("", "+", "-") and not decimals:
            number = ""

        if not _INTEGER_RE.match(number):
            raise ValidationError(
                f"Invalid amount: {raw_amount!r}",
                {"amount": "invalid number"},
            )

        return int(number)

    def format_amount(self, value: int) -> str:
        """최소 단위 정수를 소수 문자열로 변환

        Example:
            >>> Currency("USD", 2).format_amount(-5)
            '-0.05'
        """
        if self.minor_units == 0:
            return str(value)

        sign = "-" if value < 0 else ""
        digits = str(abs(value)).rjust(self.minor_units + 1, "0")
        return f"{sign}{digits[:-self.minor_units]}.{digits[-self.minor_units:]}"


@dataclass(frozen=True)
class CurrencyAmount:
    """통화와 묶인 금액 (최소 단위)"""

    currency: Currency
    value: int

    @classmethod
    def from_str(cls, currency: Currency, raw_amount: str) -> CurrencyAmount:
        return cls(currency, currency.parse_amount(raw_amount))

    def format_value(self) -> str:
        return self.currency.format_amount(self.value)


def _row_to_currency(row: tuple) -> Currency:
    return Currency(code=row[0], symbol=row[1], minor_units=row[2])


class CurrencyCatalog:
    """통화 카탈로그

    Args:
        db: SQLite 어댑터
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db

    async def get(self, code: str) -> Currency | None:
        """단일 통화 조회 (없으면 None)"""
        row = await self.db.fetchone(
            "SELECT code, symbol, minor_units FROM currency WHERE code = ?",
            (code,),
        )
        return _row_to_currency(row) if row else None

    async def require(self, code: str) -> Currency:
        """단일 통화 조회 (쓰기 경로용)

        Raises:
            UnknownCurrencyError: 카탈로그에 없는 코드 (NotFoundError)
        """
        currency = await self.get(code)
        if currency is None:
            raise UnknownCurrencyError(code)
        return currency

    async def get_many(self, codes: Iterable[str]) -> dict[str, Currency]:
        """여러 통화 조회

        없는 코드는 결과에서 빠짐 (오류 아님).

        Returns:
            code -> Currency
        """
        unique_codes = sorted(set(codes))
        if not unique_codes:
            return {}

        placeholders = ", ".join("?" for _ in unique_codes)
        rows = await self.db.fetchall(
            f"""
            SELECT code, symbol, minor_units FROM currency
            WHERE code IN ({placeholders})
            ORDER BY code
            """,
            tuple(unique_codes),
        )
        return {row[0]: _row_to_currency(row) for row in rows}

    async def list_all(self) -> list[Currency]:
        """전체 통화 목록 (코드 오름차순)"""
        rows = await self.db.fetchall(
            "SELECT code, symbol, minor_units FROM currency ORDER BY code"
        )
        return [_row_to_currency(row) for row in rows]

    async def add(self, currency: Currency) -> Currency:
        """통화 추가

        Raises:
            ValidationError: 코드 형식 또는 소수 자릿수 오류
            ConflictError: 이미 존재하는 코드
        """
        errors: dict[str, str] = {}
        if len(currency.code) != 3:
            errors["code"] = "currency code must be 3 characters"
        if currency.minor_units < 0:
            errors["minor_units"] = "minor units must be non-negative"
        if errors:
            raise ValidationError(f"Invalid currency: {currency.code!r}", errors)

        try:
            async with self.db.transaction():
                await self.db.execute(
                    "INSERT INTO currency (code, symbol, minor_units) VALUES (?, ?, ?)",
                    (currency.code, currency.symbol, currency.minor_units),
                )
        except ConflictError as e:
            raise ConflictError(f"currency already exists: {currency.code}") from e

        logger.info("통화 추가", extra={"code": currency.code})
        return currency

    async def delete(self, code: str) -> None:
        """통화 삭제

        Raises:
            NotFoundError: 없는 코드
            ReferentialIntegrityError: 거래 항목이 참조 중인 통화
        """
        try:
            async with self.db.transaction():
                cursor = await self.db.execute(
                    "DELETE FROM currency WHERE code = ?", (code,)
                )
                if cursor.rowcount == 0:
                    raise NotFoundError("currency", code)
        except ReferentialIntegrityError as e:
            raise ReferentialIntegrityError(
                f"currency {code} is referenced by transaction entries"
            ) from e

        logger.info("통화 삭제", extra={"code": code})
