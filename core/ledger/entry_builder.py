"""
거래 항목 검증/보정

저장 전에 거래 입력을 검증하고, 금액이 빠진 항목 하나를 자동으로 채움.
복식부기 규칙: 거래 내 통화별 금액 합계 = 0
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import replace

from core.errors import ValidationError
from core.ledger.accounts import validate_account_name
from core.ledger.types import EntrySpec

logger = logging.getLogger(__name__)

CURRENCY_CODE_LENGTH = 3
# SQLite INTEGER (부호 있는 64비트) 범위
AMOUNT_LIMIT = 2**63


def sum_by_currency(entries: Sequence[EntrySpec]) -> dict[str, int]:
    """통화별 금액 합계 (금액 없는 항목 제외)"""
    sums: dict[str, int] = defaultdict(int)
    for entry in entries:
        if entry.amount is not None:
            sums[entry.currency] += entry.amount
    return dict(sums)


def try_balance(entries: Sequence[EntrySpec]) -> list[EntrySpec]:
    """금액이 빠진 항목을 채워 균형 맞추기

    금액이 없는 항목은 최대 1개.
    해당 항목의 통화만 불균형일 때 그 통화 합계의 반대값으로 채움.

    Args:
        entries: 입력 항목

    Returns:
        모든 금액이 채워진 항목 (입력 순서 유지)

    Raises:
        ValidationError: 채울 수 없거나 통화별 합계가 0이 아닌 경우
    """
    missing = [i for i, entry in enumerate(entries) if entry.amount is None]
    if len(missing) > 1:
        raise ValidationError(
            "Only one entry may omit its amount",
            {"entries": "multiple entries without amount"},
        )

    sums = sum_by_currency(entries)
    result = list(entries)

    if missing:
        index = missing[0]
        currency = entries[index].currency
        others = {c: s for c, s in sums.items() if s != 0 and c != currency}
        if others:
            raise ValidationError(
                "Cannot infer amount while other currencies are unbalanced",
                {f"entries.{c}": f"unbalanced by {s}" for c, s in sorted(others.items())},
            )
        amount = -sums.get(currency, 0)
        if abs(amount) >= AMOUNT_LIMIT:
            raise ValidationError(
                "Inferred amount is out of range",
                {f"entries[{index}].amount": "amount out of 64-bit range"},
            )
        result[index] = replace(entries[index], amount=amount)
        logger.debug(
            "누락 금액 자동 계산",
            extra={"order": index, "currency": currency, "amount": result[index].amount},
        )
        return result

    unbalanced = {c: s for c, s in sums.items() if s != 0}
    if unbalanced:
        raise ValidationError(
            "Entries do not balance",
            {f"entries.{c}": f"unbalanced by {s}" for c, s in sorted(unbalanced.items())},
        )
    return result


def _payee_errors(payee: str) -> dict[str, str]:
    if not payee or not payee.strip():
        return {"payee": "payee is required"}
    return {}


def _entry_errors(entries: Sequence[EntrySpec]) -> dict[str, str]:
    errors: dict[str, str] = {}

    if not entries:
        errors["entries"] = "at least one entry is required"

    for i, entry in enumerate(entries):
        try:
            validate_account_name(entry.account_name)
        except ValidationError as e:
            errors[f"entries[{i}].account"] = e.errors.get("account", str(e))
        if not entry.currency or len(entry.currency) != CURRENCY_CODE_LENGTH:
            errors[f"entries[{i}].currency"] = "currency code must be 3 characters"
        if entry.amount is not None and (
            not isinstance(entry.amount, int) or isinstance(entry.amount, bool)
        ):
            errors[f"entries[{i}].amount"] = "amount must be an integer in minor units"
        elif entry.amount is not None and abs(entry.amount) >= AMOUNT_LIMIT:
            errors[f"entries[{i}].amount"] = "amount out of 64-bit range"

    return errors


def validate_payee(payee: str) -> None:
    """거래처 검증

    Raises:
        ValidationError: 빈 거래처
    """
    errors = _payee_errors(payee)
    if errors:
        raise ValidationError("Invalid transaction", errors)


def validate_entries(entries: Sequence[EntrySpec]) -> list[EntrySpec]:
    """거래 항목 검증 및 보정

    - 항목 1개 이상
    - 항목별 계정 이름, 통화 코드(3자리), 금액(64비트 범위 정수) 확인
    - 통화별 합계 0 (필요 시 자동 보정)

    Returns:
        금액이 모두 채워진 항목

    Raises:
        ValidationError: 검증 실패 (errors에 필드별 사유)
    """
    errors = _entry_errors(entries)
    if errors:
        raise ValidationError("Invalid transaction", errors)
    return try_balance(entries)


def validate_transaction(payee: str, entries: Sequence[EntrySpec]) -> list[EntrySpec]:
    """신규 거래 입력 검증 (거래처 + 항목)

    필드 오류는 한 번에 모아서 보고.

    Returns:
        금액이 모두 채워진 항목

    Raises:
        ValidationError: 검증 실패
    """
    errors = {**_payee_errors(payee), **_entry_errors(entries)}
    if errors:
        raise ValidationError("Invalid transaction", errors)
    return try_balance(entries)
