"""
복식부기 (Double-Entry Bookkeeping) 원장

사용자별 계정/거래/통화를 저장하고 잔액과 추이를 계산.

사용 예시:
```python
from core.ledger import EntrySpec, LedgerService

ledger = LedgerService(db)

# 거래 생성 (계정은 이름으로 자동 생성)
tx = await ledger.store.create_transaction(
    owner="user-1",
    date=date(2024, 3, 1),
    payee="Grocer",
    entries=[
        EntrySpec("Expenses:Food", "USD", 500),
        EntrySpec("Assets:Checking", "USD"),  # 금액 자동 계산 (-500)
    ],
)

# 잔액 조회
totals = await ledger.balances.total_by_currency("user-1", "Expenses")

# 월별 누적 추이
points = await ledger.balances.trend("user-1", "Assets", BucketUnit.MONTH)
```
"""

from core.ledger.accounts import AccountDirectory, SubtreePredicate
from core.ledger.balances import BalanceAggregator
from core.ledger.currency import Currency, CurrencyAmount, CurrencyCatalog
from core.ledger.schema import init_ledger_schema
from core.ledger.service import LedgerService, open_ledger
from core.ledger.store import LedgerStore
from core.ledger.types import (
    ACCOUNT_SEPARATOR,
    DEFAULT_CURRENCIES,
    Account,
    BucketUnit,
    EntrySpec,
    PeriodBalance,
    Transaction,
    TransactionCursor,
    TransactionEntry,
    TransactionPage,
    TrendPoint,
)

__all__ = [
    # 핵심 클래스
    "LedgerService",
    "LedgerStore",
    "AccountDirectory",
    "BalanceAggregator",
    "CurrencyCatalog",
    "SubtreePredicate",
    "open_ledger",
    "init_ledger_schema",
    # 값 객체
    "Account",
    "Currency",
    "CurrencyAmount",
    "EntrySpec",
    "PeriodBalance",
    "Transaction",
    "TransactionCursor",
    "TransactionEntry",
    "TransactionPage",
    "TrendPoint",
    # Enum
    "BucketUnit",
    # 상수
    "ACCOUNT_SEPARATOR",
    "DEFAULT_CURRENCIES",
]
