"""
복식부기 스키마 초기화

시작 시 자동으로 Ledger 테이블과 인덱스 생성.
CREATE IF NOT EXISTS 패턴으로 안전하게 동작.

updated_at은 트리거가 아니라 LedgerStore가 매 쓰기마다 직접 갱신.
"""

import logging
from typing import TYPE_CHECKING

from core.ledger.types import DEFAULT_CURRENCIES

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


async def init_ledger_schema(db: "SQLiteAdapter") -> None:
    """Ledger 스키마 초기화 (테이블 + 인덱스 + 기본 통화)

    이미 존재하는 경우 안전하게 건너뜀 (IF NOT EXISTS).

    Args:
        db: SQLiteAdapter 인스턴스
    """
    async with db.transaction():
        await _create_ledger_tables(db)
        await _create_ledger_indexes(db)
        await _insert_default_currencies(db)
    logger.info("Ledger 스키마 초기화 완료")


async def _create_ledger_tables(db: "SQLiteAdapter") -> None:
    """Ledger 테이블 생성"""

    # currency 테이블
    await db.execute("""
        CREATE TABLE IF NOT EXISTS currency (
            code             TEXT PRIMARY KEY,
            symbol           TEXT NOT NULL DEFAULT '',
            minor_units      INTEGER NOT NULL CHECK (minor_units >= 0)
        )
    """)

    # account 테이블 (owner + name 유일)
    await db.execute("""
        CREATE TABLE IF NOT EXISTS account (
            id               TEXT PRIMARY KEY,
            owner            TEXT NOT NULL,
            name             TEXT NOT NULL,
            created_at       TEXT NOT NULL,
            UNIQUE (owner, name)
        )
    """)

    # transaction 테이블
    await db.execute("""
        CREATE TABLE IF NOT EXISTS "transaction" (
            id               TEXT PRIMARY KEY,
            owner            TEXT NOT NULL,
            date             TEXT NOT NULL,
            payee            TEXT NOT NULL,
            notes            TEXT NOT NULL DEFAULT '',
            created_at       TEXT NOT NULL,
            updated_at       TEXT NOT NULL
        )
    """)

    # transaction_entry 테이블
    await db.execute("""
        CREATE TABLE IF NOT EXISTS transaction_entry (
            id               TEXT PRIMARY KEY,
            transaction_id   TEXT NOT NULL
                REFERENCES "transaction"(id) ON DELETE CASCADE,
            "order"          INTEGER NOT NULL CHECK ("order" >= 0),
            account_id       TEXT NOT NULL
                REFERENCES account(id) ON DELETE RESTRICT,
            currency         TEXT NOT NULL
                REFERENCES currency(code) ON DELETE RESTRICT,
            amount           INTEGER NOT NULL,
            UNIQUE (transaction_id, "order")
        )
    """)


async def _create_ledger_indexes(db: "SQLiteAdapter") -> None:
    """인덱스 생성"""

    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_account_name
        ON account(name)
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_transaction_owner_date
        ON "transaction"(owner, date DESC, created_at DESC)
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_transaction_entry_account
        ON transaction_entry(account_id)
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_transaction_entry_currency
        ON transaction_entry(currency)
    """)


async def _insert_default_currencies(db: "SQLiteAdapter") -> None:
    """기본 통화 삽입 (이미 있으면 무시)"""
    await db.executemany(
        """
        INSERT OR IGNORE INTO currency (code, symbol, minor_units)
        VALUES (?, ?, ?)
        """,
        DEFAULT_CURRENCIES,
    )
