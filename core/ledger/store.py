"""
Ledger 저장소

거래(헤더)와 항목을 하나의 단위로 저장 및 조회.
모든 쓰기는 단일 트랜잭션 안에서 수행되어 부분 상태가 보이지 않음.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from datetime import date, datetime
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from core.constants import Defaults
from core.errors import NotFoundError, UnknownCurrencyError
from core.ledger.accounts import AccountDirectory, SubtreePredicate
from core.ledger.currency import CurrencyCatalog
from core.ledger.entry_builder import (
    validate_entries,
    validate_payee,
    validate_transaction,
)
from core.ledger.types import (
    EntrySpec,
    Transaction,
    TransactionCursor,
    TransactionEntry,
    TransactionPage,
)
from core.utils.timezone import (
    from_db_timestamp,
    next_timestamp,
    now_utc,
    to_db_timestamp,
)

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)

# SQLite 바인딩 변수 개수 제한 대비 IN 절 분할 크기
_IN_CHUNK_SIZE = 500

_TRANSACTION_COLUMNS = "t.id, t.owner, t.date, t.payee, t.notes, t.created_at, t.updated_at"


def _chunks(values: Sequence[str], size: int = _IN_CHUNK_SIZE) -> Iterable[Sequence[str]]:
    for start in range(0, len(values), size):
        yield values[start:start + size]


def _row_to_entry(row: tuple) -> TransactionEntry:
    return TransactionEntry(
        id=row[0],
        transaction_id=row[1],
        order=row[2],
        account_id=row[3],
        account_name=row[4],
        currency=row[5],
        amount=row[6],
    )


def _row_to_transaction(
    row: tuple,
    entries: Sequence[TransactionEntry] = (),
) -> Transaction:
    return Transaction(
        id=row[0],
        owner=row[1],
        date=date.fromisoformat(row[2]),
        payee=row[3],
        notes=row[4],
        created_at=from_db_timestamp(row[5]),
        updated_at=from_db_timestamp(row[6]),
        entries=tuple(entries),
    )


class LedgerStore:
    """Ledger 저장소

    거래와 항목의 유일한 소유자.
    생성/수정/삭제는 항상 하나의 원자적 단위로 실행.

    Args:
        db: SQLite 어댑터
        accounts: 계정 디렉토리 (None이면 같은 db로 생성)
        currencies: 통화 카탈로그 (None이면 같은 db로 생성)
        clock: 현재 시각 함수
        id_factory: 신규 ID 생성 함수
    """

    def __init__(
        self,
        db: SQLiteAdapter,
        accounts: AccountDirectory | None = None,
        currencies: CurrencyCatalog | None = None,
        clock: Callable[[], datetime] = now_utc,
        id_factory: Callable[[], str] = lambda: str(uuid4()),
    ):
        self.db = db
        self.clock = clock
        self.id_factory = id_factory
        self.accounts = accounts or AccountDirectory(db, clock, id_factory)
        self.currencies = currencies or CurrencyCatalog(db)

    # -------------------------------------------------------------------------
    # 쓰기
    # -------------------------------------------------------------------------

    async def create_transaction(
        self,
        owner: str,
        date: date,
        payee: str,
        entries: Sequence[EntrySpec],
        notes: str = "",
    ) -> Transaction:
        """거래 생성

        항목의 계정은 이름으로 조회/생성되고, order는 목록 위치(0부터).

        Args:
            owner: 소유자
            date: 거래일
            payee: 거래처
            entries: 항목 목록
            notes: 메모

        Returns:
            항목이 채워진 Transaction

        Raises:
            ValidationError: 빈 항목, 통화별 합계 불일치 등
            UnknownCurrencyError: 카탈로그에 없는 통화 (NotFoundError)
        """
        resolved = validate_transaction(payee, entries)

        async with self.db.transaction():
            await self._require_currencies(resolved)

            transaction_id = self.id_factory()
            timestamp = to_db_timestamp(self.clock())
            await self.db.execute(
                """
                INSERT INTO "transaction" (
                    id, owner, date, payee, notes, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (transaction_id, owner, date.isoformat(), payee, notes, timestamp, timestamp),
            )
            await self._insert_entries(owner, transaction_id, resolved)

            transaction = await self._load(owner, transaction_id)

        logger.info(
            "거래 생성",
            extra={
                "owner": owner,
                "transaction_id": transaction_id,
                "entries": len(resolved),
            },
        )
        return transaction

    async def update_transaction(
        self,
        owner: str,
        transaction_id: str,
        *,
        date: date | None = None,
        payee: str | None = None,
        notes: str | None = None,
        entries: Sequence[EntrySpec] | None = None,
    ) -> Transaction:
        """거래 수정 (전체 교체)

        entries가 주어지면 기존 항목을 모두 삭제하고 새 목록으로 교체.
        변경 필드와 무관하게 updated_at은 항상 증가.

        Args:
            owner: 소유자
            transaction_id: 거래 ID
            date: 새 거래일 (None이면 유지)
            payee: 새 거래처 (None이면 유지)
            notes: 새 메모 (None이면 유지)
            entries: 교체할 항목 목록 (None이면 유지)

        Returns:
            수정된 Transaction

        Raises:
            NotFoundError: 해당 소유자의 거래가 없음
            ValidationError: 입력 검증 실패
        """
        if payee is not None:
            validate_payee(payee)
        resolved = validate_entries(entries) if entries is not None else None

        async with self.db.transaction():
            row = await self.db.fetchone(
                'SELECT updated_at FROM "transaction" WHERE id = ? AND owner = ?',
                (transaction_id, owner),
            )
            if row is None:
                raise NotFoundError("transaction", transaction_id)

            if resolved is not None:
                await self._require_currencies(resolved)

            updated_at = next_timestamp(self.clock(), from_db_timestamp(row[0]))
            await self.db.execute(
                """
                UPDATE "transaction" SET
                    date = COALESCE(?, date),
                    payee = COALESCE(?, payee),
                    notes = COALESCE(?, notes),
                    updated_at = ?
                WHERE id = ? AND owner = ?
                """,
                (
                    date.isoformat() if date is not None else None,
                    payee,
                    notes,
                    to_db_timestamp(updated_at),
                    transaction_id,
                    owner,
                ),
            )

            if resolved is not None:
                await self.db.execute(
                    "DELETE FROM transaction_entry WHERE transaction_id = ?",
                    (transaction_id,),
                )
                await self._insert_entries(owner, transaction_id, resolved)

            transaction = await self._load(owner, transaction_id)

        logger.info(
            "거래 수정",
            extra={
                "owner": owner,
                "transaction_id": transaction_id,
                "replaced_entries": resolved is not None,
            },
        )
        return transaction

    async def delete_transaction(self, owner: str, transaction_id: str) -> None:
        """거래 삭제 (항목은 CASCADE로 함께 삭제)

        Raises:
            NotFoundError: 해당 소유자의 거래가 없음 (두 번째 삭제 포함)
        """
        async with self.db.transaction():
            cursor = await self.db.execute(
                'DELETE FROM "transaction" WHERE id = ? AND owner = ?',
                (transaction_id, owner),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("transaction", transaction_id)

        logger.info(
            "거래 삭제",
            extra={"owner": owner, "transaction_id": transaction_id},
        )

    async def _require_currencies(self, entries: Sequence[EntrySpec]) -> None:
        codes = {entry.currency for entry in entries}
        found = await self.currencies.get_many(codes)
        missing = sorted(codes - found.keys())
        if missing:
            raise UnknownCurrencyError(missing[0])

    async def _insert_entries(
        self,
        owner: str,
        transaction_id: str,
        entries: Sequence[EntrySpec],
    ) -> None:
        account_ids: dict[str, str] = {}
        rows: list[tuple[Any, ...]] = []

        for order, entry in enumerate(entries):
            if entry.account_name not in account_ids:
                account_ids[entry.account_name] = await self.accounts.get_or_create(
                    owner, entry.account_name
                )
            rows.append((
                self.id_factory(),
                transaction_id,
                order,
                account_ids[entry.account_name],
                entry.currency,
                entry.amount,
            ))

        await self.db.executemany(
            """
            INSERT INTO transaction_entry (
                id, transaction_id, "order", account_id, currency, amount
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            rows,
        )

    # -------------------------------------------------------------------------
    # 조회
    # -------------------------------------------------------------------------

    async def get_transaction(self, owner: str, transaction_id: str) -> Transaction | None:
        """거래 단건 조회 (없으면 None)"""
        return await self._load(owner, transaction_id)

    async def require_transaction(self, owner: str, transaction_id: str) -> Transaction:
        """거래 단건 조회

        Raises:
            NotFoundError: 없거나 다른 소유자의 거래
        """
        transaction = await self._load(owner, transaction_id)
        if transaction is None:
            raise NotFoundError("transaction", transaction_id)
        return transaction

    async def _load(self, owner: str, transaction_id: str) -> Transaction | None:
        row = await self.db.fetchone(
            f"""
            SELECT {_TRANSACTION_COLUMNS}
            FROM "transaction" t
            WHERE t.id = ? AND t.owner = ?
            """,
            (transaction_id, owner),
        )
        if row is None:
            return None

        entries = await self.fetch_entries([transaction_id])
        return _row_to_transaction(row, entries.get(transaction_id, ()))

    async def get_transactions(
        self,
        owner: str,
        transaction_ids: Iterable[str],
    ) -> list[Transaction]:
        """거래 일괄 조회

        Returns:
            요청 순서대로 정렬, 없거나 다른 소유자의 거래는 제외
        """
        ids = list(dict.fromkeys(transaction_ids))
        if not ids:
            return []

        headers: dict[str, tuple] = {}
        for chunk in _chunks(ids):
            placeholders = ", ".join("?" for _ in chunk)
            rows = await self.db.fetchall(
                f"""
                SELECT {_TRANSACTION_COLUMNS}
                FROM "transaction" t
                WHERE t.owner = ? AND t.id IN ({placeholders})
                """,
                (owner, *chunk),
            )
            headers.update((row[0], row) for row in rows)

        found_ids = [i for i in ids if i in headers]
        entries = await self.fetch_entries(found_ids)
        return [
            _row_to_transaction(headers[i], entries.get(i, ()))
            for i in found_ids
        ]

    async def fetch_entries(
        self,
        transaction_ids: Sequence[str],
    ) -> dict[str, list[TransactionEntry]]:
        """여러 거래의 항목 일괄 조회

        여러 거래의 행이 섞여 오더라도 거래별로 order 오름차순 유지.

        Returns:
            transaction_id -> 항목 목록 (항목이 없는 거래는 키 없음)
        """
        result: dict[str, list[TransactionEntry]] = {}

        for chunk in _chunks(list(transaction_ids)):
            placeholders = ", ".join("?" for _ in chunk)
            rows = await self.db.fetchall(
                f"""
                SELECT e.id, e.transaction_id, e."order", e.account_id,
                       a.name, e.currency, e.amount
                FROM transaction_entry e
                JOIN account a ON a.id = e.account_id
                WHERE e.transaction_id IN ({placeholders})
                ORDER BY e.transaction_id, e."order"
                """,
                tuple(chunk),
            )
            for row in rows:
                entry = _row_to_entry(row)
                result.setdefault(entry.transaction_id, []).append(entry)

        for entries in result.values():
            entries.sort(key=lambda e: e.order)
        return result

    async def list_transactions(
        self,
        owner: str,
        after: TransactionCursor | None = None,
        account: SubtreePredicate | None = None,
        page_size: int = Defaults.TRANSACTION_PAGE_SIZE,
    ) -> TransactionPage:
        """거래 목록 (최신순, 키셋 페이지네이션)

        Args:
            owner: 소유자
            after: 이전 페이지의 next_cursor
            account: 계정 하위 트리 필터 (항목 중 하나라도 일치하면 포함)
            page_size: 페이지 크기

        Returns:
            TransactionPage (마지막 페이지면 next_cursor=None)
        """
        sql = f"""
            SELECT {_TRANSACTION_COLUMNS}
            FROM "transaction" t
            WHERE t.owner = ?
        """
        params: list[Any] = [owner]

        if account is not None:
            clause, clause_params = account.sql("a")
            sql += f"""
                AND EXISTS (
                    SELECT 1 FROM transaction_entry e
                    JOIN account a ON a.id = e.account_id
                    WHERE e.transaction_id = t.id AND {clause}
                )
            """
            params.extend(clause_params)

        if after is not None:
            after_date = after.after_date.isoformat()
            sql += " AND (t.date < ? OR (t.date = ? AND t.created_at < ?))"
            params.extend([after_date, after_date, to_db_timestamp(after.after_created_at)])

        sql += " ORDER BY t.date DESC, t.created_at DESC LIMIT ?"
        params.append(page_size + 1)

        rows = await self.db.fetchall(sql, tuple(params))
        has_more = len(rows) > page_size
        rows = rows[:page_size]

        entries = await self.fetch_entries([row[0] for row in rows])
        transactions = [
            _row_to_transaction(row, entries.get(row[0], ())) for row in rows
        ]

        next_cursor = None
        if has_more and transactions:
            last = transactions[-1]
            next_cursor = TransactionCursor(
                after_date=last.date,
                after_created_at=last.created_at,
            )

        return TransactionPage(transactions=transactions, next_cursor=next_cursor)
