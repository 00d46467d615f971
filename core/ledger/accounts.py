"""
계정 디렉토리

사용자별 계층형 계정 네임스페이스 관리.
계층은 이름의 ":" 접두사 규칙으로만 결정됨 (부모 포인터 없음).

예: "Expenses" 하위 트리 = "Expenses", "Expenses:Food", "Expenses:Food:Lunch"
    ("ExpensesOther"는 포함되지 않음)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from core.constants import Defaults
from core.errors import ConflictError, NotFoundError, ValidationError
from core.ledger.types import ACCOUNT_SEPARATOR, Account
from core.utils.timezone import (
    from_db_timestamp,
    now_utc,
    to_db_timestamp,
    years_before,
)

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


def validate_account_name(name: str) -> None:
    """계정 이름 검증

    빈 이름, 빈 계층 구간("Expenses::Food", ":Food", "Food:")은 거부.

    Raises:
        ValidationError: 유효하지 않은 이름
    """
    if not name or not name.strip():
        raise ValidationError("Account name is required", {"account": "empty name"})

    if any(not segment for segment in name.split(ACCOUNT_SEPARATOR)):
        raise ValidationError(
            f"Invalid account name: {name!r}",
            {"account": "empty hierarchy segment"},
        )


@dataclass(frozen=True)
class SubtreePredicate:
    """계정 하위 트리 조건

    name 자체 또는 "name:"으로 시작하는 계정을 선택.
    SQLite LIKE는 대소문자를 구분하지 않으므로 substr 비교 사용.

    Args:
        owner: 소유자
        name: 하위 트리 루트 계정 이름
    """

    owner: str
    name: str

    @property
    def prefix(self) -> str:
        return self.name + ACCOUNT_SEPARATOR

    def sql(self, alias: str = "a") -> tuple[str, tuple[Any, ...]]:
        """WHERE 절 조각과 파라미터 반환

        Args:
            alias: account 테이블 별칭

        Returns:
            (SQL 조각, 파라미터)
        """
        clause = (
            f"({alias}.owner = ? AND "
            f"({alias}.name = ? OR substr({alias}.name, 1, ?) = ?))"
        )
        return clause, (self.owner, self.name, len(self.prefix), self.prefix)

    def matches(self, name: str) -> bool:
        """이름이 하위 트리에 속하는지 여부"""
        return name == self.name or name.startswith(self.prefix)


def _row_to_account(row: tuple) -> Account:
    return Account(
        id=row[0],
        owner=row[1],
        name=row[2],
        created_at=from_db_timestamp(row[3]),
    )


class AccountDirectory:
    """계정 디렉토리

    Args:
        db: SQLite 어댑터
        clock: 현재 시각 함수 (테스트 주입용)
        id_factory: 신규 ID 생성 함수
    """

    def __init__(
        self,
        db: SQLiteAdapter,
        clock: Callable[[], datetime] = now_utc,
        id_factory: Callable[[], str] = lambda: str(uuid4()),
    ):
        self.db = db
        self.clock = clock
        self.id_factory = id_factory

    async def get_or_create(self, owner: str, name: str) -> str:
        """계정 조회, 없으면 생성

        동시 호출에도 (owner, name)당 한 행만 생성되고
        모든 호출자가 같은 id를 받음.
        UNIQUE 제약 충돌 시에만 처음부터 다시 시도 (횟수 제한 없음).

        Args:
            owner: 소유자
            name: 계정 이름

        Returns:
            account_id

        Raises:
            ValidationError: 유효하지 않은 이름
        """
        validate_account_name(name)

        attempt = 0
        while True:
            attempt += 1
            try:
                async with self.db.transaction():
                    account_id = await self._find_id(owner, name)
                    if account_id is not None:
                        return account_id

                    account_id = self.id_factory()
                    await self.db.execute(
                        """
                        INSERT INTO account (id, owner, name, created_at)
                        VALUES (?, ?, ?, ?)
                        """,
                        (account_id, owner, name, to_db_timestamp(self.clock())),
                    )
            except ConflictError:
                logger.debug(
                    "계정 생성 충돌, 재시도",
                    extra={"owner": owner, "account": name, "attempt": attempt},
                )
                continue

            logger.info(
                "계정 생성",
                extra={"owner": owner, "account": name, "account_id": account_id},
            )
            return account_id

    async def _find_id(self, owner: str, name: str) -> str | None:
        row = await self.db.fetchone(
            "SELECT id FROM account WHERE owner = ? AND name = ?",
            (owner, name),
        )
        return row[0] if row else None

    def resolve_subtree(self, owner: str, name: str) -> SubtreePredicate:
        """하위 트리 조건 생성 (조회 전용)"""
        return SubtreePredicate(owner=owner, name=name)

    async def find(self, owner: str, name: str) -> Account | None:
        """이름으로 계정 조회"""
        row = await self.db.fetchone(
            """
            SELECT id, owner, name, created_at FROM account
            WHERE owner = ? AND name = ?
            """,
            (owner, name),
        )
        return _row_to_account(row) if row else None

    async def get_account(self, owner: str, account_id: str) -> Account:
        """ID로 계정 조회

        Raises:
            NotFoundError: 없거나 다른 소유자의 계정
        """
        row = await self.db.fetchone(
            """
            SELECT id, owner, name, created_at FROM account
            WHERE owner = ? AND id = ?
            """,
            (owner, account_id),
        )
        if row is None:
            raise NotFoundError("account", account_id)
        return _row_to_account(row)

    async def list_active_accounts(
        self,
        owner: str,
        now: datetime | None = None,
    ) -> list[str]:
        """최근 1년 내 생성된 거래에 사용된 계정 이름 (자동완성 후보)

        Returns:
            이름 오름차순, 중복 없음
        """
        now = now or self.clock()
        cutoff = datetime.combine(
            years_before(now.date(), Defaults.LOOKBACK_YEARS),
            now.timetz(),
        )

        rows = await self.db.fetchall(
            """
            SELECT DISTINCT a.name
            FROM account a
            JOIN transaction_entry e ON e.account_id = a.id
            JOIN "transaction" t ON t.id = e.transaction_id
            WHERE a.owner = ? AND t.owner = ? AND t.created_at >= ?
            ORDER BY a.name
            """,
            (owner, owner, to_db_timestamp(cutoff)),
        )
        return [row[0] for row in rows]

    async def list_accounts_by_popularity(
        self,
        owner: str,
        search: str | None = None,
        limit: int = Defaults.POPULAR_ACCOUNT_LIMIT,
    ) -> list[str]:
        """사용 빈도순 계정 이름

        Args:
            owner: 소유자
            search: 부분 일치 검색어 (대소문자 무시, ASCII)
            limit: 최대 개수

        Returns:
            항목 수 내림차순, 동률이면 이름 오름차순
        """
        sql = """
            SELECT a.name, COUNT(e.id) AS uses
            FROM account a
            LEFT JOIN transaction_entry e ON e.account_id = a.id
            WHERE a.owner = ?
        """
        params: list[Any] = [owner]
        if search:
            sql += " AND instr(lower(a.name), lower(?)) > 0"
            params.append(search)
        sql += " GROUP BY a.id, a.name ORDER BY uses DESC, a.name ASC LIMIT ?"
        params.append(limit)

        rows = await self.db.fetchall(sql, tuple(params))
        return [row[0] for row in rows]
