"""
SQLite 어댑터

WAL 모드로 SQLite 연결 관리.
여러 요청 핸들러가 같은 DB 파일에 동시에 접근 가능하도록 설정.

드라이버 예외는 어댑터 경계에서 core.errors 예외로 변환:
- UNIQUE 제약 위반 → ConflictError
- FOREIGN KEY 제약 위반 → ReferentialIntegrityError
- 그 외 제약 위반 (NOT NULL, CHECK), 범위 초과 정수 → ValidationError
- 그 외 OperationalError (잠금, I/O) → StorageUnavailable

주의: "transaction", "order"는 SQLite 예약어이므로 반드시 따옴표로 감쌀 것
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

import aiosqlite

from core.constants import Defaults
from core.errors import (
    ConflictError,
    LedgerError,
    ReferentialIntegrityError,
    StorageUnavailable,
    ValidationError,
)

logger = logging.getLogger(__name__)


def translate_error(error: aiosqlite.Error) -> LedgerError:
    """sqlite3 예외를 Ledger 예외로 변환

    Args:
        error: aiosqlite(sqlite3) 예외

    Returns:
        대응하는 LedgerError 인스턴스
    """
    message = str(error)
    if isinstance(error, aiosqlite.IntegrityError):
        if "UNIQUE constraint failed" in message:
            return ConflictError(message)
        if "FOREIGN KEY constraint failed" in message:
            return ReferentialIntegrityError(message)
        return ValidationError(message)
    return StorageUnavailable(message)


async def create_connection(
    db_path: Path | str,
    readonly: bool = False,
    busy_timeout_ms: int = Defaults.BUSY_TIMEOUT_MS,
) -> aiosqlite.Connection:
    """SQLite 연결 생성 (WAL 모드)

    트랜잭션 경계는 SQLiteAdapter.transaction()에서 직접 관리하므로
    autocommit 모드(isolation_level=None)로 연결.

    Args:
        db_path: DB 파일 경로
        readonly: 읽기 전용 여부
        busy_timeout_ms: 잠금 대기 시간 (밀리초)

    Returns:
        aiosqlite 연결 객체

    Raises:
        StorageUnavailable: DB 파일을 열 수 없는 경우
    """
    db_path_str = str(db_path)

    # 디렉토리가 없으면 생성
    if not readonly:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    try:
        if readonly:
            conn = await aiosqlite.connect(
                f"file:{db_path_str}?mode=ro", uri=True, isolation_level=None
            )
        else:
            conn = await aiosqlite.connect(db_path_str, isolation_level=None)

        await conn.execute("PRAGMA journal_mode=WAL")
        await conn.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")
        await conn.execute("PRAGMA foreign_keys=ON")
    except aiosqlite.Error as e:
        raise StorageUnavailable(f"SQLite 연결 실패: {e}") from e

    logger.info(
        "SQLite 연결 생성",
        extra={"db_path": db_path_str, "readonly": readonly},
    )

    return conn


class SQLiteAdapter:
    """SQLite 어댑터

    WAL 모드로 SQLite 연결 관리.
    중첩 가능한 트랜잭션 컨텍스트 매니저 제공.

    Args:
        db_path: DB 파일 경로
        readonly: 읽기 전용 여부 (잔액/추이 조회용)
        busy_timeout_ms: 잠금 대기 시간 (밀리초)

    사용 예시:
    ```python
    adapter = SQLiteAdapter(db_path)
    await adapter.connect()

    async with adapter.transaction():
        await adapter.execute("INSERT INTO ...")
        async with adapter.transaction():  # SAVEPOINT
            await adapter.execute("INSERT INTO ...")

    await adapter.close()
    ```
    """

    def __init__(
        self,
        db_path: Path | str,
        readonly: bool = False,
        busy_timeout_ms: int = Defaults.BUSY_TIMEOUT_MS,
    ):
        self.db_path = Path(db_path)
        self.readonly = readonly
        self.busy_timeout_ms = busy_timeout_ms
        self._conn: aiosqlite.Connection | None = None
        self._tx_lock = asyncio.Lock()
        self._tx_owner: asyncio.Task[Any] | None = None
        self._savepoint_seq = 0

    @property
    def is_connected(self) -> bool:
        """연결 상태 확인"""
        return self._conn is not None

    @property
    def in_transaction(self) -> bool:
        """트랜잭션 진행 여부"""
        return self._conn is not None and self._conn.in_transaction

    async def connect(self) -> None:
        """연결 생성"""
        if self._conn is not None:
            return

        self._conn = await create_connection(
            self.db_path, self.readonly, self.busy_timeout_ms
        )

    async def close(self) -> None:
        """연결 종료"""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.info("SQLite 연결 종료")

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise StorageUnavailable("Not connected to database")
        return self._conn

    @asynccontextmanager
    async def _read_guard(self) -> AsyncIterator[None]:
        """다른 태스크의 트랜잭션이 끝날 때까지 대기

        연결을 공유하므로 트랜잭션 밖의 조회도 진행 중인 쓰기의
        미커밋 상태를 볼 수 있음. 트랜잭션 소유 태스크가 아니면
        트랜잭션 잠금을 잡은 뒤 실행.
        """
        owner = self._tx_owner
        if owner is not None and owner is asyncio.current_task():
            yield
            return

        async with self._tx_lock:
            yield

    async def _execute(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> aiosqlite.Cursor:
        conn = self._require_conn()

        try:
            if parameters:
                return await conn.execute(sql, parameters)
            return await conn.execute(sql)
        except aiosqlite.Error as e:
            raise translate_error(e) from e
        except OverflowError as e:
            # 64비트 범위를 넘는 정수 바인딩
            raise ValidationError(str(e)) from e

    async def execute(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> aiosqlite.Cursor:
        """SQL 실행"""
        async with self._read_guard():
            return await self._execute(sql, parameters)

    async def executemany(
        self,
        sql: str,
        parameters: list[tuple[Any, ...]],
    ) -> aiosqlite.Cursor:
        """SQL 다중 실행"""
        conn = self._require_conn()

        async with self._read_guard():
            try:
                return await conn.executemany(sql, parameters)
            except aiosqlite.Error as e:
                raise translate_error(e) from e
            except OverflowError as e:
                raise ValidationError(str(e)) from e

    async def fetchone(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> tuple[Any, ...] | None:
        """단일 행 조회"""
        async with self._read_guard():
            cursor = await self._execute(sql, parameters)
            return await cursor.fetchone()

    async def fetchall(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> list[tuple[Any, ...]]:
        """전체 행 조회"""
        async with self._read_guard():
            cursor = await self._execute(sql, parameters)
            return list(await cursor.fetchall())

    async def commit(self) -> None:
        """커밋"""
        if self._conn is not None and self._conn.in_transaction:
            try:
                await self._conn.commit()
            except aiosqlite.Error as e:
                raise translate_error(e) from e

    async def rollback(self) -> None:
        """롤백"""
        if self._conn is not None and self._conn.in_transaction:
            await self._conn.rollback()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """트랜잭션 컨텍스트 매니저

        성공 시 자동 커밋, 예외 시 자동 롤백.
        최외곽 트랜잭션은 BEGIN IMMEDIATE로 쓰기 잠금을 먼저 확보하고,
        같은 태스크 안에서 중첩 호출되면 SAVEPOINT로 동작.
        중첩 블록의 실패는 해당 SAVEPOINT까지만 되돌림.

        사용 예시:
        ```python
        async with adapter.transaction():
            await adapter.execute("INSERT INTO ...")
            # 성공 시 자동 커밋
        ```

        Raises:
            StorageUnavailable: 연결이 없거나 잠금 획득/커밋 실패
        """
        conn = self._require_conn()
        task = asyncio.current_task()

        if self._tx_owner is not None and self._tx_owner is task:
            self._savepoint_seq += 1
            name = f"sp_{self._savepoint_seq}"
            await self._execute(f"SAVEPOINT {name}")
            try:
                yield conn
            except BaseException:
                await conn.execute(f"ROLLBACK TO {name}")
                await conn.execute(f"RELEASE {name}")
                raise
            await self._execute(f"RELEASE {name}")
            return

        async with self._tx_lock:
            self._tx_owner = task
            try:
                await self._execute("BEGIN IMMEDIATE")
                try:
                    yield conn
                    await self.commit()
                except BaseException:
                    await self.rollback()
                    raise
            finally:
                self._tx_owner = None

    async def table_exists(self, table_name: str) -> bool:
        """테이블 존재 여부 확인"""
        result = await self.fetchone(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
            (table_name,),
        )
        return result is not None

    async def get_table_info(self, table_name: str) -> list[dict[str, Any]]:
        """테이블 정보 조회"""
        rows = await self.fetchall(f'PRAGMA table_info("{table_name}")')

        return [
            {
                "cid": row[0],
                "name": row[1],
                "type": row[2],
                "notnull": bool(row[3]),
                "default_value": row[4],
                "pk": bool(row[5]),
            }
            for row in rows
        ]

    # -------------------------------------------------------------------------
    # 컨텍스트 매니저
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> "SQLiteAdapter":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
