"""
adapters/db/sqlite_adapter.py 테스트

연결 설정, 트랜잭션(중첩 SAVEPOINT 포함), 예외 변환 테스트
"""

import asyncio
from pathlib import Path

import pytest
import pytest_asyncio

from adapters.db.sqlite_adapter import SQLiteAdapter, create_connection
from core.errors import (
    ConflictError,
    ReferentialIntegrityError,
    StorageUnavailable,
    ValidationError,
)


@pytest_asyncio.fixture
async def adapter(tmp_path: Path) -> SQLiteAdapter:
    """테스트용 어댑터 (단순 테이블 포함)"""
    db = SQLiteAdapter(tmp_path / "test.db")
    await db.connect()
    await db.execute(
        "CREATE TABLE parent (id TEXT PRIMARY KEY, name TEXT NOT NULL UNIQUE)"
    )
    await db.execute(
        """
        CREATE TABLE child (
            id TEXT PRIMARY KEY,
            parent_id TEXT NOT NULL REFERENCES parent(id) ON DELETE RESTRICT
        )
        """
    )
    yield db
    await db.close()


async def _count(db: SQLiteAdapter, table: str) -> int:
    row = await db.fetchone(f"SELECT COUNT(*) FROM {table}")
    return row[0]


class TestCreateConnection:
    """create_connection 테스트"""

    @pytest.mark.asyncio
    async def test_pragmas(self, tmp_path: Path) -> None:
        """WAL, busy_timeout, foreign_keys 설정"""
        conn = await create_connection(tmp_path / "sub" / "test.db", busy_timeout_ms=1234)
        try:
            cursor = await conn.execute("PRAGMA journal_mode")
            assert (await cursor.fetchone())[0] == "wal"

            cursor = await conn.execute("PRAGMA busy_timeout")
            assert (await cursor.fetchone())[0] == 1234

            cursor = await conn.execute("PRAGMA foreign_keys")
            assert (await cursor.fetchone())[0] == 1
        finally:
            await conn.close()

    @pytest.mark.asyncio
    async def test_creates_parent_directory(self, tmp_path: Path) -> None:
        """DB 디렉토리 자동 생성"""
        db_path = tmp_path / "nested" / "dir" / "test.db"
        conn = await create_connection(db_path)
        await conn.close()

        assert db_path.parent.exists()


class TestSQLiteAdapter:
    """SQLiteAdapter 기본 동작 테스트"""

    @pytest.mark.asyncio
    async def test_connect_close(self, tmp_path: Path) -> None:
        """연결/종료 상태"""
        db = SQLiteAdapter(tmp_path / "test.db")
        assert db.is_connected is False

        await db.connect()
        assert db.is_connected is True

        await db.close()
        assert db.is_connected is False

    @pytest.mark.asyncio
    async def test_not_connected_raises_storage_unavailable(self, tmp_path: Path) -> None:
        """연결 전 실행은 StorageUnavailable"""
        db = SQLiteAdapter(tmp_path / "test.db")

        with pytest.raises(StorageUnavailable):
            await db.execute("SELECT 1")

    @pytest.mark.asyncio
    async def test_async_context_manager(self, tmp_path: Path) -> None:
        """async with 지원"""
        async with SQLiteAdapter(tmp_path / "test.db") as db:
            assert db.is_connected is True
            row = await db.fetchone("SELECT 1")
            assert row[0] == 1

        assert db.is_connected is False

    @pytest.mark.asyncio
    async def test_table_exists(self, adapter: SQLiteAdapter) -> None:
        """테이블 존재 여부"""
        assert await adapter.table_exists("parent") is True
        assert await adapter.table_exists("missing") is False

    @pytest.mark.asyncio
    async def test_get_table_info(self, adapter: SQLiteAdapter) -> None:
        """컬럼 정보 조회"""
        columns = await adapter.get_table_info("parent")

        names = [c["name"] for c in columns]
        assert names == ["id", "name"]
        assert columns[0]["pk"] is True
        assert columns[1]["notnull"] is True


class TestSQLiteAdapterTransaction:
    """트랜잭션 컨텍스트 매니저 테스트"""

    @pytest.mark.asyncio
    async def test_commit_on_success(self, adapter: SQLiteAdapter) -> None:
        """성공 시 커밋"""
        async with adapter.transaction():
            await adapter.execute("INSERT INTO parent VALUES ('p1', 'a')")

        assert adapter.in_transaction is False
        assert await _count(adapter, "parent") == 1

    @pytest.mark.asyncio
    async def test_rollback_on_error(self, adapter: SQLiteAdapter) -> None:
        """예외 시 롤백"""
        with pytest.raises(RuntimeError):
            async with adapter.transaction():
                await adapter.execute("INSERT INTO parent VALUES ('p1', 'a')")
                raise RuntimeError("boom")

        assert adapter.in_transaction is False
        assert await _count(adapter, "parent") == 0

    @pytest.mark.asyncio
    async def test_nested_failure_rolls_back_savepoint_only(
        self, adapter: SQLiteAdapter
    ) -> None:
        """중첩 블록 실패는 SAVEPOINT까지만 롤백"""
        async with adapter.transaction():
            await adapter.execute("INSERT INTO parent VALUES ('p1', 'a')")
            with pytest.raises(ConflictError):
                async with adapter.transaction():
                    await adapter.execute("INSERT INTO parent VALUES ('p2', 'b')")
                    await adapter.execute("INSERT INTO parent VALUES ('p3', 'a')")
            await adapter.execute("INSERT INTO parent VALUES ('p4', 'c')")

        rows = await adapter.fetchall("SELECT id FROM parent ORDER BY id")
        assert [r[0] for r in rows] == ["p1", "p4"]

    @pytest.mark.asyncio
    async def test_nested_success_commits_with_outer(self, adapter: SQLiteAdapter) -> None:
        """중첩 블록 성공 후 외곽 실패 시 전체 롤백"""
        with pytest.raises(RuntimeError):
            async with adapter.transaction():
                async with adapter.transaction():
                    await adapter.execute("INSERT INTO parent VALUES ('p1', 'a')")
                raise RuntimeError("boom")

        assert await _count(adapter, "parent") == 0

    @pytest.mark.asyncio
    async def test_sequential_transactions(self, adapter: SQLiteAdapter) -> None:
        """연속 트랜잭션 (이전 트랜잭션 종료 후 재사용)"""
        for i in range(3):
            async with adapter.transaction():
                await adapter.execute(
                    "INSERT INTO parent VALUES (?, ?)", (f"p{i}", f"n{i}")
                )

        assert await _count(adapter, "parent") == 3

    @pytest.mark.asyncio
    async def test_owner_reads_own_uncommitted_rows(self, adapter: SQLiteAdapter) -> None:
        """트랜잭션 소유 태스크는 잠금 대기 없이 자기 변경을 조회"""
        async with adapter.transaction():
            await adapter.execute("INSERT INTO parent VALUES ('p1', 'a')")
            assert await _count(adapter, "parent") == 1

    @pytest.mark.asyncio
    async def test_read_from_other_task_waits_for_transaction(
        self, adapter: SQLiteAdapter
    ) -> None:
        """다른 태스크의 조회는 진행 중인 트랜잭션이 끝난 뒤 실행"""
        inserted = asyncio.Event()
        release = asyncio.Event()

        async def writer() -> None:
            async with adapter.transaction():
                await adapter.execute("INSERT INTO parent VALUES ('p1', 'a')")
                inserted.set()
                await release.wait()
                raise RuntimeError("abort")

        writer_task = asyncio.create_task(writer())
        await inserted.wait()

        reader_task = asyncio.create_task(_count(adapter, "parent"))
        await asyncio.sleep(0.05)
        assert reader_task.done() is False

        release.set()
        with pytest.raises(RuntimeError):
            await writer_task

        # 롤백된 행은 보이지 않음
        assert await reader_task == 0


class TestErrorTranslation:
    """드라이버 예외 변환 테스트"""

    @pytest.mark.asyncio
    async def test_unique_violation_is_conflict(self, adapter: SQLiteAdapter) -> None:
        """UNIQUE 위반 → ConflictError"""
        await adapter.execute("INSERT INTO parent VALUES ('p1', 'a')")

        with pytest.raises(ConflictError):
            await adapter.execute("INSERT INTO parent VALUES ('p2', 'a')")

    @pytest.mark.asyncio
    async def test_foreign_key_violation(self, adapter: SQLiteAdapter) -> None:
        """참조 중인 행 삭제 → ReferentialIntegrityError"""
        await adapter.execute("INSERT INTO parent VALUES ('p1', 'a')")
        await adapter.execute("INSERT INTO child VALUES ('c1', 'p1')")

        with pytest.raises(ReferentialIntegrityError):
            await adapter.execute("DELETE FROM parent WHERE id = 'p1'")

    @pytest.mark.asyncio
    async def test_operational_error_is_storage_unavailable(
        self, adapter: SQLiteAdapter
    ) -> None:
        """OperationalError → StorageUnavailable"""
        with pytest.raises(StorageUnavailable):
            await adapter.execute("SELECT * FROM missing_table")

    @pytest.mark.asyncio
    async def test_readonly_write_rejected(
        self, adapter: SQLiteAdapter, tmp_path: Path
    ) -> None:
        """읽기 전용 연결에서 쓰기 → StorageUnavailable"""
        reader = SQLiteAdapter(tmp_path / "test.db", readonly=True)
        await reader.connect()
        try:
            with pytest.raises(StorageUnavailable):
                await reader.execute("INSERT INTO parent VALUES ('p1', 'a')")
        finally:
            await reader.close()

    @pytest.mark.asyncio
    async def test_not_null_violation_is_validation(self, adapter: SQLiteAdapter) -> None:
        """NOT NULL 위반 → ValidationError (ConflictError 아님)"""
        with pytest.raises(ValidationError) as exc_info:
            await adapter.execute("INSERT INTO parent VALUES ('p1', NULL)")

        assert not isinstance(exc_info.value, ConflictError)

    @pytest.mark.asyncio
    async def test_check_violation_is_validation(self, adapter: SQLiteAdapter) -> None:
        """CHECK 위반 → ValidationError"""
        await adapter.execute("CREATE TABLE positive (v INTEGER CHECK (v > 0))")

        with pytest.raises(ValidationError):
            await adapter.execute("INSERT INTO positive VALUES (0)")

    @pytest.mark.asyncio
    async def test_integer_overflow_is_validation(self, adapter: SQLiteAdapter) -> None:
        """64비트 범위를 넘는 정수 바인딩 → ValidationError"""
        with pytest.raises(ValidationError):
            await adapter.execute("SELECT ?", (10**20,))

        with pytest.raises(ValidationError):
            await adapter.executemany("INSERT INTO parent VALUES (?, 'x')", [(-(10**20),)])
