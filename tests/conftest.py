"""
pytest 공통 fixture 정의

임시 디렉토리, 설정 파일, 시계/ID 주입, 스키마가 초기화된 임시 DB
"""

import logging
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.ledger.schema import init_ledger_schema
from core.ledger.service import LedgerService


class TickingClock:
    """호출할 때마다 step만큼 전진하는 테스트용 시계"""

    def __init__(
        self,
        start: datetime = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc),
        step: timedelta = timedelta(milliseconds=1),
    ):
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value

    def set(self, value: datetime) -> None:
        self.current = value


class SequentialIds:
    """예측 가능한 ID 생성기"""

    def __init__(self, prefix: str = "id"):
        self.prefix = prefix
        self.count = 0

    def __call__(self) -> str:
        self.count += 1
        return f"{self.prefix}-{self.count:05d}"


@pytest.fixture
def temp_dir() -> Path:
    """OS 독립적인 임시 디렉토리 생성"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_config_file(temp_dir: Path) -> Path:
    """테스트용 ledger.yaml 파일 생성"""
    config_content = """# 테스트용 ledger.yaml
database:
  path: data/test_ledger.db
  busy_timeout_ms: 5000

logging:
  level: debug
  dir: logs
"""
    config_path = temp_dir / "ledger.yaml"
    config_path.write_text(config_content, encoding="utf-8")
    return config_path


@pytest.fixture
def restore_root_logger():
    """테스트 후 루트 로거 핸들러 복원"""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def clock() -> TickingClock:
    """2024-06-15 12:00 UTC부터 1ms씩 전진하는 시계"""
    return TickingClock()


@pytest.fixture
def ids() -> SequentialIds:
    """순차 ID 생성기"""
    return SequentialIds()


@pytest.fixture
def db_path(temp_dir: Path) -> Path:
    """임시 DB 파일 경로"""
    return temp_dir / "test_ledger.db"


@pytest_asyncio.fixture
async def db(db_path: Path) -> SQLiteAdapter:
    """스키마가 초기화된 테스트용 DB"""
    adapter = SQLiteAdapter(db_path)
    await adapter.connect()
    await init_ledger_schema(adapter)

    yield adapter

    await adapter.close()


@pytest.fixture
def ledger(db: SQLiteAdapter, clock: TickingClock, ids: SequentialIds) -> LedgerService:
    """테스트용 LedgerService"""
    return LedgerService(db, clock=clock, id_factory=ids)
