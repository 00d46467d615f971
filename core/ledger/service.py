"""
Ledger 서비스

통화 카탈로그, 계정 디렉토리, 저장소, 집계기를 하나의 어댑터 위에 조립.
외부 계층(HTTP 등)은 이 클래스만 사용.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime
from uuid import uuid4

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.config.loader import Settings
from core.ledger.accounts import AccountDirectory
from core.ledger.balances import BalanceAggregator
from core.ledger.currency import CurrencyCatalog
from core.ledger.schema import init_ledger_schema
from core.ledger.store import LedgerStore
from core.logging import setup_logging
from core.utils.timezone import now_utc

logger = logging.getLogger(__name__)


class LedgerService:
    """Ledger 구성 요소 묶음

    Args:
        db: SQLite 어댑터
        clock: 현재 시각 함수
        id_factory: 신규 ID 생성 함수
    """

    def __init__(
        self,
        db: SQLiteAdapter,
        clock: Callable[[], datetime] = now_utc,
        id_factory: Callable[[], str] = lambda: str(uuid4()),
    ):
        self.db = db
        self.currencies = CurrencyCatalog(db)
        self.accounts = AccountDirectory(db, clock, id_factory)
        self.store = LedgerStore(db, self.accounts, self.currencies, clock, id_factory)
        self.balances = BalanceAggregator(db, self.currencies, clock)

    async def account_suggestions(self, owner: str) -> list[str]:
        """최근 1년 내 사용한 계정 이름 (자동완성용)"""
        return await self.accounts.list_active_accounts(owner)


@asynccontextmanager
async def open_ledger(
    settings: Settings,
    clock: Callable[[], datetime] = now_utc,
    configure_logging: bool = True,
) -> AsyncIterator[LedgerService]:
    """설정으로 로깅 초기화, DB 연결 + 스키마 초기화 후 서비스 제공

    로깅은 설정 파일의 logging.level (콘솔/파일 공통), logging.dir 사용.
    호출 측에서 이미 로깅을 구성했다면 configure_logging=False.

    사용 예시:
    ```python
    async with open_ledger(get_settings()) as ledger:
        await ledger.store.create_transaction(...)
    ```
    """
    if configure_logging:
        level = settings.config.log_level_value
        setup_logging("ledger", console_level=level, file_level=level, log_dir=settings.log_dir)

    adapter = SQLiteAdapter(settings.db_path, busy_timeout_ms=settings.busy_timeout_ms)
    await adapter.connect()
    try:
        await init_ledger_schema(adapter)
        yield LedgerService(adapter, clock=clock)
    finally:
        await adapter.close()
