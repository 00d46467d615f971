"""LedgerService / open_ledger 통합 테스트"""

import logging
from datetime import date
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

import pytest

from core.config.loader import Settings
from core.ledger.service import open_ledger
from core.ledger.types import EntrySpec


class TestOpenLedger:
    """open_ledger 테스트"""

    def setup_method(self) -> None:
        Settings.reset()

    def teardown_method(self) -> None:
        Settings.reset()

    @pytest.mark.asyncio
    async def test_open_creates_schema_and_closes(
        self, temp_config_file: Path, restore_root_logger
    ) -> None:
        """설정 경로에 DB 생성, 스키마 초기화, 종료 시 연결 해제"""
        settings = Settings(temp_config_file)

        async with open_ledger(settings) as ledger:
            assert await ledger.db.table_exists("transaction") is True
            assert await ledger.db.table_exists("transaction_entry") is True

            tx = await ledger.store.create_transaction(
                "user-1",
                date(2024, 6, 1),
                "Grocer",
                [EntrySpec("Expenses:Food", "USD", 500), EntrySpec("Assets:Cash", "USD")],
            )

        assert settings.db_path.exists()
        assert ledger.db.is_connected is False

        # 재오픈 시 스키마 초기화는 멱등, 데이터 유지
        async with open_ledger(settings) as ledger:
            stored = await ledger.store.get_transaction("user-1", tx.id)
            assert stored == tx
            assert await ledger.account_suggestions("user-1") == ["Assets:Cash", "Expenses:Food"]

    @pytest.mark.asyncio
    async def test_logging_configured_from_settings(
        self, temp_config_file: Path, restore_root_logger
    ) -> None:
        """logging.level / logging.dir 설정으로 로깅 초기화"""
        settings = Settings(temp_config_file)

        async with open_ledger(settings):
            logging.getLogger("core.ledger.store").debug("디버그 기록")

        root = logging.getLogger()
        file_handlers = [h for h in root.handlers if isinstance(h, TimedRotatingFileHandler)]
        assert len(file_handlers) == 1
        assert file_handlers[0].level == logging.DEBUG
        assert all(h.level == logging.DEBUG for h in root.handlers)

        for handler in root.handlers:
            handler.flush()

        log_file = temp_config_file.parent / "logs" / "ledger.log"
        assert settings.log_dir == temp_config_file.parent / "logs"
        assert "| DEBUG    | core.ledger.store | 디버그 기록" in log_file.read_text(encoding="utf-8")

    @pytest.mark.asyncio
    async def test_logging_setup_can_be_skipped(
        self, temp_config_file: Path, restore_root_logger
    ) -> None:
        """configure_logging=False면 루트 로거를 건드리지 않음"""
        settings = Settings(temp_config_file)
        before = list(logging.getLogger().handlers)

        async with open_ledger(settings, configure_logging=False):
            pass

        assert logging.getLogger().handlers == before
        assert not (temp_config_file.parent / "logs").exists()
