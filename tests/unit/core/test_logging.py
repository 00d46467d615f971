"""
core/logging.py 테스트
"""

import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from core.logging import (
    LOG_FILE_BACKUP_COUNT,
    NOISY_LOGGERS,
    get_log_file_path,
    setup_logging,
)


class TestSetupLogging:
    """setup_logging 테스트"""

    def test_handlers(self, temp_dir: Path, restore_root_logger) -> None:
        """콘솔 + 일별 파일 핸들러 구성"""
        root = setup_logging("ledger", file_level=logging.DEBUG, log_dir=temp_dir)

        assert len(root.handlers) == 2
        file_handlers = [h for h in root.handlers if isinstance(h, TimedRotatingFileHandler)]
        assert len(file_handlers) == 1
        assert file_handlers[0].backupCount == LOG_FILE_BACKUP_COUNT
        assert file_handlers[0].level == logging.DEBUG

    def test_writes_log_file(self, temp_dir: Path, restore_root_logger) -> None:
        """로그 파일에 기록"""
        setup_logging("ledger", log_dir=temp_dir)
        logging.getLogger("core.ledger.store").info("거래 생성")

        for handler in logging.getLogger().handlers:
            handler.flush()

        content = (temp_dir / "ledger.log").read_text(encoding="utf-8")
        assert "| INFO     | core.ledger.store | 거래 생성" in content

    def test_repeated_setup_does_not_duplicate(self, temp_dir: Path, restore_root_logger) -> None:
        """재호출 시 핸들러 중복 없음"""
        setup_logging("ledger", log_dir=temp_dir)
        root = setup_logging("ledger", log_dir=temp_dir)

        assert len(root.handlers) == 2

    def test_noisy_loggers_quieted(self, temp_dir: Path, restore_root_logger) -> None:
        """불필요한 로거는 WARNING"""
        setup_logging("ledger", log_dir=temp_dir)

        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING


class TestGetLogFilePath:
    """get_log_file_path 테스트"""

    def test_custom_dir(self, temp_dir: Path) -> None:
        """지정 디렉토리"""
        assert get_log_file_path("ledger", temp_dir) == temp_dir / "ledger.log"

    def test_default_dir(self) -> None:
        """기본 디렉토리"""
        assert get_log_file_path("ledger").name == "ledger.log"
