"""
설정 로더

ledger.yaml 로드 및 저장소/로깅 설정 생성
"""

import logging
from dataclasses import dataclass
from pathlib import Path

import yaml

from core.constants import Defaults, Paths


VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class LedgerConfig:
    """Ledger 설정 (ledger.yaml에서 로드)

    불변 데이터 구조로 설정 변경 방지
    """

    db_path: Path
    busy_timeout_ms: int
    log_level: str
    log_dir: Path = Paths.LOGS_DIR

    @property
    def log_level_value(self) -> int:
        """logging 모듈 레벨 값"""
        return logging.getLevelName(self.log_level)


class ConfigLoadError(Exception):
    """설정 로드 실패 예외"""

    pass


def load_config(path: Path | None = None) -> LedgerConfig:
    """ledger.yaml 파일 로드

    예시:
    ```yaml
    database:
      path: data/ledger.db      # 상대 경로는 설정 파일 기준
      busy_timeout_ms: 30000
    logging:
      level: INFO
      dir: logs                 # 상대 경로는 설정 파일 기준
    ```

    Args:
        path: ledger.yaml 경로 (None이면 기본 경로 사용)

    Returns:
        LedgerConfig 인스턴스

    Raises:
        ConfigLoadError: 파일이 없거나 형식/값이 잘못된 경우
    """
    if path is None:
        path = Paths.CONFIG_FILE

    if not path.exists():
        raise ConfigLoadError(f"ledger.yaml 파일을 찾을 수 없습니다: {path}")

    try:
        content = path.read_text(encoding="utf-8")
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"ledger.yaml 파싱 실패: {e}") from e

    if data is None:
        raise ConfigLoadError("ledger.yaml이 비어 있습니다")

    if not isinstance(data, dict):
        raise ConfigLoadError("ledger.yaml 최상위는 매핑이어야 합니다")

    # database 섹션
    db_section = data.get("database") or {}
    raw_db_path = db_section.get("path")
    if raw_db_path:
        db_path = Path(raw_db_path)
        if not db_path.is_absolute():
            db_path = path.parent / db_path
    else:
        db_path = Paths.DB

    busy_timeout_ms = db_section.get("busy_timeout_ms", Defaults.BUSY_TIMEOUT_MS)
    if not isinstance(busy_timeout_ms, int) or isinstance(busy_timeout_ms, bool) or busy_timeout_ms <= 0:
        raise ConfigLoadError(
            f"database.busy_timeout_ms는 양의 정수여야 합니다: {busy_timeout_ms!r}"
        )

    # logging 섹션
    log_section = data.get("logging") or {}
    log_level = str(log_section.get("level", Defaults.LOG_LEVEL)).upper()
    if log_level not in VALID_LOG_LEVELS:
        raise ConfigLoadError(
            f"유효하지 않은 로그 레벨입니다: '{log_level}'. "
            f"유효한 값: {list(VALID_LOG_LEVELS)}"
        )

    raw_log_dir = log_section.get("dir")
    if raw_log_dir:
        log_dir = Path(raw_log_dir)
        if not log_dir.is_absolute():
            log_dir = path.parent / log_dir
    else:
        log_dir = Paths.LOGS_DIR

    return LedgerConfig(
        db_path=db_path,
        busy_timeout_ms=busy_timeout_ms,
        log_level=log_level,
        log_dir=log_dir,
    )


class Settings:
    """애플리케이션 설정 (싱글턴 패턴)

    ledger.yaml을 로드하고 관련 설정을 제공
    """

    _instance: "Settings | None" = None
    _config: LedgerConfig | None = None

    def __new__(cls, config_path: Path | None = None) -> "Settings":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, config_path: Path | None = None) -> None:
        if self._config is None:
            self._config = load_config(config_path)

    @property
    def config(self) -> LedgerConfig:
        """로드된 설정 원본"""
        assert self._config is not None
        return self._config

    @property
    def db_path(self) -> Path:
        """DB 경로"""
        return self.config.db_path

    @property
    def busy_timeout_ms(self) -> int:
        """SQLite 잠금 대기 시간 (밀리초)"""
        return self.config.busy_timeout_ms

    @property
    def log_level(self) -> str:
        """로그 레벨 이름"""
        return self.config.log_level

    @property
    def log_dir(self) -> Path:
        """로그 디렉토리"""
        return self.config.log_dir

    @classmethod
    def reset(cls) -> None:
        """싱글턴 인스턴스 초기화 (테스트용)"""
        cls._instance = None
        cls._config = None


def get_settings(config_path: Path | None = None) -> Settings:
    """Settings 인스턴스 반환

    Args:
        config_path: ledger.yaml 경로 (None이면 기본 경로 사용)

    Returns:
        Settings 싱글턴 인스턴스
    """
    return Settings(config_path)
