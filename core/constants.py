"""
하드코딩 상수 - 변경될 일이 거의 없는 고정값

중요: 경로는 반드시 pathlib.Path 사용 (Windows/Linux 크로스 플랫폼)
"""

from pathlib import Path


# 프로젝트 루트 (이 파일 기준 2단계 상위: core/constants.py → 프로젝트 루트)
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent


class Defaults:
    """기본값 상수"""

    LOG_LEVEL: str = "INFO"

    # SQLite 잠금 대기 (30초)
    BUSY_TIMEOUT_MS: int = 30000

    # 거래 목록 페이지 크기
    TRANSACTION_PAGE_SIZE: int = 50

    # 인기 계정 조회 개수
    POPULAR_ACCOUNT_LIMIT: int = 10

    # 추이/활성 계정 조회 기간 (고정 1년)
    LOOKBACK_YEARS: int = 1


class Paths:
    """프로젝트 경로 상수 (pathlib 사용 - OS 독립적)"""

    # 디렉토리
    CONFIG_DIR: Path = PROJECT_ROOT / "config"
    DATA_DIR: Path = PROJECT_ROOT / "data"
    LOGS_DIR: Path = PROJECT_ROOT / "logs"

    # 설정 파일
    CONFIG_FILE: Path = CONFIG_DIR / "ledger.yaml"

    # DB 파일
    DB: Path = DATA_DIR / "ledger.db"
