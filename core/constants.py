"""
하드코딩 상수 - 변경될 일이 거의 없는 고정값

중요: 경로는 반드시 pathlib.Path 사용 (Windows/Linux 크로스 플랫폼)
"""

from decimal import Decimal
from pathlib import Path


# 프로젝트 루트 (이 파일 기준 2단계 상위: core/constants.py → finledger/)
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent


class Defaults:
    """기본값 상수"""

    CURRENCY: str = "USD"

    # Optimistic concurrency
    MAX_CAS_ATTEMPTS: int = 5
    RETRY_BACKOFF_SEC: float = 0.005

    # 호출자 타임아웃 (None이면 무제한)
    OPERATION_TIMEOUT_SEC: float | None = None

    LOG_LEVEL: str = "INFO"

    # 조회 제한
    POSTING_PAGE_SIZE: int = 100
    ENDING_SOON_DAYS: int = 7


class MoneyLimits:
    """금액 정밀도 제한 (고정 소수점 2자리, 정수부 15자리)"""

    FRACTION_DIGITS: int = 2
    INTEGER_DIGITS: int = 15
    QUANTUM: Decimal = Decimal("0.01")
    ZERO: Decimal = Decimal("0.00")


class Paths:
    """프로젝트 경로 상수 (pathlib 사용 - OS 독립적)"""

    # 디렉토리
    CONFIG_DIR: Path = PROJECT_ROOT / "config"
    DATA_DIR: Path = PROJECT_ROOT / "data"
    LOGS_DIR: Path = PROJECT_ROOT / "logs"

    # 설정 파일
    SETTINGS_FILE: Path = CONFIG_DIR / "settings.yaml"

    # DB 파일
    LEDGER_DB: Path = DATA_DIR / "finledger.db"
