"""
설정 로더

settings.yaml 로드 및 Ledger 설정 생성
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from core.constants import Defaults, Paths


@dataclass(frozen=True)
class LedgerSettings:
    """Ledger 설정 (settings.yaml에서 로드)

    불변 데이터 구조로 설정 변경 방지
    """

    db_path: Path
    max_cas_attempts: int = Defaults.MAX_CAS_ATTEMPTS
    retry_backoff_sec: float = Defaults.RETRY_BACKOFF_SEC
    operation_timeout_sec: float | None = Defaults.OPERATION_TIMEOUT_SEC
    log_level: str = Defaults.LOG_LEVEL

    @property
    def log_level_value(self) -> int:
        """logging 모듈 레벨 값"""
        return logging.getLevelName(self.log_level.upper())


class SettingsLoadError(Exception):
    """Settings 로드 실패 예외"""

    pass


def _positive_int(data: dict[str, Any], key: str, default: int) -> int:
    value = data.get(key, default)
    if not isinstance(value, int) or isinstance(value, bool) or value < 1:
        raise SettingsLoadError(f"'{key}'는 1 이상의 정수여야 합니다: {value!r}")
    return value


def _non_negative_float(data: dict[str, Any], key: str, default: float | None) -> float | None:
    value = data.get(key, default)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise SettingsLoadError(f"'{key}'는 0 이상의 숫자여야 합니다: {value!r}")
    return float(value)


def load_settings(path: Path | None = None) -> LedgerSettings:
    """settings.yaml 파일 로드

    파일이 없으면 기본값 반환.

    Args:
        path: settings.yaml 경로 (None이면 기본 경로 사용)

    Returns:
        LedgerSettings 인스턴스

    Raises:
        SettingsLoadError: 형식이 잘못된 경우
    """
    if path is None:
        path = Paths.SETTINGS_FILE

    if not path.exists():
        return LedgerSettings(db_path=Paths.LEDGER_DB)

    try:
        content = path.read_text(encoding="utf-8")
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SettingsLoadError(f"settings.yaml 파싱 실패: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise SettingsLoadError("settings.yaml 최상위는 매핑이어야 합니다")

    ledger = data.get("ledger", {}) or {}
    if not isinstance(ledger, dict):
        raise SettingsLoadError("settings.yaml의 'ledger' 섹션은 매핑이어야 합니다")

    db_path_value = data.get("db_path")
    if db_path_value is None:
        db_path = Paths.LEDGER_DB
    else:
        db_path = Path(db_path_value)
        # 상대 경로는 settings.yaml 기준
        if not db_path.is_absolute():
            db_path = path.parent / db_path

    log_level = str(data.get("log_level", Defaults.LOG_LEVEL)).upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise SettingsLoadError(f"유효하지 않은 log_level입니다: '{log_level}'")

    return LedgerSettings(
        db_path=db_path,
        max_cas_attempts=_positive_int(ledger, "max_cas_attempts", Defaults.MAX_CAS_ATTEMPTS),
        retry_backoff_sec=_non_negative_float(
            ledger, "retry_backoff_sec", Defaults.RETRY_BACKOFF_SEC
        ) or 0.0,
        operation_timeout_sec=_non_negative_float(
            ledger, "operation_timeout_sec", Defaults.OPERATION_TIMEOUT_SEC
        ),
        log_level=log_level,
    )


class Settings:
    """애플리케이션 설정 (싱글턴 패턴)

    settings.yaml을 로드하고 관련 설정을 제공
    """

    _instance: "Settings | None" = None
    _settings: LedgerSettings | None = None

    def __new__(cls, settings_path: Path | None = None) -> "Settings":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, settings_path: Path | None = None) -> None:
        if self._settings is None:
            type(self)._settings = load_settings(settings_path)

    @property
    def ledger(self) -> LedgerSettings:
        """Ledger 설정"""
        assert self._settings is not None
        return self._settings

    @property
    def db_path(self) -> Path:
        """DB 경로"""
        return self.ledger.db_path

    @classmethod
    def reset(cls) -> None:
        """싱글턴 인스턴스 초기화 (테스트용)"""
        cls._instance = None
        cls._settings = None


def get_settings(settings_path: Path | None = None) -> Settings:
    """Settings 인스턴스 반환

    Args:
        settings_path: settings.yaml 경로 (None이면 기본 경로 사용)

    Returns:
        Settings 싱글턴 인스턴스
    """
    return Settings(settings_path)
