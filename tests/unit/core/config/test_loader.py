"""
core/config/loader.py 테스트

settings.yaml 로드, 검증, Settings 싱글턴 테스트
"""

import logging
from pathlib import Path

import pytest

from core.config.loader import (
    LedgerSettings,
    Settings,
    SettingsLoadError,
    get_settings,
    load_settings,
)
from core.constants import Defaults, Paths


class TestLedgerSettings:
    """LedgerSettings 데이터클래스 테스트"""

    def test_defaults(self, temp_dir: Path) -> None:
        settings = LedgerSettings(db_path=temp_dir / "x.db")

        assert settings.max_cas_attempts == Defaults.MAX_CAS_ATTEMPTS
        assert settings.retry_backoff_sec == Defaults.RETRY_BACKOFF_SEC
        assert settings.operation_timeout_sec is None
        assert settings.log_level == "INFO"

    def test_frozen(self, temp_dir: Path) -> None:
        """불변성 확인"""
        settings = LedgerSettings(db_path=temp_dir / "x.db")

        with pytest.raises(AttributeError):
            settings.max_cas_attempts = 10  # type: ignore

    def test_log_level_value(self, temp_dir: Path) -> None:
        settings = LedgerSettings(db_path=temp_dir / "x.db", log_level="debug")
        assert settings.log_level_value == logging.DEBUG


class TestLoadSettings:
    """load_settings 함수 테스트"""

    def test_load_file(self, temp_settings_file: Path) -> None:
        settings = load_settings(temp_settings_file)

        assert settings.max_cas_attempts == 3
        assert settings.retry_backoff_sec == 0.001
        assert settings.operation_timeout_sec == 2.5
        assert settings.log_level == "DEBUG"

    def test_relative_db_path_resolved_against_file(self, temp_settings_file: Path) -> None:
        """상대 경로는 settings.yaml 위치 기준"""
        settings = load_settings(temp_settings_file)
        assert settings.db_path == temp_settings_file.parent / "data" / "test_ledger.db"

    def test_missing_file_returns_defaults(self, temp_dir: Path) -> None:
        settings = load_settings(temp_dir / "nonexistent.yaml")

        assert settings.db_path == Paths.LEDGER_DB
        assert settings.max_cas_attempts == Defaults.MAX_CAS_ATTEMPTS

    def test_empty_file_returns_defaults(self, temp_dir: Path) -> None:
        empty_file = temp_dir / "empty.yaml"
        empty_file.write_text("", encoding="utf-8")

        settings = load_settings(empty_file)
        assert settings.max_cas_attempts == Defaults.MAX_CAS_ATTEMPTS

    def test_absolute_db_path(self, temp_dir: Path) -> None:
        db_path = temp_dir / "abs" / "ledger.db"
        file = temp_dir / "abs.yaml"
        file.write_text(f"db_path: {db_path.as_posix()}\n", encoding="utf-8")

        assert load_settings(file).db_path == db_path

    def test_invalid_yaml(self, temp_dir: Path) -> None:
        file = temp_dir / "broken.yaml"
        file.write_text("ledger: [unclosed\n", encoding="utf-8")

        with pytest.raises(SettingsLoadError, match="파싱 실패"):
            load_settings(file)

    def test_top_level_not_mapping(self, temp_dir: Path) -> None:
        file = temp_dir / "list.yaml"
        file.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(SettingsLoadError, match="매핑"):
            load_settings(file)

    @pytest.mark.parametrize("value", ["0", "-1", "two", "true"])
    def test_invalid_max_cas_attempts(self, temp_dir: Path, value: str) -> None:
        file = temp_dir / "bad_attempts.yaml"
        file.write_text(f"ledger:\n  max_cas_attempts: {value}\n", encoding="utf-8")

        with pytest.raises(SettingsLoadError, match="max_cas_attempts"):
            load_settings(file)

    def test_negative_timeout(self, temp_dir: Path) -> None:
        file = temp_dir / "bad_timeout.yaml"
        file.write_text("ledger:\n  operation_timeout_sec: -1\n", encoding="utf-8")

        with pytest.raises(SettingsLoadError, match="operation_timeout_sec"):
            load_settings(file)

    def test_null_timeout_means_unbounded(self, temp_dir: Path) -> None:
        file = temp_dir / "null_timeout.yaml"
        file.write_text("ledger:\n  operation_timeout_sec: null\n", encoding="utf-8")

        assert load_settings(file).operation_timeout_sec is None

    def test_invalid_log_level(self, temp_dir: Path) -> None:
        file = temp_dir / "bad_level.yaml"
        file.write_text("log_level: verbose\n", encoding="utf-8")

        with pytest.raises(SettingsLoadError, match="log_level"):
            load_settings(file)


class TestSettingsSingleton:
    """Settings 싱글턴 테스트"""

    def test_same_instance(self, temp_settings_file: Path) -> None:
        first = get_settings(temp_settings_file)
        second = get_settings()

        assert first is second
        assert second.ledger.max_cas_attempts == 3

    def test_db_path_property(self, temp_settings_file: Path) -> None:
        settings = get_settings(temp_settings_file)
        assert settings.db_path == settings.ledger.db_path

    def test_reset(self, temp_settings_file: Path, temp_dir: Path) -> None:
        get_settings(temp_settings_file)
        Settings.reset()

        settings = get_settings(temp_dir / "nonexistent.yaml")
        assert settings.ledger.max_cas_attempts == Defaults.MAX_CAS_ATTEMPTS
