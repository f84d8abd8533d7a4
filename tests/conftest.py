"""
pytest 공통 fixture 정의

DB 어댑터(임시 파일), Ledger 설정, LedgerFacade fixture
"""

import tempfile
from pathlib import Path

import pytest
import pytest_asyncio

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.config.loader import LedgerSettings, Settings
from core.ledger.facade import LedgerFacade
from core.ledger.schema import init_ledger_schema


@pytest.fixture
def temp_dir() -> Path:
    """OS 독립적인 임시 디렉토리 생성"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_settings_file(temp_dir: Path) -> Path:
    """테스트용 settings.yaml 파일 생성"""
    settings_content = """# 테스트용 settings.yaml
db_path: data/test_ledger.db
log_level: debug

ledger:
  max_cas_attempts: 3
  retry_backoff_sec: 0.001
  operation_timeout_sec: 2.5
"""
    settings_path = temp_dir / "settings.yaml"
    settings_path.write_text(settings_content, encoding="utf-8")
    return settings_path


@pytest.fixture(autouse=True)
def reset_settings_singleton() -> None:
    """테스트 간 Settings 싱글턴 격리"""
    Settings.reset()
    yield
    Settings.reset()


@pytest.fixture
def ledger_settings(temp_dir: Path) -> LedgerSettings:
    """테스트용 Ledger 설정 (백오프 최소화)"""
    return LedgerSettings(
        db_path=temp_dir / "ledger.db",
        max_cas_attempts=5,
        retry_backoff_sec=0.0,
        operation_timeout_sec=None,
    )


@pytest_asyncio.fixture
async def db(temp_dir: Path) -> SQLiteAdapter:
    """스키마가 생성된 임시 DB"""
    adapter = SQLiteAdapter(temp_dir / "ledger.db")
    await adapter.connect()
    await init_ledger_schema(adapter)

    yield adapter

    await adapter.close()


@pytest_asyncio.fixture
async def ledger(db: SQLiteAdapter, ledger_settings: LedgerSettings) -> LedgerFacade:
    """LedgerFacade 인스턴스"""
    return LedgerFacade(db, ledger_settings)
