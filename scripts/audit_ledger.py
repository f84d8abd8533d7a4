"""
Ledger 정합성 감사

계정 잔액 / 이체 leg 연결 / 예산 spent를 posting 이력과 비교.
불일치가 있으면 출력 후 종료 코드 1, Ledger 스키마가 없으면 종료 코드 2.

사용법:
    python -m scripts.audit_ledger --owner alice
    python -m scripts.audit_ledger --db data/finledger.db --owner alice --settings config/settings.yaml
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# 프로젝트 루트를 Python 경로에 추가
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.config.loader import get_settings
from core.ledger.facade import LedgerFacade
from core.logging import setup_logging_from_settings

logger = logging.getLogger(__name__)

EXIT_NO_SCHEMA = 2


async def run_audit(db_path: Path, owner_id: str, settings_path: Path | None = None) -> int | None:
    """감사 실행

    Returns:
        불일치 건수 (스키마가 없으면 None)
    """
    settings = get_settings(settings_path).ledger

    async with SQLiteAdapter(db_path) as db:
        if not await db.table_exists("account"):
            logger.error(f"Ledger 스키마가 없습니다: {db_path}")
            return None

        ledger = LedgerFacade(db, settings)
        drifts = await ledger.audit(owner_id)

    print(f"DB Path: {db_path}")
    print(f"Owner: {owner_id}")
    print(f"Discrepancies: {len(drifts)}")
    for drift in drifts:
        print(f"  - [{drift.drift_kind}] {drift.description}")
        print(f"      expected={drift.expected} actual={drift.actual}")

    return len(drifts)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Ledger 정합성 감사")
    parser.add_argument("--owner", required=True, help="감사할 소유자 ID")
    parser.add_argument("--db", type=Path, default=None, help="DB 파일 경로 (기본: settings.yaml)")
    parser.add_argument("--settings", type=Path, default=None, help="settings.yaml 경로")
    parser.add_argument("--log-dir", type=Path, default=None, help="로그 디렉토리")
    args = parser.parse_args(argv)

    settings = get_settings(args.settings).ledger
    setup_logging_from_settings(
        "audit", settings, console_level=logging.WARNING, log_dir=args.log_dir
    )

    db_path = args.db or settings.db_path
    discrepancies = asyncio.run(run_audit(db_path, args.owner, args.settings))
    if discrepancies is None:
        return EXIT_NO_SCHEMA
    return 1 if discrepancies else 0


if __name__ == "__main__":
    sys.exit(main())
