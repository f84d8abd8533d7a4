"""
Ledger 스키마 초기화

서비스 시작 시 자동으로 Ledger 테이블과 인덱스 생성.
CREATE IF NOT EXISTS 패턴으로 안전하게 동작.

금액은 모두 TEXT(Decimal 문자열)로 저장. REAL 사용 금지.
"""

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


async def init_ledger_schema(db: "SQLiteAdapter") -> None:
    """Ledger 스키마 초기화 (테이블 + 인덱스)

    이미 존재하는 경우 안전하게 건너뜀 (IF NOT EXISTS).

    Args:
        db: 연결된 SQLiteAdapter
    """
    await _create_ledger_tables(db)
    await _create_ledger_indexes(db)
    await db.commit()
    logger.info("Ledger 스키마 초기화 완료")


async def _create_ledger_tables(db: "SQLiteAdapter") -> None:
    """Ledger 테이블 생성"""

    # account 테이블 (balance/version은 AccountLedger만 변경)
    await db.execute("""
        CREATE TABLE IF NOT EXISTS account (
            account_id       INTEGER PRIMARY KEY AUTOINCREMENT,
            owner_id         TEXT NOT NULL CHECK(length(owner_id) > 0),
            name             TEXT NOT NULL,
            kind             TEXT NOT NULL CHECK(
                kind IN ('CHECKING', 'SAVINGS', 'CASH', 'INVESTMENT', 'CREDIT_CARD', 'LOAN')
            ),
            balance          TEXT NOT NULL DEFAULT '0.00',
            currency         TEXT NOT NULL DEFAULT 'USD' CHECK(length(currency) = 3),
            version          INTEGER NOT NULL DEFAULT 1,
            description      TEXT,
            created_at       TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at       TEXT NOT NULL DEFAULT (datetime('now')),
            UNIQUE(owner_id, name)
        )
    """)

    # category 테이블 (최대 2단계: 부모는 반드시 최상위)
    await db.execute("""
        CREATE TABLE IF NOT EXISTS category (
            category_id      INTEGER PRIMARY KEY AUTOINCREMENT,
            owner_id         TEXT NOT NULL CHECK(length(owner_id) > 0),
            name             TEXT NOT NULL,
            kind             TEXT NOT NULL CHECK(kind IN ('INCOME', 'EXPENSE')),
            parent_id        INTEGER REFERENCES category(category_id),
            description      TEXT,
            created_at       TEXT NOT NULL DEFAULT (datetime('now')),
            UNIQUE(owner_id, name),
            CHECK(parent_id IS NULL OR parent_id != category_id)
        )
    """)

    # posting 테이블 (append-only, UPDATE/DELETE 금지)
    await db.execute("""
        CREATE TABLE IF NOT EXISTS posting (
            posting_id       INTEGER PRIMARY KEY AUTOINCREMENT,
            account_id       INTEGER NOT NULL REFERENCES account(account_id),
            owner_id         TEXT NOT NULL,
            category_id      INTEGER REFERENCES category(category_id),
            amount           TEXT NOT NULL,
            kind             TEXT NOT NULL CHECK(
                kind IN ('INCOME', 'EXPENSE', 'TRANSFER', 'ADJUSTMENT')
            ),
            direction        TEXT NOT NULL CHECK(direction IN ('IN', 'OUT')),
            peer_account_id  INTEGER REFERENCES account(account_id),
            transfer_id      TEXT,
            description      TEXT,
            ts               TEXT NOT NULL,
            created_at       TEXT NOT NULL,
            CHECK(kind != 'TRANSFER' OR (peer_account_id IS NOT NULL AND transfer_id IS NOT NULL)),
            CHECK(kind NOT IN ('INCOME', 'EXPENSE') OR category_id IS NOT NULL)
        )
    """)

    # budget 테이블 (spent는 BudgetAggregator만 변경)
    await db.execute("""
        CREATE TABLE IF NOT EXISTS budget (
            budget_id        INTEGER PRIMARY KEY AUTOINCREMENT,
            owner_id         TEXT NOT NULL CHECK(length(owner_id) > 0),
            category_id      INTEGER NOT NULL REFERENCES category(category_id),
            name             TEXT NOT NULL,
            amount           TEXT NOT NULL,
            spent            TEXT NOT NULL DEFAULT '0.00',
            start_date       TEXT NOT NULL,
            end_date         TEXT NOT NULL,
            period           TEXT NOT NULL CHECK(
                period IN ('DAILY', 'WEEKLY', 'MONTHLY', 'QUARTERLY', 'YEARLY', 'CUSTOM')
            ),
            version          INTEGER NOT NULL DEFAULT 1,
            created_at       TEXT NOT NULL DEFAULT (datetime('now')),
            updated_at       TEXT NOT NULL DEFAULT (datetime('now')),
            CHECK(end_date >= start_date)
        )
    """)

    # posting 불변성 보장
    await db.execute("""
        CREATE TRIGGER IF NOT EXISTS trg_posting_no_update
        BEFORE UPDATE ON posting
        BEGIN
            SELECT RAISE(ABORT, 'posting is append-only');
        END
    """)

    await db.execute("""
        CREATE TRIGGER IF NOT EXISTS trg_posting_no_delete
        BEFORE DELETE ON posting
        BEGIN
            SELECT RAISE(ABORT, 'posting is append-only');
        END
    """)


async def _create_ledger_indexes(db: "SQLiteAdapter") -> None:
    """조회 성능용 인덱스 생성"""
    indexes = [
        ("ix_account_owner", "account", "owner_id"),
        ("ix_category_owner", "category", "owner_id"),
        ("ix_category_parent", "category", "parent_id"),
        ("ix_posting_account", "posting", "account_id, ts"),
        ("ix_posting_owner_category", "posting", "owner_id, category_id, kind"),
        ("ix_posting_owner_ts", "posting", "owner_id, ts"),
        ("ix_posting_transfer", "posting", "transfer_id"),
        ("ix_budget_owner_category", "budget", "owner_id, category_id"),
    ]

    for index_name, table, columns in indexes:
        await db.execute(f"""
            CREATE INDEX IF NOT EXISTS {index_name}
            ON {table}({columns})
        """)
