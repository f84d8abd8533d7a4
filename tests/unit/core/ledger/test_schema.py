"""Ledger 스키마 초기화 테스트"""

from datetime import datetime, timezone
from decimal import Decimal

import aiosqlite
import pytest

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.ledger.models import Posting
from core.ledger.schema import init_ledger_schema
from core.storage.journal import TransactionJournal
from core.types import PostingDirection, PostingKind


class TestInitLedgerSchema:
    """init_ledger_schema 테스트"""

    @pytest.mark.asyncio
    async def test_tables_created(self) -> None:
        async with SQLiteAdapter(":memory:") as db:
            await init_ledger_schema(db)

            for table in ("account", "category", "posting", "budget"):
                assert await db.table_exists(table), table

    @pytest.mark.asyncio
    async def test_idempotent(self) -> None:
        async with SQLiteAdapter(":memory:") as db:
            await init_ledger_schema(db)
            await init_ledger_schema(db)

            row = await db.fetchone(
                "SELECT COUNT(*) FROM sqlite_master WHERE type = 'index' AND name LIKE 'ix_%'"
            )
            assert row[0] == 8

    @pytest.mark.asyncio
    async def test_posting_append_only(self, db: SQLiteAdapter) -> None:
        await db.execute(
            "INSERT INTO account (owner_id, name, kind) VALUES ('alice', 'A', 'CASH')"
        )
        await db.commit()
        journal = TransactionJournal(db)
        posting = Posting(
            None, 1, "alice", Decimal("1.00"), PostingKind.ADJUSTMENT, PostingDirection.IN,
            datetime(2026, 10, 18, tzinfo=timezone.utc),
        )
        async with db.transaction():
            [stored] = await journal.append([posting])

        with pytest.raises(aiosqlite.IntegrityError, match="append-only"):
            async with db.transaction():
                await db.execute(
                    "UPDATE posting SET amount = '2.00' WHERE posting_id = ?", (stored.posting_id,)
                )
        with pytest.raises(aiosqlite.IntegrityError, match="append-only"):
            async with db.transaction():
                await db.execute("DELETE FROM posting WHERE posting_id = ?", (stored.posting_id,))

    @pytest.mark.asyncio
    async def test_transfer_requires_linkage(self, db: SQLiteAdapter) -> None:
        await db.execute(
            "INSERT INTO account (owner_id, name, kind) VALUES ('alice', 'A', 'CASH')"
        )
        await db.commit()

        with pytest.raises(aiosqlite.IntegrityError):
            async with db.transaction():
                await db.execute(
                    """
                    INSERT INTO posting (account_id, owner_id, amount, kind, direction, ts, created_at)
                    VALUES (1, 'alice', '1.00', 'TRANSFER', 'OUT', '2026-10-18', '2026-10-18')
                    """
                )
