"""TransactionJournal 테스트"""

from datetime import datetime, timezone
from decimal import Decimal

import aiosqlite
import pytest
import pytest_asyncio

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.ledger.models import Posting
from core.storage.account_store import AccountStore
from core.storage.category_store import CategoryStore
from core.storage.journal import TransactionJournal
from core.types import AccountKind, CategoryKind, PostingDirection, PostingKind


TS = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def journal(db: SQLiteAdapter) -> TransactionJournal:
    return TransactionJournal(db)


@pytest_asyncio.fixture
async def seeded(db: SQLiteAdapter) -> dict[str, int]:
    """계정 2개, 지출 카테고리 1개"""
    accounts = AccountStore(db)
    categories = CategoryStore(db)
    async with db.transaction():
        a = await accounts.insert("alice", "A", AccountKind.CHECKING, "USD")
        b = await accounts.insert("alice", "B", AccountKind.SAVINGS, "USD")
        food = await categories.insert("alice", "Food", CategoryKind.EXPENSE)
    return {"a": a, "b": b, "food": food}


def _posting(account_id: int, amount: str, **kwargs) -> Posting:
    values = {
        "posting_id": None,
        "account_id": account_id,
        "owner_id": "alice",
        "amount": Decimal(amount),
        "kind": PostingKind.ADJUSTMENT,
        "direction": PostingDirection.IN,
        "ts": TS,
    }
    values.update(kwargs)
    return Posting(**values)


class TestJournalAppend:
    """append 테스트"""

    @pytest.mark.asyncio
    async def test_append_assigns_ids(
        self, db: SQLiteAdapter, journal: TransactionJournal, seeded: dict[str, int]
    ) -> None:
        async with db.transaction():
            saved = await journal.append([_posting(seeded["a"], "10.00"), _posting(seeded["a"], "5.00")])

        assert [p.posting_id is not None for p in saved] == [True, True]
        assert saved[0].posting_id < saved[1].posting_id
        assert saved[0].created_at is not None

        stored = await journal.get(saved[0].posting_id)
        assert stored.amount == Decimal("10.00")
        assert stored.ts == TS

    @pytest.mark.asyncio
    async def test_append_requires_transaction(
        self, journal: TransactionJournal, seeded: dict[str, int]
    ) -> None:
        with pytest.raises(RuntimeError, match="open transaction"):
            await journal.append([_posting(seeded["a"], "1.00")])

    @pytest.mark.asyncio
    async def test_append_all_or_nothing(
        self, db: SQLiteAdapter, journal: TransactionJournal, seeded: dict[str, int]
    ) -> None:
        """두 번째 행이 제약 위반이면 첫 번째도 롤백"""
        bad = _posting(seeded["a"], "1.00", kind=PostingKind.EXPENSE)  # category 누락

        with pytest.raises(aiosqlite.IntegrityError):
            async with db.transaction():
                await journal.append([_posting(seeded["a"], "1.00"), bad])

        assert await journal.count_by_account(seeded["a"]) == 0

    @pytest.mark.asyncio
    async def test_postings_are_immutable(
        self, db: SQLiteAdapter, journal: TransactionJournal, seeded: dict[str, int]
    ) -> None:
        """UPDATE/DELETE는 트리거로 거부"""
        async with db.transaction():
            [saved] = await journal.append([_posting(seeded["a"], "10.00")])

        with pytest.raises(aiosqlite.IntegrityError, match="append-only"):
            async with db.transaction():
                await db.execute(
                    "UPDATE posting SET amount = '1.00' WHERE posting_id = ?",
                    (saved.posting_id,),
                )

        with pytest.raises(aiosqlite.IntegrityError, match="append-only"):
            async with db.transaction():
                await db.execute("DELETE FROM posting WHERE posting_id = ?", (saved.posting_id,))


class TestJournalQueries:
    """조회 테스트"""

    @pytest.mark.asyncio
    async def test_list_by_account_paging(
        self, db: SQLiteAdapter, journal: TransactionJournal, seeded: dict[str, int]
    ) -> None:
        async with db.transaction():
            await journal.append([_posting(seeded["a"], f"{i}.00") for i in range(1, 6)])
            await journal.append([_posting(seeded["b"], "9.00")])

        page = await journal.list_by_account(seeded["a"], limit=2, offset=1)

        assert [p.amount for p in page] == [Decimal("2.00"), Decimal("3.00")]
        assert len(await journal.list_by_account(seeded["a"])) == 5
        assert await journal.count_by_account(seeded["b"]) == 1

    @pytest.mark.asyncio
    async def test_transfer_legs_out_first(
        self, db: SQLiteAdapter, journal: TransactionJournal, seeded: dict[str, int]
    ) -> None:
        legs = [
            _posting(seeded["b"], "7.00", kind=PostingKind.TRANSFER, direction=PostingDirection.IN,
                     peer_account_id=seeded["a"], transfer_id="t-1"),
            _posting(seeded["a"], "7.00", kind=PostingKind.TRANSFER, direction=PostingDirection.OUT,
                     peer_account_id=seeded["b"], transfer_id="t-1"),
        ]
        async with db.transaction():
            await journal.append(legs)

        out_leg, in_leg = await journal.get_transfer_legs("t-1")

        assert out_leg.direction == PostingDirection.OUT
        assert in_leg.direction == PostingDirection.IN

    @pytest.mark.asyncio
    async def test_list_by_category_time_range(
        self, db: SQLiteAdapter, journal: TransactionJournal, seeded: dict[str, int]
    ) -> None:
        expense = {
            "kind": PostingKind.EXPENSE,
            "direction": PostingDirection.OUT,
            "category_id": seeded["food"],
        }
        async with db.transaction():
            await journal.append([
                _posting(seeded["a"], "1.00", ts=datetime(2026, 10, 1, tzinfo=timezone.utc), **expense),
                _posting(seeded["a"], "2.00", ts=datetime(2026, 10, 15, tzinfo=timezone.utc), **expense),
                _posting(seeded["a"], "4.00", ts=datetime(2026, 11, 1, tzinfo=timezone.utc), **expense),
            ])

        in_range = await journal.list_by_category(
            "alice",
            seeded["food"],
            PostingKind.EXPENSE,
            start=datetime(2026, 10, 1, tzinfo=timezone.utc),
            end=datetime(2026, 11, 1, tzinfo=timezone.utc),
        )
        everything = await journal.list_by_category("alice", seeded["food"], PostingKind.EXPENSE)

        assert [p.amount for p in in_range] == [Decimal("1.00"), Decimal("2.00")]
        assert len(everything) == 3

    @pytest.mark.asyncio
    async def test_list_by_owner_filters_kind(
        self, db: SQLiteAdapter, journal: TransactionJournal, seeded: dict[str, int]
    ) -> None:
        async with db.transaction():
            await journal.append([
                _posting(seeded["a"], "1.00"),
                _posting(seeded["a"], "2.00", kind=PostingKind.EXPENSE,
                         direction=PostingDirection.OUT, category_id=seeded["food"]),
            ])

        postings = await journal.list_by_owner(
            "alice",
            datetime(2026, 1, 1, tzinfo=timezone.utc),
            datetime(2027, 1, 1, tzinfo=timezone.utc),
            kinds=(PostingKind.EXPENSE,),
        )

        assert [p.kind for p in postings] == [PostingKind.EXPENSE]
