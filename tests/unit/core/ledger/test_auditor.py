"""LedgerAuditor 테스트"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from core.errors import ConsistencyError
from core.ledger.auditor import LedgerAuditor
from core.ledger.facade import LedgerFacade
from core.ledger.models import Posting
from core.types import AccountKind, BudgetPeriod, CategoryKind, PostingDirection, PostingKind


def _leg(account_id: int, peer: int, direction: PostingDirection, amount: str = "5.00") -> Posting:
    return Posting(
        posting_id=None,
        account_id=account_id,
        owner_id="alice",
        amount=Decimal(amount),
        kind=PostingKind.TRANSFER,
        direction=direction,
        ts=datetime(2026, 10, 18, tzinfo=timezone.utc),
        peer_account_id=peer,
        transfer_id="t-1",
    )


class TestDetectTransferDrift:
    """이체 leg 연결 검증"""

    @pytest.fixture
    def auditor(self, ledger: LedgerFacade) -> LedgerAuditor:
        return ledger.auditor

    def test_linked_pair(self, auditor: LedgerAuditor) -> None:
        legs = [_leg(2, 1, PostingDirection.IN), _leg(1, 2, PostingDirection.OUT)]

        assert auditor.detect_transfer_drift("t-1", legs) is None

    def test_missing_leg(self, auditor: LedgerAuditor) -> None:
        drift = auditor.detect_transfer_drift("t-1", [_leg(1, 2, PostingDirection.OUT)])

        assert drift is not None
        assert drift.actual["legs"] == 1

    def test_amount_mismatch(self, auditor: LedgerAuditor) -> None:
        legs = [_leg(1, 2, PostingDirection.OUT), _leg(2, 1, PostingDirection.IN, "4.99")]

        drift = auditor.detect_transfer_drift("t-1", legs)

        assert drift is not None
        assert isinstance(drift.to_error(), ConsistencyError)


class TestAuditOwner:
    """소유자 단위 감사"""

    @pytest.mark.asyncio
    async def test_clean_ledger(self, ledger: LedgerFacade) -> None:
        a = await ledger.open_account("alice", "A", AccountKind.CHECKING, "100.00")
        b = await ledger.open_account("alice", "B", AccountKind.SAVINGS)
        food = await ledger.create_category("alice", "Food", CategoryKind.EXPENSE)
        await ledger.create_budget(
            "alice", food.category_id, "Food", "80.00",
            date(2026, 10, 1), date(2026, 10, 31), BudgetPeriod.MONTHLY,
        )
        await ledger.transfer("alice", a.account_id, b.account_id, "30.00")
        await ledger.record_expense(
            "alice", a.account_id, food.category_id, "20.00",
            timestamp=datetime(2026, 10, 10, tzinfo=timezone.utc),
        )

        assert await ledger.audit("alice") == []

    @pytest.mark.asyncio
    async def test_balance_drift_reported(self, ledger: LedgerFacade, caplog: pytest.LogCaptureFixture) -> None:
        account = await ledger.open_account("alice", "A", AccountKind.CHECKING, "100.00")
        await ledger.db.execute(
            "UPDATE account SET balance = '90.00' WHERE account_id = ?", (account.account_id,)
        )
        await ledger.db.commit()

        with caplog.at_level("ERROR"):
            drifts = await ledger.audit("alice")

        assert len(drifts) == 1
        assert drifts[0].drift_kind == "balance"
        assert drifts[0].expected == {"balance": "100.00"}
        assert "Ledger drift detected" in caplog.text

    @pytest.mark.asyncio
    async def test_budget_drift_after_reset(self, ledger: LedgerFacade) -> None:
        account = await ledger.open_account("alice", "A", AccountKind.CHECKING, "100.00")
        food = await ledger.create_category("alice", "Food", CategoryKind.EXPENSE)
        budget = await ledger.create_budget(
            "alice", food.category_id, "Food", "80.00",
            date(2026, 10, 1), date(2026, 10, 31), BudgetPeriod.MONTHLY,
        )
        await ledger.record_expense(
            "alice", account.account_id, food.category_id, "20.00",
            timestamp=datetime(2026, 10, 10, tzinfo=timezone.utc),
        )

        await ledger.reset_budget_spent("alice", budget.budget_id)
        drifts = await ledger.audit("alice")

        assert [(d.drift_kind, d.resource_id) for d in drifts] == [("budget", budget.budget_id)]

        await ledger.recompute_budget_spent("alice", budget.budget_id)
        assert await ledger.audit("alice") == []

    @pytest.mark.asyncio
    async def test_other_owner_not_audited(self, ledger: LedgerFacade) -> None:
        account = await ledger.open_account("bob", "A", AccountKind.CHECKING, "10.00")
        await ledger.db.execute(
            "UPDATE account SET balance = '1.00' WHERE account_id = ?", (account.account_id,)
        )
        await ledger.db.commit()

        assert await ledger.audit("alice") == []
