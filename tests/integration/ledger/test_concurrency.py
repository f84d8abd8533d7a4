"""
Ledger 동시성 통합 테스트

동시 입금 / 반대 방향 이체 / 지출과 재계산 교차 실행
"""

import asyncio
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from core.errors import InsufficientFundsError
from core.ledger.facade import LedgerFacade
from core.types import AccountKind, BudgetPeriod, CategoryKind


@pytest.mark.asyncio
async def test_concurrent_deposits_no_lost_update(ledger: LedgerFacade) -> None:
    """같은 계정에 200건 동시 입금 → 잔액 = 합계, posting 200건"""
    account = await ledger.open_account("alice", "Main", AccountKind.CHECKING)

    await asyncio.gather(
        *(ledger.deposit("alice", account.account_id, "1.00") for _ in range(200))
    )

    stored = await ledger.get_account("alice", account.account_id)
    assert stored.balance == Decimal("200.00")
    assert stored.version == 1 + 200
    assert await ledger.journal.count_by_account(account.account_id) == 200
    assert await ledger.audit("alice") == []


@pytest.mark.asyncio
async def test_concurrent_withdrawals_never_overdraw(ledger: LedgerFacade) -> None:
    """잔액보다 많은 동시 출금 → 성공한 만큼만 차감, 음수 잔액 없음"""
    account = await ledger.open_account("alice", "Main", AccountKind.SAVINGS, "50.00")

    results = await asyncio.gather(
        *(ledger.withdraw("alice", account.account_id, "10.00") for _ in range(8)),
        return_exceptions=True,
    )

    succeeded = [r for r in results if not isinstance(r, Exception)]
    refused = [r for r in results if isinstance(r, InsufficientFundsError)]
    assert len(succeeded) == 5
    assert len(refused) == 3
    assert await ledger.get_balance("alice", account.account_id) == Decimal("0.00")


@pytest.mark.asyncio
async def test_opposite_transfers_no_deadlock(ledger: LedgerFacade) -> None:
    """A→B, B→A 동시 이체 → 교착 없이 완료, 총액 보존"""
    a = await ledger.open_account("alice", "A", AccountKind.CHECKING, "1000.00")
    b = await ledger.open_account("alice", "B", AccountKind.CHECKING, "1000.00")

    jobs = []
    for _ in range(50):
        jobs.append(ledger.transfer("alice", a.account_id, b.account_id, "3.00"))
        jobs.append(ledger.transfer("alice", b.account_id, a.account_id, "1.00"))

    await asyncio.wait_for(asyncio.gather(*jobs), timeout=30)

    balance_a = await ledger.get_balance("alice", a.account_id)
    balance_b = await ledger.get_balance("alice", b.account_id)
    assert balance_a == Decimal("900.00")
    assert balance_b == Decimal("1100.00")
    assert balance_a + balance_b == Decimal("2000.00")
    assert await ledger.audit("alice") == []


@pytest.mark.asyncio
async def test_transfers_across_three_accounts_conserve_total(ledger: LedgerFacade) -> None:
    accounts = [
        await ledger.open_account("alice", name, AccountKind.CHECKING, "100.00")
        for name in ("A", "B", "C")
    ]
    ids = [a.account_id for a in accounts]
    pairs = [(ids[0], ids[1]), (ids[1], ids[2]), (ids[2], ids[0]), (ids[2], ids[1])]

    await asyncio.gather(
        *(ledger.transfer("alice", src, dst, "2.50") for _ in range(10) for src, dst in pairs)
    )

    total = sum([await ledger.get_balance("alice", i) for i in ids], Decimal("0.00"))
    assert total == Decimal("300.00")
    assert await ledger.audit("alice") == []


@pytest.mark.asyncio
async def test_expenses_interleaved_with_recompute(ledger: LedgerFacade) -> None:
    """지출과 전체 재계산이 섞여도 최종 spent는 이력과 일치"""
    account = await ledger.open_account("alice", "Main", AccountKind.CHECKING, "10000.00")
    food = await ledger.create_category("alice", "Food", CategoryKind.EXPENSE)
    budget = await ledger.create_budget(
        "alice", food.category_id, "Food Oct", "500.00",
        date(2026, 10, 1), date(2026, 10, 31), BudgetPeriod.MONTHLY,
    )
    ts = datetime(2026, 10, 18, 12, tzinfo=timezone.utc)

    jobs = []
    for i in range(40):
        jobs.append(
            ledger.record_expense("alice", account.account_id, food.category_id, "2.25", timestamp=ts)
        )
        if i % 5 == 0:
            jobs.append(ledger.recompute_budget_spent("alice", budget.budget_id))

    await asyncio.gather(*jobs)

    stored = await ledger.get_budget("alice", budget.budget_id)
    assert stored.spent == Decimal("90.00")
    assert await ledger.verify_budget_spent("alice", budget.budget_id) == Decimal("90.00")
