"""
Ledger Auditor

저장된 잔액/spent와 posting 이력을 비교하여 불일치 감지.

- 계정: balance == Σ signed_amount(posting)
- 이체: transfer_id마다 정확히 2개 leg, 금액/시각 동일, 방향 반대, peer 상호 참조
- 예산: spent == fold_spent(posting 이력)

불일치는 ERROR 로그로 남기고 DriftInfo로 반환. 자동 복구하지 않음.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from core.constants import MoneyLimits
from core.errors import ConsistencyError
from core.ledger.budget_aggregator import fold_spent
from core.ledger.models import Account, Budget, Posting
from core.storage.account_store import AccountStore
from core.storage.budget_store import BudgetStore
from core.storage.journal import TransactionJournal
from core.types import PostingDirection, PostingKind

logger = logging.getLogger(__name__)


@dataclass
class DriftInfo:
    """불일치 정보"""
    drift_kind: str  # balance, transfer, budget
    resource_id: object
    expected: dict[str, Any]
    actual: dict[str, Any]
    description: str

    def to_error(self) -> ConsistencyError:
        return ConsistencyError(
            self.drift_kind, self.resource_id, self.actual, self.expected
        )


class LedgerAuditor:
    """소유자 단위 정합성 감사

    Args:
        accounts: AccountStore
        journal: TransactionJournal
        budgets: BudgetStore
    """

    def __init__(
        self,
        accounts: AccountStore,
        journal: TransactionJournal,
        budgets: BudgetStore,
    ):
        self.accounts = accounts
        self.journal = journal
        self.budgets = budgets

    async def audit_owner(self, owner_id: str) -> list[DriftInfo]:
        """소유자의 계정/이체/예산 전체 감사

        Returns:
            DriftInfo 목록 (비어 있으면 정상)
        """
        drifts: list[DriftInfo] = []
        transfer_legs: dict[str, list[Posting]] = defaultdict(list)

        for account in await self.accounts.list_by_owner(owner_id):
            postings = await self.journal.list_by_account(account.account_id)
            drift = self.detect_balance_drift(account, postings)
            if drift:
                drifts.append(drift)
            for posting in postings:
                if posting.kind == PostingKind.TRANSFER and posting.transfer_id:
                    transfer_legs[posting.transfer_id].append(posting)

        for transfer_id, legs in transfer_legs.items():
            # 다른 소유자 계정으로 간 leg는 이 소유자 조회에 없으므로 보충
            if len(legs) < 2:
                legs = await self.journal.get_transfer_legs(transfer_id)
            drift = self.detect_transfer_drift(transfer_id, legs)
            if drift:
                drifts.append(drift)

        for budget in await self.budgets.list_by_owner(owner_id):
            postings = await self.journal.list_by_category(
                owner_id, budget.category_id, PostingKind.EXPENSE
            )
            drift = self.detect_budget_drift(budget, postings)
            if drift:
                drifts.append(drift)

        for drift in drifts:
            logger.error(
                f"Ledger drift detected: {drift.description}",
                extra={"drift_kind": drift.drift_kind, "resource_id": drift.resource_id},
            )

        if not drifts:
            logger.info(f"Ledger audit clean: {owner_id}")
        return drifts

    def detect_balance_drift(self, account: Account, postings: list[Posting]) -> DriftInfo | None:
        """계정 잔액과 posting 합계 비교"""
        derived = sum((p.signed_amount for p in postings), MoneyLimits.ZERO)
        if derived == account.balance:
            return None
        return DriftInfo(
            drift_kind="balance",
            resource_id=account.account_id,
            expected={"balance": str(derived)},
            actual={"balance": str(account.balance)},
            description=f"Account {account.account_id} balance {account.balance} != postings {derived}",
        )

    def detect_transfer_drift(self, transfer_id: str, legs: list[Posting]) -> DriftInfo | None:
        """이체 두 leg의 연결 검증"""
        actual = {
            "legs": len(legs),
            "accounts": [p.account_id for p in legs],
        }
        if len(legs) != 2:
            return DriftInfo(
                drift_kind="transfer",
                resource_id=transfer_id,
                expected={"legs": 2},
                actual=actual,
                description=f"Transfer {transfer_id} has {len(legs)} leg(s)",
            )

        out_leg, in_leg = sorted(legs, key=lambda p: p.direction != PostingDirection.OUT)
        linked = (
            out_leg.direction == PostingDirection.OUT
            and in_leg.direction == PostingDirection.IN
            and out_leg.account_id != in_leg.account_id
            and out_leg.amount == in_leg.amount
            and out_leg.ts == in_leg.ts
            and out_leg.peer_account_id == in_leg.account_id
            and in_leg.peer_account_id == out_leg.account_id
        )
        if linked:
            return None
        return DriftInfo(
            drift_kind="transfer",
            resource_id=transfer_id,
            expected={"linked": True},
            actual=actual,
            description=f"Transfer {transfer_id} legs are not linked",
        )

    def detect_budget_drift(self, budget: Budget, postings: list[Posting]) -> DriftInfo | None:
        """예산 spent와 재계산 값 비교"""
        derived: Decimal = fold_spent(budget, postings)
        if derived == budget.spent:
            return None
        return DriftInfo(
            drift_kind="budget",
            resource_id=budget.budget_id,
            expected={"spent": str(derived)},
            actual={"spent": str(budget.spent)},
            description=f"Budget {budget.budget_id} spent {budget.spent} != postings {derived}",
        )
