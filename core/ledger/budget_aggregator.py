"""
Budget Aggregator

Budget.spent의 유일한 writer.
spent는 posting 이력에서 언제든 재계산 가능한 캐시로 취급.

증분 갱신(on_posting_appended)과 전체 재계산(recompute_spent)은
같은 reducer(apply_posting)와 같은 포함 조건(Budget.covers)을 공유.
"""

import logging
from decimal import Decimal
from typing import Iterable

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.constants import MoneyLimits
from core.errors import ConcurrencyConflictError, ConsistencyError, NotFoundError
from core.ledger.models import Budget, Posting
from core.ledger.retry import Deadline, RetryPolicy, atomic_unit
from core.storage.budget_store import BudgetStore
from core.storage.journal import TransactionJournal
from core.types import PostingKind
from core.utils.timezone import utc_day_end_exclusive, utc_day_start

logger = logging.getLogger(__name__)


def apply_posting(spent: Decimal, budget: Budget, posting: Posting) -> Decimal:
    """reducer: posting 하나를 spent에 반영

    같은 소유자/카테고리의 EXPENSE이고 예산 기간에 포함될 때만 합산.
    """
    if posting.kind != PostingKind.EXPENSE:
        return spent
    if posting.owner_id != budget.owner_id or posting.category_id != budget.category_id:
        return spent
    if not budget.covers(posting.ts):
        return spent
    return spent + posting.amount


def fold_spent(budget: Budget, postings: Iterable[Posting]) -> Decimal:
    """posting 이력 전체를 fold하여 spent 계산"""
    spent = MoneyLimits.ZERO
    for posting in postings:
        spent = apply_posting(spent, budget, posting)
    return spent


class BudgetAggregator:
    """예산 spent 관리

    Args:
        db: SQLiteAdapter 인스턴스
        budgets: BudgetStore
        journal: TransactionJournal
        policy: 예산 CAS 재시도 정책 (계정 CAS와 독립)
    """

    def __init__(
        self,
        db: SQLiteAdapter,
        budgets: BudgetStore,
        journal: TransactionJournal,
        policy: RetryPolicy | None = None,
    ):
        self.db = db
        self.budgets = budgets
        self.journal = journal
        self.policy = policy or RetryPolicy()

    async def on_posting_appended(self, posting: Posting) -> list[Budget]:
        """posting 추가 직후 호출 (호출자의 원자 단위 안에서)

        EXPENSE가 아니면 아무것도 하지 않음.

        Returns:
            갱신된 예산 목록
        """
        if posting.kind != PostingKind.EXPENSE or posting.category_id is None:
            return []
        if not self.db.in_transaction:
            raise RuntimeError("on_posting_appended requires the caller's open transaction")

        updated: list[Budget] = []
        for budget in await self.budgets.list_by_category(posting.owner_id, posting.category_id):
            if not budget.covers(posting.ts):
                continue
            updated.append(await self._add_with_retry(budget, posting))
        return updated

    async def _add_with_retry(self, budget: Budget, posting: Posting) -> Budget:
        """예산 CAS 재시도 (예산 레코드만 다시 읽음)"""
        current: Budget | None = budget
        for attempt in range(1, self.policy.max_attempts + 1):
            if current is None:
                raise NotFoundError("budget", budget.budget_id)

            new_spent = apply_posting(current.spent, current, posting)
            if await self.budgets.compare_and_swap_spent(
                current.budget_id, current.version, new_spent
            ):
                logger.debug(
                    f"Budget spent updated: {current.budget_id}",
                    extra={"spent": str(new_spent), "posting_id": posting.posting_id},
                )
                current.spent = new_spent
                current.version += 1
                if current.is_exceeded:
                    logger.info(
                        f"예산 초과: {current.name}",
                        extra={"budget_id": current.budget_id, "spent": str(new_spent)},
                    )
                return current

            logger.debug(
                f"Budget CAS conflict, retrying: {current.budget_id}",
                extra={"attempt": attempt},
            )
            current = await self.budgets.get(budget.budget_id)

        logger.warning(
            f"Budget CAS 재시도 한도 초과: {budget.budget_id}",
            extra={"attempts": self.policy.max_attempts},
        )
        raise ConcurrencyConflictError("budget", budget.budget_id, self.policy.max_attempts)

    async def compute_spent(self, budget: Budget) -> Decimal:
        """posting 이력에서 spent 계산 (쓰기 없음)"""
        postings = await self.journal.list_by_category(
            budget.owner_id,
            budget.category_id,
            PostingKind.EXPENSE,
            start=utc_day_start(budget.start_date),
            end=utc_day_end_exclusive(budget.end_date),
        )
        return fold_spent(budget, postings)

    async def recompute_spent(self, budget_id: int, deadline: Deadline | None = None) -> Decimal:
        """전체 재계산 후 저장 (복구/감사용)

        계산과 저장을 하나의 원자 단위에서 수행하므로 그 사이 새 posting이
        끼어들 수 없음.
        """
        async with atomic_unit(self.db, deadline, "budget", budget_id):
            budget = await self._require(budget_id)
            spent = await self.compute_spent(budget)
            await self._write_spent(budget, spent)

        logger.info(
            f"Budget spent recomputed: {budget_id}",
            extra={"previous": str(budget.spent), "spent": str(spent)},
        )
        return spent

    async def reset_spent(self, budget_id: int, deadline: Deadline | None = None) -> None:
        """spent를 0으로 초기화 (관리용)

        다음 recompute_spent 전까지 spent는 이력과 일치하지 않을 수 있음.
        """
        async with atomic_unit(self.db, deadline, "budget", budget_id):
            budget = await self._require(budget_id)
            await self._write_spent(budget, MoneyLimits.ZERO)

        logger.info(f"Budget spent reset: {budget_id}", extra={"previous": str(budget.spent)})

    async def verify_spent(self, budget_id: int) -> Decimal:
        """저장된 spent와 재계산 값 비교

        Returns:
            재계산 값 (일치 시)

        Raises:
            ConsistencyError: 불일치 (재시도 금지, ERROR 로그)
        """
        budget = await self._require(budget_id)
        derived = await self.compute_spent(budget)
        if derived != budget.spent:
            logger.error(
                f"Budget spent 불일치: {budget_id}",
                extra={"stored": str(budget.spent), "derived": str(derived)},
            )
            raise ConsistencyError("budget", budget_id, budget.spent, derived)
        return derived

    async def _require(self, budget_id: int) -> Budget:
        budget = await self.budgets.get(budget_id)
        if budget is None:
            raise NotFoundError("budget", budget_id)
        return budget

    async def _write_spent(self, budget: Budget, spent: Decimal) -> None:
        # 같은 원자 단위에서 읽은 직후이므로 다른 연결이 끼어든 경우에만 실패
        if not await self.budgets.compare_and_swap_spent(budget.budget_id, budget.version, spent):
            raise ConcurrencyConflictError("budget", budget.budget_id, 1)
