"""
Ledger Facade

요청 계층이 사용하는 단일 진입점.

모든 작업은 호출자의 owner_id를 먼저 검증.
다른 소유자의 레코드는 존재 여부를 노출하지 않고 NotFoundError로 처리.
timeout(초)은 Deadline으로 변환되어 락 대기/재시도 루프에 전달.
"""

import logging
from dataclasses import replace
from datetime import date, datetime, timedelta
from decimal import Decimal

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.config.loader import LedgerSettings, get_settings
from core.constants import Defaults, MoneyLimits
from core.errors import ConcurrencyConflictError, NotFoundError, ValidationError
from core.ledger.account_ledger import AccountLedger
from core.ledger.auditor import DriftInfo, LedgerAuditor
from core.ledger.budget_aggregator import BudgetAggregator
from core.ledger.locks import AccountLockManager
from core.ledger.models import Account, Budget, Category, FinancialSummary, Posting
from core.ledger.retry import Deadline, RetryPolicy, atomic_unit
from core.ledger.schema import init_ledger_schema
from core.ledger.transfer import TransferCoordinator
from core.money import validate_positive_amount
from core.storage.account_store import AccountStore
from core.storage.budget_store import BudgetStore
from core.storage.category_store import CategoryStore
from core.storage.journal import TransactionJournal
from core.types import (
    BUDGET_PERIOD_DAY_RANGES,
    AccountKind,
    BudgetPeriod,
    CategoryKind,
    PostingKind,
)
from core.utils.timezone import to_utc, today_utc

logger = logging.getLogger(__name__)


class LedgerFacade:
    """Ledger 진입점

    Args:
        db: 연결된 SQLiteAdapter
        settings: Ledger 설정 (None이면 settings.yaml 로드)

    사용 예시:
    ```python
    async with SQLiteAdapter(path) as db:
        ledger = LedgerFacade(db)
        await ledger.initialize()

        a = await ledger.open_account("alice", "Main", AccountKind.CHECKING, "100.00")
        b = await ledger.open_account("alice", "Savings", AccountKind.SAVINGS)
        out_leg, in_leg = await ledger.transfer("alice", a.account_id, b.account_id, "40.00")
    ```
    """

    def __init__(self, db: SQLiteAdapter, settings: LedgerSettings | None = None):
        self.db = db
        self.settings = settings or get_settings().ledger
        self.default_timeout = self.settings.operation_timeout_sec
        policy = RetryPolicy.from_settings(self.settings)

        self.accounts = AccountStore(db)
        self.journal = TransactionJournal(db)
        self.budgets = BudgetStore(db)
        self.categories = CategoryStore(db)

        self.aggregator = BudgetAggregator(db, self.budgets, self.journal, policy)
        self.account_ledger = AccountLedger(
            db, self.accounts, self.journal, self.categories, self.aggregator, policy
        )
        self.transfers = TransferCoordinator(
            db, self.accounts, self.journal, self.aggregator, AccountLockManager(), policy
        )
        self.auditor = LedgerAuditor(self.accounts, self.journal, self.budgets)

    async def initialize(self) -> None:
        """스키마 생성 (이미 있으면 건너뜀)"""
        await init_ledger_schema(self.db)

    def _deadline(self, timeout: float | None) -> Deadline:
        return Deadline(timeout if timeout is not None else self.default_timeout)

    # -------------------------------------------------------------------------
    # 소유권 검증
    # -------------------------------------------------------------------------

    async def _owned_account(self, owner_id: str, account_id: int) -> Account:
        account = await self.accounts.get(account_id)
        if account is None or account.owner_id != owner_id:
            raise NotFoundError("account", account_id)
        return account

    async def _owned_budget(self, owner_id: str, budget_id: int) -> Budget:
        budget = await self.budgets.get(budget_id)
        if budget is None or budget.owner_id != owner_id:
            raise NotFoundError("budget", budget_id)
        return budget

    async def _owned_category(self, owner_id: str, category_id: int) -> Category:
        category = await self.categories.get(category_id)
        if category is None or category.owner_id != owner_id:
            raise NotFoundError("category", category_id)
        return category

    # -------------------------------------------------------------------------
    # 계정
    # -------------------------------------------------------------------------

    async def open_account(
        self,
        owner_id: str,
        name: str,
        kind: AccountKind,
        initial_balance: Decimal | int | str = "0.00",
        currency: str = Defaults.CURRENCY,
        description: str | None = None,
        timeout: float | None = None,
    ) -> Account:
        return await self.account_ledger.open_account(
            owner_id, name, kind, initial_balance, currency, description,
            deadline=self._deadline(timeout),
        )

    async def get_account(self, owner_id: str, account_id: int) -> Account:
        return await self._owned_account(owner_id, account_id)

    async def list_accounts(self, owner_id: str, kind: AccountKind | None = None) -> list[Account]:
        return await self.accounts.list_by_owner(owner_id, kind)

    async def get_balance(self, owner_id: str, account_id: int) -> Decimal:
        account = await self._owned_account(owner_id, account_id)
        return account.balance

    async def total_balance(self, owner_id: str, currency: str | None = None) -> Decimal:
        """소유자 전체 계정 잔액 합계

        Args:
            currency: 지정 시 해당 통화 계정만 합산

        Raises:
            ValidationError: currency 미지정인데 통화가 섞여 있음
        """
        accounts = await self.accounts.list_by_owner(owner_id)
        if currency is not None:
            accounts = [a for a in accounts if a.currency == currency]
        elif len({a.currency for a in accounts}) > 1:
            raise ValidationError("accounts hold mixed currencies; pass a currency")
        return sum((a.balance for a in accounts), MoneyLimits.ZERO)

    async def delete_account(
        self,
        owner_id: str,
        account_id: int,
        timeout: float | None = None,
    ) -> None:
        """계정 삭제 (posting이 하나라도 있으면 거부)

        Raises:
            ValidationError: posting 이력 존재
            NotFoundError: 계정 없음
        """
        await self._owned_account(owner_id, account_id)

        async with atomic_unit(self.db, self._deadline(timeout), "account", account_id):
            postings = await self.journal.count_by_account(account_id)
            if postings:
                raise ValidationError(
                    f"account {account_id} has {postings} postings and cannot be deleted"
                )
            if not await self.accounts.delete(account_id):
                raise NotFoundError("account", account_id)

        logger.info(f"Account deleted: {account_id}", extra={"owner_id": owner_id})

    # -------------------------------------------------------------------------
    # 입출금 / 이체
    # -------------------------------------------------------------------------

    async def deposit(
        self,
        owner_id: str,
        account_id: int,
        amount: Decimal | int | str,
        *,
        description: str | None = None,
        timestamp: datetime | None = None,
        timeout: float | None = None,
    ) -> Account:
        """미분류 입금 (ADJUSTMENT IN)"""
        await self._owned_account(owner_id, account_id)
        return await self.account_ledger.deposit(
            account_id, amount,
            description=description, timestamp=timestamp,
            deadline=self._deadline(timeout),
        )

    async def withdraw(
        self,
        owner_id: str,
        account_id: int,
        amount: Decimal | int | str,
        *,
        description: str | None = None,
        timestamp: datetime | None = None,
        timeout: float | None = None,
    ) -> Account:
        """미분류 출금 (ADJUSTMENT OUT)"""
        await self._owned_account(owner_id, account_id)
        return await self.account_ledger.withdraw(
            account_id, amount,
            description=description, timestamp=timestamp,
            deadline=self._deadline(timeout),
        )

    async def record_income(
        self,
        owner_id: str,
        account_id: int,
        category_id: int,
        amount: Decimal | int | str,
        *,
        description: str | None = None,
        timestamp: datetime | None = None,
        timeout: float | None = None,
    ) -> Account:
        """수입 기록 (INCOME 카테고리 필수)"""
        await self._owned_account(owner_id, account_id)
        return await self.account_ledger.deposit(
            account_id, amount,
            kind=PostingKind.INCOME, category_id=category_id,
            description=description, timestamp=timestamp,
            deadline=self._deadline(timeout),
        )

    async def record_expense(
        self,
        owner_id: str,
        account_id: int,
        category_id: int,
        amount: Decimal | int | str,
        *,
        description: str | None = None,
        timestamp: datetime | None = None,
        timeout: float | None = None,
    ) -> Account:
        """지출 기록 (EXPENSE 카테고리 필수, 해당 예산 spent 반영)"""
        await self._owned_account(owner_id, account_id)
        return await self.account_ledger.withdraw(
            account_id, amount,
            kind=PostingKind.EXPENSE, category_id=category_id,
            description=description, timestamp=timestamp,
            deadline=self._deadline(timeout),
        )

    async def transfer(
        self,
        owner_id: str,
        from_id: int,
        to_id: int,
        amount: Decimal | int | str,
        *,
        description: str | None = None,
        timestamp: datetime | None = None,
        timeout: float | None = None,
    ) -> tuple[Posting, Posting]:
        """이체 (두 계정 모두 호출자 소유여야 함)"""
        await self._owned_account(owner_id, from_id)
        await self._owned_account(owner_id, to_id)
        return await self.transfers.transfer(
            from_id, to_id, amount,
            description=description, timestamp=timestamp,
            deadline=self._deadline(timeout),
        )

    async def get_transfer(self, owner_id: str, transfer_id: str) -> tuple[Posting, Posting]:
        out_leg, in_leg = await self.transfers.get_transfer(transfer_id)
        if owner_id not in (out_leg.owner_id, in_leg.owner_id):
            raise NotFoundError("transfer", transfer_id)
        return out_leg, in_leg

    async def list_postings(
        self,
        owner_id: str,
        account_id: int,
        limit: int | None = Defaults.POSTING_PAGE_SIZE,
        offset: int = 0,
    ) -> list[Posting]:
        await self._owned_account(owner_id, account_id)
        return await self.journal.list_by_account(account_id, limit, offset)

    # -------------------------------------------------------------------------
    # 카테고리
    # -------------------------------------------------------------------------

    async def create_category(
        self,
        owner_id: str,
        name: str,
        kind: CategoryKind,
        parent_id: int | None = None,
        description: str | None = None,
        timeout: float | None = None,
    ) -> Category:
        """카테고리 생성

        부모는 최상위 카테고리여야 하고 유형이 같아야 함.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("category name is required")

        if parent_id is not None:
            parent = await self._owned_category(owner_id, parent_id)
            if not parent.is_top_level:
                raise ValidationError(
                    f"parent category {parent_id} is itself a subcategory"
                )
            if parent.kind != kind:
                raise ValidationError(
                    f"subcategory kind {kind.value} must match parent kind {parent.kind.value}"
                )

        async with atomic_unit(self.db, self._deadline(timeout), "category", name):
            if await self.categories.exists_by_name(owner_id, name):
                raise ValidationError(f"category name already exists: {name}")
            category_id = await self.categories.insert(
                owner_id, name, kind, parent_id, description
            )

        logger.info(f"Category created: {name}", extra={"category_id": category_id})
        return Category(
            category_id=category_id,
            owner_id=owner_id,
            name=name,
            kind=kind,
            parent_id=parent_id,
            description=description,
        )

    async def get_category(self, owner_id: str, category_id: int) -> Category:
        return await self._owned_category(owner_id, category_id)

    async def list_categories(self, owner_id: str) -> list[Category]:
        return await self.categories.list_by_owner(owner_id)

    async def list_subcategories(self, owner_id: str, parent_id: int) -> list[Category]:
        await self._owned_category(owner_id, parent_id)
        return await self.categories.list_subcategories(parent_id)

    # -------------------------------------------------------------------------
    # 예산
    # -------------------------------------------------------------------------

    async def create_budget(
        self,
        owner_id: str,
        category_id: int,
        name: str,
        amount: Decimal | int | str,
        start_date: date,
        end_date: date,
        period: BudgetPeriod = BudgetPeriod.CUSTOM,
        timeout: float | None = None,
    ) -> Budget:
        """예산 생성

        초기 spent는 기존 posting 이력에서 계산.

        Raises:
            ValidationError: 금액/기간/카테고리 유형 오류, 기간 중복
            NotFoundError: 카테고리 없음
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("budget name is required")
        cap = validate_positive_amount(amount)
        _validate_budget_window(start_date, end_date, period)

        category = await self._owned_category(owner_id, category_id)
        if category.kind != CategoryKind.EXPENSE:
            raise ValidationError(f"budget category {category_id} must be an EXPENSE category")

        deadline = self._deadline(timeout)
        async with atomic_unit(self.db, deadline, "budget", name):
            overlapping = await self.budgets.find_overlapping(
                owner_id, category_id, start_date, end_date
            )
            if overlapping:
                raise ValidationError(
                    f"budget period overlaps existing budget {overlapping[0].budget_id}"
                )

            draft = Budget(
                budget_id=0,
                owner_id=owner_id,
                category_id=category_id,
                name=name,
                amount=cap,
                spent=MoneyLimits.ZERO,
                start_date=start_date,
                end_date=end_date,
                period=period,
                version=1,
            )
            spent = await self.aggregator.compute_spent(draft)
            budget_id = await self.budgets.insert(
                owner_id, category_id, name, cap, start_date, end_date, period, spent
            )
            budget = await self.budgets.get(budget_id)
            assert budget is not None

        logger.info(
            f"Budget created: {name}",
            extra={"budget_id": budget_id, "amount": str(cap), "spent": str(spent)},
        )
        return budget

    async def get_budget(self, owner_id: str, budget_id: int) -> Budget:
        return await self._owned_budget(owner_id, budget_id)

    async def update_budget(
        self,
        owner_id: str,
        budget_id: int,
        *,
        name: str | None = None,
        amount: Decimal | int | str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        period: BudgetPeriod | None = None,
        timeout: float | None = None,
    ) -> Budget:
        """예산 이름/한도/기간 변경

        지정하지 않은 항목은 기존 값 유지. 기간이 바뀌면 spent를
        새 기간의 posting 이력으로 다시 계산해 같은 원자 단위에서 저장.

        Raises:
            ValidationError: 금액/기간 오류, 다른 예산과 기간 중복
            NotFoundError: 예산 없음
            ConcurrencyConflictError: 다른 연결이 먼저 갱신
        """
        if name is not None:
            name = name.strip()
            if not name:
                raise ValidationError("budget name is required")
        cap = validate_positive_amount(amount) if amount is not None else None

        await self._owned_budget(owner_id, budget_id)

        async with atomic_unit(self.db, self._deadline(timeout), "budget", budget_id):
            current = await self._owned_budget(owner_id, budget_id)
            draft = replace(
                current,
                name=name if name is not None else current.name,
                amount=cap if cap is not None else current.amount,
                start_date=start_date or current.start_date,
                end_date=end_date or current.end_date,
                period=period or current.period,
            )
            _validate_budget_window(draft.start_date, draft.end_date, draft.period)

            overlapping = [
                b
                for b in await self.budgets.find_overlapping(
                    owner_id, draft.category_id, draft.start_date, draft.end_date
                )
                if b.budget_id != budget_id
            ]
            if overlapping:
                raise ValidationError(
                    f"budget period overlaps existing budget {overlapping[0].budget_id}"
                )

            spent = await self.aggregator.compute_spent(draft)
            if not await self.budgets.update_terms(
                budget_id,
                current.version,
                draft.name,
                draft.amount,
                draft.start_date,
                draft.end_date,
                draft.period,
                spent,
            ):
                raise ConcurrencyConflictError("budget", budget_id, 1)
            budget = await self.budgets.get(budget_id)
            assert budget is not None

        logger.info(
            f"Budget updated: {budget_id}",
            extra={"previous_spent": str(current.spent), "spent": str(spent)},
        )
        return budget

    async def delete_budget(
        self,
        owner_id: str,
        budget_id: int,
        timeout: float | None = None,
    ) -> None:
        """예산 삭제 (posting 이력은 영향 없음)"""
        await self._owned_budget(owner_id, budget_id)

        async with atomic_unit(self.db, self._deadline(timeout), "budget", budget_id):
            if not await self.budgets.delete(budget_id):
                raise NotFoundError("budget", budget_id)

        logger.info(f"Budget deleted: {budget_id}", extra={"owner_id": owner_id})

    async def list_budgets(
        self,
        owner_id: str,
        *,
        active_on: date | None = None,
        exceeded: bool | None = None,
    ) -> list[Budget]:
        """예산 목록

        Args:
            active_on: 지정 시 해당 날짜에 진행 중인 예산만
            exceeded: True/False 지정 시 초과 여부로 필터
        """
        budgets = await self.budgets.list_by_owner(owner_id)
        if active_on is not None:
            budgets = [b for b in budgets if b.is_active(active_on)]
        if exceeded is not None:
            budgets = [b for b in budgets if b.is_exceeded == exceeded]
        return budgets

    async def budgets_ending_soon(
        self,
        owner_id: str,
        days: int = Defaults.ENDING_SOON_DAYS,
        today: date | None = None,
    ) -> list[Budget]:
        """오늘부터 days일 안에 끝나는 예산"""
        if days < 0:
            raise ValidationError(f"days cannot be negative: {days}")
        start = today or today_utc()
        return await self.budgets.list_ending_between(owner_id, start, start + timedelta(days=days))

    async def budget_utilization(self, owner_id: str, budget_id: int) -> Decimal:
        """예산 사용률 (%)"""
        budget = await self._owned_budget(owner_id, budget_id)
        return budget.utilization

    async def recompute_budget_spent(
        self,
        owner_id: str,
        budget_id: int,
        timeout: float | None = None,
    ) -> Decimal:
        await self._owned_budget(owner_id, budget_id)
        return await self.aggregator.recompute_spent(budget_id, self._deadline(timeout))

    async def reset_budget_spent(
        self,
        owner_id: str,
        budget_id: int,
        timeout: float | None = None,
    ) -> None:
        await self._owned_budget(owner_id, budget_id)
        await self.aggregator.reset_spent(budget_id, self._deadline(timeout))

    async def verify_budget_spent(self, owner_id: str, budget_id: int) -> Decimal:
        await self._owned_budget(owner_id, budget_id)
        return await self.aggregator.verify_spent(budget_id)

    # -------------------------------------------------------------------------
    # 요약 / 감사
    # -------------------------------------------------------------------------

    async def financial_summary(
        self,
        owner_id: str,
        start: datetime,
        end: datetime,
    ) -> FinancialSummary:
        """[start, end) 구간의 INCOME/EXPENSE 합계"""
        start, end = to_utc(start), to_utc(end)
        if end <= start:
            raise ValidationError("summary end must be after start")

        postings = await self.journal.list_by_owner(
            owner_id, start, end, kinds=(PostingKind.INCOME, PostingKind.EXPENSE)
        )
        income = sum(
            (p.amount for p in postings if p.kind == PostingKind.INCOME), MoneyLimits.ZERO
        )
        expenses = sum(
            (p.amount for p in postings if p.kind == PostingKind.EXPENSE), MoneyLimits.ZERO
        )
        return FinancialSummary(total_income=income, total_expenses=expenses)

    async def audit(self, owner_id: str) -> list[DriftInfo]:
        """계정 잔액/이체 연결/예산 spent 정합성 감사"""
        return await self.auditor.audit_owner(owner_id)


def _validate_budget_window(start_date: date, end_date: date, period: BudgetPeriod) -> None:
    """기간 길이 검증 (종료일 - 시작일 일수)"""
    if end_date < start_date:
        raise ValidationError("budget end_date must not be before start_date")

    days = (end_date - start_date).days
    low, high = BUDGET_PERIOD_DAY_RANGES[period]
    if days < low or (high is not None and days > high):
        expected = f"{low}" if low == high else f"{low}-{high}"
        raise ValidationError(
            f"{period.value} budget must span {expected} days between dates, got {days}"
        )
