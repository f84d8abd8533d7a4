"""
Account Ledger

단일 계정 입출금. 계정 balance/version의 writer.

한 번의 시도:
    원자 단위 시작 → 계정 재조회 → 새 잔액 계산 → version CAS
    → posting append → BudgetAggregator 반영 → 커밋
CAS 실패 시 원자 단위 전체 롤백 후 재시도 (RetryPolicy 한도까지).
"""

import logging
from dataclasses import replace
from datetime import datetime
from decimal import Decimal

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.constants import Defaults
from core.errors import (
    ConcurrencyConflictError,
    InsufficientFundsError,
    NotFoundError,
    ValidationError,
)
from core.ledger.budget_aggregator import BudgetAggregator
from core.ledger.models import Account, Posting
from core.ledger.retry import CasMiss, Deadline, RetryPolicy, atomic_unit, run_with_cas_retry
from core.money import to_money, validate_non_negative_amount, validate_positive_amount
from core.storage.account_store import AccountStore
from core.storage.category_store import CategoryStore
from core.storage.journal import TransactionJournal
from core.types import AccountKind, CategoryKind, PostingDirection, PostingKind
from core.utils.timezone import now_utc, to_utc

logger = logging.getLogger(__name__)


# 방향별 허용 posting 유형
_DEPOSIT_KINDS = (PostingKind.ADJUSTMENT, PostingKind.INCOME)
_WITHDRAW_KINDS = (PostingKind.ADJUSTMENT, PostingKind.EXPENSE)


class AccountLedger:
    """계정 입출금 처리

    Args:
        db: SQLiteAdapter 인스턴스
        accounts: AccountStore
        journal: TransactionJournal
        categories: CategoryStore
        aggregator: BudgetAggregator
        policy: CAS 재시도 정책
    """

    def __init__(
        self,
        db: SQLiteAdapter,
        accounts: AccountStore,
        journal: TransactionJournal,
        categories: CategoryStore,
        aggregator: BudgetAggregator,
        policy: RetryPolicy | None = None,
    ):
        self.db = db
        self.accounts = accounts
        self.journal = journal
        self.categories = categories
        self.aggregator = aggregator
        self.policy = policy or RetryPolicy()

    # -------------------------------------------------------------------------
    # 계정 생성
    # -------------------------------------------------------------------------

    async def open_account(
        self,
        owner_id: str,
        name: str,
        kind: AccountKind,
        initial_balance: Decimal | int | str = "0.00",
        currency: str = Defaults.CURRENCY,
        description: str | None = None,
        deadline: Deadline | None = None,
    ) -> Account:
        """계정 생성

        기초 잔액이 0보다 크면 같은 원자 단위에서 ADJUSTMENT IN posting을
        남겨 잔액이 항상 posting 합계와 일치하도록 함.
        """
        if not owner_id:
            raise ValidationError("owner_id is required")
        name = (name or "").strip()
        if not name:
            raise ValidationError("account name is required")
        if not (
            len(currency) == 3
            and currency.isascii()
            and currency.isalpha()
            and currency.isupper()
        ):
            raise ValidationError(f"currency must be a 3-letter uppercase code: {currency!r}")
        opening = validate_non_negative_amount(initial_balance, "initial_balance")

        async with atomic_unit(self.db, deadline, "account", name):
            if await self.accounts.exists_by_name(owner_id, name):
                raise ValidationError(f"account name already exists: {name}")

            account_id = await self.accounts.insert(owner_id, name, kind, currency, description)
            account = await self.accounts.get(account_id)
            assert account is not None

            if opening > 0:
                await self.journal.append([
                    Posting(
                        posting_id=None,
                        account_id=account_id,
                        owner_id=owner_id,
                        amount=opening,
                        kind=PostingKind.ADJUSTMENT,
                        direction=PostingDirection.IN,
                        ts=now_utc(),
                        description="Opening balance",
                    )
                ])
                if not await self.accounts.compare_and_swap_balance(
                    account_id, account.version, opening
                ):
                    raise ConcurrencyConflictError("account", account_id, 1)
                account = replace(account, balance=opening, version=account.version + 1)

        logger.info(
            f"Account opened: {account.account_id}",
            extra={"owner_id": owner_id, "kind": kind.value, "balance": str(account.balance)},
        )
        return account

    # -------------------------------------------------------------------------
    # 입출금
    # -------------------------------------------------------------------------

    async def deposit(
        self,
        account_id: int,
        amount: Decimal | int | str,
        *,
        kind: PostingKind = PostingKind.ADJUSTMENT,
        category_id: int | None = None,
        description: str | None = None,
        timestamp: datetime | None = None,
        deadline: Deadline | None = None,
    ) -> Account:
        """입금

        Args:
            kind: ADJUSTMENT (미분류) 또는 INCOME (category_id 필수)

        Returns:
            갱신된 Account

        Raises:
            ValidationError: 금액/유형/카테고리 오류
            NotFoundError: 계정 또는 카테고리 없음
            ConcurrencyConflictError: CAS 재시도 한도 초과
        """
        if kind not in _DEPOSIT_KINDS:
            raise ValidationError(f"deposit kind must be ADJUSTMENT or INCOME: {kind}")
        account, _ = await self._post(
            account_id, amount, PostingDirection.IN, kind,
            category_id, description, timestamp, deadline,
        )
        return account

    async def withdraw(
        self,
        account_id: int,
        amount: Decimal | int | str,
        *,
        kind: PostingKind = PostingKind.ADJUSTMENT,
        category_id: int | None = None,
        description: str | None = None,
        timestamp: datetime | None = None,
        deadline: Deadline | None = None,
    ) -> Account:
        """출금

        잔액 보호 계정이 음수가 되면 InsufficientFundsError (변경 없음).

        Args:
            kind: ADJUSTMENT (미분류) 또는 EXPENSE (category_id 필수)
        """
        if kind not in _WITHDRAW_KINDS:
            raise ValidationError(f"withdraw kind must be ADJUSTMENT or EXPENSE: {kind}")
        account, _ = await self._post(
            account_id, amount, PostingDirection.OUT, kind,
            category_id, description, timestamp, deadline,
        )
        return account

    async def get_balance(self, account_id: int) -> Decimal:
        account = await self.accounts.get(account_id)
        if account is None:
            raise NotFoundError("account", account_id)
        return account.balance

    async def _post(
        self,
        account_id: int,
        amount: Decimal | int | str,
        direction: PostingDirection,
        kind: PostingKind,
        category_id: int | None,
        description: str | None,
        timestamp: datetime | None,
        deadline: Deadline | None,
    ) -> tuple[Account, Posting]:
        value = validate_positive_amount(amount)
        ts = to_utc(timestamp) if timestamp is not None else now_utc()

        account = await self.accounts.get(account_id)
        if account is None:
            raise NotFoundError("account", account_id)
        await self._check_category(account.owner_id, kind, category_id)

        async def attempt() -> tuple[Account, Posting]:
            async with atomic_unit(self.db, deadline, "account", account_id):
                current = await self.accounts.get(account_id)
                if current is None:
                    raise NotFoundError("account", account_id)

                delta = value if direction == PostingDirection.IN else -value
                new_balance = to_money(current.balance + delta, "balance")
                if not current.allows_balance(new_balance):
                    raise InsufficientFundsError(account_id, current.balance, value)

                if not await self.accounts.compare_and_swap_balance(
                    account_id, current.version, new_balance
                ):
                    raise CasMiss("account", account_id)

                [posting] = await self.journal.append([
                    Posting(
                        posting_id=None,
                        account_id=account_id,
                        owner_id=current.owner_id,
                        amount=value,
                        kind=kind,
                        direction=direction,
                        ts=ts,
                        category_id=category_id,
                        description=description,
                    )
                ])
                await self.aggregator.on_posting_appended(posting)

            updated = replace(current, balance=new_balance, version=current.version + 1)
            return updated, posting

        updated, posting = await run_with_cas_retry(
            self.policy, "account", account_id, attempt, deadline
        )
        logger.info(
            f"{kind.value} {direction.value} posted: account {account_id}",
            extra={
                "posting_id": posting.posting_id,
                "amount": str(value),
                "balance": str(updated.balance),
            },
        )
        return updated, posting

    async def _check_category(
        self,
        owner_id: str,
        kind: PostingKind,
        category_id: int | None,
    ) -> None:
        """posting 유형과 카테고리 정합성 검증"""
        if kind not in (PostingKind.INCOME, PostingKind.EXPENSE):
            if category_id is not None:
                raise ValidationError(f"{kind.value} posting cannot have a category")
            return

        if category_id is None:
            raise ValidationError(f"{kind.value} posting requires a category")

        category = await self.categories.get(category_id)
        if category is None or category.owner_id != owner_id:
            raise NotFoundError("category", category_id)
        if category.kind != CategoryKind(kind.value):
            raise ValidationError(
                f"category {category_id} is {category.kind.value}, posting is {kind.value}"
            )
