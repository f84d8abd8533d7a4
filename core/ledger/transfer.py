"""
Transfer Coordinator

두 계정 간 이체. 시스템에서 유일한 다중 계정 원자 단위.

1. 금액/계정 검증
2. 계정 락을 account_id 오름차순으로 획득 (교착 방지)
3. 하나의 원자 단위에서 두 계정 재조회 → 잔액 검증 → 양쪽 CAS
   → TRANSFER posting 2건 (OUT/IN) append
4. 락 역순 해제

두 leg는 같은 transfer_id, 같은 시각, 같은 금액을 가지며
peer_account_id로 서로를 가리킴. 둘 다 저장되거나 둘 다 저장되지 않음.
"""

import logging
import uuid
from dataclasses import replace
from datetime import datetime
from decimal import Decimal

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.errors import InsufficientFundsError, NotFoundError, ValidationError
from core.ledger.budget_aggregator import BudgetAggregator
from core.ledger.locks import AccountLockManager
from core.ledger.models import Account, Posting
from core.ledger.retry import CasMiss, Deadline, RetryPolicy, atomic_unit, run_with_cas_retry
from core.money import to_money, validate_positive_amount
from core.storage.account_store import AccountStore
from core.storage.journal import TransactionJournal
from core.types import PostingDirection, PostingKind
from core.utils.timezone import now_utc, to_utc

logger = logging.getLogger(__name__)


class TransferCoordinator:
    """계좌 이체 조정자

    Args:
        db: SQLiteAdapter 인스턴스
        accounts: AccountStore
        journal: TransactionJournal
        aggregator: BudgetAggregator (TRANSFER는 예산에 반영되지 않지만
            posting 추가 시 항상 통지)
        locks: AccountLockManager
        policy: CAS 재시도 정책
    """

    def __init__(
        self,
        db: SQLiteAdapter,
        accounts: AccountStore,
        journal: TransactionJournal,
        aggregator: BudgetAggregator,
        locks: AccountLockManager | None = None,
        policy: RetryPolicy | None = None,
    ):
        self.db = db
        self.accounts = accounts
        self.journal = journal
        self.aggregator = aggregator
        self.locks = locks or AccountLockManager()
        self.policy = policy or RetryPolicy()

    async def transfer(
        self,
        from_id: int,
        to_id: int,
        amount: Decimal | int | str,
        *,
        description: str | None = None,
        timestamp: datetime | None = None,
        deadline: Deadline | None = None,
    ) -> tuple[Posting, Posting]:
        """이체 실행

        Returns:
            (출금 leg, 입금 leg)

        Raises:
            ValidationError: 금액 오류, 같은 계정, 통화 불일치
            NotFoundError: 계정 없음
            InsufficientFundsError: 출금 계정 잔액 부족 (변경 없음)
            ConcurrencyConflictError: CAS 재시도 한도 초과
            LedgerTimeoutError: 마감 경과 (변경 없음)
            RuntimeError: 호출자가 이미 트랜잭션을 열어 둔 상태
        """
        # 계정 락은 항상 트랜잭션 락보다 먼저 잡아야 함
        if self.db.in_transaction:
            raise RuntimeError("transfer cannot run inside an open transaction")

        value = validate_positive_amount(amount)
        if from_id == to_id:
            raise ValidationError("cannot transfer to the same account")

        source = await self.accounts.get(from_id)
        if source is None:
            raise NotFoundError("account", from_id)
        destination = await self.accounts.get(to_id)
        if destination is None:
            raise NotFoundError("account", to_id)
        if source.currency != destination.currency:
            raise ValidationError(
                f"currency mismatch: {source.currency} -> {destination.currency}"
            )

        ts = to_utc(timestamp) if timestamp is not None else now_utc()
        transfer_id = str(uuid.uuid4())

        async def attempt() -> tuple[Posting, Posting]:
            async with atomic_unit(self.db, deadline, "transfer", transfer_id):
                src = await self._reload(from_id)
                dst = await self._reload(to_id)

                new_src_balance = to_money(src.balance - value, "balance")
                new_dst_balance = to_money(dst.balance + value, "balance")
                if not src.allows_balance(new_src_balance):
                    raise InsufficientFundsError(from_id, src.balance, value)

                # CAS도 계정 ID 순서로 수행
                for account, new_balance in sorted(
                    ((src, new_src_balance), (dst, new_dst_balance)),
                    key=lambda pair: pair[0].account_id,
                ):
                    if not await self.accounts.compare_and_swap_balance(
                        account.account_id, account.version, new_balance
                    ):
                        raise CasMiss("account", account.account_id)

                legs = await self.journal.append(
                    self._build_legs(src, dst, value, ts, transfer_id, description)
                )
                for leg in legs:
                    await self.aggregator.on_posting_appended(leg)

            return legs[0], legs[1]

        async with self.locks.hold([from_id, to_id], deadline):
            out_leg, in_leg = await run_with_cas_retry(
                self.policy, "transfer", transfer_id, attempt, deadline
            )

        logger.info(
            f"Transfer completed: {from_id} -> {to_id}",
            extra={"transfer_id": transfer_id, "amount": str(value)},
        )
        return out_leg, in_leg

    async def get_transfer(self, transfer_id: str) -> tuple[Posting, Posting]:
        """transfer_id로 두 leg 조회 (OUT, IN)"""
        legs = await self.journal.get_transfer_legs(transfer_id)
        if len(legs) != 2:
            raise NotFoundError("transfer", transfer_id)
        return legs[0], legs[1]

    async def _reload(self, account_id: int) -> Account:
        account = await self.accounts.get(account_id)
        if account is None:
            raise NotFoundError("account", account_id)
        return account

    @staticmethod
    def _build_legs(
        source: Account,
        destination: Account,
        amount: Decimal,
        ts: datetime,
        transfer_id: str,
        description: str | None,
    ) -> list[Posting]:
        out_leg = Posting(
            posting_id=None,
            account_id=source.account_id,
            owner_id=source.owner_id,
            amount=amount,
            kind=PostingKind.TRANSFER,
            direction=PostingDirection.OUT,
            ts=ts,
            peer_account_id=destination.account_id,
            transfer_id=transfer_id,
            description=description,
        )
        in_leg = replace(
            out_leg,
            account_id=destination.account_id,
            owner_id=destination.owner_id,
            direction=PostingDirection.IN,
            peer_account_id=source.account_id,
        )
        return [out_leg, in_leg]
