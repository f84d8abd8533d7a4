"""
Ledger 도메인 레코드

Account / Posting / Budget / Category 데이터 클래스.
관계는 모두 "many" 쪽이 보유한 id로만 표현 (역참조 없음).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from core.constants import MoneyLimits
from core.money import parse_stored
from core.types import (
    AccountKind,
    BudgetPeriod,
    CategoryKind,
    PostingDirection,
    PostingKind,
)


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


@dataclass
class Account:
    """계정

    Attributes:
        account_id: 계정 ID
        owner_id: 소유자 ID
        name: 계정 이름 (소유자 내 고유)
        kind: 계정 유형
        balance: 현재 잔액 (소수 2자리)
        currency: 3자리 통화 코드
        version: Optimistic concurrency 버전 (CAS 성공 시 +1)
    """

    account_id: int
    owner_id: str
    name: str
    kind: AccountKind
    balance: Decimal
    currency: str
    version: int
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def allows_balance(self, new_balance: Decimal) -> bool:
        """해당 잔액이 계정 유형에 허용되는지 여부"""
        if self.kind.is_balance_protected:
            return new_balance >= MoneyLimits.ZERO
        return True

    @classmethod
    def from_row(cls, row: tuple[Any, ...]) -> Account:
        """DB 행에서 생성

        컬럼 순서: account_id, owner_id, name, kind, balance, currency,
        version, description, created_at, updated_at
        """
        return cls(
            account_id=row[0],
            owner_id=row[1],
            name=row[2],
            kind=AccountKind(row[3]),
            balance=parse_stored(row[4]),
            currency=row[5],
            version=row[6],
            description=row[7],
            created_at=_parse_ts(row[8]),
            updated_at=_parse_ts(row[9]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "account_id": self.account_id,
            "owner_id": self.owner_id,
            "name": self.name,
            "kind": self.kind.value,
            "balance": str(self.balance),
            "currency": self.currency,
            "version": self.version,
            "description": self.description,
        }


@dataclass(frozen=True)
class Posting:
    """Posting (단일 계정의 금액 이동 기록)

    한 번 저장되면 변경 불가. 정정은 반대 방향 ADJUSTMENT로 기록.
    TRANSFER는 같은 transfer_id를 가진 두 leg(OUT/IN)로 구성되며
    peer_account_id가 서로를 가리킴.
    """

    posting_id: int | None
    account_id: int
    owner_id: str
    amount: Decimal
    kind: PostingKind
    direction: PostingDirection
    ts: datetime
    category_id: int | None = None
    peer_account_id: int | None = None
    transfer_id: str | None = None
    description: str | None = None
    created_at: datetime | None = None

    @property
    def signed_amount(self) -> Decimal:
        """계정 잔액에 대한 부호 포함 금액"""
        if self.direction == PostingDirection.IN:
            return self.amount
        return -self.amount

    @classmethod
    def from_row(cls, row: tuple[Any, ...]) -> Posting:
        """DB 행에서 생성

        컬럼 순서: posting_id, account_id, owner_id, category_id, amount, kind,
        direction, peer_account_id, transfer_id, description, ts, created_at
        """
        return cls(
            posting_id=row[0],
            account_id=row[1],
            owner_id=row[2],
            category_id=row[3],
            amount=parse_stored(row[4]),
            kind=PostingKind(row[5]),
            direction=PostingDirection(row[6]),
            peer_account_id=row[7],
            transfer_id=row[8],
            description=row[9],
            ts=datetime.fromisoformat(row[10]),
            created_at=_parse_ts(row[11]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "posting_id": self.posting_id,
            "account_id": self.account_id,
            "owner_id": self.owner_id,
            "category_id": self.category_id,
            "amount": str(self.amount),
            "kind": self.kind.value,
            "direction": self.direction.value,
            "peer_account_id": self.peer_account_id,
            "transfer_id": self.transfer_id,
            "description": self.description,
            "ts": self.ts.isoformat(),
        }


@dataclass
class Budget:
    """예산

    spent는 BudgetAggregator가 관리하는 캐시.
    항상 posting 이력으로부터 재계산 가능해야 함.
    """

    budget_id: int
    owner_id: str
    category_id: int
    name: str
    amount: Decimal
    spent: Decimal
    start_date: date
    end_date: date
    period: BudgetPeriod
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def covers(self, ts: datetime) -> bool:
        """posting 시각이 예산 기간 [start_date, end_date]에 포함되는지"""
        return self.start_date <= ts.date() <= self.end_date

    @property
    def is_exceeded(self) -> bool:
        return self.spent > self.amount

    @property
    def remaining(self) -> Decimal:
        return self.amount - self.spent

    @property
    def utilization(self) -> Decimal:
        """사용률 (%) - 소수 2자리"""
        if self.amount == 0:
            return MoneyLimits.ZERO
        return (self.spent / self.amount * 100).quantize(MoneyLimits.QUANTUM)

    def is_active(self, on: date) -> bool:
        return self.start_date <= on <= self.end_date

    @classmethod
    def from_row(cls, row: tuple[Any, ...]) -> Budget:
        """DB 행에서 생성

        컬럼 순서: budget_id, owner_id, category_id, name, amount, spent,
        start_date, end_date, period, version, created_at, updated_at
        """
        return cls(
            budget_id=row[0],
            owner_id=row[1],
            category_id=row[2],
            name=row[3],
            amount=parse_stored(row[4]),
            spent=parse_stored(row[5]),
            start_date=date.fromisoformat(row[6]),
            end_date=date.fromisoformat(row[7]),
            period=BudgetPeriod(row[8]),
            version=row[9],
            created_at=_parse_ts(row[10]),
            updated_at=_parse_ts(row[11]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "budget_id": self.budget_id,
            "owner_id": self.owner_id,
            "category_id": self.category_id,
            "name": self.name,
            "amount": str(self.amount),
            "spent": str(self.spent),
            "remaining": str(self.remaining),
            "utilization": str(self.utilization),
            "is_exceeded": self.is_exceeded,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "period": self.period.value,
        }


@dataclass(frozen=True)
class Category:
    """카테고리 (최대 2단계 트리)"""

    category_id: int
    owner_id: str
    name: str
    kind: CategoryKind
    parent_id: int | None = None
    description: str | None = None

    @property
    def is_top_level(self) -> bool:
        return self.parent_id is None

    @classmethod
    def from_row(cls, row: tuple[Any, ...]) -> Category:
        return cls(
            category_id=row[0],
            owner_id=row[1],
            name=row[2],
            kind=CategoryKind(row[3]),
            parent_id=row[4],
            description=row[5],
        )


@dataclass(frozen=True)
class FinancialSummary:
    """기간 내 수입/지출 요약"""

    total_income: Decimal
    total_expenses: Decimal

    @property
    def net_savings(self) -> Decimal:
        return self.total_income - self.total_expenses
