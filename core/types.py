"""
타입 정의 모듈

계정/거래/예산 관련 Enum 정의
모든 Enum은 str을 상속하여 문자열 직렬화 가능
"""

from enum import Enum


class AccountKind(str, Enum):
    """계정 유형"""

    CHECKING = "CHECKING"
    SAVINGS = "SAVINGS"
    CASH = "CASH"
    INVESTMENT = "INVESTMENT"
    CREDIT_CARD = "CREDIT_CARD"  # 음수 잔액 허용 (부채)
    LOAN = "LOAN"  # 음수 잔액 허용 (부채)

    @property
    def is_balance_protected(self) -> bool:
        """음수 잔액 금지 여부"""
        return self in BALANCE_PROTECTED_KINDS


# 잔액이 0 미만으로 내려갈 수 없는 계정 유형
BALANCE_PROTECTED_KINDS: frozenset[AccountKind] = frozenset({
    AccountKind.CHECKING,
    AccountKind.SAVINGS,
    AccountKind.CASH,
    AccountKind.INVESTMENT,
})


class PostingKind(str, Enum):
    """Posting 유형

    INCOME/EXPENSE는 카테고리 필수, TRANSFER/ADJUSTMENT는 카테고리 없음.
    """

    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    TRANSFER = "TRANSFER"
    ADJUSTMENT = "ADJUSTMENT"  # 기초 잔액, 미분류 입출금, 정정


class PostingDirection(str, Enum):
    """Posting이 계정 잔액에 미치는 방향"""

    IN = "IN"  # 잔액 증가
    OUT = "OUT"  # 잔액 감소


class CategoryKind(str, Enum):
    """카테고리 유형"""

    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class BudgetPeriod(str, Enum):
    """예산 기간"""

    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"
    CUSTOM = "CUSTOM"


# 기간별 (start_date, end_date) 허용 일수 차이 (None = 상한 없음)
BUDGET_PERIOD_DAY_RANGES: dict[BudgetPeriod, tuple[int, int | None]] = {
    BudgetPeriod.DAILY: (0, 0),
    BudgetPeriod.WEEKLY: (6, 6),
    BudgetPeriod.MONTHLY: (27, 31),
    BudgetPeriod.QUARTERLY: (89, 92),
    BudgetPeriod.YEARLY: (364, 366),
    BudgetPeriod.CUSTOM: (0, None),
}
