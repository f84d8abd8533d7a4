"""
Ledger 예외 정의

호출자에게 노출되는 결과 분류:
- ValidationError: 잘못된 입력 (상태 변경 없음)
- NotFoundError: 레코드 없음 또는 다른 소유자의 레코드
- InsufficientFundsError: 잔액 보호 계정의 음수 잔액 시도
- ConcurrencyConflictError: CAS/락 경합이 재시도 한도 초과
- ConsistencyError: 재계산 값과 누적 값 불일치 (버그 신호, 재시도 금지)
"""


class LedgerError(Exception):
    """Ledger 예외 기본 클래스"""

    pass


class ValidationError(LedgerError):
    """입력 검증 실패"""

    pass


class NotFoundError(LedgerError):
    """레코드 없음

    다른 소유자의 레코드도 동일하게 취급 (존재 여부 비노출).
    """

    def __init__(self, resource: str, resource_id: object):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found: {resource_id}")


class InsufficientFundsError(LedgerError):
    """잔액 부족"""

    def __init__(self, account_id: int, balance: object, amount: object):
        self.account_id = account_id
        self.balance = balance
        self.amount = amount
        super().__init__(
            f"Insufficient funds in account {account_id}: "
            f"balance={balance}, requested={amount}"
        )


class ConcurrencyConflictError(LedgerError):
    """CAS 재시도 한도 초과

    호출자 측에서 재시도해도 안전함.
    """

    def __init__(self, resource: str, resource_id: object, attempts: int):
        self.resource = resource
        self.resource_id = resource_id
        self.attempts = attempts
        super().__init__(
            f"Concurrent modification on {resource} {resource_id} "
            f"after {attempts} attempts"
        )


class LedgerTimeoutError(ConcurrencyConflictError):
    """호출자 타임아웃 경과 (부분 변경 없음)"""

    def __init__(self, resource: str, resource_id: object, attempts: int = 0):
        super().__init__(resource, resource_id, attempts)
        self.args = (f"Timed out waiting for {resource} {resource_id}",)


class ConsistencyError(LedgerError):
    """누적 값과 재계산 값 불일치"""

    def __init__(self, resource: str, resource_id: object, stored: object, derived: object):
        self.resource = resource
        self.resource_id = resource_id
        self.stored = stored
        self.derived = derived
        super().__init__(
            f"{resource} {resource_id} inconsistent: stored={stored}, derived={derived}"
        )
