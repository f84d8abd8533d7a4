"""
Ledger 시스템

계정 잔액, posting 이력, 예산 spent를 동시성 하에서 일관되게 유지.

사용 예시:
```python
from core.ledger.facade import LedgerFacade

ledger = LedgerFacade(db)
account = await ledger.open_account("alice", "Main", AccountKind.CHECKING, "100.00")
await ledger.deposit("alice", account.account_id, "50.00")
balance = await ledger.get_balance("alice", account.account_id)
```

이 패키지의 __init__은 레코드와 스키마만 노출.
서비스 클래스는 각 모듈에서 직접 import (core.storage와의 순환 import 방지).
"""

from core.ledger.models import Account, Budget, Category, FinancialSummary, Posting
from core.ledger.schema import init_ledger_schema

__all__ = [
    # 레코드
    "Account",
    "Posting",
    "Budget",
    "Category",
    "FinancialSummary",
    # 스키마
    "init_ledger_schema",
]
