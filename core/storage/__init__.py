"""
스토리지 모듈

Account / Posting / Budget / Category 저장소 제공
"""

from core.storage.account_store import AccountStore
from core.storage.budget_store import BudgetStore
from core.storage.category_store import CategoryStore
from core.storage.journal import TransactionJournal

__all__ = [
    "AccountStore",
    "BudgetStore",
    "CategoryStore",
    "TransactionJournal",
]
