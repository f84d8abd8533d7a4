"""
Budget Store

budget 테이블 조회 및 spent CAS 업데이트.
spent 변경은 BudgetAggregator만 수행.
"""

import logging
from datetime import date
from decimal import Decimal

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.ledger.models import Budget
from core.types import BudgetPeriod
from core.utils.timezone import format_ts, now_utc

logger = logging.getLogger(__name__)


_BUDGET_COLUMNS = """
    budget_id, owner_id, category_id, name, amount, spent,
    start_date, end_date, period, version, created_at, updated_at
"""


class BudgetStore:
    """예산 저장소

    Args:
        db: SQLiteAdapter 인스턴스
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db

    async def insert(
        self,
        owner_id: str,
        category_id: int,
        name: str,
        amount: Decimal,
        start_date: date,
        end_date: date,
        period: BudgetPeriod,
        spent: Decimal,
    ) -> int:
        """새 예산 생성

        Returns:
            생성된 budget_id
        """
        now = format_ts(now_utc())
        cursor = await self.db.execute(
            """
            INSERT INTO budget (
                owner_id, category_id, name, amount, spent,
                start_date, end_date, period, version, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, 1, ?, ?)
            """,
            (
                owner_id,
                category_id,
                name,
                str(amount),
                str(spent),
                start_date.isoformat(),
                end_date.isoformat(),
                period.value,
                now,
                now,
            ),
        )
        return cursor.lastrowid

    async def get(self, budget_id: int) -> Budget | None:
        row = await self.db.fetchone(
            f"SELECT {_BUDGET_COLUMNS} FROM budget WHERE budget_id = ?",
            (budget_id,),
        )
        return Budget.from_row(row) if row else None

    async def list_by_owner(self, owner_id: str) -> list[Budget]:
        rows = await self.db.fetchall(
            f"SELECT {_BUDGET_COLUMNS} FROM budget WHERE owner_id = ? ORDER BY budget_id",
            (owner_id,),
        )
        return [Budget.from_row(row) for row in rows]

    async def list_ending_between(self, owner_id: str, start: date, end: date) -> list[Budget]:
        """end_date가 [start, end]에 있는 예산 (종료 임박 조회)"""
        rows = await self.db.fetchall(
            f"""
            SELECT {_BUDGET_COLUMNS} FROM budget
            WHERE owner_id = ? AND end_date BETWEEN ? AND ?
            ORDER BY end_date, budget_id
            """,
            (owner_id, start.isoformat(), end.isoformat()),
        )
        return [Budget.from_row(row) for row in rows]

    async def list_by_category(self, owner_id: str, category_id: int) -> list[Budget]:
        """(소유자, 카테고리)의 모든 예산

        기간 포함 여부는 호출자가 Budget.covers()로 판정.
        """
        rows = await self.db.fetchall(
            f"""
            SELECT {_BUDGET_COLUMNS} FROM budget
            WHERE owner_id = ? AND category_id = ?
            ORDER BY budget_id
            """,
            (owner_id, category_id),
        )
        return [Budget.from_row(row) for row in rows]

    async def find_overlapping(
        self,
        owner_id: str,
        category_id: int,
        start_date: date,
        end_date: date,
    ) -> list[Budget]:
        """기간이 겹치는 같은 카테고리 예산 조회"""
        rows = await self.db.fetchall(
            f"""
            SELECT {_BUDGET_COLUMNS} FROM budget
            WHERE owner_id = ? AND category_id = ?
              AND start_date <= ? AND end_date >= ?
            ORDER BY budget_id
            """,
            (owner_id, category_id, end_date.isoformat(), start_date.isoformat()),
        )
        return [Budget.from_row(row) for row in rows]

    async def compare_and_swap_spent(
        self,
        budget_id: int,
        expected_version: int,
        new_spent: Decimal,
    ) -> bool:
        """version이 일치할 때만 spent 갱신 (CAS)

        Returns:
            True: 갱신됨, False: version 불일치
        """
        cursor = await self.db.execute(
            """
            UPDATE budget
            SET spent = ?, version = version + 1, updated_at = ?
            WHERE budget_id = ? AND version = ?
            """,
            (str(new_spent), format_ts(now_utc()), budget_id, expected_version),
        )
        swapped = cursor.rowcount == 1
        if not swapped:
            logger.debug(
                f"Budget CAS miss: {budget_id}",
                extra={"expected_version": expected_version},
            )
        return swapped

    async def update_terms(
        self,
        budget_id: int,
        expected_version: int,
        name: str,
        amount: Decimal,
        start_date: date,
        end_date: date,
        period: BudgetPeriod,
        spent: Decimal,
    ) -> bool:
        """이름/한도/기간과 재계산된 spent를 함께 갱신 (CAS)

        Returns:
            True: 갱신됨, False: version 불일치
        """
        cursor = await self.db.execute(
            """
            UPDATE budget
            SET name = ?, amount = ?, start_date = ?, end_date = ?, period = ?,
                spent = ?, version = version + 1, updated_at = ?
            WHERE budget_id = ? AND version = ?
            """,
            (
                name,
                str(amount),
                start_date.isoformat(),
                end_date.isoformat(),
                period.value,
                str(spent),
                format_ts(now_utc()),
                budget_id,
                expected_version,
            ),
        )
        swapped = cursor.rowcount == 1
        if not swapped:
            logger.debug(
                f"Budget CAS miss: {budget_id}",
                extra={"expected_version": expected_version},
            )
        return swapped

    async def delete(self, budget_id: int) -> bool:
        cursor = await self.db.execute("DELETE FROM budget WHERE budget_id = ?", (budget_id,))
        return cursor.rowcount == 1
