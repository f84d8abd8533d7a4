"""
Category Store

카테고리 생성/조회. 트리 깊이는 최대 2단계.
"""

import logging

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.ledger.models import Category
from core.types import CategoryKind
from core.utils.timezone import format_ts, now_utc

logger = logging.getLogger(__name__)


_CATEGORY_COLUMNS = "category_id, owner_id, name, kind, parent_id, description"


class CategoryStore:
    """카테고리 저장소

    부모/유형 규칙 검증은 LedgerFacade에서 수행하고
    이 클래스는 저장과 조회만 담당.
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db

    async def insert(
        self,
        owner_id: str,
        name: str,
        kind: CategoryKind,
        parent_id: int | None = None,
        description: str | None = None,
    ) -> int:
        cursor = await self.db.execute(
            """
            INSERT INTO category (owner_id, name, kind, parent_id, description, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (owner_id, name, kind.value, parent_id, description, format_ts(now_utc())),
        )
        return cursor.lastrowid

    async def get(self, category_id: int) -> Category | None:
        row = await self.db.fetchone(
            f"SELECT {_CATEGORY_COLUMNS} FROM category WHERE category_id = ?",
            (category_id,),
        )
        return Category.from_row(row) if row else None

    async def exists_by_name(self, owner_id: str, name: str) -> bool:
        row = await self.db.fetchone(
            "SELECT 1 FROM category WHERE owner_id = ? AND name = ?",
            (owner_id, name),
        )
        return row is not None

    async def list_by_owner(self, owner_id: str) -> list[Category]:
        rows = await self.db.fetchall(
            f"SELECT {_CATEGORY_COLUMNS} FROM category WHERE owner_id = ? ORDER BY category_id",
            (owner_id,),
        )
        return [Category.from_row(row) for row in rows]

    async def list_subcategories(self, parent_id: int) -> list[Category]:
        rows = await self.db.fetchall(
            f"SELECT {_CATEGORY_COLUMNS} FROM category WHERE parent_id = ? ORDER BY category_id",
            (parent_id,),
        )
        return [Category.from_row(row) for row in rows]
