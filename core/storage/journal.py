"""
Transaction Journal

posting 테이블 append-only 저장소.
다건 append는 호출자의 원자 단위(트랜잭션) 안에서 수행.
"""

import logging
from dataclasses import replace
from datetime import datetime

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.ledger.models import Posting
from core.types import PostingKind
from core.utils.timezone import format_ts, now_utc

logger = logging.getLogger(__name__)


_POSTING_COLUMNS = """
    posting_id, account_id, owner_id, category_id, amount, kind,
    direction, peer_account_id, transfer_id, description, ts, created_at
"""


class TransactionJournal:
    """Posting 저장소 (append-only)

    Args:
        db: SQLiteAdapter 인스턴스
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db

    async def append(self, postings: list[Posting]) -> list[Posting]:
        """posting 다건 추가

        반드시 db.transaction() 안에서 호출. 모두 저장되거나 모두 롤백.

        Args:
            postings: 저장할 posting (posting_id=None)

        Returns:
            posting_id/created_at이 채워진 posting 목록
        """
        if not self.db.in_transaction:
            raise RuntimeError("TransactionJournal.append requires an open transaction")

        created_at = now_utc()
        saved: list[Posting] = []

        for posting in postings:
            cursor = await self.db.execute(
                """
                INSERT INTO posting (
                    account_id, owner_id, category_id, amount, kind, direction,
                    peer_account_id, transfer_id, description, ts, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    posting.account_id,
                    posting.owner_id,
                    posting.category_id,
                    str(posting.amount),
                    posting.kind.value,
                    posting.direction.value,
                    posting.peer_account_id,
                    posting.transfer_id,
                    posting.description,
                    format_ts(posting.ts),
                    format_ts(created_at),
                ),
            )
            saved.append(
                replace(posting, posting_id=cursor.lastrowid, created_at=created_at)
            )

        logger.debug(
            f"Appended {len(saved)} posting(s)",
            extra={"posting_ids": [p.posting_id for p in saved]},
        )
        return saved

    async def get(self, posting_id: int) -> Posting | None:
        row = await self.db.fetchone(
            f"SELECT {_POSTING_COLUMNS} FROM posting WHERE posting_id = ?",
            (posting_id,),
        )
        return Posting.from_row(row) if row else None

    async def get_transfer_legs(self, transfer_id: str) -> list[Posting]:
        """transfer_id로 이체 두 leg 조회 (OUT, IN 순)"""
        rows = await self.db.fetchall(
            f"""
            SELECT {_POSTING_COLUMNS} FROM posting
            WHERE transfer_id = ?
            ORDER BY direction DESC, posting_id
            """,
            (transfer_id,),
        )
        return [Posting.from_row(row) for row in rows]

    async def list_by_account(
        self,
        account_id: int,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Posting]:
        """계정별 posting 조회 (오래된 순)"""
        sql = f"""
            SELECT {_POSTING_COLUMNS} FROM posting
            WHERE account_id = ?
            ORDER BY posting_id
        """
        if limit is None:
            rows = await self.db.fetchall(sql, (account_id,))
        else:
            rows = await self.db.fetchall(f"{sql} LIMIT ? OFFSET ?", (account_id, limit, offset))
        return [Posting.from_row(row) for row in rows]

    async def count_by_account(self, account_id: int) -> int:
        row = await self.db.fetchone(
            "SELECT COUNT(*) FROM posting WHERE account_id = ?",
            (account_id,),
        )
        return row[0] if row else 0

    async def list_by_category(
        self,
        owner_id: str,
        category_id: int,
        kind: PostingKind,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Posting]:
        """(소유자, 카테고리, 유형) 기준 posting 조회 - 예산 재계산용

        Args:
            start: 포함 하한 (None이면 제한 없음)
            end: 미포함 상한 (None이면 제한 없음)
        """
        sql = f"""
            SELECT {_POSTING_COLUMNS} FROM posting
            WHERE owner_id = ? AND category_id = ? AND kind = ?
        """
        params: list[object] = [owner_id, category_id, kind.value]
        if start is not None:
            sql += " AND ts >= ?"
            params.append(format_ts(start))
        if end is not None:
            sql += " AND ts < ?"
            params.append(format_ts(end))
        sql += " ORDER BY posting_id"

        rows = await self.db.fetchall(sql, tuple(params))
        return [Posting.from_row(row) for row in rows]

    async def list_by_owner(
        self,
        owner_id: str,
        start: datetime,
        end: datetime,
        kinds: tuple[PostingKind, ...] | None = None,
    ) -> list[Posting]:
        """소유자의 기간 내 posting 조회 ([start, end))"""
        sql = f"""
            SELECT {_POSTING_COLUMNS} FROM posting
            WHERE owner_id = ? AND ts >= ? AND ts < ?
        """
        params: list[object] = [owner_id, format_ts(start), format_ts(end)]
        if kinds:
            sql += f" AND kind IN ({', '.join('?' for _ in kinds)})"
            params.extend(k.value for k in kinds)
        sql += " ORDER BY ts, posting_id"

        rows = await self.db.fetchall(sql, tuple(params))
        return [Posting.from_row(row) for row in rows]
