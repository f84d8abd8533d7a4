"""
Account Store

account 테이블 조회 및 version 기반 CAS 업데이트.
잔액 변경은 compare_and_swap_balance()로만 수행.
"""

import logging
from decimal import Decimal

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.ledger.models import Account
from core.types import AccountKind
from core.utils.timezone import format_ts, now_utc

logger = logging.getLogger(__name__)


_ACCOUNT_COLUMNS = """
    account_id, owner_id, name, kind, balance, currency,
    version, description, created_at, updated_at
"""


class AccountStore:
    """계정 저장소

    Args:
        db: SQLiteAdapter 인스턴스

    사용 예시:
    ```python
    store = AccountStore(db)

    account = await store.get(account_id)
    async with db.transaction():
        ok = await store.compare_and_swap_balance(
            account.account_id, account.version, new_balance
        )
    ```
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db

    async def insert(
        self,
        owner_id: str,
        name: str,
        kind: AccountKind,
        currency: str,
        description: str | None = None,
    ) -> int:
        """새 계정 생성 (잔액 0, version 1)

        기초 잔액은 호출자가 ADJUSTMENT posting으로 반영.

        Returns:
            생성된 account_id
        """
        now = format_ts(now_utc())
        cursor = await self.db.execute(
            """
            INSERT INTO account (
                owner_id, name, kind, balance, currency, version,
                description, created_at, updated_at
            ) VALUES (?, ?, ?, '0.00', ?, 1, ?, ?, ?)
            """,
            (owner_id, name, kind.value, currency, description, now, now),
        )
        account_id = cursor.lastrowid
        logger.debug(f"Account inserted: {account_id}", extra={"owner_id": owner_id})
        return account_id

    async def get(self, account_id: int) -> Account | None:
        """ID로 계정 조회"""
        row = await self.db.fetchone(
            f"SELECT {_ACCOUNT_COLUMNS} FROM account WHERE account_id = ?",
            (account_id,),
        )
        return Account.from_row(row) if row else None

    async def exists_by_name(self, owner_id: str, name: str) -> bool:
        row = await self.db.fetchone(
            "SELECT 1 FROM account WHERE owner_id = ? AND name = ?",
            (owner_id, name),
        )
        return row is not None

    async def list_by_owner(
        self,
        owner_id: str,
        kind: AccountKind | None = None,
    ) -> list[Account]:
        """소유자의 계정 목록"""
        if kind is None:
            rows = await self.db.fetchall(
                f"SELECT {_ACCOUNT_COLUMNS} FROM account WHERE owner_id = ? ORDER BY account_id",
                (owner_id,),
            )
        else:
            rows = await self.db.fetchall(
                f"""
                SELECT {_ACCOUNT_COLUMNS} FROM account
                WHERE owner_id = ? AND kind = ?
                ORDER BY account_id
                """,
                (owner_id, kind.value),
            )
        return [Account.from_row(row) for row in rows]

    async def compare_and_swap_balance(
        self,
        account_id: int,
        expected_version: int,
        new_balance: Decimal,
    ) -> bool:
        """version이 일치할 때만 잔액 갱신 (CAS)

        Args:
            account_id: 계정 ID
            expected_version: 마지막으로 읽은 version
            new_balance: 새 잔액

        Returns:
            True: 갱신됨 (version + 1)
            False: version 불일치 (다른 writer가 먼저 갱신)
        """
        cursor = await self.db.execute(
            """
            UPDATE account
            SET balance = ?, version = version + 1, updated_at = ?
            WHERE account_id = ? AND version = ?
            """,
            (str(new_balance), format_ts(now_utc()), account_id, expected_version),
        )
        swapped = cursor.rowcount == 1
        if not swapped:
            logger.debug(
                f"Account CAS miss: {account_id}",
                extra={"expected_version": expected_version},
            )
        return swapped

    async def delete(self, account_id: int) -> bool:
        """계정 삭제

        posting이 남아 있는 계정은 FK 제약으로 실패하므로 호출자가 먼저 확인.
        """
        cursor = await self.db.execute("DELETE FROM account WHERE account_id = ?", (account_id,))
        deleted = cursor.rowcount == 1
        if deleted:
            logger.debug(f"Account deleted: {account_id}")
        return deleted
