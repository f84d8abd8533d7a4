"""
계정 락 매니저

계정 ID별 asyncio.Lock. 여러 계정을 잡을 때는 항상 account_id 오름차순으로
획득하고 역순으로 해제하므로 대기자 사이에 순환이 생기지 않음.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable

from core.errors import LedgerTimeoutError
from core.ledger.retry import Deadline

logger = logging.getLogger(__name__)


class AccountLockManager:
    """계정별 락 관리

    사용 예시:
    ```python
    locks = AccountLockManager()
    async with locks.hold([to_id, from_id], deadline):
        ...  # 두 계정 모두 보유
    ```
    """

    def __init__(self) -> None:
        self._locks: dict[int, asyncio.Lock] = {}
        # 락을 보유 중이거나 대기 중인 hold() 수
        self._users: dict[int, int] = {}

    @property
    def tracked_count(self) -> int:
        """락 항목이 남아 있는 계정 수"""
        return len(self._locks)

    def lock_for(self, account_id: int) -> asyncio.Lock:
        lock = self._locks.get(account_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[account_id] = lock
        return lock

    def is_locked(self, account_id: int) -> bool:
        lock = self._locks.get(account_id)
        return lock is not None and lock.locked()

    def _enter(self, account_id: int) -> asyncio.Lock:
        self._users[account_id] = self._users.get(account_id, 0) + 1
        return self.lock_for(account_id)

    def _leave(self, account_id: int) -> None:
        remaining = self._users[account_id] - 1
        if remaining:
            self._users[account_id] = remaining
            return
        del self._users[account_id]
        lock = self._locks.get(account_id)
        # lock_for()로 외부에서 잡은 락은 유지
        if lock is not None and not lock.locked():
            del self._locks[account_id]

    @asynccontextmanager
    async def hold(
        self,
        account_ids: Iterable[int],
        deadline: Deadline | None = None,
    ) -> AsyncIterator[list[int]]:
        """여러 계정 락을 오름차순으로 획득

        마지막 사용자가 해제하면 해당 계정의 락 항목을 제거.

        Args:
            account_ids: 대상 계정 ID (중복 허용)
            deadline: 락 대기 마감

        Yields:
            획득 순서대로 정렬된 account_id 목록

        Raises:
            LedgerTimeoutError: 마감 안에 락을 얻지 못함 (이미 잡은 락은 해제)
        """
        ordered = sorted(set(account_ids))
        entered: list[int] = []
        acquired: list[asyncio.Lock] = []

        try:
            for account_id in ordered:
                lock = self._enter(account_id)
                entered.append(account_id)
                timeout = deadline.remaining() if deadline is not None else None
                try:
                    if timeout is None:
                        await lock.acquire()
                    else:
                        await asyncio.wait_for(lock.acquire(), timeout)
                except asyncio.TimeoutError as e:
                    logger.warning(
                        f"Account lock timeout: {account_id}",
                        extra={"ordered": ordered},
                    )
                    raise LedgerTimeoutError("account", account_id) from e
                acquired.append(lock)

            yield ordered
        finally:
            for lock in reversed(acquired):
                lock.release()
            for account_id in reversed(entered):
                self._leave(account_id)
