"""
CAS 재시도 정책 / 데드라인

version CAS 실패 시 원자 단위 전체를 롤백하고 다시 읽어 재시도.
시도 사이에는 부작용이 없으므로 재시도와 타임아웃 중단 모두 안전.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, TypeVar

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.config.loader import LedgerSettings
from core.constants import Defaults
from core.errors import ConcurrencyConflictError, LedgerTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# 백오프 상한 (초)
MAX_BACKOFF_SEC = 0.1


class CasMiss(Exception):
    """version 불일치 신호 (내부 전용)

    원자 단위 안에서 발생시켜 롤백을 유도. 호출자에게는 노출되지 않음.
    """

    def __init__(self, resource: str, resource_id: object):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"CAS miss on {resource} {resource_id}")


class Deadline:
    """호출자 타임아웃을 이벤트 루프 시각 기준 마감 시각으로 변환

    timeout=None이면 마감 없음.
    """

    def __init__(self, timeout: float | None):
        self.timeout = timeout
        if timeout is None:
            self._expires_at: float | None = None
        else:
            self._expires_at = asyncio.get_running_loop().time() + timeout

    @property
    def unbounded(self) -> bool:
        return self._expires_at is None

    def remaining(self) -> float | None:
        """남은 시간 (초). 마감 없으면 None, 경과 시 0"""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - asyncio.get_running_loop().time())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self, resource: str, resource_id: object, attempts: int = 0) -> None:
        """마감 경과 시 LedgerTimeoutError"""
        if self.expired:
            raise LedgerTimeoutError(resource, resource_id, attempts)


@dataclass(frozen=True)
class RetryPolicy:
    """CAS 재시도 정책

    Attributes:
        max_attempts: 최대 시도 횟수
        backoff_sec: 첫 재시도 대기 (이후 2배씩, MAX_BACKOFF_SEC 상한)
    """

    max_attempts: int = Defaults.MAX_CAS_ATTEMPTS
    backoff_sec: float = Defaults.RETRY_BACKOFF_SEC

    @classmethod
    def from_settings(cls, settings: LedgerSettings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.max_cas_attempts,
            backoff_sec=settings.retry_backoff_sec,
        )

    def delay(self, attempt: int) -> float:
        """attempt번째 실패 후 대기 시간"""
        return min(self.backoff_sec * (2 ** (attempt - 1)), MAX_BACKOFF_SEC)


async def run_with_cas_retry(
    policy: RetryPolicy,
    resource: str,
    resource_id: object,
    attempt_fn: Callable[[], Awaitable[T]],
    deadline: Deadline | None = None,
) -> T:
    """CasMiss가 발생하면 attempt_fn 전체를 재실행

    attempt_fn은 매 시도마다 레코드를 다시 읽고 자체 원자 단위를 열어야 함.
    CasMiss 외의 예외는 그대로 전파.

    Raises:
        ConcurrencyConflictError: max_attempts 소진
        LedgerTimeoutError: 마감 경과
    """
    for attempt in range(1, policy.max_attempts + 1):
        if deadline is not None:
            deadline.check(resource, resource_id, attempt - 1)

        try:
            return await attempt_fn()
        except CasMiss as miss:
            logger.debug(
                f"CAS conflict, retrying: {miss.resource} {miss.resource_id}",
                extra={"attempt": attempt, "max_attempts": policy.max_attempts},
            )
            if attempt == policy.max_attempts:
                break

            delay = policy.delay(attempt)
            if deadline is not None and not deadline.unbounded:
                delay = min(delay, deadline.remaining() or 0.0)
            if delay > 0:
                await asyncio.sleep(delay)

    logger.warning(
        f"CAS 재시도 한도 초과: {resource} {resource_id}",
        extra={"attempts": policy.max_attempts},
    )
    raise ConcurrencyConflictError(resource, resource_id, policy.max_attempts)


@asynccontextmanager
async def atomic_unit(
    db: SQLiteAdapter,
    deadline: Deadline | None,
    resource: str,
    resource_id: object,
) -> AsyncIterator[None]:
    """마감을 지키는 원자 단위

    쓰기 직렬화 락을 마감 안에 얻지 못하면 LedgerTimeoutError.
    본문에서 발생한 예외는 롤백 후 그대로 전파.
    """
    timeout = deadline.remaining() if deadline is not None else None
    entered = False
    try:
        async with db.transaction(timeout=timeout):
            entered = True
            yield
    except asyncio.TimeoutError as e:
        if entered:
            raise
        raise LedgerTimeoutError(resource, resource_id) from e
