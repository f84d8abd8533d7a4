"""
SQLite 어댑터

WAL 모드로 SQLite 연결 관리.
여러 프로세스가 같은 DB 파일에 동시에 접근 가능하도록 설정.

하나의 연결을 여러 코루틴이 공유하므로 트랜잭션(원자 단위)은
asyncio.Lock으로 직렬화. 프로세스 간 경합은 레코드 version CAS로 처리.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

import aiosqlite

logger = logging.getLogger(__name__)


async def create_connection(
    db_path: Path | str,
    readonly: bool = False,
) -> aiosqlite.Connection:
    """SQLite 연결 생성 (WAL 모드)

    Args:
        db_path: DB 파일 경로 (":memory:" 허용)
        readonly: 읽기 전용 여부

    Returns:
        aiosqlite 연결 객체
    """
    db_path_str = str(db_path)

    if db_path_str != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    if readonly:
        conn = await aiosqlite.connect(f"file:{db_path_str}?mode=ro", uri=True)
    else:
        conn = await aiosqlite.connect(db_path_str)

    # WAL 모드 설정
    await conn.execute("PRAGMA journal_mode=WAL")

    # 동시 접근 설정
    await conn.execute("PRAGMA busy_timeout=30000")  # 30초 대기

    # 외래 키 제약 활성화
    await conn.execute("PRAGMA foreign_keys=ON")

    logger.info(
        "SQLite 연결 생성",
        extra={"db_path": db_path_str, "readonly": readonly},
    )

    return conn


class SQLiteAdapter:
    """SQLite 어댑터

    WAL 모드로 SQLite 연결 관리.
    원자 단위 트랜잭션 컨텍스트 매니저 제공.

    Args:
        db_path: DB 파일 경로
        readonly: 읽기 전용 여부

    사용 예시:
    ```python
    async with SQLiteAdapter(db_path) as db:
        async with db.transaction():
            await db.execute("UPDATE account SET ...")
            await db.execute("INSERT INTO posting ...")
            # 성공 시 자동 커밋, 예외/취소 시 자동 롤백
    ```
    """

    def __init__(self, db_path: Path | str, readonly: bool = False):
        self.db_path = db_path if str(db_path) == ":memory:" else Path(db_path)
        self.readonly = readonly
        self._conn: aiosqlite.Connection | None = None
        self._tx_lock = asyncio.Lock()
        self._tx_owner: asyncio.Task | None = None

    @property
    def is_connected(self) -> bool:
        """연결 상태 확인"""
        return self._conn is not None

    @property
    def in_transaction(self) -> bool:
        """현재 태스크가 트랜잭션을 보유 중인지 여부"""
        return self._tx_owner is not None and self._tx_owner is asyncio.current_task()

    async def connect(self) -> None:
        """연결 생성"""
        if self._conn is not None:
            return

        self._conn = await create_connection(self.db_path, self.readonly)

    async def close(self) -> None:
        """연결 종료"""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.info("SQLite 연결 종료")

    async def execute(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> aiosqlite.Cursor:
        """SQL 실행"""
        if self._conn is None:
            raise RuntimeError("Not connected to database")

        if parameters:
            return await self._conn.execute(sql, parameters)
        return await self._conn.execute(sql)

    async def executemany(
        self,
        sql: str,
        parameters: list[tuple[Any, ...]],
    ) -> aiosqlite.Cursor:
        """SQL 다중 실행"""
        if self._conn is None:
            raise RuntimeError("Not connected to database")

        return await self._conn.executemany(sql, parameters)

    async def fetchone(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> tuple[Any, ...] | None:
        """단일 행 조회"""
        cursor = await self.execute(sql, parameters)
        return await cursor.fetchone()

    async def fetchall(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> list[tuple[Any, ...]]:
        """전체 행 조회"""
        cursor = await self.execute(sql, parameters)
        return list(await cursor.fetchall())

    async def commit(self) -> None:
        """커밋"""
        if self._conn is not None:
            await self._conn.commit()

    async def rollback(self) -> None:
        """롤백"""
        if self._conn is not None:
            await self._conn.rollback()

    @asynccontextmanager
    async def transaction(self, timeout: float | None = None) -> AsyncIterator[aiosqlite.Connection]:
        """원자 단위 트랜잭션 컨텍스트 매니저

        성공 시 자동 커밋, 예외 시 자동 롤백.
        태스크 취소(CancelledError)도 롤백 후 전파.
        같은 태스크 안에서 중첩 호출하면 바깥 트랜잭션에 합류.

        Args:
            timeout: 락 대기 최대 시간 (초). 초과 시 asyncio.TimeoutError

        사용 예시:
        ```python
        async with adapter.transaction():
            await adapter.execute("INSERT INTO ...")
        ```
        """
        if self._conn is None:
            raise RuntimeError("Not connected to database")

        # 중첩: 바깥 트랜잭션에 합류 (커밋/롤백은 바깥에서)
        if self.in_transaction:
            yield self._conn
            return

        if timeout is None:
            await self._tx_lock.acquire()
        else:
            await asyncio.wait_for(self._tx_lock.acquire(), timeout)

        self._tx_owner = asyncio.current_task()
        try:
            yield self._conn
            await self._conn.commit()
        except BaseException:
            await self._conn.rollback()
            raise
        finally:
            self._tx_owner = None
            self._tx_lock.release()

    async def table_exists(self, table_name: str) -> bool:
        """테이블 존재 여부 확인"""
        result = await self.fetchone(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
            (table_name,),
        )
        return result is not None

    # -------------------------------------------------------------------------
    # 컨텍스트 매니저
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> "SQLiteAdapter":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
