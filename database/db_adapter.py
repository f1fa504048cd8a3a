"""Database adapter для поддержки PostgreSQL и SQLite

Предоставляет unified interface для работы с разными типами БД.
Автоматически определяет тип БД из конфигурации.

Examples:
    >>> # Инициализация
    >>> await db_adapter.init_pool()

    >>> # Простые запросы
    >>> row = await db_adapter.fetchrow(
    ...     "SELECT * FROM appointments WHERE id = $1",
    ...     appointment_id
    ... )

    >>> # Транзакции с блокировкой дня
    >>> async with db_adapter.acquire() as conn:
    ...     async with conn.transaction():
    ...         await conn.lock_scope(f"{user_id}:{date_str}")
    ...         await conn.execute("INSERT ...")
"""

import logging
import os
import re
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import aiosqlite
import asyncpg

logger = logging.getLogger(__name__)


class DatabaseAdapter:
    """Unified interface для работы с PostgreSQL и SQLite"""

    def __init__(self):
        self.pool: Optional[asyncpg.Pool] = None
        self.db_type = None
        self.database_path = None
        self._initialized = False

    @property
    def is_postgres(self) -> bool:
        return self.db_type == "postgresql"

    async def init_pool(
        self,
        db_type: Optional[str] = None,
        database_path: Optional[str] = None,
        database_url: Optional[str] = None,
    ) -> None:
        """Инициализация connection pool

        Values not passed explicitly are read from config.
        """
        if self._initialized:
            logger.warning("DatabaseAdapter already initialized")
            return

        # Import здесь чтобы избежать circular imports
        from config import (
            DATABASE_PATH,
            DATABASE_URL,
            DB_COMMAND_TIMEOUT,
            DB_POOL_MAX_SIZE,
            DB_POOL_MIN_SIZE,
            DB_POOL_TIMEOUT,
            DB_TYPE,
        )

        self.db_type = (db_type or DB_TYPE).lower()
        self.database_path = database_path or DATABASE_PATH

        if self.is_postgres:
            try:
                self.pool = await asyncpg.create_pool(
                    dsn=database_url or DATABASE_URL,
                    min_size=DB_POOL_MIN_SIZE,
                    max_size=DB_POOL_MAX_SIZE,
                    timeout=DB_POOL_TIMEOUT,
                    command_timeout=DB_COMMAND_TIMEOUT,
                    server_settings={
                        "application_name": "studio_agenda",
                        "jit": "off",
                    },
                )
                logger.info(
                    f"✅ PostgreSQL pool created: "
                    f"{DB_POOL_MIN_SIZE}-{DB_POOL_MAX_SIZE} connections"
                )
                self._initialized = True
            except Exception as e:
                logger.critical(f"❌ Failed to create PostgreSQL pool: {e}")
                raise
        else:
            directory = os.path.dirname(self.database_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            logger.info(f"SQLite mode - direct connections to {self.database_path}")
            self._initialized = True

    async def close_pool(self) -> None:
        """Закрытие connection pool"""
        if self.pool:
            await self.pool.close()
            self.pool = None
            logger.info("PostgreSQL pool closed")
        self._initialized = False

    @asynccontextmanager
    async def acquire(self):
        """Получение connection из pool

        Yields:
            Connection wrapper (PostgreSQLConnection or SQLiteConnection)
        """
        if not self._initialized:
            raise RuntimeError("DatabaseAdapter not initialized. Call init_pool() first.")

        if self.is_postgres:
            async with self.pool.acquire() as conn:
                yield PostgreSQLConnection(conn)
        else:
            from config import SQLITE_BUSY_TIMEOUT

            # isolation_level=None: statements autocommit unless wrapped
            # in an explicit transaction()
            async with aiosqlite.connect(
                self.database_path,
                timeout=SQLITE_BUSY_TIMEOUT,
                isolation_level=None,
            ) as conn:
                conn.row_factory = aiosqlite.Row
                yield SQLiteConnection(conn)

    async def execute(
        self, query: str, *args, timeout: Optional[float] = None
    ) -> str:
        """Выполнение INSERT/UPDATE/DELETE с возвратом status

        Args:
            query: SQL запрос
            *args: Параметры запроса
            timeout: Таймаут выполнения

        Returns:
            Status string (например, "UPDATE 1")
        """
        async with self.acquire() as conn:
            return await conn.execute(query, *args, timeout=timeout)

    async def fetch(
        self, query: str, *args, timeout: Optional[float] = None
    ) -> List[Dict[str, Any]]:
        """Выполнение SELECT с возвратом всех строк"""
        async with self.acquire() as conn:
            return await conn.fetch(query, *args, timeout=timeout)

    async def fetchrow(
        self, query: str, *args, timeout: Optional[float] = None
    ) -> Optional[Dict[str, Any]]:
        """Выполнение SELECT с возвратом одной строки"""
        async with self.acquire() as conn:
            return await conn.fetchrow(query, *args, timeout=timeout)

    async def fetchval(
        self, query: str, *args, column: int = 0, timeout: Optional[float] = None
    ) -> Any:
        """Выполнение SELECT с возвратом одного значения"""
        async with self.acquire() as conn:
            return await conn.fetchval(query, *args, column=column, timeout=timeout)


def affected_rows(status: str) -> int:
    """Parse the row count out of a status string ("UPDATE 2" -> 2)"""
    try:
        return int(status.split()[-1])
    except (AttributeError, IndexError, ValueError):
        return 0


class PostgreSQLConnection:
    """Wrapper для asyncpg connection"""

    def __init__(self, conn: asyncpg.Connection):
        self.conn = conn

    async def execute(
        self, query: str, *args, timeout: Optional[float] = None
    ) -> str:
        return await self.conn.execute(query, *args, timeout=timeout)

    async def executemany(self, query: str, rows: List[tuple]) -> None:
        await self.conn.executemany(query, rows)

    async def fetch(
        self, query: str, *args, timeout: Optional[float] = None
    ) -> List[Dict]:
        rows = await self.conn.fetch(query, *args, timeout=timeout)
        return [dict(row) for row in rows]

    async def fetchrow(
        self, query: str, *args, timeout: Optional[float] = None
    ) -> Optional[Dict]:
        row = await self.conn.fetchrow(query, *args, timeout=timeout)
        return dict(row) if row else None

    async def fetchval(
        self, query: str, *args, column: int = 0, timeout: Optional[float] = None
    ) -> Any:
        return await self.conn.fetchval(query, *args, column=column, timeout=timeout)

    @asynccontextmanager
    async def transaction(self):
        """Начать транзакцию (read committed + advisory locks)"""
        async with self.conn.transaction():
            yield

    async def lock_scope(self, key: str) -> None:
        """Serialize writers sharing ``key`` until the transaction ends"""
        await self.conn.execute("SELECT pg_advisory_xact_lock(hashtext($1))", key)


class SQLiteConnection:
    """Wrapper для aiosqlite connection"""

    def __init__(self, conn: aiosqlite.Connection):
        self.conn = conn

    async def execute(
        self, query: str, *args, timeout: Optional[float] = None
    ) -> str:
        sqlite_query = self._convert_placeholders(query)
        cursor = await self.conn.execute(sqlite_query, args)
        verb = sqlite_query.lstrip().split(None, 1)[0].upper()
        return f"{verb} {cursor.rowcount}"

    async def executemany(self, query: str, rows: List[tuple]) -> None:
        await self.conn.executemany(self._convert_placeholders(query), rows)

    async def fetch(
        self, query: str, *args, timeout: Optional[float] = None
    ) -> List[Dict]:
        sqlite_query = self._convert_placeholders(query)
        cursor = await self.conn.execute(sqlite_query, args)
        rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def fetchrow(
        self, query: str, *args, timeout: Optional[float] = None
    ) -> Optional[Dict]:
        sqlite_query = self._convert_placeholders(query)
        cursor = await self.conn.execute(sqlite_query, args)
        # fetchall drains INSERT ... RETURNING so the statement is finished
        # before COMMIT
        rows = await cursor.fetchall()
        await cursor.close()
        return dict(rows[0]) if rows else None

    async def fetchval(
        self, query: str, *args, column: int = 0, timeout: Optional[float] = None
    ) -> Any:
        row = await self.fetchrow(query, *args)
        return list(row.values())[column] if row else None

    @asynccontextmanager
    async def transaction(self):
        """Транзакция с немедленным захватом write lock

        BEGIN IMMEDIATE makes concurrent writers queue on the database
        lock, so every read inside the transaction sees committed rows
        of earlier writers.
        """
        await self.conn.execute("BEGIN IMMEDIATE")
        try:
            yield
        except BaseException:
            await self.conn.execute("ROLLBACK")
            raise
        else:
            await self.conn.execute("COMMIT")

    async def lock_scope(self, key: str) -> None:
        """No-op: BEGIN IMMEDIATE already holds the database write lock"""
        return None

    @staticmethod
    def _convert_placeholders(query: str) -> str:
        """Конвертирует PostgreSQL placeholders ($1, $2) в SQLite (?)"""
        return re.sub(r"\$\d+", "?", query)


# Global instance
db_adapter = DatabaseAdapter()
