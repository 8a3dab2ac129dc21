"""Base repository with async PostgreSQL connection pooling

Repositories share one asyncpg pool. Multi-statement writes (a quiz with its
questions, answers and materials) go through transaction(); single reads use
the pool directly via _fetchrow/_fetch.

Connection Patterns
-------------------
    self.transaction()
        Yields a connection with an open transaction. Commits on clean exit,
        rolls back on any exception.

    self._ensure_conn(conn)
        Reuse the caller's connection (and its transaction) when given,
        otherwise open a new transaction.
"""

import asyncpg
from asyncpg import Connection
from typing import Any, List, Optional
from contextlib import asynccontextmanager

from config import get_logger

logger = get_logger(__name__).bind(component="repository")


class BaseRepository:
    """Base class for async PostgreSQL repositories

    - Pool is passed in, not created
    - Transactions are explicit (async with self.transaction())
    - Queries use $1, $2 placeholders
    """

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def _fetchrow(self, query: str, *args: Any) -> Optional[asyncpg.Record]:
        """Execute query and fetch single row"""
        async with self.pool.acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def _fetch(self, query: str, *args: Any) -> List[asyncpg.Record]:
        """Execute query and fetch all rows"""
        async with self.pool.acquire() as conn:
            return await conn.fetch(query, *args)

    async def _execute(self, query: str, *args: Any) -> str:
        """Execute query without returning rows (INSERT, UPDATE, DELETE)"""
        async with self.pool.acquire() as conn:
            return await conn.execute(query, *args)

    @asynccontextmanager
    async def transaction(self):
        """Connection with an active transaction

        Usage:
            async with repo.transaction() as conn:
                quiz_id = await repo.create_quiz(conn, user_id, title)
                await repo.create_question(conn, quiz_id, topic_id, text)
        """
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    @asynccontextmanager
    async def _ensure_conn(self, conn: Optional[Connection] = None):
        """Use provided connection or create new transaction"""
        if conn:
            yield conn
        else:
            async with self.transaction() as c:
                yield c

    @staticmethod
    def _parse_row_count(result: str) -> int:
        """Extract row count from PostgreSQL result like 'DELETE 1'"""
        if not result:
            return 0
        return int(result.split()[-1])
