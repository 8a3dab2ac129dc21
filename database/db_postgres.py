"""PostgreSQL Database Layer with Repository Pattern

Owns the asyncpg pool and the repositories built on it. Request handlers
reach storage through Database.quizzes (QuizStore and QuizLibrary) and
Database.attempts (AttemptStore).
"""

import asyncpg
from pathlib import Path
from typing import Optional

from config import get_logger, config
from database.repositories_async import AttemptRepository, QuizRepository
from exceptions import DatabaseConnectionError

logger = get_logger(__name__).bind(component="database_postgres")

SCHEMA_PATH = Path(__file__).parent / "schema_postgres.sql"


class Database:
    """Async PostgreSQL database with repository pattern

    Usage:
        db = await Database.create()
        async with db.quizzes.transaction() as conn:
            quiz_id = await db.quizzes.create_quiz(conn, user_id, "Cell Biology")
        await db.close()
    """

    pool: asyncpg.Pool
    quizzes: QuizRepository
    attempts: AttemptRepository

    def __init__(self, pool: asyncpg.Pool):
        """Initialize with connection pool and repositories

        Use Database.create() classmethod instead of direct instantiation.
        """
        self.pool = pool
        self.quizzes = QuizRepository(pool)
        self.attempts = AttemptRepository(pool)

        logger.info("database initialized with repositories", pool_size=f"{pool._minsize}-{pool._maxsize}")

    @classmethod
    async def create(
        cls,
        dsn: Optional[str] = None,
        min_size: int = config.POSTGRES_POOL_MIN_SIZE,
        max_size: int = config.POSTGRES_POOL_MAX_SIZE
    ) -> "Database":
        """Create database with connection pool

        Args:
            dsn: PostgreSQL connection string (defaults to config.get_postgres_dsn())
            min_size: Minimum pool size
            max_size: Maximum pool size

        Raises:
            DatabaseConnectionError: If the pool cannot be created
        """
        if dsn is None:
            dsn = config.get_postgres_dsn()

        try:
            pool = await asyncpg.create_pool(
                dsn,
                min_size=min_size,
                max_size=max_size,
                command_timeout=60,
            )
            logger.info("connection pool created", min_size=min_size, max_size=max_size)
            return cls(pool)
        except (asyncpg.PostgresError, OSError, ConnectionError) as e:
            # Connection-specific errors only - let programming errors fail loudly
            logger.error("failed to create connection pool", error=str(e))
            raise DatabaseConnectionError(f"Failed to connect to PostgreSQL: {e}") from e

    async def close(self):
        """Close connection pool"""
        await self.pool.close()
        logger.info("connection pool closed")

    async def init_schema(self):
        """Create the quiz tables if they do not exist (idempotent)"""
        if not SCHEMA_PATH.exists():
            raise FileNotFoundError(f"Schema file not found: {SCHEMA_PATH}")

        schema_sql = SCHEMA_PATH.read_text()
        async with self.pool.acquire() as conn:
            await conn.execute(schema_sql)

        logger.info("schema initialized")

    async def ping(self) -> bool:
        """True if a pooled connection can run a trivial query"""
        async with self.pool.acquire() as conn:
            return await conn.fetchval("SELECT 1") == 1
