"""Async PostgreSQL repositories using asyncpg connection pooling"""

from database.repositories_async.attempts import AttemptRepository
from database.repositories_async.base import BaseRepository
from database.repositories_async.quizzes import QuizRepository

__all__ = [
    "AttemptRepository",
    "BaseRepository",
    "QuizRepository",
]
