"""
Database Services

Business logic on top of the repositories.
"""

from database.services.quiz_writer import PersistedQuiz, QuizWriter

__all__ = ['PersistedQuiz', 'QuizWriter']
