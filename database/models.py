"""
Database Models for stored quizzes and attempts

Read-side shapes returned by the repositories and serialized as-is by the
API routes. Ids are strings (UUIDs rendered by the repository).
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class QuizSummary(BaseModel):
    """One row of a creator's quiz list"""

    id: str
    title: str
    created_at: datetime
    updated_at: datetime


class QuizOption(BaseModel):
    id: str
    text: str
    is_correct: bool
    explanation: Optional[str] = None


class QuizQuestion(BaseModel):
    id: str
    text: str
    topic_title: Optional[str] = None
    options: List[QuizOption] = []


class QuizDetail(BaseModel):
    """A stored quiz with its questions and answer options"""

    id: str
    creator_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    visibility: str
    created_at: datetime
    updated_at: datetime
    creator_name: Optional[str] = None
    questions: List[QuizQuestion] = []


class AttemptAnswer(BaseModel):
    question_id: str
    selected_answer_id: Optional[str] = None
    is_correct: bool = False


class QuizAttempt(BaseModel):
    """A user's run through a quiz; finished once end_time is set"""

    id: str
    quiz_id: str
    user_id: str
    score: Optional[int] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    answers: List[AttemptAnswer] = []

    @property
    def is_finished(self) -> bool:
        return self.end_time is not None


class AttemptSummary(BaseModel):
    """One row of a user's attempt history"""

    attempt_id: str
    quiz_id: str
    quiz_name: str
    start_time: datetime
    score: Optional[int] = None
    total_questions: int = 0
