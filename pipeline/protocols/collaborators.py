"""Collaborator Protocols - Interfaces for everything outside the generation core

The generation pipeline never touches storage, auth, transcript sources or
notification channels directly. These protocols describe what the request
layer needs from them; concrete implementations live in database/, vendors/
and server/.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncContextManager, Dict, List, Optional, Protocol

from config import get_logger
from database.models import AttemptSummary, QuizAttempt, QuizDetail, QuizSummary
from generation.models import TokenUsage

logger = get_logger(__name__).bind(component="notifications")


class UserContext(Protocol):
    """Who is making the current request"""

    def current_user_id(self) -> Optional[str]: ...

    def is_authenticated(self) -> bool: ...


class QuizStore(Protocol):
    """Transactional relational storage for generated quizzes

    Every write takes the connection yielded by transaction(), so a quiz and
    all of its questions, answers and material links commit or roll back
    together.
    """

    def transaction(self) -> AsyncContextManager[Any]: ...

    async def create_quiz(self, conn: Any, creator_id: str, title: str) -> str: ...

    async def create_material(self, conn: Any, user_id: str, title: str, url: Optional[str] = None) -> str: ...

    async def link_material(self, conn: Any, quiz_id: str, material_id: str) -> None: ...

    async def get_or_create_topic(self, conn: Any, creator_id: str, title: str) -> str: ...

    async def create_question(self, conn: Any, quiz_id: str, topic_id: str, text: str) -> str: ...

    async def create_answer(
        self, conn: Any, question_id: str, text: str, is_correct: bool, explanation: Optional[str]
    ) -> str: ...

    async def record_token_usage(self, conn: Any, user_id: str, usage: TokenUsage) -> None: ...


class QuizLibrary(Protocol):
    """Read and delete access to stored quizzes"""

    async def get_quiz(self, quiz_id: str, include_questions: bool = True) -> Optional[QuizDetail]: ...

    async def list_quizzes_by_creator(self, creator_id: str) -> List[QuizSummary]: ...

    async def delete_quiz(self, quiz_id: str) -> bool: ...


class AttemptStore(Protocol):
    """Storage for quiz attempts and their answers

    save_answer() and finish_attempt() only act on open attempts and report
    when the attempt was already finished (False and None respectively).
    """

    async def create_attempt(self, quiz_id: str, user_id: str) -> str: ...

    async def get_attempt(self, attempt_id: str) -> Optional[QuizAttempt]: ...

    async def get_answer_correctness(self, quiz_id: str, question_id: str, answer_id: str) -> Optional[bool]: ...

    async def save_answer(self, attempt_id: str, question_id: str, answer_id: str, is_correct: bool) -> bool: ...

    async def finish_attempt(self, attempt_id: str) -> Optional[int]: ...

    async def list_user_attempts(self, user_id: str) -> List[AttemptSummary]: ...


class TranscriptFetcher(Protocol):
    """Fetches the plain-text transcript of a video URL

    Raises TranscriptError when no transcript can be produced.
    """

    async def fetch(self, url: str) -> str: ...


@dataclass
class NotificationEvent:
    """Something worth telling operators about (usually a failed request)"""

    title: str
    description: str
    level: str = "error"
    fields: Dict[str, str] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Notifier(Protocol):
    """Fire-and-forget side channel; notify() must never block the caller"""

    def notify(self, event: NotificationEvent) -> None: ...


class NullNotifier:
    """Notifier used when no notification endpoint is configured; events are only debug-logged"""

    def notify(self, event: NotificationEvent) -> None:
        logger.debug("notification dropped", title=event.title, level=event.level)
