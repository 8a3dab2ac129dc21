"""Shared fixtures: a scripted GenerativeModel, document builders and in-memory collaborators"""

import json
import os
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Union

import pytest

from database.models import (
    AttemptAnswer,
    AttemptSummary,
    QuizAttempt,
    QuizDetail,
    QuizOption,
    QuizQuestion,
    QuizSummary,
)
from exceptions import TranscriptError
from generation.client import QuizGenerationClient, RetryPolicy
from generation.documents import SourceDocument
from generation.model import ModelResponse, SamplingConfig
from generation.models import TokenUsage
from generation.parts import FileReferencePart, Part, TextPart
from pipeline.protocols import NotificationEvent

CALL_USAGE = TokenUsage(prompt_tokens=100, candidate_tokens=50, total_tokens=150)

Scripted = Union[str, ModelResponse, Exception]


def question_dict(text: str = "What is 2 + 2?", topic: str = "Arithmetic", option_count: int = 4, correct_index: int = 0):
    return {
        "text": text,
        "topic": topic,
        "options": [
            {"text": f"Option {i}", "is_correct": i == correct_index, "explanation": f"Because {i}"}
            for i in range(option_count)
        ],
    }


def quiz_json(count: int, title: str = "Sample Quiz", prefix: str = "Q") -> str:
    return json.dumps({
        "title": title,
        "questions": [question_dict(text=f"{prefix}{i}?", topic=prefix) for i in range(count)],
    })


class FakeModel:
    """In-memory GenerativeModel

    Responses come from `script` in call order, or from `responder(parts,
    sampling)` when given. Strings become text responses billed at CALL_USAGE,
    exceptions are raised.
    """

    def __init__(
        self,
        script: Optional[Sequence[Scripted]] = None,
        responder: Optional[Callable[[Sequence[Part], SamplingConfig], Scripted]] = None,
        model_name: str = "gemini-2.0-flash",
        failing_uploads: Sequence[str] = (),
        failing_deletes: bool = False,
    ):
        self.script = list(script or [])
        self.responder = responder
        self.model_name = model_name
        self.failing_uploads = set(failing_uploads)
        self.failing_deletes = failing_deletes
        self.calls: List[tuple] = []
        self.uploaded: List[str] = []
        self.deleted: List[str] = []

    async def generate_content(self, parts, sampling):
        self.calls.append((list(parts), sampling))
        if self.responder is not None:
            item = self.responder(parts, sampling)
        else:
            item = self.script.pop(0)

        if isinstance(item, Exception):
            raise item
        if isinstance(item, ModelResponse):
            return item
        return ModelResponse(parts=[TextPart(item)], usage=CALL_USAGE, finish_reason="STOP")

    async def upload_file(self, document):
        if document.name in self.failing_uploads:
            raise RuntimeError(f"quota exceeded for {document.name}")
        name = f"files/{document.name}"
        self.uploaded.append(name)
        return FileReferencePart(uri=f"https://files.example/{document.name}", mime_type=document.mime_type, name=name)

    async def delete_file(self, reference):
        if self.failing_deletes:
            raise RuntimeError("delete failed")
        self.deleted.append(reference.name)

    def prompts(self) -> List[str]:
        return [parts[0].text_content() for parts, _ in self.calls]


def make_client(model: FakeModel, **kwargs) -> QuizGenerationClient:
    return QuizGenerationClient(
        model,
        retry_policy=RetryPolicy(delay_seconds=0),
        request_timeout=kwargs.pop("request_timeout", 5),
        **kwargs
    )


@pytest.fixture
def make_document(tmp_path):
    """Build a SourceDocument backed by a small file with a declared size"""

    def _make(name: str, size_bytes: int = 1024, content: Optional[bytes] = None) -> SourceDocument:
        data = content if content is not None else f"content of {name}".encode()
        path = os.path.join(str(tmp_path), name)
        with open(path, "wb") as f:
            f.write(data)
        return SourceDocument(name=name, path=path, size_bytes=size_bytes)

    return _make


class InMemoryQuizStore:
    """QuizStore that stages writes per transaction and commits them on a clean exit"""

    def __init__(self):
        self.committed = None
        self.rolled_back = False
        self._next_id = 0

    def _id(self, prefix):
        self._next_id += 1
        return f"{prefix}-{self._next_id}"

    @asynccontextmanager
    async def transaction(self):
        conn = {"quizzes": [], "materials": [], "links": [], "topics": [], "questions": [], "answers": [], "usage": []}
        try:
            yield conn
        except Exception:
            self.rolled_back = True
            raise
        self.committed = conn

    async def create_quiz(self, conn, creator_id, title):
        quiz_id = self._id("quiz")
        conn["quizzes"].append((quiz_id, creator_id, title))
        return quiz_id

    async def create_material(self, conn, user_id, title, url=None):
        material_id = self._id("material")
        conn["materials"].append((material_id, title, url))
        return material_id

    async def link_material(self, conn, quiz_id, material_id):
        conn["links"].append((quiz_id, material_id))

    async def get_or_create_topic(self, conn, creator_id, title):
        topic_id = self._id("topic")
        conn["topics"].append((topic_id, title))
        return topic_id

    async def create_question(self, conn, quiz_id, topic_id, text):
        question_id = self._id("question")
        conn["questions"].append((question_id, topic_id, text))
        return question_id

    async def create_answer(self, conn, question_id, text, is_correct, explanation):
        conn["answers"].append((question_id, text, is_correct, explanation))
        return self._id("answer")

    async def record_token_usage(self, conn, user_id, usage):
        conn["usage"].append((user_id, usage))


class FakeTranscripts:
    """TranscriptFetcher serving fixed transcripts; unknown URLs fail"""

    def __init__(self, transcripts=None):
        self.transcripts = dict(transcripts or {})
        self.fetched: List[str] = []

    async def fetch(self, url: str) -> str:
        self.fetched.append(url)
        if url not in self.transcripts:
            raise TranscriptError("no captions available", url=url)
        return self.transcripts[url]


class RecordingNotifier:
    """Notifier that keeps every event for assertions"""

    def __init__(self):
        self.events: List[NotificationEvent] = []

    def notify(self, event: NotificationEvent) -> None:
        self.events.append(event)


class InMemoryQuizLibrary:
    """QuizLibrary over QuizDetail objects with UUID ids"""

    def __init__(self):
        self.quizzes: Dict[str, QuizDetail] = {}

    def add_quiz(self, creator_id: str, title: str = "Cell Biology", question_count: int = 2, visibility: str = "public"):
        now = datetime.now(timezone.utc)
        questions = [
            QuizQuestion(
                id=str(uuid.uuid4()),
                text=f"Question {i}?",
                topic_title="Biology",
                options=[
                    QuizOption(id=str(uuid.uuid4()), text=f"Option {j}", is_correct=j == 0, explanation=f"Because {j}")
                    for j in range(4)
                ],
            )
            for i in range(question_count)
        ]
        quiz = QuizDetail(
            id=str(uuid.uuid4()),
            creator_id=creator_id,
            title=title,
            visibility=visibility,
            created_at=now,
            updated_at=now,
            questions=questions,
        )
        self.quizzes[quiz.id] = quiz
        return quiz

    async def get_quiz(self, quiz_id, include_questions=True):
        quiz = self.quizzes.get(quiz_id)
        if quiz is None or include_questions:
            return quiz
        return quiz.model_copy(update={"questions": []})

    async def list_quizzes_by_creator(self, creator_id):
        owned = [q for q in self.quizzes.values() if q.creator_id == creator_id]
        return [
            QuizSummary(id=q.id, title=q.title, created_at=q.created_at, updated_at=q.updated_at)
            for q in sorted(owned, key=lambda q: q.created_at, reverse=True)
        ]

    async def delete_quiz(self, quiz_id):
        return self.quizzes.pop(quiz_id, None) is not None


class InMemoryAttemptStore:
    """AttemptStore backed by an InMemoryQuizLibrary"""

    def __init__(self, library: InMemoryQuizLibrary):
        self.library = library
        self.attempts: Dict[str, QuizAttempt] = {}

    async def create_attempt(self, quiz_id, user_id):
        attempt = QuizAttempt(
            id=str(uuid.uuid4()),
            quiz_id=quiz_id,
            user_id=user_id,
            start_time=datetime.now(timezone.utc),
        )
        self.attempts[attempt.id] = attempt
        return attempt.id

    async def get_attempt(self, attempt_id):
        attempt = self.attempts.get(attempt_id)
        return attempt.model_copy(deep=True) if attempt else None

    async def get_answer_correctness(self, quiz_id, question_id, answer_id):
        quiz = self.library.quizzes.get(quiz_id)
        for question in quiz.questions if quiz else []:
            if question.id != question_id:
                continue
            for option in question.options:
                if option.id == answer_id:
                    return option.is_correct
        return None

    async def save_answer(self, attempt_id, question_id, answer_id, is_correct):
        attempt = self.attempts[attempt_id]
        if attempt.is_finished:
            return False
        attempt.answers = [a for a in attempt.answers if a.question_id != question_id]
        attempt.answers.append(AttemptAnswer(question_id=question_id, selected_answer_id=answer_id, is_correct=is_correct))
        return True

    async def finish_attempt(self, attempt_id):
        attempt = self.attempts[attempt_id]
        if attempt.is_finished:
            return None
        attempt.score = sum(1 for a in attempt.answers if a.is_correct)
        attempt.end_time = datetime.now(timezone.utc)
        return attempt.score

    async def list_user_attempts(self, user_id):
        owned = [a for a in self.attempts.values() if a.user_id == user_id]
        return [
            AttemptSummary(
                attempt_id=a.id,
                quiz_id=a.quiz_id,
                quiz_name=self.library.quizzes[a.quiz_id].title,
                start_time=a.start_time,
                score=a.score,
                total_questions=len(self.library.quizzes[a.quiz_id].questions),
            )
            for a in sorted(owned, key=lambda a: a.start_time, reverse=True)
        ]
