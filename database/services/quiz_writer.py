"""
Quiz Writer Service

Persists a generated QuizDraft inside a single transaction:
1. Token usage ledger entry and balance decrement (only when tokens were used)
2. Quiz record
3. One material per uploaded file and per video URL, linked to the quiz
4. Topics (get-or-create, cached per write; missing topic -> "General")
5. Questions and answers

Questions with empty text or not exactly 4 options are skipped. A question
without exactly one correct option aborts the whole write: that indicates a
systemic generation defect, so nothing is committed.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from config import get_logger
from exceptions import InvalidAnswerCountError
from generation.assembler import is_structurally_valid
from generation.models import QuizDraft, TokenUsage
from pipeline.protocols import QuizStore

logger = get_logger(__name__).bind(component="quiz_writer")

DEFAULT_TOPIC = "General"
MAX_MATERIAL_TITLE = 255


@dataclass
class PersistedQuiz:
    quiz_id: str
    title: str
    question_count: int
    material_count: int


def video_material_title(url: str) -> str:
    title = f"YouTube Transcript Source: {url}"
    if len(title) > MAX_MATERIAL_TITLE:
        title = title[:MAX_MATERIAL_TITLE - 3] + "..."
    return title


class QuizWriter:
    """Writes generated quizzes through a QuizStore"""

    def __init__(self, store: QuizStore):
        self.store = store

    async def write(
        self,
        user_id: str,
        draft: QuizDraft,
        file_names: Sequence[str] = (),
        video_urls: Sequence[str] = (),
        usage: Optional[TokenUsage] = None,
    ) -> PersistedQuiz:
        """Persist a draft and everything attached to it

        Raises:
            InvalidAnswerCountError: If a question does not have exactly one
                correct option (transaction rolled back)
        """
        usage = usage or TokenUsage()
        store = self.store

        async with store.transaction() as conn:
            if usage.total_tokens > 0:
                await store.record_token_usage(conn, user_id, usage)

            quiz_id = await store.create_quiz(conn, user_id, draft.title)
            logger.info("created quiz", quiz_id=quiz_id, user_id=user_id)

            material_count = 0
            for name in file_names:
                material_id = await store.create_material(conn, user_id, name)
                await store.link_material(conn, quiz_id, material_id)
                material_count += 1

            for url in video_urls:
                if not url:
                    continue
                material_id = await store.create_material(conn, user_id, video_material_title(url), url)
                await store.link_material(conn, quiz_id, material_id)
                material_count += 1

            topic_cache: Dict[str, str] = {}
            question_count = 0
            for question in draft.questions:
                if not is_structurally_valid(question):
                    logger.warning(
                        "skipping invalid question",
                        quiz_id=quiz_id,
                        question_preview=question.text[:80],
                        option_count=len(question.options)
                    )
                    continue

                topic_title = question.topic or DEFAULT_TOPIC
                topic_id = topic_cache.get(topic_title)
                if topic_id is None:
                    topic_id = await store.get_or_create_topic(conn, user_id, topic_title)
                    topic_cache[topic_title] = topic_id

                question_id = await store.create_question(conn, quiz_id, topic_id, question.text)
                for option in question.options:
                    await store.create_answer(
                        conn, question_id, option.text, option.is_correct, option.explanation or None
                    )

                correct_count = question.correct_count()
                if correct_count != 1:
                    logger.error(
                        "invalid correct answer count, rolling back",
                        quiz_id=quiz_id,
                        correct_count=correct_count,
                        question_preview=question.text[:80]
                    )
                    raise InvalidAnswerCountError(question.text, correct_count)
                question_count += 1

        logger.info(
            "persisted quiz",
            quiz_id=quiz_id,
            questions=question_count,
            materials=material_count,
            total_tokens=usage.total_tokens
        )
        return PersistedQuiz(
            quiz_id=quiz_id,
            title=draft.title,
            question_count=question_count,
            material_count=material_count,
        )
