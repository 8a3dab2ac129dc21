"""Quiz repository - quizzes, questions, answers, materials, topics, token usage

Implements the QuizStore protocol (writes) and the QuizLibrary protocol
(reads). Every write method takes an explicit connection so the persistence
writer can run a whole quiz inside one transaction; pass None to run a single
statement in its own transaction.
"""

from typing import Dict, List, Optional

from asyncpg import Connection

from config import get_logger
from database.models import QuizDetail, QuizOption, QuizQuestion, QuizSummary
from database.repositories_async.base import BaseRepository
from generation.models import TokenUsage

logger = get_logger(__name__).bind(component="quiz_repository")

DEFAULT_VISIBILITY = "public"


class QuizRepository(BaseRepository):
    """Repository for generated quizzes and everything attached to them"""

    async def create_quiz(
        self,
        conn: Optional[Connection],
        creator_id: str,
        title: str,
        visibility: str = DEFAULT_VISIBILITY
    ) -> str:
        async with self._ensure_conn(conn) as c:
            quiz_id = await c.fetchval(
                """
                INSERT INTO quizes (creator_id, title, visibility)
                VALUES ($1, $2, $3)
                RETURNING id
                """,
                creator_id, title, visibility,
            )
        logger.debug("created quiz", quiz_id=str(quiz_id), creator_id=creator_id)
        return str(quiz_id)

    async def create_material(
        self,
        conn: Optional[Connection],
        user_id: str,
        title: str,
        url: Optional[str] = None
    ) -> str:
        async with self._ensure_conn(conn) as c:
            material_id = await c.fetchval(
                """
                INSERT INTO materials (user_id, title, url)
                VALUES ($1, $2, $3)
                RETURNING id
                """,
                user_id, title, url,
            )
        return str(material_id)

    async def link_material(self, conn: Optional[Connection], quiz_id: str, material_id: str) -> None:
        async with self._ensure_conn(conn) as c:
            await c.execute(
                """
                INSERT INTO quiz_materials (quiz_id, material_id)
                VALUES ($1, $2)
                ON CONFLICT (quiz_id, material_id) DO NOTHING
                """,
                quiz_id, material_id,
            )

    async def get_or_create_topic(self, conn: Optional[Connection], creator_id: str, title: str) -> str:
        """Topic id for (creator, title), creating the topic if it does not exist"""
        async with self._ensure_conn(conn) as c:
            topic_id = await c.fetchval(
                "SELECT id FROM topics WHERE title = $1 AND creator_id = $2",
                title, creator_id,
            )
            if topic_id is None:
                topic_id = await c.fetchval(
                    """
                    INSERT INTO topics (creator_id, title)
                    VALUES ($1, $2)
                    RETURNING id
                    """,
                    creator_id, title,
                )
                logger.info("created topic", topic=title, creator_id=creator_id)
        return str(topic_id)

    async def create_question(self, conn: Optional[Connection], quiz_id: str, topic_id: str, text: str) -> str:
        async with self._ensure_conn(conn) as c:
            question_id = await c.fetchval(
                """
                INSERT INTO questions (quiz_id, topic_id, question)
                VALUES ($1, $2, $3)
                RETURNING id
                """,
                quiz_id, topic_id, text,
            )
        return str(question_id)

    async def create_answer(
        self,
        conn: Optional[Connection],
        question_id: str,
        text: str,
        is_correct: bool,
        explanation: Optional[str]
    ) -> str:
        async with self._ensure_conn(conn) as c:
            answer_id = await c.fetchval(
                """
                INSERT INTO answers (question_id, answer, is_correct, explanation)
                VALUES ($1, $2, $3, $4)
                RETURNING id
                """,
                question_id, text, is_correct, explanation or None,
            )
        return str(answer_id)

    async def record_token_usage(self, conn: Optional[Connection], user_id: str, usage: TokenUsage) -> None:
        """Record consumption (negative amount) and decrement the user's balances"""
        async with self._ensure_conn(conn) as c:
            await c.execute(
                """
                INSERT INTO tokens (user_id, amount, type)
                VALUES ($1, $2, 'usage')
                """,
                user_id, -usage.total_tokens,
            )
            await c.execute(
                """
                UPDATE users
                SET input_tokens_balance = input_tokens_balance - $2,
                    output_tokens_balance = output_tokens_balance - $3
                WHERE id = $1
                """,
                user_id, usage.prompt_tokens, usage.candidate_tokens,
            )
        logger.info(
            "recorded token usage",
            user_id=user_id,
            prompt_tokens=usage.prompt_tokens,
            candidate_tokens=usage.candidate_tokens,
            total_tokens=usage.total_tokens
        )


    async def get_quiz(self, quiz_id: str, include_questions: bool = True) -> Optional[QuizDetail]:
        """Quiz with creator name and, unless disabled, its questions and options

        Returns None if the quiz does not exist.
        """
        row = await self._fetchrow(
            """
            SELECT q.id, q.creator_id, q.title, q.description, q.visibility::text AS visibility,
                   q.created_at, q.updated_at, u.name AS creator_name
            FROM quizes q
            LEFT JOIN users u ON q.creator_id = u.id
            WHERE q.id = $1
            """,
            quiz_id,
        )
        if not row:
            return None

        quiz = QuizDetail(
            id=str(row["id"]),
            creator_id=str(row["creator_id"]) if row["creator_id"] else None,
            title=row["title"],
            description=row["description"],
            visibility=row["visibility"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            creator_name=row["creator_name"],
        )
        if include_questions:
            quiz.questions = await self._list_questions(quiz_id)
        return quiz

    async def _list_questions(self, quiz_id: str) -> List[QuizQuestion]:
        rows = await self._fetch(
            """
            SELECT qu.id AS question_id, qu.question, t.title AS topic_title,
                   a.id AS answer_id, a.answer, a.is_correct, a.explanation
            FROM questions qu
            LEFT JOIN topics t ON qu.topic_id = t.id
            LEFT JOIN answers a ON a.question_id = qu.id
            WHERE qu.quiz_id = $1
            ORDER BY qu.created_at, qu.id, a.created_at, a.id
            """,
            quiz_id,
        )

        questions: Dict[str, QuizQuestion] = {}
        for row in rows:
            question_id = str(row["question_id"])
            question = questions.get(question_id)
            if question is None:
                question = QuizQuestion(id=question_id, text=row["question"], topic_title=row["topic_title"])
                questions[question_id] = question
            if row["answer_id"] is not None:
                question.options.append(QuizOption(
                    id=str(row["answer_id"]),
                    text=row["answer"],
                    is_correct=row["is_correct"],
                    explanation=row["explanation"],
                ))
        return list(questions.values())

    async def list_quizzes_by_creator(self, creator_id: str) -> List[QuizSummary]:
        """Creator's quizzes, newest first"""
        rows = await self._fetch(
            """
            SELECT id, title, created_at, updated_at
            FROM quizes
            WHERE creator_id = $1
            ORDER BY created_at DESC
            """,
            creator_id,
        )
        return [
            QuizSummary(id=str(row["id"]), title=row["title"], created_at=row["created_at"], updated_at=row["updated_at"])
            for row in rows
        ]

    async def delete_quiz(self, quiz_id: str) -> bool:
        """Delete a quiz; questions, answers, links and attempts cascade

        Returns:
            True if a quiz was deleted
        """
        result = await self._execute("DELETE FROM quizes WHERE id = $1", quiz_id)
        deleted = self._parse_row_count(result) > 0
        if deleted:
            logger.info("deleted quiz", quiz_id=quiz_id)
        return deleted
