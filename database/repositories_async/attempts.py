"""Attempt repository - quiz attempts and the answers saved during them

Implements the AttemptStore protocol. An attempt is open until finished;
answers can only be saved to an open attempt, and finishing computes the
score (number of correct answers) and closes it in one statement.
"""

from typing import List, Optional

from config import get_logger
from database.models import AttemptAnswer, AttemptSummary, QuizAttempt
from database.repositories_async.base import BaseRepository

logger = get_logger(__name__).bind(component="attempt_repository")


class AttemptRepository(BaseRepository):
    """Repository for quiz attempts"""

    async def create_attempt(self, quiz_id: str, user_id: str) -> str:
        row = await self._fetchrow(
            """
            INSERT INTO quiz_attempts (quiz_id, user_id, start_time)
            VALUES ($1, $2, NOW())
            RETURNING id
            """,
            quiz_id, user_id,
        )
        attempt_id = str(row["id"])
        logger.info("started attempt", attempt_id=attempt_id, quiz_id=quiz_id, user_id=user_id)
        return attempt_id

    async def get_attempt(self, attempt_id: str) -> Optional[QuizAttempt]:
        """Attempt with its saved answers, None if it does not exist"""
        row = await self._fetchrow(
            """
            SELECT id, quiz_id, user_id, score, start_time, end_time
            FROM quiz_attempts
            WHERE id = $1
            """,
            attempt_id,
        )
        if not row:
            return None

        answer_rows = await self._fetch(
            """
            SELECT question_id, selected_answer_id, is_correct
            FROM attempt_answers
            WHERE quiz_attempt_id = $1
            ORDER BY created_at
            """,
            attempt_id,
        )
        return QuizAttempt(
            id=str(row["id"]),
            quiz_id=str(row["quiz_id"]),
            user_id=str(row["user_id"]),
            score=row["score"],
            start_time=row["start_time"],
            end_time=row["end_time"],
            answers=[
                AttemptAnswer(
                    question_id=str(a["question_id"]),
                    selected_answer_id=str(a["selected_answer_id"]) if a["selected_answer_id"] else None,
                    is_correct=bool(a["is_correct"]),
                )
                for a in answer_rows
            ],
        )

    async def get_answer_correctness(self, quiz_id: str, question_id: str, answer_id: str) -> Optional[bool]:
        """Whether answer_id is a correct option of question_id in quiz_id

        Returns None if the answer does not belong to that question and quiz.
        """
        row = await self._fetchrow(
            """
            SELECT a.is_correct
            FROM answers a
            JOIN questions q ON a.question_id = q.id
            WHERE a.id = $1 AND q.id = $2 AND q.quiz_id = $3
            """,
            answer_id, question_id, quiz_id,
        )
        return None if row is None else row["is_correct"]

    async def save_answer(self, attempt_id: str, question_id: str, answer_id: str, is_correct: bool) -> bool:
        """Insert or replace the answer to one question

        Returns:
            False if the attempt was finished in the meantime (nothing saved)
        """
        result = await self._execute(
            """
            INSERT INTO attempt_answers (quiz_attempt_id, question_id, selected_answer_id, is_correct)
            SELECT $1, $2, $3, $4
            WHERE EXISTS (SELECT 1 FROM quiz_attempts WHERE id = $1 AND end_time IS NULL)
            ON CONFLICT (quiz_attempt_id, question_id)
            DO UPDATE SET
                selected_answer_id = EXCLUDED.selected_answer_id,
                is_correct = EXCLUDED.is_correct,
                updated_at = NOW()
            """,
            attempt_id, question_id, answer_id, is_correct,
        )
        return self._parse_row_count(result) > 0

    async def finish_attempt(self, attempt_id: str) -> Optional[int]:
        """Score an open attempt and close it

        Returns:
            The score, or None if the attempt was already finished
        """
        row = await self._fetchrow(
            """
            UPDATE quiz_attempts
            SET score = (
                    SELECT COUNT(*) FROM attempt_answers
                    WHERE quiz_attempt_id = $1 AND is_correct = TRUE
                ),
                end_time = NOW(),
                updated_at = NOW()
            WHERE id = $1 AND end_time IS NULL
            RETURNING score
            """,
            attempt_id,
        )
        if row is None:
            return None
        logger.info("finished attempt", attempt_id=attempt_id, score=row["score"])
        return row["score"]

    async def list_user_attempts(self, user_id: str) -> List[AttemptSummary]:
        """User's attempts with quiz names, newest first"""
        rows = await self._fetch(
            """
            SELECT qa.id AS attempt_id, qa.quiz_id, qa.start_time, qa.score,
                   q.title AS quiz_name,
                   (SELECT COUNT(*) FROM questions WHERE quiz_id = q.id) AS total_questions
            FROM quiz_attempts qa
            JOIN quizes q ON qa.quiz_id = q.id
            WHERE qa.user_id = $1
            ORDER BY qa.start_time DESC
            """,
            user_id,
        )
        return [
            AttemptSummary(
                attempt_id=str(row["attempt_id"]),
                quiz_id=str(row["quiz_id"]),
                quiz_name=row["quiz_name"],
                start_time=row["start_time"],
                score=row["score"],
                total_questions=row["total_questions"],
            )
            for row in rows
        ]
