"""
Quiz attempt API routes

An attempt is started on a visible quiz, collects one answer per question
while open, and is closed by finishing it, which fixes the score (number of
correct answers).
"""

import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, ConfigDict, Field

from config import get_logger
from database.models import AttemptSummary, QuizAttempt
from pipeline.protocols import AttemptStore, NotificationEvent, Notifier, QuizLibrary
from server.dependencies import (
    get_attempt_store,
    get_notifier,
    get_quiz_library,
    require_user_id,
    valid_attempt_id,
    valid_quiz_id,
)
from server.routes.quizzes import get_visible_quiz

logger = get_logger(__name__).bind(component="api")


router = APIRouter(prefix="/api")


class SaveAnswerRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question_id: uuid.UUID = Field(alias="questionId")
    selected_answer_id: uuid.UUID = Field(alias="selectedAnswerId")


async def get_own_attempt(store: AttemptStore, attempt_id: str, user_id: str) -> QuizAttempt:
    attempt = await store.get_attempt(attempt_id)
    if not attempt:
        raise HTTPException(status_code=404, detail="Quiz attempt not found")
    if attempt.user_id != user_id:
        raise HTTPException(status_code=403, detail="You do not have permission to access this quiz attempt")
    return attempt


def attempt_finished() -> HTTPException:
    return HTTPException(status_code=409, detail="This quiz attempt has already been finished")


@router.post("/quizzes/{quiz_id}/attempts", status_code=201)
async def create_attempt(
    user_id: str = Depends(require_user_id),
    quiz_id: str = Depends(valid_quiz_id),
    library: QuizLibrary = Depends(get_quiz_library),
    store: AttemptStore = Depends(get_attempt_store),
    notifier: Notifier = Depends(get_notifier),
):
    """Start a new attempt on a quiz"""
    try:
        quiz = await get_visible_quiz(library, quiz_id, user_id, include_questions=False)
        attempt_id = await store.create_attempt(quiz_id, user_id)
    except HTTPException:
        raise
    except Exception:
        logger.exception("error starting attempt", quiz_id=quiz_id, user_id=user_id)
        raise HTTPException(status_code=500, detail="Failed to start quiz attempt")

    notifier.notify(NotificationEvent(
        title="Quiz Attempt Started",
        description=quiz.title,
        level="info",
        fields={"Quiz ID": quiz_id, "Attempt ID": attempt_id, "User": user_id},
    ))
    return {"attemptId": attempt_id}


@router.get("/attempts")
async def list_user_attempts(
    user_id: str = Depends(require_user_id),
    store: AttemptStore = Depends(get_attempt_store),
) -> List[AttemptSummary]:
    """Current user's attempts, newest first"""
    try:
        return await store.list_user_attempts(user_id)
    except Exception:
        logger.exception("error listing attempts", user_id=user_id)
        raise HTTPException(status_code=500, detail="Failed to retrieve attempts")


@router.get("/attempts/{attempt_id}")
async def get_attempt(
    user_id: str = Depends(require_user_id),
    attempt_id: str = Depends(valid_attempt_id),
    store: AttemptStore = Depends(get_attempt_store),
) -> QuizAttempt:
    """An attempt with the answers saved so far"""
    try:
        return await get_own_attempt(store, attempt_id, user_id)
    except HTTPException:
        raise
    except Exception:
        logger.exception("error fetching attempt", attempt_id=attempt_id)
        raise HTTPException(status_code=500, detail="Failed to retrieve quiz attempt")


@router.post("/attempts/{attempt_id}/answers")
async def save_answer(
    body: SaveAnswerRequest,
    user_id: str = Depends(require_user_id),
    attempt_id: str = Depends(valid_attempt_id),
    store: AttemptStore = Depends(get_attempt_store),
):
    """Save or replace the selected answer for one question of an open attempt"""
    question_id = str(body.question_id)
    answer_id = str(body.selected_answer_id)
    try:
        attempt = await get_own_attempt(store, attempt_id, user_id)
        if attempt.is_finished:
            raise attempt_finished()

        is_correct = await store.get_answer_correctness(attempt.quiz_id, question_id, answer_id)
        if is_correct is None:
            raise HTTPException(status_code=400, detail="Invalid selected answer ID")

        if not await store.save_answer(attempt_id, question_id, answer_id, is_correct):
            raise attempt_finished()
    except HTTPException:
        raise
    except Exception:
        logger.exception("error saving answer", attempt_id=attempt_id, question_id=question_id)
        raise HTTPException(status_code=500, detail="Failed to save answer")

    return Response(status_code=200)


@router.post("/attempts/{attempt_id}/finish")
async def finish_attempt(
    user_id: str = Depends(require_user_id),
    attempt_id: str = Depends(valid_attempt_id),
    store: AttemptStore = Depends(get_attempt_store),
    notifier: Notifier = Depends(get_notifier),
):
    """Close an attempt and return its score"""
    try:
        attempt = await get_own_attempt(store, attempt_id, user_id)
        if attempt.is_finished:
            raise attempt_finished()

        score = await store.finish_attempt(attempt_id)
        if score is None:
            raise attempt_finished()
    except HTTPException:
        raise
    except Exception:
        logger.exception("error finishing attempt", attempt_id=attempt_id)
        raise HTTPException(status_code=500, detail="Failed to finalize quiz attempt")

    logger.info("attempt finished", attempt_id=attempt_id, user_id=user_id, score=score)
    notifier.notify(NotificationEvent(
        title="Quiz Attempt Finished",
        description=f"Score: {score}",
        level="success",
        fields={"Quiz ID": attempt.quiz_id, "Attempt ID": attempt_id, "User": user_id},
    ))
    return {
        "message": "Quiz attempt finished successfully!",
        "score": score,
    }
