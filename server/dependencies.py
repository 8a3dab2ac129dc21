"""FastAPI Dependencies

Centralized dependency injection for reuse across all route modules.
Everything is read from app.state (populated by the lifespan in server.main),
so tests can swap any collaborator through app.dependency_overrides.
"""

import uuid

from fastapi import Depends, HTTPException, Request, status

from database.db_postgres import Database
from generation.orchestrator import QuizPipeline
from pipeline.protocols import AttemptStore, MetricsCollector, Notifier, QuizLibrary, QuizStore, TranscriptFetcher
from server.auth import TokenUserContext
from server.services.quiz_generation import QuizGenerationService


def get_db(request: Request) -> Database:
    """Shared database instance from app state"""
    return request.app.state.db


def get_quiz_store(request: Request) -> QuizStore:
    return request.app.state.db.quizzes


def get_quiz_library(request: Request) -> QuizLibrary:
    return request.app.state.db.quizzes


def get_attempt_store(request: Request) -> AttemptStore:
    return request.app.state.db.attempts


def get_pipeline(request: Request) -> QuizPipeline:
    return request.app.state.pipeline


def get_transcript_fetcher(request: Request) -> TranscriptFetcher:
    return request.app.state.transcripts


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_metrics(request: Request) -> MetricsCollector:
    return request.app.state.metrics


def get_user_context(request: Request) -> TokenUserContext:
    """UserContext from the Authorization header (anonymous when missing/invalid)"""
    return TokenUserContext.from_authorization(request.headers.get("authorization"))


def require_user_id(request: Request, user: TokenUserContext = Depends(get_user_context)) -> str:
    """
    FastAPI dependency for authenticated routes.

    Returns:
        Current user's id

    Raises:
        HTTPException 401 if not authenticated or token invalid
    """
    user_id = user.current_user_id()
    if not user.is_authenticated() or not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not authenticated"
        )
    request.state.user_id = user_id
    return user_id


def _parse_id(value: str, kind: str) -> str:
    try:
        return str(uuid.UUID(value))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid {kind} ID format")


def valid_quiz_id(quiz_id: str) -> str:
    """Path dependency: quiz_id as a canonical UUID string (400 if malformed)"""
    return _parse_id(quiz_id, "Quiz")


def valid_attempt_id(attempt_id: str) -> str:
    """Path dependency: attempt_id as a canonical UUID string (400 if malformed)"""
    return _parse_id(attempt_id, "Attempt")


def get_quiz_service(
    pipeline: QuizPipeline = Depends(get_pipeline),
    store: QuizStore = Depends(get_quiz_store),
    transcripts: TranscriptFetcher = Depends(get_transcript_fetcher),
    notifier: Notifier = Depends(get_notifier),
    metrics: MetricsCollector = Depends(get_metrics),
) -> QuizGenerationService:
    return QuizGenerationService(pipeline, store, transcripts, notifier, metrics)
