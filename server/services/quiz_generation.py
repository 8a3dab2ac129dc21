"""
Quiz generation service layer

Turns one API request (uploaded files + video URLs) into a persisted quiz:
1. Save uploads and fetched transcripts as temp SourceDocuments
2. Run the generation pipeline over all of them
3. Persist the draft with QuizWriter (one transaction)
4. Notify operators on failure and on success

Temp files are always removed, whatever happens. Every failure surfaces as a
RequestError naming the stage that failed.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import asyncpg

from config import get_logger
from database.services import PersistedQuiz, QuizWriter
from exceptions import (
    DocumentError,
    GenerationError,
    PersistenceError,
    RequestError,
    TranscriptError,
    ValidationError,
)
from generation.documents import SourceDocument
from generation.models import TokenUsage
from generation.orchestrator import QuizPipeline
from pipeline.protocols import (
    MetricsCollector,
    NotificationEvent,
    Notifier,
    NullMetrics,
    QuizStore,
    TranscriptFetcher,
)

logger = get_logger(__name__).bind(component="quiz_service")

UPLOAD_STAGE = "Failed to process uploaded files"
INPUT_STAGE = "Invalid request"
GENERATION_STAGE = "Failed to generate quiz content"
PERSISTENCE_STAGE = "Failed to save quiz"

NO_CONTENT_MESSAGE = "No valid content provided or processed. Please check files and URLs."


@dataclass
class CollectedSources:
    """Documents ready for generation plus what they came from"""

    documents: List[SourceDocument] = field(default_factory=list)
    file_names: List[str] = field(default_factory=list)
    video_urls: List[str] = field(default_factory=list)

    def cleanup(self) -> None:
        for doc in self.documents:
            doc.cleanup()


async def collect_sources(
    uploads: Sequence[Tuple[str, bytes]],
    video_urls: Sequence[str],
    transcripts: TranscriptFetcher,
    temp_dir: Optional[str] = None,
) -> CollectedSources:
    """Save uploads and transcripts to temp files

    Empty uploads and empty URLs are skipped. A URL whose transcript cannot be
    fetched is skipped with a warning.

    Raises:
        DocumentError: If an upload cannot be written (already saved files are removed)
    """
    sources = CollectedSources()
    try:
        for filename, data in uploads:
            if not data:
                logger.warning("skipping empty file", filename=filename)
                continue
            sources.documents.append(SourceDocument.from_upload(filename, data, temp_dir))
            sources.file_names.append(filename)

        for url in video_urls:
            if not url:
                continue
            try:
                text = await transcripts.fetch(url)
                sources.documents.append(SourceDocument.from_transcript(url, text, temp_dir))
            except (TranscriptError, DocumentError) as e:
                logger.warning("skipping video url", url=url, error=str(e), error_type=type(e).__name__)
                continue
            sources.video_urls.append(url)
    except BaseException:
        sources.cleanup()
        raise

    logger.info(
        "collected sources",
        files=len(sources.file_names),
        videos=len(sources.video_urls),
        documents=len(sources.documents)
    )
    return sources


class QuizGenerationService:
    """Request-scoped orchestration around the generation pipeline"""

    def __init__(
        self,
        pipeline: QuizPipeline,
        store: QuizStore,
        transcripts: TranscriptFetcher,
        notifier: Notifier,
        metrics: Optional[MetricsCollector] = None,
        temp_dir: Optional[str] = None,
    ):
        self.pipeline = pipeline
        self.store = store
        self.transcripts = transcripts
        self.notifier = notifier
        self.metrics = metrics or NullMetrics()
        self.temp_dir = temp_dir

    async def generate(
        self,
        user_id: str,
        uploads: Sequence[Tuple[str, bytes]],
        video_urls: Sequence[str],
    ) -> PersistedQuiz:
        """Generate and persist a quiz for user_id

        Raises:
            RequestError: 400 for unusable input, 500 for generation or persistence failures
        """
        log = logger.bind(user_id=user_id)

        try:
            sources = await collect_sources(uploads, video_urls, self.transcripts, self.temp_dir)
        except DocumentError as e:
            raise self._fail(UPLOAD_STAGE, e, 500, user_id) from e

        try:
            if not sources.documents:
                raise self._fail(INPUT_STAGE, ValidationError(NO_CONTENT_MESSAGE), 400, user_id)

            log.info("generating quiz", documents=len(sources.documents))
            try:
                draft, usage = await self.pipeline.process_documents(sources.documents)
            except GenerationError as e:
                await self._record_failed_usage(user_id, e.usage)
                raise self._fail(GENERATION_STAGE, e, 500, user_id) from e

            log.info(
                "quiz generated",
                title=draft.title,
                questions=len(draft.questions),
                total_tokens=usage.total_tokens
            )

            try:
                persisted = await QuizWriter(self.store).write(
                    user_id,
                    draft,
                    file_names=sources.file_names,
                    video_urls=sources.video_urls,
                    usage=usage,
                )
            except (PersistenceError, asyncpg.PostgresError) as e:
                raise self._fail(PERSISTENCE_STAGE, e, 500, user_id) from e
        finally:
            sources.cleanup()

        self.notifier.notify(NotificationEvent(
            title="Quiz Created",
            description=f"'{persisted.title}' ({persisted.question_count} questions, "
                        f"{persisted.material_count} materials, {usage.total_tokens} tokens used)",
            level="success",
            fields={"user_id": user_id, "quiz_id": persisted.quiz_id},
        ))
        return persisted

    async def _record_failed_usage(self, user_id: str, usage: TokenUsage) -> None:
        """Bill tokens consumed by a failed generation; a failure here is only logged"""
        if usage.total_tokens <= 0:
            return
        try:
            async with self.store.transaction() as conn:
                await self.store.record_token_usage(conn, user_id, usage)
        except (PersistenceError, asyncpg.PostgresError) as e:
            logger.error("failed to record usage of failed generation", user_id=user_id, error=str(e))
            return
        logger.info("recorded usage of failed generation", user_id=user_id, total_tokens=usage.total_tokens)

    def _fail(self, stage: str, error: Exception, status_code: int, user_id: str) -> RequestError:
        """Log, count and notify a failure; returns the RequestError to raise"""
        request_error = RequestError(stage, error, status_code)
        logger.error(
            "quiz request failed",
            user_id=user_id,
            stage=stage,
            error=str(error),
            error_type=type(error).__name__
        )
        self.metrics.record_error("api", error)
        self.notifier.notify(NotificationEvent(
            title=stage,
            description=str(error),
            level="error" if status_code >= 500 else "warning",
            fields={"user_id": user_id, "error_type": type(error).__name__},
        ))
        return request_error
