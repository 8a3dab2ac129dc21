"""
Quiz Pipeline - Concurrent fan-out/fan-in over documents

Per invocation: PLANNING -> DISPATCHED -> COLLECTING -> MERGED | FAILED

- Documents are split into chunks (default one document per chunk) and handed
  to an outer worker pool (default 6 workers)
- Each chunk is routed inline, remote or split; split chunks are re-planned
  into size-bounded sub-batches and processed by an inner pool (default cap
  15) with a per-batch deadline
- Token usage is summed from every outcome, successful or not, and returned
  on the error path too (GenerationError.usage)
- Any failed chunk or sub-batch fails the invocation (no partial quiz)

The whole invocation runs under one overall deadline. Callers own document
cleanup and persistence.
"""

import asyncio
import enum
import random
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from config import config, get_logger
from exceptions import GenerationError, PipelineTimeoutError, ValidationError
from generation.assembler import BatchResult, merge_results
from generation.client import QuizGenerationClient, RoutingMode, select_mode
from generation.documents import SourceDocument, total_size
from generation.models import QuizDraft, TokenUsage
from generation.planner import plan_batches
from generation.pool import TaskOutcome, WorkerPool
from pipeline.protocols import MetricsCollector, NullMetrics

logger = get_logger(__name__).bind(component="orchestrator")


class PipelineState(str, enum.Enum):
    PLANNING = "planning"
    DISPATCHED = "dispatched"
    COLLECTING = "collecting"
    MERGED = "merged"
    FAILED = "failed"


@dataclass(frozen=True)
class PipelineSettings:
    """Sizing, concurrency and deadline knobs for one pipeline"""

    max_inline_bytes: int = 20 * 1024 * 1024
    worker_count: int = 6
    chunk_size: int = 1
    subbatch_concurrency: int = 15
    pipeline_timeout: float = 20 * 60
    batch_timeout: float = 15 * 60
    per_batch_cap: int = 40
    multi_batch_cap: int = 100
    single_result_cap: int = 200

    @property
    def batch_threshold(self) -> int:
        """Byte limit for sub-batches when a chunk is split"""
        return self.max_inline_bytes // 4

    @classmethod
    def from_config(cls) -> "PipelineSettings":
        return cls(
            max_inline_bytes=config.MAX_INLINE_BYTES,
            worker_count=config.WORKER_COUNT,
            chunk_size=config.CHUNK_SIZE,
            subbatch_concurrency=config.SUBBATCH_CONCURRENCY,
            pipeline_timeout=config.PIPELINE_TIMEOUT,
            batch_timeout=config.BATCH_TIMEOUT,
        )


def usage_of(error: BaseException) -> TokenUsage:
    """Token usage carried by an error, empty if it carries none"""
    usage = getattr(error, "usage", None)
    if isinstance(usage, TokenUsage):
        return usage
    return TokenUsage()


def _outcome_usage(outcome: TaskOutcome) -> TokenUsage:
    if outcome.ok:
        _, usage = outcome.result
        return usage
    return usage_of(outcome.error)


def _document_names(documents: Sequence[SourceDocument]) -> str:
    return ", ".join(doc.name for doc in documents)


class QuizPipeline:
    """Turns a list of documents into one QuizDraft plus aggregate token usage"""

    def __init__(
        self,
        client: QuizGenerationClient,
        settings: Optional[PipelineSettings] = None,
        metrics: Optional[MetricsCollector] = None,
        rng: Optional[random.Random] = None,
    ):
        """Initialize pipeline

        Args:
            client: Generation client used for every model call
            settings: Pipeline knobs (defaults from config)
            metrics: Metrics collector (uses NullMetrics if not provided)
            rng: Random source for question shuffling (tests pass a seeded one)
        """
        self.client = client
        self.settings = settings or PipelineSettings.from_config()
        self.metrics = metrics or NullMetrics()
        self.rng = rng or random.Random()

    async def process_documents(self, documents: Sequence[SourceDocument]) -> Tuple[QuizDraft, TokenUsage]:
        """Generate one quiz from all documents

        Returns:
            Tuple of (merged draft, usage summed over every call made)

        Raises:
            ValidationError: If no documents are given
            PipelineTimeoutError: If the overall deadline expires
            BatchMergeError: If any chunk failed
            NoQuestionsError: If no valid question survived
        """
        if not documents:
            raise ValidationError("no files provided for processing", field="documents")

        settings = self.settings
        state = self._transition(None, PipelineState.PLANNING, documents=len(documents))

        chunk_size = max(settings.chunk_size, 1)
        chunks = [list(documents[i:i + chunk_size]) for i in range(0, len(documents), chunk_size)]
        pool = WorkerPool(settings.worker_count, name="chunks")

        with self.metrics.generation_duration.time():
            state = self._transition(
                state, PipelineState.DISPATCHED,
                chunks=len(chunks), workers=min(settings.worker_count, len(chunks)),
                total_bytes=total_size(documents)
            )
            try:
                outcomes = await asyncio.wait_for(
                    pool.run(chunks, self.process_chunk),
                    timeout=settings.pipeline_timeout
                )
            except asyncio.TimeoutError:
                usage = TokenUsage.sum(_outcome_usage(o) for o in pool.drain())
                error = PipelineTimeoutError(
                    f"quiz generation timed out after {settings.pipeline_timeout}s",
                    timeout_seconds=settings.pipeline_timeout,
                    usage=usage
                )
                self._transition(state, PipelineState.FAILED, reason="timeout")
                self.metrics.record_error("pipeline", error)
                self.metrics.record_generation("pipeline", "timeout", 0)
                raise error

            state = self._transition(state, PipelineState.COLLECTING, outcomes=len(outcomes))
            usage = TokenUsage.sum(_outcome_usage(o) for o in outcomes)

            results: List[BatchResult] = []
            for outcome in sorted(outcomes, key=lambda o: o.index):
                if outcome.ok:
                    results.append(outcome.result[0])
                else:
                    results.append(GenerationError(
                        f"failed to process chunk: {outcome.error}",
                        usage=usage_of(outcome.error)
                    ))

            multi = len(chunks) > 1
            try:
                draft = merge_results(
                    results,
                    per_batch_cap=settings.per_batch_cap if multi else settings.single_result_cap,
                    total_cap=settings.multi_batch_cap if multi else settings.single_result_cap,
                    shuffle=multi,
                    rng=self.rng,
                    usage=usage,
                )
            except GenerationError as e:
                self._transition(state, PipelineState.FAILED, reason=type(e).__name__)
                self.metrics.record_error("pipeline", e)
                self.metrics.record_generation("pipeline", "error", 0)
                raise

        self._transition(
            state, PipelineState.MERGED,
            questions=len(draft.questions),
            total_tokens=usage.total_tokens
        )
        self.metrics.record_generation("pipeline", "success", len(draft.questions))
        return draft, usage

    async def process_chunk(self, documents: Sequence[SourceDocument]) -> Tuple[QuizDraft, TokenUsage]:
        """Apply the inline/remote/split routing decision to one chunk"""
        mode = select_mode(documents, self.settings.max_inline_bytes)
        logger.debug("routing chunk", mode=mode.value, documents=len(documents), total_bytes=total_size(documents))

        if mode == RoutingMode.SPLIT:
            return await self._process_individually(documents)
        if mode == RoutingMode.REMOTE:
            return await self.client.generate_remote(documents)
        return await self.client.generate_inline(documents)

    async def _process_individually(self, documents: Sequence[SourceDocument]) -> Tuple[QuizDraft, TokenUsage]:
        """Re-plan a chunk into sub-batches, generate each, and merge"""
        settings = self.settings
        batches = plan_batches(documents, settings.batch_threshold)
        logger.info(
            "splitting chunk into batches",
            documents=len(documents),
            batches=len(batches),
            batch_threshold=settings.batch_threshold
        )

        pool = WorkerPool(
            settings.subbatch_concurrency,
            name="batches",
            item_timeout=settings.batch_timeout
        )
        outcomes = await pool.run(batches, self.process_chunk)
        usage = TokenUsage.sum(_outcome_usage(o) for o in outcomes)

        results: List[BatchResult] = []
        for outcome in sorted(outcomes, key=lambda o: o.index):
            if outcome.ok:
                results.append(outcome.result[0])
            else:
                results.append(GenerationError(
                    f"failed to process batch {outcome.index} ({_document_names(outcome.item)}): {outcome.error}",
                    usage=usage_of(outcome.error)
                ))

        draft = merge_results(
            results,
            per_batch_cap=settings.per_batch_cap,
            total_cap=settings.multi_batch_cap,
            shuffle=True,
            rng=self.rng,
            synthesize_title=False,
            usage=usage,
        )
        return draft, usage

    @staticmethod
    def _transition(current: Optional[PipelineState], new: PipelineState, **details) -> PipelineState:
        logger.info(
            "pipeline state",
            from_state=current.value if current else None,
            to_state=new.value,
            **details
        )
        return new
