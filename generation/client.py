"""
Generation Client - One quiz generation call with retry and throttling

Responsibilities:
- Choose how a set of documents is presented to the model (inline bytes,
  uploaded file references, or split into smaller batches)
- Build the request parts for inline and remote-reference modes
- Retry malformed or failed generations, shrinking the output budget and the
  requested question count on each retry
- Account for every token the model reports, including failed attempts

Split mode is not handled here: the orchestrator owns fan-out.
"""

import asyncio
import enum
import os
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from config import config, get_logger
from exceptions import (
    DocumentError,
    GenerationError,
    LLMError,
    ResponseParseError,
    UploadError,
    ValidationError,
)
from generation.documents import SourceDocument, total_size
from generation.extractor import decode_quiz, extract_json
from generation.model import GenerativeModel, ModelResponse, SamplingConfig, estimate_cost
from generation.models import QuizDraft, TokenUsage
from generation.parts import BlobPart, FileReferencePart, Part, TextPart, replace_prompt
from generation.prompts import QUIZ_PROMPT, limited_prompt
from pipeline.protocols import MetricsCollector, NullMetrics

logger = get_logger(__name__).bind(component="generation")


class RoutingMode(str, enum.Enum):
    INLINE = "inline"
    REMOTE = "remote"
    SPLIT = "split"


def select_mode(documents: Sequence[SourceDocument], max_inline_bytes: int) -> RoutingMode:
    """Pick how a set of documents is sent to the model

    - SPLIT: several documents together above half the inline ceiling
    - REMOTE: payload above the inline ceiling (upload, attach references)
    - INLINE: everything else (attach raw bytes)
    """
    size = total_size(documents)
    if len(documents) > 1 and size > max_inline_bytes / 2:
        return RoutingMode.SPLIT
    if size > max_inline_bytes:
        return RoutingMode.REMOTE
    return RoutingMode.INLINE


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and per-retry throttling

    Attempt 0 uses the full output budget and the plain prompt. Retry n lowers
    max_output_tokens to retry_max_tokens - n * token_step (floored at
    min_max_tokens) and caps the question count at
    question_cap_start - n * question_cap_step.
    """

    max_attempts: int = 3
    delay_seconds: float = 2.0
    initial_max_tokens: int = 8192
    retry_max_tokens: int = 4096
    token_step: int = 1000
    min_max_tokens: int = 1000
    question_cap_start: int = 50
    question_cap_step: int = 15
    max_questions: int = 200

    def max_tokens_for(self, attempt: int) -> int:
        if attempt == 0:
            return self.initial_max_tokens
        return max(self.retry_max_tokens - attempt * self.token_step, self.min_max_tokens)

    def question_cap_for(self, attempt: int) -> Optional[int]:
        if attempt == 0:
            return None
        return max(self.question_cap_start - attempt * self.question_cap_step, 1)


class QuizGenerationClient:
    """Runs single generation calls against a GenerativeModel"""

    def __init__(
        self,
        model: GenerativeModel,
        retry_policy: Optional[RetryPolicy] = None,
        sampling: Optional[SamplingConfig] = None,
        request_timeout: float = config.REQUEST_TIMEOUT,
        metrics: Optional[MetricsCollector] = None,
    ):
        """Initialize client

        Args:
            model: Generative model adapter
            retry_policy: Attempt budget (defaults to 3 attempts, 2s apart)
            sampling: Base sampling configuration
            request_timeout: Seconds allowed for each model call
            metrics: Metrics collector (uses NullMetrics if not provided)
        """
        self.model = model
        self.retry_policy = retry_policy or RetryPolicy(delay_seconds=config.RETRY_DELAY)
        self.sampling = sampling or SamplingConfig()
        self.request_timeout = request_timeout
        self.metrics = metrics or NullMetrics()

    async def generate_inline(self, documents: Sequence[SourceDocument]) -> Tuple[QuizDraft, TokenUsage]:
        """Generate a quiz with document bytes attached directly to the request

        Raises:
            ValidationError: If no documents are given
            DocumentError: If a document is missing or empty
            GenerationError: If every attempt fails
        """
        if not documents:
            raise ValidationError("no files provided for processing", field="documents")

        parts: List[Part] = [TextPart(QUIZ_PROMPT)]
        for doc in documents:
            data = await asyncio.to_thread(doc.read_bytes)
            parts.append(BlobPart(data=data, mime_type=doc.mime_type))

        logger.info("generating inline", documents=len(documents), total_bytes=total_size(documents))
        return await self.generate(parts, mode=RoutingMode.INLINE.value)

    async def generate_remote(self, documents: Sequence[SourceDocument]) -> Tuple[QuizDraft, TokenUsage]:
        """Generate a quiz from documents uploaded to the provider's file store

        Uploads run in parallel. If any upload fails, the files that did upload
        are deleted and the batch fails. Uploaded files are deleted after the
        generation call whether it succeeded or not.

        Raises:
            ValidationError: If no documents are given
            UploadError: If any upload fails
            GenerationError: If every attempt fails
        """
        if not documents:
            raise ValidationError("no files provided for processing", field="documents")

        results = await asyncio.gather(
            *[self._upload(doc) for doc in documents],
            return_exceptions=True
        )

        uploaded = [r for r in results if isinstance(r, FileReferencePart)]
        failures = [(doc, r) for doc, r in zip(documents, results) if isinstance(r, BaseException)]

        if failures:
            await self._delete_uploaded(uploaded)
            doc, error = failures[0]
            if not isinstance(error, Exception):
                raise error
            if isinstance(error, UploadError):
                raise error
            raise UploadError(
                f"failed to upload file {doc.name}",
                document_name=doc.name,
                original_error=error
            ) from error

        if not uploaded:
            raise UploadError("no files were successfully uploaded")

        logger.info("generating from uploaded files", documents=len(uploaded), total_bytes=total_size(documents))
        parts: List[Part] = [TextPart(QUIZ_PROMPT), *uploaded]
        try:
            return await self.generate(parts, mode=RoutingMode.REMOTE.value)
        finally:
            await self._delete_uploaded(uploaded)

    async def generate(self, parts: Sequence[Part], mode: str = "inline") -> Tuple[QuizDraft, TokenUsage]:
        """Send parts to the model until a usable quiz comes back

        Retries on model errors, empty responses, missing or invalid JSON and
        zero-question payloads. Never returns a partial result.

        Returns:
            Tuple of (draft capped to max_questions, usage summed over all attempts)

        Raises:
            GenerationError: After the last attempt fails; carries the usage
        """
        policy = self.retry_policy
        usage = TokenUsage()
        last_error: Optional[GenerationError] = None
        request_parts = list(parts)

        for attempt in range(policy.max_attempts):
            attempt_num = attempt + 1
            if attempt > 0:
                await asyncio.sleep(policy.delay_seconds)
                question_cap = policy.question_cap_for(attempt)
                request_parts = replace_prompt(parts, limited_prompt(question_cap))

            sampling = self.sampling.with_max_tokens(policy.max_tokens_for(attempt))
            start_time = time.time()

            try:
                response = await self._call_model(request_parts, sampling, attempt_num)
            except LLMError as e:
                usage = usage + e.usage
                self._record_call(mode, start_time, e.usage, success=False)
                last_error = e
                logger.warning(
                    "generation attempt failed",
                    attempt=attempt_num,
                    max_attempts=policy.max_attempts,
                    error=str(e),
                    error_type=type(e).__name__
                )
                continue

            # Billed even if the output turns out to be unusable
            usage = usage + response.usage

            try:
                draft = self._parse_response(response, attempt_num)
            except ResponseParseError as e:
                self._record_call(mode, start_time, response.usage, success=False)
                last_error = e
                logger.warning(
                    "generation attempt unusable",
                    attempt=attempt_num,
                    max_attempts=policy.max_attempts,
                    error=str(e),
                    finish_reason=response.finish_reason
                )
                continue

            self._record_call(mode, start_time, response.usage, success=True)
            limited = draft.limited(policy.max_questions)
            logger.info(
                "quiz generated",
                attempt=attempt_num,
                questions=len(limited.questions),
                returned_questions=len(draft.questions),
                input_tokens=usage.prompt_tokens,
                output_tokens=usage.candidate_tokens
            )
            return limited, usage

        raise GenerationError(
            f"failed to generate quiz after {policy.max_attempts} attempts: {last_error}",
            usage=usage,
            context={'mode': mode}
        ) from last_error

    async def _call_model(self, parts: Sequence[Part], sampling: SamplingConfig, attempt_num: int) -> ModelResponse:
        try:
            return await asyncio.wait_for(
                self.model.generate_content(parts, sampling),
                timeout=self.request_timeout
            )
        except asyncio.TimeoutError as e:
            raise LLMError(
                f"failed to generate content (attempt {attempt_num}): timed out after {self.request_timeout}s",
                model=self.model.model_name,
                original_error=e
            ) from e
        except LLMError as e:
            raise LLMError(
                f"failed to generate content (attempt {attempt_num}): {e}",
                model=self.model.model_name,
                usage=e.usage,
                original_error=e.original_error or e
            ) from e

    def _parse_response(self, response: ModelResponse, attempt_num: int) -> QuizDraft:
        """Turn raw model output into a non-empty QuizDraft

        Raises:
            ResponseParseError: For every way the output can be unusable
        """
        text = response.text
        if not text.strip():
            raise ResponseParseError(f"no content generated (attempt {attempt_num})", attempt=attempt_num)

        json_text = extract_json(text)
        if not json_text.strip():
            raise ResponseParseError(f"no JSON content found in response (attempt {attempt_num})", attempt=attempt_num)

        try:
            draft = decode_quiz(json_text)
        except ValueError as e:
            logger.warning(
                "invalid json from model",
                attempt=attempt_num,
                response_preview=json_text[:1000],
                response_length=len(json_text)
            )
            raise ResponseParseError(
                f"failed to parse JSON response (attempt {attempt_num}): {e}",
                attempt=attempt_num
            ) from e

        if not draft.questions:
            raise ResponseParseError(f"quiz response contained no questions (attempt {attempt_num})", attempt=attempt_num)

        return draft

    async def _upload(self, document: SourceDocument) -> FileReferencePart:
        try:
            size = os.path.getsize(document.path)
        except OSError as e:
            raise DocumentError(f"failed to access file {document.name}", document_name=document.name, original_error=e) from e
        if size == 0:
            raise DocumentError(f"file {document.name} is empty", document_name=document.name)

        return await self.model.upload_file(document)

    async def _delete_uploaded(self, references: Sequence[FileReferencePart]) -> None:
        """Delete uploaded files; failures are logged, never raised"""
        for reference in references:
            try:
                await self.model.delete_file(reference)
            except Exception as e:
                logger.warning(
                    "failed to delete uploaded file",
                    file_name=reference.name,
                    uri=reference.uri,
                    error=str(e),
                    error_type=type(e).__name__
                )

    def _record_call(self, mode: str, start_time: float, usage: TokenUsage, success: bool) -> None:
        model_name = self.model.model_name
        self.metrics.record_llm_call(
            model=model_name,
            prompt_type=mode,
            duration_seconds=time.time() - start_time,
            input_tokens=usage.prompt_tokens,
            output_tokens=usage.candidate_tokens,
            cost_dollars=estimate_cost(model_name, usage),
            success=success
        )
