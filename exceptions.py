"""
Custom Exception Hierarchy - Domain-specific error types

Provides clear, typed exceptions for different failure modes across the system.
All custom exceptions inherit from QuizBuilderError for easy catching.

Design Philosophy:
- Exceptions are data: Include context for debugging
- Fail explicitly: Better to raise specific exception than generic
- Catch specifically: Handler can distinguish error types
- Log contextually: Exception attributes enable rich logging
- Generation errors carry the token usage billed before the failure
"""

from typing import Optional, Dict, Any, List

from generation.models import TokenUsage


class QuizBuilderError(Exception):
    """Base exception for all quizbuilder errors

    All custom exceptions inherit from this, enabling:
    - Catch all quizbuilder errors with single except clause
    - Distinguish our errors from library errors
    - Add common attributes (context, original_error)
    - Check if error is retryable via is_retryable property
    """

    # Default: errors are not retryable (permanent failure)
    _retryable: bool = False

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.context = context or {}
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        """Check if this error represents a transient failure that should be retried.

        Returns:
            True for transient failures (model errors, malformed output)
            False for permanent failures (bad input, merge failures)
        """
        return self._retryable

    def __str__(self):
        base_msg = super().__str__()
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{base_msg} (context: {context_str})"
        return base_msg


# ========== Configuration Errors ==========


class ConfigurationError(QuizBuilderError):
    """Configuration or environment errors

    Examples:
    - Missing API key
    - Invalid configuration value
    """

    def __init__(self, message: str, config_key: Optional[str] = None):
        self.config_key = config_key
        context = {}
        if config_key:
            context['config_key'] = config_key
        super().__init__(message, context)


# ========== Input Errors ==========


class ValidationError(QuizBuilderError):
    """Caller input failures

    Examples:
    - No documents or video URLs supplied
    - Upload larger than the configured limit
    """

    def __init__(self, message: str, field: Optional[str] = None, value: Optional[Any] = None):
        self.field = field
        self.value = value

        context = {}
        if field:
            context['field'] = field
        if value is not None:
            context['value'] = str(value)

        super().__init__(message, context)


class DocumentError(QuizBuilderError):
    """Source document could not be read or is empty"""

    def __init__(
        self,
        message: str,
        document_name: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        self.document_name = document_name
        self.original_error = original_error

        context = {}
        if document_name:
            context['document'] = document_name
        if original_error:
            context['original_error'] = str(original_error)

        super().__init__(message, context)


# ========== Generation Errors ==========


class GenerationError(QuizBuilderError):
    """Quiz generation pipeline failures

    Every generation error carries the token usage accumulated before it was
    raised, so callers can bill for attempts that consumed tokens even when
    no quiz came out of them.
    """

    def __init__(
        self,
        message: str,
        usage: Optional[TokenUsage] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        self.usage = usage or TokenUsage()
        super().__init__(message, context)


class LLMError(GenerationError):
    """Generative model call failed

    Examples:
    - Transport error
    - API quota exceeded
    - Request timeout
    """

    _retryable = True

    def __init__(
        self,
        message: str,
        model: Optional[str] = None,
        usage: Optional[TokenUsage] = None,
        original_error: Optional[Exception] = None
    ):
        self.model = model
        self.original_error = original_error

        context = {}
        if model:
            context['model'] = model
        if original_error:
            context['original_error'] = str(original_error)

        super().__init__(message, usage, context)


class ResponseParseError(GenerationError):
    """Model output could not be turned into a usable quiz

    Examples:
    - Empty candidate
    - No JSON found in response text
    - JSON that does not match the quiz schema
    - Payload with zero questions
    """

    _retryable = True

    def __init__(
        self,
        message: str,
        usage: Optional[TokenUsage] = None,
        attempt: Optional[int] = None
    ):
        self.attempt = attempt
        context = {}
        if attempt is not None:
            context['attempt'] = attempt
        super().__init__(message, usage, context)


class UploadError(GenerationError):
    """Uploading a document to the provider's file store failed

    Fatal to the batch: no partial upload set is ever sent to the model.
    """

    def __init__(
        self,
        message: str,
        document_name: Optional[str] = None,
        original_error: Optional[Exception] = None
    ):
        self.document_name = document_name
        self.original_error = original_error

        context = {}
        if document_name:
            context['document'] = document_name
        if original_error:
            context['original_error'] = str(original_error)

        super().__init__(message, None, context)


class BatchMergeError(GenerationError):
    """One or more batches of a multi-batch merge failed

    The merge is all-or-nothing, so no partial quiz is returned.
    """

    def __init__(self, errors: List[str], usage: Optional[TokenUsage] = None):
        self.errors = list(errors)
        message = "failed to process one or more batches: " + "; ".join(self.errors)
        super().__init__(message, usage, {'failed_batches': len(self.errors)})


class NoQuestionsError(GenerationError):
    """Merge finished without any surviving questions"""
    pass


class PipelineTimeoutError(GenerationError):
    """A pipeline or batch deadline expired"""

    def __init__(
        self,
        message: str,
        timeout_seconds: Optional[float] = None,
        usage: Optional[TokenUsage] = None
    ):
        self.timeout_seconds = timeout_seconds
        context = {}
        if timeout_seconds is not None:
            context['timeout_seconds'] = timeout_seconds
        super().__init__(message, usage, context)


# ========== Transcript Errors ==========


class TranscriptError(QuizBuilderError):
    """Video transcript could not be fetched

    Examples:
    - Invalid video URL or ID
    - Video has no captions
    - Caption track download failed
    """

    def __init__(self, message: str, url: Optional[str] = None):
        self.url = url
        context = {}
        if url:
            context['url'] = url
        super().__init__(message, context)


# ========== Persistence Errors ==========


class PersistenceError(QuizBuilderError):
    """Writing a generated quiz to storage failed"""
    pass


class DatabaseConnectionError(PersistenceError):
    """Could not connect to PostgreSQL"""
    pass


class InvalidAnswerCountError(PersistenceError):
    """A question reached persistence without exactly one correct option

    Treated as a systemic generation defect: the whole quiz write is aborted.
    """

    def __init__(self, question_text: str, correct_count: int):
        self.question_text = question_text
        self.correct_count = correct_count
        super().__init__(
            f"invalid number of correct answers ({correct_count}) for question: {question_text}",
            {'correct_count': correct_count}
        )


# ========== Request Errors ==========


class RequestError(QuizBuilderError):
    """A quiz request failed at one of its stages

    Wraps the underlying error with the stage that failed and the HTTP status
    the API should answer with. The response body is {"error": "<stage>: <cause>"}.
    """

    def __init__(self, stage: str, cause: Exception, status_code: int = 500):
        self.stage = stage
        self.cause = cause
        self.status_code = status_code
        super().__init__(f"{stage}: {cause}", {'status_code': status_code})

    def to_body(self) -> Dict[str, str]:
        return {"error": f"{self.stage}: {self.cause}"}
