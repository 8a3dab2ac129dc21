"""
Generative Model Adapter - Gemini behind a narrow interface

The pipeline talks to GenerativeModel only: one request/response round trip,
plus upload/delete for the provider's managed file store. GeminiModel is the
google-genai implementation; tests substitute a scripted fake.
"""

import asyncio
import time
from dataclasses import dataclass, field, replace
from typing import List, Optional, Protocol, Sequence

from google import genai
from google.genai import types

from config import config, get_logger
from exceptions import ConfigurationError, LLMError, UploadError
from generation.documents import SourceDocument
from generation.models import TokenUsage
from generation.parts import BlobPart, FileReferencePart, Part, TextPart, joined_text

logger = get_logger(__name__).bind(component="model")


@dataclass(frozen=True)
class SamplingConfig:
    temperature: float = 0.2
    top_k: int = 40
    top_p: float = 0.95
    max_output_tokens: int = 8192

    def with_max_tokens(self, max_output_tokens: int) -> "SamplingConfig":
        return replace(self, max_output_tokens=max_output_tokens)


@dataclass
class ModelResponse:
    parts: List[Part] = field(default_factory=list)
    usage: TokenUsage = field(default_factory=TokenUsage)
    finish_reason: Optional[str] = None

    @property
    def text(self) -> str:
        return joined_text(self.parts)


class GenerativeModel(Protocol):
    """Generative model collaborator used by the generation client"""

    model_name: str

    async def generate_content(self, parts: Sequence[Part], sampling: SamplingConfig) -> ModelResponse: ...

    async def upload_file(self, document: SourceDocument) -> FileReferencePart: ...

    async def delete_file(self, reference: FileReferencePart) -> None: ...


def estimate_cost(model_name: str, usage: TokenUsage) -> float:
    """Estimate API cost in dollars from token usage

    Pricing per 1M tokens:
    - Flash-Lite: $0.075 input, $0.30 output
    - Flash: $0.10 input, $0.40 output
    """
    if "lite" in model_name.lower():
        input_rate, output_rate = 0.075, 0.30
    else:
        input_rate, output_rate = 0.10, 0.40
    return (usage.prompt_tokens / 1_000_000) * input_rate + (usage.candidate_tokens / 1_000_000) * output_rate


class GeminiModel:
    """google-genai implementation of GenerativeModel (async client)"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        client: Optional[genai.Client] = None,
        file_poll_interval: float = 2.0,
        file_max_wait: float = 300.0,
    ):
        """Initialize the adapter

        Args:
            api_key: Gemini API key (defaults to config)
            model_name: Model to call (defaults to config.GEMINI_MODEL)
            client: Pre-built genai client (tests, shared clients)
            file_poll_interval: Seconds between upload state checks
            file_max_wait: Maximum seconds to wait for an upload to become active
        """
        if client is None:
            api_key = api_key or config.get_api_key()
            if not api_key:
                raise ConfigurationError(
                    "API key required - set GEMINI_API_KEY or LLM_API_KEY environment variable",
                    config_key="GEMINI_API_KEY"
                )
            client = genai.Client(api_key=api_key)

        self.client = client
        self.model_name = model_name or config.GEMINI_MODEL
        self.file_poll_interval = file_poll_interval
        self.file_max_wait = file_max_wait

    async def generate_content(self, parts: Sequence[Part], sampling: SamplingConfig) -> ModelResponse:
        """Single generate_content round trip

        Raises:
            LLMError: On any transport or API failure
        """
        contents = [types.Content(role="user", parts=[self._to_genai_part(part) for part in parts])]
        generate_config = types.GenerateContentConfig(
            temperature=sampling.temperature,
            top_k=sampling.top_k,
            top_p=sampling.top_p,
            max_output_tokens=sampling.max_output_tokens,
            response_mime_type="application/json",
        )

        try:
            response = await self.client.aio.models.generate_content(
                model=self.model_name, contents=contents, config=generate_config
            )
        except Exception as e:
            raise LLMError("gemini request failed", model=self.model_name, original_error=e) from e

        return self._from_genai_response(response)

    async def upload_file(self, document: SourceDocument) -> FileReferencePart:
        """Upload a document to the Gemini file store and wait until it is usable

        Raises:
            UploadError: If the upload fails or the file never becomes active
        """
        try:
            uploaded = await self.client.aio.files.upload(
                file=document.path,
                config=types.UploadFileConfig(
                    mime_type=document.mime_type,
                    display_name=document.name,
                ),
            )
            uploaded = await self._wait_until_active(uploaded)
        except UploadError:
            raise
        except Exception as e:
            raise UploadError(
                f"failed to upload file {document.name}",
                document_name=document.name,
                original_error=e
            ) from e

        logger.info("uploaded file", document=document.name, file_name=uploaded.name, size_bytes=document.size_bytes)
        return FileReferencePart(
            uri=uploaded.uri or "",
            mime_type=uploaded.mime_type or document.mime_type,
            name=uploaded.name or "",
        )

    async def delete_file(self, reference: FileReferencePart) -> None:
        await self.client.aio.files.delete(name=reference.name)
        logger.debug("deleted uploaded file", file_name=reference.name)

    async def _wait_until_active(self, uploaded):
        """Poll the uploaded file until the provider finishes processing it"""
        started = time.monotonic()
        while uploaded.state == types.FileState.PROCESSING:
            if time.monotonic() - started > self.file_max_wait:
                raise UploadError(f"file {uploaded.name} still processing after {self.file_max_wait}s")
            await asyncio.sleep(self.file_poll_interval)
            uploaded = await self.client.aio.files.get(name=uploaded.name)

        if uploaded.state == types.FileState.FAILED:
            raise UploadError(f"file {uploaded.name} failed processing")
        return uploaded

    @staticmethod
    def _to_genai_part(part: Part) -> types.Part:
        if part.kind == "text":
            return types.Part.from_text(text=part.text)
        if part.kind == "blob":
            return types.Part.from_bytes(data=part.data, mime_type=part.mime_type)
        return types.Part.from_uri(file_uri=part.uri, mime_type=part.mime_type)

    @staticmethod
    def _from_genai_response(response) -> ModelResponse:
        parts: List[Part] = []
        finish_reason = None

        candidates = response.candidates or []
        if candidates:
            candidate = candidates[0]
            if candidate.finish_reason:
                finish_reason = str(candidate.finish_reason)
            content_parts = candidate.content.parts if candidate.content and candidate.content.parts else []
            for part in content_parts:
                # Skip thinking blocks
                if part.thought:
                    continue
                if part.text:
                    parts.append(TextPart(part.text))
                elif part.inline_data:
                    parts.append(BlobPart(data=part.inline_data.data or b"", mime_type=part.inline_data.mime_type or ""))
                elif part.file_data:
                    parts.append(FileReferencePart(
                        uri=part.file_data.file_uri or "",
                        mime_type=part.file_data.mime_type or "",
                    ))

        metadata = response.usage_metadata
        usage = TokenUsage()
        if metadata is not None:
            usage = TokenUsage(
                prompt_tokens=metadata.prompt_token_count or 0,
                candidate_tokens=metadata.candidates_token_count or 0,
                total_tokens=metadata.total_token_count or 0,
            )

        return ModelResponse(parts=parts, usage=usage, finish_reason=finish_reason)
