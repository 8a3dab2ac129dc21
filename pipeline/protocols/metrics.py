"""Metrics Protocol - Interface for metrics collection without concrete dependency

This protocol enables dependency injection of metrics throughout the pipeline,
allowing components to be tested and run without the server module.
"""

from typing import Protocol, Any, ContextManager
from contextlib import contextmanager


class LabeledCounter(Protocol):
    def labels(self, **kwargs: Any) -> "LabeledCounter": ...
    def inc(self, amount: float = 1) -> None: ...


class LabeledHistogram(Protocol):
    def labels(self, **kwargs: Any) -> "LabeledHistogram": ...
    def observe(self, value: float) -> None: ...
    def time(self) -> ContextManager: ...


class MetricsCollector(Protocol):
    """Unified metrics interface for all pipeline components

    Used by:
    - generation/client.py - LLM API metrics
    - generation/orchestrator.py - Pipeline run metrics
    - server/services/quiz_generation.py - Error tracking
    """
    generation_duration: LabeledHistogram

    def record_error(self, component: str, error: Exception) -> None: ...

    def record_llm_call(
        self,
        model: str,
        prompt_type: str,
        duration_seconds: float,
        input_tokens: int,
        output_tokens: int,
        cost_dollars: float,
        success: bool = True
    ) -> None: ...

    def record_generation(self, mode: str, status: str, question_count: int = 0) -> None: ...


class _NullHistogram:
    def labels(self, **kwargs: Any) -> "_NullHistogram":
        return self

    def observe(self, value: float) -> None:
        pass

    @contextmanager
    def time(self):
        yield


class NullMetrics:
    """No-op metrics for testing or standalone use"""

    def __init__(self):
        self.generation_duration = _NullHistogram()

    def record_error(self, component: str, error: Exception) -> None:
        pass

    def record_llm_call(
        self,
        model: str,
        prompt_type: str,
        duration_seconds: float,
        input_tokens: int,
        output_tokens: int,
        cost_dollars: float,
        success: bool = True
    ) -> None:
        pass

    def record_generation(self, mode: str, status: str, question_count: int = 0) -> None:
        pass
