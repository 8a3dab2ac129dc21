"""
Prometheus Metrics Module

Provides instrumentation for quiz generation and the API:
- Pipeline runs and duration
- LLM API calls, tokens and costs
- API requests
- Error tracking

Usage:
    from server.metrics import metrics
    metrics.record_generation("pipeline", "success", question_count=42)
    with metrics.generation_duration.time():
        await pipeline.process_documents(documents)
"""

from prometheus_client import Counter, Histogram, generate_latest, REGISTRY


class QuizBuilderMetrics:
    """Centralized metrics for the generation pipeline and API"""

    def __init__(self, registry=REGISTRY):
        # Pipeline metrics
        self.generation_duration = Histogram(
            'quizbuilder_generation_duration_seconds',
            'Quiz generation duration for a whole request',
            buckets=[5, 10, 30, 60, 120, 300, 600, 1200],
            registry=registry
        )

        self.generations = Counter(
            'quizbuilder_generations_total',
            'Quiz generation runs',
            ['mode', 'status'],
            registry=registry
        )

        self.questions_generated = Counter(
            'quizbuilder_questions_generated_total',
            'Questions in successfully generated quizzes',
            registry=registry
        )

        # LLM metrics
        self.llm_api_calls = Counter(
            'quizbuilder_llm_api_calls_total',
            'Total LLM API calls',
            ['model', 'prompt_type', 'status'],
            registry=registry
        )

        self.llm_api_duration = Histogram(
            'quizbuilder_llm_api_duration_seconds',
            'LLM API call duration',
            ['model', 'prompt_type'],
            buckets=[1, 2, 5, 10, 20, 30, 60, 120, 300],
            registry=registry
        )

        self.llm_api_tokens = Counter(
            'quizbuilder_llm_api_tokens_total',
            'Total tokens consumed',
            ['model', 'token_type'],  # token_type: input/output
            registry=registry
        )

        self.llm_api_cost = Counter(
            'quizbuilder_llm_api_cost_dollars',
            'Total LLM API cost in dollars',
            ['model'],
            registry=registry
        )

        # API metrics
        self.api_requests = Counter(
            'quizbuilder_api_requests_total',
            'Total API requests',
            ['endpoint', 'method', 'status_code'],
            registry=registry
        )

        self.api_request_duration = Histogram(
            'quizbuilder_api_request_duration_seconds',
            'API request duration',
            ['endpoint', 'method'],
            buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0, 120.0, 600.0],
            registry=registry
        )

        # Error metrics
        self.errors = Counter(
            'quizbuilder_errors_total',
            'Total errors by component and type',
            ['component', 'error_type'],
            registry=registry
        )

    def record_llm_call(
        self,
        model: str,
        prompt_type: str,
        duration_seconds: float,
        input_tokens: int,
        output_tokens: int,
        cost_dollars: float,
        success: bool = True
    ):
        """Record a complete LLM API call with all metrics

        Args:
            model: Model name (e.g., "gemini-2.0-flash")
            prompt_type: Request mode (inline/remote)
            duration_seconds: API call duration
            input_tokens: Input tokens consumed
            output_tokens: Output tokens consumed
            cost_dollars: Total cost in dollars
            success: Whether the call produced a usable quiz
        """
        status = 'success' if success else 'error'

        self.llm_api_calls.labels(
            model=model,
            prompt_type=prompt_type,
            status=status
        ).inc()

        self.llm_api_duration.labels(
            model=model,
            prompt_type=prompt_type
        ).observe(duration_seconds)

        # Failed attempts are still billed
        self.llm_api_tokens.labels(model=model, token_type='input').inc(input_tokens)
        self.llm_api_tokens.labels(model=model, token_type='output').inc(output_tokens)
        self.llm_api_cost.labels(model=model).inc(cost_dollars)

    def record_generation(self, mode: str, status: str, question_count: int = 0):
        """Record one pipeline run

        Args:
            mode: Entry point that ran (pipeline)
            status: success/error/timeout
            question_count: Questions in the resulting quiz
        """
        self.generations.labels(mode=mode, status=status).inc()
        if question_count:
            self.questions_generated.inc(question_count)

    def record_error(self, component: str, error: Exception):
        """Record an error

        Args:
            component: Component name (pipeline/transcripts/persistence/api)
            error: Exception instance
        """
        error_type = type(error).__name__
        self.errors.labels(component=component, error_type=error_type).inc()


# Global metrics instance
metrics = QuizBuilderMetrics()


def get_metrics_text() -> str:
    """Get Prometheus metrics in text format

    Returns:
        Metrics text suitable for /metrics endpoint
    """
    return generate_latest(REGISTRY).decode('utf-8')
