"""
Prometheus metrics middleware for API requests

Instruments all API requests with:
- Request count (by endpoint, method, status_code)
- Request duration (by endpoint, method)

Usage:
    from server.middleware.metrics import metrics_middleware
    app.middleware("http")(metrics_middleware)
"""

import time

from fastapi import Request

from server.metrics import metrics

KNOWN_ENDPOINTS = {
    "/api/quizzes/generate",
    "/api/quizzes",
    "/api/quizzes/:quiz_id",
    "/api/quizzes/:quiz_id/attempts",
    "/api/attempts",
    "/api/attempts/:attempt_id",
    "/api/attempts/:attempt_id/answers",
    "/api/attempts/:attempt_id/finish",
    "/health",
    "/metrics",
}

ID_PLACEHOLDERS = {"quizzes": ":quiz_id", "attempts": ":attempt_id"}


async def metrics_middleware(request: Request, call_next):
    """Record Prometheus metrics for all API requests"""
    start_time = time.time()
    endpoint = normalize_endpoint(request.url.path)
    method = request.method

    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        metrics.api_requests.labels(
            endpoint=endpoint,
            method=method,
            status_code=status_code
        ).inc()
        metrics.api_request_duration.labels(
            endpoint=endpoint,
            method=method
        ).observe(time.time() - start_time)


def normalize_endpoint(path: str) -> str:
    """Normalize endpoint path for metrics cardinality control

    Converts:
        /api/quizzes/3f2c.../attempts -> /api/quizzes/:quiz_id/attempts
        /api/attempts/9a1b.../finish -> /api/attempts/:attempt_id/finish
        /anything/else -> other
    """
    parts = [part for part in path.split("/") if part]
    # /api/<collection>/<id>/...
    if len(parts) > 2 and parts[0] == "api" and parts[1] in ID_PLACEHOLDERS and parts[2] != "generate":
        parts[2] = ID_PLACEHOLDERS[parts[1]]
    normalized = "/" + "/".join(parts)
    return normalized if normalized in KNOWN_ENDPOINTS else "other"
