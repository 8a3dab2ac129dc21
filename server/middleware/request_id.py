"""
Request ID middleware

Tags every request with a correlation ID, echoed back in X-Request-ID and
bound into structlog contextvars so every log line of the request carries it.
"""

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach a request ID to the request, its logs and its response"""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            # Clear after the request so context does not leak into the next one
            structlog.contextvars.clear_contextvars()


def get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")
