"""
Request/response logging middleware
"""

import time

from fastapi import Request

from config import get_logger

logger = get_logger(__name__).bind(component="api")


async def log_requests(request: Request, call_next):
    """One log line per request with status and duration"""
    # Prometheus scraping is noise
    if request.url.path == "/metrics":
        return await call_next(request)

    start_time = time.time()
    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(
            "request failed",
            method=request.method,
            path=request.url.path,
            duration_seconds=round(time.time() - start_time, 3),
            error=str(e)
        )
        raise

    logger.info(
        "request",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        user_id=getattr(request.state, "user_id", None),
        duration_seconds=round(time.time() - start_time, 3)
    )
    return response
