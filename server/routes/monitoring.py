"""
Monitoring and health check API routes
"""

from datetime import datetime
from typing import Any, Dict

import asyncpg
from fastapi import APIRouter, Depends
from fastapi.responses import Response

from config import config, get_logger
from database.db_postgres import Database
from server.dependencies import get_db
from server.metrics import get_metrics_text

logger = get_logger(__name__)


router = APIRouter()


@router.get("/health")
async def health_check(db: Database = Depends(get_db)):
    """Health check endpoint"""
    health_status: Dict[str, Any] = {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "checks": {},
    }

    try:
        await db.ping()
        health_status["checks"]["database"] = {"status": "healthy"}
    except (asyncpg.PostgresError, OSError) as e:
        logger.warning("database health check failed", error=str(e))
        health_status["checks"]["database"] = {"status": "unhealthy", "error": str(e)}
        health_status["status"] = "unhealthy"

    health_status["checks"]["llm"] = {
        "status": "available" if config.get_api_key() else "disabled",
        "model": config.GEMINI_MODEL,
    }

    health_status["checks"]["notifications"] = {
        "status": "enabled" if config.NOTIFY_WEBHOOK_URL else "disabled",
    }

    return health_status


@router.get("/metrics")
async def prometheus_metrics():
    """Prometheus metrics endpoint

    Returns metrics in Prometheus text format for scraping.
    """
    return Response(content=get_metrics_text(), media_type="text/plain")
