"""
QuizBuilder API Server

FastAPI application wiring the generation pipeline to its collaborators:
PostgreSQL storage, the Gemini model, YouTube transcripts and the webhook
notifier. All of them live on app.state and are reached via server.dependencies.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from config import config, get_logger
from database.db_postgres import Database
from generation.client import QuizGenerationClient
from generation.model import GeminiModel
from generation.orchestrator import PipelineSettings, QuizPipeline
from server.auth import init_jwt, is_initialized
from server.metrics import metrics
from server.middleware.logging import log_requests
from server.middleware.metrics import metrics_middleware
from server.middleware.request_id import RequestIDMiddleware
from server.notifications import WebhookNotifier, create_notifier
from server.routes import attempts, monitoring, quizzes
from vendors.session_manager_async import AsyncSessionManager
from vendors.youtube_transcript import YoutubeTranscriptFetcher

logger = get_logger(__name__).bind(component="server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create shared collaborators on startup, release them on shutdown"""
    if config.JWT_SECRET and not is_initialized():
        init_jwt(config.JWT_SECRET)
        logger.info("JWT authentication initialized")

    db = await Database.create()
    if config.DEBUG:
        await db.init_schema()

    model = GeminiModel()
    client = QuizGenerationClient(model, metrics=metrics)
    app.state.db = db
    app.state.metrics = metrics
    app.state.pipeline = QuizPipeline(client, PipelineSettings.from_config(), metrics=metrics)
    app.state.transcripts = YoutubeTranscriptFetcher()
    app.state.notifier = create_notifier()
    logger.info("server started", model=model.model_name)

    yield

    notifier = app.state.notifier
    if isinstance(notifier, WebhookNotifier):
        await notifier.drain()
    await AsyncSessionManager.close_all()

    try:
        await db.close()
    except Exception as e:
        # Don't crash on shutdown - log and continue
        logger.error("error closing connection pool", error=str(e), exc_info=True)


async def http_error_handler(request: Request, exc: HTTPException):
    """Uniform {"error": ...} body for framework-raised HTTP errors"""
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies and parameters answer 400 with the first problem"""
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return JSONResponse(status_code=400, content={"error": f"Invalid request body: {location} {first.get('msg')}"})


def create_app(use_lifespan: bool = True) -> FastAPI:
    """Build the application

    Args:
        use_lifespan: Tests pass False and populate app.state or dependency overrides themselves
    """
    app = FastAPI(title="QuizBuilder API", lifespan=lifespan if use_lifespan else None)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.ALLOWED_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=True,
    )

    # Request ID middleware (must be early in stack for tracing)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # Last registered runs first: metrics wraps logging
    @app.middleware("http")
    async def log_requests_middleware(request, call_next):
        return await log_requests(request, call_next)

    @app.middleware("http")
    async def metrics_middleware_wrapper(request, call_next):
        return await metrics_middleware(request, call_next)

    app.include_router(monitoring.router)  # Health and Prometheus
    app.include_router(quizzes.router)     # Quiz generation, retrieval and deletion
    app.include_router(attempts.router)    # Quiz attempts

    return app


app = create_app()


if __name__ == "__main__":
    import sys

    import uvicorn

    if not config.get_api_key():
        logger.warning("no Gemini API key configured, the server cannot start")
    if not config.JWT_SECRET:
        logger.warning("QUIZBUILDER_JWT_SECRET not set, authenticated endpoints will reject every request")

    logger.info("configuration", config_summary=config.summary())

    if len(sys.argv) > 1 and sys.argv[1] == "--init-db":
        import asyncio

        async def init_db():
            db = await Database.create()
            try:
                await db.init_schema()
                logger.info("database initialized successfully")
            finally:
                await db.close()

        asyncio.run(init_db())
        sys.exit(0)

    uvicorn.run(
        app,
        host=config.API_HOST,
        port=config.API_PORT,
        access_log=False,  # Custom middleware logs requests
    )
