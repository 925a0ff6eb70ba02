"""
FlowBit Relay - Main FastAPI Application Entry Point
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from flowbit.api.v1.router import api_router
from flowbit.config import settings
from flowbit.core.exceptions import ExternalCallFailure, FlowbitError
from flowbit.observability.logging import setup_logging
from flowbit.observability.middleware import LoggingMiddleware
from flowbit.services.engines import EngineRegistry
from flowbit.services.scheduler import CronScheduler
from flowbit.services.stream_relay import ExecutionEventBroker
from flowbit.services.trigger_relay import TriggerRelay

logger = logging.getLogger(__name__)


def _ensure_sqlite_directory(database_url: str) -> None:
    if not database_url.startswith("sqlite:///") or ":memory:" in database_url:
        return
    data_dir = Path(database_url.replace("sqlite:///", "")).parent
    if not data_dir.exists():
        logger.info(f"Creating data directory: {data_dir}")
        data_dir.mkdir(parents=True, exist_ok=True)


def _init_database(app: FastAPI) -> None:
    """Use the preset session factory (tests) or the configured database."""
    if getattr(app.state, "session_factory", None) is not None:
        return

    from flowbit.database.base import Base
    from flowbit.database.session import SessionLocal, engine
    import flowbit.database.models  # noqa: F401  (register tables)

    _ensure_sqlite_directory(settings.DATABASE_URL)
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")
    app.state.session_factory = SessionLocal


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
    - Logging
    - Database (data directory, tables)
    - Live stream broker, engine registry, cron scheduler

    Shutdown:
    - Cancel cron jobs, close the engine HTTP client
    """
    setup_logging(settings.LOG_LEVEL, settings.LOG_DIR or None)
    logger.info(f"🚀 Starting {settings.PROJECT_NAME} {settings.VERSION} ({settings.ENVIRONMENT})")

    try:
        _init_database(app)
    except Exception as e:
        logger.error(f"❌ Failed to initialize database: {e}", exc_info=True)
        raise

    if getattr(app.state, "broker", None) is None:
        app.state.broker = ExecutionEventBroker(settings.STREAM_MAX_CONNECTIONS_PER_EXECUTION)
    if getattr(app.state, "engines", None) is None:
        app.state.engines = EngineRegistry.from_settings(settings)
    if getattr(app.state, "stream_poll_interval", None) is None:
        app.state.stream_poll_interval = settings.STREAM_POLL_INTERVAL

    app.state.scheduler = None
    if settings.SCHEDULER_ENABLED:
        scheduler = CronScheduler(app.state.session_factory)
        relay = TriggerRelay(
            session_factory=app.state.session_factory,
            engines=app.state.engines,
            broker=app.state.broker,
            scheduler=scheduler,
        )

        async def fire_cron_trigger(workflow_id: str, engine: str, payload):
            return await relay.trigger(workflow_id, engine, "cron", payload)

        scheduler.trigger_callback = fire_cron_trigger
        try:
            await scheduler.initialize()
            app.state.scheduler = scheduler
        except FlowbitError as e:
            logger.error(f"❌ Failed to initialize cron scheduler: {e.message}", exc_info=True)

    logger.info(f"✅ {settings.PROJECT_NAME} startup complete")
    try:
        yield
    finally:
        logger.info(f"🛑 Shutting down {settings.PROJECT_NAME}...")
        if app.state.scheduler is not None:
            await app.state.scheduler.shutdown()
        await app.state.engines.aclose()
        logger.info(f"✅ {settings.PROJECT_NAME} shutdown complete")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description="Execution tracking and live streaming relay for Langflow and n8n",
        docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )

    # Must be added before CORS for streaming to work
    app.add_middleware(LoggingMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
    )

    @app.exception_handler(FlowbitError)
    async def flowbit_error_handler(request: Request, exc: FlowbitError):
        body = {"success": False, "error": exc.message}
        if isinstance(exc, ExternalCallFailure) and exc.execution_id:
            body["executionId"] = exc.execution_id
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=body)

    app.include_router(api_router, prefix=settings.API_PREFIX)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "version": settings.VERSION}

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "docs": "/docs" if settings.ENVIRONMENT != "production" else None,
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "flowbit.main:app",
        host="0.0.0.0",
        port=settings.BACKEND_PORT,
        reload=settings.ENVIRONMENT == "development",
        log_level="info",
    )
