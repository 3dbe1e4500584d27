"""FastAPI application factory."""

import asyncio
import secrets
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from commercepix.api.routes import (
    admin,
    assets,
    billing,
    dashboard,
    generate,
    jobs,
    onboarding,
    preferences,
    projects,
    storage,
)
from commercepix.core import timezone  # noqa: F401
from commercepix.core.config import Settings, configure_logging
from commercepix.core.database import setup_db_session
from commercepix.core.timezone import utc_now
from commercepix.services.exceptions import InternalError, RateLimitExceededError, ServiceError
from commercepix.services.storage import ObjectStorage
from commercepix.uow import create_uow_factory
from commercepix.workers.generation_worker import run_generation_worker

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def create_resilient_worker(
    coro_func, session_factory, settings, worker_name: str, shutdown_event: asyncio.Event
):
    """Create a worker with automatic restart on failure.

    Args:
        coro_func: Worker coroutine function (e.g., run_generation_worker)
        session_factory: Database session factory
        settings: Application settings
        worker_name: Human-readable worker name for logging
        shutdown_event: Event to signal graceful shutdown

    Returns:
        Initial task handle (will be auto-recreated on crash)
    """
    RESTART_DELAY = 1

    def on_worker_done(task: asyncio.Task):
        if shutdown_event.is_set():
            logger.info("worker.shutdown_complete", worker=worker_name)
            return

        if task.cancelled():
            logger.info("worker.cancelled", worker=worker_name)
            return

        exc = task.exception()
        if exc:
            logger.error(
                "worker.crashed",
                worker=worker_name,
                error=str(exc),
                error_type=type(exc).__name__,
                retry_in_seconds=RESTART_DELAY,
                exc_info=exc,
            )
        else:
            logger.warning(
                "worker.stopped_unexpectedly",
                worker=worker_name,
                retry_in_seconds=RESTART_DELAY,
            )

        async def restart_worker():
            await asyncio.sleep(RESTART_DELAY)
            if shutdown_event.is_set():
                return

            logger.info("worker.restarting", worker=worker_name)
            new_task = asyncio.create_task(coro_func(session_factory, settings))
            new_task.add_done_callback(on_worker_done)

        asyncio.create_task(restart_worker())

    task = asyncio.create_task(coro_func(session_factory, settings))
    task.add_done_callback(on_worker_done)
    return task


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager.

    - Startup: configure logging, create session/UoW factories and object storage,
      start the generation worker
    - Shutdown: stop the worker
    """
    settings = Settings()  # type: ignore[call-arg]
    configure_logging(settings)

    session_factory = setup_db_session(settings.database_url, settings.db_pool_size)

    app.state.session_factory = session_factory
    app.state.uow_factory = create_uow_factory(session_factory)
    app.state.storage = ObjectStorage.from_settings(settings)

    shutdown_event = asyncio.Event()
    worker_task = None
    if settings.worker_enabled:
        worker_task = create_resilient_worker(
            run_generation_worker, session_factory, settings, "generation", shutdown_event
        )

    logger.info(
        "application.startup",
        db_url=settings.database_url.split("@")[-1],
        worker_enabled=settings.worker_enabled,
    )

    yield

    logger.info("application.shutdown")
    shutdown_event.set()

    if worker_task is not None:
        worker_task.cancel()
        await asyncio.gather(worker_task, return_exceptions=True)


async def handle_service_error(request: Request, exc: ServiceError) -> JSONResponse:
    """Translate service errors into ``{"error": {"type", "message"}}`` responses."""
    body = {"error": {"type": exc.error_type, "message": exc.message}}
    headers = None

    if isinstance(exc, RateLimitExceededError):
        retry_after = max(1, int((exc.reset_at - utc_now()).total_seconds()))
        body["error"]["blocked_by"] = exc.blocked_by
        body["error"]["reset_at"] = exc.reset_at.isoformat() + "Z"
        headers = {
            "Retry-After": str(retry_after),
            "X-RateLimit-Limit": str(exc.limit),
            "X-RateLimit-Remaining": str(exc.remaining),
            "X-RateLimit-Reset": exc.reset_at.isoformat() + "Z",
        }

    if exc.status_code >= 500:
        logger.error(
            "request.failed",
            error_type=exc.error_type,
            error_message=exc.message,
            status_code=exc.status_code,
        )
    else:
        logger.info(
            "request.rejected",
            error_type=exc.error_type,
            error_message=exc.message,
            status_code=exc.status_code,
        )

    return JSONResponse(status_code=exc.status_code, content=body, headers=headers)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "request.unhandled_error",
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    return await handle_service_error(request, InternalError("Internal server error"))


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    settings = Settings()  # type: ignore[call-arg]

    app = FastAPI(
        title="CommercePix Backend API",
        description="AI product photo generation for e-commerce sellers",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            REQUEST_ID_HEADER,
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
        ],
    )

    @app.middleware("http")
    async def bind_request_context(request: Request, call_next):
        """Bind a correlation id (incoming X-Request-ID or a new one) to every log line."""
        request_id = request.headers.get(REQUEST_ID_HEADER) or secrets.token_hex(8)
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id, method=request.method, path=request.url.path
        )

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    app.add_exception_handler(ServiceError, handle_service_error)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(projects.router)
    app.include_router(assets.router)
    app.include_router(generate.router)
    app.include_router(jobs.router)
    app.include_router(storage.router)
    app.include_router(billing.router)
    app.include_router(onboarding.router)
    app.include_router(preferences.router)
    app.include_router(dashboard.router)
    app.include_router(admin.router)

    @app.get("/health")
    async def health_check(response: Response):
        """Health check endpoint with database connectivity test.

        Returns:
            200: {"status": "healthy"} if database connection succeeds
            503: {"status": "unhealthy", "error": {...}} if database connection fails
        """
        try:
            async with app.state.session_factory() as session:
                result = await session.execute(text("SELECT 1"))
                result.scalar()

            logger.debug("health_check.success")
            return {"status": "healthy"}

        except Exception as e:
            logger.error(
                "health_check.failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            return {
                "status": "unhealthy",
                "error": {
                    "type": type(e).__name__,
                    "message": str(e),
                },
            }

    return app


# Create app instance for uvicorn
app = create_app()
