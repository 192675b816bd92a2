"""QuizForge Engine - FastAPI application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.middleware.http import register_http_middleware
from api.middleware.rate_limit import limiter
from api.routes import api_router
from api.utils import connection_error
from core.retry import ConnectionRetryError
from infrastructure.config import get_settings
from infrastructure.database import close_db, get_db_context, init_db
from infrastructure.logging_config import setup_logging
from services.post_publisher import post_publisher
from services.post_queue import post_queue
from services.quiz_batch import quiz_batch_service
from services.social_scheduler import scheduler_service
from services.task_queue import task_queue

settings = get_settings()
logger = logging.getLogger(__name__)

# Finished background tasks are pruned every half hour once an hour old
TASK_PRUNE_EVERY_SECONDS = 1800
TASK_RETENTION_SECONDS = 3600


def init_sentry() -> None:
    if not settings.sentry_dsn:
        return
    if not settings.sentry_dsn.startswith("https://"):
        logger.warning("Ignoring malformed SENTRY_DSN (%s...)", settings.sentry_dsn[:30])
        return

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.logging import LoggingIntegration
    from sentry_sdk.integrations.redis import RedisIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        integrations=[
            FastApiIntegration(transaction_style="url"),
            SqlalchemyIntegration(),
            RedisIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
        ],
        traces_sample_rate=0.1 if settings.is_production else 1.0,
        send_default_pii=False,
    )
    logger.info("Sentry enabled for %s", settings.environment)


# Before the app exists, so import-time failures are reported too
init_sentry()


async def _prune_task_queue() -> None:
    while True:
        await asyncio.sleep(TASK_PRUNE_EVERY_SECONDS)
        removed = task_queue.cleanup_old(max_age_seconds=TASK_RETENTION_SECONDS)
        if removed:
            logger.info("Pruned %d finished background tasks", removed)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(
        json_output=settings.is_production and not settings.debug,
        level="DEBUG" if settings.debug else "INFO",
    )
    logger.info("Starting %s v%s (%s)", settings.app_name, settings.app_version, settings.environment)

    settings.validate_production_secrets()
    if settings.is_development:
        await init_db()

    # Batches and posts a dead process left PROCESSING would otherwise never finish
    await quiz_batch_service.recover_stale_batches()
    async with get_db_context() as db:
        await post_publisher.recover_stale_posts(db)
    await post_queue.connect()
    if settings.scheduler_enabled:
        scheduler_service.start()
    pruner = asyncio.create_task(_prune_task_queue(), name="task-queue-pruner")

    yield

    logger.info("Shutting down")
    pruner.cancel()
    try:
        await pruner
    except asyncio.CancelledError:
        pass
    await scheduler_service.stop()
    await task_queue.shutdown()
    await post_queue.disconnect()
    await close_db()


app = FastAPI(
    title=settings.app_name,
    description="Multi-tenant quiz generation and social publishing platform",
    version=settings.app_version,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan,
)

# Route decorators read app.state.limiter; the middleware applies the global default
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

register_http_middleware(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Requested-With", "X-Request-ID"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"detail": "Validation failed", "errors": errors})


@app.exception_handler(ConnectionRetryError)
async def connection_retry_handler(request: Request, exc: ConnectionRetryError):
    logger.error("Database unavailable after %d attempts: %s", exc.attempts, exc.last_error)
    error = connection_error(exc)
    return JSONResponse(status_code=error.status_code, content={"detail": error.detail})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    if settings.is_production:
        # Driver errors can carry connection strings
        logger.error("Unhandled %s: %s", type(exc).__name__, str(exc)[:200])
    else:
        logger.error("Unhandled exception: %s", exc, exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.include_router(api_router, prefix="/api/v1")


@app.get("/")
async def root():
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs" if settings.is_development else "disabled",
        "health": "/api/v1/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        workers=1 if settings.is_development else settings.workers,
    )
