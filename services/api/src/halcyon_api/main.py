"""FastAPI application factory and main entry point."""

import asyncio
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from halcyon_shared.config import get_settings
from halcyon_shared.db import get_db
from halcyon_shared.logging import configure_logging, get_logger
from halcyon_shared.ratelimit import get_rate_limiter
from halcyon_shared.telemetry import configure_telemetry

from .dependencies.providers import get_replicate_client
from .middleware import CORRELATION_ID_HEADER, CorrelationIdMiddleware
from .models.base import ErrorDetail, ErrorResponse
from .routes import batch, credits, csrf, generation, health, predictions, production

logger = get_logger(__name__)

DB_INIT_MAX_RETRIES = 30
DB_INIT_RETRY_DELAY_SECONDS = 2

ROUTERS = [
    batch.router,
    credits.router,
    csrf.router,
    generation.router,
    predictions.router,
    production.router,
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    settings = get_settings()

    logger.info(
        "Starting application",
        service=settings.service_name,
        version=settings.service_version,
        environment=settings.environment,
    )
    configure_telemetry(settings.service_name, settings.service_version, settings.environment)

    app.state.db_initialized = False
    for attempt in range(DB_INIT_MAX_RETRIES):
        try:
            db = get_db()
            await db.connect()
            await db.create_tables()
            app.state.db_initialized = True
            logger.info("Database connection established and tables created")
            break
        except Exception as e:
            if attempt < DB_INIT_MAX_RETRIES - 1:
                logger.warning(
                    "Database initialization failed, retrying",
                    attempt=attempt + 1,
                    max_retries=DB_INIT_MAX_RETRIES,
                    error=str(e),
                )
                await asyncio.sleep(DB_INIT_RETRY_DELAY_SECONDS)
            else:
                # Keep serving; requests that need the ledger fail individually.
                logger.error("Failed to initialize database", attempts=DB_INIT_MAX_RETRIES, error=str(e))

    limiter = get_rate_limiter()
    limiter.start_sweeper(settings.rate_limit.sweep_interval_seconds)

    yield

    logger.info("Shutting down application")
    await limiter.stop_sweeper()
    await get_replicate_client().close()
    await get_db().close()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    configure_logging(
        settings.logging,
        service_name=settings.service_name,
        service_version=settings.service_version,
    )

    app = FastAPI(
        title="HALCYON Cinema API",
        description="Credits, rate limiting and AI media production for HALCYON Cinema",
        version=settings.service_version,
        docs_url="/docs" if settings.api.debug else None,
        redoc_url="/redoc" if settings.api.debug else None,
        openapi_url="/openapi.json" if settings.api.debug else None,
        lifespan=lifespan,
    )

    # First added = last executed
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[CORRELATION_ID_HEADER, "Retry-After", "X-RateLimit-Remaining"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    register_exception_handlers(app)

    app.include_router(health.router, tags=["Health"])
    for router in ROUTERS:
        app.include_router(router)

    return app


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)


def _correlation_headers(correlation_id: str | None, extra: Any = None) -> dict[str, str]:
    headers = dict(extra or {})
    if correlation_id:
        headers[CORRELATION_ID_HEADER] = correlation_id
    return headers


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Handle HTTP exceptions.

    A dict ``detail`` supplies the message under ``message`` and any other
    keys (``creditsRemaining``, ``missingConfig``, ...) are copied into the
    error object.
    """
    correlation_id = getattr(request.state, "correlation_id", None)

    if isinstance(exc.detail, dict):
        extra = dict(exc.detail)
        message = str(extra.pop("message", ""))
    else:
        extra = None
        message = str(exc.detail)

    body = ErrorResponse.create(exc.status_code, message, correlation_id, extra=extra)
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(mode="json"),
        headers=_correlation_headers(correlation_id, getattr(exc, "headers", None)),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Handle request validation errors."""
    correlation_id = getattr(request.state, "correlation_id", None)

    details = [
        ErrorDetail(
            field=".".join(str(loc) for loc in error["loc"]),
            message=error["msg"],
            type=error["type"],
        )
        for error in exc.errors()
    ]
    body = ErrorResponse.create(422, "Validation Error", correlation_id, details=details)
    return JSONResponse(
        status_code=422,
        content=body.model_dump(mode="json"),
        headers=_correlation_headers(correlation_id),
    )


async def general_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle unexpected exceptions."""
    correlation_id = getattr(request.state, "correlation_id", None)

    logger.exception(
        "Unhandled exception",
        correlation_id=correlation_id,
        path=request.url.path,
        method=request.method,
    )

    body = ErrorResponse.create(500, "Internal Server Error", correlation_id)
    return JSONResponse(
        status_code=500,
        content=body.model_dump(mode="json"),
        headers=_correlation_headers(correlation_id),
    )


# Create the app instance
app = create_app()
