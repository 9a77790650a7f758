"""
Game Lab API - Main application entry point.
"""
import time
import uuid
from contextlib import asynccontextmanager
from typing import Dict

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from structlog.contextvars import bind_contextvars, clear_contextvars

from app.api.v1.router import api_router
from app.core.config import settings
from app.core.errors import ErrorResponse
from app.core.exceptions import AppError, ErrorKind, STATUS_BY_KIND
from app.core.logging import get_logger, log_error_details, log_request_details, setup_logging
from app.infrastructure.database.base import Base, engine

setup_logging()
logger = get_logger(__name__)


def init_sentry() -> None:
    """Report unhandled errors to Sentry when a DSN is configured."""
    if not settings.SENTRY_DSN:
        return
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT or settings.ENVIRONMENT,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        integrations=[FastApiIntegration(), SqlalchemyIntegration()],
        send_default_pii=False,
    )


init_sentry()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Starting Game Lab API",
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    # Schema is managed outside the app except in development
    if settings.is_development:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    yield

    logger.info("Shutting down Game Lab API")
    await engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.APP_VERSION,
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json" if not settings.is_production else None,
    docs_url=f"{settings.API_V1_PREFIX}/docs" if not settings.is_production else None,
    redoc_url=None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """
    Bind a request ID to the logging context and log the request with timing.

    The ID is taken from ``X-Request-ID`` when the client sends one and is
    echoed back in the response.
    """
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    clear_contextvars()
    bind_contextvars(request_id=request_id)

    logger.info(
        "request_started",
        **log_request_details(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else None,
        ),
    )
    started = time.perf_counter()
    response = await call_next(request)

    logger.info(
        "request_completed",
        status_code=response.status_code,
        duration_ms=round((time.perf_counter() - started) * 1000, 2),
    )
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Render application errors with the status code of their kind."""
    log = logger.error if exc.kind == ErrorKind.SERVER_ERROR else logger.info
    log(
        "request_failed",
        **log_error_details(exc, kind=exc.kind.value, path=request.url.path, method=request.method),
    )
    response = ErrorResponse.from_exception(exc, expose_details=not settings.is_production)
    headers = {"WWW-Authenticate": "Bearer"} if exc.kind == ErrorKind.UNAUTHORIZED else None
    return JSONResponse(
        status_code=STATUS_BY_KIND[exc.kind],
        content=response.to_dict(),
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Unparseable payloads are reported as invalid input."""
    errors = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
        for error in exc.errors()
    ]
    response = ErrorResponse.validation_error("Invalid request payload", details={"errors": errors})
    return JSONResponse(
        status_code=STATUS_BY_KIND[ErrorKind.INVALID_INPUT],
        content=response.to_dict(),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    """Log unexpected failures; internals are hidden in production."""
    logger.error(
        "Unhandled exception",
        exc_info=exc,
        path=request.url.path,
        method=request.method,
    )
    message = None if settings.is_production else str(exc)
    return JSONResponse(
        status_code=STATUS_BY_KIND[ErrorKind.SERVER_ERROR],
        content=ErrorResponse(ErrorKind.SERVER_ERROR, message=message).to_dict(),
    )


app.include_router(api_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
async def root() -> Dict[str, str]:
    """API name, version and where the docs live."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": f"{settings.API_V1_PREFIX}/docs" if not settings.is_production else "Disabled in production",
    }
