"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order (middleware order matters here)
- Can create multiple app instances if needed (e.g., for testing)

For local development:
    uvicorn coach_api.main:app --reload

For production:
    gunicorn coach_api.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .api.errors import error_response
from .api.middleware import (
    API_CORRELATION_ID_HEADER,
    API_REQUEST_ID_HEADER,
    CORRELATION_ID_HEADER,
    REQUEST_ID_HEADER,
    RESPONSE_TIME_HEADER,
    UPLOAD_CORRELATION_ID_HEADER,
    UPLOAD_REQUEST_ID_HEADER,
    AllowListCORSMiddleware,
    CorrelationIdMiddleware,
    RequestIdMiddleware,
    ResponseTimingMiddleware,
    UnhandledErrorMiddleware,
)
from .api.routes import health, notes, uploads
from .config.log_setup import configure_logging
from .config.settings import Settings, get_settings
from .core.access import ACCESS_REASON_HEADER
from .core.context import get_scope_context
from .core.errors import APIError
from .core.validation import format_violations

logger = logging.getLogger(__name__)

CORS_ALLOWED_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]

ID_HEADERS = [
    CORRELATION_ID_HEADER,
    API_CORRELATION_ID_HEADER,
    UPLOAD_CORRELATION_ID_HEADER,
    REQUEST_ID_HEADER,
    API_REQUEST_ID_HEADER,
    UPLOAD_REQUEST_ID_HEADER,
]

CORS_ALLOWED_HEADERS = ["Content-Type", "Authorization", ACCESS_REASON_HEADER, *ID_HEADERS]

CORS_EXPOSED_HEADERS = [*ID_HEADERS, RESPONSE_TIME_HEADER]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Logs startup/shutdown and reports configuration problems early.
    """
    settings: Settings = app.state.settings

    logger.info(
        "Coaching Platform API starting",
        extra={
            "version": settings.api_version,
            "cors_origins": settings.cors_origins_list,
        }
    )

    problems = settings.validate_required_fields()
    if problems:
        logger.error(
            "Invalid configuration",
            extra={"invalid_fields": problems}
        )

    yield

    logger.info("Coaching Platform API shutting down")


def add_request_pipeline(app: FastAPI, settings: Settings) -> None:
    """
    Install the request pipeline middleware.

    Starlette wraps middleware in reverse order of registration: the last
    one added runs first. Resulting order per request:
    correlation id -> request id -> timing -> CORS -> unhandled errors -> routes.

    Unexpected exceptions are rendered innermost so their 500 still
    carries the ids and the timing header.
    """
    app.add_middleware(UnhandledErrorMiddleware)

    app.add_middleware(
        AllowListCORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=CORS_ALLOWED_METHODS,
        allow_headers=CORS_ALLOWED_HEADERS,
        expose_headers=CORS_EXPOSED_HEADERS,
        max_age=settings.cors_max_age,
    )

    app.add_middleware(
        ResponseTimingMiddleware,
        threshold_ms=settings.slow_request_threshold_ms,
        path_thresholds=[
            (settings.upload_path_prefix, settings.upload_slow_request_threshold_ms),
        ],
        log_slow_requests=settings.slow_request_logging_enabled,
    )

    app.add_middleware(
        RequestIdMiddleware,
        header_name=REQUEST_ID_HEADER,
        path_headers=[
            (settings.api_path_prefix, API_REQUEST_ID_HEADER),
            (settings.upload_path_prefix, UPLOAD_REQUEST_ID_HEADER),
        ],
    )

    app.add_middleware(
        CorrelationIdMiddleware,
        header_name=CORRELATION_ID_HEADER,
        path_headers=[
            (settings.api_path_prefix, API_CORRELATION_ID_HEADER),
            (settings.upload_path_prefix, UPLOAD_CORRELATION_ID_HEADER),
        ],
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Map errors to the standard JSON error body."""

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        context = get_scope_context(request.scope)
        logger.warning(
            "Request failed",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error_code": exc.code.value,
                "status_code": exc.status_code,
                "violation_count": len(exc.violations),
                **context.log_fields(),
            }
        )
        return error_response(exc, context)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        """FastAPI's own parameter validation, rendered like ours."""
        error = APIError.validation("Validation failed", format_violations(exc.errors()))
        return error_response(error, get_scope_context(request.scope))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Routing errors (404, 405) in the same body shape."""
        context = get_scope_context(request.scope)
        body = {
            "error": HTTPStatus(exc.status_code).phrase,
            "message": exc.detail,
            **context.log_fields(),
        }
        return JSONResponse(status_code=exc.status_code, content=body, headers=exc.headers)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory.

    Pass settings explicitly to build an app with a non-default
    configuration (tests do this); otherwise settings come from the
    environment.
    """
    explicit_settings = settings is not None
    settings = settings or get_settings()

    configure_logging(settings.log_level)

    app = FastAPI(
        title=settings.api_title,
        version=__version__,
        description="""
        Backend API for the coaching platform.

        ## Request Tracing

        Every response carries `X-Correlation-ID` and `X-Request-ID`
        (`X-API-*` under `/api`, `X-Upload-*` under `/api/v1/uploads`).
        Send your own values to have them echoed back.

        ## Sensitive Notes

        Notes flagged `requireReasonForAccess` or `sensitiveContent` can only
        be read with a reason of at least 5 characters in the
        `X-Access-Reason` header or the `reasonForAccess` parameter.

        ## Errors

        Validation failures return 400 with every invalid field listed in
        `details`.
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings

    if explicit_settings:
        app.dependency_overrides[get_settings] = lambda: settings

    add_request_pipeline(app, settings)
    register_exception_handlers(app)

    # Include routers
    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        notes.router,
        prefix=f"{settings.api_path_prefix}/v1/coach-notes",
        tags=["Coach Notes"],
    )

    app.include_router(
        uploads.router,
        prefix=settings.upload_path_prefix,
        tags=["Uploads"],
    )

    # Root endpoint
    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint - points at the docs."""
        return {
            "message": settings.api_title,
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": __version__,
        }
    )

    return app


# Create the application instance
# This is what uvicorn/gunicorn will import
app = create_app()


# For debugging/development
if __name__ == "__main__":
    import uvicorn

    # Get settings to determine log level
    settings = get_settings()

    uvicorn.run(
        "coach_api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=settings.log_level.lower(),
    )
