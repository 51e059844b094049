"""
Request pipeline middleware.

Every request passes through these stages, outermost first:

1. CorrelationIdMiddleware - reuse or mint X-Correlation-ID
2. RequestIdMiddleware - reuse or mint X-Request-ID
3. ResponseTimingMiddleware - X-Response-Time header, slow request warnings
4. AllowListCORSMiddleware - reject origins outside the allow-list
5. UnhandledErrorMiddleware - turn unexpected exceptions into a 500

They are plain ASGI middleware rather than BaseHTTPMiddleware so that
headers can be added to every response, including error responses
rendered by FastAPI's exception handlers, and so the timing stage can
observe the moment the last body chunk goes out.

Each stage is configured once at startup and holds no per-request state;
everything request-specific lives in the RequestContext on the scope.
"""

import logging
import time
import uuid
from typing import Callable, Optional, Sequence, TypeVar

from starlette.datastructures import Headers, MutableHeaders
from starlette.middleware.cors import CORSMiddleware
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..core.context import bind_context, get_scope_context, set_scope_context
from ..core.errors import APIError
from .errors import error_response

logger = logging.getLogger(__name__)

CORRELATION_ID_HEADER = "X-Correlation-ID"
API_CORRELATION_ID_HEADER = "X-API-Correlation-ID"
UPLOAD_CORRELATION_ID_HEADER = "X-Upload-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"
API_REQUEST_ID_HEADER = "X-API-Request-ID"
UPLOAD_REQUEST_ID_HEADER = "X-Upload-Request-ID"
RESPONSE_TIME_HEADER = "X-Response-Time"

DEFAULT_SLOW_REQUEST_THRESHOLD_MS = 500.0

T = TypeVar("T")


def generate_id() -> str:
    """Default id generator: a random UUID4 string."""
    return str(uuid.uuid4())


def resolve_for_path(path: str, overrides: Sequence[tuple[str, T]], default: T) -> T:
    """
    Pick the value configured for a path.

    overrides is a list of (path_prefix, value); the longest prefix
    matching on segment boundaries wins, and default applies when none match.
    """
    best, best_length = default, -1
    for prefix, value in overrides:
        if _matches_prefix(path, prefix) and len(prefix) > best_length:
            best, best_length = value, len(prefix)
    return best


def _matches_prefix(path: str, prefix: str) -> bool:
    """Prefix match on whole path segments: "/api" matches "/api/x", not "/apiary"."""
    base = prefix.rstrip("/")
    return path == base or path.startswith(base + "/")


def format_duration(elapsed_ms: float) -> str:
    return f"{elapsed_ms:.2f}ms"


# ---------------------------------------------------------------------------
# Correlation / Request IDs
# ---------------------------------------------------------------------------

class IdentifierMiddleware:
    """
    Give every request a stable identifier.

    An inbound header with a non-blank value is reused verbatim, otherwise
    a fresh id is generated. The id is echoed on the response under the
    same header and recorded on the request context.

    Subclasses choose the default header and the context field.
    """

    default_header: str = ""
    context_field: str = ""

    def __init__(
        self,
        app: ASGIApp,
        header_name: Optional[str] = None,
        path_headers: Sequence[tuple[str, str]] = (),
        generator: Callable[[], str] = generate_id,
    ) -> None:
        self.app = app
        self.header_name = header_name or self.default_header
        self.path_headers = list(path_headers)
        self.generator = generator

    def header_for(self, path: str) -> str:
        return resolve_for_path(path, self.path_headers, self.header_name)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        header_name = self.header_for(scope["path"])
        inbound = Headers(scope=scope).get(header_name)
        identifier = inbound if inbound and inbound.strip() else self.generator()

        context = get_scope_context(scope).evolve(**{self.context_field: identifier})
        set_scope_context(scope, context)

        async def send_with_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                headers[header_name] = identifier
            await send(message)

        with bind_context(context):
            await self.app(scope, receive, send_with_id)


class CorrelationIdMiddleware(IdentifierMiddleware):
    """Correlation id: traces a request across services and log lines."""
    default_header = CORRELATION_ID_HEADER
    context_field = "correlation_id"


class RequestIdMiddleware(IdentifierMiddleware):
    """Request id: unique to one inbound request."""
    default_header = REQUEST_ID_HEADER
    context_field = "request_id"


# ---------------------------------------------------------------------------
# Response Timing
# ---------------------------------------------------------------------------

class ResponseTimingMiddleware:
    """
    Measure how long requests take.

    The X-Response-Time header carries the time until the response
    started. Once the final body chunk is sent, the total time is
    compared against the threshold and slow requests are logged.

    Purely observational: nothing here changes the outcome of a request.
    If the client disconnects mid-response the completion never happens
    and nothing is logged.
    """

    def __init__(
        self,
        app: ASGIApp,
        threshold_ms: float = DEFAULT_SLOW_REQUEST_THRESHOLD_MS,
        path_thresholds: Sequence[tuple[str, float]] = (),
        log_slow_requests: bool = True,
        header_name: str = RESPONSE_TIME_HEADER,
    ) -> None:
        self.app = app
        self.threshold_ms = threshold_ms
        self.path_thresholds = list(path_thresholds)
        self.log_slow_requests = log_slow_requests
        self.header_name = header_name

    def threshold_for(self, path: str) -> float:
        return resolve_for_path(path, self.path_thresholds, self.threshold_ms)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        started = time.perf_counter()
        context = get_scope_context(scope).evolve(started_at=started)
        set_scope_context(scope, context)
        status_code: Optional[int] = None

        async def send_with_timing(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
                headers = MutableHeaders(scope=message)
                headers[self.header_name] = format_duration(_elapsed_ms(started))
            await send(message)
            if message["type"] == "http.response.body" and not message.get("more_body", False):
                self._on_complete(scope, started, status_code)

        with bind_context(context):
            await self.app(scope, receive, send_with_timing)

    def _on_complete(self, scope: Scope, started: float, status_code: Optional[int]) -> None:
        elapsed_ms = _elapsed_ms(started)
        threshold_ms = self.threshold_for(scope["path"])

        if not self.log_slow_requests or elapsed_ms <= threshold_ms:
            return

        # Latest context: later stages may have added to it
        context = get_scope_context(scope)
        logger.warning(
            "Slow request",
            extra={
                "method": scope["method"],
                "path": scope["path"],
                "status_code": status_code,
                "duration_ms": round(elapsed_ms, 2),
                "threshold_ms": threshold_ms,
                **context.log_fields(),
            }
        )


def _elapsed_ms(started: float) -> float:
    return max(0.0, (time.perf_counter() - started) * 1000)


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------

class AllowListCORSMiddleware(CORSMiddleware):
    """
    CORS with hard rejection.

    Starlette's CORSMiddleware only withholds CORS headers from unknown
    origins and still runs the request. Here a request carrying an Origin
    outside the allow-list is refused with 403 before it reaches any
    route. Requests without an Origin (same-origin, curl, server to
    server) pass as usual.
    """

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            origin = Headers(scope=scope).get("origin")
            if origin and not self.is_allowed_origin(origin=origin):
                context = get_scope_context(scope)
                logger.warning(
                    "Rejected request from disallowed origin",
                    extra={
                        "origin": origin,
                        "method": scope["method"],
                        "path": scope["path"],
                        **context.log_fields(),
                    }
                )
                error = APIError.forbidden("Origin not allowed by CORS policy")
                response = error_response(error, context)
                await response(scope, receive, send)
                return

        await super().__call__(scope, receive, send)


# ---------------------------------------------------------------------------
# Unhandled Errors
# ---------------------------------------------------------------------------

class UnhandledErrorMiddleware:
    """
    Render unexpected exceptions as a generic 500 inside the pipeline.

    Starlette's own catch-all runs outside every user middleware, so its
    500 would skip the id and timing stages. Installed innermost, this
    stage sends the 500 through them like any other response. The full
    error is logged server side; clients only see a generic message.

    If the response has already started there is nothing left to
    render, and the exception propagates.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_tracking_start(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_tracking_start)
        except Exception as exc:
            context = get_scope_context(scope)
            logger.error(
                "Unhandled exception",
                extra={
                    "path": scope["path"],
                    "method": scope["method"],
                    "error": str(exc),
                    **context.log_fields(),
                },
                exc_info=exc,
            )
            if response_started:
                raise
            response = error_response(APIError.internal(), context)
            await response(scope, receive, send)
