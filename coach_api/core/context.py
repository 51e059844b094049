"""
Per-request context.

Every request gets a RequestContext that travels with it through the
pipeline: the id middleware fills in identifiers, the timing middleware
records the start time, and the access-reason gate adds the caller's
justification for audit.

The context is immutable. Stages derive a new copy with evolve() and
rebind it, so nothing one request does can leak into another. The
current copy lives in two places:
- request.state (the ASGI scope), for handlers and dependencies
- a ContextVar, for log enrichment deep inside helper code

ContextVars are task-local under asyncio, so two requests in flight at
the same time each see their own identifiers.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, replace
from typing import Any, Iterator, MutableMapping, Optional

# Key under scope["state"] (request.state.request_context)
CONTEXT_STATE_KEY = "request_context"


@dataclass(frozen=True)
class RequestContext:
    """Identifiers and metadata for a single request."""
    correlation_id: Optional[str] = None
    request_id: Optional[str] = None
    access_reason: Optional[str] = None
    started_at: Optional[float] = None  # time.perf_counter() seconds

    def evolve(self, **changes: Any) -> "RequestContext":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def log_fields(self) -> dict[str, str]:
        """Identifiers to merge into a log call's extra={...}."""
        fields = {}
        if self.correlation_id:
            fields["correlation_id"] = self.correlation_id
        if self.request_id:
            fields["request_id"] = self.request_id
        return fields


_EMPTY_CONTEXT = RequestContext()

_current_context: ContextVar[RequestContext] = ContextVar(
    "request_context", default=_EMPTY_CONTEXT
)


def current_context() -> RequestContext:
    """Context of the request being handled by the current task."""
    return _current_context.get()


@contextmanager
def bind_context(context: RequestContext) -> Iterator[RequestContext]:
    """Make context current for the duration of the block."""
    token = _current_context.set(context)
    try:
        yield context
    finally:
        _current_context.reset(token)


def get_scope_context(scope: MutableMapping[str, Any]) -> RequestContext:
    """Read the context stored on an ASGI scope (empty if none yet)."""
    state = scope.get("state") or {}
    return state.get(CONTEXT_STATE_KEY, _EMPTY_CONTEXT)


def set_scope_context(scope: MutableMapping[str, Any], context: RequestContext) -> None:
    """Store context on an ASGI scope so request.state sees it."""
    scope.setdefault("state", {})[CONTEXT_STATE_KEY] = context
