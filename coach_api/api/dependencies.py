"""
FastAPI dependency injection.

Dependencies provide configuration, storage and per-request context to
route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Dependencies can be overridden in tests via app.dependency_overrides
- The order of pipeline steps is explicit in route signatures

The resource-loading dependencies attach whatever they resolve to
request.state.resource; the access-reason gate then inspects it.
"""

import logging
from typing import Annotated, Any, Optional
from uuid import UUID

from fastapi import Depends, Request
from pydantic import BaseModel

from ..config.settings import Settings, get_settings
from ..core.access import (
    ACCESS_REASON_HEADER,
    ACCESS_REASON_PARAM,
    enforce_access_reason,
    requires_access_reason,
)
from ..core.context import RequestContext, get_scope_context, set_scope_context
from ..core.errors import APIError
from ..core.notes.models import CoachNote
from ..infrastructure.memory.notes import InMemoryNoteRepository, NoteNotFoundError
from .schemas import CamelModel
from .validation import read_json_body, validate_request

logger = logging.getLogger(__name__)

# Shared repository instance (notes persist across requests)
_note_repository: Optional[InMemoryNoteRepository] = None


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

def get_note_repository() -> InMemoryNoteRepository:
    """
    Provide the note repository.

    There is one in-memory repository per process, created on first use,
    so notes created by one request are visible to the next.
    """
    global _note_repository

    if _note_repository is None:
        _note_repository = InMemoryNoteRepository()
        logger.info("Created shared in-memory note repository")

    return _note_repository


# ---------------------------------------------------------------------------
# Request Context
# ---------------------------------------------------------------------------

def get_request_context(request: Request) -> RequestContext:
    """The request's current context, as built by the middleware."""
    return get_scope_context(request.scope)


# ---------------------------------------------------------------------------
# Resource Loading
# ---------------------------------------------------------------------------

class NoteParams(BaseModel):
    """Path parameters of single-note routes."""
    note_id: UUID


class NoteReadQuery(CamelModel):
    """Query parameters of the single-note read route."""
    include_audit_trail: bool = False


validate_note_read = validate_request(params=NoteParams, query=NoteReadQuery)


def load_note(
    request: Request,
    validated: Annotated[dict[str, BaseModel], Depends(validate_note_read)],
    repository: Annotated[InMemoryNoteRepository, Depends(get_note_repository)],
) -> CoachNote:
    """
    Resolve the note named in the path and attach it to the request.

    Raises 404 if the note doesn't exist.
    """
    note_id = validated["params"].note_id
    try:
        note = repository.get(note_id)
    except NoteNotFoundError:
        logger.info("Note not found", extra={"note_id": str(note_id)})
        raise APIError.not_found("Coach note")

    request.state.resource = note
    return note


# ---------------------------------------------------------------------------
# Access Reason
# ---------------------------------------------------------------------------

async def require_access_reason(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> Optional[str]:
    """
    Gate for privacy-sensitive resources.

    Must run after the dependency that attaches request.state.resource.
    Passes through (returns None) when no resource is attached or it
    isn't flagged. Otherwise requires a reason from the X-Access-Reason
    header, the reasonForAccess query parameter or the reasonForAccess
    body field, in that order, and records it on the request context
    for audit.
    """
    resource: Any = getattr(request.state, "resource", None)
    if not requires_access_reason(resource):
        return None

    body_reason = None
    body, _ = await read_json_body(request)
    if isinstance(body, dict):
        body_reason = body.get(ACCESS_REASON_PARAM)

    reason = enforce_access_reason(
        resource,
        header=request.headers.get(ACCESS_REASON_HEADER),
        query=request.query_params.get(ACCESS_REASON_PARAM),
        body=body_reason,
        min_length=settings.access_reason_min_length,
    )

    context = get_scope_context(request.scope).evolve(access_reason=reason)
    set_scope_context(request.scope, context)

    logger.info(
        "Access reason accepted",
        extra={"reason_length": len(reason), **context.log_fields()}
    )
    return reason


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
SettingsDep = Annotated[Settings, Depends(get_settings)]
NoteRepositoryDep = Annotated[InMemoryNoteRepository, Depends(get_note_repository)]
RequestContextDep = Annotated[RequestContext, Depends(get_request_context)]
LoadedNote = Annotated[CoachNote, Depends(load_note)]
AccessReason = Annotated[Optional[str], Depends(require_access_reason)]
