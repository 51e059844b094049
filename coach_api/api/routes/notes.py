"""
Coach note API endpoints.

Coach notes are the platform's privacy-sensitive resource. A note's
author can flag it as requiring a reason for access (or as containing
sensitive content); reading such a note then needs a justification,
which is recorded in the note's audit trail together with the request's
correlation and request ids.
"""

import logging
from datetime import datetime
from typing import Annotated, Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from pydantic import Field

from ...core.notes.models import (
    AuditAction,
    AuditEntry,
    CoachNote,
    NoteAccessLevel,
    PrivacySettings,
)
from ..dependencies import (
    AccessReason,
    LoadedNote,
    NoteRepositoryDep,
    RequestContextDep,
)
from ..schemas import CamelModel
from ..validation import validate_body, validate_query

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class PrivacySettingsModel(CamelModel):
    """Privacy flags as sent and returned by the API."""
    access_level: NoteAccessLevel = NoteAccessLevel.PRIVATE
    allow_export: bool = False
    allow_sharing: bool = False
    require_reason_for_access: bool = False
    sensitive_content: bool = False
    supervision_required: bool = False
    retention_period_days: Optional[int] = Field(None, ge=1, le=3650)

    def to_domain(self) -> PrivacySettings:
        return PrivacySettings(
            access_level=self.access_level,
            allow_export=self.allow_export,
            allow_sharing=self.allow_sharing,
            require_reason_for_access=self.require_reason_for_access,
            sensitive_content=self.sensitive_content,
            supervision_required=self.supervision_required,
            retention_period_days=self.retention_period_days,
        )

    @classmethod
    def from_domain(cls, privacy: PrivacySettings) -> "PrivacySettingsModel":
        return cls(
            access_level=privacy.access_level,
            allow_export=privacy.allow_export,
            allow_sharing=privacy.allow_sharing,
            require_reason_for_access=privacy.require_reason_for_access,
            sensitive_content=privacy.sensitive_content,
            supervision_required=privacy.supervision_required,
            retention_period_days=privacy.retention_period_days,
        )


class CoachNoteCreate(CamelModel):
    """Request to create a coach note."""
    session_id: UUID = Field(description="Coaching session the note belongs to")
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    text_content: str = Field(min_length=1, max_length=10000)
    tags: list[Annotated[str, Field(min_length=1, max_length=50)]] = Field(
        default_factory=list,
        max_length=20,
    )
    privacy_settings: PrivacySettingsModel = Field(default_factory=PrivacySettingsModel)


class NoteListQuery(CamelModel):
    """Query parameters for listing notes."""
    limit: int = Field(10, ge=1, le=100)
    page: int = Field(1, ge=1)
    sort_by: Literal["createdAt", "title"] = "createdAt"
    sort_order: Literal["asc", "desc"] = "asc"


class AuditEntryModel(CamelModel):
    """One recorded access."""
    action: AuditAction
    timestamp: datetime
    reason: Optional[str] = None
    correlation_id: Optional[str] = None
    request_id: Optional[str] = None


class CoachNoteResponse(CamelModel):
    """A coach note as returned by the API."""
    id: UUID
    session_id: UUID
    title: Optional[str] = None
    text_content: Optional[str] = None
    tags: list[str]
    privacy_settings: PrivacySettingsModel
    created_at: datetime
    access_count: int
    audit_trail: Optional[list[AuditEntryModel]] = None

    @classmethod
    def from_domain(
        cls,
        note: CoachNote,
        include_content: bool = True,
        include_audit_trail: bool = False,
    ) -> "CoachNoteResponse":
        audit_trail = None
        if include_audit_trail:
            audit_trail = [
                AuditEntryModel(
                    action=entry.action,
                    timestamp=entry.timestamp,
                    reason=entry.reason,
                    correlation_id=entry.correlation_id,
                    request_id=entry.request_id,
                )
                for entry in note.audit_trail
            ]
        return cls(
            id=note.id,
            session_id=note.session_id,
            title=note.title,
            text_content=note.text_content if include_content else None,
            tags=list(note.tags),
            privacy_settings=PrivacySettingsModel.from_domain(note.privacy),
            created_at=note.created_at,
            access_count=note.access_count,
            audit_trail=audit_trail,
        )


class CoachNoteListResponse(CamelModel):
    """One page of notes."""
    notes: list[CoachNoteResponse]
    total: int
    page: int
    limit: int


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=CoachNoteResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    summary="Create a coach note",
)
async def create_note(
    payload: Annotated[CoachNoteCreate, Depends(validate_body(CoachNoteCreate))],
    repository: NoteRepositoryDep,
    context: RequestContextDep,
) -> CoachNoteResponse:
    """
    Create a note with optional privacy settings.

    The body is validated as a whole: every invalid field is reported
    in one 400 response.
    """
    note = CoachNote(
        session_id=payload.session_id,
        text_content=payload.text_content,
        title=payload.title,
        tags=list(payload.tags),
        privacy=payload.privacy_settings.to_domain(),
    )
    note.record_access(AuditEntry(
        action=AuditAction.CREATE,
        correlation_id=context.correlation_id,
        request_id=context.request_id,
    ))
    repository.save(note)

    logger.info(
        "Coach note created",
        extra={
            "note_id": str(note.id),
            "sensitive": note.is_sensitive,
            **context.log_fields(),
        }
    )

    return CoachNoteResponse.from_domain(note)


@router.get(
    "",
    response_model=CoachNoteListResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
    summary="List coach notes",
)
async def list_notes(
    query: Annotated[NoteListQuery, Depends(validate_query(NoteListQuery))],
    repository: NoteRepositoryDep,
) -> CoachNoteListResponse:
    """
    List notes, one page at a time.

    Listing never exposes audit trails, and sensitive notes are listed
    without their content: opening one needs a reason.
    """
    notes, total = repository.list_page(
        limit=query.limit,
        page=query.page,
        sort_by=query.sort_by,
        sort_order=query.sort_order,
    )
    return CoachNoteListResponse(
        notes=[
            CoachNoteResponse.from_domain(note, include_content=not note.is_sensitive)
            for note in notes
        ],
        total=total,
        page=query.page,
        limit=query.limit,
    )


@router.get(
    "/{note_id}",
    response_model=CoachNoteResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
    summary="Read a coach note",
    description=(
        "Notes flagged requireReasonForAccess or sensitiveContent need a reason "
        "of at least 5 characters in the X-Access-Reason header or the "
        "reasonForAccess query parameter or body field."
    ),
)
async def read_note(
    request: Request,
    note: LoadedNote,
    reason: AccessReason,
    context: RequestContextDep,
    repository: NoteRepositoryDep,
) -> CoachNoteResponse:
    """
    Read one note and record the access in its audit trail.

    Dependency order matters here: the note is loaded (and attached to
    the request) before the access-reason gate inspects it, and the
    context is read after the gate has added the reason.
    """
    note.record_access(AuditEntry(
        action=AuditAction.READ,
        reason=reason,
        correlation_id=context.correlation_id,
        request_id=context.request_id,
    ))
    repository.save(note)

    logger.info(
        "Coach note read",
        extra={
            "note_id": str(note.id),
            "with_reason": reason is not None,
            **context.log_fields(),
        }
    )

    include_audit_trail = request.state.validated["query"].include_audit_trail
    return CoachNoteResponse.from_domain(note, include_audit_trail=include_audit_trail)
