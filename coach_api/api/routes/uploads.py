"""
Upload intake endpoint.

Clients announce a file (session audio, attachments) before sending it.
The announcement is validated here: schema first, then the size and
type rules from configuration. Accepted uploads get an id the client
uses for the transfer itself.

Routes under this prefix get their own id headers
(X-Upload-Correlation-ID, X-Upload-Request-ID) and a longer slow-request
threshold.
"""

import logging
from typing import Annotated, Literal, Optional
from uuid import UUID, uuid4

from fastapi import APIRouter, Depends, status
from pydantic import Field

from ...core.errors import APIError
from ...core.validation import check_file_rules
from ..dependencies import RequestContextDep, SettingsDep
from ..schemas import CamelModel
from ..validation import validate_body

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class UploadIntake(CamelModel):
    """Announcement of a file about to be uploaded."""
    filename: str = Field(min_length=1, max_length=255)
    mime_type: str = Field(min_length=3, max_length=127, pattern=r"^[\w.+-]+/[\w.+*-]+$")
    size_bytes: int = Field(gt=0)
    purpose: Literal["session_audio", "attachment"] = "attachment"
    session_id: Optional[UUID] = None


class UploadAccepted(CamelModel):
    """Response for an accepted upload."""
    upload_id: UUID
    filename: str
    mime_type: str
    size_bytes: int
    purpose: str
    status: str = "pending"


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=UploadAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Announce an upload",
    description="Validates file metadata against the size and MIME type limits.",
)
async def create_upload(
    intake: Annotated[UploadIntake, Depends(validate_body(UploadIntake))],
    settings: SettingsDep,
    context: RequestContextDep,
) -> UploadAccepted:
    """
    Accept or reject an upload announcement.

    Every rule violation is reported at once (both size and type, if
    both are wrong).
    """
    violations = check_file_rules(
        size_bytes=intake.size_bytes,
        mime_type=intake.mime_type,
        max_size_bytes=settings.max_upload_size_bytes,
        allowed_mime_types=settings.allowed_upload_mime_types_list,
    )
    if violations:
        logger.info(
            "Upload rejected",
            extra={
                "upload_filename": intake.filename,
                "mime_type": intake.mime_type,
                "size_bytes": intake.size_bytes,
                **context.log_fields(),
            }
        )
        raise APIError.validation("Upload rejected", violations)

    accepted = UploadAccepted(
        upload_id=uuid4(),
        filename=intake.filename,
        mime_type=intake.mime_type,
        size_bytes=intake.size_bytes,
        purpose=intake.purpose,
    )

    logger.info(
        "Upload accepted",
        extra={
            "upload_id": str(accepted.upload_id),
            "size_bytes": intake.size_bytes,
            **context.log_fields(),
        }
    )

    return accepted
