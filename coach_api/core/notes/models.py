"""
Domain models for coach notes.

A coach note is a coach's private write-up of a session. Notes can carry
privacy settings that make them sensitive: opening one then requires a
stated reason, and every access lands in the note's audit trail.

These models have no dependencies on FastAPI, storage or transport.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NoteAccessLevel(Enum):
    """Who besides the author may see a note."""
    PRIVATE = "private"
    SUPERVISOR = "supervisor"
    TEAM = "team"
    ORGANIZATION = "organization"


class AuditAction(Enum):
    READ = "read"
    CREATE = "create"


@dataclass(frozen=True)
class PrivacySettings:
    """
    Privacy flags for a note.

    require_reason_for_access and sensitive_content both close the
    access-reason gate; the other flags are carried for clients.
    """
    access_level: NoteAccessLevel = NoteAccessLevel.PRIVATE
    allow_export: bool = False
    allow_sharing: bool = False
    require_reason_for_access: bool = False
    sensitive_content: bool = False
    supervision_required: bool = False
    retention_period_days: Optional[int] = None


@dataclass(frozen=True)
class AuditEntry:
    """One recorded access to a note."""
    action: AuditAction
    timestamp: datetime = field(default_factory=_utcnow)
    reason: Optional[str] = None
    correlation_id: Optional[str] = None
    request_id: Optional[str] = None


@dataclass
class CoachNote:
    """
    Aggregate root for a coach note.

    The audit trail only grows; entries are never edited or removed.
    """
    session_id: UUID
    text_content: str
    id: UUID = field(default_factory=uuid4)
    title: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    privacy: PrivacySettings = field(default_factory=PrivacySettings)
    audit_trail: list[AuditEntry] = field(default_factory=list)
    created_at: datetime = field(default_factory=_utcnow)
    access_count: int = 0

    def __post_init__(self) -> None:
        if not self.text_content.strip():
            raise ValueError("Note content cannot be empty")

    @property
    def is_sensitive(self) -> bool:
        return self.privacy.require_reason_for_access or self.privacy.sensitive_content

    def record_access(self, entry: AuditEntry) -> None:
        """Append an audit entry and count reads."""
        self.audit_trail.append(entry)
        if entry.action is AuditAction.READ:
            self.access_count += 1
