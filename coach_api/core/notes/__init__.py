"""Coach note domain: notes, privacy settings and audit entries."""

from .models import (
    AuditAction,
    AuditEntry,
    CoachNote,
    NoteAccessLevel,
    PrivacySettings,
)

__all__ = [
    "AuditAction",
    "AuditEntry",
    "CoachNote",
    "NoteAccessLevel",
    "PrivacySettings",
]
