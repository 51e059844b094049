"""
In-memory coach note repository.

Stands in for the database during local development and tests. Data
lives for the life of the process; the API layer shares one instance
across requests so notes created by one call are visible to the next.
"""

import logging
import threading
from typing import Literal
from uuid import UUID

from ...core.notes.models import CoachNote

logger = logging.getLogger(__name__)

SortField = Literal["createdAt", "title"]
SortOrder = Literal["asc", "desc"]


class NoteNotFoundError(Exception):
    """Raised when a note doesn't exist."""
    pass


class InMemoryNoteRepository:
    """
    Dict-backed note storage.

    The lock guards the dict against the threadpool that FastAPI runs
    sync dependencies in; individual notes are not locked.
    """

    def __init__(self) -> None:
        self._notes: dict[UUID, CoachNote] = {}
        self._lock = threading.Lock()

    def save(self, note: CoachNote) -> None:
        with self._lock:
            self._notes[note.id] = note
        logger.debug("Saved note", extra={"note_id": str(note.id)})

    def get(self, note_id: UUID) -> CoachNote:
        """
        Fetch a note by id.

        Raises:
            NoteNotFoundError: if no note has this id
        """
        with self._lock:
            note = self._notes.get(note_id)
        if note is None:
            raise NoteNotFoundError(f"Note {note_id} not found")
        return note

    def list_page(
        self,
        limit: int = 10,
        page: int = 1,
        sort_by: SortField = "createdAt",
        sort_order: SortOrder = "asc",
    ) -> tuple[list[CoachNote], int]:
        """
        Return one page of notes and the total count.

        Pages are 1-based.
        """
        with self._lock:
            notes = list(self._notes.values())

        if sort_by == "title":
            notes.sort(key=lambda n: (n.title or "").lower(), reverse=sort_order == "desc")
        else:
            notes.sort(key=lambda n: n.created_at, reverse=sort_order == "desc")

        start = (page - 1) * limit
        return notes[start:start + limit], len(notes)

    def clear(self) -> None:
        with self._lock:
            self._notes.clear()
