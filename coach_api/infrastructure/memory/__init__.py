from .notes import InMemoryNoteRepository, NoteNotFoundError

__all__ = ["InMemoryNoteRepository", "NoteNotFoundError"]
