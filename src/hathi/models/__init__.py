"""Models package - re-exports all models for convenient imports."""

from hathi.models.base import Base, TimestampMixin, utcnow
from hathi.models.note import (
    Context,
    Note,
    NoteContext,
    NoteType,
    TodoStatus,
    new_id,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "utcnow",
    "Context",
    "Note",
    "NoteContext",
    "NoteType",
    "TodoStatus",
    "new_id",
]
