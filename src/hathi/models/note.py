"""
Note and Context Models

Core entities of the knowledge base: notes, the named contexts they are
filed under, and the junction table linking the two.

Tables:
    notes          - Note rows; array fields and embeddings stored as JSON text.
    contexts       - Unique, case-sensitive context names.
    notes_contexts - (note_id, context_id) links with their own created_at.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from hathi.models.base import Base, TimestampMixin, utcnow


class NoteType(str, Enum):
    """Kinds of note a user or the assistant can author."""

    NOTE = "note"
    TODO = "todo"
    AI_TODO = "ai-todo"
    AI_NOTE = "ai-note"


class TodoStatus(str, Enum):
    """Workflow state of a todo-like note."""

    OPEN = "open"
    IN_PROGRESS = "in-progress"
    DONE = "done"


def new_id() -> str:
    """Fresh opaque identifier for notes and contexts."""
    return str(uuid.uuid4())


class Note(Base, TimestampMixin):
    """
    Note entity.

    Attributes:
        id: Opaque string primary key (UUID4 unless supplied by the caller).
        content: Note body, required.
        key_context: Denormalized "primary" context name.
        tags: JSON-encoded list of hashtags.
        note_type: One of NoteType values, nullable.
        deadline: Optional due timestamp.
        status: One of TodoStatus values, nullable.
        suggested_contexts: JSON-encoded list of context names.
        embedding: JSON-encoded float vector (nullable until supplied).
        embedding_model: Model tag; always set when embedding is set.
        embedding_created_at: When the current embedding was stored.
    """

    __tablename__ = "notes"
    __table_args__ = (Index("ix_notes_created_at", "created_at"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    key_context: Mapped[str | None] = mapped_column(String(255), index=True)
    tags: Mapped[str | None] = mapped_column(Text)
    note_type: Mapped[str | None] = mapped_column(String(20), index=True)
    deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    status: Mapped[str | None] = mapped_column(String(20))
    suggested_contexts: Mapped[str | None] = mapped_column(Text)
    embedding: Mapped[str | None] = mapped_column(Text)
    embedding_model: Mapped[str | None] = mapped_column(String(255))
    embedding_created_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )

    def __repr__(self) -> str:
        return f"<Note(id={self.id!s:.8}, content='{self.content[:20]}...')>"


class Context(Base):
    """Named topic a note can be filed under. Names are unique and case-sensitive."""

    __tablename__ = "contexts"
    __table_args__ = (UniqueConstraint("name", name="uq_contexts_name"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<Context(id={self.id!s:.8}, name='{self.name}')>"


class NoteContext(Base):
    """
    Link between a note and a context.

    The composite primary key allows at most one row per pair. created_at
    drives the "recently used" ordering of contexts and is preserved when
    a link is repointed during a context merge.
    """

    __tablename__ = "notes_contexts"

    note_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("notes.id", ondelete="CASCADE"),
        primary_key=True,
    )
    context_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("contexts.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<NoteContext(note={self.note_id!s:.8}, "
            f"context={self.context_id!s:.8})>"
        )
