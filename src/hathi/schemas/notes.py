"""
Note Schemas

Pydantic models for Note store input/output and API request/response validation.
Separates concerns: NoteCreate (input), NoteUpdate (partial), NoteRead (output),
plus the filter / semantic search request and result envelopes.
"""

from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from hathi.models import NoteType, TodoStatus


class CamelModel(BaseModel):
    """Base for envelopes exchanged in camelCase while accepting snake_case too."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NoteCreate(BaseModel):
    """Request schema for POST /notes and NoteRepository.create_note."""

    id: str | None = Field(
        default=None,
        min_length=1,
        max_length=64,
        description="Caller-supplied id; a UUID4 is generated when omitted",
    )
    content: str = Field(..., min_length=1, description="Note content")
    key_context: str | None = Field(default=None, min_length=1)
    contexts: list[str] | None = None
    tags: list[str] | None = None
    note_type: NoteType | None = None
    deadline: datetime | None = None
    status: TodoStatus | None = None


class NoteUpdate(BaseModel):
    """
    Request schema for PATCH /notes/{id}.

    All fields optional to support partial updates. Only fields explicitly
    set are applied (``model_dump(exclude_unset=True)``); an explicit null
    clears a nullable column.

    ``contexts`` replaces the full link set (an empty list clears it).
    ``embedding`` is accepted but never written by a patch; use the
    dedicated embedding upsert. ``embedding_model`` is stored when given a
    value; an explicit null is ignored so a stored vector keeps its tag.
    """

    content: str | None = Field(default=None, min_length=1)
    key_context: str | None = None
    contexts: list[str] | None = None
    tags: list[str] | None = None
    suggested_contexts: list[str] | None = None
    note_type: NoteType | None = None
    deadline: datetime | None = None
    status: TodoStatus | None = None
    embedding: list[float] | None = None
    embedding_model: str | None = None
    embedding_created_at: datetime | None = None


class NoteRead(BaseModel):
    """Fully hydrated note: decoded array fields plus resolved context names."""

    id: str
    content: str
    key_context: str | None = None
    contexts: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    note_type: NoteType | None = None
    suggested_contexts: list[str] | None = None
    deadline: datetime | None = None
    status: TodoStatus | None = None
    embedding_model: str | None = None
    embedding_created_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    persistence_status: Literal["persisted"] = Field(
        default="persisted",
        serialization_alias="persistenceStatus",
    )

    model_config = ConfigDict(populate_by_name=True)


class SearchResultNote(NoteRead):
    """NoteRead with the cosine similarity score (semantic search only)."""

    similarity: float | None = None


class EmbeddingUpsert(BaseModel):
    """Request schema for PUT /notes/{id}/embedding."""

    embedding: list[float] = Field(..., min_length=1)
    embedding_model: str = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Listing / filtering
# ---------------------------------------------------------------------------


class NotesFilter(CamelModel):
    """
    Structured filter for the filter engine.

    All present criteria are conjoined. ``contexts`` requires every listed
    context to be linked; ``hashtags`` matches when any one tag is present.
    """

    created_after: datetime | None = None
    created_before: datetime | None = None
    contexts: list[str] | None = None
    hashtags: list[str] | None = None
    note_type: NoteType | None = None
    deadline_after: datetime | None = None
    deadline_before: datetime | None = None
    deadline_on: date | None = None
    status: TodoStatus | None = None
    limit: int | None = None


class FilterNotesRequest(NotesFilter):
    """Request schema for POST /notes/filter (API-level bounds on limit)."""

    limit: int | None = Field(default=None, ge=1, le=50)


class FilterNotesResult(CamelModel):
    """Page of matching notes, the unpaginated total and the applied filters."""

    notes: list[SearchResultNote]
    total_count: int
    applied_filters: dict[str, Any]


# ---------------------------------------------------------------------------
# Semantic search
# ---------------------------------------------------------------------------


class SemanticSearchParams(CamelModel):
    """Text-only search parameters; the store cannot embed the query itself."""

    query: str
    similarity_threshold: float = 0.7
    limit: int = 10


class SemanticSearchRequest(CamelModel):
    """Request schema for POST /notes/search."""

    query: str = Field(..., min_length=1, description="Search query text")
    embedding: list[float] | None = Field(
        default=None,
        min_length=1,
        description="Precomputed query embedding from the caller's provider",
    )
    similarity_threshold: float | None = Field(default=None, ge=0.3, le=0.9)
    limit: int | None = Field(default=None, ge=1, le=100)


class SemanticSearchResult(CamelModel):
    """Ranked semantic search hits (highest similarity first)."""

    notes: list[SearchResultNote]
    total_count: int
    message: str = ""
    applied_filters: dict[str, Any]


# ---------------------------------------------------------------------------
# Filter options
# ---------------------------------------------------------------------------


class FilterOptions(CamelModel):
    """Distinct values available for building filters in a client."""

    available_contexts: list[str]
    available_hashtags: list[str]
    available_note_types: list[str]
    available_statuses: list[TodoStatus]


# ---------------------------------------------------------------------------
# API envelopes
# ---------------------------------------------------------------------------


class NoteEnvelope(BaseModel):
    """Single-note response body."""

    note: NoteRead


class NoteListResponse(BaseModel):
    """Response body for GET /notes."""

    notes: list[NoteRead]
    count: int


class NoteDeleted(BaseModel):
    """Response body for DELETE /notes/{id}."""

    deleted: bool = True
    id: str
