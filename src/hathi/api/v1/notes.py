"""
Notes API Router

REST endpoints for note CRUD, structured filtering and semantic search.
Every endpoint requires the agent API key (see hathi.core.security).

Endpoints:
    GET    /                 - List notes (keyContext / contexts / method).
    POST   /                 - Create a note.
    GET    /filter-options   - Distinct values for building filters.
    POST   /filter           - Structured filter with pagination.
    POST   /search           - Semantic search with a precomputed embedding.
    GET    /{note_id}        - Fetch one note.
    PATCH  /{note_id}        - Partial update.
    DELETE /{note_id}        - Delete a note.
    PUT    /{note_id}/embedding - Store a precomputed embedding.
"""

from __future__ import annotations

import logging
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from hathi.api.deps import get_filter_engine, get_note_repository, get_search_engine
from hathi.core.config import settings
from hathi.core.security import require_api_key
from hathi.repositories import FilterEngine, NoteRepository
from hathi.schemas.notes import (
    EmbeddingUpsert,
    FilterNotesRequest,
    FilterNotesResult,
    FilterOptions,
    NoteCreate,
    NoteDeleted,
    NoteEnvelope,
    NoteListResponse,
    NoteUpdate,
    SemanticSearchParams,
    SemanticSearchRequest,
    SemanticSearchResult,
)
from hathi.services.search import SemanticSearchEngine

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_api_key)])


@router.get("/", response_model=NoteListResponse)
async def list_notes(
    key_context: str | None = Query(default=None, alias="keyContext"),
    contexts: str | None = Query(default=None, description="Comma-separated names"),
    method: Literal["AND", "OR"] = Query(default="AND"),
    repo: NoteRepository = Depends(get_note_repository),
) -> NoteListResponse:
    """List notes newest first, optionally filtered by key context and linked contexts."""
    names = [c.strip() for c in contexts.split(",") if c.strip()] if contexts else None
    notes = await repo.fetch_notes(key_context=key_context, contexts=names, method=method)
    return NoteListResponse(notes=notes, count=len(notes))


@router.post("/", response_model=NoteEnvelope, status_code=status.HTTP_201_CREATED)
async def create_note(
    note: NoteCreate,
    repo: NoteRepository = Depends(get_note_repository),
) -> NoteEnvelope:
    """
    Create a new note.

    Contexts are created on demand. Embeddings are not generated here;
    store one afterwards through PUT /{note_id}/embedding.
    """
    return NoteEnvelope(note=await repo.create_note(note))


@router.get("/filter-options", response_model=FilterOptions)
async def filter_options(
    repo: NoteRepository = Depends(get_note_repository),
) -> FilterOptions:
    """Distinct contexts, hashtags, note types and statuses."""
    return await repo.get_filter_options()


@router.post("/filter", response_model=FilterNotesResult)
async def filter_notes(
    filters: FilterNotesRequest,
    engine: FilterEngine = Depends(get_filter_engine),
) -> FilterNotesResult:
    """Structured filtering; returns one page plus the total match count."""
    return await engine.filter_notes(filters)


@router.post("/search", response_model=SemanticSearchResult)
async def search_notes(
    search_req: SemanticSearchRequest,
    engine: SemanticSearchEngine = Depends(get_search_engine),
) -> SemanticSearchResult:
    """
    Semantic search using cosine similarity over stored embeddings.

    The request must carry the query's embedding, produced by the same
    provider that embedded the notes. Without it the store answers 422.
    """
    threshold = search_req.similarity_threshold or settings.SEARCH_DEFAULT_THRESHOLD
    limit = search_req.limit or settings.SEARCH_DEFAULT_LIMIT

    if search_req.embedding is None:
        return await engine.search_notes_by_similarity(
            SemanticSearchParams(
                query=search_req.query,
                similarity_threshold=threshold,
                limit=limit,
            )
        )

    return await engine.execute_semantic_search(
        search_req.embedding,
        threshold,
        limit,
        query=search_req.query,
    )


@router.get("/{note_id}", response_model=NoteEnvelope)
async def read_note(
    note_id: str,
    repo: NoteRepository = Depends(get_note_repository),
) -> NoteEnvelope:
    """Retrieve a single note by ID."""
    notes = await repo.fetch_notes_by_ids([note_id])
    if not notes:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Note not found."
        )
    return NoteEnvelope(note=notes[0])


@router.patch("/{note_id}", response_model=NoteEnvelope)
async def update_note(
    note_id: str,
    patch: NoteUpdate,
    repo: NoteRepository = Depends(get_note_repository),
) -> NoteEnvelope:
    """Partially update a note; ``contexts`` replaces the full link set."""
    return NoteEnvelope(note=await repo.update_note(note_id, patch))


@router.delete("/{note_id}", response_model=NoteDeleted)
async def delete_note(
    note_id: str,
    repo: NoteRepository = Depends(get_note_repository),
) -> NoteDeleted:
    """Delete a note together with its links and embedding."""
    return NoteDeleted(id=await repo.delete_note(note_id))


@router.put("/{note_id}/embedding", status_code=status.HTTP_204_NO_CONTENT)
async def put_embedding(
    note_id: str,
    body: EmbeddingUpsert,
    repo: NoteRepository = Depends(get_note_repository),
) -> Response:
    """Store a caller-computed embedding and its model tag."""
    await repo.upsert_embedding(note_id, body.embedding, body.embedding_model)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
