"""
Contexts API Router

Context statistics, autocomplete search, existence checks and the
rename/merge operation.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from hathi.api.deps import get_context_repository
from hathi.core.config import settings
from hathi.core.security import require_api_key
from hathi.repositories import ContextRepository
from hathi.schemas.contexts import (
    ContextStats,
    PaginatedContextStats,
    RenameContextRequest,
)

router = APIRouter(dependencies=[Depends(require_api_key)])


@router.get("/", response_model=PaginatedContextStats)
async def list_context_stats(
    limit: int | None = Query(default=None, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    repo: ContextRepository = Depends(get_context_repository),
) -> PaginatedContextStats:
    """Contexts with usage counts, most recently used first."""
    return await repo.fetch_context_stats_paginated(
        limit=limit or settings.CONTEXT_STATS_PAGE_SIZE,
        offset=offset,
    )


@router.get("/search", response_model=list[ContextStats])
async def search_contexts(
    q: str = Query(..., description="Case-insensitive substring"),
    limit: int = Query(default=20, ge=1, le=100),
    repo: ContextRepository = Depends(get_context_repository),
) -> list[ContextStats]:
    """Autocomplete: contexts whose name contains ``q``, most used first."""
    return await repo.search_contexts(q, limit)


@router.get("/exists")
async def context_exists(
    name: str = Query(..., min_length=1),
    repo: ContextRepository = Depends(get_context_repository),
) -> dict[str, bool]:
    """Whether a context with exactly this name exists."""
    return {"exists": await repo.context_exists(name)}


@router.post("/rename", status_code=status.HTTP_200_OK)
async def rename_context(
    body: RenameContextRequest,
    repo: ContextRepository = Depends(get_context_repository),
) -> dict[str, str]:
    """
    Rename a context; merges into ``newName`` when that context already exists.

    Note content references (``[[Old name]]``) and key contexts are rewritten.
    """
    await repo.rename_context(body.old_name, body.new_name)
    return {"oldName": body.old_name, "newName": body.new_name}
