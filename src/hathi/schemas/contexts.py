"""
Context Schemas

Pydantic models for context statistics and the rename/merge request.
"""

from datetime import datetime

from pydantic import Field

from hathi.schemas.notes import CamelModel


class ContextStats(CamelModel):
    """Usage statistics for a single context."""

    context: str
    count: int
    last_used: datetime


class PaginatedContextStats(CamelModel):
    """One page of context statistics ordered by recency, then usage."""

    contexts: list[ContextStats]
    total_count: int
    has_more: bool


class RenameContextRequest(CamelModel):
    """Request schema for POST /contexts/rename."""

    old_name: str = Field(..., min_length=1)
    new_name: str = Field(..., min_length=1)
