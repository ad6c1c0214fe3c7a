"""Repositories package."""

from hathi.repositories.base import BaseRepository
from hathi.repositories.contexts import (
    ContextRepository,
    MergePlan,
    partition_merge_links,
)
from hathi.repositories.filters import FilterEngine, build_filter_predicates
from hathi.repositories.notes import NoteRepository

__all__ = [
    "BaseRepository",
    "ContextRepository",
    "FilterEngine",
    "MergePlan",
    "NoteRepository",
    "build_filter_predicates",
    "partition_merge_links",
]
