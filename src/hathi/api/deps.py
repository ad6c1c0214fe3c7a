"""
API Dependencies

FastAPI providers for the store components, all bound to the shared
session factory. Tests override these through ``app.dependency_overrides``.
"""

from hathi.core.database import get_session_factory
from hathi.repositories import ContextRepository, FilterEngine, NoteRepository
from hathi.services.search import SemanticSearchEngine


def get_note_repository() -> NoteRepository:
    """FastAPI dependency - returns a NoteRepository instance."""
    return NoteRepository(get_session_factory())


def get_context_repository() -> ContextRepository:
    """FastAPI dependency - returns a ContextRepository instance."""
    return ContextRepository(get_session_factory())


def get_filter_engine() -> FilterEngine:
    """FastAPI dependency - returns a FilterEngine instance."""
    return FilterEngine(get_session_factory())


def get_search_engine() -> SemanticSearchEngine:
    """FastAPI dependency - returns a SemanticSearchEngine instance."""
    return SemanticSearchEngine(get_session_factory())
