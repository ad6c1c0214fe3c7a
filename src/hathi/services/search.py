"""
Semantic Search Service

In-process cosine similarity search over caller-supplied embeddings.

Design choices:
    - The store never computes embeddings: the query vector must come from
      the caller's embedding provider.
    - Full scan of every stored embedding. Acceptable for a personal note
      store; there is no vector index.
    - A malformed or wrong-length stored vector scores 0 instead of
      aborting the scan.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hathi.core.exceptions import (
    DimensionMismatchError,
    EmbeddingRequiredError,
    ValidationFailedError,
)
from hathi.models import Note
from hathi.repositories.base import BaseRepository
from hathi.repositories.codecs import decode_embedding, note_to_read
from hathi.repositories.contexts import resolve_context_names
from hathi.schemas.notes import (
    SearchResultNote,
    SemanticSearchParams,
    SemanticSearchResult,
)

logger = logging.getLogger(__name__)

_EMBEDDING_SCAN_SQL = text("SELECT id, embedding FROM notes WHERE embedding IS NOT NULL")


def calculate_cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two equal-length vectors.

    Returns:
        Similarity in [-1, 1]; 0.0 when either vector has zero magnitude.

    Raises:
        DimensionMismatchError: If the vectors differ in length.
    """
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))

    dot = math.fsum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(math.fsum(x * x for x in a))
    norm_b = math.sqrt(math.fsum(y * y for y in b))

    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def _score(query: Sequence[float], raw: str | None, note_id: str) -> float:
    vector = decode_embedding(raw)
    if vector is None:
        return 0.0
    try:
        return calculate_cosine_similarity(query, vector)
    except DimensionMismatchError:
        logger.warning(
            "Embedding of note %s has %d dims, query has %d; scoring 0",
            note_id,
            len(vector),
            len(query),
        )
        return 0.0


class SemanticSearchEngine(BaseRepository[Note]):
    """
    Ranks notes by cosine similarity to a precomputed query embedding.

    Usage::

        engine = SemanticSearchEngine(get_session_factory())
        result = await engine.execute_semantic_search(query_vector, 0.7, 10)
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        super().__init__(Note, session_factory)

    async def execute_semantic_search(
        self,
        query_embedding: Sequence[float],
        similarity_threshold: float,
        limit: int,
        query: str = "",
    ) -> SemanticSearchResult:
        """
        Score every stored embedding and return the best matches.

        Args:
            query_embedding: Vector from the caller's embedding provider.
            similarity_threshold: Minimum similarity (inclusive).
            limit: Maximum number of notes returned.
            query: Original query text, echoed in ``applied_filters``.

        Returns:
            Hydrated notes ordered by similarity descending. Empty (not an
            error) when nothing is embedded or nothing clears the threshold.
        """
        applied = {
            "query": query,
            "similarityThreshold": similarity_threshold,
            "limit": limit,
        }

        async with self._operation("execute semantic search") as session:
            rows = (await session.execute(_EMBEDDING_SCAN_SQL)).all()

            scored = [
                (row.id, _score(query_embedding, row.embedding, row.id)) for row in rows
            ]
            hits = sorted(
                (hit for hit in scored if hit[1] >= similarity_threshold),
                key=lambda hit: hit[1],
                reverse=True,
            )[:limit]
            logger.debug(
                "Scored %d embedding(s), %d above threshold %.2f",
                len(rows),
                len(hits),
                similarity_threshold,
            )

            if not hits:
                return SemanticSearchResult(
                    notes=[], total_count=0, applied_filters=applied
                )

            similarities = dict(hits)
            notes = (
                await session.scalars(
                    select(Note).where(Note.id.in_(list(similarities)))
                )
            ).all()
            names = await resolve_context_names(session, [n.id for n in notes])

        results = [
            note_to_read(
                note,
                names.get(note.id, []),
                model=SearchResultNote,
                similarity=similarities[note.id],
            )
            for note in notes
        ]
        # The batched fetch does not preserve score order
        results.sort(key=lambda n: n.similarity or 0.0, reverse=True)

        return SemanticSearchResult(
            notes=results,
            total_count=len(results),
            applied_filters=applied,
        )

    async def search_notes_by_similarity(
        self,
        params: SemanticSearchParams,
    ) -> SemanticSearchResult:
        """
        Validate a text-only search request, then refuse it.

        The store cannot turn query text into a vector; callers must embed
        the query themselves and call ``execute_semantic_search``.

        Raises:
            ValidationFailedError: If query, threshold or limit are out of bounds.
            EmbeddingRequiredError: Always, once the parameters are valid.
        """
        if not params.query or not params.query.strip():
            raise ValidationFailedError(
                "Query parameter is required and must be a non-empty string", "query"
            )
        if not 0.0 <= params.similarity_threshold <= 1.0:
            raise ValidationFailedError(
                "Similarity threshold must be between 0.0 and 1.0",
                "similarity_threshold",
            )
        if not 1 <= params.limit <= 1000:
            raise ValidationFailedError("Limit must be between 1 and 1000", "limit")

        raise EmbeddingRequiredError()

