"""
Semantic Search Tests

SemanticSearchEngine against a real SQLite database: thresholding, ranking,
truncation, malformed stored vectors and the text-only entry point.
"""

from __future__ import annotations

import pytest
from sqlalchemy import update

from hathi.core.exceptions import EmbeddingRequiredError, ValidationFailedError
from hathi.models import Note
from hathi.repositories import NoteRepository
from hathi.schemas.notes import NoteCreate, SemanticSearchParams
from hathi.services.search import SemanticSearchEngine


async def embedded_note(notes: NoteRepository, content: str, vector: list[float], **kwargs):
    note = await notes.create_note(NoteCreate(content=content, **kwargs))
    await notes.upsert_embedding(note.id, vector, "test-model")
    return note


@pytest.mark.asyncio
async def test_threshold_keeps_only_close_notes(
    notes: NoteRepository, search_engine: SemanticSearchEngine
) -> None:
    first = await embedded_note(notes, "first", [1.0, 0.0], contexts=["Work"])
    await embedded_note(notes, "second", [0.0, 1.0])

    result = await search_engine.execute_semantic_search([1.0, 0.0], 0.5, 10, query="first")

    assert result.total_count == 1
    (hit,) = result.notes
    assert hit.id == first.id
    assert hit.similarity == pytest.approx(1.0)
    assert hit.contexts == ["Work"]
    assert result.applied_filters == {
        "query": "first",
        "similarityThreshold": 0.5,
        "limit": 10,
    }


@pytest.mark.asyncio
async def test_ranked_and_truncated(
    notes: NoteRepository, search_engine: SemanticSearchEngine
) -> None:
    low = await embedded_note(notes, "low", [0.6, 0.8])
    best = await embedded_note(notes, "best", [1.0, 0.0])
    mid = await embedded_note(notes, "mid", [0.8, 0.6])

    result = await search_engine.execute_semantic_search([1.0, 0.0], 0.0, 10)
    assert [n.id for n in result.notes] == [best.id, mid.id, low.id]
    similarities = [n.similarity for n in result.notes]
    assert similarities == sorted(similarities, reverse=True)

    result = await search_engine.execute_semantic_search([1.0, 0.0], 0.0, 2)
    assert [n.id for n in result.notes] == [best.id, mid.id]


@pytest.mark.asyncio
async def test_threshold_is_inclusive(
    notes: NoteRepository, search_engine: SemanticSearchEngine
) -> None:
    note = await embedded_note(notes, "exact", [1.0, 0.0])
    result = await search_engine.execute_semantic_search([1.0, 0.0], 1.0, 10)
    assert [n.id for n in result.notes] == [note.id]


@pytest.mark.asyncio
async def test_malformed_embeddings_do_not_abort_the_scan(
    notes: NoteRepository, search_engine: SemanticSearchEngine, session_factory
) -> None:
    good = await embedded_note(notes, "good", [1.0, 0.0])
    broken = await embedded_note(notes, "broken", [1.0, 0.0])
    wrong_dim = await embedded_note(notes, "wrong", [1.0, 0.0, 0.0])
    async with session_factory() as session:
        await session.execute(
            update(Note).where(Note.id == broken.id).values(embedding="{not a vector")
        )
        await session.commit()

    result = await search_engine.execute_semantic_search([1.0, 0.0], 0.5, 10)

    ids = [n.id for n in result.notes]
    assert ids == [good.id]
    assert broken.id not in ids
    assert wrong_dim.id not in ids


@pytest.mark.asyncio
async def test_notes_without_embeddings_are_skipped(
    notes: NoteRepository, search_engine: SemanticSearchEngine
) -> None:
    await notes.create_note(NoteCreate(content="plain"))
    result = await search_engine.execute_semantic_search([1.0, 0.0], 0.0, 10)
    assert result.notes == []
    assert result.total_count == 0


@pytest.mark.asyncio
async def test_empty_store(search_engine: SemanticSearchEngine) -> None:
    result = await search_engine.execute_semantic_search([1.0, 0.0], 0.7, 10)
    assert result.notes == []
    assert result.total_count == 0


@pytest.mark.asyncio
async def test_deleted_note_is_not_found(
    notes: NoteRepository, search_engine: SemanticSearchEngine
) -> None:
    note = await embedded_note(notes, "gone", [1.0, 0.0])
    await notes.delete_note(note.id)
    result = await search_engine.execute_semantic_search([1.0, 0.0], 0.0, 10)
    assert result.notes == []


class TestSearchBySimilarity:
    @pytest.mark.asyncio
    async def test_valid_params_require_an_embedding(
        self, search_engine: SemanticSearchEngine
    ) -> None:
        with pytest.raises(EmbeddingRequiredError):
            await search_engine.search_notes_by_similarity(
                SemanticSearchParams(query="what did I read", similarity_threshold=0.7, limit=10)
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("query", "threshold", "limit", "field"),
        [
            ("  ", 0.7, 10, "query"),
            ("q", 1.5, 10, "similarity_threshold"),
            ("q", -0.1, 10, "similarity_threshold"),
            ("q", 0.7, 0, "limit"),
            ("q", 0.7, 1001, "limit"),
        ],
    )
    async def test_bounds_are_validated(
        self,
        search_engine: SemanticSearchEngine,
        query: str,
        threshold: float,
        limit: int,
        field: str,
    ) -> None:
        params = SemanticSearchParams(query=query, similarity_threshold=threshold, limit=limit)
        with pytest.raises(ValidationFailedError) as exc_info:
            await search_engine.search_notes_by_similarity(params)
        assert exc_info.value.field == field
