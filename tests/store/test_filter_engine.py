"""
Filter Engine Tests

FilterEngine.filter_notes against a real SQLite database: conjunction of
criteria, tag any-of, context all-of, deadline day bounds and paging.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from unittest.mock import AsyncMock, patch

import pytest

from hathi.core.config import settings
from hathi.core.exceptions import StoreFailureError
from hathi.models import NoteType, TodoStatus
from hathi.repositories import FilterEngine, NoteRepository
from hathi.schemas.notes import NoteCreate, NotesFilter


@pytest.mark.asyncio
async def test_no_filters_returns_everything_newest_first(
    notes: NoteRepository, filter_engine: FilterEngine
) -> None:
    older = await notes.create_note(NoteCreate(content="1"))
    newer = await notes.create_note(NoteCreate(content="2"))

    result = await filter_engine.filter_notes()

    assert [n.id for n in result.notes] == [newer.id, older.id]
    assert result.total_count == 2
    assert result.applied_filters == {"limit": settings.FILTER_DEFAULT_LIMIT}


@pytest.mark.asyncio
async def test_hashtags_match_any(notes: NoteRepository, filter_engine: FilterEngine) -> None:
    a = await notes.create_note(NoteCreate(content="a", tags=["#a"]))
    b = await notes.create_note(NoteCreate(content="b", tags=["#b", "#z"]))
    await notes.create_note(NoteCreate(content="c", tags=["#c"]))
    await notes.create_note(NoteCreate(content="d", tags=["#ab"]))

    result = await filter_engine.filter_notes(NotesFilter(hashtags=["#a", "#b"]))

    assert {n.id for n in result.notes} == {a.id, b.id}
    assert result.total_count == 2


@pytest.mark.asyncio
async def test_contexts_match_all(notes: NoteRepository, filter_engine: FilterEngine) -> None:
    both = await notes.create_note(NoteCreate(content="1", contexts=["Work", "Urgent"]))
    await notes.create_note(NoteCreate(content="2", contexts=["Work"]))

    result = await filter_engine.filter_notes(NotesFilter(contexts=["Work", "Urgent"]))

    assert [n.id for n in result.notes] == [both.id]
    assert result.notes[0].contexts == ["Urgent", "Work"]


@pytest.mark.asyncio
async def test_criteria_are_conjoined(notes: NoteRepository, filter_engine: FilterEngine) -> None:
    match = await notes.create_note(
        NoteCreate(
            content="1",
            contexts=["Work"],
            note_type=NoteType.TODO,
            status=TodoStatus.OPEN,
        )
    )
    await notes.create_note(
        NoteCreate(content="2", contexts=["Work"], note_type=NoteType.TODO, status=TodoStatus.DONE)
    )
    await notes.create_note(
        NoteCreate(content="3", contexts=["Home"], note_type=NoteType.TODO, status=TodoStatus.OPEN)
    )

    result = await filter_engine.filter_notes(
        NotesFilter(contexts=["Work"], note_type=NoteType.TODO, status=TodoStatus.OPEN)
    )

    assert [n.id for n in result.notes] == [match.id]
    assert result.applied_filters == {
        "contexts": ["Work"],
        "noteType": "todo",
        "status": "open",
        "limit": settings.FILTER_DEFAULT_LIMIT,
    }


@pytest.mark.asyncio
async def test_created_range_is_inclusive(
    notes: NoteRepository, filter_engine: FilterEngine
) -> None:
    await notes.create_note(NoteCreate(content="1"))
    second = await notes.create_note(NoteCreate(content="2"))
    third = await notes.create_note(NoteCreate(content="3"))

    result = await filter_engine.filter_notes(
        NotesFilter(created_after=second.created_at, created_before=third.created_at)
    )

    assert {n.id for n in result.notes} == {second.id, third.id}


@pytest.mark.asyncio
async def test_deadline_on_matches_the_calendar_day(
    notes: NoteRepository, filter_engine: FilterEngine
) -> None:
    morning = await notes.create_note(
        NoteCreate(content="1", deadline=datetime(2026, 3, 1, 0, 0, tzinfo=UTC))
    )
    evening = await notes.create_note(
        NoteCreate(content="2", deadline=datetime(2026, 3, 1, 23, 59, 59, tzinfo=UTC))
    )
    await notes.create_note(
        NoteCreate(content="3", deadline=datetime(2026, 3, 2, 0, 0, tzinfo=UTC))
    )
    await notes.create_note(NoteCreate(content="4"))

    result = await filter_engine.filter_notes(NotesFilter(deadline_on=date(2026, 3, 1)))

    assert {n.id for n in result.notes} == {morning.id, evening.id}


@pytest.mark.asyncio
async def test_deadline_range(notes: NoteRepository, filter_engine: FilterEngine) -> None:
    due = await notes.create_note(
        NoteCreate(content="1", deadline=datetime(2026, 4, 10, 12, 0, tzinfo=UTC))
    )
    await notes.create_note(
        NoteCreate(content="2", deadline=datetime(2026, 5, 10, 12, 0, tzinfo=UTC))
    )

    result = await filter_engine.filter_notes(
        NotesFilter(
            deadline_after=datetime(2026, 4, 1, tzinfo=UTC),
            deadline_before=datetime(2026, 4, 30, tzinfo=UTC),
        )
    )

    assert [n.id for n in result.notes] == [due.id]


@pytest.mark.asyncio
async def test_limit_is_clamped_and_count_ignores_it(
    notes: NoteRepository, filter_engine: FilterEngine, monkeypatch
) -> None:
    monkeypatch.setattr(settings, "FILTER_MAX_LIMIT", 3)
    for i in range(5):
        await notes.create_note(NoteCreate(content=f"note {i}"))

    result = await filter_engine.filter_notes(NotesFilter(limit=10))

    assert len(result.notes) == 3
    assert result.total_count == 5
    assert result.applied_filters["limit"] == 3


@pytest.mark.asyncio
async def test_default_limit(
    notes: NoteRepository, filter_engine: FilterEngine, monkeypatch
) -> None:
    monkeypatch.setattr(settings, "FILTER_DEFAULT_LIMIT", 2)
    for i in range(4):
        await notes.create_note(NoteCreate(content=f"note {i}"))

    result = await filter_engine.filter_notes(NotesFilter())

    assert len(result.notes) == 2
    assert result.total_count == 4


@pytest.mark.asyncio
async def test_no_match(notes: NoteRepository, filter_engine: FilterEngine) -> None:
    await notes.create_note(NoteCreate(content="1", contexts=["Work"]))

    result = await filter_engine.filter_notes(NotesFilter(contexts=["Nowhere"]))

    assert result.notes == []
    assert result.total_count == 0


@pytest.mark.asyncio
async def test_both_reads_failing_raises_page_failure(filter_engine: FilterEngine) -> None:
    page_failure = StoreFailureError("filter notes", RuntimeError("page"))
    count_failure = StoreFailureError("count filtered notes", RuntimeError("count"))
    fetch_page = AsyncMock(side_effect=page_failure)
    count = AsyncMock(side_effect=count_failure)

    with (
        patch.object(filter_engine, "_fetch_page", new=fetch_page),
        patch.object(filter_engine, "_count", new=count),
    ):
        with pytest.raises(StoreFailureError) as exc_info:
            await filter_engine.filter_notes(NotesFilter())

    assert exc_info.value is page_failure
    fetch_page.assert_awaited_once()
    count.assert_awaited_once()


@pytest.mark.asyncio
async def test_count_failure_alone_is_raised(filter_engine: FilterEngine) -> None:
    count_failure = StoreFailureError("count filtered notes", RuntimeError("count"))
    with patch.object(filter_engine, "_count", new=AsyncMock(side_effect=count_failure)):
        with pytest.raises(StoreFailureError) as exc_info:
            await filter_engine.filter_notes(NotesFilter())
    assert exc_info.value is count_failure
