"""
Filter Predicate Unit Tests

build_filter_predicates maps each present criterion to exactly one typed
node (one per context); effective_limit and applied_filters shape paging.
"""

from datetime import UTC, date, datetime

from hathi.models import NoteType, TodoStatus
from hathi.repositories.filters import (
    ContextExists,
    EqualityPredicate,
    RangePredicate,
    TagMembership,
    applied_filters,
    build_filter_predicates,
    effective_limit,
)
from hathi.schemas.notes import NotesFilter


def test_empty_filter_has_no_predicates() -> None:
    assert build_filter_predicates(NotesFilter()) == []


def test_every_criterion_maps_to_a_node() -> None:
    filters = NotesFilter(
        created_after=datetime(2026, 1, 1, tzinfo=UTC),
        contexts=["work", "python"],
        hashtags=["#a", "#b"],
        note_type=NoteType.TODO,
        deadline_before=datetime(2026, 2, 1, tzinfo=UTC),
        deadline_on=date(2026, 1, 15),
        status=TodoStatus.OPEN,
    )
    predicates = build_filter_predicates(filters)

    assert predicates[0] == RangePredicate(
        "created_at", lower=datetime(2026, 1, 1, tzinfo=UTC), upper=None
    )
    assert predicates[1:3] == [ContextExists("work"), ContextExists("python")]
    assert predicates[3] == TagMembership(("#a", "#b"))
    assert predicates[4] == EqualityPredicate("note_type", "todo")
    assert predicates[5] == RangePredicate(
        "deadline", lower=None, upper=datetime(2026, 2, 1, tzinfo=UTC)
    )
    assert predicates[7] == EqualityPredicate("status", "open")
    assert len(predicates) == 8


def test_deadline_on_covers_the_whole_day() -> None:
    (predicate,) = build_filter_predicates(NotesFilter(deadline_on=date(2026, 3, 1)))
    assert predicate.column == "deadline"
    assert predicate.lower == datetime(2026, 3, 1, 0, 0, tzinfo=UTC)
    assert predicate.upper.date() == date(2026, 3, 1)
    assert (predicate.upper.hour, predicate.upper.minute) == (23, 59)


def test_hashtags_form_a_single_any_of_node() -> None:
    predicates = build_filter_predicates(NotesFilter(hashtags=["#x", "#y", "#z"]))
    assert predicates == [TagMembership(("#x", "#y", "#z"))]


def test_effective_limit() -> None:
    assert effective_limit(None) == 20
    assert effective_limit(5) == 5
    assert effective_limit(500) == 50
    assert effective_limit(0) == 20
    assert effective_limit(-3) == 1


def test_applied_filters_echo() -> None:
    filters = NotesFilter(
        contexts=["work"],
        hashtags=[],
        note_type=NoteType.NOTE,
        deadline_on=date(2026, 3, 1),
        limit=500,
    )
    assert applied_filters(filters, effective_limit(filters.limit)) == {
        "contexts": ["work"],
        "noteType": "note",
        "deadlineOn": "2026-03-01",
        "limit": 50,
    }
