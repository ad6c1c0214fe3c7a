"""
Filter Engine

Translates a NotesFilter into an explicit list of typed predicate nodes and
runs the paginated page query and the total count concurrently.

Predicate nodes:
    RangePredicate       - inclusive lower/upper bound on a timestamp column
    EqualityPredicate    - column == value
    TagMembership        - any of the tags is present in the serialized tags
    ContextExists        - the note is linked to a context with this name

All nodes returned by ``build_filter_predicates`` are combined by a single
conjunction.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, time
from typing import Any, Union

from sqlalchemy import ColumnElement, and_, false, func, or_, select, true
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hathi.core.config import settings
from hathi.models import Context, Note, NoteContext
from hathi.repositories.base import BaseRepository
from hathi.repositories.codecs import as_utc, encode_array_element, note_to_read
from hathi.repositories.contexts import resolve_context_names
from hathi.schemas.notes import FilterNotesResult, NotesFilter, SearchResultNote

logger = logging.getLogger(__name__)


def context_linked(name: str) -> ColumnElement[bool]:
    """Correlated EXISTS: the outer note is linked to a context named ``name``."""
    return (
        select(NoteContext.note_id)
        .join(Context, NoteContext.context_id == Context.id)
        .where(NoteContext.note_id == Note.id, Context.name == name)
        .exists()
    )


# ---------------------------------------------------------------------------
# Predicate nodes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RangePredicate:
    column: str
    lower: datetime | None = None
    upper: datetime | None = None

    def to_clause(self) -> ColumnElement[bool]:
        col = Note.__table__.c[self.column]
        bounds = []
        if self.lower is not None:
            bounds.append(col >= self.lower)
        if self.upper is not None:
            bounds.append(col <= self.upper)
        return and_(true(), *bounds)


@dataclass(frozen=True)
class EqualityPredicate:
    column: str
    value: Any

    def to_clause(self) -> ColumnElement[bool]:
        return Note.__table__.c[self.column] == self.value


@dataclass(frozen=True)
class TagMembership:
    tags: tuple[str, ...]

    def to_clause(self) -> ColumnElement[bool]:
        # Matches the quoted element inside the JSON array text
        return or_(
            false(),
            *(
                Note.tags.contains(encode_array_element(tag), autoescape=True)
                for tag in self.tags
            ),
        )


@dataclass(frozen=True)
class ContextExists:
    name: str

    def to_clause(self) -> ColumnElement[bool]:
        return context_linked(self.name)


Predicate = Union[RangePredicate, EqualityPredicate, TagMembership, ContextExists]


def _day_bounds(day) -> tuple[datetime, datetime]:
    """Inclusive UTC bounds of a calendar day."""
    start = datetime.combine(day, time.min, tzinfo=UTC)
    end = datetime.combine(day, time.max, tzinfo=UTC)
    return start, end


def build_filter_predicates(filters: NotesFilter) -> list[Predicate]:
    """Build the predicate list for every criterion present in ``filters``."""
    predicates: list[Predicate] = []

    if filters.created_after or filters.created_before:
        predicates.append(
            RangePredicate(
                "created_at",
                lower=as_utc(filters.created_after),
                upper=as_utc(filters.created_before),
            )
        )

    for name in filters.contexts or []:
        predicates.append(ContextExists(name))

    if filters.hashtags:
        predicates.append(TagMembership(tuple(filters.hashtags)))

    if filters.note_type:
        predicates.append(EqualityPredicate("note_type", filters.note_type.value))

    if filters.deadline_after or filters.deadline_before:
        predicates.append(
            RangePredicate(
                "deadline",
                lower=as_utc(filters.deadline_after),
                upper=as_utc(filters.deadline_before),
            )
        )

    if filters.deadline_on:
        start, end = _day_bounds(filters.deadline_on)
        predicates.append(RangePredicate("deadline", lower=start, upper=end))

    if filters.status:
        predicates.append(EqualityPredicate("status", filters.status.value))

    return predicates


def combine(predicates: Sequence[Predicate]) -> ColumnElement[bool]:
    """Conjoin all predicate clauses (TRUE when there are none)."""
    return and_(true(), *(p.to_clause() for p in predicates))


def effective_limit(requested: int | None) -> int:
    """Requested page size clamped to [1, FILTER_MAX_LIMIT]; default when unset."""
    limit = requested or settings.FILTER_DEFAULT_LIMIT
    return max(1, min(limit, settings.FILTER_MAX_LIMIT))


def applied_filters(filters: NotesFilter, limit: int) -> dict[str, Any]:
    """Echo of the criteria that were actually applied, plus the effective limit."""
    echo = filters.model_dump(
        mode="json",
        by_alias=True,
        exclude_none=True,
        exclude={"limit"},
    )
    echo = {key: value for key, value in echo.items() if value != []}
    echo["limit"] = limit
    return echo


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class FilterEngine(BaseRepository[Note]):
    """
    Structured note filtering with pagination and a total count.

    The page and the count run as two independent concurrent reads, each
    on its own session; a write landing between them can make them disagree.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        super().__init__(Note, session_factory)

    async def filter_notes(self, filters: NotesFilter | None = None) -> FilterNotesResult:
        """
        Filter notes, newest first.

        Args:
            filters: Criteria; all present ones must hold.

        Returns:
            At most ``effective_limit(filters.limit)`` notes, the count of
            all matches, and the applied filters.
        """
        filters = filters or NotesFilter()
        limit = effective_limit(filters.limit)
        where = combine(build_filter_predicates(filters))

        # Collect both outcomes so a second failure is not left unretrieved
        page, count = await asyncio.gather(
            self._fetch_page(where, limit),
            self._count(where),
            return_exceptions=True,
        )
        for outcome in (page, count):
            if isinstance(outcome, BaseException):
                raise outcome
        notes, total_count = page, count
        logger.debug("Filter matched %d note(s), returning %d", total_count, len(notes))

        return FilterNotesResult(
            notes=notes,
            total_count=total_count,
            applied_filters=applied_filters(filters, limit),
        )

    async def _fetch_page(
        self,
        where: ColumnElement[bool],
        limit: int,
    ) -> list[SearchResultNote]:
        async with self._operation("filter notes") as session:
            rows = (
                await session.scalars(
                    select(Note).where(where).order_by(Note.created_at.desc()).limit(limit)
                )
            ).all()
            names = await resolve_context_names(session, [row.id for row in rows])
            return [
                note_to_read(row, names.get(row.id, []), model=SearchResultNote)
                for row in rows
            ]

    async def _count(self, where: ColumnElement[bool]) -> int:
        async with self._operation("count filtered notes") as session:
            count = await session.scalar(
                select(func.count()).select_from(Note).where(where)
            )
            return int(count or 0)
