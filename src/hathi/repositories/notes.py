"""
Note Repository

CRUD over the notes table. Owns field coercion (timestamps, serialized
arrays) and DTO shaping; delegates every link write to ContextRepository.

Note writes and context relinking are separate transactions: if linking
fails after the note row is committed, the note exists with stale or
missing links and the caller sees CreateFailedError / StoreFailureError.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Literal

from sqlalchemy import and_, delete, insert, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hathi.core.exceptions import (
    CreateFailedError,
    HathiError,
    NoUpdateFieldsError,
    NotFoundError,
    ValidationFailedError,
)
from hathi.models import Context, Note, TodoStatus, new_id, utcnow
from hathi.repositories.base import BaseRepository
from hathi.repositories.codecs import (
    as_utc,
    decode_string_array,
    encode_embedding,
    encode_string_array,
    note_to_read,
)
from hathi.repositories.contexts import ContextRepository, resolve_context_names
from hathi.repositories.filters import context_linked
from hathi.schemas.notes import FilterOptions, NoteCreate, NoteRead, NoteUpdate

logger = logging.getLogger(__name__)

_TIMESTAMP_FIELDS = frozenset({"deadline", "embedding_created_at"})
_ARRAY_FIELDS = frozenset({"tags", "suggested_contexts"})
_ENUM_FIELDS = frozenset({"note_type", "status"})
# Explicit nulls are ignored: content is required, and a stored embedding
# must keep its model tag
_NULL_IGNORED_FIELDS = frozenset({"content", "embedding_model"})


def coerce_patch(patch: NoteUpdate) -> dict[str, Any]:
    """
    Translate the explicitly set fields of a patch into column values.

    ``contexts`` and ``embedding`` never become column values here: the
    former is a relink, the latter goes through ``upsert_embedding``.
    """
    values: dict[str, Any] = {}
    for field, value in patch.model_dump(exclude_unset=True).items():
        if field in ("contexts", "embedding"):
            continue
        if value is None and field in _NULL_IGNORED_FIELDS:
            continue
        if field in _TIMESTAMP_FIELDS:
            value = as_utc(value)
        elif field in _ARRAY_FIELDS:
            value = encode_string_array(value)
        elif field in _ENUM_FIELDS and value is not None:
            value = value.value
        values[field] = value
    return values


class NoteRepository(BaseRepository[Note]):
    """
    Repository for Note entities.

    Every method returns hydrated NoteRead DTOs (decoded arrays, resolved
    context names, UTC timestamps); sessions never leave the repository.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        contexts: ContextRepository | None = None,
    ) -> None:
        super().__init__(Note, session_factory)
        self.contexts = contexts or ContextRepository(session_factory)

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    async def create_note(self, params: NoteCreate) -> NoteRead:
        """
        Insert a note and link it to its contexts (created on demand).

        created_at and updated_at come from one clock reading, so they are
        equal on the returned note.

        Raises:
            CreateFailedError: If the insert returned no row, or if context
                linking failed after the note was committed.
        """
        note_id = params.id or new_id()
        now = utcnow()

        async with self._operation("create note") as session:
            result = await session.execute(
                insert(Note)
                .values(
                    id=note_id,
                    content=params.content,
                    key_context=params.key_context,
                    tags=encode_string_array(params.tags),
                    note_type=params.note_type.value if params.note_type else None,
                    deadline=as_utc(params.deadline),
                    status=params.status.value if params.status else None,
                    created_at=now,
                    updated_at=now,
                )
                .returning(Note.id)
            )
            if result.first() is None:
                raise CreateFailedError("No data returned after insert", note_id)
            await session.commit()

        if params.contexts:
            try:
                await self._relink(note_id, params.contexts)
            except HathiError as e:
                logger.error("Note %s created but context linking failed: %s", note_id, e)
                raise CreateFailedError(
                    f"Failed to link contexts for note: {e.message}", note_id
                ) from e

        logger.info("Created note %s", note_id)
        return await self._fetch_one(note_id, "create note")

    async def update_note(self, note_id: str, patch: NoteUpdate) -> NoteRead:
        """
        Apply a partial update.

        ``contexts`` absent leaves links untouched; ``contexts=[]`` clears
        them; a non-empty list replaces them.

        Raises:
            NoUpdateFieldsError: If the patch has no column change and no contexts.
            NotFoundError: If no note has this id.
        """
        values = coerce_patch(patch)
        contexts = patch.contexts if "contexts" in patch.model_fields_set else None

        if not values and contexts is None:
            raise NoUpdateFieldsError(note_id)

        async with self._operation("update note") as session:
            if values:
                values["updated_at"] = utcnow()
                result = await session.execute(
                    update(Note)
                    .where(Note.id == note_id)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    raise NotFoundError(note_id)
                await session.commit()
            elif await self._get_by_id(session, note_id) is None:
                raise NotFoundError(note_id)

        if contexts is not None:
            await self._relink(note_id, contexts)

        return await self._fetch_one(note_id, "update note")

    async def delete_note(self, note_id: str) -> str:
        """
        Delete a note: links first, then its embedding, then the row.

        Clearing the embedding is best-effort; a failure there is logged and
        does not stop the deletion.

        Returns:
            The deleted note id.

        Raises:
            NotFoundError: If no note has this id.
        """
        await self.contexts.unlink_note(note_id)

        try:
            async with self.session_factory() as session:
                await session.execute(
                    update(Note)
                    .where(Note.id == note_id)
                    .values(
                        embedding=None,
                        embedding_model=None,
                        embedding_created_at=None,
                    )
                    .execution_options(synchronize_session=False)
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.warning("Could not remove embedding for note %s: %s", note_id, e)

        async with self._operation("delete note") as session:
            result = await session.execute(
                delete(Note)
                .where(Note.id == note_id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFoundError(note_id)
            await session.commit()

        logger.info("Deleted note %s", note_id)
        return note_id

    async def upsert_embedding(
        self,
        note_id: str,
        embedding: Sequence[float],
        embedding_model: str,
    ) -> None:
        """
        Store a precomputed embedding together with its model tag.

        Raises:
            ValidationFailedError: If the vector is empty or the model tag blank.
            NotFoundError: If no note has this id.
        """
        if not embedding:
            raise ValidationFailedError("Embedding must not be empty", "embedding")
        if not embedding_model or not embedding_model.strip():
            raise ValidationFailedError("Embedding model is required", "embedding_model")

        async with self._operation("upsert embedding") as session:
            result = await session.execute(
                update(Note)
                .where(Note.id == note_id)
                .values(
                    embedding=encode_embedding(list(embedding)),
                    embedding_model=embedding_model,
                    embedding_created_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFoundError(note_id)
            await session.commit()

        logger.debug("Stored %d-dim embedding for note %s", len(embedding), note_id)

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    async def fetch_notes(
        self,
        key_context: str | None = None,
        contexts: Sequence[str] | None = None,
        method: Literal["AND", "OR"] = "AND",
    ) -> list[NoteRead]:
        """
        List notes, newest first, optionally filtered.

        Args:
            key_context: Exact match on the note's primary context.
            contexts: Context names the note must be linked to.
            method: ``"AND"`` requires every name, ``"OR"`` any one.
        """
        conditions = []
        if key_context:
            conditions.append(Note.key_context == key_context)
        if contexts:
            linked = [context_linked(name) for name in contexts]
            conditions.append(or_(*linked) if method == "OR" else and_(*linked))

        stmt = select(Note).order_by(Note.created_at.desc())
        if conditions:
            stmt = stmt.where(*conditions)

        async with self._operation("fetch notes") as session:
            rows = (await session.scalars(stmt)).all()
            return await self._hydrate(session, rows)

    async def fetch_notes_by_ids(self, note_ids: Sequence[str]) -> list[NoteRead]:
        """Batched lookup by id, newest first. Unknown ids are skipped."""
        if not note_ids:
            return []

        async with self._operation("fetch notes by ids") as session:
            rows = (
                await session.scalars(
                    select(Note)
                    .where(Note.id.in_(list(note_ids)))
                    .order_by(Note.created_at.desc())
                )
            ).all()
            return await self._hydrate(session, rows)

    async def get_filter_options(self) -> FilterOptions:
        """Distinct contexts, hashtags, note types and valid statuses across all notes."""
        async with self._operation("get filter options") as session:
            context_names = (
                await session.scalars(select(Context.name).order_by(Context.name))
            ).all()
            rows = (
                await session.execute(select(Note.tags, Note.note_type, Note.status))
            ).all()

        hashtags: dict[str, None] = {}
        note_types: dict[str, None] = {}
        statuses: dict[str, None] = {}
        for tags, note_type, status in rows:
            for tag in decode_string_array(tags) or []:
                hashtags[tag] = None
            if note_type is not None:
                note_types[note_type] = None
            if status is not None:
                statuses[status] = None

        valid_statuses = {s.value for s in TodoStatus}
        return FilterOptions(
            available_contexts=list(dict.fromkeys(context_names)),
            available_hashtags=list(hashtags),
            available_note_types=list(note_types),
            available_statuses=[
                TodoStatus(s) for s in statuses if s in valid_statuses
            ],
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _relink(self, note_id: str, names: Sequence[str]) -> None:
        context_ids = await self.contexts.upsert_contexts(names)
        await self.contexts.link_note_to_contexts(note_id, context_ids)

    async def _hydrate(
        self,
        session: AsyncSession,
        rows: Sequence[Note],
    ) -> list[NoteRead]:
        names = await resolve_context_names(session, [row.id for row in rows])
        return [note_to_read(row, names.get(row.id, [])) for row in rows]

    async def _fetch_one(self, note_id: str, operation: str) -> NoteRead:
        async with self._operation(operation) as session:
            note = await self._get_by_id(session, note_id)
            if note is None:
                raise NotFoundError(note_id)
            return (await self._hydrate(session, [note]))[0]
