"""
Context Repository

Owns the contexts table and the note<->context links: upsert by name,
full-replacement relinking, the rename/merge transaction and the usage
statistics used for "recently used" context ranking.
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from sqlalchemy import (
    DateTime,
    Integer,
    String,
    delete,
    func,
    insert,
    select,
    text,
    update,
)
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hathi.core.exceptions import ContextNotFoundError, StoreFailureError
from hathi.models import Context, Note, NoteContext, new_id, utcnow
from hathi.repositories.base import BaseRepository
from hathi.repositories.codecs import as_utc
from hathi.schemas.contexts import ContextStats, PaginatedContextStats

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def slug_to_sentence_case(name: str) -> str:
    """
    Render a slug-like context name the way it is written in note content.

    ``"machine-learning"`` -> ``"Machine learning"``; underscores and runs of
    whitespace collapse to single spaces.
    """
    words = re.sub(r"[-_\s]+", " ", name).strip().lower()
    return words[:1].upper() + words[1:]


def rewrite_context_references(content: str, old_name: str, new_name: str) -> str:
    """Replace ``[[Old name]]`` cross-references (case-insensitive) with the new name."""
    pattern = re.compile(
        r"\[\[" + re.escape(slug_to_sentence_case(old_name)) + r"\]\]",
        re.IGNORECASE,
    )
    replacement = f"[[{slug_to_sentence_case(new_name)}]]"
    return pattern.sub(lambda _: replacement, content)


@dataclass(frozen=True)
class MergePlan:
    """How to move the links of a merged-away context onto the target."""

    to_delete: list[str]
    to_repoint: list[str]


def partition_merge_links(
    source_note_ids: Iterable[str],
    target_note_ids: Iterable[str],
) -> MergePlan:
    """
    Partition the notes linked to the source context.

    Notes already linked to the target lose their source link (a second
    target link would break pair uniqueness); the rest have their link
    repointed to the target so the link's created_at survives.
    """
    already_linked = set(target_note_ids)
    to_delete: list[str] = []
    to_repoint: list[str] = []
    for note_id in dict.fromkeys(source_note_ids):
        if note_id in already_linked:
            to_delete.append(note_id)
        else:
            to_repoint.append(note_id)
    return MergePlan(to_delete=to_delete, to_repoint=to_repoint)


async def resolve_context_names(
    session: AsyncSession,
    note_ids: Sequence[str],
) -> dict[str, list[str]]:
    """Map each note id to its linked context names (sorted), in one query."""
    if not note_ids:
        return {}
    result = await session.execute(
        select(NoteContext.note_id, Context.name)
        .join(Context, NoteContext.context_id == Context.id)
        .where(NoteContext.note_id.in_(note_ids))
        .order_by(Context.name)
    )
    names: dict[str, list[str]] = defaultdict(list)
    for note_id, name in result.all():
        names[note_id].append(name)
    return names


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------

_CONTEXT_STATS_SQL = text(
    """
    SELECT
        c.name AS context,
        COUNT(*) AS usage_count,
        MAX(nc.created_at) AS last_used,
        (
            SELECT COUNT(DISTINCT c2.name)
            FROM contexts c2
            JOIN notes_contexts nc2 ON c2.id = nc2.context_id
        ) AS total_count
    FROM contexts c
    JOIN notes_contexts nc ON c.id = nc.context_id
    GROUP BY c.name
    ORDER BY last_used DESC, usage_count DESC
    LIMIT :limit OFFSET :offset
    """
).columns(
    context=String,
    usage_count=Integer,
    last_used=DateTime(timezone=True),
    total_count=Integer,
)

_CONTEXT_SEARCH_SQL = text(
    """
    SELECT
        c.name AS context,
        COUNT(*) AS usage_count,
        MAX(nc.created_at) AS last_used
    FROM contexts c
    JOIN notes_contexts nc ON c.id = nc.context_id
    WHERE LOWER(c.name) LIKE LOWER(:pattern)
    GROUP BY c.name
    ORDER BY usage_count DESC, last_used DESC
    LIMIT :limit
    """
).columns(
    context=String,
    usage_count=Integer,
    last_used=DateTime(timezone=True),
)


class ContextRepository(BaseRepository[Context]):
    """
    Repository for contexts and note<->context links.

    Key guarantees:
        - ``upsert_contexts``: idempotent per name, ids returned in input order.
        - ``link_note_to_contexts``: full replacement; an empty id list
          clears every link of the note.
        - ``rename_context``: single transaction, all-or-nothing.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        super().__init__(Context, session_factory)

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    async def upsert_contexts(self, names: Sequence[str]) -> list[str]:
        """
        Resolve context names to ids, creating missing contexts.

        Args:
            names: Context names (exact, case-sensitive match).

        Returns:
            Context ids in the same order as ``names``.
        """
        if not names:
            return []

        async with self._operation("upsert contexts") as session:
            ids: list[str] = []
            created = 0
            for name in names:
                context_id = await session.scalar(
                    select(Context.id).where(Context.name == name).limit(1)
                )
                if context_id is None:
                    context_id = new_id()
                    await session.execute(
                        insert(Context).values(id=context_id, name=name)
                    )
                    created += 1
                ids.append(context_id)
            await session.commit()

        if created:
            logger.info("Created %d new context(s)", created)
        return ids

    async def link_note_to_contexts(
        self,
        note_id: str,
        context_ids: Sequence[str],
    ) -> None:
        """
        Replace the full link set of a note.

        Existing links are always deleted; the insert is skipped when
        ``context_ids`` is empty, which leaves the note unlinked.
        Duplicate ids collapse to a single link.
        """
        async with self._operation("link note to contexts") as session:
            await session.execute(
                delete(NoteContext).where(NoteContext.note_id == note_id)
            )
            unique_ids = list(dict.fromkeys(context_ids))
            if unique_ids:
                linked_at = utcnow()
                await session.execute(
                    insert(NoteContext),
                    [
                        {
                            "note_id": note_id,
                            "context_id": context_id,
                            "created_at": linked_at,
                        }
                        for context_id in unique_ids
                    ],
                )
            await session.commit()

        logger.debug("Note %s linked to %d context(s)", note_id, len(unique_ids))

    async def unlink_note(self, note_id: str) -> None:
        """Remove every link of a note (used before deleting the note)."""
        async with self._operation("unlink note") as session:
            await session.execute(
                delete(NoteContext).where(NoteContext.note_id == note_id)
            )
            await session.commit()

    async def rename_context(self, old_name: str, new_name: str) -> None:
        """
        Rename a context, merging into ``new_name`` if it already exists.

        Runs in one transaction: any failure rolls back every statement.

        Pure rename: the context row is renamed in place.
        Merge: links of notes already on the target are deleted, the others
        are repointed (keeping their created_at), then the old row is removed.
        In both cases ``[[Old name]]`` references in linked notes' content
        and a matching ``key_context`` are rewritten.

        Raises:
            ContextNotFoundError: If ``old_name`` does not exist.
        """
        async with self._operation("rename context") as session:
            try:
                old_id = await session.scalar(
                    select(Context.id).where(Context.name == old_name).limit(1)
                )
                if old_id is None:
                    raise ContextNotFoundError(old_name)
                if old_name == new_name:
                    await session.rollback()
                    return

                target_id = await session.scalar(
                    select(Context.id).where(Context.name == new_name).limit(1)
                )
                linked_note_ids = list(
                    (
                        await session.scalars(
                            select(NoteContext.note_id).where(
                                NoteContext.context_id == old_id
                            )
                        )
                    ).all()
                )

                if target_id is None:
                    await session.execute(
                        update(Context)
                        .where(Context.id == old_id)
                        .values(name=new_name)
                        .execution_options(synchronize_session=False)
                    )
                else:
                    await self._merge_links(session, old_id, target_id, linked_note_ids)

                rewritten = await self._rewrite_notes(
                    session, linked_note_ids, old_name, new_name
                )

                if target_id is not None:
                    await session.execute(delete(Context).where(Context.id == old_id))

                await session.commit()
            except Exception:
                await session.rollback()
                raise

        logger.info(
            "%s context '%s' -> '%s' (%d notes linked, %d rewritten)",
            "Merged" if target_id is not None else "Renamed",
            old_name,
            new_name,
            len(linked_note_ids),
            rewritten,
        )

    async def _merge_links(
        self,
        session: AsyncSession,
        old_id: str,
        target_id: str,
        linked_note_ids: list[str],
    ) -> None:
        """Move the links of ``old_id`` onto ``target_id`` with two bulk statements."""
        if not linked_note_ids:
            return
        target_note_ids = (
            await session.scalars(
                select(NoteContext.note_id).where(NoteContext.context_id == target_id)
            )
        ).all()
        plan = partition_merge_links(linked_note_ids, target_note_ids)

        if plan.to_delete:
            await session.execute(
                delete(NoteContext).where(
                    NoteContext.note_id.in_(plan.to_delete),
                    NoteContext.context_id == old_id,
                )
            )
        if plan.to_repoint:
            await session.execute(
                update(NoteContext)
                .where(
                    NoteContext.note_id.in_(plan.to_repoint),
                    NoteContext.context_id == old_id,
                )
                .values(context_id=target_id)
                .execution_options(synchronize_session=False)
            )
        logger.debug(
            "Merge plan: %d duplicate link(s) dropped, %d repointed",
            len(plan.to_delete),
            len(plan.to_repoint),
        )

    async def _rewrite_notes(
        self,
        session: AsyncSession,
        note_ids: list[str],
        old_name: str,
        new_name: str,
    ) -> int:
        """Rewrite references and key_context of the given notes; returns rows changed."""
        if not note_ids:
            return 0
        rows = (
            await session.execute(
                select(Note.id, Note.content, Note.key_context).where(
                    Note.id.in_(note_ids)
                )
            )
        ).all()

        changed = 0
        for note_id, content, key_context in rows:
            new_content = rewrite_context_references(content, old_name, new_name)
            new_key_context = new_name if key_context == old_name else key_context
            if new_content == content and new_key_context == key_context:
                continue
            await session.execute(
                update(Note)
                .where(Note.id == note_id)
                .values(
                    content=new_content,
                    key_context=new_key_context,
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            changed += 1
        return changed

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    async def context_exists(self, name: str) -> bool:
        """
        Check whether a context with exactly this name exists.

        Infrastructure errors are reported as absence (``False``).
        """
        try:
            async with self._operation("check context existence") as session:
                count = await session.scalar(
                    select(func.count()).select_from(Context).where(Context.name == name)
                )
        except StoreFailureError:
            logger.warning("Treating context '%s' as absent after store failure", name)
            return False
        return bool(count)

    async def fetch_context_stats_paginated(
        self,
        limit: int = 30,
        offset: int = 0,
    ) -> PaginatedContextStats:
        """
        Page through linked contexts ordered by last use, then usage count.

        Contexts without any link are not listed.
        """
        async with self._operation("fetch context stats") as session:
            rows = (
                await session.execute(
                    _CONTEXT_STATS_SQL, {"limit": limit, "offset": offset}
                )
            ).all()

        total_count = rows[0].total_count if rows else 0
        return PaginatedContextStats(
            contexts=[
                ContextStats(
                    context=row.context,
                    count=row.usage_count,
                    last_used=as_utc(row.last_used),
                )
                for row in rows
            ],
            total_count=total_count,
            has_more=offset + limit < total_count,
        )

    async def search_contexts(self, term: str, limit: int = 20) -> list[ContextStats]:
        """Case-insensitive substring search over linked contexts, most used first."""
        term = term.strip()
        if not term:
            return []

        async with self._operation("search contexts") as session:
            rows = (
                await session.execute(
                    _CONTEXT_SEARCH_SQL, {"pattern": f"%{term}%", "limit": limit}
                )
            ).all()

        return [
            ContextStats(
                context=row.context,
                count=row.usage_count,
                last_used=as_utc(row.last_used),
            )
            for row in rows
        ]
