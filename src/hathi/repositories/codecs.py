"""
Persistence Codecs

Encode/decode boundary between in-memory values and their stored form.

Array fields (tags, suggested_contexts) and embeddings are stored as compact
JSON text. Decoding never raises: malformed values are logged and mapped to
an empty/absent value so a single corrupt row cannot abort a multi-row read.
Timestamps are normalized to timezone-aware UTC on the way in and out
(drivers that return naive values are assumed to have stored UTC).
"""

from __future__ import annotations

import json
import logging
import math
from datetime import UTC, datetime
from typing import TypeVar

from hathi.models import Note, NoteType, TodoStatus
from hathi.schemas.notes import NoteRead

logger = logging.getLogger(__name__)

ReadModel = TypeVar("ReadModel", bound=NoteRead)

_COMPACT = (",", ":")


# ---------------------------------------------------------------------------
# Timestamps
# ---------------------------------------------------------------------------


def as_utc(value: datetime | str | None) -> datetime | None:
    """Normalize a datetime (or ISO-8601 string) to an aware UTC datetime."""
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


# ---------------------------------------------------------------------------
# String arrays
# ---------------------------------------------------------------------------


def encode_string_array(values: list[str] | None) -> str | None:
    """Serialize a list of strings; ``None`` stays ``None``."""
    if values is None:
        return None
    return json.dumps(list(values), separators=_COMPACT)


def encode_array_element(value: str) -> str:
    """Serialized form of a single element, as it appears inside an encoded array."""
    return json.dumps(value)


def decode_string_array(raw: str | None) -> list[str] | None:
    """
    Decode a stored string array.

    Returns:
        The list, or ``None`` when the column is empty or the stored value
        is not a JSON array of strings.
    """
    if not raw:
        return None
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Discarding malformed array value: %.40r", raw)
        return None
    if not isinstance(parsed, list) or not all(isinstance(v, str) for v in parsed):
        logger.warning("Discarding non-string-array value: %.40r", raw)
        return None
    return parsed


# ---------------------------------------------------------------------------
# Embeddings
# ---------------------------------------------------------------------------


def encode_embedding(vector: list[float]) -> str:
    """Serialize an embedding vector."""
    return json.dumps([float(v) for v in vector], separators=_COMPACT)


def decode_embedding(raw: str | None) -> list[float] | None:
    """Decode a stored embedding, or ``None`` if it is missing or malformed."""
    if not raw:
        return None
    try:
        parsed = json.loads(raw)
        vector = [float(v) for v in parsed]
    except (TypeError, ValueError):
        logger.warning("Discarding malformed embedding: %.40r", raw)
        return None
    if not all(math.isfinite(v) for v in vector):
        logger.warning("Discarding embedding with non-finite components")
        return None
    return vector


# ---------------------------------------------------------------------------
# DTO shaping
# ---------------------------------------------------------------------------


def _enum_or_none(enum_type, raw: str | None):
    if raw is None:
        return None
    try:
        return enum_type(raw)
    except ValueError:
        logger.warning("Ignoring unknown %s value: %r", enum_type.__name__, raw)
        return None


def note_to_read(
    note: Note,
    contexts: list[str],
    *,
    model: type[ReadModel] = NoteRead,  # type: ignore[assignment]
    **extra,
) -> ReadModel:
    """
    Build a hydrated DTO from a note row and its resolved context names.

    The stored embedding itself is never exposed; only its model tag and
    timestamp are.
    """
    return model(
        id=note.id,
        content=note.content,
        key_context=note.key_context,
        contexts=contexts,
        tags=decode_string_array(note.tags) or [],
        note_type=_enum_or_none(NoteType, note.note_type),
        suggested_contexts=decode_string_array(note.suggested_contexts),
        deadline=as_utc(note.deadline),
        status=_enum_or_none(TodoStatus, note.status),
        embedding_model=note.embedding_model,
        embedding_created_at=as_utc(note.embedding_created_at),
        created_at=as_utc(note.created_at),
        updated_at=as_utc(note.updated_at),
        **extra,
    )
