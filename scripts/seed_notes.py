#!/usr/bin/env python3
"""
Seed Notes Script

Seeds the store with sample notes, contexts and mock embeddings for local
development and manual testing of filtering and semantic search.

Usage:
    $ python scripts/seed_notes.py
    $ python scripts/seed_notes.py --clean        # Delete every note first
    $ python scripts/seed_notes.py --dim 384      # Mock vector dimension

Uses DATABASE_URL_OVERRIDE when set (e.g. sqlite+aiosqlite:///./hathi.db),
otherwise the POSTGRES_* settings.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import random
import sys

# Required for direct script execution without package installation
sys.path.append(os.path.join(os.path.dirname(__file__), "../src"))

from hathi.core.database import Base, dispose_engine, get_engine, get_session_factory
from hathi.core.logging import setup_logging
from hathi.models import NoteType, TodoStatus
from hathi.repositories import NoteRepository
from hathi.schemas.notes import NoteCreate

SAMPLE_NOTES = [
    NoteCreate(
        content="Read the attention paper again, focus on [[Machine learning]] basics.",
        key_context="machine-learning",
        contexts=["machine-learning", "reading"],
        tags=["#papers", "#ml"],
        note_type=NoteType.NOTE,
    ),
    NoteCreate(
        content="Milk, eggs, bread, coffee.",
        key_context="groceries",
        contexts=["groceries"],
        tags=["#shopping"],
        note_type=NoteType.TODO,
        status=TodoStatus.OPEN,
    ),
    NoteCreate(
        content="Use async/await for I/O bound tasks.",
        key_context="python",
        contexts=["python", "machine-learning"],
        tags=["#tips"],
        note_type=NoteType.AI_NOTE,
    ),
]


def generate_mock_embedding(dim: int) -> list[float]:
    """Random vector standing in for a real provider embedding."""
    return [random.random() for _ in range(dim)]


async def main(clean: bool, dim: int) -> None:
    """
    Create tables if needed, then insert the sample notes with embeddings.

    Warning:
        --clean deletes every existing note. Intended for dev environments only.
    """
    print("Starting seed...")
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    repo = NoteRepository(get_session_factory())

    if clean:
        existing = await repo.fetch_notes()
        for note in existing:
            await repo.delete_note(note.id)
        print(f"Deleted {len(existing)} existing notes.")

    for params in SAMPLE_NOTES:
        note = await repo.create_note(params)
        await repo.upsert_embedding(note.id, generate_mock_embedding(dim), "mock-random")
        print(f"Inserted note {note.id} ({', '.join(note.contexts)})")

    await dispose_engine()
    print(f"Inserted {len(SAMPLE_NOTES)} notes with {dim}-dim embeddings.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed sample notes")
    parser.add_argument("--clean", action="store_true", help="Delete all notes first")
    parser.add_argument("--dim", type=int, default=8, help="Mock embedding dimension")
    args = parser.parse_args()

    setup_logging()
    asyncio.run(main(args.clean, args.dim))
