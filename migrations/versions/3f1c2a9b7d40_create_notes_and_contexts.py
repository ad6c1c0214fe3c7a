"""create notes, contexts and notes_contexts

Revision ID: 3f1c2a9b7d40
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f1c2a9b7d40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create the note store tables."""
    # -- notes table --
    op.create_table(
        "notes",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("key_context", sa.String(255), nullable=True),
        sa.Column("tags", sa.Text(), nullable=True),
        sa.Column("note_type", sa.String(20), nullable=True),
        sa.Column("deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(20), nullable=True),
        sa.Column("suggested_contexts", sa.Text(), nullable=True),
        # JSON-encoded vector; similarity is computed in-process
        sa.Column("embedding", sa.Text(), nullable=True),
        sa.Column("embedding_model", sa.String(255), nullable=True),
        sa.Column("embedding_created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notes_key_context", "notes", ["key_context"])
    op.create_index("ix_notes_note_type", "notes", ["note_type"])
    op.create_index("ix_notes_created_at", "notes", ["created_at"])

    # -- contexts table --
    op.create_table(
        "contexts",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_contexts_name"),
    )

    # -- notes_contexts junction --
    op.create_table(
        "notes_contexts",
        sa.Column("note_id", sa.String(64), nullable=False),
        sa.Column("context_id", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("note_id", "context_id"),
        sa.ForeignKeyConstraint(["note_id"], ["notes.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["context_id"], ["contexts.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "ix_notes_contexts_context_id", "notes_contexts", ["context_id"]
    )


def downgrade() -> None:
    """Drop the note store tables."""
    op.drop_index("ix_notes_contexts_context_id", table_name="notes_contexts")
    op.drop_table("notes_contexts")
    op.drop_table("contexts")
    op.drop_index("ix_notes_created_at", table_name="notes")
    op.drop_index("ix_notes_note_type", table_name="notes")
    op.drop_index("ix_notes_key_context", table_name="notes")
    op.drop_table("notes")
