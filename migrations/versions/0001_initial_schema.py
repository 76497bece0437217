"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- ENUM types ---
    entry_kind_enum = sa.Enum("text", "image", name="entry_kind_enum")
    entry_kind_enum.create(op.get_bind(), checkfirst=True)

    # --- entries (append-only log; source of truth for the audit) ---
    op.create_table(
        "entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=False,
        ),
        sa.Column(
            "kind",
            sa.Enum("text", "image", name="entry_kind_enum", create_type=False),
            nullable=False,
        ),
        sa.Column("content_text", sa.Text(), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column(
            "detected_symbols", sa.Text(), nullable=False, server_default="[]",
            comment="JSON array of normalized symbol keys",
        ),
        sa.Column("dominant_archetype", sa.String(32), nullable=True),
        sa.Column("visual_mood", sa.String(256), nullable=True),
        sa.Column(
            "ai_analysis", sa.Text(), nullable=True,
            comment="Raw AI analysis result, JSON-encoded verbatim",
        ),
        sa.Column("analysis_log", sa.Text(), nullable=True),
        sa.Column("reflection_question", sa.Text(), nullable=True),
    )
    op.create_index("ix_entries_id", "entries", ["id"])
    op.create_index("ix_entries_created_at", "entries", ["created_at"])

    # --- symbols ---
    op.create_table(
        "symbols",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("category", sa.String(16), nullable=True),
        sa.Column("meaning", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("occurrences", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("archetype", sa.String(32), nullable=True),
        sa.Column(
            "first_seen", sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=False,
        ),
        sa.Column(
            "last_seen", sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=False,
        ),
        sa.CheckConstraint("occurrences >= 0", name="ck_symbols_occurrences_non_negative"),
        sa.CheckConstraint("level BETWEEN 1 AND 5", name="ck_symbols_level_range"),
    )
    op.create_index("ix_symbols_id", "symbols", ["id"])
    op.create_index("ix_symbols_name", "symbols", ["name"], unique=True)

    # --- symbol_connections (undirected; stored once as source_id < target_id) ---
    op.create_table(
        "symbol_connections",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("source_id", sa.Integer(), nullable=False),
        sa.Column("target_id", sa.Integer(), nullable=False),
        sa.Column("strength", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "first_seen", sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=False,
        ),
        sa.Column(
            "last_seen", sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=False,
        ),
        sa.UniqueConstraint("source_id", "target_id", name="uq_symbol_connection_pair"),
        sa.CheckConstraint("source_id < target_id", name="ck_symbol_connection_canonical"),
    )
    op.create_index("ix_symbol_connections_id", "symbol_connections", ["id"])
    op.create_index("ix_symbol_connections_source_id", "symbol_connections", ["source_id"])
    op.create_index("ix_symbol_connections_target_id", "symbol_connections", ["target_id"])

    # --- constellations ---
    op.create_table(
        "constellations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("pattern", sa.String(32), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column(
            "symbols", sa.Text(), nullable=False,
            comment="JSON array of recurring symbol keys",
        ),
        sa.Column("archetype", sa.String(32), nullable=True),
        sa.Column("confidence", sa.Float(), nullable=False, server_default="0"),
        sa.Column(
            "created_at", sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=False,
        ),
    )
    op.create_index("ix_constellations_id", "constellations", ["id"])
    op.create_index("ix_constellations_pattern", "constellations", ["pattern"])


def downgrade() -> None:
    op.drop_table("constellations")
    op.drop_table("symbol_connections")
    op.drop_table("symbols")
    op.drop_table("entries")

    op.execute("DROP TYPE IF EXISTS entry_kind_enum")
