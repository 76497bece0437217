"""
Entry: one journal submission.

`detected_symbols` is a JSON-encoded list of *normalized* symbol keys.
Retraction and the audit replay trust it as-is; it is never re-normalized
after ingestion. `ai_analysis` keeps the raw collaborator output verbatim.
"""
from datetime import datetime
from sqlalchemy import Integer, String, Text, DateTime, Enum, func
from sqlalchemy.orm import Mapped, mapped_column
import enum

from anima.db.base import Base


VISUAL_MOOD_MAX_LENGTH = 256


class EntryKind(str, enum.Enum):
    text = "text"
    image = "image"


class Entry(Base):
    __tablename__ = "entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
    kind: Mapped[EntryKind] = mapped_column(
        Enum(EntryKind, name="entry_kind_enum"), nullable=False, default=EntryKind.text
    )
    content_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    detected_symbols: Mapped[str] = mapped_column(
        Text, nullable=False, default="[]",
        comment="JSON array of normalized symbol keys",
    )
    dominant_archetype: Mapped[str | None] = mapped_column(String(32), nullable=True)
    visual_mood: Mapped[str | None] = mapped_column(String(VISUAL_MOOD_MAX_LENGTH), nullable=True)

    ai_analysis: Mapped[str | None] = mapped_column(
        Text, nullable=True,
        comment="Raw AI analysis result, JSON-encoded verbatim",
    )
    analysis_log: Mapped[str | None] = mapped_column(Text, nullable=True)
    reflection_question: Mapped[str | None] = mapped_column(Text, nullable=True)
