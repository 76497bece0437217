"""
Symbol: one distinct normalized concept in the personal symbol library.

Uniqueness: `name` is the canonical key. Two entries that normalize to the
same key always update the same row.

`occurrences` and `level` are only written by the ledger service
(app-level writes would bypass level recomputation and delete-on-zero).
"""
from datetime import datetime
from sqlalchemy import Integer, String, Text, DateTime, CheckConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
import enum

from anima.db.base import Base


NAME_MAX_LENGTH = 128


class SymbolCategory(str, enum.Enum):
    NATURE = "NATURE"
    PERSONA = "PERSONA"
    SHADOW = "SHADOW"
    SACRED = "SACRED"


class Symbol(Base):
    __tablename__ = "symbols"
    __table_args__ = (
        CheckConstraint("occurrences >= 0", name="ck_symbols_occurrences_non_negative"),
        CheckConstraint("level BETWEEN 1 AND 5", name="ck_symbols_level_range"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(NAME_MAX_LENGTH), nullable=False, unique=True, index=True)
    category: Mapped[str | None] = mapped_column(String(16), nullable=True)
    meaning: Mapped[str | None] = mapped_column(Text, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    occurrences: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    archetype: Mapped[str | None] = mapped_column(String(32), nullable=True)
    first_seen: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    last_seen: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
