from datetime import datetime
from sqlalchemy import Integer, String, Text, Float, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column

from anima.db.base import Base


class Constellation(Base):
    """Append-only record of a recurring-symbol pattern found in recent entries."""

    __tablename__ = "constellations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    pattern: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    symbols: Mapped[str] = mapped_column(
        Text, nullable=False,
        comment="JSON array of recurring symbol keys",
    )
    archetype: Mapped[str | None] = mapped_column(String(32), nullable=True)
    confidence: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
