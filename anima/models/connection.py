"""
SymbolConnection: undirected weighted co-occurrence edge.

Stored in canonical order (source_id < target_id) so (A, B) and (B, A)
resolve to one row. strength = number of live entries in which both
symbols appear.

Endpoints are plain integer ids (no FK): the graph service deletes edges
explicitly whenever a symbol is deleted.
"""
from datetime import datetime
from sqlalchemy import Integer, DateTime, CheckConstraint, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from anima.db.base import Base


class SymbolConnection(Base):
    __tablename__ = "symbol_connections"
    __table_args__ = (
        UniqueConstraint("source_id", "target_id", name="uq_symbol_connection_pair"),
        CheckConstraint("source_id < target_id", name="ck_symbol_connection_canonical"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    source_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    target_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    strength: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    first_seen: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    last_seen: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
