"""
Connection graph: undirected, weighted co-occurrence edges between symbols.

Every edge is stored once, under its canonical pair (low id, high id).
Recording is an atomic insert-or-increment; releasing is a conditional
decrement followed by a delete of edges that fell to 0.

Edges mean "currently co-occurring": retracting an entry releases the
pairs it recorded, and the audit rebuilds strengths from the entry log.

Flush only. The caller owns the commit.

Public API
----------
canonical_pair(a, b)                        -> (low, high)
record_cooccurrence(db, a, b)               -> SymbolConnection | None
record_entry_cooccurrences(db, symbol_ids)  -> int   (pairs recorded)
release_cooccurrence(db, a, b)              -> bool
release_entry_cooccurrences(db, symbol_ids) -> int   (pairs released)
cascade_delete_for_symbol(db, symbol_id)    -> int   (edges deleted)
entry_pairs(symbol_ids)                     -> list[(low, high)]
rebuild_strengths(db, pair_counts)          -> GraphRepair
export_for_visualization(db)                -> GraphExport
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from itertools import combinations
from typing import Iterable, Optional

from sqlalchemy import delete, or_, select, update
from sqlalchemy.orm import Session

from anima.db.upsert import upsert_insert
from anima.models.connection import SymbolConnection
from anima.models.symbol import Symbol

logger = logging.getLogger(__name__)

_connections = SymbolConnection.__table__


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


# ---------------------------------------------------------------------------
# Pairs
# ---------------------------------------------------------------------------

def canonical_pair(a: int, b: int) -> tuple[int, int]:
    """Stable order so (A, B) and (B, A) resolve to the same record."""
    return (a, b) if a <= b else (b, a)


def entry_pairs(symbol_ids: Iterable[int]) -> list[tuple[int, int]]:
    """Every unordered pair among the distinct ids of one entry: C(n, 2) pairs."""
    unique = sorted(set(symbol_ids))
    return list(combinations(unique, 2))


def _pair_filter(low: int, high: int):
    return (_connections.c.source_id == low) & (_connections.c.target_id == high)


# ---------------------------------------------------------------------------
# Record / release
# ---------------------------------------------------------------------------

def record_cooccurrence(db: Session, a: int, b: int) -> Optional[SymbolConnection]:
    """Create the edge with strength=1, or increment it and bump last_seen."""
    if a == b:
        logger.warning("Ignoring self co-occurrence for symbol id %s", a)
        return None
    low, high = canonical_pair(a, b)
    now = _now()
    stmt = upsert_insert(db, _connections).values(
        source_id=low,
        target_id=high,
        strength=1,
        first_seen=now,
        last_seen=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[_connections.c.source_id, _connections.c.target_id],
        set_={
            "strength": _connections.c.strength + 1,
            "last_seen": stmt.excluded.last_seen,
        },
    )
    db.execute(stmt)
    return db.execute(
        select(SymbolConnection)
        .where(SymbolConnection.source_id == low, SymbolConnection.target_id == high)
        .execution_options(populate_existing=True)
    ).scalar_one()


def record_entry_cooccurrences(db: Session, symbol_ids: Iterable[int]) -> int:
    pairs = entry_pairs(symbol_ids)
    for low, high in pairs:
        record_cooccurrence(db, low, high)
    return len(pairs)


def release_cooccurrence(db: Session, a: int, b: int) -> bool:
    """
    Decrement the edge; delete it when strength reaches 0.
    A missing edge is logged and skipped. Returns True if an edge was found.
    """
    low, high = canonical_pair(a, b)
    result = db.execute(
        update(_connections)
        .where(_pair_filter(low, high))
        .values(strength=_connections.c.strength - 1)
    )
    if result.rowcount == 0:
        logger.warning("Connection %s-%s not found while releasing; skipping", low, high)
        return False
    db.execute(
        delete(_connections).where(_pair_filter(low, high), _connections.c.strength <= 0)
    )
    return True


def release_entry_cooccurrences(db: Session, symbol_ids: Iterable[int]) -> int:
    return sum(1 for low, high in entry_pairs(symbol_ids) if release_cooccurrence(db, low, high))


def cascade_delete_for_symbol(db: Session, symbol_id: int) -> int:
    """Remove every edge touching `symbol_id`."""
    result = db.execute(
        delete(_connections).where(
            or_(
                _connections.c.source_id == symbol_id,
                _connections.c.target_id == symbol_id,
            )
        )
    )
    return result.rowcount or 0


# ---------------------------------------------------------------------------
# Repair
# ---------------------------------------------------------------------------

@dataclass
class GraphRepair:
    pruned: int = 0
    corrected: int = 0
    restored: int = 0


def rebuild_strengths(db: Session, pair_counts: Counter) -> GraphRepair:
    """
    Make stored edges match `pair_counts` ({(low, high): entries}) exactly:
    delete edges with no backing entry, overwrite wrong strengths, and
    recreate missing edges.
    """
    repair = GraphRepair()
    seen: set[tuple[int, int]] = set()

    rows = db.execute(
        select(_connections.c.id, _connections.c.source_id,
               _connections.c.target_id, _connections.c.strength)
    ).all()
    for row in rows:
        pair = canonical_pair(row.source_id, row.target_id)
        true_strength = pair_counts.get(pair, 0)
        if true_strength == 0 or pair in seen:
            db.execute(delete(_connections).where(_connections.c.id == row.id))
            repair.pruned += 1
            continue
        seen.add(pair)
        if row.strength != true_strength:
            db.execute(
                update(_connections)
                .where(_connections.c.id == row.id)
                .values(strength=true_strength)
            )
            repair.corrected += 1

    now = _now()
    for (low, high), strength in sorted(pair_counts.items()):
        if (low, high) in seen or strength <= 0:
            continue
        db.add(SymbolConnection(
            source_id=low,
            target_id=high,
            strength=strength,
            first_seen=now,
            last_seen=now,
        ))
        repair.restored += 1

    db.flush()
    return repair


# ---------------------------------------------------------------------------
# Visualization export (read-only)
# ---------------------------------------------------------------------------

@dataclass
class GraphNode:
    id: int
    name: str
    category: Optional[str]
    level: int
    occurrences: int


@dataclass
class GraphEdge:
    source: int
    target: int
    strength: int


@dataclass
class GraphExport:
    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)


def export_for_visualization(db: Session) -> GraphExport:
    """
    Live symbols as nodes (most frequent first) and connections as
    undirected edges (strongest first). Should storage ever hold the same
    pair twice, the edge keeps the max strength.
    """
    symbols = db.query(Symbol).order_by(Symbol.occurrences.desc(), Symbol.name).all()
    nodes = [
        GraphNode(
            id=s.id,
            name=s.name,
            category=s.category,
            level=s.level,
            occurrences=s.occurrences,
        )
        for s in symbols
    ]

    edges_by_pair: dict[tuple[int, int], GraphEdge] = {}
    for conn in db.query(SymbolConnection).all():
        low, high = canonical_pair(conn.source_id, conn.target_id)
        existing = edges_by_pair.get((low, high))
        if existing is None:
            edges_by_pair[(low, high)] = GraphEdge(source=low, target=high, strength=conn.strength)
        else:
            existing.strength = max(existing.strength, conn.strength)

    edges = sorted(edges_by_pair.values(), key=lambda e: (-e.strength, e.source, e.target))
    return GraphExport(nodes=nodes, edges=edges)
