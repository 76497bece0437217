"""
Consistency auditor: rebuilds the ledger and the graph from the entry log.

The entry log is the source of truth. Counters can drift (a crash between
statements, manual edits, older code paths); an audit pass makes them agree
with the stored entries again and is safe to run at any time.

Public API
----------
audit(db)                    -> AuditResult
repair_archetypes(db)        -> ArchetypeRepair
merge_duplicate_symbols(db)  -> MergeResult
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from anima.core.errors import StorageUnavailableError
from anima.models.entry import Entry
from anima.models.symbol import Symbol
from anima.services import graph, ledger
from anima.services.archetype_normalizer import normalize_archetype
from anima.services.serialization import entry_symbols, jdump
from anima.services.symbol_normalizer import normalize_symbol, normalize_symbols

logger = logging.getLogger(__name__)


@dataclass
class AuditResult:
    pruned_symbols: list[str] = field(default_factory=list)
    corrected_counts: dict[str, tuple[int, int]] = field(default_factory=dict)
    restored_symbols: list[str] = field(default_factory=list)
    pruned_connections: int = 0
    corrected_connections: int = 0
    restored_connections: int = 0

    @property
    def deleted_count(self) -> int:
        return len(self.pruned_symbols)

    @property
    def changed(self) -> bool:
        return bool(
            self.pruned_symbols or self.corrected_counts or self.restored_symbols
            or self.pruned_connections or self.corrected_connections
            or self.restored_connections
        )


def _pair_counts(entries: list[Entry], id_by_name: dict[str, int]) -> Counter:
    """How many entries contain each canonical pair of live symbols."""
    counts: Counter = Counter()
    for entry in entries:
        ids = [id_by_name[k] for k in set(entry_symbols(entry)) if k in id_by_name]
        counts.update(graph.entry_pairs(ids))
    return counts


def _audit(db: Session) -> AuditResult:
    """Flush only."""
    entries = db.execute(select(Entry)).scalars().all()

    reconciled = ledger.reconcile(db, entries)

    id_by_name = {
        row.name: row.id for row in db.execute(select(Symbol.id, Symbol.name)).all()
    }
    repair = graph.rebuild_strengths(db, _pair_counts(entries, id_by_name))

    return AuditResult(
        pruned_symbols=reconciled.pruned,
        corrected_counts=reconciled.corrected,
        restored_symbols=reconciled.restored,
        pruned_connections=repair.pruned,
        corrected_connections=repair.corrected,
        restored_connections=repair.restored,
    )


def _commit(db: Session, what: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("%s failed; rolled back", what)
        raise StorageUnavailableError(str(exc)) from exc


def audit(db: Session) -> AuditResult:
    """Reconcile symbols, then edges, against the full entry set. One commit."""
    result = _audit(db)
    _commit(db, "Audit")
    logger.info(
        "Audit: %d symbol(s) pruned, %d corrected, %d restored; "
        "%d connection(s) pruned, %d corrected, %d restored",
        len(result.pruned_symbols), len(result.corrected_counts), len(result.restored_symbols),
        result.pruned_connections, result.corrected_connections, result.restored_connections,
    )
    return result


# ---------------------------------------------------------------------------
# Maintenance passes
# ---------------------------------------------------------------------------

@dataclass
class ArchetypeRepair:
    entries: dict[int, tuple[str, Optional[str]]] = field(default_factory=dict)
    symbols: dict[str, tuple[str, Optional[str]]] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.entries) + len(self.symbols)


def repair_archetypes(db: Session) -> ArchetypeRepair:
    """
    Re-run the archetype normalizer over stored entries and symbols.
    Unrecognized labels are cleared rather than kept.
    """
    repair = ArchetypeRepair()

    for entry in db.execute(select(Entry).where(Entry.dominant_archetype.is_not(None))).scalars():
        fixed = normalize_archetype(entry.dominant_archetype)
        if fixed != entry.dominant_archetype:
            repair.entries[entry.id] = (entry.dominant_archetype, fixed)
            entry.dominant_archetype = fixed

    for symbol in db.execute(select(Symbol).where(Symbol.archetype.is_not(None))).scalars():
        fixed = normalize_archetype(symbol.archetype)
        if fixed != symbol.archetype:
            repair.symbols[symbol.name] = (symbol.archetype, fixed)
            symbol.archetype = fixed

    _commit(db, "Archetype repair")
    logger.info(
        "Archetype repair: %d entries, %d symbol(s) rewritten",
        len(repair.entries), len(repair.symbols),
    )
    return repair


@dataclass
class MergeResult:
    entries_rewritten: list[int] = field(default_factory=list)
    merged_symbols: dict[str, str] = field(default_factory=dict)  # old name -> kept key
    audit: AuditResult = field(default_factory=AuditResult)


_METADATA = ("category", "meaning", "description", "archetype")


def _keeper(key: str, rows: list[Symbol]) -> Symbol:
    """The row already named `key`, otherwise the most frequent one."""
    for row in rows:
        if row.name == key:
            return row
    return max(rows, key=lambda row: (row.occurrences, -row.id))


def _merge_symbol_rows(db: Session, merged: dict[str, str]) -> None:
    """
    Collapse rows whose names normalize to the same key into one row named
    by that key. Counts are summed, empty metadata is filled from the
    duplicates, and the earliest first_seen survives. Flush only.
    """
    groups: dict[str, list[Symbol]] = {}
    for symbol in db.execute(select(Symbol).order_by(Symbol.id)).scalars():
        key = normalize_symbol(symbol.name)
        if key:
            groups.setdefault(key, []).append(symbol)

    renames: list[tuple[Symbol, str]] = []
    for key, rows in groups.items():
        keeper = _keeper(key, rows)
        for dup in rows:
            if dup is keeper:
                continue
            for attr in _METADATA:
                if not getattr(keeper, attr) and getattr(dup, attr):
                    setattr(keeper, attr, getattr(dup, attr))
            keeper.occurrences += dup.occurrences
            keeper.first_seen = min(keeper.first_seen, dup.first_seen)
            keeper.last_seen = max(keeper.last_seen, dup.last_seen)
            merged[dup.name] = key
            graph.cascade_delete_for_symbol(db, dup.id)
            db.delete(dup)
        keeper.level = ledger.level_for(keeper.occurrences)
        if keeper.name != key:
            merged[keeper.name] = key
            renames.append((keeper, key))

    # Duplicates must be gone before a keeper takes over their unique name.
    db.flush()
    for keeper, key in renames:
        keeper.name = key
    db.flush()


def merge_duplicate_symbols(db: Session) -> MergeResult:
    """
    Re-normalize the keys stored on every entry (e.g. entries written before
    a plural was added to the table) and collapse the symbol rows that now
    share a key, keeping their metadata. Then audit so counts and edges
    match the rewritten entries. One commit.
    """
    result = MergeResult()
    for entry in db.execute(select(Entry)).scalars().all():
        stored = entry_symbols(entry)
        merged = normalize_symbols(stored)
        if merged != stored:
            entry.detected_symbols = jdump(merged)
            result.entries_rewritten.append(entry.id)
    db.flush()

    _merge_symbol_rows(db, result.merged_symbols)
    result.audit = _audit(db)
    _commit(db, "Symbol merge")
    logger.info(
        "Symbol merge: %d entries rewritten, %d symbol(s) merged, %d pruned",
        len(result.entries_rewritten), len(result.merged_symbols), result.audit.deleted_count,
    )
    return result
