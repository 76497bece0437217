"""
Symbol ledger: the aggregate store of distinct symbols.

Rules
-----
- Every change to `occurrences` goes through upsert_occurrence /
  decrement_occurrence / reconcile. Those also recompute `level`, so
  level can never drift from the count. The only other writer is the
  symbol merge in the audit, which sums counts and reconciles right after.
- Increments and decrements are single SQL statements (ON CONFLICT DO
  UPDATE / conditional UPDATE). No read-modify-write in Python.
- A symbol whose count reaches 0 is deleted together with its connections.
- Flush only. The caller (aggregator / audit) owns the commit.

Public API
----------
level_for(occurrences)                                  -> int
describe_symbol(name, level, meaning, archetype, category) -> str
upsert_occurrence(db, name, archetype, category, meaning) -> Symbol
on_level_increase(symbol, new_level, meaning_hint)      -> bool
decrement_occurrence(db, name)                          -> Optional[int]
replay_counts(entries)                                  -> Counter[str]
reconcile(db, entries)                                  -> ReconcileResult
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import case, delete, or_, select, update
from sqlalchemy.orm import Session

from anima.core.config import settings
from anima.db.upsert import upsert_insert
from anima.models.entry import Entry
from anima.models.symbol import Symbol
from anima.services import graph
from anima.services.serialization import entry_symbols

logger = logging.getLogger(__name__)

_symbols = Symbol.__table__


# ---------------------------------------------------------------------------
# Levels
# ---------------------------------------------------------------------------

# (max occurrences, level); anything above the last bound is MAX_LEVEL.
LEVEL_BOUNDS: tuple[tuple[int, int], ...] = ((2, 1), (5, 2), (10, 3), (20, 4))
MAX_LEVEL = 5

LEVEL_NAMES = {
    1: "RAW",
    2: "EMERGING",
    3: "DEFINED",
    4: "EVOLVED",
    5: "MASTERED",
}


def level_for(occurrences: int) -> int:
    """Step function of the occurrence count. Monotonic, no hidden state."""
    for bound, level in LEVEL_BOUNDS:
        if occurrences <= bound:
            return level
    return MAX_LEVEL


def _level_sql(occurrences):
    """Same step function as level_for, as a SQL CASE over a column expression."""
    return case(
        *[(occurrences <= bound, level) for bound, level in LEVEL_BOUNDS],
        else_=MAX_LEVEL,
    )


def _fill_if_empty(current, incoming):
    """Keep the stored value unless it is NULL or empty."""
    return case(
        (or_(current.is_(None), current == ""), incoming),
        else_=current,
    )


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


# ---------------------------------------------------------------------------
# Descriptions (best-effort enrichment)
# ---------------------------------------------------------------------------

_LEVEL_ELABORATION = {
    1: "Surowy sygnał: symbol pojawił się w zapisie, jego kontur jest jeszcze niewyraźny.",
    2: "Symbol zaczyna się krystalizować. Powraca w kolejnych zapisach i nabiera ostrości.",
    3: (
        "Symbol jest wyraźny. Jego struktura staje się czytelna, a znaczenie wykracza "
        "poza pojedynczy sen i zaczyna łączyć się z innymi obrazami."
    ),
    4: (
        "Symbol osiągnął rozwiniętą formę. Powtarzalność wskazuje na aktywny kompleks: "
        "warto prześledzić, w jakich okolicznościach powraca i co poprzedza jego pojawienie się."
    ),
    5: (
        "Symbol jest w pełni rozwinięty. Stał się stałym elementem osobistej mitologii; "
        "jego obecność to zaproszenie do świadomego dialogu z treścią, którą niesie, "
        "zamiast biernego przyglądania się jej kolejnym powrotom."
    ),
}


def describe_symbol(
    name: str,
    level: int,
    meaning: Optional[str] = None,
    archetype: Optional[str] = None,
    category: Optional[str] = None,
) -> str:
    """
    Build a description whose depth scales with level: each level adds its
    own elaboration on top of the ones below, so length never shrinks as
    the level rises.
    """
    level = max(1, min(level, MAX_LEVEL))
    parts = [f"[{LEVEL_NAMES[level]}] {name.upper()}."]
    if meaning:
        parts.append(meaning.strip().rstrip(".") + ".")
    for lvl in range(1, level + 1):
        parts.append(_LEVEL_ELABORATION[lvl])
    if level >= 3 and archetype:
        parts.append(f"Rezonuje z archetypem {archetype}.")
    if level >= 4 and category:
        parts.append(f"Kategoria: {category}.")
    return " ".join(parts)


def on_level_increase(
    symbol: Symbol,
    new_level: int,
    meaning_hint: Optional[str] = None,
) -> bool:
    """
    Synthesize a richer description after a level-up when the current one
    is missing or too short. Returns True if the description was replaced.
    Never raises: a failure here must not abort the occurrence update.
    """
    try:
        current = (symbol.description or "").strip()
        if len(current) >= settings.DESCRIPTION_MIN_LENGTH:
            return False
        symbol.description = describe_symbol(
            name=symbol.name,
            level=new_level,
            meaning=meaning_hint or symbol.meaning,
            archetype=symbol.archetype,
            category=symbol.category,
        )
        return True
    except Exception:
        logger.exception("Description synthesis failed for symbol %r", symbol.name)
        return False


# ---------------------------------------------------------------------------
# Occurrence updates
# ---------------------------------------------------------------------------

def _load(db: Session, name: str) -> Optional[Symbol]:
    return db.execute(
        select(Symbol)
        .where(Symbol.name == name)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def upsert_occurrence(
    db: Session,
    name: str,
    archetype_hint: Optional[str] = None,
    category_hint: Optional[str] = None,
    meaning_hint: Optional[str] = None,
) -> Symbol:
    """
    Atomic increment-or-create keyed by canonical name.

    New symbol: occurrences=1, level=1, archetype/category/meaning from hints.
    Existing:   occurrences+1, last_seen=now; category/meaning are only
                filled when currently empty; archetype is kept.
    """
    now = _now()
    stmt = upsert_insert(db, _symbols).values(
        name=name,
        occurrences=1,
        level=level_for(1),
        archetype=archetype_hint,
        category=category_hint or None,
        meaning=meaning_hint or None,
        first_seen=now,
        last_seen=now,
    )
    incremented = _symbols.c.occurrences + 1
    stmt = stmt.on_conflict_do_update(
        index_elements=[_symbols.c.name],
        set_={
            "occurrences": incremented,
            "level": _level_sql(incremented),
            "last_seen": stmt.excluded.last_seen,
            "category": _fill_if_empty(_symbols.c.category, stmt.excluded.category),
            "meaning": _fill_if_empty(_symbols.c.meaning, stmt.excluded.meaning),
        },
    )
    db.execute(stmt)

    symbol = _load(db, name)
    if symbol.occurrences > 1 and symbol.level > level_for(symbol.occurrences - 1):
        if on_level_increase(symbol, symbol.level, meaning_hint):
            db.flush()
    return symbol


def decrement_occurrence(db: Session, name: str) -> Optional[int]:
    """
    Atomic decrement floored at 0. Deletes the symbol (and its connections)
    when the count reaches 0.

    Returns the remaining count, or None when the symbol did not exist.
    A missing symbol is a historical inconsistency: logged, never raised.
    """
    decremented = case(
        (_symbols.c.occurrences > 0, _symbols.c.occurrences - 1),
        else_=0,
    )
    result = db.execute(
        update(_symbols)
        .where(_symbols.c.name == name)
        .values(occurrences=decremented, level=_level_sql(decremented))
    )
    if result.rowcount == 0:
        logger.warning("Symbol %r not found while decrementing; skipping", name)
        return None

    row = db.execute(
        select(_symbols.c.id, _symbols.c.occurrences).where(_symbols.c.name == name)
    ).one_or_none()
    if row is None:
        return 0
    if row.occurrences == 0:
        _delete_symbol(db, row.id)
    return row.occurrences


def _delete_symbol(db: Session, symbol_id: int) -> None:
    graph.cascade_delete_for_symbol(db, symbol_id)
    db.execute(delete(_symbols).where(_symbols.c.id == symbol_id))


def _set_occurrences(db: Session, symbol_id: int, occurrences: int) -> None:
    db.execute(
        update(_symbols)
        .where(_symbols.c.id == symbol_id)
        .values(occurrences=occurrences, level=level_for(occurrences))
    )


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------

@dataclass
class ReconcileResult:
    """What a reconcile pass changed in the ledger."""
    pruned: list[str] = field(default_factory=list)
    corrected: dict[str, tuple[int, int]] = field(default_factory=dict)  # name -> (old, new)
    restored: list[str] = field(default_factory=list)

    @property
    def deleted_count(self) -> int:
        return len(self.pruned)


def replay_counts(entries: Iterable[Entry]) -> Counter:
    """True occurrence count per key: number of entries whose stored list contains it."""
    counts: Counter = Counter()
    for entry in entries:
        counts.update(set(entry_symbols(entry)))
    return counts


def reconcile(db: Session, entries: Iterable[Entry]) -> ReconcileResult:
    """
    Rebuild ledger counts from the entry log alone.

    - Symbols absent from the replay are deleted (with their connections).
    - Surviving symbols get the replayed count (and its level).
    - Keys present in entries but missing from the ledger are recreated.

    Idempotent: a second pass over the same entries changes nothing.
    """
    counts = replay_counts(entries)
    result = ReconcileResult()

    existing = db.execute(
        select(_symbols.c.id, _symbols.c.name, _symbols.c.occurrences)
    ).all()
    known = set()

    for row in existing:
        known.add(row.name)
        true_count = counts.get(row.name, 0)
        if true_count == 0:
            _delete_symbol(db, row.id)
            result.pruned.append(row.name)
        elif true_count != row.occurrences:
            _set_occurrences(db, row.id, true_count)
            result.corrected[row.name] = (row.occurrences, true_count)

    now = _now()
    for name in sorted(set(counts) - known):
        db.add(Symbol(
            name=name,
            occurrences=counts[name],
            level=level_for(counts[name]),
            first_seen=now,
            last_seen=now,
        ))
        result.restored.append(name)

    db.flush()
    return result
