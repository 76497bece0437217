"""
Entry aggregator: folds one analysis into the entry log, the symbol
ledger and the connection graph, and reverses that exactly on retraction.

Public API
----------
ingest(db, kind, content, analysis)        -> IngestResult   (single, transactional)
analyze_and_ingest(db, kind, content, oracle) -> IngestResult
retract(db, entry_id)                       -> RetractResult  (single, transactional)

Internal
--------
_ingest_one(db, kind, content, analysis)   -> IngestResult   (flush only, no commit)
_retract_one(db, entry)                    -> RetractResult  (flush only, no commit)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from anima.core.errors import (
    AnalysisFailedError,
    AnimaException,
    EntryNotFoundError,
    StorageUnavailableError,
)
from anima.models.entry import Entry, EntryKind
from anima.models.symbol import NAME_MAX_LENGTH, Symbol
from anima.schemas.analysis import AnalysisResult, SymbolDetail
from anima.services import graph, ledger
from anima.services.archetype_normalizer import normalize_archetype
from anima.services.serialization import entry_symbols, jdump
from anima.services.symbol_normalizer import normalize_symbol, normalize_symbols

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class IngestResult:
    """The persisted Entry and the analysis as stored (archetype normalized)."""
    entry: Entry
    analysis: AnalysisResult
    symbols: list[str] = field(default_factory=list)
    archetype: Optional[str] = None
    pairs_recorded: int = 0


@dataclass
class RetractResult:
    entry_id: int
    symbols: list[str] = field(default_factory=list)
    deleted_symbols: list[str] = field(default_factory=list)
    pairs_released: int = 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _hints_by_key(details: list[SymbolDetail]) -> dict[str, SymbolDetail]:
    """Per-symbol hints keyed by canonical name; the first detail per key wins."""
    hints: dict[str, SymbolDetail] = {}
    for detail in details:
        key = normalize_symbol(detail.name)
        if key and key not in hints:
            hints[key] = detail
    return hints


def _kind_value(kind) -> str:
    return kind.value if isinstance(kind, EntryKind) else str(kind)


def _symbol_keys(raw: list[str]) -> list[str]:
    """Canonical keys in first-seen order; keys too long for the ledger are dropped."""
    keys = []
    for key in normalize_symbols(raw):
        if len(key) > NAME_MAX_LENGTH:
            logger.warning("Dropping symbol label of %d characters: %r...", len(key), key[:40])
            continue
        keys.append(key)
    return keys


def _resolve_archetype(raw: str) -> Optional[str]:
    archetype = normalize_archetype(raw)
    if archetype is None and raw:
        logger.warning("Archetype %r not recognized; storing entry without one", raw)
    return archetype


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------

def _ingest_one(
    db: Session,
    kind,
    content: str,
    analysis: AnalysisResult,
) -> IngestResult:
    """
    Persist the Entry, then ledger, then graph.
    Calls db.flush() but does NOT commit. The caller owns commit / rollback.
    """
    kind = _kind_value(kind)
    keys = _symbol_keys(analysis.detected_symbols)
    archetype = _resolve_archetype(analysis.dominant_archetype)

    entry = Entry(
        kind=EntryKind(kind),
        content_text=content if kind == EntryKind.text.value else None,
        image_url=content if kind == EntryKind.image.value else None,
        detected_symbols=jdump(keys),
        dominant_archetype=archetype,
        visual_mood=analysis.visual_mood or None,
        ai_analysis=jdump(analysis.raw or analysis.model_dump()),
        analysis_log=analysis.analysis_log or None,
        reflection_question=analysis.reflection_question or None,
    )
    db.add(entry)
    db.flush()

    # Row locks are taken in sorted key order so concurrent ingestions and
    # retractions of overlapping symbol sets cannot deadlock.
    hints = _hints_by_key(analysis.symbol_details)
    id_by_key: dict[str, int] = {}
    for key in sorted(keys):
        hint = hints.get(key)
        symbol = ledger.upsert_occurrence(
            db,
            key,
            archetype_hint=archetype,
            category_hint=hint.category.value if hint and hint.category else None,
            meaning_hint=hint.meaning if hint else None,
        )
        id_by_key[key] = symbol.id
    symbol_ids = [id_by_key[key] for key in keys]

    pairs = 0
    if len(symbol_ids) >= 2:
        pairs = graph.record_entry_cooccurrences(db, symbol_ids)

    enriched = analysis.model_copy(update={
        "detected_symbols": list(analysis.detected_symbols),
        "dominant_archetype": archetype or "",
    })
    return IngestResult(
        entry=entry,
        analysis=enriched,
        symbols=keys,
        archetype=archetype,
        pairs_recorded=pairs,
    )


def ingest(
    db: Session,
    kind,
    content: str,
    analysis: AnalysisResult,
) -> IngestResult:
    """Persist and fold a single analysis. One commit; all or nothing."""
    try:
        result = _ingest_one(db, kind, content, analysis)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Ingestion failed; rolled back")
        raise StorageUnavailableError(str(exc)) from exc
    db.refresh(result.entry)
    logger.info(
        "Ingested entry %s: %d symbol(s), %d pair(s), archetype=%s",
        result.entry.id, len(result.symbols), result.pairs_recorded, result.archetype,
    )
    return result


def analyze_and_ingest(db: Session, kind, content: str, oracle) -> IngestResult:
    """
    Ask the AI collaborator first. Its failures (AIUnavailableError,
    MalformedAIOutputError) propagate before anything is written; anything
    else it raises becomes AnalysisFailedError.
    """
    try:
        analysis = oracle.analyze(_kind_value(kind), content)
    except AnimaException:
        raise
    except Exception as exc:
        logger.exception("Analysis of %s entry failed", _kind_value(kind))
        raise AnalysisFailedError(str(exc)) from exc
    return ingest(db, kind, content, analysis)


# ---------------------------------------------------------------------------
# Retraction
# ---------------------------------------------------------------------------

def _retract_one(db: Session, entry: Entry) -> RetractResult:
    """
    Exact inverse of _ingest_one, driven by the stored keys only.
    Graph first (needs the symbol ids), then ledger, then the entry.
    """
    keys = list(dict.fromkeys(entry_symbols(entry)))
    result = RetractResult(entry_id=entry.id, symbols=keys)

    if keys:
        rows = db.execute(select(Symbol.id, Symbol.name).where(Symbol.name.in_(keys))).all()
        ids = [row.id for row in rows]
        missing = set(keys) - {row.name for row in rows}
        if missing:
            logger.warning(
                "Entry %s references symbols missing from the ledger: %s",
                entry.id, sorted(missing),
            )
        if len(ids) >= 2:
            result.pairs_released = graph.release_entry_cooccurrences(db, ids)

    remaining = {key: ledger.decrement_occurrence(db, key) for key in sorted(keys)}
    result.deleted_symbols = [key for key in keys if remaining[key] == 0]

    db.delete(entry)
    db.flush()
    return result


def retract(db: Session, entry_id: int) -> RetractResult:
    """Delete an entry and roll back its ledger and graph contribution. One commit."""
    entry = db.get(Entry, entry_id)
    if entry is None:
        raise EntryNotFoundError(entry_id)
    try:
        result = _retract_one(db, entry)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Retraction of entry %s failed; rolled back", entry_id)
        raise StorageUnavailableError(str(exc)) from exc
    logger.info(
        "Retracted entry %s: %d symbol(s), %d deleted, %d pair(s) released",
        entry_id, len(result.symbols), len(result.deleted_symbols), result.pairs_released,
    )
    return result
