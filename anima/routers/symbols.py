"""
Symbols router.

GET    /symbols                    — Symbol library (most frequent first)
GET    /symbols/connections        — Co-occurrence graph export
GET    /symbols/{id}/history       — Entries in which a symbol appears
DELETE /symbols/cleanup            — Audit: rebuild counts and edges from entries
POST   /symbols/repair-archetypes  — Re-normalize stored archetype labels
POST   /symbols/merge-duplicates   — Re-normalize stored symbol keys, then audit
"""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from anima.core.errors import SymbolNotFoundError
from anima.db.base import get_db
from anima.schemas.common import ErrorResponse
from anima.models.entry import Entry, EntryKind
from anima.models.symbol import Symbol
from anima.schemas.symbol import (
    ArchetypeFix,
    ArchetypeRepairResponse,
    AuditResponse,
    GraphEdgeOut,
    GraphNodeOut,
    GraphResponse,
    MergeResponse,
    SymbolHistoryResponse,
    SymbolOccurrence,
    SymbolResponse,
)
from anima.services import audit as audit_service
from anima.services.graph import export_for_visualization
from anima.services.ledger import LEVEL_NAMES
from anima.services.serialization import entry_symbols

router = APIRouter(prefix="/symbols", tags=["symbols"])

PREVIEW_LENGTH = 100


def _iso(dt) -> str:
    return dt.isoformat() if dt else ""


def _symbol_to_response(symbol: Symbol) -> SymbolResponse:
    return SymbolResponse(
        id=symbol.id,
        name=symbol.name,
        category=symbol.category,
        meaning=symbol.meaning,
        description=symbol.description,
        archetype=symbol.archetype,
        occurrences=symbol.occurrences,
        level=symbol.level,
        level_name=LEVEL_NAMES.get(symbol.level, "RAW"),
        first_seen=_iso(symbol.first_seen),
        last_seen=_iso(symbol.last_seen),
    )


def _audit_to_response(result: audit_service.AuditResult) -> AuditResponse:
    return AuditResponse(
        deleted_count=result.deleted_count,
        pruned_symbols=result.pruned_symbols,
        corrected_counts={k: list(v) for k, v in result.corrected_counts.items()},
        restored_symbols=result.restored_symbols,
        pruned_connections=result.pruned_connections,
        corrected_connections=result.corrected_connections,
        restored_connections=result.restored_connections,
    )


@router.get("", response_model=list[SymbolResponse], summary="List the symbol library")
def list_symbols(db: Session = Depends(get_db)):
    symbols = db.execute(
        select(Symbol).order_by(Symbol.occurrences.desc(), Symbol.name)
    ).scalars().all()
    return [_symbol_to_response(s) for s in symbols]


@router.get(
    "/connections",
    response_model=GraphResponse,
    summary="Export the co-occurrence graph",
)
def get_connections(db: Session = Depends(get_db)):
    """Nodes are live symbols; edges are undirected and carry co-occurrence strength."""
    export = export_for_visualization(db)
    return GraphResponse(
        nodes=[GraphNodeOut(**vars(n)) for n in export.nodes],
        edges=[GraphEdgeOut(**vars(e)) for e in export.edges],
    )


@router.get(
    "/{symbol_id}/history",
    response_model=SymbolHistoryResponse,
    summary="Entries in which a symbol appears",
    responses={404: {"model": ErrorResponse, "description": "Symbol not found."}},
)
def symbol_history(symbol_id: int, db: Session = Depends(get_db)):
    symbol = db.get(Symbol, symbol_id)
    if symbol is None:
        raise SymbolNotFoundError(symbol_id)

    occurrences = []
    entries = db.execute(
        select(Entry).order_by(Entry.created_at.desc(), Entry.id.desc())
    ).scalars()
    for entry in entries:
        if symbol.name not in entry_symbols(entry):
            continue
        occurrences.append(SymbolOccurrence(
            entry_id=entry.id,
            created_at=_iso(entry.created_at),
            type=entry.kind.value,
            content_preview=(
                (entry.content_text or "")[:PREVIEW_LENGTH]
                if entry.kind is EntryKind.text else "[IMAGE]"
            ),
        ))
    return SymbolHistoryResponse(symbol=_symbol_to_response(symbol), occurrences=occurrences)


@router.delete(
    "/cleanup",
    response_model=AuditResponse,
    summary="Rebuild symbol counts and connections from the entry log",
)
def cleanup(db: Session = Depends(get_db)):
    """
    Safe to run at any time. Symbols no entry references are deleted with
    their connections, drifted counts are corrected, and edge strengths are
    recomputed from the entries. Running it twice changes nothing the
    second time.
    """
    return _audit_to_response(audit_service.audit(db))


@router.post(
    "/repair-archetypes",
    response_model=ArchetypeRepairResponse,
    summary="Re-normalize stored archetype labels",
)
def repair_archetypes(db: Session = Depends(get_db)):
    repair = audit_service.repair_archetypes(db)
    return ArchetypeRepairResponse(
        total=repair.total,
        entries=[
            ArchetypeFix(target=str(entry_id), before=before, after=after)
            for entry_id, (before, after) in repair.entries.items()
        ],
        symbols=[
            ArchetypeFix(target=name, before=before, after=after)
            for name, (before, after) in repair.symbols.items()
        ],
    )


@router.post(
    "/merge-duplicates",
    response_model=MergeResponse,
    summary="Collapse symbols that now normalize to the same key",
)
def merge_duplicates(db: Session = Depends(get_db)):
    result = audit_service.merge_duplicate_symbols(db)
    return MergeResponse(
        entries_rewritten=result.entries_rewritten,
        merged_symbols=result.merged_symbols,
        audit=_audit_to_response(result.audit),
    )
