"""
Symbol library, graph and maintenance schemas.

GET    /symbols                    → list[SymbolResponse]
GET    /symbols/{id}/history       → SymbolHistoryResponse
GET    /symbols/connections        → GraphResponse
DELETE /symbols/cleanup            → AuditResponse
POST   /symbols/repair-archetypes  → ArchetypeRepairResponse
POST   /symbols/merge-duplicates   → MergeResponse
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SymbolResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    category: Optional[str] = None
    meaning: Optional[str] = None
    description: Optional[str] = None
    archetype: Optional[str] = None
    occurrences: int
    level: int = Field(description="1 (RAW) … 5 (MASTERED), derived from occurrences.")
    level_name: str
    first_seen: str
    last_seen: str


class SymbolOccurrence(BaseModel):
    """One entry in which a symbol appears."""
    entry_id: int
    created_at: str
    type: str
    content_preview: str = Field(description="First 100 characters, or [IMAGE].")


class SymbolHistoryResponse(BaseModel):
    symbol: SymbolResponse
    occurrences: list[SymbolOccurrence]


class GraphNodeOut(BaseModel):
    id: int
    name: str
    category: Optional[str] = None
    level: int
    occurrences: int


class GraphEdgeOut(BaseModel):
    source: int
    target: int
    strength: int


class GraphResponse(BaseModel):
    """Nodes and undirected weighted edges, ready for a force layout."""
    nodes: list[GraphNodeOut]
    edges: list[GraphEdgeOut]


class AuditResponse(BaseModel):
    deleted_count: int = Field(description="Symbols pruned because no entry references them.")
    pruned_symbols: list[str]
    corrected_counts: dict[str, list[int]] = Field(
        default_factory=dict,
        description="name → [stored, replayed] for every corrected count.",
    )
    restored_symbols: list[str] = Field(default_factory=list)
    pruned_connections: int = 0
    corrected_connections: int = 0
    restored_connections: int = 0


class ArchetypeFix(BaseModel):
    target: str = Field(description="Entry id or symbol name.")
    before: str
    after: Optional[str] = None


class ArchetypeRepairResponse(BaseModel):
    total: int
    entries: list[ArchetypeFix]
    symbols: list[ArchetypeFix]


class MergeResponse(BaseModel):
    entries_rewritten: list[int]
    merged_symbols: dict[str, str] = Field(
        default_factory=dict,
        description="Old symbol name -> the canonical key it was merged into.",
    )
    audit: AuditResponse
