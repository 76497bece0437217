"""
Entry read / retract schemas.

GET    /entries       → EntryListResponse
GET    /entries/{id}  → EntryResponse
DELETE /entries/{id}  → RetractResponse
"""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class EntryResponse(BaseModel):
    """A stored journal entry with its analysis."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: str = Field(description="ISO timestamp of ingestion.")
    type: str = Field(description='"text" or "image".')
    content: Optional[str] = Field(
        default=None,
        description="Entry text for text entries, image URL for image entries.",
    )
    detected_symbols: list[str] = Field(
        default_factory=list,
        description="Canonical symbol keys, as counted in the symbol library.",
    )
    dominant_archetype: Optional[str] = None
    visual_mood: Optional[str] = None
    analysis_log: Optional[str] = None
    reflection_question: Optional[str] = None
    ai_analysis: Optional[dict[str, Any]] = Field(
        default=None,
        description="Raw AI output, verbatim.",
    )


class EntryListResponse(BaseModel):
    total: int
    items: list[EntryResponse]


class RetractResponse(BaseModel):
    """What deleting an entry undid."""
    entry_id: int
    symbols: list[str] = Field(description="Symbol keys whose counts were decremented.")
    deleted_symbols: list[str] = Field(
        default_factory=list,
        description="Symbols removed because their count reached zero.",
    )
    pairs_released: int = Field(
        default=0,
        description="Co-occurrence pairs decremented in the connection graph.",
    )
