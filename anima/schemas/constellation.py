"""
Constellation schemas.

GET /constellations          → ConstellationDetectResponse
GET /constellations/history  → list[ConstellationResponse]
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class ConstellationResponse(BaseModel):
    id: int
    pattern: str = Field(examples=["ZANURZENIE"])
    description: str
    symbols: list[str]
    archetype: Optional[str] = None
    confidence: float = Field(ge=0.0, le=1.0)
    created_at: str


class ConstellationDetectResponse(BaseModel):
    """`constellation` is null when no symbol recurred inside the window."""
    constellation: Optional[ConstellationResponse] = None
    message: Optional[str] = None
