"""
Constellations router.

GET /constellations          — Detect (and store) the current constellation
GET /constellations/history  — Previously detected constellations
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from anima.core.config import settings
from anima.db.base import get_db
from anima.models.constellation import Constellation
from anima.schemas.constellation import ConstellationDetectResponse, ConstellationResponse
from anima.services.constellations import detect_constellation, list_constellations
from anima.services.serialization import jload

router = APIRouter(prefix="/constellations", tags=["constellations"])


def _to_response(c: Constellation) -> ConstellationResponse:
    return ConstellationResponse(
        id=c.id,
        pattern=c.pattern,
        description=c.description,
        symbols=jload(c.symbols),
        archetype=c.archetype,
        confidence=c.confidence,
        created_at=c.created_at.isoformat() if c.created_at else "",
    )


@router.get(
    "",
    response_model=ConstellationDetectResponse,
    summary="Detect recurring symbols in recent entries",
)
def detect(db: Session = Depends(get_db)):
    """
    Symbols appearing in at least two entries of the detection window
    (top five) form a constellation, named after an elemental family or
    the dominant archetype. A detected constellation is stored.
    """
    constellation = detect_constellation(db)
    if constellation is None:
        return ConstellationDetectResponse(
            message=f"No patterns detected in the last {settings.CONSTELLATION_WINDOW_DAYS} days",
        )
    return ConstellationDetectResponse(constellation=_to_response(constellation))


@router.get(
    "/history",
    response_model=list[ConstellationResponse],
    summary="List stored constellations (newest first)",
)
def history(
    limit: int = Query(default=20, ge=1, le=100, description="Page size."),
    db: Session = Depends(get_db),
):
    return [_to_response(c) for c in list_constellations(db, limit=limit)]
