"""
Analyze router.

POST /analyze  — run the AI analysis and fold the entry into the library
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from anima.db.base import get_db
from anima.schemas.common import ErrorResponse
from anima.schemas.analysis import AnalyzeRequest, AnalyzeResponse, SymbolDetailOut
from anima.services.aggregator import IngestResult, analyze_and_ingest
from anima.services.oracle import AnimaOracle, get_oracle

router = APIRouter(tags=["analyze"])


def _to_response(ir: IngestResult) -> AnalyzeResponse:
    analysis = ir.analysis
    return AnalyzeResponse(
        entry_id=ir.entry.id,
        analysis_log=analysis.analysis_log,
        detected_symbols=analysis.detected_symbols,
        normalized_symbols=ir.symbols,
        dominant_archetype=ir.archetype,
        reflection_question=analysis.reflection_question,
        visual_mood=analysis.visual_mood,
        symbol_details=[
            SymbolDetailOut(
                name=d.name,
                category=d.category.value if d.category else None,
                meaning=d.meaning,
            )
            for d in analysis.symbol_details
        ],
    )


@router.post(
    "/analyze",
    response_model=AnalyzeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Analyze a dream entry and store it",
    responses={
        201: {"description": "Entry analyzed and stored."},
        422: {"description": "Validation error (empty or oversized content, unknown type)."},
        500: {"model": ErrorResponse, "description": "The analysis failed unexpectedly."},
        502: {"model": ErrorResponse, "description": "The AI answered with something that is not an analysis."},
        503: {"model": ErrorResponse, "description": "AI or storage unavailable."},
    },
)
def analyze(
    payload: AnalyzeRequest,
    db: Session = Depends(get_db),
    oracle: AnimaOracle = Depends(get_oracle),
):
    """
    Send the entry to the AI collaborator, then persist it in one transaction:

    - symbols are normalized to canonical keys (plural → singular, lowercase);
    - the archetype is mapped onto the closed vocabulary, or dropped;
    - every symbol's count and level is updated in the library;
    - every pair of symbols in the entry strengthens its connection.

    Nothing is written if the AI call fails.
    """
    result = analyze_and_ingest(db, payload.type, payload.content, oracle)
    return _to_response(result)
