"""
Entries router.

GET    /entries       — List entries (paginated, newest first)
GET    /entries/{id}  — Single entry
DELETE /entries/{id}  — Delete an entry and undo its contribution
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from anima.core.errors import EntryNotFoundError
from anima.db.base import get_db
from anima.schemas.common import ErrorResponse
from anima.models.entry import Entry, EntryKind
from anima.schemas.entry import EntryListResponse, EntryResponse, RetractResponse
from anima.services.aggregator import retract
from anima.services.serialization import entry_symbols, jload_dict

router = APIRouter(prefix="/entries", tags=["entries"])


def _entry_to_response(entry: Entry) -> EntryResponse:
    return EntryResponse(
        id=entry.id,
        created_at=entry.created_at.isoformat() if entry.created_at else "",
        type=entry.kind.value,
        content=entry.content_text if entry.kind is EntryKind.text else entry.image_url,
        detected_symbols=entry_symbols(entry),
        dominant_archetype=entry.dominant_archetype,
        visual_mood=entry.visual_mood,
        analysis_log=entry.analysis_log,
        reflection_question=entry.reflection_question,
        ai_analysis=jload_dict(entry.ai_analysis),
    )


@router.get(
    "",
    response_model=EntryListResponse,
    summary="List entries (newest first)",
)
def list_entries(
    limit: int = Query(default=50, ge=1, le=200, description="Page size."),
    offset: int = Query(default=0, ge=0, description="Skip N items."),
    db: Session = Depends(get_db),
):
    total = db.execute(select(func.count(Entry.id))).scalar_one()
    items = db.execute(
        select(Entry).order_by(Entry.created_at.desc(), Entry.id.desc()).limit(limit).offset(offset)
    ).scalars().all()
    return EntryListResponse(total=total, items=[_entry_to_response(e) for e in items])


@router.get(
    "/{entry_id}",
    response_model=EntryResponse,
    summary="Retrieve a single entry",
    responses={404: {"model": ErrorResponse, "description": "Entry not found."}},
)
def get_entry(entry_id: int, db: Session = Depends(get_db)):
    entry = db.get(Entry, entry_id)
    if entry is None:
        raise EntryNotFoundError(entry_id)
    return _entry_to_response(entry)


@router.delete(
    "/{entry_id}",
    response_model=RetractResponse,
    summary="Delete an entry",
    responses={
        200: {"description": "Entry deleted; symbol counts and connections rolled back."},
        404: {"model": ErrorResponse, "description": "Entry not found."},
    },
)
def delete_entry(entry_id: int, db: Session = Depends(get_db)):
    """
    Reverse the entry's contribution using the symbol keys stored on it:
    each symbol is decremented (and removed at zero, with its connections),
    each pair it recorded is weakened, then the entry is deleted.
    """
    result = retract(db, entry_id)
    return RetractResponse(
        entry_id=result.entry_id,
        symbols=result.symbols,
        deleted_symbols=result.deleted_symbols,
        pairs_released=result.pairs_released,
    )
