"""
Constellation detector: recurring symbols across the last few days of entries.

Public API
----------
detect_constellation(db, now=None)  -> Constellation | None   (persists when found)
list_constellations(db, limit)      -> list[Constellation]
pattern_name(symbols, archetype)    -> str
"""
from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from anima.core.config import settings
from anima.models.constellation import Constellation
from anima.models.entry import Entry
from anima.services.serialization import entry_symbols, jdump

logger = logging.getLogger(__name__)

MIN_RECURRENCE = 2
MAX_SYMBOLS = 5
MIN_ELEMENTAL_SYMBOLS = 3

# Checked in this order; the first family present wins.
_ELEMENTS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("ZANURZENIE", ("woda", "deszcz", "ocean", "rzeka", "jezioro")),
    ("POŻAR", ("ogień", "płomień", "słońce", "żar")),
    ("GRUNT", ("ziemia", "kamień", "góra", "piwnica")),
    ("WZNIESIENIE", ("wiatr", "niebo", "chmur", "ptak")),
)

_ARCHETYPE_PATTERNS = {
    "CIEŃ": "CIENIE",
    "ANIMA": "ANIMA",
    "ANIMUS": "ANIMUS",
}

DEFAULT_PATTERN = "WZORZEC"


def pattern_name(symbols: list[str], archetype: Optional[str]) -> str:
    if len(symbols) >= MIN_ELEMENTAL_SYMBOLS:
        for name, stems in _ELEMENTS:
            if any(stem in s.lower() for s in symbols for stem in stems):
                return name
    return _ARCHETYPE_PATTERNS.get(archetype or "", DEFAULT_PATTERN)


def describe_pattern(symbols: list[str], archetype: Optional[str]) -> str:
    text = f"Wykryto powtarzające się symbole: {', '.join(symbols)}."
    if archetype:
        text += f" Dominujący archetyp: {archetype}."
    return text


def _as_aware(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def detect_constellation(db: Session, now: Optional[datetime] = None) -> Optional[Constellation]:
    """
    Count symbols and archetypes over entries from the detection window.
    Symbols seen in at least two entries (top five) form the constellation.
    """
    now = now or datetime.now(tz=timezone.utc)
    since = now - timedelta(days=settings.CONSTELLATION_WINDOW_DAYS)

    entries = db.execute(select(Entry).order_by(Entry.created_at.desc())).scalars().all()
    recent = [e for e in entries if e.created_at and _as_aware(e.created_at) >= since]

    symbol_counts: Counter = Counter()
    archetype_counts: Counter = Counter()
    for entry in recent:
        symbol_counts.update(set(entry_symbols(entry)))
        if entry.dominant_archetype:
            archetype_counts[entry.dominant_archetype] += 1

    recurring = [
        name for name, count in sorted(symbol_counts.items(), key=lambda kv: (-kv[1], kv[0]))
        if count >= MIN_RECURRENCE
    ][:MAX_SYMBOLS]
    if not recurring:
        logger.info("No constellation in the last %d day(s)", settings.CONSTELLATION_WINDOW_DAYS)
        return None

    archetype = archetype_counts.most_common(1)[0][0] if archetype_counts else None
    constellation = Constellation(
        pattern=pattern_name(recurring, archetype),
        description=describe_pattern(recurring, archetype),
        symbols=jdump(recurring),
        archetype=archetype,
        confidence=min(len(recurring) / MAX_SYMBOLS, 1.0),
    )
    db.add(constellation)
    db.commit()
    db.refresh(constellation)
    logger.info(
        "Constellation %s detected from %d entries: %s",
        constellation.pattern, len(recent), recurring,
    )
    return constellation


def list_constellations(db: Session, limit: int = 20) -> list[Constellation]:
    return list(
        db.execute(
            select(Constellation)
            .order_by(Constellation.created_at.desc(), Constellation.id.desc())
            .limit(limit)
        ).scalars()
    )
