"""
Archetype normalizer: maps free-form archetype labels onto a closed
vocabulary of Jungian archetypes, or returns None.

The AI collaborator is loose with vocabulary: typos ("KIEŃ"), English
names ("The Shadow"), lowercase or diacritic-less variants ("cien").
This module is the single point of truth for "is this archetype real".
It fails toward None rather than toward a plausible-but-wrong value.

Matching order
--------------
1. Correction table: exact, then upper-cased.
2. Known typo containment ("KIEŃ" / "KIEN" -> "CIEŃ").
3. Character-overlap similarity against every canonical term; the best
   score wins if it is >= SIMILARITY_THRESHOLD.
4. None. Callers with entry context log the warning.
"""
from __future__ import annotations

import logging
from typing import Optional

logger = logging.getLogger(__name__)


PRIMARY_ARCHETYPES: tuple[str, ...] = (
    "JAŹŃ",       # the Self
    "CIEŃ",       # the Shadow
    "PERSONA",
    "ANIMA",
    "ANIMUS",
    "NEMESIS",
    "KRYTYK",     # the Critic
    "TRICKSTER",
    "DEMON",
)

SECONDARY_ARCHETYPES: tuple[str, ...] = (
    "HEROS",      # the Hero
    "OPIEKUN",    # the Caregiver
    "TWÓRCA",     # the Creator
    "ODKRYWCA",   # the Explorer
    "NIEWINNY",   # the Innocent
    "BŁAZEN",     # the Jester
    "KOCHANEK",   # the Lover
    "MAG",        # the Magician
    "BUNTOWNIK",  # the Rebel / Outlaw
    "WŁADCA",     # the Ruler
    "MĘDRZEC",    # the Sage
    "SIEROTA",    # the Orphan / Everyman
)

STANDARD_ARCHETYPES: tuple[str, ...] = PRIMARY_ARCHETYPES + SECONDARY_ARCHETYPES

SIMILARITY_THRESHOLD = 0.8


# Spelling variants (no diacritics, typos, inflected forms) and English names.
# English names also match with a leading "THE ".
_VARIANTS: dict[str, tuple[str, ...]] = {
    "JAŹŃ": ("JAŹN", "JAZN"),
    "CIEŃ": ("KIEŃ", "CIEN", "CIENI", "CIENIE"),
    "TWÓRCA": ("TWORCA",),
    "BŁAZEN": ("BLAZEN",),
    "WŁADCA": ("WLADCA",),
    "MĘDRZEC": ("MEDRZEC", "STARY MĘDRZEC", "STARY MEDRZEC"),
}

_ENGLISH: dict[str, tuple[str, ...]] = {
    "JAŹŃ": ("SELF",),
    "CIEŃ": ("SHADOW",),
    "PERSONA": ("PERSONA",),
    "ANIMA": ("ANIMA",),
    "ANIMUS": ("ANIMUS",),
    "NEMESIS": ("NEMESIS",),
    "KRYTYK": ("CRITIC",),
    "TRICKSTER": ("TRICKSTER",),
    "DEMON": ("DEMON",),
    "HEROS": ("HERO",),
    "OPIEKUN": ("CAREGIVER",),
    "TWÓRCA": ("CREATOR",),
    "ODKRYWCA": ("EXPLORER",),
    "NIEWINNY": ("INNOCENT",),
    "BŁAZEN": ("JESTER",),
    "KOCHANEK": ("LOVER",),
    "MAG": ("MAGICIAN",),
    "BUNTOWNIK": ("REBEL", "OUTLAW"),
    "WŁADCA": ("RULER",),
    "MĘDRZEC": ("SAGE", "OLD WISE MAN"),
    "SIEROTA": ("ORPHAN", "EVERYMAN"),
}


def _build_corrections() -> dict[str, str]:
    table: dict[str, str] = {}
    for canonical in STANDARD_ARCHETYPES:
        table[canonical] = canonical
        for variant in _VARIANTS.get(canonical, ()):
            table[variant] = canonical
        for name in _ENGLISH.get(canonical, ()):
            table[name] = canonical
            table[f"THE {name}"] = canonical
    return table


_CORRECTIONS: dict[str, str] = _build_corrections()


# ---------------------------------------------------------------------------
# Similarity
# ---------------------------------------------------------------------------

def similarity(a: str, b: str) -> float:
    """
    Bounded character-overlap score in [0, 1]: how many characters of the
    shorter string occur anywhere in the longer one, over the longer length.
    Not an edit distance; cheap and good enough for one-letter typos.
    """
    longer, shorter = (a, b) if len(a) > len(b) else (b, a)
    if not longer:
        return 1.0
    matches = sum(1 for ch in shorter if ch in longer)
    return matches / len(longer)


def _best_match(label: str) -> tuple[Optional[str], float]:
    best: Optional[str] = None
    best_score = 0.0
    for canonical in STANDARD_ARCHETYPES:
        score = similarity(label, canonical)
        if score > best_score:
            best, best_score = canonical, score
    return best, best_score


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def normalize_archetype(raw: Optional[str]) -> Optional[str]:
    """Return the canonical archetype for `raw`, or None if unrecognized."""
    if not raw or not raw.strip():
        return None

    trimmed = raw.strip()
    if trimmed in _CORRECTIONS:
        return _CORRECTIONS[trimmed]

    upper = trimmed.upper()
    if upper in _CORRECTIONS:
        return _CORRECTIONS[upper]

    if "KIEŃ" in upper or upper == "KIEN":
        return "CIEŃ"

    best, score = _best_match(upper)
    if best is not None and score >= SIMILARITY_THRESHOLD:
        return best

    logger.info(
        "Unknown archetype %r (best candidate %r at %.2f); treating as unknown",
        raw, best, score,
    )
    return None


def is_valid_archetype(raw: Optional[str]) -> bool:
    return normalize_archetype(raw) is not None
