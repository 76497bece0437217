"""
Symbol normalizer: canonical deduplication keys for free-form symbol labels.

Table-driven on purpose. Polish singular nouns end in -a/-e/-i/-y as often
as plurals do ("woda", "morze", "ogień"), so generic suffix stripping turns
valid singulars into non-words. Only plurals listed in _PLURAL_TO_SINGULAR
are corrected; anything else is returned lowercased and trimmed.

Public API
----------
normalize_symbol(raw)    -> str         (pure, never raises)
normalize_symbols(raws)  -> list[str]   (deduplicated, first-seen order)
"""
from __future__ import annotations

from typing import Iterable, Optional


_PLURAL_TO_SINGULAR: dict[str, str] = {
    "koty": "kot",
    "psy": "pies",
    "drzewa": "drzewo",
    "kobiety": "kobieta",
    "mężczyźni": "mężczyzna",
    "dzieci": "dziecko",
    "ludzie": "człowiek",
    "zwierzęta": "zwierzę",
    "ptaki": "ptak",
    "ryby": "ryba",
    "kwiaty": "kwiat",
    "kamienie": "kamień",
    "wody": "woda",
    "gwiazdy": "gwiazda",
    "chmury": "chmura",
    "góry": "góra",
    "lasy": "las",
    "domy": "dom",
    "miasta": "miasto",
    "ulice": "ulica",
    "samochody": "samochód",
    "pociągi": "pociąg",
    "mosty": "most",
    "rzeki": "rzeka",
    "morza": "morze",
    "oceany": "ocean",
}


def normalize_symbol(raw: Optional[str]) -> str:
    """
    Lowercase + trim, then singularize if the result is a known plural.
    Returns "" for None / blank input.
    """
    if not raw:
        return ""
    key = raw.strip().lower()
    return _PLURAL_TO_SINGULAR.get(key, key)


def normalize_symbols(raws: Iterable[Optional[str]]) -> list[str]:
    """Normalize every label, drop blanks, dedupe preserving first-seen order."""
    keys = (normalize_symbol(r) for r in raws)
    return list(dict.fromkeys(k for k in keys if k))
