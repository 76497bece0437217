"""
JSON helpers for list-valued Text columns (stdlib json, no extra deps).
"""
from __future__ import annotations

import json
from typing import Any, Optional

from anima.models.entry import Entry


def jdump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def jload(text: Optional[str]) -> list:
    if not text:
        return []
    try:
        result = json.loads(text)
        return result if isinstance(result, list) else []
    except (ValueError, TypeError):
        return []


def jload_dict(text: Optional[str]) -> Optional[dict]:
    if not text:
        return None
    try:
        result = json.loads(text)
        return result if isinstance(result, dict) else None
    except (ValueError, TypeError):
        return None


def entry_symbols(entry: Entry) -> list[str]:
    """Stored (already normalized) symbol keys of an entry."""
    return [s for s in jload(entry.detected_symbols) if isinstance(s, str) and s]
