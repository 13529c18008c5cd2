from __future__ import annotations

import unicodedata
from typing import Optional


def normalize_text(value: Optional[str]) -> str:
    decomposed = unicodedata.normalize("NFD", str(value or "").lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def matches(haystack: Optional[str], needle: Optional[str]) -> bool:
    """Case- and diacritic-insensitive substring test. An empty needle never matches."""
    n = normalize_text(needle)
    if not n:
        return False
    return n in normalize_text(haystack)
