"""
Text helpers for matching vendor free-text against keyword lists.

Vendors mix Spanish and English, upper and lower case, and sometimes send
accented text ("BOTÓN PÁNICO") and sometimes not ("BOTON PANICO"). Keyword
tables are written uppercase without accents; run input through
normalize_text() before matching.
"""

from __future__ import annotations

import unicodedata
from typing import Iterable


def normalize_text(value: str) -> str:
    """Uppercase, strip diacritics and collapse whitespace."""
    decomposed = unicodedata.normalize("NFKD", value or "")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.upper().split())


def contains_any(text: str, keywords: Iterable[str]) -> bool:
    """True if *text* (already normalized) contains any of *keywords*."""
    return any(keyword in text for keyword in keywords)
