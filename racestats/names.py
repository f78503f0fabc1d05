"""Athlete name canonicalization.

Deduplication and search compare names differently: ``athlete_key`` strips
accents but keeps case, ``search_key`` also upper-cases. Both go through
``strip_accents``.
"""

from __future__ import annotations

import unicodedata


def strip_accents(text: str) -> str:
    """Decompose ``text`` (NFD) and drop combining marks."""
    decomposed = unicodedata.normalize("NFD", text or "")
    return "".join(c for c in decomposed if unicodedata.category(c) != "Mn")


def full_name(given: str, surname: str) -> str:
    return f"{given} {surname}"


def athlete_key(fullname: str) -> str:
    """Key used to deduplicate athletes on ingestion (case-sensitive)."""
    return strip_accents(fullname)


def search_key(text: str) -> str:
    """Key used on both sides of a name search (case-insensitive)."""
    return strip_accents(text).upper()


def same_athlete(a: str, b: str) -> bool:
    return athlete_key(a) == athlete_key(b)


def name_matches(query: str, fullname: str) -> bool:
    """True when ``query`` is a substring of ``fullname`` ignoring accents and case."""
    return search_key(query) in search_key(fullname)
