"""Normalisation of spreadsheet column headers to canonical field keys."""
from __future__ import annotations

import re
from typing import Dict, Iterable, Optional, Pattern, Tuple

# Ordered: the first matching pattern wins, so "Parent CI Name" maps to
# parent_ci rather than name.
NORMALIZATION_RULES: Tuple[Tuple[Pattern[str], str], ...] = (
    (re.compile(r".*parent.?ci.*", re.IGNORECASE), "parent_ci"),
    (re.compile(r".*ci.?name.*", re.IGNORECASE), "name"),
    (re.compile(r".*class.*", re.IGNORECASE), "class"),
    (re.compile(r".*relationship.*", re.IGNORECASE), "relationship"),
    (re.compile(r".*desc.*", re.IGNORECASE), "description"),
    (re.compile(r".*project.*", re.IGNORECASE), "project"),
    (re.compile(r".*location.*", re.IGNORECASE), "location"),
    (re.compile(r".*service.?offering.*", re.IGNORECASE), "service_offering"),
    (re.compile(r".*business.?service.*", re.IGNORECASE), "business_service"),
)

_WHITESPACE = re.compile(r"\s+")
_UNSAFE = re.compile(r"[^a-z0-9_]+")


def normalize_header(header: Optional[str]) -> Optional[str]:
    """Return the canonical key for *header*, or ``None`` for a blank header.

    Matching is case-insensitive and whitespace-tolerant. Headers matching no
    rule keep a sanitised form: lower case, whitespace runs as ``_`` and any
    other character outside ``[a-z0-9_]`` replaced by ``_``.
    """

    if header is None:
        return None
    cleaned = _WHITESPACE.sub("_", str(header).strip().lower())
    if not cleaned:
        return None
    for pattern, canonical in NORMALIZATION_RULES:
        if pattern.fullmatch(cleaned):
            return canonical
    return _UNSAFE.sub("_", cleaned)


def normalize_headers(raw_headers: Optional[Iterable[Optional[str]]]) -> Dict[str, str]:
    """Map each non-blank raw header to its canonical key.

    Safe to call from several threads at once; no state is shared between calls.
    """

    normalized: Dict[str, str] = {}
    if raw_headers is None:
        return normalized
    for header in raw_headers:
        canonical = normalize_header(header)
        if canonical is not None:
            normalized[header] = canonical
    return normalized


__all__ = ["NORMALIZATION_RULES", "normalize_header", "normalize_headers"]
