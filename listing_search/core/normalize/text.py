# listing_search/core/normalize/text.py
"""
Text folding primitives shared by every matcher.

Public API
----------
- normalize(text) -> str          lower-case, strip diacritics, collapse whitespace
- tokenize(query) -> list[str]    split folded text on whitespace/punctuation
- compact(text) -> str            drop spaces and hyphens
- parse_money(text) -> int | None "2.5M" / "2 500 000 DZD" → 2500000
- normalize_ref(ref) -> str
"""

from __future__ import annotations

import math
import re
import unicodedata

_WS_RE = re.compile(r"\s+")
_TOKEN_SPLIT_RE = re.compile(r"[\s,;|/]+")
_COMPACT_RE = re.compile(r"[\s-]+")
_MILLION_RE = re.compile(r"(\d+(?:[.,]\d+)?)\s*(m|million)\b")
_NON_DIGIT_RE = re.compile(r"[^\d]")


def normalize(text: str | None) -> str:
    """Fold case and diacritics (NFD + combining-mark removal) and collapse whitespace."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", str(text).lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _WS_RE.sub(" ", stripped).strip()


def tokenize(query: str | None) -> list[str]:
    folded = normalize(query)
    if not folded:
        return []
    return [t for t in _TOKEN_SPLIT_RE.split(folded) if t]


def compact(text: str) -> str:
    return _COMPACT_RE.sub("", text)


def normalize_display(text: str | None) -> str:
    """Collapse whitespace without folding (labels shown to users)."""
    return _WS_RE.sub(" ", str(text or "")).strip()


def normalize_ref(ref: str | None) -> str:
    return normalize(ref or "")


def parse_money(text: str | int | float | None) -> int | None:
    """
    Parse a display price into an integer amount.

    A trailing ``m`` / ``million`` multiplies by one million ("2.5M" → 2500000, "1,2 million" →
    1200000); otherwise every non-digit is dropped ("2 500 000 DZD" → 2500000). Empty → None.
    """
    s = str(text if text is not None else "").lower().strip()
    if not s:
        return None

    m = _MILLION_RE.search(s)
    if m:
        return math.floor(float(m.group(1).replace(",", ".")) * 1_000_000 + 0.5)

    digits = _NON_DIGIT_RE.sub("", s)
    if not digits:
        return None
    return int(digits)


def digits_only(text: str | None) -> str:
    return _NON_DIGIT_RE.sub("", str(text or ""))
