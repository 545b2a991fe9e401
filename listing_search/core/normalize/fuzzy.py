# listing_search/core/normalize/fuzzy.py
"""
Approximate token matching against folded listing text.

Design
------
1) Containment of any alias variant (plain, then compacted) in the haystack.
2) For tokens of 4+ characters, a bounded Levenshtein check against each haystack word:
   budget 1 below 8 characters, 2 from 8 up. Words whose length differs by more than the
   budget are skipped before any distance is computed.
"""

from __future__ import annotations

from rapidfuzz.distance import Levenshtein

from listing_search.core.normalize.aliases import variants_of
from listing_search.core.normalize.text import compact, normalize

MIN_FUZZY_LENGTH = 4
LONG_TOKEN_LENGTH = 8


def edit_budget(token: str) -> int:
    return 2 if len(token) >= LONG_TOKEN_LENGTH else 1


def within_distance(a: str, b: str, max_distance: int) -> bool:
    if abs(len(a) - len(b)) > max_distance:
        return False
    # score_cutoff makes rapidfuzz return max_distance + 1 as soon as the bound is exceeded
    return Levenshtein.distance(a, b, score_cutoff=max_distance) <= max_distance


def matches_text(hay: str, token: str) -> bool:
    """
    True when ``token`` (or one of its aliases) occurs in the folded haystack ``hay``,
    or when a haystack word is within the token's edit budget.
    """
    if not token:
        return False
    variants = variants_of(token)
    if any(v in hay for v in variants):
        return True

    compact_hay = compact(hay)
    if any(compact(v) in compact_hay for v in variants):
        return True

    plain = normalize(token)
    if len(plain) < MIN_FUZZY_LENGTH:
        return False

    budget = edit_budget(plain)
    return any(within_distance(word, plain, budget) for word in hay.split(" ") if word)
