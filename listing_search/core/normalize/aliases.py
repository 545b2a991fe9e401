# listing_search/core/normalize/aliases.py

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping

from listing_search.core.normalize.text import compact, normalize, tokenize
from listing_search.schemas.labels import ALIAS_TABLE

# Location separators: - , | / · • – —
LOCATION_SEPARATORS = r"[-,|/·•–—]"
_LOCATION_SPLIT_RE = re.compile(rf"\s*{LOCATION_SEPARATORS}\s*")


def _unique(values: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for v in values:
        if v not in seen:
            seen.add(v)
            out.append(v)
    return out


def variants_of(token: str, table: Mapping[str, Iterable[str]] = ALIAS_TABLE) -> list[str]:
    """
    All surface forms a token may take in listing text: the folded token, its compacted
    form, every alias listed for it, and the compacted aliases. Order is stable.
    """
    norm = normalize(token)
    if not norm:
        return []
    aliases = [normalize(a) for a in table.get(norm, ())]
    return _unique([norm, compact(norm), *aliases, *(compact(a) for a in aliases)])


def expand_semantic_tokens(tokens: Iterable[str]) -> list[str]:
    """Union of ``variants_of`` over every query token (first-seen order)."""
    out: list[str] = []
    for token in tokens:
        out.extend(v for v in variants_of(token) if v)
    return _unique(out)


def location_aliases(value: str) -> list[str]:
    """Folded full string plus each separator-delimited part ('Canastel - Bir El Djir' → 3 aliases)."""
    norm = normalize(value)
    if not norm:
        return []
    parts = [p.strip() for p in _LOCATION_SPLIT_RE.split(norm) if p.strip()]
    return _unique([norm, *parts])


def structured_tokens(values: Iterable[str]) -> set[str]:
    """Tokenize a batch of phrases into one flat set."""
    out: set[str] = set()
    for v in values:
        out.update(tokenize(v))
    return out
