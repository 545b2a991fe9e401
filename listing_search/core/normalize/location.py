# listing_search/core/normalize/location.py
"""
Commune / district parsing for free-form Oran addresses.

Supported shapes
----------------
- "Canastel, Bir El Djir"                 district first, commune second
- "Oran/Maraval"                          commune first, district second
- "Bir El Djir - Canastel - Residence X"  commune, district, trailing detail (ignored)
- "Oran · Canastel"                       legacy separator

When no part names a known commune the commune stays empty and the whole string
(parts re-joined with " - ") becomes the district. This degraded shape is relied on
by the district hint table and suggestion counts; it is deliberately not guessed at.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from listing_search.core.normalize.aliases import LOCATION_SEPARATORS, location_aliases
from listing_search.core.normalize.text import normalize, normalize_display
from listing_search.schemas.labels import ORAN_COMMUNES
from listing_search.schemas.models import CommuneDistrictHint, DistrictEntry, Listing, ParsedLocation

_SPLIT_RE = re.compile(LOCATION_SEPARATORS)

# Legacy records and a frequent typo.
_FALLBACK_HINTS: tuple[tuple[str, str, str], ...] = (
    ("canastel", "Bir El Djir", "Canastel"),
    ("canastl", "Bir El Djir", "Canastel"),
)


@dataclass(frozen=True)
class CommuneMatcher:
    raw: str
    norm: str


def _matchers_from(values: Iterable[str]) -> tuple[CommuneMatcher, ...]:
    by_norm: dict[str, str] = {}
    for value in values:
        raw = normalize_display(value)
        norm = normalize(raw)
        if raw and norm and norm not in by_norm:
            by_norm[norm] = raw
    return tuple(CommuneMatcher(raw=raw, norm=norm) for norm, raw in sorted(by_norm.items()))


DEFAULT_COMMUNE_MATCHERS: tuple[CommuneMatcher, ...] = _matchers_from(ORAN_COMMUNES)


def build_commune_matchers(communes: Iterable[str] | None = None) -> tuple[CommuneMatcher, ...]:
    """
    Matchers for the commune catalogue, deduplicated by folded form and sorted.
    An empty catalogue falls back to the built-in Oran list.
    """
    matchers = _matchers_from(communes or ())
    return matchers or DEFAULT_COMMUNE_MATCHERS


def build_district_catalogue(
    rows: Iterable[DistrictEntry], matchers: Sequence[CommuneMatcher]
) -> list[DistrictEntry]:
    """Clean catalogue rows: canonical commune spelling, rows without a commune dropped, deduplicated."""
    by_norm = {m.norm: m.raw for m in matchers}
    out: dict[str, DistrictEntry] = {}
    for row in rows:
        district = normalize_display(row.name)
        raw_commune = normalize_display(row.commune)
        if not district or not raw_commune:
            continue
        commune = by_norm.get(normalize(raw_commune), raw_commune)
        out.setdefault(f"{normalize(commune)}|{normalize(district)}", DistrictEntry(name=district, commune=commune))
    return list(out.values())


def find_commune(value: str, matchers: Sequence[CommuneMatcher] = DEFAULT_COMMUNE_MATCHERS) -> CommuneMatcher | None:
    n = normalize(value)
    for m in matchers:
        if m.norm == n:
            return m
    return None


def resolve_commune(value: str, matchers: Sequence[CommuneMatcher] = DEFAULT_COMMUNE_MATCHERS) -> str:
    """Canonical spelling for a commune name, or the input unchanged when unknown."""
    found = find_commune(value, matchers)
    return found.raw if found else value


def parse_location(raw: str | None, matchers: Sequence[CommuneMatcher] = DEFAULT_COMMUNE_MATCHERS) -> ParsedLocation:
    parts = [p.strip() for p in _SPLIT_RE.split(raw or "") if p.strip()]

    if not parts:
        return ParsedLocation()

    if len(parts) == 1:
        found = find_commune(parts[0], matchers)
        if found:
            return ParsedLocation(commune=found.raw)
        return ParsedLocation(district=parts[0])

    commune_idx = -1
    commune: CommuneMatcher | None = None
    for i, part in enumerate(parts):
        commune = find_commune(part, matchers)
        if commune:
            commune_idx = i
            break

    if commune is None:
        return ParsedLocation(district=" - ".join(parts))

    others = [p for i, p in enumerate(parts) if i != commune_idx]
    district = next((p for p in others if find_commune(p, matchers) is None), None)
    if district is None:
        district = others[0] if others else ""
    return ParsedLocation(commune=commune.raw, district=district)


def build_district_hints(
    listings: Iterable[Listing],
    districts: Iterable[DistrictEntry] = (),
    matchers: Sequence[CommuneMatcher] = DEFAULT_COMMUNE_MATCHERS,
) -> list[CommuneDistrictHint]:
    """
    Alias → (commune, district) table, first writer wins:
    the district catalogue, then districts observed in listings, then the built-in fallbacks.
    Sorted by alias length, longest first, so specific aliases match before their substrings.
    """
    hints: dict[str, tuple[str, str]] = {}

    def add(alias: str, commune: str, district: str) -> None:
        alias_norm = normalize(alias)
        if not alias_norm or not commune or not district:
            return
        hints.setdefault(alias_norm, (commune, district))

    for entry in districts:
        for alias in location_aliases(entry.name):
            add(alias, entry.commune or "", entry.name)

    for listing in listings:
        parsed = parse_location(listing.location, matchers)
        if not parsed.commune or not parsed.district:
            continue
        for alias in location_aliases(parsed.district):
            add(alias, parsed.commune, parsed.district)

    for alias, commune, district in _FALLBACK_HINTS:
        add(alias, commune, district)

    rows = [CommuneDistrictHint(alias=a, commune=c, district=d) for a, (c, d) in hints.items()]
    rows.sort(key=lambda h: len(h.alias), reverse=True)
    return rows
