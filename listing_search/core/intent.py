# listing_search/core/intent.py
"""
Query intent extraction: free text → structured filter state, without any remote NLP.

Design
------
Each pass is independent and may coexist with the others in one query:
  a) amenity cues (regex over the folded query) are added to the included amenities
  b) negations ("sans ascenseur", "without pool", "بدون ...") replace the excluded set
     and always win over a positive cue for the same amenity
  c) room tokens ("T3", "F4+", "Studio", "3 pièces")
  d) price bounds ("max 2.5M", ">= 900 000") and area bounds ("min 80 m2")
  e) transaction, category, commune and district mentions

Fields are only rewritten when the extracted value differs from the current one, and
fields the query says nothing about are left as the user set them.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

from listing_search.core.facets import FacetCatalogue
from listing_search.core.normalize.listing import parse_room_token
from listing_search.core.normalize.text import normalize, parse_money, tokenize
from listing_search.schemas.labels import (
    AMENITY_CUE_PATTERNS,
    AMENITY_NEGATION_TERMS,
    CATEGORY_TERMS,
    NEGATION_PREFIXES,
    TRANSACTION_TERMS,
    AmenityKey,
    DealType,
    deal_type_label,
)
from listing_search.schemas.models import Filters

logger = logging.getLogger(__name__)

_PRICE_MAX_RE = re.compile(r"\b(max|<=)\s*([\d.,\s]+m|\d[\d\s.,]*)\b")
_PRICE_MIN_RE = re.compile(r"\b(min|>=)\s*([\d.,\s]+m|\d[\d\s.,]*)\b")
_AREA_MAX_RE = re.compile(r"\b(max|<=)\s*(\d{2,4})\s*m2\b")
_AREA_MIN_RE = re.compile(r"\b(min|>=)\s*(\d{2,4})\s*m2\b")


@dataclass(frozen=True)
class IntentResult:
    filters: Filters
    negated: frozenset[AmenityKey]
    changed: tuple[str, ...] = ()


# ----------------------------
# Individual passes
# ----------------------------


def find_negated_amenities(query: str) -> frozenset[AmenityKey]:
    """Amenities whose terms appear right after a negation prefix ('sans', 'no', 'بدون', ...)."""
    folded = normalize(query)
    if not folded:
        return frozenset()
    found: set[AmenityKey] = set()
    for key, terms in AMENITY_NEGATION_TERMS.items():
        for term in terms:
            if any(f"{normalize(prefix)} {normalize(term)}" in folded for prefix in NEGATION_PREFIXES):
                found.add(key)
                break
    return frozenset(found)


def find_amenity_cues(query: str) -> set[AmenityKey]:
    folded = normalize(query)
    return {key for pattern, key in AMENITY_CUE_PATTERNS if pattern.search(folded)}


def find_room(query: str) -> str | None:
    """Room token for the whole query, else the first query token that is one."""
    whole = parse_room_token(query.lower())
    if whole:
        return whole.raw
    for token in tokenize(query):
        parsed = parse_room_token(token)
        if parsed:
            return parsed.raw
    return None


def find_price_bound(query: str, pattern: re.Pattern[str]) -> str | None:
    m = pattern.search(query.lower())
    if not m:
        return None
    amount = parse_money(m.group(2))
    return str(amount) if amount else None


def find_area_bound(query: str, pattern: re.Pattern[str]) -> float | None:
    m = pattern.search(query.lower())
    return float(m.group(2)) if m else None


def find_deal_type(folded: str) -> DealType | None:
    for deal, terms in TRANSACTION_TERMS.items():
        if normalize(deal_type_label(deal)) in folded or any(normalize(t) in folded for t in terms):
            return deal
    return None


def find_category(folded: str, catalogue: FacetCatalogue) -> str | None:
    for label, terms in CATEGORY_TERMS.items():
        if normalize(label) in folded or any(normalize(t) in folded for t in terms):
            return label
    for label in catalogue.category_options:
        if normalize(label) and normalize(label) in folded:
            return label
    return None


# ----------------------------
# Fold into filters
# ----------------------------


def extract_intent(query: str, filters: Filters, catalogue: FacetCatalogue) -> IntentResult:
    """
    Fold every cue found in ``query`` into ``filters`` and return the new snapshot.
    ``filters.query`` is left untouched; callers set it separately.
    """
    folded = normalize(query)
    updates: dict[str, Any] = {}

    negated = find_negated_amenities(folded)
    if negated != filters.excluded_amenities:
        updates["excluded_amenities"] = negated

    cues = find_amenity_cues(folded)
    if cues or negated:
        included = (set(filters.included_amenities) | (cues - negated)) - negated
        if included != set(filters.included_amenities):
            updates["included_amenities"] = frozenset(included)

    room = find_room(query)
    if room and room != filters.rooms:
        updates["rooms"] = room

    price_max = find_price_bound(query, _PRICE_MAX_RE)
    if price_max and price_max != filters.price_max:
        updates["price_max"] = price_max
    price_min = find_price_bound(query, _PRICE_MIN_RE)
    if price_min and price_min != filters.price_min:
        updates["price_min"] = price_min

    area_max = find_area_bound(query, _AREA_MAX_RE)
    if area_max is not None and area_max != filters.area_max:
        updates["area_max"] = area_max
    area_min = find_area_bound(query, _AREA_MIN_RE)
    if area_min is not None and area_min != filters.area_min:
        updates["area_min"] = area_min

    if folded:
        deal = find_deal_type(folded)
        if deal and deal is not filters.deal_type:
            updates["deal_type"] = deal

        category = find_category(folded, catalogue)
        if category and normalize(category) != normalize(filters.category):
            updates["category"] = category

        commune = next((m for m in catalogue.matchers if m.norm in folded), None)
        if commune and normalize(filters.commune) != commune.norm:
            updates["commune"] = commune.raw
            updates["district"] = ""

        hint = next((h for h in catalogue.hints if h.alias in folded), None)
        if hint:
            current_commune = updates.get("commune", filters.commune)
            current_district = updates.get("district", filters.district)
            if normalize(current_commune) != normalize(hint.commune) or normalize(current_district) != normalize(
                hint.district
            ):
                updates["commune"] = hint.commune
                updates["district"] = hint.district

    if updates:
        logger.debug("intent %r -> %s", folded, sorted(updates))
    return IntentResult(
        filters=filters.model_copy(update=updates) if updates else filters,
        negated=negated,
        changed=tuple(sorted(updates)),
    )
