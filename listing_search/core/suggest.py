# listing_search/core/suggest.py
"""
Autocomplete suggestions, grouped by facet.

Purpose
-------
As the user types, offer one-click refinements drawn from the static lexicons and from the
candidate set itself:
  smart_query  multi-facet phrases mined from listings ("Vente Appartement F3 Canastel Bir El Djir")
  transaction  deal types
  category     seed + observed categories
  commune      commune catalogue
  district     district → commune hints
  room         room tokens, filtered by the category context

Rules
-----
- A candidate must match the query (folded containment, or every query token passes the
  fuzzy matcher against the candidate's search text) and must match at least one listing.
- Order: facet priority, then exact < prefix < label-substring < other, then match count
  (descending), then label. Deduplicated by key, capped at MAX_SUGGESTIONS.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from listing_search.core.facets import FacetCatalogue
from listing_search.core.normalize.aliases import location_aliases
from listing_search.core.normalize.fuzzy import matches_text
from listing_search.core.normalize.listing import (
    ListingFacts,
    deal_matches,
    infer_room_label,
    primary_category,
    room_matches,
)
from listing_search.core.normalize.text import normalize, normalize_display, tokenize
from listing_search.schemas.labels import (
    APARTMENT_CONTEXT_TERMS,
    CATEGORY_TERMS,
    NON_ROOM_CATEGORY_TERMS,
    ROOM_OPTIONS,
    TRANSACTION_TERMS,
    VILLA_CONTEXT_TERMS,
    DealType,
    SuggestionType,
    deal_type_label,
)
from listing_search.schemas.models import Filters, SearchSuggestion

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 12

TYPE_PRIORITY: dict[SuggestionType, int] = {
    SuggestionType.smart_query: 0,
    SuggestionType.transaction: 1,
    SuggestionType.category: 2,
    SuggestionType.commune: 3,
    SuggestionType.district: 4,
    SuggestionType.room: 5,
}


# ----------------------------
# Room options by category
# ----------------------------


def infer_category_context(query: str, explicit_category: str = "") -> str:
    explicit = normalize_display(explicit_category)
    if explicit:
        return explicit
    folded = normalize(query)
    if not folded:
        return ""
    for label, terms in CATEGORY_TERMS.items():
        if any(normalize(t) in folded for t in terms):
            return label
    return ""


def category_supports_rooms(category: str) -> bool:
    folded = normalize(category)
    return not folded or not any(normalize(t) in folded for t in NON_ROOM_CATEGORY_TERMS)


def room_options_for(category_context: str) -> list[str]:
    """
    Room tokens worth suggesting: none for land/commercial/office, Studio + F + T for
    apartments, T + F + Studio for villas, the full list otherwise.
    """
    rooms = list(ROOM_OPTIONS)
    if not category_context:
        return rooms
    if not category_supports_rooms(category_context):
        return []

    folded = normalize(category_context)
    studio = [r for r in rooms if normalize(r) == "studio"]
    f_rooms = [r for r in rooms if normalize(r).startswith("f")]
    t_rooms = [r for r in rooms if normalize(r).startswith("t")]
    if any(normalize(t) in folded for t in APARTMENT_CONTEXT_TERMS):
        return [*studio, *f_rooms, *t_rooms]
    if any(normalize(t) in folded for t in VILLA_CONTEXT_TERMS):
        return [*t_rooms, *f_rooms, *studio]
    return rooms


# ----------------------------
# Smart-query phrases
# ----------------------------


@dataclass
class SmartQueryProfile:
    label: str
    search_text: str
    match_count: int = 1


def smart_query_profiles(catalogue: FacetCatalogue) -> list[SmartQueryProfile]:
    """
    Phrases 'deal category room district commune' and 'deal category room commune' per listing,
    keyed by folded label; a listing counts once per distinct phrase. Phrases need 2+ parts.
    """
    by_key: dict[str, SmartQueryProfile] = {}

    for facts in catalogue.facts:
        listing = facts.listing
        deal_label = deal_type_label(facts.deal)
        category = primary_category(listing)
        room = infer_room_label(listing)
        district = normalize_display(facts.location.district)
        commune = normalize_display(facts.location.commune)

        seen: set[str] = set()
        phrases = (
            ([deal_label, category, room, district, commune], [*location_aliases(district), *location_aliases(commune)]),
            ([deal_label, category, room, commune], location_aliases(commune)),
        )
        for parts, aliases in phrases:
            clean = [normalize_display(p) for p in parts if normalize_display(p)]
            if len(clean) < 2:
                continue
            label = " ".join(clean)
            key = normalize(label)
            if not key or key in seen:
                continue
            seen.add(key)
            if key in by_key:
                by_key[key].match_count += 1
            else:
                by_key[key] = SmartQueryProfile(
                    label=label, search_text=normalize_display(" ".join([label, *clean, *aliases]))
                )

    return sorted(by_key.values(), key=lambda p: (-p.match_count, normalize(p.label)))


# ----------------------------
# Match counts
# ----------------------------


def _count(facts: Iterable[ListingFacts], predicate: Callable[[ListingFacts], bool]) -> int:
    return sum(1 for f in facts if predicate(f))


def count_matches(suggestion: dict[str, Any], catalogue: FacetCatalogue) -> int:
    """Listings in the candidate set matching the suggestion's own facet."""
    facts = catalogue.facts
    kind = suggestion["type"]

    if kind is SuggestionType.transaction and suggestion.get("deal_type"):
        deal: DealType = suggestion["deal_type"]
        if deal in (DealType.sale, DealType.rent):
            return _count(facts, lambda f: deal_matches(deal, f.deal, ""))
        # sub-types count exact deal types only
        return _count(facts, lambda f: f.deal is deal)

    if kind is SuggestionType.category and suggestion.get("category"):
        wanted = normalize(suggestion["category"])
        return _count(facts, lambda f: wanted in f.hay)

    if kind is SuggestionType.commune and suggestion.get("commune"):
        wanted = normalize(suggestion["commune"])
        return _count(facts, lambda f: normalize(f.location.commune) == wanted)

    if kind is SuggestionType.district and suggestion.get("district"):
        district = normalize(suggestion["district"])
        commune = normalize(suggestion.get("commune") or "")
        return _count(
            facts,
            lambda f: normalize(f.location.district) == district
            and (not commune or normalize(f.location.commune) == commune),
        )

    if kind is SuggestionType.room and suggestion.get("room"):
        room = suggestion["room"]
        return _count(facts, lambda f: room_matches(f.listing, room, f.hay))

    return 0


# ----------------------------
# Candidate assembly
# ----------------------------


@dataclass(frozen=True)
class _Candidate:
    suggestion: SearchSuggestion
    score: int


def _query_score(label_norm: str, text_norm: str, query_norm: str) -> int:
    if label_norm == query_norm or text_norm == query_norm:
        return 0
    if label_norm.startswith(query_norm) or text_norm.startswith(query_norm):
        return 1
    if query_norm in label_norm:
        return 2
    return 3


def suggestions(filters: Filters, catalogue: FacetCatalogue, limit: int = MAX_SUGGESTIONS) -> list[SearchSuggestion]:
    query_norm = normalize(filters.query)
    if not query_norm:
        return []
    tokens = tokenize(filters.query)
    candidates: list[_Candidate] = []

    def push(fields: dict[str, Any], search_text: str, match_count: int | None = None) -> None:
        text_norm = normalize(search_text)
        hit = query_norm in text_norm or (tokens and all(matches_text(text_norm, t) for t in tokens))
        if not hit:
            return
        count = count_matches(fields, catalogue) if match_count is None else match_count
        if count <= 0:
            return
        suggestion = SearchSuggestion(match_count=count, **fields)
        candidates.append(_Candidate(suggestion, _query_score(normalize(suggestion.label), text_norm, query_norm)))

    for profile in smart_query_profiles(catalogue):
        push(
            {
                "key": f"smart:{normalize(profile.label)}",
                "type": SuggestionType.smart_query,
                "label": profile.label,
                "value": profile.label,
            },
            profile.search_text,
            profile.match_count,
        )

    for deal, terms in TRANSACTION_TERMS.items():
        label = deal_type_label(deal)
        push(
            {
                "key": f"transaction:{deal.value}",
                "type": SuggestionType.transaction,
                "label": label,
                "value": label,
                "deal_type": deal,
            },
            f"{label} {' '.join(terms)}",
        )

    for category in catalogue.suggestion_categories:
        seed = next((terms for label, terms in CATEGORY_TERMS.items() if normalize(label) == normalize(category)), None)
        push(
            {
                "key": f"category:{normalize(category)}",
                "type": SuggestionType.category,
                "label": category,
                "value": category,
                "category": category,
            },
            f"{category} {' '.join(seed or (category,))}",
        )

    for commune in catalogue.commune_options:
        push(
            {
                "key": f"commune:{normalize(commune)}",
                "type": SuggestionType.commune,
                "label": commune,
                "value": commune,
                "commune": commune,
            },
            commune,
        )

    districts: dict[str, tuple[str, str, list[str]]] = {}
    for hint in catalogue.hints:
        key = f"{normalize(hint.commune)}|{normalize(hint.district)}"
        if key in districts:
            districts[key][2].append(hint.alias)
        else:
            districts[key] = (hint.commune, hint.district, [hint.alias])
    for key, (commune, district, aliases) in districts.items():
        push(
            {
                "key": f"district:{key}",
                "type": SuggestionType.district,
                "label": f"{district} - {commune}",
                "value": district,
                "commune": commune,
                "district": district,
            },
            f"{district} {commune} {' '.join(aliases)}",
        )

    for room in room_options_for(infer_category_context(filters.query, filters.category)):
        push({"key": f"room:{room}", "type": SuggestionType.room, "label": room, "value": room, "room": room}, room)

    candidates.sort(
        key=lambda c: (
            TYPE_PRIORITY[c.suggestion.type],
            c.score,
            -c.suggestion.match_count,
            c.suggestion.label,
        )
    )

    out: list[SearchSuggestion] = []
    seen: set[str] = set()
    for c in candidates:
        if c.suggestion.key in seen:
            continue
        seen.add(c.suggestion.key)
        out.append(c.suggestion)
        if len(out) >= limit:
            break
    logger.debug("suggestions %r: %d of %d candidates", query_norm, len(out), len(candidates))
    return out


def apply_suggestion(filters: Filters, suggestion: SearchSuggestion) -> Filters:
    """Set the query to the suggestion value and merge its facet into the filters."""
    updates: dict[str, Any] = {"query": suggestion.value}
    if suggestion.type is SuggestionType.transaction and suggestion.deal_type:
        updates["deal_type"] = suggestion.deal_type
    elif suggestion.type is SuggestionType.commune and suggestion.commune:
        updates["commune"] = suggestion.commune
        updates["district"] = ""
    elif suggestion.type is SuggestionType.district and suggestion.district:
        updates["commune"] = suggestion.commune or ""
        updates["district"] = suggestion.district
    elif suggestion.type is SuggestionType.room and suggestion.room:
        updates["rooms"] = suggestion.room
    elif suggestion.type is SuggestionType.category and suggestion.category:
        updates["category"] = suggestion.category
    return filters.model_copy(update=updates)
