# listing_search/core/ranking.py
"""
Filter evaluation and relevance scoring.

Purpose
-------
For one filter snapshot, decide which candidate listings are included and how they rank.
Every structured predicate must pass; the free-text predicate is lenient (token ratio, alias
hits, or an external semantic score). The composite relevance score only orders results.

Design
------
- `prepare_query` derives everything that depends on the filters alone (tokens, bounds, the
  tokens already explained by structured filters) once per snapshot.
- `evaluate` is pure given (listing facts, prepared query, signals, now).
- `search` runs two passes: with amenity inclusion (results) and without it (context set
  used for preset counts). Sorting is stable in input order.

Public API
----------
- RankingSignals
- recommendation_boosts(recommendations) -> dict[str, float]
- prepare_query(filters, catalogue) -> PreparedQuery
- evaluate(facts, prepared, signals, now, include_amenities=True) -> Evaluation
- search(filters, catalogue, signals=None, now=None) -> SearchResults
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from listing_search.core.facets import FacetCatalogue
from listing_search.core.normalize.aliases import expand_semantic_tokens, location_aliases, structured_tokens
from listing_search.core.normalize.fuzzy import matches_text
from listing_search.core.normalize.listing import ListingFacts, deal_matches, room_matches
from listing_search.core.normalize.text import normalize, normalize_ref, parse_money, tokenize
from listing_search.schemas.labels import (
    CATEGORY_TERMS,
    TRANSACTION_TERMS,
    AmenityKey,
    DealType,
    PublishedWithin,
    SortMode,
    deal_type_label,
)
from listing_search.schemas.models import (
    Evaluation,
    Filters,
    Listing,
    Recommendation,
    SearchBehavior,
    SearchResults,
)

# Tuned weights; changing any of them changes ranking behavior.
TOKEN_RATIO_WEIGHT = 42.0
SEMANTIC_RATIO_WEIGHT = 18.0
SEMANTIC_API_WEIGHT = 44.0
SEMANTIC_API_WEIGHT_NO_QUERY = 14.0
SEMANTIC_API_PASS = 0.61
TOKEN_MATCH_RATIO = 0.6
SEMANTIC_MATCH_RATIO = 0.45

DEAL_BONUS, CATEGORY_BONUS, COMMUNE_BONUS, DISTRICT_BONUS, ROOM_BONUS = 5.0, 4.0, 3.0, 2.0, 2.0

FRESHNESS_MAX = 12.0
FRESHNESS_DECAY_PER_DAY = 0.16
PHOTO_CAP = 6
PHOTO_WEIGHT = 1.05
VIEW_WEIGHT, FAVORITE_WEIGHT, CONTACT_WEIGHT = 0.7, 1.9, 3.1
BOOST_WITH_QUERY = 0.42
BOOST_SCORE_WEIGHT = 30.0
BOOST_RANK_WEIGHT = 12.0

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# =========================
# Signals
# =========================


@dataclass(frozen=True)
class RankingSignals:
    """Snapshot of the non-filter inputs to scoring, keyed by normalized ref."""

    behavior: SearchBehavior = field(default_factory=SearchBehavior)
    semantic_scores: Mapping[str, float] = field(default_factory=dict)
    boosts: Mapping[str, float] = field(default_factory=dict)


def recommendation_boosts(recommendations: Sequence[Recommendation]) -> dict[str, float]:
    """
    Boost per ref from an ordered recommendation list: score normalized by the max score
    (at least 1) times 30, plus an inverse-position term times 12.
    """
    if not recommendations:
        return {}
    max_score = max(1.0, *(max(0.0, r.score) if math.isfinite(r.score) else 0.0 for r in recommendations))
    total = max(1, len(recommendations))
    boosts: dict[str, float] = {}
    for idx, rec in enumerate(recommendations):
        key = normalize_ref(rec.ref)
        if not key:
            continue
        boosts[key] = (max(0.0, rec.score) / max_score) * BOOST_SCORE_WEIGHT + max(0.0, 1 - idx / total) * BOOST_RANK_WEIGHT
    return boosts


# =========================
# Prepared query
# =========================


@dataclass(frozen=True)
class PreparedQuery:
    filters: Filters
    tokens: tuple[str, ...]
    semantic_tokens: tuple[str, ...]
    explained: frozenset[str]
    category: str
    commune: str
    district: str
    price_min: int | None
    price_max: int | None

    @property
    def required_matches(self) -> int:
        n = len(self.tokens)
        return n if n <= 2 else max(1, math.ceil(n * TOKEN_MATCH_RATIO))

    @property
    def semantic_threshold(self) -> int:
        m = len(self.semantic_tokens)
        return 0 if m == 0 else max(1, math.ceil(m * SEMANTIC_MATCH_RATIO))


def explained_tokens(filters: Filters, catalogue: FacetCatalogue) -> frozenset[str]:
    """Query tokens already accounted for by structured filters; they count as matched."""
    phrases: list[str] = []
    if filters.deal_type is not DealType.all:
        phrases.append(deal_type_label(filters.deal_type))
        phrases.extend(TRANSACTION_TERMS.get(filters.deal_type, ()))

    category = normalize(filters.category)
    if category:
        phrases.append(filters.category)
        for label, terms in CATEGORY_TERMS.items():
            if normalize(label) == category or any(normalize(t) == category for t in terms):
                phrases.extend(terms)
                break

    room = normalize(filters.rooms)
    if room:
        phrases.append(room)
        if room.startswith("t"):
            phrases.append("f" + room[1:])
        elif room.startswith("f"):
            phrases.append("t" + room[1:])

    if filters.commune:
        phrases.extend(location_aliases(filters.commune))

    district = normalize(filters.district)
    if district:
        commune = normalize(filters.commune)
        phrases.extend(location_aliases(filters.district))
        phrases.extend(
            h.alias
            for h in catalogue.hints
            if normalize(h.district) == district and (not commune or normalize(h.commune) == commune)
        )

    return frozenset(structured_tokens(phrases))


def prepare_query(filters: Filters, catalogue: FacetCatalogue) -> PreparedQuery:
    tokens = tuple(tokenize(filters.query))
    return PreparedQuery(
        filters=filters,
        tokens=tokens,
        semantic_tokens=tuple(expand_semantic_tokens(tokens)),
        explained=explained_tokens(filters, catalogue),
        category=normalize(filters.category),
        commune=normalize(filters.commune),
        district=normalize(filters.district),
        price_min=parse_money(filters.price_min),
        price_max=parse_money(filters.price_max),
    )


# =========================
# Predicates & score
# =========================


def _bound(value: float | None) -> float | None:
    return value if value is not None and math.isfinite(value) and value > 0 else None


def _published_within(listing: Listing, window: PublishedWithin, now: datetime) -> bool:
    if window is PublishedWithin.all or listing.created_at is None:
        return True
    return now - listing.created_at <= timedelta(days=int(window.value))


def _amenities_ok(facts: ListingFacts, included: Iterable[AmenityKey], excluded: Iterable[AmenityKey]) -> bool:
    # a listing without amenity data passes both checks
    if facts.amenities is None:
        return True
    if any(k not in facts.amenities for k in included):
        return False
    return not any(k in facts.amenities for k in excluded)


def freshness_score(listing: Listing, now: datetime) -> float:
    if listing.created_at is None:
        return 0.0
    age_days = max(0.0, (now - listing.created_at).total_seconds() / 86400)
    return max(0.0, FRESHNESS_MAX - age_days * FRESHNESS_DECAY_PER_DAY)


def engagement_score(ref_key: str, behavior: SearchBehavior) -> float:
    return (
        behavior.views.get(ref_key, 0) * VIEW_WEIGHT
        + behavior.favorites.get(ref_key, 0) * FAVORITE_WEIGHT
        + behavior.contacts.get(ref_key, 0) * CONTACT_WEIGHT
    )


def evaluate(
    facts: ListingFacts,
    prepared: PreparedQuery,
    signals: RankingSignals,
    now: datetime,
    include_amenities: bool = True,
) -> Evaluation:
    f = prepared.filters
    listing = facts.listing
    hay = facts.hay
    api_score = signals.semantic_scores.get(facts.ref_key, 0.0)

    # Text
    token_hits = sum(1 for t in prepared.tokens if t in prepared.explained or matches_text(hay, t))
    semantic_hits = sum(1 for t in prepared.semantic_tokens if matches_text(hay, t))
    by_query = (
        not prepared.tokens
        or token_hits >= prepared.required_matches
        or semantic_hits >= prepared.semantic_threshold
        or api_score >= SEMANTIC_API_PASS
    )

    # Structure
    by_deal = deal_matches(f.deal_type, facts.deal, hay)
    by_category = not prepared.category or prepared.category in hay
    by_commune = not prepared.commune or normalize(facts.location.commune) == prepared.commune
    by_district = not prepared.district or normalize(facts.location.district) == prepared.district
    by_rooms = not f.rooms or room_matches(listing, f.rooms, hay)

    # Ranges
    price = facts.price
    by_price = (prepared.price_min is None or price is None or price >= prepared.price_min) and (
        prepared.price_max is None or price is None or price <= prepared.price_max
    )
    area_min, area_max = _bound(f.area_min), _bound(f.area_max)
    beds_min, baths_min = _bound(f.beds_min), _bound(f.baths_min)
    by_ranges = (
        (area_min is None or listing.area >= area_min)
        and (area_max is None or listing.area <= area_max)
        and (beds_min is None or listing.beds >= beds_min)
        and (baths_min is None or listing.baths >= baths_min)
    )
    by_photos = not f.photos_only or bool(listing.images)
    by_published = _published_within(listing, f.published_within, now)
    by_amenities = _amenities_ok(
        facts, f.included_amenities if include_amenities else (), f.excluded_amenities
    )

    # Score
    if prepared.tokens:
        textual = (
            token_hits / len(prepared.tokens) * TOKEN_RATIO_WEIGHT
            + semantic_hits / max(1, len(prepared.semantic_tokens)) * SEMANTIC_RATIO_WEIGHT
            + api_score * SEMANTIC_API_WEIGHT
        )
    else:
        textual = api_score * SEMANTIC_API_WEIGHT_NO_QUERY
    structured = (
        (DEAL_BONUS if by_deal else 0.0)
        + (CATEGORY_BONUS if by_category else 0.0)
        + (COMMUNE_BONUS if by_commune else 0.0)
        + (DISTRICT_BONUS if by_district else 0.0)
        + (ROOM_BONUS if by_rooms else 0.0)
    )
    boost = signals.boosts.get(facts.ref_key, 0.0)
    if prepared.tokens:
        boost *= BOOST_WITH_QUERY
    score = (
        textual
        + structured
        + freshness_score(listing, now)
        + min(len(listing.images), PHOTO_CAP) * PHOTO_WEIGHT
        + engagement_score(facts.ref_key, signals.behavior)
        + boost
    )

    included = (
        by_deal
        and by_query
        and by_category
        and by_commune
        and by_district
        and by_rooms
        and by_price
        and by_ranges
        and by_photos
        and by_published
        and by_amenities
    )
    return Evaluation(included=included, score=score)


# =========================
# Sorting & search
# =========================


def sort_listings(listings: Sequence[Listing], mode: SortMode, scores: Mapping[str, float]) -> list[Listing]:
    """Stable sort; unparseable prices count as 0 and missing dates as the epoch."""
    if mode is SortMode.relevance:
        return sorted(listings, key=lambda x: -scores.get(normalize_ref(x.ref), 0.0))
    if mode is SortMode.price_asc:
        return sorted(listings, key=lambda x: parse_money(x.price) or 0)
    if mode is SortMode.price_desc:
        return sorted(listings, key=lambda x: -(parse_money(x.price) or 0))
    if mode is SortMode.area_desc:
        return sorted(listings, key=lambda x: -x.area)
    if mode is SortMode.newest:
        return sorted(listings, key=lambda x: -((x.created_at or _EPOCH) - _EPOCH).total_seconds())
    return list(listings)


def search(
    filters: Filters,
    catalogue: FacetCatalogue,
    signals: RankingSignals | None = None,
    now: datetime | None = None,
) -> SearchResults:
    signals = signals or RankingSignals()
    now = now or datetime.now(timezone.utc)
    prepared = prepare_query(filters, catalogue)

    scores: dict[str, float] = {}
    results: list[Listing] = []
    context: list[Listing] = []
    for facts in catalogue.facts:
        with_amenities = evaluate(facts, prepared, signals, now, include_amenities=True)
        scores[facts.ref_key] = with_amenities.score
        if with_amenities.included:
            results.append(facts.listing)
            context.append(facts.listing)
        elif evaluate(facts, prepared, signals, now, include_amenities=False).included:
            context.append(facts.listing)

    return SearchResults(
        results=sort_listings(results, filters.sort_mode, scores),
        context=sort_listings(context, filters.sort_mode, scores),
        scores=scores,
    )
