# listing_search/core/filters.py

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from listing_search.core.normalize.location import DEFAULT_COMMUNE_MATCHERS, CommuneMatcher, resolve_commune
from listing_search.core.normalize.text import digits_only
from listing_search.schemas.labels import (
    AMENITY_LABELS,
    DealType,
    PublishedWithin,
    SortMode,
    coerce_enum,
    deal_type_label,
)
from listing_search.schemas.models import ActiveFilter, Filters

# Field resets shared by preset conflict-relax and the reset-everything recovery.
RELAX_CHANGES: dict[str, Any] = {
    "query": "",
    "category": "",
    "published_within": PublishedWithin.all,
    "photos_only": False,
    "commune": "",
    "district": "",
    "rooms": "",
    "price_min": "",
    "price_max": "",
    "area_min": None,
    "area_max": None,
    "beds_min": None,
    "baths_min": None,
    "excluded_amenities": frozenset(),
}

RESET_CHANGES: dict[str, Any] = {
    **RELAX_CHANGES,
    "deal_type": DealType.all,
    "included_amenities": frozenset(),
    "sort_mode": SortMode.relevance,
}


def _fmt(value: float | None) -> str:
    if value is None:
        return ""
    return str(int(value)) if float(value).is_integer() else str(value)


def active_filters(filters: Filters) -> list[ActiveFilter]:
    """Active facets in display order; the length is the active-filter count."""
    chips: list[ActiveFilter] = []
    if filters.deal_type is not DealType.all:
        chips.append(ActiveFilter(key="deal_type", label=deal_type_label(filters.deal_type)))
    if filters.category:
        chips.append(ActiveFilter(key="category", label=filters.category))
    if filters.published_within is not PublishedWithin.all:
        chips.append(ActiveFilter(key="published_within", label=f"{filters.published_within.value} jours"))
    if filters.photos_only:
        chips.append(ActiveFilter(key="photos_only", label="Avec photos"))
    if filters.commune:
        chips.append(ActiveFilter(key="commune", label=filters.commune))
    if filters.district:
        chips.append(ActiveFilter(key="district", label=filters.district))
    if filters.rooms:
        chips.append(ActiveFilter(key="rooms", label=filters.rooms))
    for key in sorted(filters.included_amenities, key=lambda k: k.value):
        chips.append(ActiveFilter(key=f"amenity:{key.value}", label=AMENITY_LABELS[key]))
    for key in sorted(filters.excluded_amenities, key=lambda k: k.value):
        chips.append(ActiveFilter(key=f"excluded_amenity:{key.value}", label=f"-{AMENITY_LABELS[key]}"))
    if filters.price_min or filters.price_max:
        chips.append(ActiveFilter(key="price", label=f"{filters.price_min or '0'} → {filters.price_max or '∞'}"))
    if filters.area_min or filters.area_max:
        chips.append(
            ActiveFilter(key="area", label=f"{_fmt(filters.area_min) or '0'} → {_fmt(filters.area_max) or '∞'} m2")
        )
    if filters.beds_min:
        chips.append(ActiveFilter(key="beds_min", label=f"{_fmt(filters.beds_min)}+ chambres"))
    if filters.baths_min:
        chips.append(ActiveFilter(key="baths_min", label=f"{_fmt(filters.baths_min)}+ sdb"))
    return chips


def parsed_summary(filters: Filters) -> list[str]:
    """Short human summary of what the query resolved to."""
    rows: list[str] = []
    if filters.deal_type is not DealType.all:
        rows.append(deal_type_label(filters.deal_type))
    for value in (filters.category, filters.rooms, filters.commune, filters.district):
        if value:
            rows.append(value)
    if filters.excluded_amenities:
        labels = [AMENITY_LABELS[k] for k in sorted(filters.excluded_amenities, key=lambda k: k.value)]
        rows.append(f"-{', '.join(labels[:2])}")
    return rows


def filters_from_params(
    params: Mapping[str, str], matchers: Sequence[CommuneMatcher] = DEFAULT_COMMUNE_MATCHERS
) -> Filters:
    """
    Initial filters from URL-style parameters. Numeric parameters keep their digits only,
    the commune is resolved to its canonical spelling, unknown deal types mean 'all'.
    """

    def text(key: str) -> str:
        return (params.get(key) or "").strip()

    def number(key: str) -> float | None:
        digits = digits_only(text(key))
        return float(digits) if digits else None

    deal = coerce_enum(DealType, text("dealType") or text("transaction"), DealType.all)
    commune = text("commune")
    return Filters(
        query=text("q"),
        deal_type=deal,
        category=text("category"),
        commune=resolve_commune(commune, matchers) if commune else "",
        district=text("district"),
        rooms=text("rooms"),
        price_min=digits_only(text("priceMin")),
        price_max=digits_only(text("priceMax")),
        area_min=number("areaMin"),
        area_max=number("areaMax"),
        sort_mode=SortMode.relevance,
    )


def snapshot(filters: Filters) -> dict[str, Any]:
    """JSON-ready view of the filters (used by saved searches)."""
    return filters.model_dump(mode="json")
