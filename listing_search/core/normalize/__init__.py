# listing_search/core/normalize/__init__.py
from __future__ import annotations

from .aliases import expand_semantic_tokens, location_aliases, variants_of
from .fuzzy import matches_text
from .listing import (
    ListingFacts,
    RoomToken,
    describe,
    effective_deal_type,
    infer_categories,
    infer_room_label,
    normalize_location_type,
    parse_room_token,
    primary_category,
    room_matches,
    searchable_text,
)
from .location import (
    CommuneMatcher,
    build_commune_matchers,
    build_district_hints,
    parse_location,
    resolve_commune,
)
from .text import compact, normalize, normalize_ref, parse_money, tokenize

__all__ = [
    "normalize",
    "tokenize",
    "compact",
    "normalize_ref",
    "parse_money",
    "variants_of",
    "expand_semantic_tokens",
    "location_aliases",
    "matches_text",
    "CommuneMatcher",
    "build_commune_matchers",
    "build_district_hints",
    "parse_location",
    "resolve_commune",
    "ListingFacts",
    "RoomToken",
    "describe",
    "effective_deal_type",
    "normalize_location_type",
    "infer_categories",
    "infer_room_label",
    "primary_category",
    "parse_room_token",
    "room_matches",
    "searchable_text",
]
