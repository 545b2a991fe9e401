# listing_search/core/normalize/listing.py
"""
Per-listing derived facts.

Purpose
-------
Everything the matchers need from a Listing is derived once here: its effective deal
type, its inferred categories and room label, its parsed (commune, district), and the
folded "searchable text" haystack used for all containment and fuzzy checks.

Public API
----------
- normalize_location_type(raw) -> DealType | None
- effective_deal_type(listing) -> DealType
- infer_categories(listing) / primary_category(listing)
- infer_room_label(listing) -> str
- parse_room_token(value) -> RoomToken | None
- room_matches(listing, room, hay) -> bool
- searchable_text(listing, matchers) -> str
- describe(listing, matchers) -> ListingFacts
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Literal

from listing_search.core.normalize.location import DEFAULT_COMMUNE_MATCHERS, CommuneMatcher, parse_location
from listing_search.core.normalize.text import normalize, normalize_display, normalize_ref, parse_money
from listing_search.schemas.labels import (
    AMENITY_LABELS,
    CATEGORY_TERMS,
    LOCATION_TYPE_PROBES,
    TRANSACTION_TERMS,
    AmenityKey,
    DealType,
)
from listing_search.schemas.models import Listing, ParsedLocation

_ROOM_TOKEN_RE = re.compile(r"^([tf])\s*([1-9])(\+)?$")
_ROOM_PIECES_RE = re.compile(r"\b([1-9])\s*(piece|pieces|pi[eè]ce|pi[eè]ces|room|rooms)\b")
_TITLE_ROOM_RE = re.compile(r"\b([TF]\s*[1-9]\+?|Studio)\b", re.IGNORECASE)
_WS_RE = re.compile(r"\s+")

# ----------------------------
# Deal type
# ----------------------------


def normalize_location_type(raw: str | None) -> DealType | None:
    """Fold a stored location-type string onto a deal type by keyword containment."""
    folded = normalize(raw)
    if not folded:
        return None
    for deal, probes in LOCATION_TYPE_PROBES:
        if any(p in folded for p in probes):
            return deal
    for deal, terms in TRANSACTION_TERMS.items():
        if any(normalize(t) in folded for t in terms):
            return deal
    return None


def effective_deal_type(listing: Listing) -> DealType:
    return normalize_location_type(listing.location_type) or listing.transaction_kind


def deal_matches(filter_deal: DealType, listing_deal: DealType, hay: str) -> bool:
    """
    Transaction predicate: 'all' passes, sale is exact, generic rent accepts any non-sale,
    rent sub-types are exact or a generic rent whose text mentions the sub-type.
    """
    if filter_deal is DealType.all:
        return True
    if filter_deal is DealType.sale:
        return listing_deal is DealType.sale
    if filter_deal is DealType.rent:
        return listing_deal is not DealType.sale
    if listing_deal is filter_deal:
        return True
    return listing_deal is DealType.rent and any(normalize(t) in hay for t in TRANSACTION_TERMS.get(filter_deal, ()))


# ----------------------------
# Categories & rooms
# ----------------------------


def infer_categories(listing: Listing) -> list[str]:
    text = normalize(f"{listing.title} {listing.category or ''}")
    if not text:
        return []
    return [label for label, terms in CATEGORY_TERMS.items() if any(normalize(t) in text for t in terms)]


def primary_category(listing: Listing) -> str:
    explicit = normalize_display(listing.category)
    if explicit:
        return explicit
    inferred = infer_categories(listing)
    return inferred[0] if inferred else ""


def infer_room_label(listing: Listing) -> str:
    """Room label from the title ('F3', 'T2+', 'Studio'), else F{beds+1} capped at 'F6+'."""
    title = normalize_display(listing.title)
    m = _TITLE_ROOM_RE.search(title)
    if m:
        token = _WS_RE.sub("", m.group(1))
        return "Studio" if token.lower() == "studio" else token.upper()

    if listing.beds > 0:
        pieces = int(listing.beds) + 1
        return "F6+" if pieces >= 6 else f"F{pieces}"
    return ""


@dataclass(frozen=True)
class RoomToken:
    raw: str
    family: Literal["t", "f", "studio"]
    pieces: int
    plus: bool = False


def parse_room_token(value: str | None) -> RoomToken | None:
    """
    Recognize 'Studio', '[TF]<n>[+]' (whole value) or '<n> pièce(s)/room(s)' (anywhere).
    """
    folded = normalize(value)
    if not folded:
        return None
    if folded == "studio":
        return RoomToken(raw="Studio", family="studio", pieces=1)

    m = _ROOM_TOKEN_RE.match(folded)
    if m:
        family = m.group(1)
        plus = m.group(3) == "+"
        return RoomToken(
            raw=f"{family.upper()}{m.group(2)}{'+' if plus else ''}",
            family="t" if family == "t" else "f",
            pieces=int(m.group(2)),
            plus=plus,
        )

    m = _ROOM_PIECES_RE.search(folded)
    if m:
        pieces = int(m.group(1))
        return RoomToken(raw=f"F{pieces}", family="f", pieces=pieces)
    return None


def room_matches(listing: Listing, room: str, hay: str) -> bool:
    """
    Room predicate: the token appears in the listing text, or the bedroom count fits.
    F/T<n> means n pieces, so n-1 bedrooms (or n, counting the living room as a bedroom);
    a '+' accepts anything from n-1 bedrooms up. Studio accepts at most one bedroom.
    """
    room_norm = normalize(room)
    if not room_norm:
        return True
    if room_norm in hay:
        return True

    token = parse_room_token(room)
    if token is None:
        return False

    beds = listing.beds
    if token.family == "studio":
        if "studio" in hay:
            return True
        return 0 < beds <= 1

    if token.pieces <= 0 or beds <= 0:
        return False
    expected = max(1, token.pieces - 1)
    if token.plus:
        return beds >= expected
    return beds == expected or beds == token.pieces


# ----------------------------
# Searchable text
# ----------------------------


def _num(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def searchable_text(listing: Listing, matchers: Sequence[CommuneMatcher] = DEFAULT_COMMUNE_MATCHERS) -> str:
    parsed = parse_location(listing.location, matchers)
    deal = effective_deal_type(listing)
    amenity_labels = [AMENITY_LABELS[a] for a in listing.amenities or () if a in AMENITY_LABELS]
    parts = [
        listing.title,
        listing.category or "",
        listing.description or "",
        listing.transaction_kind.value,
        listing.location_type or "",
        listing.price,
        listing.location,
        parsed.commune,
        parsed.district,
        " ".join(infer_categories(listing)),
        deal.value,
        " ".join(TRANSACTION_TERMS.get(deal, ())),
        " ".join(amenity_labels),
        f"{_num(listing.beds)} chambres beds",
        f"{_num(listing.baths)} salles bain baths",
        f"{_num(listing.area)} m2",
    ]
    return normalize(" ".join(parts))


@dataclass(frozen=True)
class ListingFacts:
    """Derived, read-only view of one listing for a given commune catalogue."""

    listing: Listing
    ref_key: str
    hay: str
    deal: DealType
    location: ParsedLocation
    price: int | None
    amenities: frozenset[AmenityKey] | None

    def has_amenities(self, keys: Iterable[AmenityKey]) -> bool:
        return self.amenities is not None and all(k in self.amenities for k in keys)


def describe(listing: Listing, matchers: Sequence[CommuneMatcher] = DEFAULT_COMMUNE_MATCHERS) -> ListingFacts:
    return ListingFacts(
        listing=listing,
        ref_key=normalize_ref(listing.ref),
        hay=searchable_text(listing, matchers),
        deal=effective_deal_type(listing),
        location=parse_location(listing.location, matchers),
        price=parse_money(listing.price),
        amenities=None if listing.amenities is None else frozenset(listing.amenities),
    )
