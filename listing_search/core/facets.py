# listing_search/core/facets.py
"""
Facet catalogue: everything derived once from (candidate listings, commune catalogue,
district catalogue) and read by intent extraction, suggestions and evaluation.

Rebuild the catalogue whenever the candidate set or either catalogue changes.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from listing_search.core.normalize.listing import ListingFacts, describe, infer_categories
from listing_search.core.normalize.location import (
    CommuneMatcher,
    build_commune_matchers,
    build_district_catalogue,
    build_district_hints,
)
from listing_search.core.normalize.text import normalize, normalize_display
from listing_search.schemas.labels import CATEGORY_TERMS
from listing_search.schemas.models import CommuneDistrictHint, DistrictEntry, Listing, PriceRange

_FALLBACK_PRICE_RANGE = PriceRange(low=0, high=1_000_000, step=50_000, has_data=False)


def price_step(span: int) -> int:
    if span > 30_000_000:
        return 500_000
    if span > 10_000_000:
        return 250_000
    if span > 2_000_000:
        return 100_000
    return 50_000


def price_range(facts: Iterable[ListingFacts]) -> PriceRange:
    """Slider bounds over parseable prices; 0–1M with a 50k step when nothing parses."""
    prices = [f.price for f in facts if f.price is not None]
    if not prices:
        return _FALLBACK_PRICE_RANGE
    low, high = min(prices), max(prices)
    step = price_step(max(high - low, 1))
    return PriceRange(low=low, high=high if high != low else low + step, step=step, has_data=True)


@dataclass(frozen=True)
class FacetCatalogue:
    listings: tuple[Listing, ...]
    matchers: tuple[CommuneMatcher, ...]
    districts: tuple[DistrictEntry, ...]
    facts: tuple[ListingFacts, ...]
    hints: tuple[CommuneDistrictHint, ...]
    prices: PriceRange = field(default=_FALLBACK_PRICE_RANGE)

    # ---------- Communes / districts ----------

    @property
    def commune_options(self) -> list[str]:
        return [m.raw for m in self.matchers]

    def district_options(self, commune: str) -> list[str]:
        """Districts of a commune: catalogue rows first, else districts seen in listings."""
        wanted = normalize(commune)
        if not wanted:
            return []
        found = {d.name for d in self.districts if normalize(d.commune) == wanted}
        if not found:
            found = {
                f.location.district
                for f in self.facts
                if f.location.commune and f.location.district and normalize(f.location.commune) == wanted
            }
        return sorted(found, key=normalize)

    # ---------- Categories ----------

    @property
    def category_options(self) -> list[str]:
        """Seed labels, explicit and inferred categories; deduplicated by folded form, sorted."""
        by_norm: dict[str, str] = {}

        def add(label: str | None) -> None:
            clean = (label or "").strip()
            norm = normalize(clean)
            if norm and norm not in by_norm:
                by_norm[norm] = clean

        for label in CATEGORY_TERMS:
            add(label)
        for listing in self.listings:
            add(listing.category)
            for label in infer_categories(listing):
                add(label)
        return sorted(by_norm.values())

    @property
    def suggestion_categories(self) -> list[str]:
        """Seed labels first, then categories observed in listings (exact-string dedupe)."""
        out = list(CATEGORY_TERMS)
        for listing in self.listings:
            for label in [*infer_categories(listing), normalize_display(listing.category)]:
                if label and label not in out:
                    out.append(label)
        return out


def build_catalogue(
    listings: Iterable[Listing],
    communes: Iterable[str] | None = None,
    districts: Iterable[DistrictEntry] = (),
) -> FacetCatalogue:
    items = tuple(listings)
    matchers = build_commune_matchers(communes)
    district_rows = tuple(build_district_catalogue(districts, matchers))
    facts = tuple(describe(item, matchers) for item in items)
    return FacetCatalogue(
        listings=items,
        matchers=matchers,
        districts=district_rows,
        facts=facts,
        hints=tuple(build_district_hints(items, district_rows, matchers)),
        prices=price_range(facts),
    )
