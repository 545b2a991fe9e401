# tests/utils.py
"""
Single source of truth for test data, factories, and canonical payloads.
Update values here to cascade across the test suite.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from listing_search.core.facets import FacetCatalogue, build_catalogue
from listing_search.schemas.labels import AmenityKey, DealType
from listing_search.schemas.models import DistrictEntry, Filters, Listing

# -----------------------------
# Global defaults (edit once)
# -----------------------------

FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

DEFAULT_COMMUNES: tuple[str, ...] = ("Oran", "Bir El Djir", "Es Senia", "Aïn El Turk")

DEFAULT_DISTRICTS: tuple[DistrictEntry, ...] = (
    DistrictEntry(name="Maraval", commune="Oran"),
    DistrictEntry(name="Gambetta", commune="Oran"),
    DistrictEntry(name="Canastel", commune="Bir El Djir"),
)


# -----------------------------
# Listing factories
# -----------------------------


def make_listing(**overrides: Any) -> Listing:
    """
    Plain sale apartment in Oran, published 3 days before FIXED_NOW, one photo,
    no amenity information. Any field can be overridden by name.
    """
    data: dict[str, Any] = {
        "id": overrides.get("ref", "RST-001").lower(),
        "ref": "RST-001",
        "title": "Appartement spacieux",
        "transaction_kind": DealType.sale,
        "category": "Appartement",
        "description": "Bel appartement proche des commodites",
        "price": "12 000 000 DZD",
        "location": "Oran",
        "beds": 2,
        "baths": 1,
        "area": 90,
        "created_at": FIXED_NOW - timedelta(days=3),
        "images": ["https://cdn.example.org/property-images/rst-001/cover.jpg"],
        "amenities": None,
    }
    data.update(overrides)
    return Listing(**data)


def sample_listings() -> list[Listing]:
    """A small, varied candidate set used across the suite."""
    return [
        make_listing(
            ref="RST-101",
            title="Appartement F3 Canastel",
            location="Canastel, Bir El Djir",
            price="14 500 000 DZD",
            beds=2,
            area=95,
            images=["https://cdn.example.org/a.jpg", "https://cdn.example.org/b.jpg"],
            amenities=[AmenityKey.vue_mer, AmenityKey.deux_balcons, AmenityKey.lumineux],
        ),
        make_listing(
            ref="RST-102",
            title="Appartement F4 Maraval",
            location="Oran/Maraval",
            price="18 000 000 DZD",
            beds=3,
            area=120,
            created_at=FIXED_NOW - timedelta(days=10),
            amenities=[AmenityKey.vue_mer, AmenityKey.deux_balcons, AmenityKey.climatisation],
        ),
        make_listing(
            ref="RST-103",
            title="Villa avec jardin",
            category="Villa",
            location="Es Senia",
            price="45 000 000 DZD",
            beds=5,
            baths=3,
            area=300,
            created_at=FIXED_NOW - timedelta(days=40),
            amenities=[AmenityKey.jardin, AmenityKey.piscine, AmenityKey.garage],
        ),
        make_listing(
            ref="RST-104",
            title="Studio meuble Gambetta",
            transaction_kind=DealType.rent,
            location_type="par_mois",
            location="Oran/Gambetta",
            price="45 000 DZD",
            beds=1,
            area=35,
            images=[],
            amenities=[AmenityKey.fibre, AmenityKey.lumineux],
        ),
        make_listing(
            ref="RST-105",
            title="Local commercial",
            category="Local",
            location="Oran",
            price="prix a debattre",
            beds=0,
            baths=0,
            area=60,
            created_at=None,
        ),
    ]


def scenario_sea_view_listings() -> list[Listing]:
    """Three listings; only the first carries a sea view."""
    return [
        make_listing(
            ref="SEA-1",
            title="Appartement F3 standing",
            location="Oran",
            amenities=[AmenityKey.vue_mer, AmenityKey.deux_balcons],
        ),
        make_listing(
            ref="SEA-2",
            title="Appartement F2 calme",
            location="Oran",
            amenities=[AmenityKey.climatisation],
        ),
        make_listing(ref="SEA-3", title="Villa familiale", category="Villa", location="Es Senia"),
    ]


# -----------------------------
# Filters & catalogue factories
# -----------------------------


def make_filters(**overrides: Any) -> Filters:
    return Filters(**overrides)


def make_catalogue(
    listings: list[Listing] | None = None,
    communes: tuple[str, ...] | None = DEFAULT_COMMUNES,
    districts: tuple[DistrictEntry, ...] = DEFAULT_DISTRICTS,
) -> FacetCatalogue:
    return build_catalogue(sample_listings() if listings is None else listings, communes, districts)
