# tests/unit/test_normalize_listing.py
from __future__ import annotations

import pytest

from listing_search.core.normalize.listing import (
    deal_matches,
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
from listing_search.schemas.labels import AmenityKey, DealType
from listing_search.schemas.models import Listing
from tests.utils import make_listing

# -------- Deal type --------


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("vente", DealType.sale),
        ("par_nuit", DealType.rent_nightly),
        ("Court séjour", DealType.rent_short_stay),
        ("douze_mois", DealType.rent_twelve_months),
        ("six_mois", DealType.rent_six_months),
        ("par_mois", DealType.rent_monthly),
        ("location", DealType.rent),
        ("", None),
        ("inconnu", None),
    ],
)
def test_normalize_location_type(raw: str, expected: DealType | None) -> None:
    assert normalize_location_type(raw) is expected


def test_effective_deal_type_prefers_location_type() -> None:
    assert effective_deal_type(make_listing(transaction_kind=DealType.rent, location_type="par_nuit")) is (
        DealType.rent_nightly
    )
    assert effective_deal_type(make_listing(transaction_kind=DealType.rent, location_type=None)) is DealType.rent


def test_deal_matches_rules() -> None:
    assert deal_matches(DealType.all, DealType.rent_nightly, "")
    assert deal_matches(DealType.sale, DealType.sale, "")
    assert not deal_matches(DealType.sale, DealType.rent, "")
    assert deal_matches(DealType.rent, DealType.rent_monthly, "")
    assert deal_matches(DealType.rent_monthly, DealType.rent_monthly, "")
    assert deal_matches(DealType.rent_monthly, DealType.rent, "loyer 40000 par mois")
    assert not deal_matches(DealType.rent_monthly, DealType.rent, "loyer a la semaine")
    assert not deal_matches(DealType.rent_monthly, DealType.rent_nightly, "par mois")


# -------- Categories & rooms --------


def test_category_inference() -> None:
    villa = make_listing(title="Belle maison avec jardin", category=None)
    assert infer_categories(villa) == ["Villa"]
    assert primary_category(villa) == "Villa"
    assert primary_category(make_listing(category="  Duplex ")) == "Duplex"
    assert primary_category(make_listing(title="Ensemble", category=None)) == ""


@pytest.mark.parametrize(
    ("title", "beds", "expected"),
    [
        ("Appartement F3 centre", 0, "F3"),
        ("Bel appartement t2 vue", 0, "T2"),
        ("STUDIO meuble", 0, "Studio"),
        ("Appartement", 2, "F3"),
        ("Grande villa", 7, "F6+"),
        ("Terrain", 0, ""),
    ],
)
def test_infer_room_label(title: str, beds: int, expected: str) -> None:
    assert infer_room_label(make_listing(title=title, beds=beds)) == expected


def test_parse_room_token_variants() -> None:
    assert parse_room_token("T3").raw == "T3"
    plus = parse_room_token("f4+")
    assert (plus.raw, plus.family, plus.pieces, plus.plus) == ("F4+", "f", 4, True)
    assert parse_room_token("studio").family == "studio"
    assert parse_room_token("appartement 3 pièces").raw == "F3"
    assert parse_room_token("Canastel") is None
    assert parse_room_token("") is None


def test_room_matching_by_bedroom_count() -> None:
    listing = make_listing(title="Appartement lumineux", beds=2, category="Appartement")
    hay = searchable_text(listing)
    assert room_matches(listing, "F3", hay)
    assert room_matches(listing, "T3", hay)
    assert room_matches(listing, "F3+", hay)
    assert room_matches(listing, "F2", hay)  # beds == pieces
    assert not room_matches(listing, "F4", hay)

    bigger = make_listing(title="Appartement lumineux", beds=3)
    assert room_matches(bigger, "F4", searchable_text(bigger))


def test_room_matching_studio_and_text() -> None:
    one_bed = make_listing(title="Petit logement", category=None, beds=1)
    assert room_matches(one_bed, "Studio", searchable_text(one_bed))
    no_beds = make_listing(title="Petit logement", category=None, beds=0)
    assert not room_matches(no_beds, "Studio", searchable_text(no_beds))
    # the token itself in the text is enough
    titled = make_listing(title="Appartement F5 neuf", beds=0)
    assert room_matches(titled, "F5", searchable_text(titled))
    assert room_matches(titled, "", "")


# -------- Searchable text & facts --------


def test_searchable_text_covers_all_sources() -> None:
    listing = make_listing(
        title="Appartement F3",
        description="Proche tramway",
        location="Canastel, Bir El Djir",
        amenities=[AmenityKey.vue_mer],
        beds=2,
        baths=1,
        area=95.5,
    )
    hay = searchable_text(listing)
    for fragment in (
        "appartement f3",
        "proche tramway",
        "canastel",
        "bir el djir",
        "vente",
        "achat",
        "vue mer",
        "2 chambres beds",
        "1 salles bain baths",
        "95.5 m2",
    ):
        assert fragment in hay


def test_describe_builds_facts() -> None:
    facts = describe(make_listing(ref=" RST-9 ", price="2.5M", location="Oran/Maraval", amenities=None))
    assert facts.ref_key == "rst-9"
    assert facts.price == 2_500_000
    assert (facts.location.commune, facts.location.district) == ("Oran", "Maraval")
    assert facts.amenities is None
    assert not facts.has_amenities([AmenityKey.fibre])


def test_listing_coerces_dirty_input() -> None:
    listing = Listing.model_validate(
        {
            "ref": "X-1",
            "transactionKind": None,
            "beds": "n/a",
            "area": float("nan"),
            "createdAt": "not a date",
            "images": ["", "https://cdn/x.jpg", 3],
            "amenities": ["vue_mer", "teleporteur", "vue_mer"],
        }
    )
    assert listing.transaction_kind is DealType.sale
    assert listing.beds == 0
    assert listing.area == 0
    assert listing.created_at is None
    assert listing.images == ["https://cdn/x.jpg"]
    assert listing.amenities == [AmenityKey.vue_mer]

    odd = Listing.model_validate({"ref": "X-2", "transactionKind": "bail commercial"})
    assert odd.transaction_kind is DealType.sale
    assert Listing.model_validate({"ref": "X-3", "transactionKind": "Tous"}).transaction_kind is DealType.all
