# tests/unit/test_suggest.py
from __future__ import annotations

from listing_search.core.suggest import (
    apply_suggestion,
    category_supports_rooms,
    count_matches,
    infer_category_context,
    room_options_for,
    smart_query_profiles,
    suggestions,
)
from listing_search.schemas.labels import ROOM_OPTIONS, DealType, SuggestionType
from listing_search.schemas.models import SearchSuggestion
from tests.utils import make_catalogue, make_filters, make_listing

# -------- Room options --------


def test_room_options_follow_category_context() -> None:
    assert room_options_for("") == list(ROOM_OPTIONS)
    assert room_options_for("Terrain") == []
    assert room_options_for("Local commercial") == []

    apartment = room_options_for("Appartement")
    assert apartment[0] == "Studio"
    assert apartment.index("F2") < apartment.index("T1")

    villa = room_options_for("Villa")
    assert villa[0] == "T1"
    assert villa[-1] == "Studio"


def test_category_context_inference() -> None:
    assert infer_category_context("f3 canastel") == "Appartement"
    assert infer_category_context("belle maison") == "Villa"
    assert infer_category_context("oran", "Bureau") == "Bureau"
    assert infer_category_context("") == ""
    assert not category_supports_rooms("Bureau")
    assert category_supports_rooms("")


# -------- Smart-query profiles & counts --------


def test_smart_query_profiles_count_each_listing_once_per_phrase() -> None:
    catalogue = make_catalogue(
        [
            make_listing(ref="A", title="Appartement F3", location="Oran/Maraval"),
            make_listing(ref="B", title="Appartement F3", location="Oran/Maraval"),
            make_listing(ref="C", title="Villa", category="Villa", location="Es Senia", beds=4),
        ]
    )
    profiles = {p.label: p.match_count for p in smart_query_profiles(catalogue)}
    assert profiles["Vente Appartement F3 Maraval Oran"] == 2
    assert profiles["Vente Appartement F3 Oran"] == 2
    assert profiles["Vente Villa F5 Es Senia"] == 1
    first = smart_query_profiles(catalogue)[0]
    assert first.match_count == 2


def test_count_matches_by_facet(catalogue) -> None:
    def count(**fields) -> int:
        return count_matches(fields, catalogue)

    assert count(type=SuggestionType.transaction, deal_type=DealType.sale) == 4
    assert count(type=SuggestionType.transaction, deal_type=DealType.rent) == 1
    assert count(type=SuggestionType.transaction, deal_type=DealType.rent_monthly) == 1
    assert count(type=SuggestionType.transaction, deal_type=DealType.rent_nightly) == 0
    assert count(type=SuggestionType.category, category="Villa") == 1
    assert count(type=SuggestionType.commune, commune="Oran") == 3
    assert count(type=SuggestionType.district, district="Maraval", commune="Oran") == 1
    assert count(type=SuggestionType.room, room="F3") >= 1


# -------- Suggestions --------


def test_no_suggestions_for_empty_query(catalogue) -> None:
    assert suggestions(make_filters(query="   "), catalogue) == []


def test_district_fragment_suggests_phrase_then_district(catalogue) -> None:
    rows = suggestions(make_filters(query="canas"), catalogue)
    assert [s.type for s in rows] == [SuggestionType.smart_query, SuggestionType.district]
    assert rows[0].label == "Vente Appartement F3 Canastel Bir El Djir"
    district = rows[1]
    assert (district.commune, district.district, district.match_count) == ("Bir El Djir", "Canastel", 1)
    assert district.label == "Canastel - Bir El Djir"


def test_transaction_suggestion_carries_count(catalogue) -> None:
    rows = suggestions(make_filters(query="vente"), catalogue)
    sale = next(s for s in rows if s.type is SuggestionType.transaction)
    assert sale.deal_type is DealType.sale
    assert sale.match_count == 4
    # facet priority: phrases first
    assert rows[0].type is SuggestionType.smart_query


def test_suggestions_are_capped_and_unique(catalogue) -> None:
    rows = suggestions(make_filters(query="a"), catalogue, limit=5)
    assert len(rows) <= 5
    assert len({s.key for s in rows}) == len(rows)
    assert all(s.match_count > 0 for s in rows)


# -------- Application --------


def test_apply_suggestion_merges_facets() -> None:
    start = make_filters(query="can", commune="Oran", district="Maraval")

    district = SearchSuggestion(
        key="district:x", type=SuggestionType.district, label="Canastel - Bir El Djir", value="Canastel",
        commune="Bir El Djir", district="Canastel",
    )
    applied = apply_suggestion(start, district)
    assert (applied.query, applied.commune, applied.district) == ("Canastel", "Bir El Djir", "Canastel")

    commune = SearchSuggestion(key="commune:es", type=SuggestionType.commune, label="Es Senia", value="Es Senia",
                               commune="Es Senia")
    applied = apply_suggestion(start, commune)
    assert (applied.commune, applied.district) == ("Es Senia", "")

    deal = SearchSuggestion(key="t", type=SuggestionType.transaction, label="Location", value="Location",
                            deal_type=DealType.rent)
    assert apply_suggestion(start, deal).deal_type is DealType.rent

    room = SearchSuggestion(key="room:F3", type=SuggestionType.room, label="F3", value="F3", room="F3")
    assert apply_suggestion(start, room).rooms == "F3"

    smart = SearchSuggestion(key="smart:x", type=SuggestionType.smart_query, label="Vente Villa", value="Vente Villa")
    applied = apply_suggestion(start, smart)
    assert applied.query == "Vente Villa"
    assert applied.commune == "Oran"
