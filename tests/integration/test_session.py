# tests/integration/test_session.py
"""
SearchSession bookkeeping: metrics, engagement counters, favorites, presets, saved
searches and behavior events, all against an in-memory store.
"""

from __future__ import annotations

import time
from typing import Any

import pytest

from listing_search.inputs.settings import SearchSettings
from listing_search.remote.recommendations import parse_recommendations
from listing_search.schemas.labels import AmenityKey, BehaviorEventType, SuggestionType
from listing_search.store.behavior import SEARCH_METRICS_KEY, BehaviorStore
from tests.utils import make_listing

pytestmark = pytest.mark.integration


class _RecordingTelemetry:
    def __init__(self) -> None:
        self.events: list[dict[str, Any]] = []

    def send(self, event_type, user_id, property_ref="", payload=None) -> bool:
        self.events.append(
            {"type": event_type, "user": user_id, "ref": property_ref, "payload": payload or {}}
        )
        return True


@pytest.fixture
def telemetry():
    return _RecordingTelemetry()


class _FixedRecommendations:
    def __init__(self, *refs: str) -> None:
        self.refs = refs
        self.calls = 0

    def fetch(self):
        self.calls += 1
        return parse_recommendations({"recommendations": [{"ref": ref, "score": 1} for ref in self.refs]})


def _wait_for(predicate, timeout: float = 3.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


# -------- Query metrics --------


def test_commit_query_counts_each_distinct_query_once(session_factory) -> None:
    session = session_factory()
    session.set_query("Vue Mer")
    assert session.commit_query() is True
    assert session.commit_query() is False
    session.set_query("vue mer ")
    assert session.commit_query() is False

    session.set_query("")
    assert session.commit_query() is False
    session.set_query("vue mer")
    assert session.commit_query() is True

    assert session.store.metrics.queries == 2
    assert session.store.behavior.recent_queries == ["vue mer"]


def test_scheduled_commits_collapse_into_one(session_factory) -> None:
    session = session_factory(settings=SearchSettings(query_commit_debounce_s=0.05))
    session.set_query("villa")
    for _ in range(5):
        session.schedule_commit()

    assert _wait_for(lambda: session.store.metrics.queries == 1)
    time.sleep(0.2)
    assert session.store.metrics.queries == 1
    assert session.store.behavior.recent_queries == ["villa"]
    session.close()


def test_close_cancels_a_pending_commit(session_factory) -> None:
    session = session_factory(settings=SearchSettings(query_commit_debounce_s=0.1))
    session.set_query("villa")
    session.schedule_commit()
    session.close()
    time.sleep(0.3)
    assert session.store.metrics.queries == 0
    assert session.store.behavior.recent_queries == []


def test_zero_results_counted_once_per_query(session_factory) -> None:
    session = session_factory()
    session.set_query("zzzz")
    session.results()
    session.results()
    assert session.store.metrics.zero_results == 1

    session.set_query("zzzz qqqq")
    session.results()
    assert session.store.metrics.zero_results == 2


def test_metrics_survive_a_new_session(session_factory, kv) -> None:
    session = session_factory()
    session.set_query("villa")
    session.commit_query()
    assert kv.get(SEARCH_METRICS_KEY) is not None
    assert BehaviorStore(kv).metrics.queries == 1


def test_quality_rates(session_factory) -> None:
    session = session_factory()
    session.set_query("zzzz")
    session.commit_query()
    session.results()
    quality = session.quality()
    assert quality.zero_rate == 100.0
    assert quality.contact_conversion == 0.0


# -------- Suggestions --------


def test_applying_a_suggestion_counts_a_click(session_factory, telemetry) -> None:
    session = session_factory(telemetry=telemetry, user_id="u-1")
    session.set_query("canas")
    district = next(s for s in session.suggestions() if s.type is SuggestionType.district)
    session.apply_suggestion(district)

    assert (session.filters.commune, session.filters.district) == ("Bir El Djir", "Canastel")
    assert session.store.metrics.suggestion_clicks == 1
    (event,) = telemetry.events
    assert event["type"] is BehaviorEventType.search_click
    assert event["payload"] == {
        "query": "canas",
        "suggestionType": "district",
        "suggestionLabel": "Canastel - Bir El Djir",
        "suggestionValue": "Canastel",
    }
    assert [x.ref for x in session.results().results] == ["RST-101"]


# -------- Listing actions --------


def test_open_listing_and_contact(session_factory, telemetry) -> None:
    session = session_factory(telemetry=telemetry, user_id="u-1")
    session.open_listing("rst-102")
    session.contact("RST-102")

    assert session.store.behavior.views == {"rst-102": 1}
    assert session.store.behavior.contacts == {"rst-102": 1}
    assert session.store.metrics.contacts_from_search == 1
    assert [e["type"] for e in telemetry.events] == [BehaviorEventType.view, BehaviorEventType.contact]
    payload = telemetry.events[1]["payload"]
    assert (payload["commune"], payload["district"], payload["dealType"]) == ("Oran", "Maraval", "Vente")
    assert payload["amenities"] == ["vue_mer", "deux_balcons", "climatisation"]

    with pytest.raises(KeyError):
        session.open_listing("nope")


def test_favorites_toggle(session_factory, telemetry) -> None:
    session = session_factory(telemetry=telemetry, user_id="u-1")
    assert session.toggle_favorite("RST-101") is True
    assert session.store.is_favorite("rst-101")
    assert session.toggle_favorite("RST-101") is False
    assert not session.store.is_favorite("rst-101")
    # only additions are reported
    assert [e["type"] for e in telemetry.events] == [BehaviorEventType.favorite]


def test_events_need_a_signed_in_user(session_factory) -> None:
    telemetry = _RecordingTelemetry()
    session = session_factory(telemetry=telemetry)
    session.open_listing("RST-101")
    assert telemetry.events[0]["user"] is None


# -------- Presets --------


def test_toggle_preset_and_contact_stats(session_factory) -> None:
    session = session_factory()
    assert session.toggle_preset("sea") is True
    assert session.filters.included_amenities == frozenset({AmenityKey.vue_mer, AmenityKey.deux_balcons})
    assert [x.ref for x in session.results().results] == ["RST-101", "RST-102", "RST-105"]
    assert "sea" in session.active_preset_keys()

    session.contact("RST-101")
    assert session.store.preset_stats["sea"].clicks == 1
    assert session.store.preset_stats["sea"].contacts == 1

    assert session.toggle_preset("sea") is False
    assert session.filters.included_amenities == frozenset()

    with pytest.raises(KeyError):
        session.toggle_preset("missing")


def test_clear_presets(session_factory) -> None:
    session = session_factory()
    session.toggle_preset("remote")
    session.update(included_amenities=session.filters.included_amenities | {AmenityKey.jardin})
    session.clear_presets()
    assert session.filters.included_amenities == frozenset({AmenityKey.jardin})


def test_save_custom_preset(session_factory) -> None:
    session = session_factory()
    session.update(included_amenities=frozenset({AmenityKey.fibre}))
    with pytest.raises(ValueError):
        session.save_custom_preset()

    session.update(included_amenities=frozenset({AmenityKey.fibre, AmenityKey.jardin}))
    preset = session.save_custom_preset("Jardin connecte")
    assert preset.label == "Jardin connecte"
    assert session.store.custom_presets[0].key == preset.key
    assert preset.key in {p.key for p in session.all_presets()}
    assert preset.key in session.active_preset_keys()


# -------- Saved searches --------


def test_save_search_snapshots_filters(session_factory) -> None:
    session = session_factory()
    with pytest.raises(ValueError):
        session.save_search("email", "  ")

    session.set_query("vue mer")
    entry = session.save_search("whatsapp", "+213 555 00 00 00")
    assert entry.channel == "whatsapp"
    assert entry.filters["query"] == "vue mer"
    assert entry.filters["included_amenities"] == ["vue_mer"]
    assert entry.filters["aiPresets"] == []
    assert session.store.saved_searches()[0].target == "+213 555 00 00 00"


# -------- Filters & insights --------


def test_update_rejects_unknown_fields(session_factory) -> None:
    session = session_factory()
    with pytest.raises(ValueError):
        session.update(colour="blue")


def test_insights_over_visible_results(session_factory) -> None:
    session = session_factory()
    insights = session.insights()
    assert (insights.total, insights.visible, insights.communes) == (5, 5, 3)
    assert (insights.min_price, insights.max_price) == (45_000, 45_000_000)

    session.update(commune="Oran")
    insights = session.insights()
    assert (insights.visible, insights.communes) == (3, 1)
    assert session.active_filter_count() == 1


def test_remote_features_are_off_by_default(session_factory) -> None:
    session = session_factory()
    assert session.refresh_semantic().reason == "paused"
    assert session.load_recommendations() == []
    session.close()


def test_recommendations_boost_results_for_signed_in_user(session_factory) -> None:
    recs = _FixedRecommendations("E-2")
    session = session_factory(
        listings=[make_listing(ref="E-1"), make_listing(ref="E-2")], recommendations=recs, user_id="u-1"
    )
    assert [x.ref for x in session.results().results] == ["E-1", "E-2"]

    assert [r.ref for r in session.load_recommendations()] == ["e-2"]
    found = session.results()
    assert [x.ref for x in found.results] == ["E-2", "E-1"]
    assert found.scores["e-2"] - found.scores["e-1"] == pytest.approx(42.0)

    session.set_user(None)
    found = session.results()
    assert [x.ref for x in found.results] == ["E-1", "E-2"]
    assert found.scores["e-2"] == pytest.approx(found.scores["e-1"])

    assert session.load_recommendations() == []
    assert recs.calls == 1
