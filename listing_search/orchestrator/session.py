# listing_search/orchestrator/session.py
"""
Search session (single logical writer)

Purpose
-------
Tie the pure core (intent, suggestions, ranking, presets, recovery) to the session state
that changes with user interaction: the current Filters snapshot, the persisted usage
state, and the optional remote enrichments.

Design
------
- Filters are immutable; every interaction replaces ``self.filters`` with a new snapshot.
- The evaluation clock is captured once (``now``) so repeated evaluation over an
  unchanged snapshot yields identical scores.
- Remote services only ever add signal: a failed lookup leaves the session with no
  semantic scores / no boosts and a ``reason`` string.

Public API
----------
SearchSession(listings, communes=None, districts=(), store=None, settings=None, ...)
  set_query / update / suggestions / apply_suggestion / results / recovery_actions /
  apply_recovery / presets / toggle_preset / clear_presets / save_custom_preset /
  open_listing / toggle_favorite / contact / save_search / commit_query /
  schedule_commit / refresh_semantic / load_recommendations / quality / insights / close
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any, Literal

from listing_search.core import presets as preset_engine
from listing_search.core import suggest
from listing_search.core.facets import FacetCatalogue, build_catalogue
from listing_search.core.filters import active_filters, snapshot
from listing_search.core.intent import extract_intent
from listing_search.core.normalize.location import parse_location
from listing_search.core.normalize.listing import effective_deal_type
from listing_search.core.normalize.text import normalize, normalize_ref, parse_money
from listing_search.core.ranking import RankingSignals, recommendation_boosts, search
from listing_search.core.recovery import recovery_actions
from listing_search.inputs.settings import SearchSettings
from listing_search.remote.recommendations import RecommendationsClient, RecommendationsLoader
from listing_search.remote.semantic import DebouncedSemanticLookup, SemanticSearchClient, SemanticState
from listing_search.remote.telemetry import BehaviorTelemetry
from listing_search.schemas.labels import BehaviorEventType
from listing_search.schemas.models import (
    AiPreset,
    DistrictEntry,
    Filters,
    Listing,
    ListingInsightsSummary,
    PresetView,
    Recommendation,
    RecoveryAction,
    SavedSearch,
    SearchQuality,
    SearchResults,
    SearchSuggestion,
)
from listing_search.store.behavior import BehaviorStore
from listing_search.store.kv import KeyValueStore, open_store

logger = logging.getLogger(__name__)

_UNSET: Any = object()


def _as_listing(row: Listing | Mapping[str, Any]) -> Listing:
    return row if isinstance(row, Listing) else Listing.model_validate(row)


def _as_district(row: DistrictEntry | Mapping[str, Any]) -> DistrictEntry:
    return row if isinstance(row, DistrictEntry) else DistrictEntry.model_validate(row)


class SearchSession:
    """One browsing session over a fixed candidate set."""

    def __init__(
        self,
        listings: Iterable[Listing | Mapping[str, Any]],
        communes: Iterable[str] | None = None,
        districts: Iterable[DistrictEntry | Mapping[str, Any]] = (),
        store: KeyValueStore | None = None,
        settings: SearchSettings | None = None,
        *,
        semantic: SemanticSearchClient | None = _UNSET,
        recommendations: RecommendationsClient | None = _UNSET,
        telemetry: BehaviorTelemetry | None = None,
        user_id: str | None = None,
        now: datetime | None = None,
    ) -> None:
        self.settings = settings or SearchSettings()
        self.now = now or datetime.now(timezone.utc)
        self.user_id = user_id

        self.catalogue: FacetCatalogue = build_catalogue(
            [_as_listing(row) for row in listings], communes, [_as_district(row) for row in districts]
        )
        self.store = BehaviorStore(
            store if store is not None else open_store(self.settings.store_path), clock=lambda: self.now
        )
        self.filters = Filters()

        if semantic is _UNSET:
            semantic = SemanticSearchClient.from_settings(self.settings)
        if recommendations is _UNSET:
            recommendations = RecommendationsClient.from_settings(self.settings)
        self.semantic = DebouncedSemanticLookup(
            semantic,
            debounce_s=self.settings.semantic_debounce_s,
            min_query_chars=self.settings.semantic_min_query_chars,
        )
        self.recommendations = RecommendationsLoader(recommendations)
        self.telemetry = telemetry or BehaviorTelemetry.from_settings(self.settings)

        self._committed_query = ""
        self._zero_query = ""
        self._commit_timer: threading.Timer | None = None
        self._commit_lock = threading.Lock()

    # ---------- Lookup helpers ----------

    @property
    def listings(self) -> tuple[Listing, ...]:
        return self.catalogue.listings

    def listing(self, ref: str) -> Listing:
        key = normalize_ref(ref)
        for item in self.catalogue.listings:
            if normalize_ref(item.ref) == key:
                return item
        raise KeyError(f"Unknown listing ref: {ref}")

    def _event_payload(self, listing: Listing) -> dict[str, Any]:
        parsed = parse_location(listing.location, self.catalogue.matchers)
        return {
            "title": listing.title,
            "category": listing.category or "",
            "commune": parsed.commune,
            "district": parsed.district,
            "dealType": effective_deal_type(listing).value,
            "amenities": [a.value for a in listing.amenities or []],
            "price": listing.price,
        }

    def _send(self, event: BehaviorEventType, ref: str = "", payload: dict[str, Any] | None = None) -> bool:
        return self.telemetry.send(event, self.user_id, property_ref=ref, payload=payload)

    # ---------- Filters ----------

    def set_query(self, text: str) -> Filters:
        """Replace the query, fold recognised intent into the filters and re-arm the semantic lookup."""
        base = self.filters.model_copy(update={"query": text or ""})
        self.filters = extract_intent(text or "", base, self.catalogue).filters
        if self.semantic.client is not None:
            self.semantic.submit(self.filters.query)
        return self.filters

    def update(self, **fields: Any) -> Filters:
        unknown = sorted(set(fields) - set(Filters.model_fields))
        if unknown:
            raise ValueError(f"Unknown filter fields: {', '.join(unknown)}")
        self.filters = Filters.model_validate({**self.filters.model_dump(), **fields})
        return self.filters

    def active_filter_count(self) -> int:
        return len(active_filters(self.filters))

    # ---------- Suggestions ----------

    def suggestions(self) -> list[SearchSuggestion]:
        return suggest.suggestions(self.filters, self.catalogue)

    def apply_suggestion(self, suggestion: SearchSuggestion) -> Filters:
        self.store.bump_metric("suggestion_clicks", 1)
        self._send(
            BehaviorEventType.search_click,
            payload={
                "query": self.filters.query,
                "suggestionType": suggestion.type.value,
                "suggestionLabel": suggestion.label,
                "suggestionValue": suggestion.value,
            },
        )
        self.filters = suggest.apply_suggestion(self.filters, suggestion)
        return self.filters

    # ---------- Results ----------

    def signals(self) -> RankingSignals:
        return RankingSignals(
            behavior=self.store.behavior,
            semantic_scores=self.semantic.snapshot().scores,
            boosts=recommendation_boosts(self.recommendations.recommendations),
        )

    def results(self) -> SearchResults:
        found = search(self.filters, self.catalogue, self.signals(), self.now)
        self._track_zero_results(found)
        return found

    def _track_zero_results(self, found: SearchResults) -> None:
        folded = normalize(self.filters.query)
        if not folded or found.results:
            return
        if self._zero_query == folded:
            return
        self._zero_query = folded
        self.store.bump_metric("zero_results", 1)

    def recovery_actions(self) -> list[RecoveryAction]:
        if self.results().results:
            return []
        return recovery_actions(self.filters, self.active_filter_count())

    def apply_recovery(self, action: RecoveryAction) -> Filters:
        self.filters = action.apply(self.filters)
        return self.filters

    # ---------- Presets ----------

    def all_presets(self) -> list[AiPreset]:
        return preset_engine.all_presets(self.catalogue.listings, self.store.custom_presets)

    def presets(self) -> list[PresetView]:
        context = search(self.filters, self.catalogue, self.signals(), self.now).context
        return preset_engine.order_presets(
            self.all_presets(), context, self.store.preset_stats, self.filters, self.now
        )

    def active_preset_keys(self) -> list[str]:
        return [p.key for p in self.all_presets() if preset_engine.is_active(p, self.filters)]

    def toggle_preset(self, key: str) -> bool:
        view = next((v for v in self.presets() if v.preset.key == key), None)
        if view is None:
            raise KeyError(f"Unknown preset: {key}")
        self.filters, switched_on = preset_engine.toggle_preset(self.filters, view.preset, view.count)
        if switched_on:
            self.store.set_preset_stats(
                preset_engine.bump_stats(self.store.preset_stats, [key], "clicks", self.now)
            )
        return switched_on

    def clear_presets(self) -> Filters:
        self.filters = preset_engine.clear_presets(self.filters, self.all_presets())
        return self.filters

    def save_custom_preset(self, label: str | None = None) -> AiPreset:
        """Raises ValueError when fewer than 2 amenities are included."""
        updated = preset_engine.make_custom_preset(self.filters, self.store.custom_presets, self.now, label)
        self.store.set_custom_presets(updated)
        return updated[0]

    # ---------- Listing actions ----------

    def open_listing(self, ref: str) -> Listing:
        listing = self.listing(ref)
        self.store.bump_behavior("views", listing.ref, 1)
        self._send(BehaviorEventType.view, listing.ref, self._event_payload(listing))
        return listing

    def toggle_favorite(self, ref: str) -> bool:
        listing = self.listing(ref)
        added = self.store.toggle_favorite(listing)
        if added:
            self._send(BehaviorEventType.favorite, listing.ref, self._event_payload(listing))
        return added

    def contact(self, ref: str) -> Listing:
        listing = self.listing(ref)
        self.store.bump_behavior("contacts", listing.ref, 1)
        self.store.bump_metric("contacts_from_search", 1)
        self._send(BehaviorEventType.contact, listing.ref, self._event_payload(listing))
        self.store.set_preset_stats(
            preset_engine.bump_stats(self.store.preset_stats, self.active_preset_keys(), "contacts", self.now)
        )
        return listing

    def save_search(self, channel: Literal["email", "whatsapp"], target: str) -> SavedSearch:
        if not target or not target.strip():
            raise ValueError("A saved search needs a target (email address or phone number)")
        keys = self.active_preset_keys()
        entry = self.store.add_saved_search(snapshot(self.filters), channel, target, keys)
        self.store.set_preset_stats(preset_engine.bump_stats(self.store.preset_stats, keys, "saves", self.now))
        return entry

    # ---------- Query tracking ----------

    def commit_query(self) -> bool:
        """Count the current query once per distinct folded query; returns True when counted."""
        folded = normalize(self.filters.query)
        with self._commit_lock:
            if not folded:
                self._committed_query = ""
                self._zero_query = ""
                return False
            if folded == self._committed_query:
                return False
            self._committed_query = folded
            self._zero_query = ""
        self.store.bump_metric("queries", 1)
        self.store.record_recent_query(folded)
        return True

    def schedule_commit(self) -> None:
        """Commit the query once it has been stable for ``query_commit_debounce_s``."""
        with self._commit_lock:
            if self._commit_timer is not None:
                self._commit_timer.cancel()
            timer = threading.Timer(self.settings.query_commit_debounce_s, self.commit_query)
            timer.daemon = True
            self._commit_timer = timer
        timer.start()

    # ---------- Remote enrichment ----------

    def refresh_semantic(self) -> SemanticState:
        return self.semantic.lookup_now(self.filters.query)

    def load_recommendations(self) -> list[Recommendation]:
        return self.recommendations.load(self.user_id)

    def set_user(self, user_id: str | None) -> None:
        self.user_id = user_id
        self.recommendations.set_user(user_id)

    # ---------- Reporting ----------

    def quality(self) -> SearchQuality:
        return self.store.quality()

    def insights(self, found: SearchResults | None = None) -> ListingInsightsSummary:
        visible = (found or search(self.filters, self.catalogue, self.signals(), self.now)).results
        communes = {
            normalize(parse_location(item.location, self.catalogue.matchers).commune) for item in visible
        }
        prices = [p for p in (parse_money(item.price) for item in visible) if p is not None]
        return ListingInsightsSummary(
            total=len(self.catalogue.listings),
            visible=len(visible),
            communes=len(communes - {""}),
            min_price=min(prices) if prices else None,
            max_price=max(prices) if prices else None,
        )

    def close(self) -> None:
        self.semantic.cancel()
        with self._commit_lock:
            if self._commit_timer is not None:
                self._commit_timer.cancel()
                self._commit_timer = None
