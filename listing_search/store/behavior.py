# listing_search/store/behavior.py
"""
Behavior & metrics persistence on top of a KeyValueStore.

Purpose
-------
Everything the session remembers across visits: aggregate search metrics, per-listing
engagement counters and recent queries, favorites, saved searches, AI preset usage stats and
custom presets. Each blob is read once when the store is opened and written back on every
mutation; mutations are serialized by one re-entrant lock (the debounced query commit runs
on a timer thread). A blob that fails to parse or to validate is replaced by its empty default.

Public API
----------
- BehaviorStore(kv, clock=None)
- stable_cover_image_url(value) / normalize_favorite_rows(rows)
- search_quality(metrics) -> SearchQuality
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ValidationError

from listing_search.core.normalize.text import normalize, normalize_ref
from listing_search.schemas.labels import PresetSource, known_amenities
from listing_search.schemas.models import (
    AiPreset,
    AiPresetStats,
    FavoriteItem,
    Listing,
    SavedSearch,
    SearchBehavior,
    SearchMetrics,
    SearchQuality,
)
from listing_search.store.kv import KeyValueStore, read_json, write_json

logger = logging.getLogger(__name__)

PRESET_STATS_KEY = "rostomyia_ai_preset_stats_v1"
CUSTOM_PRESETS_KEY = "rostomyia_ai_custom_presets_v1"
SEARCH_METRICS_KEY = "rostomyia_search_metrics_v1"
SEARCH_BEHAVIOR_KEY = "rostomyia_search_behavior_v1"
FAVORITES_KEYS: tuple[str, ...] = ("rostomyia_favorites", "rostomyia_favorite_properties", "rostomyia_favorite_refs")
SAVED_SEARCHES_KEY = "rostomyia_saved_searches"

MAX_RECENT_QUERIES = 18
MAX_SAVED_SEARCHES = 20
MAX_CUSTOM_PRESETS = 12
MIN_PRESET_AMENITIES = 2

_RENDER_MARKER = "/storage/v1/render/image/public/property-images/"
_OBJECT_MARKER = "/storage/v1/object/public/property-images/"

MetricName = Literal["queries", "zero_results", "suggestion_clicks", "contacts_from_search"]
BehaviorBucket = Literal["views", "favorites", "contacts"]


# =========================
# Row normalization
# =========================


def stable_cover_image_url(value: Any) -> str | None:
    """Rewrite a transform/render URL to the plain object URL (query string dropped)."""
    if not isinstance(value, str) or not value.strip():
        return None
    raw = value.strip()
    if _RENDER_MARKER not in raw:
        return raw
    return raw.split("?")[0].replace(_RENDER_MARKER, _OBJECT_MARKER)


def _clean(value: Any) -> str | None:
    return value.strip() if isinstance(value, str) else None


def _first_text(row: dict[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = row.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def normalize_favorite_rows(source: Any) -> list[FavoriteItem]:
    """Accept legacy string rows and dict rows (ref or id); de-duplicate by folded ref."""
    if not isinstance(source, list):
        return []
    rows: list[FavoriteItem] = []
    for entry in source:
        if isinstance(entry, str) and entry.strip():
            rows.append(FavoriteItem(ref=entry.strip()))
            continue
        if not isinstance(entry, dict):
            continue
        ref = (_first_text(entry, "ref", "id") or "").strip()
        if not ref:
            continue
        rows.append(
            FavoriteItem(
                ref=ref,
                title=_clean(entry.get("title")),
                location=_clean(entry.get("location")),
                price=_clean(entry.get("price")),
                cover_image=stable_cover_image_url(_first_text(entry, "coverImage", "image", "imageUrl")),
            )
        )

    seen: set[str] = set()
    out: list[FavoriteItem] = []
    for row in rows:
        key = normalize(row.ref)
        if key and key not in seen:
            seen.add(key)
            out.append(row)
    return out


def _custom_presets_from(raw: Any) -> list[AiPreset]:
    if not isinstance(raw, list):
        return []
    out: list[AiPreset] = []
    for row in raw:
        if not isinstance(row, dict) or not isinstance(row.get("key"), str):
            continue
        amenities = known_amenities(row.get("amenities") or [])
        if len(amenities) < MIN_PRESET_AMENITIES:
            continue
        out.append(
            AiPreset(
                key=row["key"],
                label=str(row.get("label") or row["key"]),
                amenities=tuple(amenities),
                source=PresetSource.custom,
            )
        )
    return out[:MAX_CUSTOM_PRESETS]


def _preset_stats_from(raw: Any) -> dict[str, AiPresetStats]:
    if not isinstance(raw, dict):
        return {}
    out: dict[str, AiPresetStats] = {}
    for key, value in raw.items():
        if not isinstance(value, dict):
            continue
        try:
            out[str(key)] = AiPresetStats.model_validate(value)
        except ValidationError:
            logger.warning("dropping malformed preset stats for %s", key)
    return out


def search_quality(metrics: SearchMetrics) -> SearchQuality:
    queries = max(1, metrics.queries)
    return SearchQuality(
        zero_rate=metrics.zero_results / queries * 100,
        suggestion_ctr=metrics.suggestion_clicks / queries * 100,
        contact_conversion=metrics.contacts_from_search / queries * 100,
    )


# =========================
# Store
# =========================


def _validated(model: type[BaseModel], raw: Any, key: str) -> Any:
    try:
        return model.model_validate(raw if isinstance(raw, dict) else {})
    except ValidationError:
        logger.warning("malformed blob under %s replaced by default", key)
        return model()


class BehaviorStore:
    """In-memory view of the persisted usage state; every mutation is written through."""

    def __init__(self, kv: KeyValueStore, clock: Callable[[], datetime] | None = None) -> None:
        self.kv = kv
        self._lock = threading.RLock()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self.metrics: SearchMetrics = _validated(
            SearchMetrics, read_json(kv, SEARCH_METRICS_KEY, {}), SEARCH_METRICS_KEY
        )
        self.behavior: SearchBehavior = _validated(
            SearchBehavior, read_json(kv, SEARCH_BEHAVIOR_KEY, {}), SEARCH_BEHAVIOR_KEY
        )
        self.preset_stats: dict[str, AiPresetStats] = _preset_stats_from(read_json(kv, PRESET_STATS_KEY, {}))
        self.custom_presets: list[AiPreset] = _custom_presets_from(read_json(kv, CUSTOM_PRESETS_KEY, []))
        self.favorites_key, self.favorites = self._load_favorites()

    def _now_iso(self) -> str:
        return self._clock().isoformat()

    # ---------- Metrics ----------

    def bump_metric(self, name: MetricName, delta: int = 1) -> SearchMetrics:
        with self._lock:
            current = getattr(self.metrics, name)
            self.metrics = self.metrics.model_copy(
                update={name: max(0, current + delta), "last_updated_at": self._now_iso()}
            )
            write_json(self.kv, SEARCH_METRICS_KEY, self.metrics.model_dump(by_alias=True))
            return self.metrics

    def quality(self) -> SearchQuality:
        return search_quality(self.metrics)

    # ---------- Behavior ----------

    def _save_behavior(self, **updates: Any) -> None:
        self.behavior = self.behavior.model_copy(update={**updates, "updated_at": self._now_iso()})
        write_json(self.kv, SEARCH_BEHAVIOR_KEY, self.behavior.model_dump(by_alias=True))

    def bump_behavior(self, bucket: BehaviorBucket, ref: str, delta: int = 1) -> int:
        """Adjust a per-listing counter; counters never go below zero and zero entries are dropped."""
        key = normalize_ref(ref)
        if not key:
            return 0
        with self._lock:
            counts = dict(getattr(self.behavior, bucket))
            value = max(0, counts.get(key, 0) + delta)
            if value:
                counts[key] = value
            else:
                counts.pop(key, None)
            self._save_behavior(**{bucket: counts})
            return value

    def record_recent_query(self, query: str) -> list[str]:
        folded = normalize(query)
        if not folded:
            return self.behavior.recent_queries
        with self._lock:
            recent = [folded, *(q for q in self.behavior.recent_queries if q != folded)][:MAX_RECENT_QUERIES]
            self._save_behavior(recent_queries=recent)
            return recent

    # ---------- Favorites ----------

    def _load_favorites(self) -> tuple[str, list[FavoriteItem]]:
        for key in FAVORITES_KEYS:
            rows = normalize_favorite_rows(read_json(self.kv, key, []))
            if rows:
                return key, rows
        return FAVORITES_KEYS[0], []

    def favorite_refs(self) -> set[str]:
        return {normalize(row.ref) for row in self.favorites}

    def is_favorite(self, ref: str) -> bool:
        return normalize(ref) in self.favorite_refs()

    def toggle_favorite(self, listing: Listing) -> bool:
        """Add or remove a favorite; returns True when the listing is now a favorite."""
        key = normalize(listing.ref)
        with self._lock:
            if key in self.favorite_refs():
                self.favorites = [row for row in self.favorites if normalize(row.ref) != key]
                added = False
            else:
                row = FavoriteItem(
                    ref=listing.ref,
                    title=listing.title or None,
                    location=listing.location or None,
                    price=listing.price or None,
                    cover_image=stable_cover_image_url(listing.images[0] if listing.images else None),
                )
                self.favorites = [row, *self.favorites]
                added = True
            write_json(self.kv, self.favorites_key, [row.model_dump(by_alias=True) for row in self.favorites])
            self.bump_behavior("favorites", listing.ref, 1 if added else -1)
        return added

    # ---------- Saved searches ----------

    def saved_searches(self) -> list[SavedSearch]:
        raw = read_json(self.kv, SAVED_SEARCHES_KEY, [])
        if not isinstance(raw, list):
            return []
        out: list[SavedSearch] = []
        for row in raw:
            try:
                out.append(SavedSearch.model_validate(row))
            except ValidationError:
                continue
        return out

    def add_saved_search(
        self,
        filters: dict[str, Any],
        channel: Literal["email", "whatsapp"],
        target: str,
        preset_keys: Sequence[str] = (),
    ) -> SavedSearch:
        entry = SavedSearch(
            created_at=self._now_iso(),
            channel=channel,
            target=target.strip(),
            filters={**filters, "aiPresets": list(preset_keys)},
        )
        with self._lock:
            rows = [entry, *self.saved_searches()][:MAX_SAVED_SEARCHES]
            write_json(self.kv, SAVED_SEARCHES_KEY, [row.model_dump(by_alias=True) for row in rows])
        return entry

    # ---------- Presets ----------

    def set_preset_stats(self, stats: dict[str, AiPresetStats]) -> None:
        with self._lock:
            self.preset_stats = dict(stats)
            write_json(
                self.kv,
                PRESET_STATS_KEY,
                {key: value.model_dump(by_alias=True) for key, value in self.preset_stats.items()},
            )

    def set_custom_presets(self, presets: Iterable[AiPreset]) -> None:
        with self._lock:
            self.custom_presets = list(presets)[:MAX_CUSTOM_PRESETS]
            write_json(
                self.kv,
                CUSTOM_PRESETS_KEY,
                [{"key": p.key, "label": p.label, "amenities": [a.value for a in p.amenities]} for p in self.custom_presets],
            )
