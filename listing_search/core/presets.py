# listing_search/core/presets.py
"""
AI presets: named amenity combinations offered as single toggles.

Sources
-------
- curated   fixed list below
- generated amenity pairs co-occurring in 2+ candidate listings (top 4 by count)
- custom    saved by the user from the currently included amenities (max 12, newest first)

Counts and trends are computed over the context result set (every predicate except amenity
inclusion), so a preset's own amenities never hide the listings it would surface.

Ordering score: 1000 if fully active, + 4×count + 1.2×clicks + 3.5×contacts + 2×saves,
+ 1.2 for custom and 0.7 for generated. Ties keep merge order.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timedelta
from itertools import combinations
from typing import Literal

from listing_search.core.filters import RELAX_CHANGES
from listing_search.schemas.labels import AmenityKey, PresetSource, amenity_label
from listing_search.schemas.models import AiPreset, AiPresetStats, Filters, Listing, PresetView

logger = logging.getLogger(__name__)

MAX_CUSTOM_PRESETS = 12
MAX_GENERATED_PRESETS = 4
MIN_PAIR_OCCURRENCES = 2
MAX_RELATED = 4
MAX_RELATED_FROM_ACTIVE = 3

SOURCE_BONUS: dict[PresetSource, float] = {
    PresetSource.custom: 1.2,
    PresetSource.generated: 0.7,
    PresetSource.curated: 0.0,
}

StatMetric = Literal["clicks", "contacts", "saves"]

CURATED_PRESETS: tuple[AiPreset, ...] = (
    AiPreset(
        key="family",
        label="Famille",
        amenities=(AmenityKey.residence_fermee, AmenityKey.securite_h24, AmenityKey.double_ascenseur),
    ),
    AiPreset(key="remote", label="Télétravail", amenities=(AmenityKey.fibre, AmenityKey.lumineux)),
    AiPreset(key="sea", label="Vue mer", amenities=(AmenityKey.vue_mer, AmenityKey.deux_balcons)),
    AiPreset(
        key="comfort",
        label="Confort",
        amenities=(AmenityKey.climatisation, AmenityKey.chauffage_central, AmenityKey.cuisine_equipee),
    ),
    AiPreset(
        key="secure",
        label="Securise",
        amenities=(AmenityKey.residence_fermee, AmenityKey.securite_h24, AmenityKey.interphone),
    ),
    AiPreset(
        key="modern",
        label="Moderne",
        amenities=(AmenityKey.double_ascenseur, AmenityKey.sdb_italienne, AmenityKey.cuisine_equipee),
    ),
    AiPreset(key="cityView", label="Vue ville", amenities=(AmenityKey.vue_ville, AmenityKey.lumineux)),
)


# ----------------------------
# Catalogue
# ----------------------------


def amenity_signature(amenities: Iterable[AmenityKey]) -> str:
    return "|".join(sorted(a.value for a in amenities))


def generated_presets(listings: Iterable[Listing]) -> list[AiPreset]:
    counts: dict[str, tuple[tuple[AmenityKey, AmenityKey], int]] = {}
    for listing in listings:
        unique = list(dict.fromkeys(listing.amenities or ()))
        for pair in combinations(unique, 2):
            sig = amenity_signature(pair)
            first, n = counts.get(sig, (pair, 0))
            counts[sig] = (first, n + 1)

    frequent = [(sig, pair, n) for sig, (pair, n) in counts.items() if n >= MIN_PAIR_OCCURRENCES]
    frequent.sort(key=lambda row: -row[2])
    return [
        AiPreset(
            key=f"generated:{sig}",
            label=f"{amenity_label(pair[0])} + {amenity_label(pair[1])}",
            amenities=pair,
            source=PresetSource.generated,
        )
        for sig, pair, _ in frequent[:MAX_GENERATED_PRESETS]
    ]


def merge_presets(*groups: Iterable[AiPreset]) -> list[AiPreset]:
    """Concatenate preset groups, keeping the first preset seen for each key."""
    seen: dict[str, AiPreset] = {}
    for group in groups:
        for preset in group:
            seen.setdefault(preset.key, preset)
    return list(seen.values())


def all_presets(listings: Iterable[Listing], custom: Sequence[AiPreset] = ()) -> list[AiPreset]:
    return merge_presets(CURATED_PRESETS, generated_presets(listings), custom)


def preset_amenities(presets: Iterable[AiPreset]) -> frozenset[AmenityKey]:
    return frozenset(a for p in presets for a in p.amenities)


# ----------------------------
# Counts, trends, ordering
# ----------------------------


def listing_has(listing: Listing, preset: AiPreset) -> bool:
    return bool(listing.amenities) and all(a in listing.amenities for a in preset.amenities)


def is_active(preset: AiPreset, filters: Filters) -> bool:
    return all(a in filters.included_amenities for a in preset.amenities)


def preset_count(preset: AiPreset, context: Iterable[Listing]) -> int:
    return sum(1 for listing in context if listing_has(listing, preset))


def preset_trend(preset: AiPreset, context: Iterable[Listing], now: datetime) -> int:
    """Matches created in the last 7 days minus matches created 7–14 days ago."""
    recent_start = now - timedelta(days=7)
    previous_start = now - timedelta(days=14)
    recent = previous = 0
    for listing in context:
        if listing.created_at is None or not listing_has(listing, preset):
            continue
        if listing.created_at >= recent_start:
            recent += 1
        elif listing.created_at >= previous_start:
            previous += 1
    return recent - previous


def preset_score(preset: AiPreset, count: int, stats: AiPresetStats | None, active: bool) -> float:
    stats = stats or AiPresetStats()
    return (
        (1000.0 if active else 0.0)
        + count * 4
        + stats.clicks * 1.2
        + stats.contacts * 3.5
        + stats.saves * 2
        + SOURCE_BONUS[preset.source]
    )


def related_presets(ordered: Sequence[AiPreset], context: Sequence[Listing]) -> dict[str, tuple[str, ...]]:
    """
    For each preset, the other presets that most often co-match its listings, as the fraction
    of the base preset's matches that also match the candidate (>0, top 4).
    """
    matches = {p.key: [listing_has(listing, p) for listing in context] for p in ordered}
    related: dict[str, tuple[str, ...]] = {}
    for base in ordered:
        base_hits = matches[base.key]
        base_count = sum(base_hits)
        if base_count == 0:
            related[base.key] = ()
            continue
        scored = []
        for other in ordered:
            if other.key == base.key:
                continue
            both = sum(1 for a, b in zip(base_hits, matches[other.key]) if a and b)
            if both:
                scored.append((other.key, both / base_count))
        scored.sort(key=lambda row: -row[1])
        related[base.key] = tuple(key for key, _ in scored[:MAX_RELATED])
    return related


def order_presets(
    presets: Sequence[AiPreset],
    context: Sequence[Listing],
    stats: Mapping[str, AiPresetStats],
    filters: Filters,
    now: datetime,
) -> list[PresetView]:
    scored = []
    for preset in presets:
        count = preset_count(preset, context)
        active = is_active(preset, filters)
        scored.append((preset, count, active, preset_score(preset, count, stats.get(preset.key), active)))
    scored.sort(key=lambda row: -row[3])

    related = related_presets([row[0] for row in scored], context)
    return [
        PresetView(
            preset=preset,
            count=count,
            trend=preset_trend(preset, context, now),
            active=active,
            score=score,
            related=related.get(preset.key, ()),
        )
        for preset, count, active, score in scored
    ]


def related_from_active(views: Sequence[PresetView]) -> list[AiPreset]:
    """'You might also like': presets related to active ones, weighted by related position."""
    active_keys = [v.preset.key for v in views if v.active]
    if not active_keys:
        return []
    weights: dict[str, int] = {}
    for view in views:
        if not view.active:
            continue
        for idx, key in enumerate(view.related):
            weights[key] = weights.get(key, 0) + (MAX_RELATED - idx)

    picks = [(v.preset, weights.get(v.preset.key, 0)) for v in views if v.preset.key not in active_keys]
    picks = [row for row in picks if row[1] > 0]
    picks.sort(key=lambda row: -row[1])
    return [preset for preset, _ in picks[:MAX_RELATED_FROM_ACTIVE]]


# ----------------------------
# Mutations
# ----------------------------


def toggle_preset(filters: Filters, preset: AiPreset, count: int) -> tuple[Filters, bool]:
    """
    Remove the preset's amenities when it is active, add them otherwise. Turning on a preset
    that currently matches nothing also relaxes every conflicting filter.
    Returns the new filters and whether the preset was switched on.
    """
    included = set(filters.included_amenities)
    if is_active(preset, filters):
        included.difference_update(preset.amenities)
        return filters.model_copy(update={"included_amenities": frozenset(included)}), False

    included.update(preset.amenities)
    updates: dict[str, object] = {"included_amenities": frozenset(included)}
    if count == 0:
        logger.debug("preset %s has no matches; relaxing conflicting filters", preset.key)
        updates = {**RELAX_CHANGES, **updates}
    return filters.model_copy(update=updates), True


def clear_presets(filters: Filters, presets: Iterable[AiPreset]) -> Filters:
    remaining = filters.included_amenities - preset_amenities(presets)
    return filters.model_copy(update={"included_amenities": frozenset(remaining)})


def make_custom_preset(
    filters: Filters, existing: Sequence[AiPreset], now: datetime, label: str | None = None
) -> list[AiPreset]:
    """
    Prepend a custom preset built from the included amenities; needs 2+ amenities.
    Raises ValueError otherwise. The returned list is capped at MAX_CUSTOM_PRESETS.
    """
    amenities = sorted(filters.included_amenities, key=lambda a: a.value)
    if len(amenities) < 2:
        raise ValueError("A custom preset needs at least 2 included amenities")
    preset = AiPreset(
        key=f"custom:{int(now.timestamp() * 1000)}",
        label=(label or "").strip() or f"Preset IA {len(existing) + 1}",
        amenities=tuple(amenities),
        source=PresetSource.custom,
    )
    return [preset, *existing][:MAX_CUSTOM_PRESETS]


def bump_stats(
    stats: Mapping[str, AiPresetStats], keys: Iterable[str], metric: StatMetric, now: datetime
) -> dict[str, AiPresetStats]:
    out = dict(stats)
    for key in keys:
        current = out.get(key) or AiPresetStats()
        out[key] = current.model_copy(
            update={metric: getattr(current, metric) + 1, "last_used_at": now.isoformat()}
        )
    return out
