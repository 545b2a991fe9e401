# tests/unit/test_presets.py
from __future__ import annotations

import pytest

from listing_search.core.presets import (
    CURATED_PRESETS,
    MAX_CUSTOM_PRESETS,
    all_presets,
    bump_stats,
    clear_presets,
    generated_presets,
    make_custom_preset,
    order_presets,
    preset_count,
    preset_score,
    related_from_active,
    toggle_preset,
)
from listing_search.schemas.labels import AmenityKey, DealType, PresetSource
from listing_search.schemas.models import AiPreset, AiPresetStats, PresetView
from tests.utils import FIXED_NOW, make_filters, sample_listings

SEA_PAIR_KEY = "generated:deux_balcons|vue_mer"


def _preset(key: str) -> AiPreset:
    return next(p for p in CURATED_PRESETS if p.key == key)


# -------- Catalogue --------


def test_generated_presets_need_two_occurrences() -> None:
    generated = generated_presets(sample_listings())
    assert [p.key for p in generated] == [SEA_PAIR_KEY]
    assert generated[0].label == "Vue mer + Deux balcons"
    assert generated[0].source is PresetSource.generated


def test_all_presets_merge_curated_then_generated_then_custom() -> None:
    custom = AiPreset(
        key="custom:1", label="Mine", amenities=(AmenityKey.jardin, AmenityKey.piscine), source=PresetSource.custom
    )
    duplicate = AiPreset(key="sea", label="Other sea", amenities=(AmenityKey.vue_mer,))
    presets = all_presets(sample_listings(), [custom, duplicate])
    keys = [p.key for p in presets]
    assert keys[: len(CURATED_PRESETS)] == [p.key for p in CURATED_PRESETS]
    assert keys[-2:] == [SEA_PAIR_KEY, "custom:1"]
    assert next(p for p in presets if p.key == "sea").label == "Vue mer"


# -------- Counts & ordering --------


def test_counts_match_superset_listings() -> None:
    context = sample_listings()
    for preset in all_presets(context):
        expected = sum(
            1 for x in context if x.amenities and set(preset.amenities) <= set(x.amenities)
        )
        assert preset_count(preset, context) == expected


def test_order_presets_by_score_then_merge_order() -> None:
    context = sample_listings()
    views = order_presets(all_presets(context), context, {}, make_filters(), FIXED_NOW)
    assert [v.preset.key for v in views[:3]] == [SEA_PAIR_KEY, "sea", "remote"]
    by_key = {v.preset.key: v for v in views}
    assert by_key["sea"].count == 2
    assert by_key["sea"].trend == 0  # one this week, one the week before
    assert by_key["remote"].trend == 1
    assert by_key["sea"].related == (SEA_PAIR_KEY,)
    assert by_key["family"].related == ()


def test_active_preset_floats_to_top() -> None:
    context = sample_listings()
    filters = make_filters(included_amenities=frozenset({AmenityKey.fibre, AmenityKey.lumineux}))
    views = order_presets(all_presets(context), context, {}, filters, FIXED_NOW)
    assert views[0].preset.key == "remote"
    assert views[0].active


def test_preset_score_weights() -> None:
    stats = AiPresetStats(clicks=1, contacts=1, saves=1)
    assert preset_score(_preset("sea"), 2, stats, active=True) == pytest.approx(1000 + 8 + 1.2 + 3.5 + 2)
    custom = AiPreset(key="c", label="c", amenities=(AmenityKey.box,), source=PresetSource.custom)
    assert preset_score(custom, 0, None, active=False) == pytest.approx(1.2)


def test_related_from_active_weights_by_position() -> None:
    def view(key: str, active: bool, related: tuple[str, ...] = ()) -> PresetView:
        return PresetView(preset=AiPreset(key=key, label=key, amenities=(AmenityKey.box,)), active=active, related=related)

    views = [
        view("a", True, ("c", "d", "b")),
        view("b", False),
        view("c", False),
        view("d", False),
        view("e", False),
    ]
    assert [p.key for p in related_from_active(views)] == ["c", "d", "b"]
    assert related_from_active([view("a", False, ("b",))]) == []


# -------- Mutations --------


def test_toggle_preset_on_and_off() -> None:
    sea = _preset("sea")
    on, switched_on = toggle_preset(make_filters(included_amenities=frozenset({AmenityKey.fibre})), sea, count=2)
    assert switched_on
    assert on.included_amenities == frozenset({AmenityKey.fibre, AmenityKey.vue_mer, AmenityKey.deux_balcons})

    off, switched_on = toggle_preset(on, sea, count=2)
    assert not switched_on
    assert off.included_amenities == frozenset({AmenityKey.fibre})


def test_toggle_preset_without_matches_relaxes_conflicts() -> None:
    start = make_filters(query="villa", commune="Oran", deal_type=DealType.sale)
    relaxed, switched_on = toggle_preset(start, _preset("family"), count=0)
    assert switched_on
    assert (relaxed.query, relaxed.commune) == ("", "")
    assert relaxed.deal_type is DealType.sale
    assert AmenityKey.residence_fermee in relaxed.included_amenities


def test_clear_presets_keeps_other_amenities() -> None:
    filters = make_filters(
        included_amenities=frozenset({AmenityKey.vue_mer, AmenityKey.deux_balcons, AmenityKey.jardin})
    )
    cleared = clear_presets(filters, CURATED_PRESETS)
    assert cleared.included_amenities == frozenset({AmenityKey.jardin})


def test_custom_preset_requires_two_amenities() -> None:
    with pytest.raises(ValueError):
        make_custom_preset(make_filters(included_amenities=frozenset({AmenityKey.fibre})), [], FIXED_NOW)


def test_custom_preset_is_prepended_and_capped() -> None:
    existing = [
        AiPreset(key=f"custom:{i}", label=f"P{i}", amenities=(AmenityKey.box,), source=PresetSource.custom)
        for i in range(MAX_CUSTOM_PRESETS)
    ]
    filters = make_filters(included_amenities=frozenset({AmenityKey.vue_mer, AmenityKey.fibre}))
    presets = make_custom_preset(filters, existing, FIXED_NOW)
    assert len(presets) == MAX_CUSTOM_PRESETS
    newest = presets[0]
    assert newest.key == f"custom:{int(FIXED_NOW.timestamp() * 1000)}"
    assert newest.label == f"Preset IA {MAX_CUSTOM_PRESETS + 1}"
    assert newest.amenities == (AmenityKey.fibre, AmenityKey.vue_mer)
    assert presets[-1].key == f"custom:{MAX_CUSTOM_PRESETS - 2}"

    named = make_custom_preset(filters, [], FIXED_NOW, label="  Mon preset ")
    assert named[0].label == "Mon preset"


def test_bump_stats_increments_metric() -> None:
    stats = bump_stats({}, ["sea"], "clicks", FIXED_NOW)
    stats = bump_stats(stats, ["sea", "remote"], "contacts", FIXED_NOW)
    assert (stats["sea"].clicks, stats["sea"].contacts, stats["sea"].saves) == (1, 1, 0)
    assert stats["remote"].contacts == 1
    assert stats["sea"].last_used_at == FIXED_NOW.isoformat()
