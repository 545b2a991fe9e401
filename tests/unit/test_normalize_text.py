# tests/unit/test_normalize_text.py
from __future__ import annotations

import pytest

from listing_search.core.normalize.text import compact, digits_only, normalize, normalize_ref, parse_money, tokenize


@pytest.mark.parametrize(
    "raw",
    ["Aïn El Türk", "  RÉSIDENCE   fermée ", "Mers El Kébir", "بير الجير", "", "F3+  Canastel"],
)
def test_normalize_is_idempotent(raw: str) -> None:
    assert normalize(normalize(raw)) == normalize(raw)


def test_normalize_folds_case_diacritics_and_whitespace() -> None:
    assert normalize("  Aïn   El Türk ") == "ain el turk"
    assert normalize("Séjour\tCourt") == "sejour court"
    assert normalize(None) == ""


def test_tokenize_splits_on_separators() -> None:
    assert tokenize("Vente, F3 / Canastel|vue  mer") == ["vente", "f3", "canastel", "vue", "mer"]
    assert tokenize("   ") == []


def test_compact_and_ref() -> None:
    assert compact("bir el-djir") == "bireldjir"
    assert normalize_ref("  RST-0042 ") == "rst-0042"


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("2 500 000 DZD", 2_500_000),
        ("2.5M", 2_500_000),
        ("1,2 million", 1_200_000),
        ("900000", 900_000),
        (1_500_000, 1_500_000),
        ("prix a debattre", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_money(text, expected) -> None:
    assert parse_money(text) == expected


def test_digits_only() -> None:
    assert digits_only("2 500 000 DZD") == "2500000"
    assert digits_only(None) == ""
