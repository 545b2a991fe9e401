# listing_search/schemas/models.py

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from listing_search.schemas.labels import (
    AmenityKey,
    DealType,
    PresetSource,
    PublishedWithin,
    SortMode,
    SuggestionType,
    ViewMode,
    coerce_enum,
    known_amenities,
)

# =========================
# Lenient coercion helpers
# =========================


def _as_number(v: Any) -> float:
    """Dirty numeric input collapses to 0 instead of failing validation."""
    if v is None or isinstance(v, bool):
        return 0.0
    try:
        n = float(v)
    except (TypeError, ValueError):
        return 0.0
    return n if n == n and n not in (float("inf"), float("-inf")) else 0.0


def parse_timestamp(v: Any) -> datetime | None:
    """ISO-8601 string or datetime → aware UTC datetime; anything unparsable → None."""
    if v is None or v == "":
        return None
    if isinstance(v, datetime):
        dt = v
    elif isinstance(v, str):
        try:
            dt = datetime.fromisoformat(v.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _as_count(v: Any) -> int:
    n = _as_number(v)
    return max(0, int(n))


# =========================
# Candidate listings
# =========================


class Listing(BaseModel):
    """
    A marketplace listing as supplied by the candidate source.
    Immutable for the duration of a session; dirty numbers/dates are coerced, never rejected.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field("", description="Storage identity.")
    ref: str = Field(..., description="Public reference; normalized form keys behavior counters and remote scores.")
    title: str = Field("", description="Display title.")
    transaction_kind: DealType = Field(
        DealType.sale, alias="transactionKind", description="Declared transaction kind (fallback for location_type)."
    )
    location_type: str | None = Field(
        None, alias="locationType", description="Raw stored location type; source of truth when it folds to a deal type."
    )
    category: str | None = Field(None, description="Explicit property category (e.g., 'Appartement').")
    description: str | None = Field(None, description="Free-text description.")
    price: str = Field("", description="Display price, money-parseable (e.g., '2 500 000 DZD', '2.5M').")
    location: str = Field("", description="Free-form address, e.g. 'Canastel, Bir El Djir'.")
    beds: float = Field(0, description="Bedroom count.")
    baths: float = Field(0, description="Bathroom count.")
    area: float = Field(0, description="Surface in m2.")
    created_at: datetime | None = Field(None, alias="createdAt", description="Publication timestamp (UTC).")
    images: list[str] = Field(default_factory=list, description="Ordered image URLs.")
    amenities: list[AmenityKey] | None = Field(
        None, description="Amenity keys; None means the listing carries no amenity information."
    )

    @field_validator("transaction_kind", mode="before")
    @classmethod
    def _deal(cls, v: Any) -> DealType:
        if v is None or v == "":
            return DealType.sale
        return coerce_enum(DealType, v, DealType.sale)

    @field_validator("price", "title", "location", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("beds", "baths", "area", mode="before")
    @classmethod
    def _numbers(cls, v: Any) -> float:
        return _as_number(v)

    @field_validator("created_at", mode="before")
    @classmethod
    def _created(cls, v: Any) -> datetime | None:
        return parse_timestamp(v)

    @field_validator("images", mode="before")
    @classmethod
    def _images(cls, v: Any) -> list[str]:
        if not isinstance(v, (list, tuple)):
            return []
        return [str(x) for x in v if isinstance(x, str) and x.strip()]

    @field_validator("amenities", mode="before")
    @classmethod
    def _amenities(cls, v: Any) -> list[AmenityKey] | None:
        if v is None:
            return None
        if not isinstance(v, (list, tuple, set, frozenset)):
            return None
        return known_amenities(v)


class DistrictEntry(BaseModel):
    """Catalogue row: a district (quartier) and its owning commune."""

    model_config = ConfigDict(frozen=True)

    name: str
    commune: str | None = None


class CommuneDistrictHint(BaseModel):
    """Folded alias → (commune, district) pair used by intent extraction."""

    model_config = ConfigDict(frozen=True)

    alias: str
    commune: str
    district: str


class ParsedLocation(BaseModel):
    model_config = ConfigDict(frozen=True)

    commune: str = ""
    district: str = ""


# =========================
# Session filters
# =========================


class Filters(BaseModel):
    """
    Structured search state. Snapshots are immutable; every mutation yields a new
    instance via ``model_copy(update=...)`` so states compare by value.
    """

    model_config = ConfigDict(frozen=True)

    query: str = Field("", description="Free-text query as typed.")
    deal_type: DealType = Field(DealType.all, description="Transaction filter; 'all' disables it.")
    category: str = Field("", description="Category label; matched by containment in the searchable text.")
    published_within: PublishedWithin = Field(PublishedWithin.all, description="Recency window in days.")
    photos_only: bool = Field(False, description="Keep only listings with at least one image.")
    commune: str = Field("", description="Commune, compared to the parsed listing location.")
    district: str = Field("", description="District (quartier), compared to the parsed listing location.")
    rooms: str = Field("", description="Room token such as 'F3', 'T2+' or 'Studio'.")
    price_min: str = Field("", description="Lower price bound, money-parseable ('2.5M', '2500000').")
    price_max: str = Field("", description="Upper price bound, money-parseable.")
    area_min: float | None = Field(None, description="Lower surface bound in m2.")
    area_max: float | None = Field(None, description="Upper surface bound in m2.")
    beds_min: float | None = Field(None, description="Minimum bedrooms.")
    baths_min: float | None = Field(None, description="Minimum bathrooms.")
    included_amenities: frozenset[AmenityKey] = Field(default_factory=frozenset)
    excluded_amenities: frozenset[AmenityKey] = Field(default_factory=frozenset)
    sort_mode: SortMode = SortMode.relevance
    view_mode: ViewMode = ViewMode.grid


class ActiveFilter(BaseModel):
    """One active facet, as surfaced to the user (a 'chip')."""

    model_config = ConfigDict(frozen=True)

    key: str
    label: str


# =========================
# Suggestions & recovery
# =========================


class SearchSuggestion(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    type: SuggestionType
    label: str
    value: str
    match_count: int = 0
    deal_type: DealType | None = None
    category: str | None = None
    commune: str | None = None
    district: str | None = None
    room: str | None = None


class RecoveryAction(BaseModel):
    """A previewable relaxation of the current filters (``changes`` are applied verbatim)."""

    model_config = ConfigDict(frozen=True)

    key: str
    label: str
    hint: str
    changes: dict[str, Any] = Field(default_factory=dict)

    def apply(self, filters: Filters) -> Filters:
        return filters.model_copy(update=self.changes)


# =========================
# AI presets
# =========================


class AiPreset(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    label: str
    amenities: tuple[AmenityKey, ...] = Field(..., min_length=1)
    source: PresetSource = PresetSource.curated


class AiPresetStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    clicks: int = 0
    contacts: int = 0
    saves: int = 0
    last_used_at: str | None = Field(None, alias="lastUsedAt")

    @field_validator("clicks", "contacts", "saves", mode="before")
    @classmethod
    def _counts(cls, v: Any) -> int:
        return _as_count(v)


class PresetView(BaseModel):
    """An ordered preset with its live count, trend, and relations."""

    model_config = ConfigDict(frozen=True)

    preset: AiPreset
    count: int = 0
    trend: int = 0
    active: bool = False
    score: float = 0.0
    related: tuple[str, ...] = ()


# =========================
# Persisted usage state
# =========================


class SearchMetrics(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    queries: int = 0
    zero_results: int = Field(0, alias="zeroResults")
    suggestion_clicks: int = Field(0, alias="suggestionClicks")
    contacts_from_search: int = Field(0, alias="contactsFromSearch")
    last_updated_at: str | None = Field(None, alias="lastUpdatedAt")

    @field_validator("queries", "zero_results", "suggestion_clicks", "contacts_from_search", mode="before")
    @classmethod
    def _clamp(cls, v: Any) -> int:
        return _as_count(v)


class SearchBehavior(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    views: dict[str, int] = Field(default_factory=dict)
    favorites: dict[str, int] = Field(default_factory=dict)
    contacts: dict[str, int] = Field(default_factory=dict)
    recent_queries: list[str] = Field(default_factory=list, alias="recentQueries")
    updated_at: str | None = Field(None, alias="updatedAt")

    @field_validator("views", "favorites", "contacts", mode="before")
    @classmethod
    def _bucket(cls, v: Any) -> dict[str, int]:
        if not isinstance(v, dict):
            return {}
        out: dict[str, int] = {}
        for k, n in v.items():
            c = _as_count(n)
            if isinstance(k, str) and k and c > 0:
                out[k] = c
        return out

    @field_validator("recent_queries", mode="before")
    @classmethod
    def _recent(cls, v: Any) -> list[str]:
        if not isinstance(v, list):
            return []
        return [q for q in v if isinstance(q, str)][:18]


class FavoriteItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ref: str
    title: str | None = None
    location: str | None = None
    price: str | None = None
    cover_image: str | None = Field(None, alias="coverImage")


class SavedSearch(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    created_at: str = Field(..., alias="createdAt")
    channel: Literal["email", "whatsapp"] = "email"
    target: str
    filters: dict[str, Any] = Field(default_factory=dict)


# =========================
# Remote payloads
# =========================


class SemanticHit(BaseModel):
    ref: str
    score: float


class SemanticResponse(BaseModel):
    enabled: bool = False
    reason: str = ""
    results: list[SemanticHit] = Field(default_factory=list)


class Recommendation(BaseModel):
    ref: str
    score: float = 0.0
    reason: str = "Suggestion personnalisee"
    rank: int = 0


class RecommendationsResponse(BaseModel):
    ok: bool = True
    source: str = ""
    recommendations: list[Recommendation] = Field(default_factory=list)


# =========================
# Evaluation outputs
# =========================


class Evaluation(BaseModel):
    model_config = ConfigDict(frozen=True)

    included: bool
    score: float


class SearchResults(BaseModel):
    """Ranked view over the candidate set for one filter snapshot."""

    results: list[Listing] = Field(default_factory=list, description="Included listings, sorted per sort mode.")
    context: list[Listing] = Field(
        default_factory=list, description="Listings passing every predicate except amenity inclusion."
    )
    scores: dict[str, float] = Field(default_factory=dict, description="Relevance score by normalized ref.")


class PriceRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    low: int = 0
    high: int = 1_000_000
    step: int = 50_000
    has_data: bool = False


class ListingInsightsSummary(BaseModel):
    total: int = 0
    visible: int = 0
    communes: int = 0
    min_price: int | None = None
    max_price: int | None = None


class SearchQuality(BaseModel):
    zero_rate: float = 0.0
    suggestion_ctr: float = 0.0
    contact_conversion: float = 0.0
