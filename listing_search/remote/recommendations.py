# listing_search/remote/recommendations.py
"""
Optional personalized-recommendation service.

Request  GET (current user implied by the endpoint / credentials)
Response {ok, source, recommendations: [{ref, score, reason, rank}]}

Rows are ordered by rank when both ranks are positive and differ, else by score (desc).
The loader is keyed by user id: a result that arrives after the identity changed is dropped.
"""

from __future__ import annotations

import logging
import threading
from functools import cmp_to_key
from typing import Any

import requests

from listing_search.core.normalize.text import normalize_ref
from listing_search.inputs.settings import SearchSettings
from listing_search.remote.errors import (
    REMOTE_ERRORS,
    RemoteNetworkError,
    RemotePayloadError,
    remote_error_guard,
)
from listing_search.schemas.models import Recommendation, RecommendationsResponse

logger = logging.getLogger(__name__)

DEFAULT_REASON = "Suggestion personnalisee"
REASON_FAILED = "recommendations_failed"


def _as_float(value: Any) -> float:
    return float(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else 0.0


def _as_rank(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _compare(a: Recommendation, b: Recommendation) -> int:
    if a.rank > 0 and b.rank > 0 and a.rank != b.rank:
        return a.rank - b.rank
    return (b.score > a.score) - (b.score < a.score)


def parse_recommendations(payload: Any) -> RecommendationsResponse:
    if not isinstance(payload, dict):
        raise RemotePayloadError("recommendations response is not an object")
    rows = payload.get("recommendations")
    recs: list[Recommendation] = []
    for row in rows if isinstance(rows, list) else []:
        if not isinstance(row, dict) or not isinstance(row.get("ref"), str):
            continue
        ref = normalize_ref(row["ref"])
        if not ref:
            continue
        reason = row.get("reason")
        recs.append(
            Recommendation(
                ref=ref,
                score=_as_float(row.get("score")),
                reason=reason if isinstance(reason, str) and reason.strip() else DEFAULT_REASON,
                rank=_as_rank(row.get("rank")),
            )
        )
    recs.sort(key=cmp_to_key(_compare))
    return RecommendationsResponse(
        ok=bool(payload.get("ok", True)), source=str(payload.get("source") or ""), recommendations=recs
    )


class RecommendationsClient:
    def __init__(self, url: str, *, timeout: float = 12.0, session: requests.Session | None = None) -> None:
        self.url = url
        self.timeout = timeout
        self._http: Any = session or requests

    @classmethod
    def from_settings(cls, settings: SearchSettings) -> RecommendationsClient | None:
        if not settings.recommendations_url:
            return None
        return cls(settings.recommendations_url, timeout=settings.http_timeout_s)

    def fetch(self) -> RecommendationsResponse:
        with remote_error_guard():
            resp = self._http.get(self.url, headers={"Cache-Control": "no-store"}, timeout=self.timeout)
            if not resp.ok:
                raise RemoteNetworkError(f"recommendations: HTTP {resp.status_code}")
            return parse_recommendations(resp.json())


class RecommendationsLoader:
    """Fetch recommendations for the current identity; results for a stale identity are dropped."""

    def __init__(self, client: RecommendationsClient | None) -> None:
        self.client = client
        self._lock = threading.Lock()
        self._user_id: str | None = None
        self.recommendations: list[Recommendation] = []
        self.reason = ""

    def set_user(self, user_id: str | None) -> None:
        with self._lock:
            if user_id != self._user_id:
                self._user_id = user_id
                self.recommendations = []

    def load(self, user_id: str | None) -> list[Recommendation]:
        self.set_user(user_id)
        if not user_id or self.client is None:
            return []
        try:
            response = self.client.fetch()
        except REMOTE_ERRORS as e:
            logger.warning("recommendations fetch failed: %s", type(e).__name__)
            with self._lock:
                if self._user_id == user_id:
                    self.recommendations = []
                    self.reason = REASON_FAILED
            return []

        with self._lock:
            if self._user_id != user_id:
                logger.debug("recommendations for %r arrived after an identity change; dropped", user_id)
                return []
            self.recommendations = list(response.recommendations)
            self.reason = response.source
        logger.info("recommendations: %d row(s) from %r", len(response.recommendations), response.source)
        return self.recommendations
