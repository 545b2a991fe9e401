# listing_search/remote/semantic.py
"""
Optional semantic-similarity service.

Request  POST {query, limit, minSimilarity}
Response {enabled, reason?, results: [{ref, score}]}

Scores are clamped to [0, 1] and keyed by normalized ref. Any failure degrades to "no
scores" with a reason string; filtering never waits on this service.

DebouncedSemanticLookup schedules the lookup once the query has been stable for the
debounce period. A newer submit supersedes the pending timer and any fetch still in flight:
the stale result is discarded when it arrives.
"""

from __future__ import annotations

import logging
import math
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import requests

from listing_search.core.normalize.text import normalize, normalize_ref
from listing_search.inputs.settings import SearchSettings
from listing_search.remote.errors import (
    REMOTE_ERRORS,
    RemotePayloadError,
    RequestSupersededError,
    remote_error_guard,
)
from listing_search.schemas.models import SemanticHit, SemanticResponse

logger = logging.getLogger(__name__)

REASON_PAUSED = "paused"
REASON_FAILED = "semantic_fetch_failed"


def _hits(rows: Any) -> list[SemanticHit]:
    if not isinstance(rows, list):
        return []
    hits = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        ref, score = row.get("ref"), row.get("score")
        if not isinstance(ref, str) or isinstance(score, bool) or not isinstance(score, (int, float)):
            continue
        if not math.isfinite(score):
            continue
        hits.append(SemanticHit(ref=ref, score=float(score)))
    return hits


def scores_from(response: SemanticResponse) -> dict[str, float]:
    scores: dict[str, float] = {}
    for hit in response.results:
        key = normalize_ref(hit.ref)
        if key:
            scores[key] = max(0.0, min(1.0, hit.score))
    return scores


class SemanticSearchClient:
    def __init__(
        self,
        url: str,
        *,
        limit: int = 80,
        min_similarity: float = 0.41,
        timeout: float = 12.0,
        session: requests.Session | None = None,
    ) -> None:
        self.url = url
        self.limit = limit
        self.min_similarity = min_similarity
        self.timeout = timeout
        self._http: Any = session or requests

    @classmethod
    def from_settings(cls, settings: SearchSettings) -> SemanticSearchClient | None:
        if not settings.semantic_enabled or not settings.semantic_url:
            return None
        return cls(
            settings.semantic_url,
            limit=settings.semantic_limit,
            min_similarity=settings.semantic_min_similarity,
            timeout=settings.http_timeout_s,
        )

    def search(self, query: str) -> SemanticResponse:
        with remote_error_guard():
            resp = self._http.post(
                self.url,
                json={"query": query, "limit": self.limit, "minSimilarity": self.min_similarity},
                headers={"Content-Type": "application/json", "Cache-Control": "no-store"},
                timeout=self.timeout,
            )
            payload = resp.json()
            if not isinstance(payload, dict):
                raise RemotePayloadError("semantic response is not an object")
            return SemanticResponse(
                enabled=bool(payload.get("enabled")),
                reason=str(payload.get("reason") or ""),
                results=_hits(payload.get("results")),
            )


@dataclass(frozen=True)
class SemanticState:
    scores: dict[str, float] = field(default_factory=dict)
    enabled: bool = False
    reason: str = ""
    pending: bool = False


class DebouncedSemanticLookup:
    """
    Debounced, supersedable semantic lookup. Results are published through ``snapshot()``
    and, when given, the ``on_update`` callback (called from the timer thread).
    """

    def __init__(
        self,
        client: SemanticSearchClient | None,
        *,
        debounce_s: float = 0.46,
        min_query_chars: int = 3,
        on_update: Callable[[SemanticState], None] | None = None,
    ) -> None:
        self.client = client
        self.debounce_s = debounce_s
        self.min_query_chars = min_query_chars
        self.on_update = on_update
        self._lock = threading.Lock()
        self._generation = 0
        self._timer: threading.Timer | None = None
        self._state = SemanticState(reason="" if client else REASON_PAUSED)

    # ---------- Public API ----------

    def snapshot(self) -> SemanticState:
        with self._lock:
            return self._state

    def submit(self, query: str) -> int:
        """Schedule a lookup for ``query``; returns the generation that owns it."""
        with self._lock:
            self._generation += 1
            generation = self._generation
            self._cancel_timer()

        immediate = self._immediate_state(query)
        if immediate is not None:
            self._publish(generation, immediate)
            return generation

        timer = threading.Timer(self.debounce_s, self._run, args=(generation, query))
        timer.daemon = True
        with self._lock:
            if generation != self._generation:
                return generation
            self._timer = timer
            self._state = SemanticState(
                scores=self._state.scores, enabled=self._state.enabled, reason=self._state.reason, pending=True
            )
        timer.start()
        return generation

    def lookup_now(self, query: str) -> SemanticState:
        """Synchronous lookup that supersedes any pending or in-flight one."""
        with self._lock:
            self._generation += 1
            generation = self._generation
            self._cancel_timer()
        state = self._immediate_state(query)
        if state is None:
            try:
                state = self._fetch(generation, query)
            except RequestSupersededError:
                return self.snapshot()
        self._publish(generation, state)
        return self.snapshot()

    def cancel(self) -> None:
        with self._lock:
            self._generation += 1
            self._cancel_timer()
            self._state = SemanticState(
                scores=self._state.scores, enabled=self._state.enabled, reason=self._state.reason
            )

    # ---------- Internals ----------

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _immediate_state(self, query: str) -> SemanticState | None:
        if self.client is None:
            return SemanticState(reason=REASON_PAUSED)
        if len(normalize(query)) < self.min_query_chars:
            return SemanticState()
        return None

    def _run(self, generation: int, query: str) -> None:
        try:
            state = self._fetch(generation, query)
        except RequestSupersededError:
            logger.debug("semantic lookup %d superseded", generation)
            return
        self._publish(generation, state)

    def _fetch(self, generation: int, query: str) -> SemanticState:
        if self.client is None:
            return SemanticState(reason=REASON_PAUSED)
        try:
            response = self.client.search(query)
        except REMOTE_ERRORS as e:
            if generation != self._generation:
                raise RequestSupersededError(f"generation {generation} superseded") from e
            logger.warning("semantic lookup failed: %s", type(e).__name__)
            return SemanticState(reason=REASON_FAILED)
        if generation != self._generation:
            raise RequestSupersededError(f"generation {generation} superseded")
        scores = scores_from(response)
        logger.info("semantic lookup: %d score(s), enabled=%s reason=%r", len(scores), response.enabled, response.reason)
        return SemanticState(scores=scores, enabled=response.enabled, reason=response.reason)

    def _publish(self, generation: int, state: SemanticState) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._state = state
            self._timer = None
        if self.on_update is not None:
            self.on_update(state)


__all__ = [
    "SemanticSearchClient",
    "SemanticState",
    "DebouncedSemanticLookup",
    "scores_from",
    "REASON_PAUSED",
    "REASON_FAILED",
]
