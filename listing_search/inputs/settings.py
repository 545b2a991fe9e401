# listing_search/inputs/settings.py
"""
Settings loader for the listing search engine.

Goals
-----
- File-first configuration validated with Pydantic.
- Every field has a working default: no file means an offline, in-memory session
  (remote services disabled, usage state kept in memory).
- Light environment-variable overrides for CI/CLI convenience.

JSON shape
----------
{
  "semantic_enabled": true,
  "semantic_url": "https://example.org/api/search/semantic",
  "recommendations_url": "https://example.org/api/recommendations/me",
  "behavior_events_enabled": false,
  "store_path": ".listing_search/state.json",
  "log_level": "INFO"
}

Environment overrides (optional)
--------------------------------
- LSEARCH_SEMANTIC_ENABLED / LSEARCH_BEHAVIOR_EVENTS_ENABLED   (1/true/yes/on)
- LSEARCH_SEMANTIC_URL / LSEARCH_RECOMMENDATIONS_URL / LSEARCH_BEHAVIOR_EVENTS_URL
- LSEARCH_STORE_PATH / LSEARCH_LOG_LEVEL / LSEARCH_LOG_FILE
- LSEARCH_HTTP_TIMEOUT_S (float)

Public API
----------
- class SettingsLoader:
    - load(path: str | Path | None) -> SearchSettings
    - load_json(text: str) -> SearchSettings
    - with_overrides(settings, **kwargs) -> SearchSettings (non-destructive copies)
- function load_settings(path: str | Path | None) -> SearchSettings  (convenience)
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, cast

from pydantic import BaseModel, Field, ValidationError

_TRUE_VALUES = {"1", "true", "yes", "on"}

# ----------------------------
# Settings model
# ----------------------------


class SearchSettings(BaseModel):
    """Runtime options for a search session."""

    semantic_enabled: bool = Field(False, description="Query the semantic-similarity service.")
    semantic_url: str | None = Field(None, description="POST endpoint, e.g. https://host/api/search/semantic.")
    semantic_limit: int = Field(80, ge=1, description="Max hits requested from the semantic service.")
    semantic_min_similarity: float = Field(0.41, ge=0, le=1, description="Similarity floor sent to the service.")
    semantic_debounce_s: float = Field(0.46, ge=0, description="Quiet period before a semantic lookup fires.")
    semantic_min_query_chars: int = Field(3, ge=0, description="Shorter folded queries skip the lookup.")
    recommendations_url: str | None = Field(None, description="GET endpoint, e.g. https://host/api/recommendations/me.")
    behavior_events_enabled: bool = Field(False, description="Post behavior telemetry for signed-in users.")
    behavior_events_url: str | None = Field(None, description="POST endpoint, e.g. https://host/api/behavior/events.")
    http_timeout_s: float = Field(12.0, gt=0, description="Per-request HTTP timeout in seconds.")
    store_path: str | None = Field(None, description="JSON file backing the local store; None keeps state in memory.")
    query_commit_debounce_s: float = Field(0.38, ge=0, description="Quiet period before a query counts as committed.")
    log_level: str = Field("WARNING", description="Root level for the listing_search loggers.")
    log_file: str | None = Field(None, description="Optional rotating log file.")


# ----------------------------
# Loader
# ----------------------------


@dataclass(frozen=True)
class SettingsLoader:
    """
    File-first settings loader with light env overrides.

    Default search (when path=None):
        1) ./config/search.json
        2) ./search_settings.json
        3) built-in defaults
    """

    env_prefix: str = "LSEARCH_"

    # ---------- Public API ----------

    def load(self, path: str | Path | None = None) -> SearchSettings:
        p = self._resolve_path(path)
        raw = self._read_json_file(p) if p is not None else {}
        return self._apply_env_overrides(self._parse_root(raw))

    def load_json(self, text: str) -> SearchSettings:
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid settings JSON: {e}") from e
        if not isinstance(raw, dict):
            raise ValueError("Invalid settings JSON: root must be an object")
        return self._apply_env_overrides(self._parse_root(raw))

    def with_overrides(self, settings: SearchSettings, **overrides: Any) -> SearchSettings:
        """
        Return a *new* SearchSettings with the non-null overrides applied.
        Unknown names raise ValueError.
        """
        unknown = sorted(set(overrides) - set(SearchSettings.model_fields))
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(unknown)}")
        updates = {k: v for k, v in overrides.items() if v is not None}
        if not updates:
            return settings
        return self._parse_root({**settings.model_dump(), **updates})

    # ---------- Internals ----------

    def _resolve_path(self, path: str | Path | None) -> Path | None:
        if path is not None:
            p = Path(path)
            if not p.exists():
                raise FileNotFoundError(f"Settings file not found: {p}")
            return p
        for candidate in (Path("config/search.json"), Path("search_settings.json")):
            if candidate.exists():
                return candidate
        return None

    def _read_json_file(self, p: Path) -> dict[str, Any]:
        if p.suffix.lower() != ".json":
            raise ValueError(f"Unsupported settings format for {p.name}; only .json is supported.")
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid settings JSON in {p}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Invalid settings JSON in {p}: root must be an object")
        return cast(dict[str, Any], data)

    def _parse_root(self, data: dict[str, Any]) -> SearchSettings:
        try:
            return SearchSettings.model_validate(data)
        except ValidationError as e:
            raise ValueError(f"Settings validation failed:\n{e}") from e

    def _apply_env_overrides(self, settings: SearchSettings) -> SearchSettings:
        prefix = self.env_prefix
        updates: dict[str, Any] = {}

        for name in ("semantic_enabled", "behavior_events_enabled"):
            value = os.getenv(f"{prefix}{name.upper()}")
            if value:
                updates[name] = value.strip().lower() in _TRUE_VALUES

        for name in ("semantic_url", "recommendations_url", "behavior_events_url", "store_path", "log_file"):
            value = os.getenv(f"{prefix}{name.upper()}")
            if value:
                updates[name] = value.strip()

        level = os.getenv(f"{prefix}LOG_LEVEL")
        if level:
            updates["log_level"] = level.strip().upper()

        timeout = os.getenv(f"{prefix}HTTP_TIMEOUT_S")
        if timeout:
            try:
                updates["http_timeout_s"] = float(timeout)
            except ValueError:
                # Ignore bad value; keep validated timeout
                pass

        if not updates:
            return settings
        return settings.model_copy(update=updates)


# ----------------------------
# Convenience function
# ----------------------------


def load_settings(path: str | Path | None = None) -> SearchSettings:
    """Convenience wrapper for one-shot callers."""
    return SettingsLoader().load(path)
