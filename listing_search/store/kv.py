# listing_search/store/kv.py
"""
Local persistent store: string values under fixed keys, read and written as JSON blobs.

Reads never raise. A missing key, a blob that is not JSON, or an unreadable backing file
all yield the caller's default.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Protocol, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class InMemoryStore:
    """Dict-backed store (tests, and sessions without a store path)."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class JsonFileStore:
    """
    All keys in one JSON object on disk. The file is loaded once and rewritten on every
    set (write to a temp file, then replace).
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._data: dict[str, str] = self._load()

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("store file %s unreadable (%s); starting empty", self.path, type(e).__name__)
            return {}
        if not isinstance(raw, dict):
            logger.warning("store file %s is not a JSON object; starting empty", self.path)
            return {}
        return {str(k): v for k, v in raw.items() if isinstance(v, str)}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(self._data, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp, self.path)


def read_json(store: KeyValueStore, key: str, default: T) -> Any | T:
    """Parsed JSON under ``key``, or ``default`` when missing or malformed."""
    raw = store.get(key)
    if raw is None or raw == "":
        return default
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("malformed JSON under %s; using default", key)
        return default


def write_json(store: KeyValueStore, key: str, value: Any) -> None:
    store.set(key, json.dumps(value, ensure_ascii=False))


def open_store(path: str | Path | None) -> KeyValueStore:
    return JsonFileStore(path) if path else InMemoryStore()
