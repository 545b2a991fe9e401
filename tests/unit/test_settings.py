# tests/unit/test_settings.py
from __future__ import annotations

import json
import logging

import pytest

from listing_search.inputs.settings import SearchSettings, SettingsLoader, load_settings
from listing_search.logging_setup import LOGGER_NAME, configure_logging


def test_defaults_without_any_file(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    settings = load_settings()
    assert settings == SearchSettings()
    assert settings.semantic_enabled is False
    assert settings.store_path is None
    assert settings.semantic_min_similarity == pytest.approx(0.41)


def test_default_search_path(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "search.json").write_text(json.dumps({"semantic_limit": 20}), encoding="utf-8")
    assert load_settings().semantic_limit == 20


def test_load_explicit_file(tmp_path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"semantic_enabled": True, "semantic_url": "https://h/api/search/semantic"}))
    settings = SettingsLoader().load(path)
    assert settings.semantic_enabled is True
    assert settings.semantic_url == "https://h/api/search/semantic"


def test_load_errors(tmp_path) -> None:
    loader = SettingsLoader()
    with pytest.raises(FileNotFoundError):
        loader.load(tmp_path / "missing.json")

    yaml_file = tmp_path / "settings.yaml"
    yaml_file.write_text("a: 1")
    with pytest.raises(ValueError, match="only .json"):
        loader.load(yaml_file)

    broken = tmp_path / "broken.json"
    broken.write_text("{")
    with pytest.raises(ValueError, match="Invalid settings JSON"):
        loader.load(broken)

    with pytest.raises(ValueError, match="root must be an object"):
        loader.load_json("[]")

    with pytest.raises(ValueError, match="validation failed"):
        loader.load_json(json.dumps({"semantic_min_similarity": 3}))


def test_env_overrides(monkeypatch) -> None:
    monkeypatch.setenv("LSEARCH_SEMANTIC_ENABLED", "yes")
    monkeypatch.setenv("LSEARCH_STORE_PATH", " /tmp/state.json ")
    monkeypatch.setenv("LSEARCH_LOG_LEVEL", "debug")
    monkeypatch.setenv("LSEARCH_HTTP_TIMEOUT_S", "not-a-number")
    settings = SettingsLoader().load_json("{}")
    assert settings.semantic_enabled is True
    assert settings.store_path == "/tmp/state.json"
    assert settings.log_level == "DEBUG"
    assert settings.http_timeout_s == 12.0


def test_with_overrides() -> None:
    loader = SettingsLoader()
    base = SearchSettings()
    updated = loader.with_overrides(base, semantic_limit=10, store_path=None)
    assert updated.semantic_limit == 10
    assert base.semantic_limit == 80
    assert loader.with_overrides(base, log_file=None) is base
    with pytest.raises(ValueError, match="Unknown settings: bogus"):
        loader.with_overrides(base, bogus=1)


# -------- Logging --------


def test_configure_logging_replaces_its_handlers(tmp_path) -> None:
    log_file = tmp_path / "logs" / "search.log"
    configure_logging("info", str(log_file))
    logger = configure_logging("DEBUG", str(log_file))
    owned = [h for h in logger.handlers if getattr(h, "_listing_search", False)]
    assert len(owned) == 2
    assert logger.name == LOGGER_NAME
    assert logger.level == logging.DEBUG

    logging.getLogger(f"{LOGGER_NAME}.core").warning("hello")
    for handler in owned:
        handler.flush()
    assert "hello" in log_file.read_text(encoding="utf-8")

    configure_logging("WARNING")
    for handler in owned:
        assert handler not in logger.handlers
