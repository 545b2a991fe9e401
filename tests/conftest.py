# tests/conftest.py
from __future__ import annotations

import os
import random

import pytest

from listing_search.inputs.settings import SearchSettings
from listing_search.orchestrator.session import SearchSession
from listing_search.store.kv import InMemoryStore
from tests.utils import (
    DEFAULT_COMMUNES,
    DEFAULT_DISTRICTS,
    FIXED_NOW,
    make_catalogue,
    sample_listings,
)


# -------- Global deterministic seed --------
@pytest.fixture(autouse=True, scope="session")
def _seed_session():
    random.seed(1337)
    os.environ.setdefault("PYTHONHASHSEED", "0")
    yield


# -------- Env isolation --------
@pytest.fixture(autouse=True)
def _clear_env(monkeypatch):
    """Settings overrides from the developer's shell must not leak into tests."""
    for name in list(os.environ):
        if name.startswith("LSEARCH_"):
            monkeypatch.delenv(name, raising=False)
    yield


# -------- Domain fixtures --------
@pytest.fixture
def now():
    return FIXED_NOW


@pytest.fixture
def listings():
    return sample_listings()


@pytest.fixture
def catalogue(listings):
    return make_catalogue(listings)


@pytest.fixture
def kv():
    return InMemoryStore()


@pytest.fixture
def session_factory(kv):
    """
    Factory for offline sessions over the sample data (no remote services).

    Usage:
        session = session_factory()
        session = session_factory(listings=[...], user_id="u-1", telemetry=fake)
    """

    def _factory(listings=None, **kwargs):
        kwargs.setdefault("semantic", None)
        kwargs.setdefault("recommendations", None)
        kwargs.setdefault("now", FIXED_NOW)
        return SearchSession(
            sample_listings() if listings is None else listings,
            DEFAULT_COMMUNES,
            DEFAULT_DISTRICTS,
            store=kwargs.pop("store", kv),
            settings=kwargs.pop("settings", SearchSettings()),
            **kwargs,
        )

    return _factory
