"""Shared fixtures: isolated app per test with in-memory backends and a stub upstream."""

import httpx
import pytest

from mapify.config import Settings
from mapify.main import create_app
from mapify.services.cache import InMemoryKeyCache
from mapify.services.key_store import InMemoryKeyStore
from mapify.services.osm import OverpassPOIClient
from tests.support import (
    OTHER_ID,
    OTHER_TOKEN,
    OWNER_ID,
    OWNER_TOKEN,
    FakeIdentityVerifier,
    ManualClock,
    OverpassStub,
)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(key_store_backend="memory", key_cache_backend="memory")


@pytest.fixture
def key_store() -> InMemoryKeyStore:
    return InMemoryKeyStore()


@pytest.fixture
def key_cache(clock: ManualClock, settings: Settings) -> InMemoryKeyCache:
    return InMemoryKeyCache(
        max_entries=settings.key_cache_max_entries,
        ttl_seconds=settings.key_cache_ttl_seconds,
        clock=clock,
    )


@pytest.fixture
def overpass() -> OverpassStub:
    return OverpassStub()


@pytest.fixture
def identity() -> FakeIdentityVerifier:
    return FakeIdentityVerifier({OWNER_TOKEN: OWNER_ID, OTHER_TOKEN: OTHER_ID})


@pytest.fixture
def app(settings, key_store, key_cache, identity, overpass):
    return create_app(
        settings,
        key_store=key_store,
        key_cache=key_cache,
        identity_verifier=identity,
        poi_client=OverpassPOIClient(transport=overpass.transport),
    )


@pytest.fixture
def make_client(app):
    """Factory for HTTP clients bound to the app; use as an async context manager."""

    def _make() -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app),
            base_url="http://testserver",
        )

    return _make
