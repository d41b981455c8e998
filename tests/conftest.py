"""Pytest configuration and fixtures."""

import os
from collections.abc import AsyncGenerator

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from httpx import ASGITransport, AsyncClient

from tarotapp.services.cache_services import LocalCache
from tarotapp.services.document_codec import profile_to_document
from tarotapp.services.session_services import SessionRegistry
from tarotapp.services.sync_services import SyncCoordinator
from tarotapp.services.tarot_services import ReadingGenerator
from tests.fakes import (
    FakeRedis,
    InMemoryDocumentStore,
    ScriptedCompletionService,
    make_deck,
    make_profile,
)


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def alice(store: InMemoryDocumentStore):
    """A stored user with a complete profile."""
    profile = make_profile()
    store.documents[("users", profile.username)] = profile_to_document(profile)
    return profile


@pytest.fixture
def cache(fake_redis: FakeRedis) -> LocalCache:
    return LocalCache(fake_redis, "device-1")


@pytest.fixture
def coordinator(store: InMemoryDocumentStore, cache: LocalCache) -> SyncCoordinator:
    return SyncCoordinator(store, cache, timeout=1.0)


@pytest.fixture
def completion() -> ScriptedCompletionService:
    return ScriptedCompletionService()


@pytest.fixture
def generator(completion: ScriptedCompletionService) -> ReadingGenerator:
    return ReadingGenerator(completion, model="test-model", timeout=1.0)


@pytest.fixture
def registry(store: InMemoryDocumentStore, fake_redis: FakeRedis, generator: ReadingGenerator) -> SessionRegistry:
    return SessionRegistry(store, fake_redis, generator, timeout=1.0, deck_loader=make_deck)


@pytest.fixture
async def client(registry: SessionRegistry) -> AsyncGenerator[AsyncClient, None]:
    """Async test client with the session registry swapped for in-memory fakes."""
    from tarotapp.core.dependencies import get_session_registry
    from tarotapp.main import app

    app.dependency_overrides[get_session_registry] = lambda: registry
    transport = ASGITransport(app=app)
    # Cookies are set with secure=True, so the client has to talk https.
    async with AsyncClient(transport=transport, base_url="https://test") as c:
        yield c
    app.dependency_overrides.clear()
