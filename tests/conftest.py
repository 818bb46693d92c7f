from __future__ import annotations

from collections.abc import AsyncIterator
from types import SimpleNamespace

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from mongomock_motor import AsyncMongoMockClient

from ffmclub.cache import TTLCache
from ffmclub.config import get_settings
from ffmclub.db import close_mongo_connection, connect_to_mongo, get_db
from ffmclub.main import app
from ffmclub.realtime import SubscriptionRegistry
from ffmclub.repositories.conversation import ConversationRepository
from ffmclub.repositories.credentials import CredentialRepository
from ffmclub.repositories.user_profile import UserProfileRepository
from ffmclub.services import identity_service
from ffmclub.services.conversation_service import ConversationService
from ffmclub.services.identity_service import LocalIdentityProvider
from ffmclub.services.interaction_service import InteractionService
from ffmclub.services.profile_service import ProfileService
from ffmclub.models.user_profile import ProfileAttributes


@pytest.fixture(autouse=True)
def _env_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MONGO_URI", "mongodb://localhost:27017/test")
    monkeypatch.setenv("MONGO_DB_NAME", "ffmclub-test")
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.setenv("AUTH_RATE_LIMIT_MAX", "1000")
    monkeypatch.setenv("REDIS_PUBSUB_ENABLED", "false")
    monkeypatch.delenv("REDIS_URL", raising=False)
    monkeypatch.delenv("PASSWORD_RESET_WEBHOOK_URL", raising=False)
    get_settings.cache_clear()  # type: ignore[attr-defined]
    monkeypatch.setattr(identity_service, "_rate_limiter", None)
    monkeypatch.setattr(identity_service, "_revoked_tokens", TTLCache())


@pytest_asyncio.fixture
async def mongo_client(monkeypatch: pytest.MonkeyPatch) -> AsyncIterator[AsyncMongoMockClient]:
    client = AsyncMongoMockClient()

    def _client_factory(*_args, **_kwargs) -> AsyncMongoMockClient:
        return client

    monkeypatch.setattr("ffmclub.db.AsyncIOMotorClient", _client_factory)
    yield client
    client.close()


@pytest_asyncio.fixture
async def db(mongo_client: AsyncMongoMockClient):
    await connect_to_mongo()
    yield get_db()
    await close_mongo_connection()


@pytest_asyncio.fixture
async def services(db) -> SimpleNamespace:
    registry = SubscriptionRegistry()
    profiles = ProfileService(UserProfileRepository(db), registry=registry)
    return SimpleNamespace(
        db=db,
        registry=registry,
        profiles=profiles,
        interactions=InteractionService(profiles),
        conversations=ConversationService(ConversationRepository(db), profiles, registry=registry),
        identity=LocalIdentityProvider(
            CredentialRepository(db),
            registry=registry,
            revoked=TTLCache(),
            jwt_secret="test-secret",
            token_ttl_seconds=3600,
            reset_ttl_seconds=600,
        ),
    )


@pytest_asyncio.fixture
async def api_client(db) -> AsyncIterator[AsyncClient]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client


@pytest.fixture
def make_profile(services: SimpleNamespace):
    async def _make(user_id: str, **attrs):
        data = {"email": f"{user_id}@example.com", "username": user_id, **attrs}
        return await services.profiles.create_profile(user_id, ProfileAttributes(**data))

    return _make
