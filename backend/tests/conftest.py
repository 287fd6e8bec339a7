import os

# Must be set before blog_auth reads its settings
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-long-enough-123")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from mongomock_motor import AsyncMongoMockClient
from httpx import AsyncClient, ASGITransport

from blog_auth.main import app
from blog_auth.database import get_database
from blog_auth.core.interfaces import IClock
from blog_auth.core.security import BcryptPasswordHasher, JWTTokenCodec

TEST_SECRET = "unit-test-signing-secret"


class FrozenClock(IClock):
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, **kwargs) -> None:
        self._now = self._now + timedelta(**kwargs)


@pytest.fixture
def frozen_clock():
    """Provide a controllable clock."""
    return FrozenClock()


@pytest.fixture
def fast_hasher():
    """Provide a real bcrypt hasher with the minimum cost."""
    return BcryptPasswordHasher(rounds=4)


@pytest.fixture
def token_codec(frozen_clock):
    """Provide a JWT codec driven by the frozen clock."""
    return JWTTokenCodec(secret_key=TEST_SECRET, clock=frozen_clock)


@pytest_asyncio.fixture
async def mock_db():
    """Provide a mock MongoDB database for testing."""
    client = AsyncMongoMockClient()
    db = client["test_db"]
    yield db
    client.close()


@pytest_asyncio.fixture
async def test_client(mock_db):
    """Provide an async test client with mocked database."""
    app.dependency_overrides[get_database] = lambda: mock_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
