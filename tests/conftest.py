"""
Linkup Backend - Test Configuration (conftest.py)
===================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Every API test gets a fresh FastAPI app backed by its own temporary
       SQLite database (aiosqlite), driven through httpx's ASGITransport.
       ASGITransport does not run the lifespan, so fixtures acquire the
       database and create the tables themselves.

Fixture Hierarchy (all function-scoped):
    ├── fake_clock:      hand-driven millisecond clock for the rate limiter
    ├── database:        acquired Database on a temp SQLite file, tables created
    ├── db_session:      unit-of-work session on that database
    ├── rate_limits:     RateLimitRegistry with the (generous) test policies
    ├── app:             create_app(database, rate_limits)
    ├── client:          httpx AsyncClient talking to `app`
    ├── register:        helper that registers a user and returns (user, token)
    ├── bearer:          builds an Authorization header from a token
    └── mock_db_session: AsyncMock session for isolated unit tests
"""

import os
from typing import Any, Dict, Tuple
from unittest.mock import AsyncMock, MagicMock

# ══════════════════════════════════════════════════════════════════════════
# Environment Setup (before any linkup import)
# ══════════════════════════════════════════════════════════════════════════

os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./linkup_test.db"
os.environ["JWT_SECRET"] = "test-secret-not-for-production-use-0123456789"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["DB_CONNECT_ATTEMPTS"] = "1"
os.environ["DB_CONNECT_MIN_WAIT"] = "0"
os.environ["DB_CONNECT_MAX_WAIT"] = "0"
for _route_class in ("AUTH", "POSTS", "COMMENTS", "LIKES", "GENERAL"):
    os.environ[f"RATE_LIMIT_{_route_class}_REQUESTS"] = "10000"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from linkup.database import Database  # noqa: E402
from linkup.main import create_app  # noqa: E402
from linkup.services.rate_limiter import RateLimitRegistry  # noqa: E402


class FakeClock:
    """Millisecond clock the tests move by hand."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def database(tmp_path):
    db = Database(
        f"sqlite+aiosqlite:///{tmp_path / 'linkup.db'}",
        connect_attempts=1,
        min_wait=0,
        max_wait=0,
    )
    await db.acquire()
    await db.create_all()
    yield db
    await db.shutdown()


@pytest_asyncio.fixture
async def db_session(database):
    async with database.session() as session:
        yield session


@pytest.fixture
def rate_limits() -> RateLimitRegistry:
    return RateLimitRegistry.from_settings()


@pytest.fixture
def app(database, rate_limits):
    return create_app(database=database, rate_limits=rate_limits)


@pytest_asyncio.fixture
async def client(app):
    """
    HTTPX AsyncClient wired to a fresh app.

    Usage:
        async def test_health(client):
            response = await client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def register(client):
    """
    Register a user through the API and return (user, token).

    The session cookie is cleared afterwards so later requests are anonymous
    unless they pass the token explicitly.
    """

    async def _register(
        name: str = "Ada Lovelace",
        email: str = "ada@example.com",
        password: str = "secret123",
        **extra: Any,
    ) -> Tuple[Dict[str, Any], str]:
        response = await client.post(
            "/api/auth/register",
            json={"name": name, "email": email, "password": password, **extra},
        )
        assert response.status_code == 201, response.text
        client.cookies.clear()
        data = response.json()["data"]
        return data["user"], data["token"]

    return _register


def auth_header(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def bearer():
    return auth_header


@pytest.fixture
def mock_db_session():
    """
    A MagicMock standing in for AsyncSession.

    Usage:
        mock_db_session.scalar.return_value = None
        with pytest.raises(NotFoundError):
            await post_service.toggle_like(mock_db_session, user_id, post_id)
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.scalar = AsyncMock()
    session.scalars = AsyncMock()
    session.get = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session
