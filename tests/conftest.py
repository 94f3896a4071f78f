"""
Test infrastructure for the Conduit API.

Strategy
--------
- SQLite in-memory via aiosqlite, so the suite needs no running Postgres.
- StaticPool keeps every session on the one connection that owns the
  in-memory database; a second connection would see an empty schema.
- ``get_db`` is overridden with the test session factory (same
  commit-or-rollback contract), and ``get_settings`` with a fixed signing
  key.
- Tables are created before and dropped after every test.
"""
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from conduit.config import Settings, get_settings
from conduit.database import Base, get_db
from conduit.main import app

# ---------------------------------------------------------------------------
# Test database engine
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)

test_settings = Settings(
    DATABASE_URL=TEST_DATABASE_URL,
    SECRET_KEY="test-secret-key",
    APP_ENV="test",
)


# ---------------------------------------------------------------------------
# Dependency overrides
# ---------------------------------------------------------------------------

async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def override_get_settings() -> Settings:
    return test_settings


app.dependency_overrides[get_db] = override_get_db
app.dependency_overrides[get_settings] = override_get_settings


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """A live session for tests that call the service layer directly."""
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def settings() -> Settings:
    return test_settings


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Token {token}"}


@pytest.fixture
def register(async_client: AsyncClient):
    """
    Return a coroutine that registers a user through the API and yields
    ``(user, headers)`` where *headers* authenticate as that user.
    """

    async def _register(username: str, password: str = "secret-pass"):
        resp = await async_client.post("/api/users", json={"user": {
            "username": username,
            "email": f"{username}@example.com",
            "password": password,
        }})
        assert resp.status_code == 201, resp.text
        user = resp.json()["user"]
        return user, auth_headers(user["token"])

    return _register
