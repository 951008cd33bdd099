"""
Test infrastructure for the Conduit API.

Strategy
--------
- SQLite in-memory via aiosqlite, so no Postgres instance is needed.
- StaticPool makes every session share the single in-memory connection;
  a second connection would see an empty database.
- The app's get_db dependency is overridden so every request made by the
  test client uses the test session factory.
- All tables are created before each test and dropped after it.
- bcrypt runs with the minimum cost factor to keep the suite fast.
"""
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.config import settings
from app.database import Base, get_db
from app.main import app
from app.middleware import install_query_counter

settings.BCRYPT_ROUNDS = 4

# ---------------------------------------------------------------------------
# Test database engine — SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db


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
    """A live session for service-level tests that seed and query directly."""
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """An httpx.AsyncClient wired to the FastAPI app via ASGITransport."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def signup(async_client: AsyncClient):
    """
    Return a coroutine that registers a user through the API, logs in, and
    returns the login payload plus ready-to-use ``headers``.
    """

    async def _signup(username: str, password: str = "secret-pass") -> dict:
        email = f"{username}@example.com"
        resp = await async_client.post("/api/users", json={
            "username": username,
            "email": email,
            "password": password,
        })
        assert resp.status_code == 201, resp.text
        resp = await async_client.post(
            "/api/users/login", json={"email": email, "password": password}
        )
        assert resp.status_code == 200, resp.text
        user = resp.json()["user"]
        user["headers"] = {"Authorization": f"Bearer {user['accessToken']}"}
        return user

    return _signup
