"""Test fixtures — a fresh app and SQLite database per test.

Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own aiosqlite database file under tmp_path, with the
   schema created from the ORM metadata. No shared state between tests.
2. The app is built with create_app(test_settings): that file's URL, a
   fixed signing secret and a 4-round bcrypt hasher so registration/login
   stay fast. Nothing is overridden — every request goes through the app's
   own engine, the auth middleware and the real identity guard.
3. db_session / session_factory are a second way into the same file, for
   arranging or inspecting data directly.
"""

import os

# Must be set before tasktrack is imported: the default settings and the
# module-level app are built at import time.
os.environ["TASKTRACK_ENVIRONMENT"] = "test"
os.environ["TASKTRACK_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from tasktrack.auth.jwt import TokenCodec
from tasktrack.auth.password import PasswordHasher
from tasktrack.config import Settings
from tasktrack.db.engine import build_engine, build_session_factory
from tasktrack.db.models import Base
from tasktrack.main import create_app

TEST_SECRET = "test-signing-secret-0123456789-abcdefghij"


@pytest.fixture()
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'tasktrack.db'}"


@pytest.fixture()
def test_settings(database_url):
    return Settings(
        environment="test",
        database_url=database_url,
        jwt_secret=TEST_SECRET,
        bcrypt_rounds=4,
        token_ttl_minutes=60,
    )


@pytest.fixture()
def hasher():
    return PasswordHasher(rounds=4)


@pytest.fixture()
def codec():
    return TokenCodec(TEST_SECRET)


async def create_schema(url: str) -> None:
    engine = build_engine(url, timeout=10.0)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()


@pytest_asyncio.fixture()
async def engine(database_url):
    """Per-test SQLite file database with all tables created."""
    await create_schema(database_url)
    engine = build_engine(database_url, timeout=10.0)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    """A session for arranging or inspecting data directly."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def app(test_settings, engine):
    app = create_app(test_settings)
    yield app
    await app.state.engine.dispose()


@pytest_asyncio.fixture()
async def client(app):
    """HTTP client running the full middleware + auth pipeline."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def login_as(client):
    """Register (if needed) and log in a user; return auth headers.

    Usage: headers = await login_as("alice")
    """

    async def _login_as(username: str, password: str = "password_123") -> dict:
        await client.post(
            "/api/v1/register", json={"username": username, "password": password}
        )
        r = await client.post(
            "/api/v1/login", json={"username": username, "password": password}
        )
        assert r.status_code == 200, r.text
        return {"Authorization": r.json()["token"]}

    return _login_as
