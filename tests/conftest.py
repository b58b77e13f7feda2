"""Pytest configuration and fixtures for portal tests."""
import os

# Set test env BEFORE any imports that use config
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DOMAIN"] = "mail.test"
os.environ["INTERNAL_API_SECRET"] = "inbound-secret"
os.environ["SWEEP_ON_REQUEST"] = "false"
os.environ["RESEND_API_KEY"] = ""
os.environ["MAIL_BLOB_DIR"] = ""
# Keep PBKDF2 fast in tests; the policy logic is the same at any scale
os.environ["PBKDF2_MIN_ITERATIONS"] = "1000"
os.environ["PBKDF2_MAX_ITERATIONS"] = "5000"
os.environ["PBKDF2_DEFAULT_ITERATIONS"] = "2000"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from portal.models import init_db
from portal.models.base import engine
from web.api.main import app
from web.auth import configure


@pytest.fixture(autouse=True)
async def _init_db():
    """Fresh in-memory database per test (ASGI lifespan doesn't run with httpx)."""
    capabilities = await init_db()
    configure(capabilities)
    yield
    await engine.dispose()


@pytest.fixture
async def test_engine():
    """Isolated in-memory database for service-level tests."""
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def file_session_factory(tmp_path):
    """File-backed database: separate connections, so concurrent requests really interleave."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'portal.db'}")
    await init_db(engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    await engine.dispose()


def _store_down() -> OperationalError:
    return OperationalError("INSERT INTO emails", {}, Exception("disk I/O error"))


class ExecuteFailsSession(AsyncSession):
    """Every query fails as if the database were unreachable."""

    async def execute(self, *args, **kwargs):
        raise _store_down()

    async def scalar(self, *args, **kwargs):
        raise _store_down()


class CommitFailsSession(AsyncSession):
    """Reads work; the commit fails."""

    async def commit(self):
        raise _store_down()


@pytest.fixture
def unreachable_store(test_engine):
    """Session factory whose every query raises OperationalError."""
    return async_sessionmaker(test_engine, class_=ExecuteFailsSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
def commit_fails_store(test_engine):
    """Session factory on the isolated database whose commits raise OperationalError."""
    return async_sessionmaker(test_engine, class_=CommitFailsSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def client():
    """Async HTTP client for testing the API."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
async def admin_client(client):
    """Client logged in as the first (admin) account."""
    r = await client.post(
        "/api/auth/signup",
        json={"username": "alice", "email": "alice@example.com", "password": "longenough1"},
    )
    assert r.status_code == 200, f"Signup failed: {r.text}"
    return client


@pytest.fixture
async def user_client(admin_client):
    """Second client logged in as a regular account (alice already exists as admin)."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        r = await ac.post(
            "/api/auth/signup",
            json={"username": "bob", "email": "bob@example.com", "password": "longenough2"},
        )
        assert r.status_code == 200, f"Signup failed: {r.text}"
        yield ac


class RecordingNotifier:
    """Captures reset tokens instead of emailing them."""

    def __init__(self):
        self.sent: list[tuple[str, str]] = []

    async def send_reset(self, to_address: str, token: str) -> None:
        self.sent.append((to_address, token))


@pytest.fixture
def notifier():
    return RecordingNotifier()
