"""
Shared test fixtures
In-memory SQLite relational store, in-memory blob store, and an ASGI client
"""

import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from docshare.backend import Backend
from docshare.core.config import Settings
from docshare.db.session import Database
from docshare.main import create_app
from docshare.storage.client import MemoryBlobStore

TEST_SECRET_KEY = "test-secret-key-for-docshare-0123456789"


@pytest.fixture
def settings() -> Settings:
    """Settings for an isolated, self-contained backend"""
    return Settings(
        SECRET_KEY=TEST_SECRET_KEY,
        ENVIRONMENT="development",
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        STORAGE_BACKEND="memory",
        PASSWORD_BCRYPT_ROUNDS=4,
        MAX_UPLOAD_SIZE_MB=10,
        LOG_LEVEL="WARNING",
    )


@pytest_asyncio.fixture
async def database(settings: Settings):
    db = Database.from_settings(settings)
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def blob_store(settings: Settings) -> MemoryBlobStore:
    return MemoryBlobStore(bucket=settings.MINIO_BUCKET, signing_key=settings.SECRET_KEY)


@pytest_asyncio.fixture
async def backend(settings: Settings, database: Database, blob_store: MemoryBlobStore) -> Backend:
    backend = Backend(settings, database, blob_store)
    await backend.startup(create_tables=False)
    return backend


@pytest.fixture
def app(settings: Settings, backend: Backend):
    return create_app(settings, backend=backend)


@pytest_asyncio.fixture
async def client(app):
    """
    HTTP client bound to the app through ASGI transport

    The lifespan is not run; the backend is injected by the app fixture.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_user_data():
    """Factory for unique registration payloads"""

    def _make(full_name: str = "Test User") -> dict:
        return {
            "email": f"user_{uuid.uuid4().hex[:8]}@example.com",
            "password": "test_password_123",
            "fullName": full_name,
        }

    return _make


@pytest.fixture
def register_and_login(client: AsyncClient, make_user_data):
    """Register a fresh user and return its id, email and auth headers"""

    async def _register(full_name: str = "Test User") -> dict:
        user_data = make_user_data(full_name)
        response = await client.post("/api/auth/register", json=user_data)
        assert response.status_code == 201, response.text

        response = await client.post(
            "/api/auth/login",
            json={"email": user_data["email"], "password": user_data["password"]},
        )
        assert response.status_code == 200, response.text
        session = response.json()["session"]

        return {
            "id": response.json()["user"]["id"],
            "email": user_data["email"],
            "full_name": full_name,
            "password": user_data["password"],
            "session": session,
            "headers": {"Authorization": f"Bearer {session['access_token']}"},
        }

    return _register


@pytest.fixture
def sample_file():
    """Small text file payload"""
    return ("notes.txt", b"hello docshare\n", "text/plain")
