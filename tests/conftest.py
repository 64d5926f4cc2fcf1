"""
Shared fixtures: in-memory SQLite, an ASGI client, a recording mailer.

Settings are read once and cached, so the environment is prepared before any
``app`` module is imported.
"""

import os
import smtplib
import tempfile

os.environ["NX_DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["NX_STORAGE_ROOT"] = tempfile.mkdtemp(prefix="nexus-storage-")
os.environ["NX_MAIL_USER"] = "hub@example.com"
os.environ["NX_MAIL_APP_PASSWORD"] = "app-password"
os.environ["NX_ADMIN_EMAIL"] = ""
os.environ["NX_LOG_FORMAT"] = "text"
os.environ["NX_LOG_LEVEL"] = "warning"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import app.models  # noqa: F401
from app.api.v1 import auth as auth_router
from app.core import auth as core_auth
from app.core.config import get_settings
from app.core.database import get_session
from app.core.mailer import Mailer, get_mailer
from app.core.storage import LocalObjectStorage, get_storage
from app.main import app as fastapi_app


class RecordingMailer(Mailer):
    """Mailer that records outgoing messages instead of opening SMTP."""

    def __init__(self, settings):
        super().__init__(settings)
        self.sent = []
        self.fail_with: Exception | None = None

    def _deliver(self, msg) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(msg)

    def fail(self, code: int = 535, message: bytes = b"5.7.8 Username and Password not accepted"):
        self.fail_with = smtplib.SMTPAuthenticationError(code, message)


@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def mailer():
    return RecordingMailer(get_settings())


@pytest.fixture
def storage(tmp_path):
    return LocalObjectStorage(str(tmp_path), "/storage")


@pytest.fixture
def revoked():
    """In-memory stand-in for the Redis revocation list."""
    jtis: set[str] = set()

    async def fake_revoke(jti: str, ttl_seconds: int = 3600) -> None:
        jtis.add(jti)

    async def fake_is_revoked(jti: str) -> bool:
        return jti in jtis

    # Own MonkeyPatch so a test's monkeypatch.undo() keeps this wiring
    with pytest.MonkeyPatch.context() as mp:
        for module in (core_auth, auth_router):
            mp.setattr(module, "revoke_jwt", fake_revoke)
            mp.setattr(module, "is_jwt_revoked", fake_is_revoked)
        yield jtis


@pytest.fixture
async def client(session_factory, mailer, storage, revoked):
    async def override_get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    fastapi_app.dependency_overrides[get_session] = override_get_session
    fastapi_app.dependency_overrides[get_mailer] = lambda: mailer
    fastapi_app.dependency_overrides[get_storage] = lambda: storage

    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://test") as ac:
        yield ac

    fastapi_app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Account helpers
# ---------------------------------------------------------------------------


async def register(client: AsyncClient, email: str, password: str = "password123") -> dict:
    response = await client.post("/auth/register", json={"email": email, "password": password})
    assert response.status_code == 201, response.text
    data = response.json()
    return {"Authorization": f"Bearer {data['access_token']}"}


@pytest.fixture
async def admin_headers(client):
    # First registration becomes the admin
    return await register(client, "owner@example.com")


@pytest.fixture
async def customer_headers(client, admin_headers):
    return await register(client, "alice@example.com")


@pytest.fixture
async def other_customer_headers(client, admin_headers):
    return await register(client, "bob@example.org")


async def submit_project(client: AsyncClient, headers: dict, **overrides) -> dict:
    body = {
        "category": "AI Services",
        "project_name": "Catalogue shoot",
        "description": "Generate on-model images for the spring line",
        "spec_style_number": "SS-104",
        "wants_new_style": True,
    }
    body.update(overrides)
    response = await client.post("/api/v1/projects/", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def deliver(client: AsyncClient, admin_headers: dict, project_id: str, amount: str = "150.00") -> dict:
    response = await client.post(
        f"/api/v1/projects/{project_id}/respond",
        json={"admin_response": "Delivered the first batch", "bill_amount": amount},
        headers=admin_headers,
    )
    assert response.status_code == 200, response.text
    return response.json()
