"""
pytest configuration and shared fixtures.

The app runs for real through FastAPI's TestClient; only two seams are
replaced: get_db points at a throwaway SQLite file per test, and the
MinIO calls made by the pin router are patched.
"""
import asyncio
import itertools
import os

# Must be set before pinboard.config is imported
os.environ.setdefault("OTEL_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from unittest.mock import patch

from pinboard import models  # noqa: F401  (registers tables on Base.metadata)
from pinboard.database import Base, get_db
from pinboard.main import app

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.fixture
def db_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)

    async def _create():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_create())
    yield engine
    asyncio.run(engine.dispose())


@pytest.fixture
def image_store():
    """Patch the MinIO calls used by the pin router."""
    keys = (f"pinterest-clone/img-{n}.png" for n in itertools.count())
    with patch("pinboard.routers.pins.upload_image") as upload, \
            patch("pinboard.routers.pins.delete_image") as delete, \
            patch("pinboard.routers.pins.get_image_url") as url:
        upload.side_effect = lambda data, content_type, filename=None: next(keys)
        url.side_effect = lambda key: f"http://minio.test/pins/{key}"
        yield {"upload": upload, "delete": delete, "url": url}


@pytest.fixture
def make_client(db_engine, image_store):
    """Factory for TestClients sharing one database; each keeps its own cookie jar."""
    session_factory = async_sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    clients = []

    def _make():
        c = TestClient(app)
        clients.append(c)
        return c

    yield _make

    for c in clients:
        c.close()
    app.dependency_overrides.clear()


@pytest.fixture
def client(make_client):
    return make_client()


def register(client, name="Alice", email="alice@example.com", password="secret123"):
    response = client.post(
        "/api/user/register",
        json={"name": name, "email": email, "password": password},
    )
    assert response.status_code == 201, response.text
    return response.json()["user"]


def create_pin(client, title="Sunset", body="Golden hour at the beach", content_type="image/png"):
    response = client.post(
        "/api/pin/new",
        data={"title": title, "pin": body},
        files={"file": ("sunset.png", PNG_BYTES, content_type)},
    )
    assert response.status_code == 201, response.text
    return response.json()["pin"]


@pytest.fixture
def alice(client):
    """A logged-in client plus its user document."""
    return client, register(client)


@pytest.fixture
def bob(make_client):
    c = make_client()
    return c, register(c, name="Bob", email="bob@example.com")
