"""
Shared fixtures: a throwaway SQLite database, sessions, and an API client.

The environment is set before any backend module is imported so the engine
in database.py points at the test database.
"""

import asyncio
import os
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="asset-tracker-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["ADMIN_EMAIL"] = "admin@example.com"
os.environ["ADMIN_PASSWORD"] = "password123"

import pytest
import pytest_asyncio
from sqlmodel import SQLModel

from database import async_session, engine
from schemas import AssetCreate


async def reset_database():
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
        await conn.run_sync(SQLModel.metadata.create_all)


@pytest_asyncio.fixture
async def session():
    """Fresh schema and an open session for one test."""
    await reset_database()
    async with async_session() as s:
        yield s


@pytest.fixture
def new_asset():
    """Build an AssetCreate with sensible defaults."""
    counter = {"n": 0}

    def factory(**overrides) -> AssetCreate:
        counter["n"] += 1
        data = {
            "category": "Laptop",
            "model": "ThinkPad T14",
            "serial_number": f"SN{counter['n']:05d}",
            "purchase_price": 1000.0,
        }
        data.update(overrides)
        return AssetCreate(**data)

    return factory


@pytest.fixture
def client():
    """TestClient on a fresh database; startup seeds the admin account."""
    from fastapi.testclient import TestClient
    from main import app

    asyncio.run(reset_database())
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_headers(client):
    response = client.post(
        "/api/users/login",
        json={"email": "admin@example.com", "password": "password123"},
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}
