"""
Pytest configuration and fixtures for Project Hub tests.

Route and WebSocket tests run against the in-memory store. Tests that need
Postgres are skipped unless DATABASE_URL is set.
"""

from __future__ import annotations

import os

# Set test environment variables before importing config
os.environ["STORE_BACKEND"] = "memory"
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-testing-only")
os.environ["SANDBOX_ORIGIN"] = "http://sandbox.test"

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from gallery.store import MemoryStore  # noqa: E402
from hub.auth import create_jwt  # noqa: E402
from hub.main import app  # noqa: E402
from hub.services.gallery_service import gallery_service  # noqa: E402

CREATOR_ID = "creator-1"
OTHER_ID = "creator-2"


@pytest_asyncio.fixture
async def memory_store():
    """A fresh MemoryStore adopted by the process-wide gallery service."""
    store = MemoryStore()
    await gallery_service.start(store)
    yield store
    await gallery_service.stop()


@pytest_asyncio.fixture
async def async_client(memory_store):
    """httpx client wired to the app in-process (no lifespan)."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def sandbox_client(memory_store):
    """httpx client addressing the app on the sandbox origin."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://sandbox.test") as client:
        yield client


@pytest.fixture
def creator_headers():
    return {"Authorization": f"Bearer {create_jwt(CREATOR_ID, 'Creator One')}"}


@pytest.fixture
def other_headers():
    return {"Authorization": f"Bearer {create_jwt(OTHER_ID)}"}


def project(title="Chart", description="A bar chart", code="<p>chart</p>", **extra):
    """Request body for POST /api/entries."""
    return {"title": title, "description": description, "code": code, **extra}
