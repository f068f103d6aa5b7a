"""
Tests for PostgresEntryStore and EntryRepo against a real database.

Skipped unless DATABASE_URL points at a database with migrations applied
(alembic upgrade head).
"""

from __future__ import annotations

import asyncio
import os

import pytest
import pytest_asyncio

from gallery.errors import WriteFailure
from hub import db
from hub.services.entry_store import PostgresEntryStore

pytestmark = pytest.mark.skipif(not os.environ.get("DATABASE_URL"), reason="DATABASE_URL not set")

AUTHOR = "store-test-author"


@pytest_asyncio.fixture
async def pool():
    await db.init_pool()
    yield
    async with db.conn() as c:
        await c.execute("DELETE FROM entries WHERE author_ref = $1", AUTHOR)
    await db.close_pool()


@pytest_asyncio.fixture
async def store(pool):
    store = PostgresEntryStore()
    yield store
    await store.close()


async def _create(store, title, order):
    return await store.create(
        {
            "title": title,
            "description": f"{title} description",
            "code": "<p>x</p>",
            "accentColor": "sky",
            "orderIndex": order,
            "authorRef": AUTHOR,
        }
    )


async def test_create_and_fetch(store):
    entry_id = await _create(store, "Clock", 0)
    doc = await store.fetch_one(entry_id)
    assert doc["title"] == "Clock"
    assert doc["accentColor"] == "sky"
    assert doc["orderIndex"] == 0
    assert doc["createdAt"] is not None


async def test_fetch_one_non_uuid(store):
    assert await store.fetch_one("not-a-uuid") is None


async def test_update_and_delete(store):
    entry_id = await _create(store, "Clock", 0)
    await store.update(entry_id, {"title": "Watch"})
    assert (await store.fetch_one(entry_id))["title"] == "Watch"
    await store.delete(entry_id)
    assert await store.fetch_one(entry_id) is None
    with pytest.raises(WriteFailure):
        await store.delete(entry_id)


async def test_bulk_update_applies_all(store):
    a = await _create(store, "A", 0)
    b = await _create(store, "B", 1)
    await store.bulk_update([(b, "orderIndex", 0), (a, "orderIndex", 1)])
    assert (await store.fetch_one(a))["orderIndex"] == 1
    assert (await store.fetch_one(b))["orderIndex"] == 0


async def test_bulk_update_is_all_or_nothing(store):
    a = await _create(store, "A", 0)
    b = await _create(store, "B", 1)
    missing = "00000000-0000-0000-0000-000000000000"
    with pytest.raises(WriteFailure):
        await store.bulk_update([(b, "orderIndex", 0), (missing, "orderIndex", 1), (a, "orderIndex", 2)])
    assert (await store.fetch_one(a))["orderIndex"] == 0
    assert (await store.fetch_one(b))["orderIndex"] == 1


async def test_bulk_update_rejects_other_fields(store):
    a = await _create(store, "A", 0)
    with pytest.raises(WriteFailure):
        await store.bulk_update([(a, "title", "x")])


async def test_subscribe_receives_pushes(store):
    batches: list[list[dict]] = []
    received = asyncio.Event()

    def on_batch(batch):
        batches.append(batch)
        received.set()

    subscription = await store.subscribe(on_batch, lambda e: None)
    assert len(batches) == 1

    # Give the LISTEN connection a moment to attach.
    await asyncio.sleep(0.5)
    received.clear()
    entry_id = await _create(store, "Pushed", 0)
    await asyncio.wait_for(received.wait(), timeout=5)
    assert any(doc["id"] == entry_id for doc in batches[-1])
    subscription.unsubscribe()
