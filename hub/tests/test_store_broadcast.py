"""
Tests for PostgresEntryStore change delivery that need no database.

The repo is mocked; subscribers are registered directly so no LISTEN
connection is opened.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

from gallery.errors import ReadFailure
from hub.services.entry_store import NOTIFY_CHANNEL, PostgresEntryStore

MIGRATION = Path(__file__).resolve().parents[2] / "alembic" / "versions" / "001_create_entries.py"


def _store(list_all):
    repo = MagicMock()
    repo.list_all = list_all
    return PostgresEntryStore(repo=repo)


class TestBroadcast:
    async def test_failing_subscriber_does_not_starve_others(self):
        store = _store(AsyncMock(return_value=[{"id": "a", "title": "A"}]))
        received = []

        def broken(batch):
            raise RuntimeError("subscriber bug")

        store._subscribers[0] = (broken, lambda e: None)
        store._subscribers[1] = (received.append, lambda e: None)

        await store._broadcast()
        await store._broadcast()

        assert [[doc["id"] for doc in batch] for batch in received] == [["a"], ["a"]]

    async def test_failing_error_callback_does_not_starve_others(self):
        store = _store(AsyncMock(side_effect=ReadFailure("down")))
        errors = []

        def broken(error):
            raise RuntimeError("subscriber bug")

        store._subscribers[0] = (lambda b: None, broken)
        store._subscribers[1] = (lambda b: None, errors.append)

        await store._broadcast()

        assert len(errors) == 1
        assert isinstance(errors[0], ReadFailure)


class TestChannel:
    def test_default_channel(self):
        assert _store(AsyncMock()).channel == NOTIFY_CHANNEL

    def test_channel_matches_migration_trigger(self):
        assert f"pg_notify('{NOTIFY_CHANNEL}'" in MIGRATION.read_text()
