"""
Postgres-backed EntryStore.

Writes go through EntryRepo. Change notification uses LISTEN/NOTIFY: a
statement-level trigger on `entries` calls pg_notify on every write, and
notifications raised inside one transaction collapse into one, so a bulk
order commit produces exactly one push.

On each notification the full table is re-read and delivered to every
subscriber. Broadcasts run one at a time, in order; notifications that
arrive mid-broadcast schedule exactly one more.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

import asyncpg

from gallery.errors import ReadFailure, WriteFailure
from gallery.store import BatchCallback, EntryStore, ErrorCallback, Subscription, validate_bulk
from hub import db
from hub.repos.entry_repo import EntryRepo, UnknownEntry

logger = logging.getLogger(__name__)

# Transport-level failures we translate into store errors.
_DB_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)

# Must match the pg_notify channel in the trigger created by alembic revision 001.
NOTIFY_CHANNEL = "entries_changed"


def _deliver(callback: Callable[[Any], None], payload: Any) -> None:
    # One failing subscriber must not starve the others or kill the listener.
    try:
        callback(payload)
    except Exception:
        logger.exception("store: subscriber callback failed")


class PostgresEntryStore(EntryStore):
    """EntryStore over the entries table."""

    def __init__(self, repo: EntryRepo | None = None, channel: str | None = None) -> None:
        self.repo = repo or EntryRepo()
        self.channel = channel or NOTIFY_CHANNEL
        self._subscribers: dict[int, tuple[BatchCallback, ErrorCallback]] = {}
        self._next_token = 0
        self._listener_task: asyncio.Task | None = None
        self._listen_conn: asyncpg.Connection | None = None
        self._broadcast_lock = asyncio.Lock()
        self._dirty = False
        self._closed = False
        self._pending: set[asyncio.Task] = set()

    # -- reads ---------------------------------------------------------------

    async def fetch_all(self) -> list[dict[str, Any]]:
        try:
            return await self.repo.list_all()
        except _DB_ERRORS as e:
            raise ReadFailure(f"Could not read entries: {e}") from e

    async def fetch_one(self, entry_id: str) -> dict[str, Any] | None:
        try:
            return await self.repo.get(entry_id)
        except _DB_ERRORS as e:
            raise ReadFailure(f"Could not read entry {entry_id}: {e}") from e

    # -- subscriptions -------------------------------------------------------

    async def subscribe(self, on_batch: BatchCallback, on_error: ErrorCallback) -> Subscription:
        token = self._next_token
        self._next_token += 1
        self._subscribers[token] = (on_batch, on_error)
        self._ensure_listener()

        try:
            batch = await self.fetch_all()
        except ReadFailure as e:
            on_error(e)
        else:
            on_batch(batch)

        return Subscription(lambda: self._subscribers.pop(token, None))

    def _ensure_listener(self) -> None:
        if self._closed:
            return
        if self._listener_task is None or self._listener_task.done():
            self._listener_task = asyncio.create_task(self._listen_forever())

    async def _listen_forever(self) -> None:
        """
        Hold a LISTEN connection open, reconnecting with backoff.

        Runs until close(). Connection loss is reported to subscribers as a
        read failure; after reconnecting, a fresh batch is broadcast.
        """
        attempt = 0
        while not self._closed:
            lost = asyncio.get_running_loop().create_future()
            try:
                self._listen_conn = await db.listen_connection()
                self._listen_conn.add_termination_listener(lambda _c: lost.done() or lost.set_result(None))
                await self._listen_conn.add_listener(self.channel, self._on_notify)
                logger.info("store: listening on channel=%s", self.channel)
                if attempt:
                    await self._broadcast()
                attempt = 0
                await lost
                self._report(ReadFailure("Change listener connection lost."))
            except asyncio.CancelledError:
                raise
            except _DB_ERRORS as e:
                self._report(ReadFailure(f"Change listener failed: {e}"))
            finally:
                await self._close_listen_conn()

            attempt += 1
            wait_time = min(2**attempt, 30)
            logger.warning("store: listener down (attempt %d), retrying in %ds", attempt, wait_time)
            await asyncio.sleep(wait_time)

    async def _close_listen_conn(self) -> None:
        if self._listen_conn is not None and not self._listen_conn.is_closed():
            try:
                await self._listen_conn.close()
            except _DB_ERRORS:
                logger.debug("store: error closing listen connection", exc_info=True)
        self._listen_conn = None

    def _on_notify(self, _conn: asyncpg.Connection, _pid: int, _channel: str, _payload: str) -> None:
        task = asyncio.get_running_loop().create_task(self._broadcast())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _broadcast(self) -> None:
        if self._broadcast_lock.locked():
            self._dirty = True
            return
        async with self._broadcast_lock:
            while True:
                self._dirty = False
                try:
                    batch = await self.fetch_all()
                except ReadFailure as e:
                    self._report(e)
                else:
                    for on_batch, _ in list(self._subscribers.values()):
                        _deliver(on_batch, [dict(doc) for doc in batch])
                if not self._dirty:
                    break

    def _report(self, error: Exception) -> None:
        logger.warning("store: %s", error)
        for _, on_error in list(self._subscribers.values()):
            _deliver(on_error, error)

    # -- writes --------------------------------------------------------------

    async def create(self, fields: Mapping[str, Any]) -> str:
        try:
            doc = await self.repo.create(fields)
        except _DB_ERRORS as e:
            raise WriteFailure(f"Could not create entry: {e}") from e
        return doc["id"]

    async def update(self, entry_id: str, fields: Mapping[str, Any]) -> None:
        try:
            found = await self.repo.update(entry_id, fields)
        except _DB_ERRORS as e:
            raise WriteFailure(f"Could not update entry {entry_id}: {e}") from e
        if not found:
            raise WriteFailure(f"Entry '{entry_id}' does not exist.")

    async def delete(self, entry_id: str) -> None:
        try:
            found = await self.repo.delete(entry_id)
        except _DB_ERRORS as e:
            raise WriteFailure(f"Could not delete entry {entry_id}: {e}") from e
        if not found:
            raise WriteFailure(f"Entry '{entry_id}' does not exist.")

    async def bulk_update(self, updates: Iterable[tuple[str, str, Any]]) -> None:
        triples = validate_bulk(updates)
        try:
            await self.repo.bulk_update(triples)
        except UnknownEntry as e:
            raise WriteFailure(f"Entry '{e.args[0]}' does not exist; order not changed.") from e
        except KeyError as e:
            raise WriteFailure(f"Field {e.args[0]!r} cannot be bulk updated.") from e
        except _DB_ERRORS as e:
            raise WriteFailure(f"Bulk update failed; order not changed: {e}") from e

    async def close(self) -> None:
        self._closed = True
        self._subscribers.clear()
        if self._listener_task is not None:
            self._listener_task.cancel()
            try:
                await self._listener_task
            except asyncio.CancelledError:
                pass
            self._listener_task = None
        await self._close_listen_conn()
