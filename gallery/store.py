"""
Gallery — Collaborator Interfaces

The core never constructs its collaborators. It is handed an EntryStore and
an IdentityProvider; the service layer supplies Postgres/JWT-backed ones and
tests use the in-memory versions defined here.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any
from uuid import uuid4

from gallery.errors import ReadFailure, WriteFailure
from gallery.types import BULK_FIELDS, Identity, now_utc

logger = logging.getLogger(__name__)

BatchCallback = Callable[[list[dict[str, Any]]], None]
ErrorCallback = Callable[[Exception], None]


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


class IdentityProvider:
    """Supplies the current identity, or None for a guest."""

    def current(self) -> Identity | None:
        raise NotImplementedError


class StaticIdentity(IdentityProvider):
    """Identity fixed at construction. One per session/request."""

    def __init__(self, identity: Identity | None = None) -> None:
        self.identity = identity

    def current(self) -> Identity | None:
        return self.identity


# ---------------------------------------------------------------------------
# Store protocol
# ---------------------------------------------------------------------------


class Subscription:
    """Handle returned by EntryStore.subscribe(). Safe to cancel twice."""

    def __init__(self, cancel: Callable[[], None]) -> None:
        self._cancel = cancel
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self._cancel()


class EntryStore:
    """
    Abstract remote store over the entries collection.

    subscribe() delivers the full current batch of documents on every change
    (and once immediately). Writes raise WriteFailure on failure; bulk_update
    is all-or-nothing.
    """

    async def subscribe(self, on_batch: BatchCallback, on_error: ErrorCallback) -> Subscription:
        raise NotImplementedError

    async def fetch_all(self) -> list[dict[str, Any]]:
        """One-off read of every document. Raises ReadFailure."""
        raise NotImplementedError

    async def fetch_one(self, entry_id: str) -> dict[str, Any] | None:
        """Read a single document. Returns None if it does not exist."""
        raise NotImplementedError

    async def create(self, fields: Mapping[str, Any]) -> str:
        """Insert a document; the store assigns id and timestamps. Returns the id."""
        raise NotImplementedError

    async def update(self, entry_id: str, fields: Mapping[str, Any]) -> None:
        raise NotImplementedError

    async def delete(self, entry_id: str) -> None:
        raise NotImplementedError

    async def bulk_update(self, updates: Iterable[tuple[str, str, Any]]) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        """Release connections and drop subscribers."""
        return None


def validate_bulk(updates: Iterable[tuple[str, str, Any]]) -> list[tuple[str, str, Any]]:
    """Materialize a bulk update and reject fields outside BULK_FIELDS."""
    triples = [tuple(u) for u in updates]
    for entry_id, field_name, _ in triples:
        if field_name not in BULK_FIELDS:
            raise WriteFailure(f"Field '{field_name}' cannot be bulk updated (entry {entry_id}).")
    return triples  # type: ignore[return-value]


class MemoryStore(EntryStore):
    """
    In-memory store for tests and local development.

    Subscribers are notified synchronously after every successful write.
    Failure injection:
      fail_writes     — every create/update/delete/bulk_update raises
      fail_bulk_after — bulk_update applies this many triples, then raises
                        (and rolls the partial work back)
      fail_reads      — fetch_all and subscribe's initial load raise
    """

    def __init__(self, documents: Iterable[Mapping[str, Any]] = ()) -> None:
        self.documents: dict[str, dict[str, Any]] = {}
        for doc in documents:
            doc = dict(doc)
            doc.setdefault("id", uuid4().hex)
            self.documents[doc["id"]] = doc
        self._subscribers: dict[int, tuple[BatchCallback, ErrorCallback]] = {}
        self._next_token = 0
        self.fail_writes = False
        self.fail_bulk_after: int | None = None
        self.fail_reads = False
        self.bulk_calls: list[list[tuple[str, str, Any]]] = []

    # -- reads ---------------------------------------------------------------

    def _batch(self) -> list[dict[str, Any]]:
        return [copy.deepcopy(doc) for doc in self.documents.values()]

    async def fetch_all(self) -> list[dict[str, Any]]:
        if self.fail_reads:
            raise ReadFailure("Memory store read failure (injected).")
        return self._batch()

    async def fetch_one(self, entry_id: str) -> dict[str, Any] | None:
        if self.fail_reads:
            raise ReadFailure("Memory store read failure (injected).")
        doc = self.documents.get(entry_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def subscribe(self, on_batch: BatchCallback, on_error: ErrorCallback) -> Subscription:
        token = self._next_token
        self._next_token += 1
        self._subscribers[token] = (on_batch, on_error)
        if self.fail_reads:
            on_error(ReadFailure("Memory store read failure (injected)."))
        else:
            on_batch(self._batch())
        return Subscription(lambda: self._subscribers.pop(token, None))

    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def emit_error(self, error: Exception) -> None:
        """Simulate the listener transport reporting a read failure."""
        for _, on_error in list(self._subscribers.values()):
            on_error(error)

    def _notify(self) -> None:
        batch = self._batch()
        for on_batch, _ in list(self._subscribers.values()):
            on_batch(copy.deepcopy(batch))

    # -- writes --------------------------------------------------------------

    def _check_writable(self) -> None:
        if self.fail_writes:
            raise WriteFailure("Memory store write failure (injected).")

    async def create(self, fields: Mapping[str, Any]) -> str:
        self._check_writable()
        entry_id = uuid4().hex
        now = now_utc().isoformat()
        self.documents[entry_id] = {**dict(fields), "id": entry_id, "createdAt": now, "updatedAt": now}
        self._notify()
        return entry_id

    async def update(self, entry_id: str, fields: Mapping[str, Any]) -> None:
        self._check_writable()
        doc = self.documents.get(entry_id)
        if doc is None:
            raise WriteFailure(f"Entry '{entry_id}' does not exist.")
        doc.update({k: v for k, v in fields.items() if k not in ("id", "createdAt", "authorRef")})
        doc["updatedAt"] = now_utc().isoformat()
        self._notify()

    async def delete(self, entry_id: str) -> None:
        self._check_writable()
        if self.documents.pop(entry_id, None) is None:
            raise WriteFailure(f"Entry '{entry_id}' does not exist.")
        self._notify()

    async def bulk_update(self, updates: Iterable[tuple[str, str, Any]]) -> None:
        self._check_writable()
        triples = validate_bulk(updates)
        self.bulk_calls.append(triples)
        backup = copy.deepcopy(self.documents)
        try:
            for applied, (entry_id, field_name, value) in enumerate(triples):
                if self.fail_bulk_after is not None and applied >= self.fail_bulk_after:
                    raise WriteFailure("Memory store bulk update failed mid-way (injected).")
                doc = self.documents.get(entry_id)
                if doc is None:
                    raise WriteFailure(f"Entry '{entry_id}' does not exist.")
                doc[field_name] = value
                doc["updatedAt"] = now_utc().isoformat()
        except WriteFailure:
            self.documents = backup
            raise
        self._notify()

    async def close(self) -> None:
        self._subscribers.clear()
