"""
Process-wide gallery state.

One store handle and one shared ListSnapshot per process, created in the
FastAPI lifespan and torn down on shutdown. Routes never build collaborators
themselves; they ask this service for a controller bound to the caller's
identity.
"""

from __future__ import annotations

import logging

from gallery.controller import GalleryController
from gallery.sandbox import ExecutionSandbox
from gallery.snapshot import ListSnapshot
from gallery.store import EntryStore, MemoryStore, StaticIdentity, Subscription
from gallery.types import Identity
from hub.config import settings

logger = logging.getLogger(__name__)


def build_store() -> EntryStore:
    """Store selected by STORE_BACKEND."""
    if settings.STORE_BACKEND == "memory":
        return MemoryStore()
    from hub.services.entry_store import PostgresEntryStore

    return PostgresEntryStore()


class GalleryService:
    """Holds the store connection and the shared authoritative list."""

    def __init__(self) -> None:
        self.store: EntryStore | None = None
        self.snapshot = ListSnapshot()
        self._subscription: Subscription | None = None

    @property
    def started(self) -> bool:
        return self.store is not None

    async def start(self, store: EntryStore) -> None:
        """Adopt a store and keep the shared snapshot subscribed to it."""
        if self.started:
            await self.stop()
        self.store = store
        self.snapshot = ListSnapshot()
        self._subscription = await store.subscribe(self.snapshot.apply, self.snapshot.fail)
        logger.info("gallery: started with %s (%d entries)", type(store).__name__, len(self.snapshot))

    async def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        if self.store is not None:
            await self.store.close()
            self.store = None
        logger.info("gallery: stopped")

    def require_store(self) -> EntryStore:
        if self.store is None:
            raise RuntimeError("Gallery service not started. Call start() first.")
        return self.store

    def controller(self, identity: Identity | None) -> GalleryController:
        """A request-scoped controller over the shared snapshot."""
        return GalleryController(
            self.require_store(),
            StaticIdentity(identity),
            snapshot=self.snapshot,
            sandbox=ExecutionSandbox(settings.SANDBOX_ORIGIN),
        )

    def session(self, identity: Identity | None) -> GalleryController:
        """A long-lived controller with its own snapshot (WebSocket sessions)."""
        return GalleryController(
            self.require_store(),
            StaticIdentity(identity),
            sandbox=ExecutionSandbox(settings.SANDBOX_ORIGIN),
        )


# Singleton instance
gallery_service = GalleryService()
