"""
Gallery — Controller

Top-level coordinator for one gallery session. Owns the ordered list (via
ListSnapshot + OrderingEngine), which entry is open in the sandbox, the text
filter, and the entry lifecycle.

Two ways in:
  - direct intent methods (create_entry, begin_reorder, open_entry, ...)
  - post(event) + run(): a single-consumer loop over an asyncio.Queue. Store
    notifications, client gestures and commit results all go through it, so
    state only ever changes between awaits on one control flow.

Writes (create/update/delete) are not optimistic: the store's next push is
what makes them visible. Only order is optimistic.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from gallery.errors import EntryNotFound, GalleryError, InvalidDocument, NotAuthorized, StoreError, WriteFailure
from gallery.events import (
    CommitSettled,
    CreateStarted,
    DragCancelled,
    DragEnded,
    DragOver,
    DragStarted,
    EditStarted,
    EntryClosed,
    EntryOpened,
    FilterChanged,
    GalleryEvent,
    SandboxFaulted,
    Shutdown,
    SnapshotFailed,
    SnapshotPushed,
)
from gallery.ordering import OrderingEngine
from gallery.sandbox import ExecutionSandbox, SandboxContext
from gallery.sanitizer import clean_code
from gallery.snapshot import ListSnapshot
from gallery.store import EntryStore, IdentityProvider, Subscription
from gallery.types import EDITABLE_FIELDS, Entry, GalleryView, Identity, OrderUpdate, normalize_accent

logger = logging.getLogger(__name__)

ViewListener = Callable[[GalleryView], Awaitable[None]]
ErrorListener = Callable[[GalleryError], Awaitable[None]]


def _required_text(fields: dict[str, Any], key: str) -> str:
    value = fields.get(key)
    if not isinstance(value, str) or not value.strip():
        raise InvalidDocument(f"'{key}' must be non-empty text.")
    return value.strip()


class GalleryController:
    """One gallery session: a viewer, optionally signed in as a creator."""

    def __init__(
        self,
        store: EntryStore,
        identity: IdentityProvider,
        *,
        snapshot: ListSnapshot | None = None,
        sandbox: ExecutionSandbox | None = None,
    ) -> None:
        self.store = store
        self.identity = identity
        self.snapshot = snapshot if snapshot is not None else ListSnapshot()
        self.engine = OrderingEngine(self.snapshot)
        self.sandbox = sandbox if sandbox is not None else ExecutionSandbox()
        self.filter_text = ""
        self.mode = "list"
        self.active_id: str | None = None
        self.editing_id: str | None = None
        self._loaded: Entry | None = None
        self._queue: asyncio.Queue[GalleryEvent] = asyncio.Queue()
        self._listeners: list[ViewListener] = []
        self._error_listeners: list[ErrorListener] = []
        self._subscription: Subscription | None = None
        self._commit_task: asyncio.Task | None = None
        self._stopped = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Subscribe to the store. Pushes arrive as queued events."""
        self._subscription = await self.store.subscribe(
            lambda batch: self.post(SnapshotPushed(batch)),
            lambda error: self.post(SnapshotFailed(error)),
        )

    async def stop(self) -> None:
        """
        Tear the session down.

        A gesture in progress is discarded. A commit already sent to the
        store is left to finish; its result is ignored.
        """
        if self._stopped:
            return
        self._stopped = True
        self.engine.teardown()
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self.sandbox.close()
        self._loaded = None
        self._queue.put_nowait(Shutdown())

    @property
    def stopped(self) -> bool:
        return self._stopped

    def add_listener(self, listener: ViewListener) -> None:
        self._listeners.append(listener)

    def add_error_listener(self, listener: ErrorListener) -> None:
        self._error_listeners.append(listener)

    def post(self, event: GalleryEvent) -> None:
        if not self._stopped:
            self._queue.put_nowait(event)

    async def run(self) -> None:
        """Consume events until Shutdown. Listeners hear about every change."""
        while True:
            event = await self._queue.get()
            if isinstance(event, Shutdown):
                break
            await self._process(event)

    async def drain(self) -> int:
        """Process whatever is queued right now without waiting for more."""
        processed = 0
        while not self._queue.empty():
            event = self._queue.get_nowait()
            if isinstance(event, Shutdown):
                break
            await self._process(event)
            processed += 1
        return processed

    async def wait_for_commit(self) -> None:
        """Wait for an in-flight commit write, then process its result."""
        if self._commit_task is not None:
            await self._commit_task
        await self.drain()

    async def _process(self, event: GalleryEvent) -> None:
        try:
            changed = await self.dispatch(event)
        except GalleryError as e:
            logger.info("controller: %s rejected: %s", type(event).__name__, e)
            for error_listener in self._error_listeners:
                await self._call(error_listener, e)
            return
        except Exception:
            logger.exception("controller: failed handling %s", type(event).__name__)
            return
        if changed:
            await self._emit()

    async def _emit(self) -> None:
        view = self.view()
        for listener in self._listeners:
            await self._call(listener, view)

    async def _call(self, listener: Callable[[Any], Awaitable[None]], payload: Any) -> None:
        # A broken listener (closed socket) must not stop the loop.
        try:
            await listener(payload)
        except Exception:
            logger.exception("controller: listener failed")

    async def dispatch(self, event: GalleryEvent) -> bool:
        """Apply one event. Returns True if the rendered view may have changed."""
        if self._stopped:
            return False

        if isinstance(event, SnapshotPushed):
            return self._on_snapshot(event.batch)
        if isinstance(event, SnapshotFailed):
            self.snapshot.fail(event.error)
            return False
        if isinstance(event, DragStarted):
            return self.begin_reorder(event.entry_id)
        if isinstance(event, DragOver):
            return self.continue_reorder(event.over_id)
        if isinstance(event, DragEnded):
            return self._start_commit()
        if isinstance(event, DragCancelled):
            return self.cancel_reorder()
        if isinstance(event, CommitSettled):
            return self.engine.settle(event.ok, event.error)
        if isinstance(event, FilterChanged):
            self.set_filter(event.text)
            return True
        if isinstance(event, EntryOpened):
            self.open_entry(event.entry_id)
            return True
        if isinstance(event, EntryClosed):
            self.close_entry()
            return True
        if isinstance(event, CreateStarted):
            self.start_create()
            return True
        if isinstance(event, EditStarted):
            self.start_edit(event.entry_id)
            return True
        if isinstance(event, SandboxFaulted):
            self.sandbox.record_fault(event.context_id, event.message)
            return False

        logger.warning("controller: unhandled event %r", event)
        return False

    # ------------------------------------------------------------------
    # Snapshot reconciliation
    # ------------------------------------------------------------------

    def _on_snapshot(self, batch: list[dict[str, Any]]) -> bool:
        self.snapshot.apply(batch)
        changed = self.engine.snapshot_arrived()
        return self._sync_active() or changed

    def _sync_active(self) -> bool:
        """Keep the sandbox in step with the active entry's latest version."""
        if self.active_id is None:
            return False
        entry = self.snapshot.get(self.active_id)
        if entry is None:
            if self.snapshot.loaded and self._loaded is not None:
                logger.info("controller: active entry %s was deleted, closing viewer", self.active_id)
                self.close_entry()
                return True
            return False
        if self._loaded is None or self._loaded.code != entry.code:
            self._loaded = entry
            self.sandbox.load(entry)
            return True
        self._loaded = entry
        return False

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def current_identity(self) -> Identity | None:
        return self.identity.current()

    def _require_identity(self) -> Identity:
        identity = self.identity.current()
        if identity is None:
            raise NotAuthorized("Sign in to manage projects.")
        return identity

    def _require_author(self, entry_id: str) -> tuple[Identity, Entry]:
        identity = self._require_identity()
        entry = self.snapshot.get(entry_id)
        if entry is None:
            raise EntryNotFound(f"Entry '{entry_id}' not found.")
        if entry.author_ref != identity.id:
            raise NotAuthorized("Only the author can change this project.")
        return identity, entry

    # ------------------------------------------------------------------
    # Entry lifecycle
    # ------------------------------------------------------------------

    def _next_order_index(self) -> int:
        indices = [e.order_index for e in self.snapshot.entries if e.order_index is not None]
        return max(len(self.snapshot), max(indices, default=-1) + 1)

    async def create_entry(
        self,
        title: str,
        description: str,
        code: str,
        accent_color: str | None = None,
    ) -> str:
        """
        Persist a new entry, placed last. Returns the store-assigned id.

        Raises:
            NotAuthorized: guest session
            InvalidDocument: blank title or description
            WriteFailure: the store rejected the write
        """
        identity = self._require_identity()
        fields = {
            "title": _required_text({"title": title}, "title"),
            "description": _required_text({"description": description}, "description"),
            "code": clean_code(code or ""),
            "accentColor": normalize_accent(accent_color),
            "orderIndex": self._next_order_index(),
            "authorRef": identity.id,
        }
        try:
            entry_id = await self.store.create(fields)
        except WriteFailure:
            raise
        except StoreError as e:
            raise WriteFailure(str(e)) from e
        logger.info("controller: created entry=%s author=%s", entry_id, identity.id)
        self.mode = "list"
        self.editing_id = None
        return entry_id

    async def update_entry(self, entry_id: str, **changes: Any) -> None:
        """
        Update title/description/code/accentColor in place.

        Keyword names may be the persisted camelCase ones or accent_color.
        """
        self._require_author(entry_id)
        if "accent_color" in changes:
            changes["accentColor"] = changes.pop("accent_color")
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise InvalidDocument(f"Cannot update fields: {', '.join(sorted(unknown))}.")

        fields: dict[str, Any] = {}
        for key in ("title", "description"):
            if changes.get(key) is not None:
                fields[key] = _required_text(changes, key)
        if changes.get("code") is not None:
            fields["code"] = clean_code(changes["code"])
        if "accentColor" in changes:
            fields["accentColor"] = normalize_accent(changes["accentColor"])
        if not fields:
            return

        try:
            await self.store.update(entry_id, fields)
        except WriteFailure:
            raise
        except StoreError as e:
            raise WriteFailure(str(e)) from e
        logger.info("controller: updated entry=%s fields=%s", entry_id, sorted(fields))
        if self.editing_id == entry_id:
            self.editing_id = None
            self.mode = "list"

    async def delete_entry(self, entry_id: str) -> None:
        """Delete an entry. Its orderIndex gap is left as is."""
        self._require_author(entry_id)
        try:
            await self.store.delete(entry_id)
        except WriteFailure:
            raise
        except StoreError as e:
            raise WriteFailure(str(e)) from e
        logger.info("controller: deleted entry=%s", entry_id)
        if self.active_id == entry_id:
            self.close_entry()

    # ------------------------------------------------------------------
    # Reordering
    # ------------------------------------------------------------------

    def begin_reorder(self, entry_id: str) -> bool:
        self._require_identity()
        return self.engine.begin(entry_id)

    def continue_reorder(self, over_id: str) -> bool:
        return self.engine.hover(over_id)

    async def end_reorder(self) -> bool:
        """Commit the working list inline. Returns True on success."""
        return await self.engine.commit(self.store)

    def cancel_reorder(self) -> bool:
        return self.engine.cancel()

    def _start_commit(self) -> bool:
        updates = self.engine.release()
        if updates is None:
            return False
        self._commit_task = asyncio.create_task(self._commit(updates))
        return True

    async def _commit(self, updates: list[OrderUpdate]) -> None:
        try:
            await self.store.bulk_update([u.as_tuple() for u in updates])
        except StoreError as e:
            self.post(CommitSettled(ok=False, error=e))
            return
        except Exception as e:
            logger.exception("controller: reorder write raised unexpectedly")
            self.post(CommitSettled(ok=False, error=WriteFailure(f"Reorder failed: {e}")))
            return
        self.post(CommitSettled(ok=True))

    # ------------------------------------------------------------------
    # Viewer
    # ------------------------------------------------------------------

    def open_entry(self, entry_id: str) -> SandboxContext | None:
        """
        Make entry_id the active entry and load it into a fresh sandbox.

        If the entry has not arrived yet, the placeholder renders until the
        snapshot that carries it.
        """
        self.mode = "view"
        self.active_id = entry_id
        self.editing_id = None
        entry = self.snapshot.get(entry_id)
        self._loaded = entry
        return self.sandbox.load(entry)

    def close_entry(self) -> None:
        self.sandbox.close()
        self._loaded = None
        self.active_id = None
        self.mode = "list"

    def start_create(self) -> str:
        """Switch to the create form, or the locked page for guests."""
        self.close_entry()
        self.editing_id = None
        self.mode = "create" if self.identity.current() is not None else "locked"
        return self.mode

    def start_edit(self, entry_id: str) -> str:
        self._require_author(entry_id)
        self.close_entry()
        self.mode = "edit"
        self.editing_id = entry_id
        return self.mode

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def set_filter(self, text: str) -> None:
        self.filter_text = text or ""

    def visible_entries(self) -> list[Entry]:
        """Current rendered order, filtered. Never changes stored order."""
        return [e for e in self.engine.view() if e.matches(self.filter_text)]

    def view(self) -> GalleryView:
        return GalleryView(
            entries=self.visible_entries(),
            can_edit=self.identity.current() is not None,
            filter_text=self.filter_text,
            mode=self.mode,
            active_id=self.active_id,
            editing_id=self.editing_id,
            drag_state=self.engine.state,
            dragging_id=self.engine.dragged_id,
        )
