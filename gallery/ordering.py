"""
Gallery — Ordering Engine

Bridges a creator's live drag gesture to a persisted order without fighting
the snapshot stream.

State machine:

    IDLE ──begin──▶ DRAGGING ──release──▶ COMMITTING ──settle──▶ IDLE
                       │
                       └──cancel──▶ IDLE

While DRAGGING or COMMITTING the working list is what renders and snapshot
pushes do not touch it. Once IDLE the snapshot is authoritative again.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from gallery.errors import StoreError, WriteFailure
from gallery.snapshot import ListSnapshot
from gallery.store import EntryStore
from gallery.types import DragState, Entry, OrderUpdate

logger = logging.getLogger(__name__)


def plan_order(ids: Iterable[str]) -> list[OrderUpdate]:
    """
    Dense 0..n-1 orderIndex assignment for the given id sequence.

    Uniqueness holds by construction, whatever the previous indices were.

    Raises:
        ValueError: if an id appears twice
    """
    ids = list(ids)
    if len(set(ids)) != len(ids):
        raise ValueError("Order contains duplicate ids.")
    return [OrderUpdate(id=entry_id, field="orderIndex", value=position) for position, entry_id in enumerate(ids)]


def move(entries: list[Entry], dragged_id: str, over_id: str) -> list[Entry]:
    """Remove the dragged entry and reinsert it at the hovered entry's position."""
    ids = [e.id for e in entries]
    source = ids.index(dragged_id)
    target = ids.index(over_id)
    reordered = list(entries)
    dragged = reordered.pop(source)
    reordered.insert(target, dragged)
    return reordered


class OrderingEngine:
    """Owns the optimistic working list for one gallery session."""

    def __init__(self, snapshot: ListSnapshot) -> None:
        self.snapshot = snapshot
        self.state = DragState.IDLE
        self.dragged_id: str | None = None
        self.last_failure: Exception | None = None
        self.torn_down = False
        self._working: list[Entry] | None = None
        # Committed order shown after a successful commit until the echo arrives.
        self._held: list[Entry] | None = None
        self._commit_version: int | None = None

    @property
    def working(self) -> list[Entry] | None:
        return list(self._working) if self._working is not None else None

    def view(self) -> list[Entry]:
        """The order a UI should render right now."""
        if self._working is not None:
            return list(self._working)
        if self._held is not None:
            return list(self._held)
        return self.snapshot.entries

    # -- gesture -------------------------------------------------------------

    def begin(self, entry_id: str) -> bool:
        """IDLE → DRAGGING. Returns False if the gesture cannot start."""
        if self.torn_down or self.state is not DragState.IDLE:
            logger.debug("ordering: begin(%s) ignored in state %s", entry_id, self.state.value)
            return False
        current = self.view()
        if entry_id not in {e.id for e in current}:
            logger.debug("ordering: begin(%s) ignored, not in list", entry_id)
            return False
        self._working = current
        self._held = None
        self.dragged_id = entry_id
        self.state = DragState.DRAGGING
        return True

    def hover(self, over_id: str) -> bool:
        """Recompute the working list for a hover. Returns True if it changed."""
        if self.state is not DragState.DRAGGING or self._working is None or self.dragged_id is None:
            return False
        if over_id == self.dragged_id:
            return False
        if over_id not in {e.id for e in self._working}:
            return False
        reordered = move(self._working, self.dragged_id, over_id)
        if [e.id for e in reordered] == [e.id for e in self._working]:
            return False
        self._working = reordered
        return True

    def cancel(self) -> bool:
        """Abandon the gesture and revert to the authoritative order."""
        if self.state is not DragState.DRAGGING:
            return False
        logger.info("ordering: gesture on %s abandoned, reverting", self.dragged_id)
        self._working = None
        self.dragged_id = None
        self.state = DragState.IDLE
        return True

    # -- commit --------------------------------------------------------------

    def release(self) -> list[OrderUpdate] | None:
        """DRAGGING → COMMITTING. Returns the bulk update for the working list."""
        if self.state is not DragState.DRAGGING or self._working is None:
            return None
        self.state = DragState.COMMITTING
        self._commit_version = self.snapshot.version
        return plan_order(e.id for e in self._working)

    def settle(self, ok: bool, error: Exception | None = None) -> bool:
        """
        COMMITTING → IDLE. Returns True if the rendered view may have changed.

        A torn-down engine ignores the result of a commit it started.
        """
        if self.torn_down or self.state is not DragState.COMMITTING:
            return False

        committed = self._working
        self._working = None
        self.dragged_id = None
        self.state = DragState.IDLE

        if ok:
            pushed_meanwhile = self.snapshot.version != self._commit_version
            self._held = None if pushed_meanwhile else committed
            logger.info("ordering: committed order of %d entries", len(committed or []))
        else:
            self.last_failure = error
            self._held = None
            logger.warning("ordering: commit failed, reverting to snapshot v%d: %s", self.snapshot.version, error)
        self._commit_version = None
        return True

    async def commit(self, store: EntryStore) -> bool:
        """release() + one atomic bulk_update + settle(). Returns success."""
        updates = self.release()
        if updates is None:
            return False
        try:
            await store.bulk_update([u.as_tuple() for u in updates])
        except StoreError as e:
            self.settle(False, e)
            return False
        except Exception as e:
            logger.exception("ordering: bulk update raised unexpectedly")
            self.settle(False, WriteFailure(f"Reorder failed: {e}"))
            return False
        self.settle(True)
        return True

    # -- reconciliation ------------------------------------------------------

    def snapshot_arrived(self) -> bool:
        """
        Called after every snapshot push or read failure.

        Returns True if the push becomes what renders (engine is IDLE).
        """
        if self.state is not DragState.IDLE:
            return False
        self._held = None
        return True

    def teardown(self) -> None:
        """Drop all local state. A pending commit's result will be ignored."""
        self.torn_down = True
        self._working = None
        self._held = None
        self.dragged_id = None
        self.state = DragState.IDLE
