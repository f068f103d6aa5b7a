"""
Gallery — List Snapshot

"The list as the store currently has it." Every push from the store is an
unordered batch of raw documents; apply() validates them into Entry objects
and re-derives a deterministic order. A failed read keeps the last good list.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

from gallery.errors import InvalidDocument
from gallery.types import Entry, normalize_accent

logger = logging.getLogger(__name__)

_EPOCH = datetime.fromtimestamp(0, UTC)


# ---------------------------------------------------------------------------
# Boundary validation
# ---------------------------------------------------------------------------


def _parse_timestamp(value: Any) -> datetime | None:
    """Accept datetimes, ISO strings, epoch seconds and {"seconds": n} maps."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, bool):
        return None
    if isinstance(value, Mapping) and isinstance(value.get("seconds"), (int, float)):
        value = value["seconds"]
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value, UTC)
        except (OverflowError, ValueError, OSError):
            # Out of range or NaN.
            return None
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return None


def _parse_order_index(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def normalize_document(doc: Mapping[str, Any]) -> Entry:
    """
    Turn one raw store document into an Entry.

    Raises:
        InvalidDocument: missing id or title
    """
    entry_id = doc.get("id")
    if not isinstance(entry_id, str) or not entry_id:
        raise InvalidDocument("Document has no id.")

    title = _text(doc.get("title"))
    if not title:
        raise InvalidDocument(f"Document '{entry_id}' has no title.")

    author = doc.get("authorRef", doc.get("authorId"))

    return Entry(
        id=entry_id,
        title=title,
        description=_text(doc.get("description")),
        code=doc.get("code") if isinstance(doc.get("code"), str) else "",
        accent_color=normalize_accent(doc.get("accentColor")),
        order_index=_parse_order_index(doc.get("orderIndex")),
        author_ref=str(author) if author is not None else None,
        created_at=_parse_timestamp(doc.get("createdAt")),
        updated_at=_parse_timestamp(doc.get("updatedAt")),
    )


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


def _newest_first(entry: Entry) -> tuple[float, str]:
    created = entry.created_at or _EPOCH
    return (-created.timestamp(), entry.id)


def derive_order(entries: Iterable[Entry]) -> list[Entry]:
    """
    orderIndex ascending when every entry has one; otherwise createdAt
    descending for the whole batch. Never mixes the two keys.
    """
    entries = list(entries)
    if entries and all(e.order_index is not None for e in entries):
        return sorted(entries, key=lambda e: (e.order_index, *_newest_first(e)))
    return sorted(entries, key=_newest_first)


class ListSnapshot:
    """Authoritative ordered list, replaced wholesale on every push."""

    def __init__(self) -> None:
        self._entries: list[Entry] = []
        self._by_id: dict[str, Entry] = {}
        self.version = 0
        self.loaded = False
        self.last_error: Exception | None = None
        self.rejected: int = 0

    @property
    def entries(self) -> list[Entry]:
        return list(self._entries)

    @property
    def ids(self) -> list[str]:
        return [e.id for e in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, entry_id: str) -> Entry | None:
        return self._by_id.get(entry_id)

    def apply(self, batch: Iterable[Mapping[str, Any]]) -> list[Entry]:
        """Validate a pushed batch and make it the authoritative list."""
        accepted: list[Entry] = []
        rejected = 0
        for doc in batch:
            try:
                accepted.append(normalize_document(doc))
            except InvalidDocument as e:
                rejected += 1
                logger.warning("snapshot: dropped document: %s", e)

        self._entries = derive_order(accepted)
        self._by_id = {e.id: e for e in self._entries}
        self.version += 1
        self.loaded = True
        self.last_error = None
        self.rejected = rejected
        logger.debug("snapshot: v%d with %d entries (%d rejected)", self.version, len(self._entries), rejected)
        return self.entries

    def fail(self, error: Exception) -> None:
        """Record a read failure. The last good list stays in place."""
        self.last_error = error
        logger.warning("snapshot: read failed, keeping %d entries from v%d: %s", len(self._entries), self.version, error)
