"""
Gallery — Shared Types

Data classes used across the sanitizer, snapshot, ordering engine, sandbox
and controller. Entry is the only shape that crosses the store boundary;
everything inside the core works on Entry, never on raw documents.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Palette
# ---------------------------------------------------------------------------

# Order matters: the first key is the default for missing/unknown values.
PALETTE: dict[str, str] = {
    "indigo": "#4f46e5",
    "emerald": "#059669",
    "rose": "#e11d48",
    "amber": "#d97706",
    "sky": "#0284c7",
    "violet": "#7c3aed",
}

DEFAULT_ACCENT: str = next(iter(PALETTE))

# Fields a creator may change after the entry exists. orderIndex is absent on
# purpose: it only moves through the ordering engine's bulk commit.
EDITABLE_FIELDS: set[str] = {"title", "description", "code", "accentColor"}

# Fields bulk_update accepts.
BULK_FIELDS: set[str] = {"orderIndex"}

# Controller modes, mirroring the addressable views of the hub.
MODES: set[str] = {"list", "view", "create", "edit", "locked"}


def now_utc() -> datetime:
    return datetime.now(UTC)


def normalize_accent(value: Any) -> str:
    """Return a palette key, falling back to the first palette entry."""
    if isinstance(value, str) and value in PALETTE:
        return value
    return DEFAULT_ACCENT


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Entry:
    """
    One hosted project, as the store currently has it.

    Attribute names are snake_case; the persisted field names are the
    camelCase ones produced by to_document().
    """

    id: str
    title: str
    description: str = ""
    code: str = ""
    accent_color: str = DEFAULT_ACCENT
    order_index: int | None = None
    author_ref: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_document(self) -> dict[str, Any]:
        """Persisted shape. Absent optional values are omitted, not nulled."""
        doc: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "code": self.code,
            "accentColor": self.accent_color,
        }
        if self.order_index is not None:
            doc["orderIndex"] = self.order_index
        if self.author_ref is not None:
            doc["authorRef"] = self.author_ref
        if self.created_at is not None:
            doc["createdAt"] = self.created_at.isoformat()
        if self.updated_at is not None:
            doc["updatedAt"] = self.updated_at.isoformat()
        return doc

    def matches(self, needle: str) -> bool:
        """Case-insensitive substring match over title and description."""
        if not needle:
            return True
        needle = needle.casefold()
        return needle in self.title.casefold() or needle in self.description.casefold()


@dataclass(frozen=True)
class Identity:
    """The signed-in creator. Absence of an Identity means guest mode."""

    id: str
    name: str | None = None


class DragState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    COMMITTING = "committing"


@dataclass(frozen=True)
class OrderUpdate:
    """One (id, field, value) triple of a bulk update."""

    id: str
    field: str
    value: Any

    def as_tuple(self) -> tuple[str, str, Any]:
        return (self.id, self.field, self.value)


@dataclass
class GalleryView:
    """What a UI layer renders for one gallery session."""

    entries: list[Entry] = field(default_factory=list)
    can_edit: bool = False
    filter_text: str = ""
    mode: str = "list"
    active_id: str | None = None
    editing_id: str | None = None
    drag_state: DragState = DragState.IDLE
    dragging_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "entries": [e.to_document() for e in self.entries],
            "can_edit": self.can_edit,
            "filter": self.filter_text,
            "mode": self.mode,
            "active_id": self.active_id,
            "editing_id": self.editing_id,
            "drag_state": self.drag_state.value,
            "dragging_id": self.dragging_id,
        }
