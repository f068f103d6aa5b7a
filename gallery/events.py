"""
Gallery — Event Types

Everything the controller loop reacts to is one of these messages: UI
gestures, store notifications, commit results and lifecycle signals.
parse_client_message() builds them from the JSON a browser sends.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class GalleryEvent:
    """Base class. Subclasses carry only what the handler needs."""


# -- gestures ----------------------------------------------------------------


@dataclass(frozen=True)
class DragStarted(GalleryEvent):
    entry_id: str


@dataclass(frozen=True)
class DragOver(GalleryEvent):
    over_id: str


@dataclass(frozen=True)
class DragEnded(GalleryEvent):
    pass


@dataclass(frozen=True)
class DragCancelled(GalleryEvent):
    pass


@dataclass(frozen=True)
class FilterChanged(GalleryEvent):
    text: str


@dataclass(frozen=True)
class EntryOpened(GalleryEvent):
    entry_id: str


@dataclass(frozen=True)
class EntryClosed(GalleryEvent):
    pass


@dataclass(frozen=True)
class CreateStarted(GalleryEvent):
    pass


@dataclass(frozen=True)
class EditStarted(GalleryEvent):
    entry_id: str


@dataclass(frozen=True)
class SandboxFaulted(GalleryEvent):
    context_id: str
    message: str


# -- store -------------------------------------------------------------------


@dataclass(frozen=True)
class SnapshotPushed(GalleryEvent):
    batch: list[dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class SnapshotFailed(GalleryEvent):
    error: Exception


@dataclass(frozen=True)
class CommitSettled(GalleryEvent):
    ok: bool
    error: Exception | None = None


# -- lifecycle ---------------------------------------------------------------


@dataclass(frozen=True)
class Shutdown(GalleryEvent):
    pass


def _str(msg: dict[str, Any], key: str) -> str | None:
    value = msg.get(key)
    return value if isinstance(value, str) and value else None


def parse_client_message(msg: dict[str, Any]) -> GalleryEvent | None:
    """
    Map a client JSON message to an event. Unknown or malformed messages
    return None.

    Client → Server:
      {"type": "drag.start", "id": "..."}
      {"type": "drag.over", "id": "..."}
      {"type": "drag.end"} | {"type": "drag.cancel"}
      {"type": "filter", "text": "..."}
      {"type": "open", "id": "..."} | {"type": "close"}
      {"type": "create"} | {"type": "edit", "id": "..."}
      {"type": "sandbox.fault", "context": "...", "message": "..."}
    """
    msg_type = msg.get("type")

    if msg_type == "drag.start":
        entry_id = _str(msg, "id")
        return DragStarted(entry_id) if entry_id else None
    if msg_type == "drag.over":
        over_id = _str(msg, "id")
        return DragOver(over_id) if over_id else None
    if msg_type == "drag.end":
        return DragEnded()
    if msg_type == "drag.cancel":
        return DragCancelled()
    if msg_type == "filter":
        text = msg.get("text")
        return FilterChanged(text if isinstance(text, str) else "")
    if msg_type == "open":
        entry_id = _str(msg, "id")
        return EntryOpened(entry_id) if entry_id else None
    if msg_type == "close":
        return EntryClosed()
    if msg_type == "create":
        return CreateStarted()
    if msg_type == "edit":
        entry_id = _str(msg, "id")
        return EditStarted(entry_id) if entry_id else None
    if msg_type == "sandbox.fault":
        context_id = _str(msg, "context")
        if not context_id:
            return None
        return SandboxFaulted(context_id, str(msg.get("message", "")))
    return None
