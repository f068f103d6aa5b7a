"""Tests for parse_client_message()."""

from __future__ import annotations

import pytest

from gallery.events import (
    CreateStarted,
    DragCancelled,
    DragEnded,
    DragOver,
    DragStarted,
    EditStarted,
    EntryClosed,
    EntryOpened,
    FilterChanged,
    SandboxFaulted,
    parse_client_message,
)


@pytest.mark.parametrize(
    ("msg", "expected"),
    [
        ({"type": "drag.start", "id": "a"}, DragStarted("a")),
        ({"type": "drag.over", "id": "b"}, DragOver("b")),
        ({"type": "drag.end"}, DragEnded()),
        ({"type": "drag.cancel"}, DragCancelled()),
        ({"type": "filter", "text": "chart"}, FilterChanged("chart")),
        ({"type": "filter"}, FilterChanged("")),
        ({"type": "open", "id": "a"}, EntryOpened("a")),
        ({"type": "close"}, EntryClosed()),
        ({"type": "create"}, CreateStarted()),
        ({"type": "edit", "id": "a"}, EditStarted("a")),
        ({"type": "sandbox.fault", "context": "c1", "message": "boom"}, SandboxFaulted("c1", "boom")),
    ],
)
def test_known_messages(msg, expected):
    assert parse_client_message(msg) == expected


@pytest.mark.parametrize(
    "msg",
    [
        {},
        {"type": "nope"},
        {"type": "drag.start"},
        {"type": "drag.start", "id": ""},
        {"type": "drag.over", "id": 3},
        {"type": "open"},
        {"type": "sandbox.fault", "message": "no context"},
    ],
)
def test_malformed_messages_ignored(msg):
    assert parse_client_message(msg) is None
