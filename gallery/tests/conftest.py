"""
Gallery core test configuration.

Core tests never touch a database: every store here is a MemoryStore.
"""

from __future__ import annotations

import pytest

from gallery.store import MemoryStore


def make_doc(entry_id, title=None, *, order=None, created=None, description=None, code="<p>hi</p>", author="alice"):
    """A raw store document with sensible defaults."""
    doc = {
        "id": entry_id,
        "title": title or f"Project {entry_id}",
        "description": description or f"About {entry_id}",
        "code": code,
        "authorRef": author,
    }
    if order is not None:
        doc["orderIndex"] = order
    if created is not None:
        doc["createdAt"] = created
    return doc


@pytest.fixture
def abc_docs():
    """Three ordered entries A, B, C (orderIndex 0, 1, 2)."""
    return [
        make_doc("A", order=0, created="2026-01-01T00:00:00+00:00"),
        make_doc("B", order=1, created="2026-01-02T00:00:00+00:00"),
        make_doc("C", order=2, created="2026-01-03T00:00:00+00:00"),
    ]


@pytest.fixture
def store(abc_docs):
    return MemoryStore(abc_docs)
