"""Repository for entry operations."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any
from uuid import UUID

import asyncpg

from hub.db import conn

# Persisted field name → column. Anything not listed here never reaches SQL.
_COLUMNS: dict[str, str] = {
    "title": "title",
    "description": "description",
    "code": "code",
    "accentColor": "accent_color",
    "orderIndex": "order_index",
    "authorRef": "author_ref",
}

_INSERTABLE = ("title", "description", "code", "accentColor", "orderIndex", "authorRef")
_UPDATABLE = ("title", "description", "code", "accentColor", "orderIndex")


class UnknownEntry(LookupError):
    """A bulk update named an entry that does not exist."""


def _is_uuid(value: str) -> bool:
    try:
        UUID(value)
    except (TypeError, ValueError):
        return False
    return True


def _row_to_document(row: asyncpg.Record) -> dict[str, Any]:
    """Convert a database row to the persisted (camelCase) document shape."""
    doc: dict[str, Any] = {
        "id": str(row["id"]),
        "title": row["title"],
        "description": row["description"],
        "code": row["code"],
        "accentColor": row["accent_color"],
        "authorRef": row["author_ref"],
        "createdAt": row["created_at"],
        "updatedAt": row["updated_at"],
    }
    if row["order_index"] is not None:
        doc["orderIndex"] = row["order_index"]
    return doc


class EntryRepo:
    """All entry-related database operations."""

    async def list_all(self) -> list[dict[str, Any]]:
        """Every entry, unordered. Ordering is the snapshot's job."""
        async with conn() as c:
            rows = await c.fetch("SELECT * FROM entries")
            return [_row_to_document(row) for row in rows]

    async def get(self, entry_id: str) -> dict[str, Any] | None:
        if not _is_uuid(entry_id):
            return None
        async with conn() as c:
            row = await c.fetchrow("SELECT * FROM entries WHERE id = $1", entry_id)
            return _row_to_document(row) if row else None

    async def create(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        """
        Insert an entry. id, created_at and updated_at come from the database.

        Args:
            fields: persisted-name mapping; unknown keys are ignored

        Returns:
            The inserted document
        """
        present = [k for k in _INSERTABLE if k in fields]
        columns = ", ".join(_COLUMNS[k] for k in present)
        placeholders = ", ".join(f"${i + 1}" for i in range(len(present)))

        async with conn() as c:
            # S608/B608: columns come from the fixed _COLUMNS map only
            row = await c.fetchrow(
                f"INSERT INTO entries ({columns}) VALUES ({placeholders}) RETURNING *",  # nosec B608
                *[fields[k] for k in present],
            )
            return _row_to_document(row)

    async def update(self, entry_id: str, fields: Mapping[str, Any]) -> bool:
        """
        Update editable fields in place.

        Returns:
            True if the entry existed
        """
        if not _is_uuid(entry_id):
            return False
        present = [k for k in _UPDATABLE if k in fields]
        if not present:
            return await self.get(entry_id) is not None

        set_clause = ", ".join(f"{_COLUMNS[k]} = ${i + 2}" for i, k in enumerate(present))
        async with conn() as c:
            # S608/B608: set_clause only contains mapped column names
            result = await c.execute(
                f"UPDATE entries SET {set_clause}, updated_at = now() WHERE id = $1",  # nosec B608
                entry_id,
                *[fields[k] for k in present],
            )
            return result == "UPDATE 1"

    async def delete(self, entry_id: str) -> bool:
        if not _is_uuid(entry_id):
            return False
        async with conn() as c:
            result = await c.execute("DELETE FROM entries WHERE id = $1", entry_id)
            return result == "DELETE 1"

    async def bulk_update(self, updates: Iterable[tuple[str, str, Any]]) -> int:
        """
        Apply (id, field, value) triples in one transaction.

        Any missing entry or unknown field aborts the whole batch.

        Raises:
            UnknownEntry: an id matched no row (transaction rolled back)
            KeyError: a field is not updatable
        """
        triples = list(updates)
        for _, field_name, _ in triples:
            if field_name not in _UPDATABLE:
                raise KeyError(field_name)

        async with conn() as c:
            for entry_id, field_name, value in triples:
                if not _is_uuid(entry_id):
                    raise UnknownEntry(entry_id)
                # S608/B608: column comes from the fixed _COLUMNS map only
                result = await c.execute(
                    f"UPDATE entries SET {_COLUMNS[field_name]} = $2, updated_at = now() WHERE id = $1",  # nosec B608
                    entry_id,
                    value,
                )
                if result != "UPDATE 1":
                    raise UnknownEntry(entry_id)
        return len(triples)
