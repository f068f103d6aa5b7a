"""
Pydantic models for Project Hub.

All request/response shapes defined here. No imports from db, repos, or routes.
"""

from hub.models.entry import (
    CreateEntryRequest,
    EntryResponse,
    GalleryResponse,
    ReorderRequest,
    UpdateEntryRequest,
)

__all__ = [
    "CreateEntryRequest",
    "UpdateEntryRequest",
    "ReorderRequest",
    "EntryResponse",
    "GalleryResponse",
]
