"""
Gallery — Exceptions

Raised by the core and by store adapters. The service layer maps these to
HTTP status codes; nothing here knows about HTTP.
"""

from __future__ import annotations


class GalleryError(Exception):
    """Base class for every error the gallery core raises."""

    pass


class NotAuthorized(GalleryError):
    """No identity present, or the identity is not the entry's author."""

    pass


class EntryNotFound(GalleryError):
    """Entry id is not in the authoritative list."""

    pass


class InvalidDocument(GalleryError):
    """A store document cannot be turned into an Entry."""

    pass


class StoreError(GalleryError):
    """The remote store reported a failure."""

    pass


class ReadFailure(StoreError):
    """Subscription or fetch failed. Recovered by keeping the last good list."""

    pass


class WriteFailure(StoreError):
    """Create, update, delete or bulk update failed. Nothing was applied."""

    pass
