"""Entry routes — list/filter, create, get, update, delete, reorder."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from gallery.errors import EntryNotFound, GalleryError, InvalidDocument, NotAuthorized, ReadFailure, WriteFailure
from gallery.ordering import plan_order
from gallery.snapshot import normalize_document
from gallery.types import Entry, Identity
from hub.auth import get_current_identity, get_optional_identity
from hub.config import settings
from hub.models.entry import (
    CreateEntryRequest,
    EntryResponse,
    GalleryResponse,
    ReorderRequest,
    UpdateEntryRequest,
)
from hub.services.gallery_service import gallery_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/entries", tags=["entries"])


def http_error(e: GalleryError) -> HTTPException:
    """Map a core error to the HTTP error the caller sees."""
    if isinstance(e, NotAuthorized):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if isinstance(e, EntryNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Entry not found.")
    if isinstance(e, InvalidDocument):
        return HTTPException(status_code=422, detail=str(e))
    if isinstance(e, ReadFailure):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Store unavailable.")
    if isinstance(e, WriteFailure):
        logger.warning("entries: write failed: %s", e)
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Could not save. Please try again.")
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


def _check_code_size(code: str | None) -> None:
    if code is not None and len(code.encode("utf-8")) > settings.MAX_CODE_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"Source is larger than {settings.MAX_CODE_BYTES} bytes.",
        )


async def _load(entry_id: str) -> Entry:
    """Freshest copy of an entry: the store first, the shared snapshot as fallback."""
    store = gallery_service.require_store()
    try:
        doc = await store.fetch_one(entry_id)
    except ReadFailure:
        doc = None
        logger.warning("entries: fetch of %s failed, using snapshot", entry_id)
    if doc is not None:
        return normalize_document(doc)
    entry = gallery_service.snapshot.get(entry_id)
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Entry not found.")
    return entry


@router.get("", status_code=200)
async def list_entries(
    q: str = Query(default="", max_length=200),
    identity: Identity | None = Depends(get_optional_identity),
) -> GalleryResponse:
    """Entries in authoritative order, filtered by title/description. Guests welcome."""
    controller = gallery_service.controller(identity)
    controller.set_filter(q)
    return GalleryResponse.from_view(controller.view())


@router.post("", status_code=201)
async def create_entry(
    req: CreateEntryRequest,
    identity: Identity = Depends(get_current_identity),
) -> EntryResponse:
    """Create a new entry, placed last."""
    _check_code_size(req.code)
    controller = gallery_service.controller(identity)
    try:
        entry_id = await controller.create_entry(req.title, req.description, req.code, req.accent_color)
    except GalleryError as e:
        raise http_error(e) from e
    return EntryResponse.from_entry(await _load(entry_id))


@router.put("/order", status_code=200)
async def reorder_entries(
    req: ReorderRequest,
    identity: Identity = Depends(get_current_identity),
) -> GalleryResponse:
    """
    Persist a complete order in one atomic bulk update.

    The ids must be exactly the current entries; anything else means the
    caller's list is stale and nothing is written.
    """
    current = gallery_service.snapshot.ids
    if sorted(req.ids) != sorted(current):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Order does not match the current entries. Reload and try again.",
        )
    try:
        updates = plan_order(req.ids)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    store = gallery_service.require_store()
    try:
        await store.bulk_update([u.as_tuple() for u in updates])
    except WriteFailure as e:
        raise http_error(e) from e
    logger.info("entries: %s reordered %d entries", identity.id, len(updates))
    return GalleryResponse.from_view(gallery_service.controller(identity).view())


@router.get("/{entry_id}", status_code=200)
async def get_entry(
    entry_id: str,
    identity: Identity | None = Depends(get_optional_identity),
) -> EntryResponse:
    """Get a single entry by id."""
    return EntryResponse.from_entry(await _load(entry_id))


@router.patch("/{entry_id}", status_code=200)
async def update_entry(
    entry_id: str,
    req: UpdateEntryRequest,
    identity: Identity = Depends(get_current_identity),
) -> EntryResponse:
    """Update an entry's title, description, code or accent color. Author only."""
    _check_code_size(req.code)
    controller = gallery_service.controller(identity)
    changes = req.model_dump(exclude_none=True, by_alias=True)
    try:
        await controller.update_entry(entry_id, **changes)
    except GalleryError as e:
        raise http_error(e) from e
    return EntryResponse.from_entry(await _load(entry_id))


@router.delete("/{entry_id}", status_code=200)
async def delete_entry(
    entry_id: str,
    identity: Identity = Depends(get_current_identity),
) -> dict[str, str]:
    """Permanently delete an entry. Author only."""
    controller = gallery_service.controller(identity)
    try:
        await controller.delete_entry(entry_id)
    except GalleryError as e:
        raise http_error(e) from e
    return {"message": "Entry deleted."}
