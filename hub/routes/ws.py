"""
WebSocket endpoint for a live gallery session.

Accepts connections at /ws/gallery. Each connection gets its own
GalleryController subscribed to the store; client gestures become controller
events and every view change is pushed back.
"""

from __future__ import annotations

import asyncio
import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from gallery.errors import GalleryError
from gallery.events import parse_client_message
from gallery.types import GalleryView
from hub.auth import identity_from_websocket
from hub.config import settings
from hub.services.gallery_service import gallery_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])


@router.websocket("/ws/gallery")
async def gallery_websocket(websocket: WebSocket) -> None:
    """
    Stream gallery views to the client over WebSocket.

    Protocol:
      Client → Server:  see gallery.events.parse_client_message
      Server → Client:  {"type": "gallery.view", ...GalleryView}
                        {"type": "viewer.frame", "context": "...", "entry_id": "...", "frame": "<iframe ...>"}
                        {"type": "error", "error": "..."}

    Guests (no valid session cookie) get a read-only session: drag and edit
    messages are answered with an error and change nothing.
    """
    await websocket.accept()
    identity = identity_from_websocket(websocket)
    controller = gallery_service.session(identity)
    logger.info("ws: gallery session opened identity=%s", identity.id if identity else "guest")

    sent_context: dict[str, str | None] = {"id": None}

    async def send_view(view: GalleryView) -> None:
        await websocket.send_text(json.dumps({"type": "gallery.view", **view.to_dict()}))
        context = controller.sandbox.context
        context_id = context.context_id if context else None
        if view.mode == "view" and context_id != sent_context["id"]:
            sent_context["id"] = context_id
            await websocket.send_text(
                json.dumps(
                    {
                        "type": "viewer.frame",
                        "context": context_id,
                        "entry_id": view.active_id,
                        "frame": controller.sandbox.render_frame(),
                    }
                )
            )
        elif view.mode != "view":
            sent_context["id"] = None

    async def send_error(error: GalleryError) -> None:
        await websocket.send_text(json.dumps({"type": "error", "error": str(error)}))

    controller.add_listener(send_view)
    controller.add_error_listener(send_error)
    await controller.start()
    loop_task = asyncio.create_task(controller.run())

    try:
        while True:
            raw = await websocket.receive_text()
            if len(raw) > settings.WEBSOCKET_MAX_MESSAGE_BYTES:
                logger.warning("ws: oversized message (%d bytes) dropped", len(raw))
                continue
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("ws: malformed message from client: %r", raw[:200])
                continue
            if not isinstance(msg, dict):
                continue

            event = parse_client_message(msg)
            if event is None:
                logger.debug("ws: ignored message type=%r", msg.get("type"))
                continue
            controller.post(event)
    except WebSocketDisconnect:
        logger.info("ws: gallery session closed identity=%s", identity.id if identity else "guest")
    finally:
        # Abandoned gestures revert; a commit already sent finishes unobserved.
        await controller.stop()
        await loop_task
