"""Viewer routes — GET /p/{id} hosts a project, GET /sandbox/{id} is its isolated document."""

from __future__ import annotations

import json
import logging
from html import escape
from urllib.parse import urlsplit

from fastapi import APIRouter, Query, Request
from fastapi.responses import HTMLResponse

from gallery.errors import ReadFailure
from gallery.sandbox import FAULT_MESSAGE_TYPE, ExecutionSandbox, SandboxContext, sandbox_csp
from gallery.snapshot import normalize_document
from gallery.types import PALETTE, Entry
from hub.config import settings
from hub.services.gallery_service import gallery_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["viewer"])

_NOT_FOUND = "<html><body><h1>404 — Project not found</h1></body></html>"

# Sandbox documents are rebuilt on every request; never cache them.
_SANDBOX_HEADERS = {
    "Cache-Control": "no-store",
    "X-Content-Type-Options": "nosniff",
}


async def _find(entry_id: str) -> Entry | None:
    entry = gallery_service.snapshot.get(entry_id)
    if entry is not None:
        return entry
    try:
        doc = await gallery_service.require_store().fetch_one(entry_id)
    except ReadFailure as e:
        logger.warning("viewer: fetch of %s failed: %s", entry_id, e)
        return None
    return normalize_document(doc) if doc else None


def render_viewer_page(entry: Entry, context: SandboxContext) -> str:
    """Host page: toolbar with title and back link, then the sandboxed frame."""
    accent = PALETTE[entry.accent_color]
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{escape(entry.title)} · {escape(settings.HUB_NAME)}</title>
<style>
  html, body {{ margin: 0; height: 100%; font-family: system-ui, sans-serif; background: #f1f5f9; }}
  .viewer {{ display: flex; flex-direction: column; height: 100%; }}
  .toolbar {{ height: 56px; display: flex; align-items: center; gap: 16px; padding: 0 16px;
             background: #fff; border-bottom: 3px solid {accent}; }}
  .toolbar a {{ color: #64748b; text-decoration: none; font-size: 20px; }}
  .toolbar h1 {{ margin: 0; font-size: 14px; color: #1e293b; }}
  .toolbar small {{ color: #64748b; font-size: 12px; }}
  .toolbar .fault {{ margin-left: auto; color: #b91c1c; font-size: 12px; }}
  .stage {{ flex: 1; padding: 16px; overflow: hidden; }}
  .frame {{ width: 100%; height: 100%; background: #fff; border-radius: 8px; overflow: hidden; }}
</style>
</head>
<body>
<div class="viewer">
  <div class="toolbar">
    <a href="/" aria-label="Back to hub">&larr;</a>
    <div>
      <h1>{escape(entry.title)}</h1>
      <small>Hosted on {escape(settings.HUB_NAME)}</small>
    </div>
    <span class="fault" id="fault" hidden></span>
  </div>
  <div class="stage"><div class="frame">{context.render_frame()}</div></div>
</div>
<script>
  window.addEventListener("message", function (event) {{
    if (event.origin !== {json.dumps(settings.SANDBOX_ORIGIN)}) return;
    var data = event.data || {{}};
    if (data.type !== "{FAULT_MESSAGE_TYPE}" || data.context !== "{context.context_id}") return;
    var el = document.getElementById("fault");
    el.textContent = "Runtime error in project";
    el.hidden = false;
  }});
</script>
</body>
</html>"""


@router.get("/p/{entry_id}", response_class=HTMLResponse)
async def view_entry(entry_id: str) -> HTMLResponse:
    """
    Launch a project.

    Each request builds a fresh sandbox context, so reloading the page never
    carries state from the previous run.
    """
    entry = await _find(entry_id)
    if entry is None:
        return HTMLResponse(content=_NOT_FOUND, status_code=404)

    sandbox = ExecutionSandbox(settings.SANDBOX_ORIGIN)
    context = sandbox.load(entry)
    return HTMLResponse(content=render_viewer_page(entry, context), headers={"Cache-Control": "no-store"})


def _on_sandbox_origin(request: Request) -> bool:
    return request.url.netloc == urlsplit(settings.SANDBOX_ORIGIN).netloc


@router.get("/sandbox/{entry_id}", response_class=HTMLResponse)
async def sandbox_document(
    request: Request,
    entry_id: str,
    ctx: str | None = Query(default=None, pattern=r"^[0-9a-f]{32}$"),
) -> HTMLResponse:
    """
    The isolated document the viewer's iframe loads.

    Only answered on SANDBOX_ORIGIN. Served from the hub's own origin the
    document would share the hub's cookies and DOM access. The CSP sandbox
    header applies the same fixed permission set as the iframe attribute,
    so the document is sandboxed even if opened directly. ctx carries the
    frame's context id so faults can be matched to it.
    """
    if not _on_sandbox_origin(request):
        logger.warning("viewer: sandbox document for %s requested on %s", entry_id, request.url.netloc)
        return HTMLResponse(content=_NOT_FOUND, status_code=404)

    entry = await _find(entry_id)
    if entry is None:
        return HTMLResponse(content=_NOT_FOUND, status_code=404)

    context = ExecutionSandbox(settings.SANDBOX_ORIGIN).load(entry, context_id=ctx)
    return HTMLResponse(
        content=context.document,
        headers={**_SANDBOX_HEADERS, "Content-Security-Policy": sandbox_csp()},
    )
