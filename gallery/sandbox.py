"""
Gallery — Execution Sandbox

Builds the isolated document an untrusted project runs in, and tracks the
lifecycle of the one context that is live at a time.

Every load() produces a brand-new SandboxContext with its own context_id.
The host renders it as a fresh iframe element keyed by that id, loaded from
a separate sandbox origin. Nothing a previous project did to its document
survives into the next one, and no project can reach the host page.

Document layout (order matters):

  1. fault handler script — catches `error` and `unhandledrejection`,
     stops propagation, swaps the body for a Runtime Error panel and
     posts {type: "sandbox.fault"} to the parent
  2. the project's sanitized code
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from html import escape
from urllib.parse import quote, urlsplit
from uuid import uuid4

from gallery.sanitizer import clean_code
from gallery.types import Entry, now_utc

logger = logging.getLogger(__name__)

# The complete permission surface. Nothing the hosted code asks for widens it.
SANDBOX_PERMISSIONS: tuple[str, ...] = (
    "allow-scripts",
    "allow-modals",
    "allow-forms",
    "allow-popups",
    "allow-same-origin",
)

FAULT_MESSAGE_TYPE = "sandbox.fault"

# Documents are served from here, never from the host page's own origin.
DEFAULT_SANDBOX_ORIGIN = "http://sandbox.localhost:8000"

PLACEHOLDER_HTML = '<div class="sandbox-placeholder" role="status">Loading Project...</div>'

_FAULT_HANDLER = """<script data-sandbox-guard>
(function () {
  var CONTEXT = __CONTEXT__;
  function show(message) {
    var panel = document.createElement("div");
    panel.setAttribute("data-sandbox-fault", "");
    panel.style.cssText = "color:#b91c1c;padding:20px;font-family:sans-serif";
    var heading = document.createElement("h3");
    heading.textContent = "Runtime Error";
    var detail = document.createElement("pre");
    detail.style.whiteSpace = "pre-wrap";
    detail.textContent = String(message);
    panel.appendChild(heading);
    panel.appendChild(detail);
    var body = document.body || document.documentElement.appendChild(document.createElement("body"));
    body.innerHTML = "";
    body.appendChild(panel);
    try {
      parent.postMessage({type: "__FAULT_TYPE__", context: CONTEXT, message: String(message)}, "*");
    } catch (ignored) {}
  }
  window.addEventListener("error", function (event) {
    event.preventDefault();
    event.stopImmediatePropagation();
    show(event.message || (event.error && event.error.message) || "Script error");
    return true;
  }, true);
  window.addEventListener("unhandledrejection", function (event) {
    event.preventDefault();
    var reason = event.reason;
    show((reason && reason.message) || reason || "Unhandled promise rejection");
  });
})();
</script>
"""


def sandbox_attribute() -> str:
    return " ".join(SANDBOX_PERMISSIONS)


def sandbox_csp() -> str:
    """Content-Security-Policy value for serving a sandbox document directly."""
    return f"sandbox {sandbox_attribute()}"


def normalize_origin(origin: str) -> str:
    """
    Validate a sandbox origin ("scheme://host[:port]") and drop any trailing slash.

    Raises:
        ValueError: not an absolute http(s) origin, or carries a path
    """
    parts = urlsplit(origin.strip())
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ValueError(f"Sandbox origin must be an absolute http(s) origin, got {origin!r}.")
    if parts.path not in ("", "/") or parts.query or parts.fragment:
        raise ValueError(f"Sandbox origin must not carry a path, got {origin!r}.")
    return f"{parts.scheme}://{parts.netloc}"


def fault_handler_script(context_id: str) -> str:
    return _FAULT_HANDLER.replace("__CONTEXT__", json.dumps(context_id)).replace("__FAULT_TYPE__", FAULT_MESSAGE_TYPE)


def build_document(code: str, context_id: str) -> str:
    """Fault handler first, then the project's sanitized code."""
    return fault_handler_script(context_id) + clean_code(code)


@dataclass
class SandboxFault:
    message: str
    at: datetime = field(default_factory=now_utc)


@dataclass
class SandboxContext:
    """One isolated document. Discarded, never reused."""

    context_id: str
    entry_id: str
    title: str
    document: str
    origin: str = DEFAULT_SANDBOX_ORIGIN
    created_at: datetime = field(default_factory=now_utc)
    faults: list[SandboxFault] = field(default_factory=list)

    @property
    def faulted(self) -> bool:
        return bool(self.faults)

    @property
    def src(self) -> str:
        """Where the document is served: the sandbox origin, never the host's."""
        return f"{self.origin}/sandbox/{quote(self.entry_id, safe='')}?ctx={self.context_id}"

    def render_frame(self) -> str:
        """iframe markup loading the document from the sandbox origin."""
        return (
            f'<iframe id="sandbox-{escape(self.context_id)}" '
            f'title="{escape(self.title)}" '
            f'sandbox="{sandbox_attribute()}" '
            f'src="{escape(self.src, quote=True)}" '
            'style="width:100%;height:100%;border:0"></iframe>'
        )


class ExecutionSandbox:
    """
    Holds at most one live SandboxContext.

    origin is where sandbox documents are served from. It must differ from
    the host page's origin: allow-same-origin only keeps the document's own
    origin, so a host-origin document would share the host's DOM and cookies.
    """

    def __init__(self, origin: str = DEFAULT_SANDBOX_ORIGIN) -> None:
        self.origin = normalize_origin(origin)
        self.context: SandboxContext | None = None
        self.discarded: int = 0

    @property
    def entry_id(self) -> str | None:
        return self.context.entry_id if self.context else None

    def load(self, entry: Entry | None, context_id: str | None = None) -> SandboxContext | None:
        """
        Replace the live context with a fresh one for entry.

        None means "not yet loaded": the previous context is discarded and no
        new one is built, so the placeholder renders. context_id is only
        passed when serving a document for a frame that already has one.
        """
        self.close()
        if entry is None:
            return None
        context_id = context_id or uuid4().hex
        self.context = SandboxContext(
            context_id=context_id,
            entry_id=entry.id,
            title=entry.title,
            document=build_document(entry.code, context_id),
            origin=self.origin,
        )
        logger.info("sandbox: opened entry=%s context=%s", entry.id, context_id)
        return self.context

    def close(self) -> None:
        """Discard the live context entirely."""
        if self.context is not None:
            logger.debug("sandbox: discarded context=%s", self.context.context_id)
            self.context = None
            self.discarded += 1

    def record_fault(self, context_id: str, message: str) -> bool:
        """
        Note a runtime fault reported by a sandbox document.

        Faults from discarded or unknown contexts are ignored. Never raises.
        """
        if self.context is None or self.context.context_id != context_id:
            logger.debug("sandbox: fault from stale context=%s ignored", context_id)
            return False
        self.context.faults.append(SandboxFault(message=str(message)[:2000]))
        logger.info("sandbox: runtime fault entry=%s: %s", self.context.entry_id, str(message)[:200])
        return True

    def render_frame(self) -> str:
        if self.context is None:
            return PLACEHOLDER_HTML
        return self.context.render_frame()
