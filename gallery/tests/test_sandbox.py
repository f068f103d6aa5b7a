"""
Gallery — Execution Sandbox Tests

Document layout (fault handler before project code), the fixed permission
set, the sandbox origin frames load from, and context freshness across
loads.
"""

from __future__ import annotations

import json

import pytest

from gallery.sandbox import (
    DEFAULT_SANDBOX_ORIGIN,
    FAULT_MESSAGE_TYPE,
    PLACEHOLDER_HTML,
    SANDBOX_PERMISSIONS,
    ExecutionSandbox,
    build_document,
    sandbox_attribute,
    sandbox_csp,
)
from gallery.types import Entry


def _entry(entry_id="p1", code="<p>hello</p>", title="Hello"):
    return Entry(id=entry_id, title=title, description="d", code=code)


class TestDocument:
    def test_fault_handler_comes_first(self):
        document = build_document("<script>boom()</script>", "ctx-1")
        assert document.startswith("<script data-sandbox-guard>")
        assert document.index("data-sandbox-guard") < document.index("boom()")

    def test_handler_catches_errors_and_rejections(self):
        document = build_document("", "ctx-1")
        assert 'addEventListener("error"' in document
        assert 'addEventListener("unhandledrejection"' in document
        assert "preventDefault" in document
        assert "Runtime Error" in document

    def test_handler_reports_to_parent_with_context(self):
        document = build_document("", "ctx-42")
        assert '"ctx-42"' in document
        assert FAULT_MESSAGE_TYPE in document
        assert "parent.postMessage" in document

    def test_code_is_sanitized(self):
        document = build_document("```html\n<p>x</p>\n```", "ctx")
        assert document.endswith("<p>x</p>")
        assert "```" not in document


class TestPermissions:
    def test_fixed_permission_set(self):
        assert set(SANDBOX_PERMISSIONS) == {
            "allow-scripts",
            "allow-modals",
            "allow-forms",
            "allow-popups",
            "allow-same-origin",
        }

    def test_csp_header_value(self):
        assert sandbox_csp() == "sandbox " + " ".join(SANDBOX_PERMISSIONS)

    def test_code_cannot_widen_permissions(self):
        sandbox = ExecutionSandbox()
        sandbox.load(_entry(code='<iframe sandbox="allow-top-navigation"></iframe>'))
        frame = sandbox.render_frame()
        assert f'sandbox="{sandbox_attribute()}"' in frame
        # The project's markup is fetched by the frame, never inlined into it.
        assert "allow-top-navigation" not in frame


class TestOrigin:
    def test_frame_loads_from_sandbox_origin(self):
        sandbox = ExecutionSandbox("https://sandbox.example.com")
        context = sandbox.load(_entry("p 1", code='<p title="q">x</p>'))
        frame = context.render_frame()
        assert "srcdoc" not in frame
        assert f'src="https://sandbox.example.com/sandbox/p%201?ctx={context.context_id}"' in frame
        assert f'id="sandbox-{context.context_id}"' in frame
        assert "<p" not in frame

    def test_default_origin(self):
        context = ExecutionSandbox().load(_entry())
        assert context.src.startswith(DEFAULT_SANDBOX_ORIGIN + "/sandbox/p1?ctx=")

    def test_trailing_slash_dropped(self):
        assert ExecutionSandbox("http://sandbox.test/").origin == "http://sandbox.test"

    @pytest.mark.parametrize("origin", ["", "sandbox.test", "javascript:alert(1)", "http://sandbox.test/path"])
    def test_rejects_non_origins(self, origin):
        with pytest.raises(ValueError):
            ExecutionSandbox(origin)

    def test_explicit_context_id(self):
        context = ExecutionSandbox().load(_entry(), context_id="a" * 32)
        assert context.context_id == "a" * 32
        assert json.dumps("a" * 32) in context.document


class TestLifecycle:
    def test_no_entry_renders_placeholder(self):
        sandbox = ExecutionSandbox()
        assert sandbox.load(None) is None
        assert sandbox.render_frame() == PLACEHOLDER_HTML
        assert "Loading Project..." in PLACEHOLDER_HTML

    def test_each_load_is_a_fresh_context(self):
        sandbox = ExecutionSandbox()
        first = sandbox.load(_entry("x", code="<p>first</p>"))
        second = sandbox.load(_entry("y", code="<p>second</p>"))
        assert first.context_id != second.context_id
        assert sandbox.context is second
        assert "first" not in second.document
        assert sandbox.discarded == 1

    def test_reloading_same_entry_is_still_fresh(self):
        sandbox = ExecutionSandbox()
        entry = _entry()
        first = sandbox.load(entry)
        second = sandbox.load(entry)
        assert first.context_id != second.context_id

    def test_close_discards(self):
        sandbox = ExecutionSandbox()
        sandbox.load(_entry())
        sandbox.close()
        assert sandbox.context is None
        assert sandbox.entry_id is None
        assert sandbox.render_frame() == PLACEHOLDER_HTML


class TestFaults:
    def test_fault_recorded_on_live_context(self):
        sandbox = ExecutionSandbox()
        context = sandbox.load(_entry())
        assert sandbox.record_fault(context.context_id, "ReferenceError: boom is not defined")
        assert context.faulted
        assert context.faults[0].message.startswith("ReferenceError")

    def test_fault_from_stale_context_ignored(self):
        sandbox = ExecutionSandbox()
        stale = sandbox.load(_entry("x"))
        fresh = sandbox.load(_entry("y"))
        assert not sandbox.record_fault(stale.context_id, "late error")
        assert not fresh.faulted

    def test_fault_does_not_leak_into_next_load(self):
        sandbox = ExecutionSandbox()
        broken = sandbox.load(_entry("x", code="<script>throw new Error('x')</script>"))
        sandbox.record_fault(broken.context_id, "Error: x")
        healthy = sandbox.load(_entry("y"))
        assert not healthy.faulted

    def test_fault_after_close_ignored(self):
        sandbox = ExecutionSandbox()
        context = sandbox.load(_entry())
        sandbox.close()
        assert not sandbox.record_fault(context.context_id, "late")
