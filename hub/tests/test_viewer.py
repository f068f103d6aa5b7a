"""
Tests for the viewer routes.

GET /p/{id} hosts a project behind a toolbar; GET /sandbox/{id} serves the
isolated document with a CSP sandbox header, and only on the sandbox origin.
"""

from __future__ import annotations

import html
import re

from gallery.sandbox import SANDBOX_PERMISSIONS
from hub.tests.conftest import project


async def _create(client, headers, **body):
    res = await client.post("/api/entries", json=project(**body), headers=headers)
    assert res.status_code == 201, res.text
    return res.json()["id"]


class TestViewerPage:
    async def test_renders_toolbar_and_frame(self, async_client, creator_headers):
        entry_id = await _create(async_client, creator_headers, title="Clock <b>")
        res = await async_client.get(f"/p/{entry_id}")
        assert res.status_code == 200
        assert res.headers["content-type"].startswith("text/html")
        assert res.headers["cache-control"] == "no-store"
        body = res.text
        assert "Clock &lt;b&gt;" in body
        assert "Hosted on Project Hub" in body
        assert 'href="/"' in body
        assert f'sandbox="{" ".join(SANDBOX_PERMISSIONS)}"' in body

    async def test_frame_is_not_same_origin(self, async_client, creator_headers):
        entry_id = await _create(async_client, creator_headers, code="<p>secret-markup</p>")
        body = (await async_client.get(f"/p/{entry_id}")).text
        assert "srcdoc" not in body
        assert "secret-markup" not in body
        assert re.search(r'<iframe [^>]*src="http://sandbox\.test/sandbox/' + entry_id, body)
        assert 'event.origin !== "http://sandbox.test"' in body

    async def test_guests_can_view(self, async_client, creator_headers):
        entry_id = await _create(async_client, creator_headers)
        res = await async_client.get(f"/p/{entry_id}")
        assert res.status_code == 200

    async def test_missing_project(self, async_client):
        res = await async_client.get("/p/does-not-exist")
        assert res.status_code == 404
        assert "Project not found" in res.text

    async def test_each_visit_is_a_fresh_context(self, async_client, creator_headers):
        entry_id = await _create(async_client, creator_headers)
        first = await async_client.get(f"/p/{entry_id}")
        second = await async_client.get(f"/p/{entry_id}")
        frame_ids = [re.search(r'id="sandbox-([0-9a-f]+)"', r.text).group(1) for r in (first, second)]
        assert frame_ids[0] != frame_ids[1]


class TestSandboxDocument:
    async def test_serves_document_with_csp(self, async_client, sandbox_client, creator_headers):
        entry_id = await _create(async_client, creator_headers, code="```html\n<p id='x'>hi</p>\n```")
        res = await sandbox_client.get(f"/sandbox/{entry_id}")
        assert res.status_code == 200
        assert res.headers["content-security-policy"] == "sandbox " + " ".join(SANDBOX_PERMISSIONS)
        assert res.headers["x-content-type-options"] == "nosniff"
        assert res.text.startswith("<script data-sandbox-guard>")
        assert res.text.endswith("<p id='x'>hi</p>")

    async def test_not_served_on_hub_origin(self, async_client, creator_headers):
        entry_id = await _create(async_client, creator_headers)
        res = await async_client.get(f"/sandbox/{entry_id}")
        assert res.status_code == 404

    async def test_frame_context_is_carried(self, async_client, sandbox_client, creator_headers):
        entry_id = await _create(async_client, creator_headers)
        page = await async_client.get(f"/p/{entry_id}")
        src = html.unescape(re.search(r'src="([^"]+)"', page.text).group(1))
        context_id = re.search(r'id="sandbox-([0-9a-f]+)"', page.text).group(1)
        res = await sandbox_client.get(src)
        assert res.status_code == 200
        assert f'"{context_id}"' in res.text

    async def test_bad_context_rejected(self, async_client, sandbox_client, creator_headers):
        entry_id = await _create(async_client, creator_headers)
        res = await sandbox_client.get(f"/sandbox/{entry_id}", params={"ctx": '";alert(1)//'})
        assert res.status_code == 422

    async def test_missing_document(self, sandbox_client):
        res = await sandbox_client.get("/sandbox/nope")
        assert res.status_code == 404
