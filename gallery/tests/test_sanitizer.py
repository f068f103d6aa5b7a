"""Tests for clean_code(): fence stripping and idempotence."""

from __future__ import annotations

import pytest

from gallery.sanitizer import clean_code


def test_strips_html_fence():
    assert clean_code("```html\n<p>x</p>\n```") == "<p>x</p>"


def test_strips_bare_fence():
    assert clean_code("```\n<div>ok</div>\n```") == "<div>ok</div>"


def test_strips_fence_with_crlf_and_surrounding_whitespace():
    assert clean_code("  \n```HTML\r\n<b>bold</b>\r\n```\n\n") == "<b>bold</b>"


def test_no_fence_is_passthrough_trimmed():
    assert clean_code("  <h1>Title</h1>\n") == "<h1>Title</h1>"


def test_only_opening_marker():
    assert clean_code("```js\nalert(1)") == "alert(1)"


def test_only_closing_marker():
    assert clean_code("<p>x</p>\n```") == "<p>x</p>"


def test_inner_fences_are_untouched():
    source = "```html\n<pre>\n```\ninner\n```\n</pre>\n```"
    assert clean_code(source) == "<pre>\n```\ninner\n```\n</pre>"


def test_marker_without_newline_is_not_an_opener():
    assert clean_code("```html<p>x</p>") == "```html<p>x</p>"


def test_empty_input():
    assert clean_code("") == ""
    assert clean_code("```") == ""


@pytest.mark.parametrize(
    "source",
    [
        "",
        "<p>plain</p>",
        "```html\n<p>x</p>\n```",
        "```html\n```js\nnested()\n```\n```",
        "   ```\n  spaced  \n```   ",
        "```",
        "``````",
        "text with ``` in the middle",
        "```python\nprint('hi')",
    ],
)
def test_idempotent(source):
    once = clean_code(source)
    assert clean_code(once) == once
