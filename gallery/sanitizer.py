"""
Gallery — Content Sanitizer

Pasted source often arrives wrapped in a markdown code fence. clean_code()
removes the wrapper and nothing else.
"""

from __future__ import annotations

import re

# Opening marker: ``` plus an optional language tag, then the end of that line.
_OPEN_FENCE = re.compile(r"\A```[A-Za-z0-9_+.-]*[ \t]*\r?\n")
_CLOSE_FENCE = re.compile(r"```\Z")


def clean_code(raw: str) -> str:
    """
    Strip a surrounding code fence and trim whitespace.

    Input without fence markers is returned trimmed. Stripping repeats until
    nothing changes, so clean_code(clean_code(s)) == clean_code(s).
    """
    text = raw.strip()
    while True:
        stripped = _CLOSE_FENCE.sub("", _OPEN_FENCE.sub("", text, count=1), count=1).strip()
        if stripped == text:
            return text
        text = stripped
