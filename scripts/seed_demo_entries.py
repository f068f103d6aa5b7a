#!/usr/bin/env python3
"""
Seed the hub with a handful of demo projects.

Usage:
    python scripts/seed_demo_entries.py [author_ref]

If no author_ref is provided, uses "demo". Entries are appended after any
existing ones, one per palette color.
"""

import asyncio
import sys

# Add project root to path
sys.path.insert(0, ".")

from hub.db import init_pool, close_pool, conn
from hub.repos.entry_repo import EntryRepo


DEMO_ENTRIES = [
    {
        "title": "Bar Chart",
        "description": "Monthly sales as an SVG bar chart.",
        "accentColor": "indigo",
        "code": """<svg viewBox="0 0 120 60" width="100%">
  <rect x="5" y="30" width="20" height="30" fill="#4f46e5"/>
  <rect x="35" y="10" width="20" height="50" fill="#4f46e5"/>
  <rect x="65" y="20" width="20" height="40" fill="#4f46e5"/>
  <rect x="95" y="40" width="20" height="20" fill="#4f46e5"/>
</svg>""",
    },
    {
        "title": "Clock",
        "description": "A ticking digital clock.",
        "accentColor": "emerald",
        "code": """<h1 id="t" style="font-family:monospace;text-align:center"></h1>
<script>
  setInterval(function () {
    document.getElementById("t").textContent = new Date().toLocaleTimeString();
  }, 1000);
</script>""",
    },
    {
        "title": "Counter",
        "description": "Click to count.",
        "accentColor": "rose",
        "code": """<button id="b" style="font-size:24px;padding:12px 24px">0</button>
<script>
  var n = 0;
  document.getElementById("b").onclick = function () { this.textContent = ++n; };
</script>""",
    },
    {
        "title": "Broken Project",
        "description": "Throws on load, to show the runtime error panel.",
        "accentColor": "amber",
        "code": "<script>undefinedFunction();</script>",
    },
]


async def next_order_index() -> int:
    async with conn() as c:
        row = await c.fetchrow("SELECT count(*) AS n, max(order_index) AS top FROM entries")
        top = row["top"] if row["top"] is not None else -1
        return max(row["n"], top + 1)


async def main():
    await init_pool()

    try:
        author_ref = sys.argv[1] if len(sys.argv) >= 2 else "demo"
        print(f"Seeding as author: {author_ref}")

        repo = EntryRepo()
        start = await next_order_index()
        for offset, fields in enumerate(DEMO_ENTRIES):
            doc = await repo.create({**fields, "orderIndex": start + offset, "authorRef": author_ref})
            print(f"Created {doc['title']}: {doc['id']}")
    finally:
        await close_pool()


if __name__ == "__main__":
    asyncio.run(main())
