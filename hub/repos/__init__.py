"""
Repository layer for Project Hub.

All SQL lives here and ONLY here. No database access outside this module.
"""

from hub.repos.entry_repo import EntryRepo

__all__ = [
    "EntryRepo",
]
