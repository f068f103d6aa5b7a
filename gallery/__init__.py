"""
Gallery — the core of the project hub.

Five components:
  sanitizer   — strips code-fence wrappers from pasted source
  snapshot    — authoritative ordered list, rebuilt from store pushes
  ordering    — optimistic drag reordering + atomic order commit
  sandbox     — isolated documents for untrusted project code
  controller  — coordinates the above for one gallery session

Collaborators (remote store, identity) are interfaces in gallery.store.
"""

from gallery.controller import GalleryController
from gallery.ordering import OrderingEngine, plan_order
from gallery.sandbox import SANDBOX_PERMISSIONS, ExecutionSandbox
from gallery.sanitizer import clean_code
from gallery.snapshot import ListSnapshot, derive_order, normalize_document
from gallery.store import EntryStore, IdentityProvider, MemoryStore, StaticIdentity
from gallery.types import DragState, Entry, GalleryView, Identity

__all__ = [
    "clean_code",
    "ListSnapshot",
    "derive_order",
    "normalize_document",
    "OrderingEngine",
    "plan_order",
    "ExecutionSandbox",
    "SANDBOX_PERMISSIONS",
    "GalleryController",
    "EntryStore",
    "IdentityProvider",
    "MemoryStore",
    "StaticIdentity",
    "DragState",
    "Entry",
    "GalleryView",
    "Identity",
]
