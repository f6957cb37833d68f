"""Storage layer for BirdboxSearch.

Reconciles incoming resources against the index and persists them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from BirdboxSearch.storage.merge import ResourceMerger, reconcile
from BirdboxSearch.storage.migrate import migrate_index, upgrade_document

if TYPE_CHECKING:
    from BirdboxSearch.index.base import SearchIndex


def create_merger(index: SearchIndex) -> ResourceMerger:
    """Create a merger writing to `index` with the wall clock."""
    return ResourceMerger(index)


__all__ = [
    "ResourceMerger",
    "reconcile",
    "create_merger",
    "migrate_index",
    "upgrade_document",
]
