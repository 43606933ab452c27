"""Runtime lookup index over reconciled places."""

from __future__ import annotations

from .index import IndexStats, LookupIndex
from .snapshot import IndexedPlace, IndexSnapshot, PlaceEntry, rank_key
from .source import IndexSource, StoreIndexSource, build_entry, load_entry_in

__all__ = [
    "IndexSnapshot",
    "IndexSource",
    "IndexStats",
    "IndexedPlace",
    "LookupIndex",
    "PlaceEntry",
    "StoreIndexSource",
    "build_entry",
    "load_entry_in",
    "rank_key",
]
