"""Reconciliation: decide which place an observation describes."""

from __future__ import annotations

from .contracts import MatchKind, ReconciliationResult
from .engine import OpenTransaction, ReconciliationEngine, reconcile_candidate
from .hierarchy import add_edge, is_ancestor
from .keys import admin_key, bucket_keys, identifier_key, name_key
from .merge import MergeResult, merge_places

__all__ = [
    "MatchKind",
    "MergeResult",
    "OpenTransaction",
    "ReconciliationEngine",
    "ReconciliationResult",
    "add_edge",
    "admin_key",
    "bucket_keys",
    "identifier_key",
    "is_ancestor",
    "merge_places",
    "name_key",
    "reconcile_candidate",
]
