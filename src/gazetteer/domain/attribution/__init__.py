"""Per-attribute provenance and conflict resolution."""

from __future__ import annotations

from .confidence import compute_confidence, disagreement, outlier_penalty, recency_bonus
from .policy import (
    DEFAULT_ATTRIBUTE_POLICIES,
    DEFAULT_SOURCE_TRUST,
    AttributePolicy,
    AttributePolicyTable,
    ResolutionPolicy,
    SourceTrustTable,
    choose_preferred,
)
from .store import (
    PROJECTED_ATTRIBUTES,
    AttributeConflict,
    AttributeMetadata,
    AttributionStore,
    attribute_lock_key,
)

__all__ = [
    "DEFAULT_ATTRIBUTE_POLICIES",
    "DEFAULT_SOURCE_TRUST",
    "PROJECTED_ATTRIBUTES",
    "AttributeConflict",
    "AttributeMetadata",
    "AttributePolicy",
    "AttributePolicyTable",
    "AttributionStore",
    "ResolutionPolicy",
    "SourceTrustTable",
    "attribute_lock_key",
    "choose_preferred",
    "compute_confidence",
    "disagreement",
    "outlier_penalty",
    "recency_bonus",
]
