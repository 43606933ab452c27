"""Public domain model surface."""

from __future__ import annotations

from gazetteer.domain.model.attributes import (
    AttributeObservation,
    AttributePin,
    AttributeRecord,
)
from gazetteer.domain.model.audit import IngestionRun, PlaceMerge, ReviewItem
from gazetteer.domain.model.enums import (
    HierarchyRelation,
    IngestionStatus,
    MergeReason,
    NameKind,
    PlaceKind,
    Provider,
    ReviewKind,
    ReviewStatus,
)
from gazetteer.domain.model.external_ids import (
    IDENTIFIER_PRIORITY,
    ExternalIdentifier,
    Source,
    identifier_rank,
)
from gazetteer.domain.model.hierarchy import HierarchyEdge
from gazetteer.domain.model.names import AliasMapping, NameVariant
from gazetteer.domain.model.place import Place
from gazetteer.domain.model.primitives import (
    AttributeValue,
    Coordinates,
    CountryCode,
    PlaceId,
    as_utc,
    utcnow,
)

__all__ = [  # noqa: RUF022
    # place aggregate
    "Place",
    "NameVariant",
    "AliasMapping",
    "HierarchyEdge",
    # identifiers
    "ExternalIdentifier",
    "IDENTIFIER_PRIORITY",
    "identifier_rank",
    "Source",
    # attributes
    "AttributeRecord",
    "AttributeObservation",
    "AttributePin",
    # audit
    "PlaceMerge",
    "ReviewItem",
    "IngestionRun",
    # enums
    "Provider",
    "PlaceKind",
    "NameKind",
    "HierarchyRelation",
    "ReviewKind",
    "ReviewStatus",
    "MergeReason",
    "IngestionStatus",
    # primitives
    "AttributeValue",
    "Coordinates",
    "CountryCode",
    "PlaceId",
    "as_utc",
    "utcnow",
]
