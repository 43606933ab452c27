"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class Provider(StrEnum):
    """Data providers observations and identifiers originate from.

    ``WIKIDATA`` is the cross-knowledge-graph source (graph queries),
    ``GEONAMES`` the primary provider (curated file feed), ``OSM`` the map data.
    """

    WIKIDATA = "wikidata"
    GEONAMES = "geonames"
    OSM = "osm"
    RESTCOUNTRIES = "restcountries"
    MANUAL = "manual"


class PlaceKind(StrEnum):
    COUNTRY = "country"
    REGION = "region"
    CITY = "city"


class NameKind(StrEnum):
    OFFICIAL = "official"
    ENDONYM = "endonym"
    ALIAS = "alias"
    HISTORICAL = "historical"


class HierarchyRelation(StrEnum):
    ADMIN_PARENT = "admin_parent"
    CONTAINS = "contains"


class ReviewKind(StrEnum):
    IDENTIFIER_CONFLICT = "identifier_conflict"
    WEAK_MATCH = "weak_match"
    MERGE_IDENTIFIER_COLLISION = "merge_identifier_collision"
    COORDINATE_PROXIMITY = "coordinate_proximity"


class ReviewStatus(StrEnum):
    OPEN = "open"
    RESOLVED = "resolved"


class MergeReason(StrEnum):
    MANUAL = "manual"
    DUPLICATE = "duplicate"


class IngestionStatus(StrEnum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
