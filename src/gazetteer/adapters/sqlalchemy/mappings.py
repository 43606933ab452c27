"""SQLAlchemy mapping metadata for the gazetteer domain model."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Dialect,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    orm,
)

from gazetteer.domain.model import (
    AliasMapping,
    AttributeObservation,
    AttributePin,
    AttributeRecord,
    ExternalIdentifier,
    HierarchyEdge,
    HierarchyRelation,
    IngestionRun,
    IngestionStatus,
    MergeReason,
    NameKind,
    NameVariant,
    Place,
    PlaceKind,
    PlaceMerge,
    ReviewItem,
    ReviewKind,
    ReviewStatus,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def _place_fk(name: str, *, cascade: bool = True) -> Column[int]:
    return Column(
        name,
        Integer,
        ForeignKey("place.id", ondelete="CASCADE" if cascade else None),
        nullable=False,
    )


# Core tables -----------------------------------------------------------------

place_table = Table(
    "place",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True),
    Column("kind", Enum(PlaceKind, native_enum=False), nullable=False),
    Column("country_code", String(2), nullable=True),
    Column("adm1_code", String, nullable=True),
    Column("adm2_code", String, nullable=True),
    # no FK: name_variant already references place
    Column("canonical_name_id", Integer, nullable=True),
    Column("population", BigInteger, nullable=True),
    Column("latitude", Float, nullable=True),
    Column("longitude", Float, nullable=True),
    Column("timezone", String, nullable=True),
    Column("bounding_box", JSON, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("updated_at", UTCDateTime(), nullable=True),
    Index("ix_place_admin_codes", "kind", "country_code", "adm1_code", "adm2_code"),
    sqlite_autoincrement=True,
)

name_variant_table = Table(
    "name_variant",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True),
    _place_fk("place_id"),
    Column("text", String, nullable=False),
    Column("normalized_text", String, nullable=False),
    Column("language_code", String, nullable=True),
    Column("name_kind", Enum(NameKind, native_enum=False), nullable=False),
    Column("is_preferred", Boolean, nullable=False, default=False),
    Column("source", String, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
    Index("ix_name_variant_normalized_text", "normalized_text"),
    Index("ix_name_variant_place_id", "place_id"),
    sqlite_autoincrement=True,
)

external_identifier_table = Table(
    "external_identifier",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True),
    _place_fk("place_id"),
    Column("source", String, nullable=False),
    Column("external_id", String, nullable=False),
    Column("created_at", UTCDateTime(), nullable=False),
    UniqueConstraint("source", "external_id"),
    UniqueConstraint("place_id", "source"),
)

attribute_record_table = Table(
    "attribute_record",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True),
    _place_fk("place_id"),
    Column("attribute_name", String, nullable=False),
    Column("value", JSON, nullable=True),
    Column("source", String, nullable=False),
    Column("source_record_id", String, nullable=True),
    Column("confidence", Float, nullable=False),
    Column("observed_at", UTCDateTime(), nullable=False),
    Column("is_preferred", Boolean, nullable=False, default=False),
    UniqueConstraint("place_id", "attribute_name", "source"),
    Index("ix_attribute_record_attribute_name", "attribute_name"),
)

attribute_observation_table = Table(
    "attribute_observation",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True),
    # no cascade: the ledger must be migrated, never dropped with its place
    _place_fk("place_id", cascade=False),
    Column("attribute_name", String, nullable=False),
    Column("value", JSON, nullable=True),
    Column("source", String, nullable=False),
    Column("source_record_id", String, nullable=True),
    Column("confidence", Float, nullable=False),
    Column("observed_at", UTCDateTime(), nullable=False),
    Column("recorded_at", UTCDateTime(), nullable=False),
    Index("ix_attribute_observation_place_attribute", "place_id", "attribute_name"),
    sqlite_autoincrement=True,
)

attribute_pin_table = Table(
    "attribute_pin",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True),
    _place_fk("place_id"),
    Column("attribute_name", String, nullable=False),
    Column("source", String, nullable=False),
    Column("pinned_by", String, nullable=True),
    Column("pinned_at", UTCDateTime(), nullable=False),
    UniqueConstraint("place_id", "attribute_name"),
)

hierarchy_edge_table = Table(
    "hierarchy_edge",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True),
    _place_fk("parent_id"),
    _place_fk("child_id"),
    Column("relation", Enum(HierarchyRelation, native_enum=False), nullable=False),
    Column("depth", Integer, nullable=False, default=1),
    Column("source", String, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
    UniqueConstraint("parent_id", "child_id", "relation"),
    CheckConstraint("parent_id != child_id", name="no_self_loop"),
    CheckConstraint("depth >= 1", name="positive_depth"),
    Index("ix_hierarchy_edge_child_id", "child_id"),
)

alias_mapping_table = Table(
    "alias_mapping",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True),
    Column("text", String, nullable=False),
    Column("normalized_text", String, nullable=False),
    _place_fk("place_id"),
    Column("note", String, nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
    UniqueConstraint("normalized_text", "place_id"),
)

# Audit tables keep plain place ids so they outlive merged places.

review_item_table = Table(
    "review_item",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True),
    Column("kind", Enum(ReviewKind, native_enum=False), nullable=False),
    Column("place_id", Integer, nullable=False),
    Column("other_place_id", Integer, nullable=True),
    Column("source", String, nullable=True),
    Column("external_id", String, nullable=True),
    Column("detail", Text, nullable=True),
    Column("status", Enum(ReviewStatus, native_enum=False), nullable=False),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("resolved_at", UTCDateTime(), nullable=True),
    Index("ix_review_item_place_id", "place_id"),
    Index("ix_review_item_status", "status"),
    sqlite_autoincrement=True,
)

place_merge_table = Table(
    "place_merge",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True),
    Column("kept_id", Integer, nullable=False),
    Column("removed_id", Integer, nullable=False),
    Column("reason", Enum(MergeReason, native_enum=False), nullable=False),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("created_by", String, nullable=True),
    sqlite_autoincrement=True,
)

ingestion_run_table = Table(
    "ingestion_run",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True),
    Column("source", String, nullable=False),
    Column("started_at", UTCDateTime(), nullable=False),
    Column("completed_at", UTCDateTime(), nullable=True),
    Column("status", Enum(IngestionStatus, native_enum=False), nullable=False),
    Column("processed", Integer, nullable=False, default=0),
    Column("created", Integer, nullable=False, default=0),
    Column("matched", Integer, nullable=False, default=0),
    Column("weak_matched", Integer, nullable=False, default=0),
    Column("conflicts", Integer, nullable=False, default=0),
    Column("skipped", Integer, nullable=False, default=0),
    Column("error_message", Text, nullable=True),
    sqlite_autoincrement=True,
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(Place, place_table)
    mapper_registry.map_imperatively(NameVariant, name_variant_table)
    mapper_registry.map_imperatively(ExternalIdentifier, external_identifier_table)
    mapper_registry.map_imperatively(AttributeRecord, attribute_record_table)
    mapper_registry.map_imperatively(AttributeObservation, attribute_observation_table)
    mapper_registry.map_imperatively(AttributePin, attribute_pin_table)
    mapper_registry.map_imperatively(HierarchyEdge, hierarchy_edge_table)
    mapper_registry.map_imperatively(AliasMapping, alias_mapping_table)
    mapper_registry.map_imperatively(ReviewItem, review_item_table)
    mapper_registry.map_imperatively(PlaceMerge, place_merge_table)
    mapper_registry.map_imperatively(IngestionRun, ingestion_run_table)

    orm.configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
