"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func, or_, select

from gazetteer.adapters.sqlalchemy.mappings import (
    alias_mapping_table,
    attribute_observation_table,
    attribute_pin_table,
    attribute_record_table,
    external_identifier_table,
    hierarchy_edge_table,
    name_variant_table,
    place_merge_table,
    place_table,
    review_item_table,
)
from gazetteer.domain.model import (
    AliasMapping,
    AttributeObservation,
    AttributePin,
    AttributeRecord,
    ExternalIdentifier,
    HierarchyEdge,
    IngestionRun,
    NameVariant,
    Place,
    PlaceMerge,
    ReviewItem,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from gazetteer.domain.model import (
        CountryCode,
        HierarchyRelation,
        PlaceId,
        PlaceKind,
        ReviewKind,
        ReviewStatus,
    )


class SqlAlchemyRepository[TEntity]:
    """Shared add/remove for repositories over one mapped class."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: TEntity) -> None:
        self.session.add(entity)

    def remove(self, entity: TEntity) -> None:
        self.session.delete(entity)


class SqlAlchemyPlaceRepository(SqlAlchemyRepository[Place]):
    def get(self, place_id: PlaceId) -> Place | None:
        return self.session.get(Place, place_id)

    def list_all(self) -> list[Place]:
        stmt = select(Place).order_by(place_table.c.id)
        return list(self.session.scalars(stmt))

    def find_by_admin_codes(
        self,
        kind: PlaceKind,
        country_code: CountryCode,
        adm1_code: str | None,
        adm2_code: str | None,
    ) -> list[Place]:
        stmt = (
            select(Place)
            .where(place_table.c.kind == kind)
            .where(place_table.c.country_code == country_code)
            .where(
                place_table.c.adm1_code.is_(None)
                if adm1_code is None
                else place_table.c.adm1_code == adm1_code
            )
            .where(
                place_table.c.adm2_code.is_(None)
                if adm2_code is None
                else place_table.c.adm2_code == adm2_code
            )
            .order_by(place_table.c.id)
        )
        return list(self.session.scalars(stmt))

    def find_with_coordinates(
        self, kind: PlaceKind, country_code: CountryCode | None
    ) -> list[Place]:
        stmt = (
            select(Place)
            .where(place_table.c.kind == kind)
            .where(
                place_table.c.country_code.is_(None)
                if country_code is None
                else place_table.c.country_code == country_code
            )
            .where(place_table.c.latitude.is_not(None))
            .where(place_table.c.longitude.is_not(None))
            .order_by(place_table.c.id)
        )
        return list(self.session.scalars(stmt))

    def count(self) -> int:
        return self.session.execute(select(func.count()).select_from(place_table)).scalar_one()


class SqlAlchemyNameRepository(SqlAlchemyRepository[NameVariant]):
    def get(self, name_id: int) -> NameVariant | None:
        return self.session.get(NameVariant, name_id)

    def list_for_place(self, place_id: PlaceId) -> list[NameVariant]:
        stmt = (
            select(NameVariant)
            .where(name_variant_table.c.place_id == place_id)
            .order_by(name_variant_table.c.id)
        )
        return list(self.session.scalars(stmt))

    def list_all(self) -> list[NameVariant]:
        stmt = select(NameVariant).order_by(name_variant_table.c.id)
        return list(self.session.scalars(stmt))

    def find_place_ids(
        self,
        normalized_text: str,
        country_code: CountryCode | None,
        kind: PlaceKind,
    ) -> list[PlaceId]:
        stmt = (
            select(name_variant_table.c.place_id)
            .join(place_table, place_table.c.id == name_variant_table.c.place_id)
            .where(name_variant_table.c.normalized_text == normalized_text)
            .where(place_table.c.kind == kind)
            .where(
                place_table.c.country_code.is_(None)
                if country_code is None
                else place_table.c.country_code == country_code
            )
            .distinct()
            .order_by(name_variant_table.c.place_id)
        )
        return list(self.session.scalars(stmt))


class SqlAlchemyIdentifierRepository(SqlAlchemyRepository[ExternalIdentifier]):
    def get(self, source: str, external_id: str) -> ExternalIdentifier | None:
        stmt = (
            select(ExternalIdentifier)
            .where(external_identifier_table.c.source == str(source))
            .where(external_identifier_table.c.external_id == external_id)
        )
        return self.session.scalars(stmt).one_or_none()

    def get_for_place(self, place_id: PlaceId, source: str) -> ExternalIdentifier | None:
        stmt = (
            select(ExternalIdentifier)
            .where(external_identifier_table.c.place_id == place_id)
            .where(external_identifier_table.c.source == str(source))
        )
        return self.session.scalars(stmt).one_or_none()

    def list_for_place(self, place_id: PlaceId) -> list[ExternalIdentifier]:
        stmt = (
            select(ExternalIdentifier)
            .where(external_identifier_table.c.place_id == place_id)
            .order_by(external_identifier_table.c.id)
        )
        return list(self.session.scalars(stmt))


class SqlAlchemyAttributeRepository(SqlAlchemyRepository[AttributeRecord]):
    def get(self, place_id: PlaceId, attribute_name: str, source: str) -> AttributeRecord | None:
        stmt = (
            select(AttributeRecord)
            .where(attribute_record_table.c.place_id == place_id)
            .where(attribute_record_table.c.attribute_name == attribute_name)
            .where(attribute_record_table.c.source == str(source))
        )
        return self.session.scalars(stmt).one_or_none()

    def list_for(self, place_id: PlaceId, attribute_name: str) -> list[AttributeRecord]:
        stmt = (
            select(AttributeRecord)
            .where(attribute_record_table.c.place_id == place_id)
            .where(attribute_record_table.c.attribute_name == attribute_name)
            .order_by(attribute_record_table.c.id)
        )
        return list(self.session.scalars(stmt))

    def list_for_place(self, place_id: PlaceId) -> list[AttributeRecord]:
        stmt = (
            select(AttributeRecord)
            .where(attribute_record_table.c.place_id == place_id)
            .order_by(attribute_record_table.c.id)
        )
        return list(self.session.scalars(stmt))

    def list_by_attribute(self, attribute_name: str) -> list[AttributeRecord]:
        stmt = (
            select(AttributeRecord)
            .where(attribute_record_table.c.attribute_name == attribute_name)
            .order_by(attribute_record_table.c.place_id, attribute_record_table.c.id)
        )
        return list(self.session.scalars(stmt))


class SqlAlchemyObservationRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: AttributeObservation) -> None:
        self.session.add(entity)

    def history(self, place_id: PlaceId, attribute_name: str) -> list[AttributeObservation]:
        stmt = (
            select(AttributeObservation)
            .where(attribute_observation_table.c.place_id == place_id)
            .where(attribute_observation_table.c.attribute_name == attribute_name)
            .order_by(attribute_observation_table.c.id)
        )
        return list(self.session.scalars(stmt))

    def list_for_place(self, place_id: PlaceId) -> list[AttributeObservation]:
        stmt = (
            select(AttributeObservation)
            .where(attribute_observation_table.c.place_id == place_id)
            .order_by(attribute_observation_table.c.id)
        )
        return list(self.session.scalars(stmt))


class SqlAlchemyPinRepository(SqlAlchemyRepository[AttributePin]):
    def get(self, place_id: PlaceId, attribute_name: str) -> AttributePin | None:
        stmt = (
            select(AttributePin)
            .where(attribute_pin_table.c.place_id == place_id)
            .where(attribute_pin_table.c.attribute_name == attribute_name)
        )
        return self.session.scalars(stmt).one_or_none()

    def list_for_place(self, place_id: PlaceId) -> list[AttributePin]:
        stmt = select(AttributePin).where(attribute_pin_table.c.place_id == place_id)
        return list(self.session.scalars(stmt))


class SqlAlchemyHierarchyRepository(SqlAlchemyRepository[HierarchyEdge]):
    def get(
        self, parent_id: PlaceId, child_id: PlaceId, relation: HierarchyRelation
    ) -> HierarchyEdge | None:
        stmt = (
            select(HierarchyEdge)
            .where(hierarchy_edge_table.c.parent_id == parent_id)
            .where(hierarchy_edge_table.c.child_id == child_id)
            .where(hierarchy_edge_table.c.relation == relation)
        )
        return self.session.scalars(stmt).one_or_none()

    def list_parents(self, child_id: PlaceId) -> list[HierarchyEdge]:
        stmt = (
            select(HierarchyEdge)
            .where(hierarchy_edge_table.c.child_id == child_id)
            .order_by(hierarchy_edge_table.c.id)
        )
        return list(self.session.scalars(stmt))

    def list_children(self, parent_id: PlaceId) -> list[HierarchyEdge]:
        stmt = (
            select(HierarchyEdge)
            .where(hierarchy_edge_table.c.parent_id == parent_id)
            .order_by(hierarchy_edge_table.c.id)
        )
        return list(self.session.scalars(stmt))


class SqlAlchemyAliasRepository(SqlAlchemyRepository[AliasMapping]):
    def find(self, normalized_text: str) -> list[AliasMapping]:
        stmt = (
            select(AliasMapping)
            .where(alias_mapping_table.c.normalized_text == normalized_text)
            .order_by(alias_mapping_table.c.id)
        )
        return list(self.session.scalars(stmt))

    def list_for_place(self, place_id: PlaceId) -> list[AliasMapping]:
        stmt = (
            select(AliasMapping)
            .where(alias_mapping_table.c.place_id == place_id)
            .order_by(alias_mapping_table.c.id)
        )
        return list(self.session.scalars(stmt))

    def list_all(self) -> list[AliasMapping]:
        stmt = select(AliasMapping).order_by(alias_mapping_table.c.id)
        return list(self.session.scalars(stmt))


class SqlAlchemyReviewRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: ReviewItem) -> None:
        self.session.add(entity)

    def get(self, item_id: int) -> ReviewItem | None:
        return self.session.get(ReviewItem, item_id)

    def find(
        self,
        *,
        status: ReviewStatus | None = None,
        kind: ReviewKind | None = None,
    ) -> list[ReviewItem]:
        stmt = select(ReviewItem).order_by(review_item_table.c.id)
        if status is not None:
            stmt = stmt.where(review_item_table.c.status == status)
        if kind is not None:
            stmt = stmt.where(review_item_table.c.kind == kind)
        return list(self.session.scalars(stmt))

    def list_for_place(self, place_id: PlaceId) -> list[ReviewItem]:
        """Items naming the place on either side."""

        stmt = (
            select(ReviewItem)
            .where(
                or_(
                    review_item_table.c.place_id == place_id,
                    review_item_table.c.other_place_id == place_id,
                )
            )
            .order_by(review_item_table.c.id)
        )
        return list(self.session.scalars(stmt))


class SqlAlchemyMergeRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: PlaceMerge) -> None:
        self.session.add(entity)

    def list_for_place(self, kept_id: PlaceId) -> list[PlaceMerge]:
        stmt = (
            select(PlaceMerge)
            .where(place_merge_table.c.kept_id == kept_id)
            .order_by(place_merge_table.c.id)
        )
        return list(self.session.scalars(stmt))


class SqlAlchemyIngestionRunRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: IngestionRun) -> None:
        self.session.add(entity)

    def get(self, run_id: int) -> IngestionRun | None:
        return self.session.get(IngestionRun, run_id)
