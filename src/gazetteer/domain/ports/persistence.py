"""Ports for persisting the place graph and its provenance."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from gazetteer.domain.model import (
        AliasMapping,
        AttributeObservation,
        AttributePin,
        AttributeRecord,
        CountryCode,
        ExternalIdentifier,
        HierarchyEdge,
        HierarchyRelation,
        IngestionRun,
        NameVariant,
        Place,
        PlaceId,
        PlaceKind,
        PlaceMerge,
        ReviewItem,
        ReviewKind,
        ReviewStatus,
    )


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent store."""

    def add(self, entity: TEntity) -> None: ...

    def remove(self, entity: TEntity) -> None: ...


@runtime_checkable
class PlaceRepository(Repository["Place"], Protocol):
    def get(self, place_id: PlaceId) -> Place | None: ...

    def list_all(self) -> Sequence[Place]: ...

    def find_by_admin_codes(
        self,
        kind: PlaceKind,
        country_code: CountryCode,
        adm1_code: str | None,
        adm2_code: str | None,
    ) -> Sequence[Place]: ...

    def find_with_coordinates(
        self, kind: PlaceKind, country_code: CountryCode | None
    ) -> Sequence[Place]:
        """Places of ``kind`` in ``country_code`` with known coordinates, ascending by id."""
        ...

    def count(self) -> int: ...


@runtime_checkable
class NameRepository(Repository["NameVariant"], Protocol):
    def get(self, name_id: int) -> NameVariant | None: ...

    def list_for_place(self, place_id: PlaceId) -> Sequence[NameVariant]: ...

    def list_all(self) -> Sequence[NameVariant]: ...

    def find_place_ids(
        self,
        normalized_text: str,
        country_code: CountryCode | None,
        kind: PlaceKind,
    ) -> Sequence[PlaceId]:
        """Ids of places of ``kind`` in ``country_code`` carrying the name, ascending."""
        ...


@runtime_checkable
class IdentifierRepository(Repository["ExternalIdentifier"], Protocol):
    def get(self, source: str, external_id: str) -> ExternalIdentifier | None: ...

    def get_for_place(self, place_id: PlaceId, source: str) -> ExternalIdentifier | None: ...

    def list_for_place(self, place_id: PlaceId) -> Sequence[ExternalIdentifier]: ...


@runtime_checkable
class AttributeRepository(Repository["AttributeRecord"], Protocol):
    def get(
        self, place_id: PlaceId, attribute_name: str, source: str
    ) -> AttributeRecord | None: ...

    def list_for(self, place_id: PlaceId, attribute_name: str) -> Sequence[AttributeRecord]: ...

    def list_for_place(self, place_id: PlaceId) -> Sequence[AttributeRecord]: ...

    def list_by_attribute(self, attribute_name: str) -> Sequence[AttributeRecord]: ...


@runtime_checkable
class ObservationRepository(Protocol):
    """Append-only provenance ledger; rows are never removed."""

    def add(self, entity: AttributeObservation) -> None: ...

    def history(
        self, place_id: PlaceId, attribute_name: str
    ) -> Sequence[AttributeObservation]: ...

    def list_for_place(self, place_id: PlaceId) -> Sequence[AttributeObservation]: ...


@runtime_checkable
class PinRepository(Repository["AttributePin"], Protocol):
    def get(self, place_id: PlaceId, attribute_name: str) -> AttributePin | None: ...

    def list_for_place(self, place_id: PlaceId) -> Sequence[AttributePin]: ...


@runtime_checkable
class HierarchyRepository(Repository["HierarchyEdge"], Protocol):
    def get(
        self, parent_id: PlaceId, child_id: PlaceId, relation: HierarchyRelation
    ) -> HierarchyEdge | None: ...

    def list_parents(self, child_id: PlaceId) -> Sequence[HierarchyEdge]: ...

    def list_children(self, parent_id: PlaceId) -> Sequence[HierarchyEdge]: ...


@runtime_checkable
class AliasRepository(Repository["AliasMapping"], Protocol):
    def find(self, normalized_text: str) -> Sequence[AliasMapping]: ...

    def list_for_place(self, place_id: PlaceId) -> Sequence[AliasMapping]: ...

    def list_all(self) -> Sequence[AliasMapping]: ...


@runtime_checkable
class ReviewRepository(Protocol):
    def add(self, entity: ReviewItem) -> None: ...

    def get(self, item_id: int) -> ReviewItem | None: ...

    def find(
        self,
        *,
        status: ReviewStatus | None = None,
        kind: ReviewKind | None = None,
    ) -> Sequence[ReviewItem]: ...

    def list_for_place(self, place_id: PlaceId) -> Sequence[ReviewItem]: ...


@runtime_checkable
class MergeRepository(Protocol):
    def add(self, entity: PlaceMerge) -> None: ...

    def list_for_place(self, kept_id: PlaceId) -> Sequence[PlaceMerge]: ...


@runtime_checkable
class IngestionRunRepository(Protocol):
    def add(self, entity: IngestionRun) -> None: ...

    def get(self, run_id: int) -> IngestionRun | None: ...
