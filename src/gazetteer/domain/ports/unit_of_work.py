"""Unit-of-work abstractions for coordinating repositories."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from gazetteer.domain.ports.persistence import (
        AliasRepository,
        AttributeRepository,
        HierarchyRepository,
        IdentifierRepository,
        IngestionRunRepository,
        MergeRepository,
        NameRepository,
        ObservationRepository,
        PinRepository,
        PlaceRepository,
        ReviewRepository,
    )


@runtime_checkable
class RepositoryCollection(Protocol):
    """Marker protocol for groups of repositories managed together."""


@runtime_checkable
class UnitOfWork[TRepositories: RepositoryCollection](Protocol):
    """Generic unit-of-work boundary around a repository collection.

    One unit of work is one transaction. ``flush`` pushes pending rows so that
    store-assigned ids become available without committing.
    """

    @property
    def repositories(self) -> TRepositories: ...

    def __enter__(self) -> UnitOfWork[TRepositories]: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def flush(self) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


@dataclass(slots=True)
class GazetteerRepositories(RepositoryCollection):
    """Repositories backing reconciliation, attribution and lookup."""

    places: PlaceRepository
    names: NameRepository
    identifiers: IdentifierRepository
    attributes: AttributeRepository
    observations: ObservationRepository
    pins: PinRepository
    hierarchy: HierarchyRepository
    aliases: AliasRepository
    reviews: ReviewRepository
    merges: MergeRepository
    ingestion_runs: IngestionRunRepository


type GazetteerUnitOfWork = UnitOfWork[GazetteerRepositories]
type UnitOfWorkFactory = Callable[[], GazetteerUnitOfWork]
