"""Domain port definitions for adapters."""

from __future__ import annotations

from .persistence import (
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
    Repository,
    ReviewRepository,
)
from .unit_of_work import (
    GazetteerRepositories,
    GazetteerUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
    UnitOfWorkFactory,
)

__all__ = [
    "AliasRepository",
    "AttributeRepository",
    "GazetteerRepositories",
    "GazetteerUnitOfWork",
    "HierarchyRepository",
    "IdentifierRepository",
    "IngestionRunRepository",
    "MergeRepository",
    "NameRepository",
    "ObservationRepository",
    "PinRepository",
    "PlaceRepository",
    "Repository",
    "RepositoryCollection",
    "ReviewRepository",
    "UnitOfWork",
    "UnitOfWorkFactory",
]
