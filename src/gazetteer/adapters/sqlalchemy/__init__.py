"""SQLAlchemy adapter package for the gazetteer."""

from __future__ import annotations

from .mappings import create_all_tables, mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyAliasRepository,
    SqlAlchemyAttributeRepository,
    SqlAlchemyHierarchyRepository,
    SqlAlchemyIdentifierRepository,
    SqlAlchemyIngestionRunRepository,
    SqlAlchemyMergeRepository,
    SqlAlchemyNameRepository,
    SqlAlchemyObservationRepository,
    SqlAlchemyPinRepository,
    SqlAlchemyPlaceRepository,
    SqlAlchemyReviewRepository,
)
from .unit_of_work import (
    SqlAlchemyUnitOfWork,
    StartupError,
    build_engine,
    make_session_factory,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyAliasRepository",
    "SqlAlchemyAttributeRepository",
    "SqlAlchemyHierarchyRepository",
    "SqlAlchemyIdentifierRepository",
    "SqlAlchemyIngestionRunRepository",
    "SqlAlchemyMergeRepository",
    "SqlAlchemyNameRepository",
    "SqlAlchemyObservationRepository",
    "SqlAlchemyPinRepository",
    "SqlAlchemyPlaceRepository",
    "SqlAlchemyReviewRepository",
    "SqlAlchemyUnitOfWork",
    "StartupError",
    "build_engine",
    "create_all_tables",
    "make_session_factory",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
