"""SQLAlchemy-backed units of work for the gazetteer store."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

from sqlalchemy import create_engine, event
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from gazetteer.adapters.sqlalchemy.mappings import create_all_tables, start_mappers
from gazetteer.adapters.sqlalchemy.repositories import (
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
from gazetteer.config import DatabaseConfig, get_database_config
from gazetteer.domain.errors import ReconciliationRaceLost
from gazetteer.domain.ports import GazetteerRepositories, RepositoryCollection

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Connection, Engine


log = logging.getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when a SQLAlchemy unit of work is used before initialisation."""


def build_engine(database_uri: str, **kwargs: Any) -> Engine:
    """Create an engine; SQLite connections get foreign keys and immediate transactions."""

    engine = create_engine(database_uri, future=True, **kwargs)
    if engine.dialect.name == "sqlite":
        configure_sqlite(engine)
    return engine


def configure_sqlite(engine: Engine) -> None:
    """Begin every transaction with ``BEGIN IMMEDIATE``.

    pysqlite's own transaction handling is switched off so the write lock is
    taken up front; concurrent writers then queue on the database lock instead
    of failing when a read lock is upgraded.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: Any, _connection_record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(connection: Connection) -> None:
        connection.exec_driver_sql("BEGIN IMMEDIATE")


@dataclass(slots=True)
class _AdapterState:
    _engine: Engine | None = None
    _session_factory: sessionmaker[Session] | None = None

    @property
    def engine(self) -> Engine | None:
        return self._engine

    @engine.setter
    def engine(self, value: Engine | None) -> None:
        self._session_factory = None
        self._engine = value

    @property
    def session_factory(self) -> sessionmaker[Session]:
        if self._engine is None:
            raise StartupError(
                "SQLAlchemy adapter not initialised. Call gazetteer.adapters.sqlalchemy."
                "unit_of_work.startup() before requesting a unit of work."
            )
        if self._session_factory is None:
            self._session_factory = make_session_factory(self._engine)
        return self._session_factory


_STATE = _AdapterState()


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> Engine:
    """Initialise the SQLAlchemy engine, metadata, and session factory."""

    if _STATE.engine is not None and not force:
        raise StartupError(
            "SQLAlchemy adapter already initialised. Pass force=True to reconfigure."
        )

    resolved_engine = engine
    if resolved_engine is None:
        config = DatabaseConfig(uri=database_uri) if database_uri else get_database_config()
        resolved_engine = build_engine(config.uri, echo=config.echo)
        log.info("Opened place store at %s", resolved_engine.url.render_as_string())
    start_mappers()
    create_all_tables(resolved_engine)
    _STATE.engine = resolved_engine
    return resolved_engine


def configured_engine() -> Engine | None:
    """Return the engine currently managed by the adapter (if any)."""

    return _STATE.engine


def is_started() -> bool:
    """Return whether the adapter has been initialised."""

    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the managed engine and reset state (primarily for tests)."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.engine = None


class BaseSqlAlchemyUnitOfWork[TRepositories: RepositoryCollection](ABC):
    """Generic SQLAlchemy unit of work with pluggable repository collections.

    Unique-key violations surfaced on flush or commit are raised as
    :class:`ReconciliationRaceLost`; the caller may retry the whole unit.
    """

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self.session_factory: sessionmaker[Session] = session_factory or _STATE.session_factory
        self._session: Session | None = None

    @abstractmethod
    def _build_repositories(self, session: Session) -> TRepositories: ...

    def __enter__(self) -> BaseSqlAlchemyUnitOfWork[TRepositories]:
        self.session = self.session_factory()
        self._repositories = self._build_repositories(self.session)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if exc_type is not None:
            self.rollback()
        self.session.close()
        self.session = None
        return False

    def flush(self) -> None:
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise ReconciliationRaceLost(f"Unique key race: {exc.orig}") from exc

    def commit(self) -> None:
        try:
            self.session.commit()
        except IntegrityError as exc:
            raise ReconciliationRaceLost(f"Unique key race: {exc.orig}") from exc

    def rollback(self) -> None:
        self.session.rollback()

    @property
    def repositories(self) -> TRepositories:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._repositories

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._session

    @session.setter
    def session(self, session: Session | None) -> None:
        if self._session is not None and session is not None:
            raise StartupError("Unit of work session already initialised")
        self._session = session


class SqlAlchemyUnitOfWork(BaseSqlAlchemyUnitOfWork[GazetteerRepositories]):
    """Unit of work over every gazetteer repository."""

    def _build_repositories(self, session: Session) -> GazetteerRepositories:
        return GazetteerRepositories(
            places=SqlAlchemyPlaceRepository(session),
            names=SqlAlchemyNameRepository(session),
            identifiers=SqlAlchemyIdentifierRepository(session),
            attributes=SqlAlchemyAttributeRepository(session),
            observations=SqlAlchemyObservationRepository(session),
            pins=SqlAlchemyPinRepository(session),
            hierarchy=SqlAlchemyHierarchyRepository(session),
            aliases=SqlAlchemyAliasRepository(session),
            reviews=SqlAlchemyReviewRepository(session),
            merges=SqlAlchemyMergeRepository(session),
            ingestion_runs=SqlAlchemyIngestionRunRepository(session),
        )


if TYPE_CHECKING:
    from gazetteer.domain.ports import GazetteerUnitOfWork

    _uow_check: GazetteerUnitOfWork = SqlAlchemyUnitOfWork()
