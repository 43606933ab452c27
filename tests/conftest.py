from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session

from gazetteer.adapters.sqlalchemy import create_all_tables, start_mappers
from gazetteer.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyUnitOfWork,
    build_engine,
    make_session_factory,
    shutdown,
)
from gazetteer.app import Gazetteer
from gazetteer.config import IndexConfig, ReconciliationConfig, TrustConfig
from gazetteer.domain.attribution import DEFAULT_ATTRIBUTE_POLICIES, DEFAULT_SOURCE_TRUST
from tests.helpers.clock import FrozenClock

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def reset_adapter_state() -> Iterator[None]:
    yield
    shutdown()


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = build_engine("sqlite+pysqlite:///:memory:")
    start_mappers()
    create_all_tables(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def file_engine(tmp_path: Path) -> Iterator[Engine]:
    """File-backed store for tests that write from several threads."""

    engine = build_engine(f"sqlite+pysqlite:///{tmp_path / 'gazetteer.db'}")
    start_mappers()
    create_all_tables(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_session(sqlite_engine: Engine) -> Iterator[Session]:
    session = make_session_factory(sqlite_engine)()
    try:
        yield session
    finally:
        session.close()


def _uow_factory(engine: Engine) -> Callable[[], SqlAlchemyUnitOfWork]:
    session_factory = make_session_factory(engine)

    def factory() -> SqlAlchemyUnitOfWork:
        return SqlAlchemyUnitOfWork(session_factory=session_factory)

    return factory


@pytest.fixture
def uow_factory(sqlite_engine: Engine) -> Callable[[], SqlAlchemyUnitOfWork]:
    return _uow_factory(sqlite_engine)


@pytest.fixture
def file_uow_factory(file_engine: Engine) -> Callable[[], SqlAlchemyUnitOfWork]:
    return _uow_factory(file_engine)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def default_trust() -> TrustConfig:
    return TrustConfig(trust=DEFAULT_SOURCE_TRUST, policies=DEFAULT_ATTRIBUTE_POLICIES)


@pytest.fixture
def gazetteer(
    uow_factory: Callable[[], SqlAlchemyUnitOfWork],
    default_trust: TrustConfig,
    clock: FrozenClock,
) -> Gazetteer:
    return Gazetteer(
        uow_factory,
        trust=default_trust,
        reconciliation_config=ReconciliationConfig(lock_timeout_seconds=5.0),
        index_config=IndexConfig(),
        clock=clock,
    )
