from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING

import pytest

from gazetteer.app import Gazetteer
from gazetteer.config import ReconciliationConfig
from gazetteer.domain.model import Provider
from tests.helpers.candidates import make_candidate

if TYPE_CHECKING:
    from collections.abc import Callable

    from gazetteer.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork
    from gazetteer.config import TrustConfig

WORKERS = 8


@pytest.fixture
def shared_gazetteer(
    file_uow_factory: Callable[[], SqlAlchemyUnitOfWork], default_trust: TrustConfig
) -> Gazetteer:
    return Gazetteer(
        file_uow_factory,
        trust=default_trust,
        reconciliation_config=ReconciliationConfig(lock_timeout_seconds=10.0),
    )


def test_concurrent_identical_candidates_create_one_place(shared_gazetteer: Gazetteer) -> None:
    def submit(_: int) -> int:
        candidate = make_candidate(
            "Leeds", country_code="GB", identifiers={Provider.GEONAMES: "2644688"}
        )
        return shared_gazetteer.submit(candidate).place_id

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        place_ids = set(pool.map(submit, range(WORKERS * 2)))

    assert len(place_ids) == 1
    with shared_gazetteer.uow_factory() as uow:
        assert uow.repositories.places.count() == 1
        assert len(uow.repositories.names.list_all()) == 1


def test_concurrent_weak_candidates_share_a_bucket(shared_gazetteer: Gazetteer) -> None:
    def submit(index: int) -> int:
        source = (Provider.GEONAMES, Provider.OSM)[index % 2]
        return shared_gazetteer.submit(make_candidate("Wakefield", source=source)).place_id

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        place_ids = set(pool.map(submit, range(WORKERS)))

    assert len(place_ids) == 1


def test_concurrent_sources_leave_one_preferred_value(shared_gazetteer: Gazetteer) -> None:
    sources = [Provider.GEONAMES, Provider.WIKIDATA, Provider.OSM, Provider.RESTCOUNTRIES]
    populations = dict(zip(sources, (812_000, 789_194, 798_786, 800_000), strict=True))

    def submit(source: Provider) -> int:
        candidate = make_candidate(
            "Leeds",
            source=source,
            identifiers={Provider.GEONAMES: "2644688"},
            attributes={"population": populations[source]},
        )
        return shared_gazetteer.submit(candidate).place_id

    with ThreadPoolExecutor(max_workers=len(sources)) as pool:
        place_ids = set(pool.map(submit, sources))

    [place_id] = place_ids
    records = shared_gazetteer.attribution.records(place_id, "population")
    assert len(records) == len(sources)
    assert sum(record.is_preferred for record in records) == 1
    preferred = shared_gazetteer.preferred(place_id, "population")
    assert preferred is not None
    assert preferred.source == Provider.GEONAMES
