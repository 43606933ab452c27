from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest

from gazetteer.app import Gazetteer
from gazetteer.config import ReconciliationConfig
from gazetteer.domain.candidates import CandidateRecord
from gazetteer.domain.errors import (
    IndexUnavailable,
    InvalidCandidate,
    InvalidRename,
    PlaceNotFound,
    ReconciliationRaceLost,
    ReviewItemNotFound,
)
from gazetteer.domain.model import IngestionStatus, PlaceKind, Provider, ReviewKind, ReviewStatus
from gazetteer.domain.reconciliation import MatchKind
from tests.helpers.candidates import birmingham_pair, make_candidate

if TYPE_CHECKING:
    from collections.abc import Callable

    from gazetteer.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork
    from gazetteer.config import TrustConfig
    from gazetteer.domain.attribution import AttributionStore
    from gazetteer.domain.model import AttributeRecord
    from gazetteer.domain.reconciliation import (
        OpenTransaction,
        ReconciliationEngine,
        ReconciliationResult,
    )
    from tests.helpers.clock import FrozenClock


def _lyon(source: str, population: int) -> CandidateRecord:
    return make_candidate(
        "Lyon",
        source=source,
        country_code="FR",
        identifiers={Provider.GEONAMES: "2996944"},
        attributes={"population": population},
    )


def test_submit_creates_place_and_projects_attributes(gazetteer: Gazetteer) -> None:
    result = gazetteer.submit(_lyon(Provider.GEONAMES, 522_250))

    assert result.created
    assert result.match_kind == MatchKind.NONE
    place = gazetteer.get_place(result.place_id)
    assert place.population == 522_250
    preferred = gazetteer.preferred(result.place_id, "population")
    assert preferred is not None
    assert preferred.source == Provider.GEONAMES


def test_resubmission_is_idempotent(gazetteer: Gazetteer) -> None:
    first = gazetteer.submit(_lyon(Provider.GEONAMES, 522_250))
    second = gazetteer.submit(_lyon(Provider.GEONAMES, 522_250))

    assert second.place_id == first.place_id
    assert not second.created
    assert second.match_kind == MatchKind.HARD
    assert len(gazetteer.history(first.place_id, "population")) == 2


@pytest.mark.parametrize("wikidata_first", [True, False])
def test_preferred_value_does_not_depend_on_arrival_order(
    gazetteer: Gazetteer, wikidata_first: bool
) -> None:
    submissions = [_lyon(Provider.WIKIDATA, 552_000), _lyon(Provider.GEONAMES, 510_746)]
    if not wikidata_first:
        submissions.reverse()

    place_ids = {gazetteer.submit(candidate).place_id for candidate in submissions}

    assert len(place_ids) == 1
    place_id = place_ids.pop()
    preferred = gazetteer.preferred(place_id, "population")
    assert preferred is not None
    assert preferred.value == 510_746
    assert gazetteer.get_place(place_id).population == 510_746


def test_find_best_prefers_population_and_honours_country(gazetteer: Gazetteer) -> None:
    england, alabama = (gazetteer.submit(candidate) for candidate in birmingham_pair())
    gazetteer.rebuild_index()

    best = gazetteer.find_best("birmingham")
    assert best is not None
    assert best.place_id == england.place_id
    in_us = gazetteer.find_best("Birmingham", country_code="us")
    assert in_us is not None
    assert in_us.place_id == alabama.place_id
    assert [item.place_id for item in gazetteer.find_all("BIRMINGHAM")] == [
        england.place_id,
        alabama.place_id,
    ]
    assert gazetteer.find_best("Birmingham", country_code="FR") is None


def test_lookups_require_a_built_index(gazetteer: Gazetteer) -> None:
    with pytest.raises(IndexUnavailable):
        gazetteer.find_best("Birmingham")
    assert gazetteer.stats().generation == 0


def test_submissions_after_build_patch_the_index(gazetteer: Gazetteer) -> None:
    gazetteer.rebuild_index()

    result = gazetteer.submit(make_candidate("Saint-Étienne", country_code="FR"))

    assert [item.place_id for item in gazetteer.lookup_by_slug("saint-etienne")] == [
        result.place_id
    ]
    assert gazetteer.stats().place_count == 1


def test_alias_overrides_population_ranking(gazetteer: Gazetteer) -> None:
    england, alabama = (gazetteer.submit(candidate) for candidate in birmingham_pair())
    gazetteer.rebuild_index()

    gazetteer.add_alias("Birmingham", alabama.place_id, note="regional deployment")
    gazetteer.add_alias("Brum", england.place_id)

    best = gazetteer.find_best("Birmingham")
    assert best is not None
    assert best.place_id == alabama.place_id
    brum = gazetteer.find_best("brum")
    assert brum is not None
    assert brum.place_id == england.place_id


def test_add_alias_is_idempotent_and_checks_the_place(gazetteer: Gazetteer) -> None:
    place_id = gazetteer.submit(make_candidate("Birmingham")).place_id

    first = gazetteer.add_alias("Brum", place_id)
    again = gazetteer.add_alias("BRUM", place_id)

    assert again.id == first.id
    with pytest.raises(PlaceNotFound):
        gazetteer.add_alias("Nowhere", 999)


def test_rename_moves_index_keys_without_rebuild(gazetteer: Gazetteer) -> None:
    place_id = gazetteer.submit(make_candidate("Bombay", country_code="IN")).place_id
    gazetteer.rebuild_index()
    generation = gazetteer.stats().generation

    gazetteer.rename_place(place_id, "Mumbai")

    assert gazetteer.lookup_by_normalized("bombay") == ()
    found = gazetteer.find_best("mumbai")
    assert found is not None
    assert found.place_id == place_id
    assert found.name == "Mumbai"
    assert found.slug == "mumbai"
    assert gazetteer.stats().generation == generation + 1


def test_rename_promotes_an_existing_variant(gazetteer: Gazetteer) -> None:
    place_id = gazetteer.submit(make_candidate("Bombay", "Mumbai", country_code="IN")).place_id
    gazetteer.rebuild_index()

    chosen = gazetteer.rename_place(place_id, "Mumbai")

    assert chosen.text == "Mumbai"
    assert gazetteer.get_place(place_id).canonical_name_id == chosen.id
    # the old canonical form stays a variant
    assert [item.place_id for item in gazetteer.lookup_by_normalized("bombay")] == [place_id]


def test_retract_name_drops_its_keys(gazetteer: Gazetteer) -> None:
    place_id = gazetteer.submit(
        make_candidate("Lyon", "Lugdunum", country_code="FR")
    ).place_id
    gazetteer.rebuild_index()

    assert gazetteer.retract_name(place_id, "lugdunum") == 1
    assert gazetteer.retract_name(place_id, "lugdunum") == 0

    assert gazetteer.lookup_by_normalized("Lugdunum") == ()
    with pytest.raises(InvalidRename, match="last name"):
        gazetteer.retract_name(place_id, "Lyon")
    assert [item.place_id for item in gazetteer.lookup_by_normalized("Lyon")] == [place_id]


def test_retracting_the_canonical_name_promotes_a_survivor(gazetteer: Gazetteer) -> None:
    place_id = gazetteer.submit(make_candidate("Bombay", "Mumbai", country_code="IN")).place_id
    gazetteer.rebuild_index()

    gazetteer.retract_name(place_id, "Bombay")

    found = gazetteer.find_best("Mumbai")
    assert found is not None
    assert found.name == "Mumbai"


def test_merge_through_facade_redirects_lookups(gazetteer: Gazetteer) -> None:
    kept = gazetteer.submit(
        make_candidate(
            "Mumbai",
            country_code="IN",
            identifiers={Provider.GEONAMES: "1275339"},
            attributes={"population": 12_442_373},
        )
    )
    removed = gazetteer.submit(
        make_candidate(
            "Bombay",
            source=Provider.WIKIDATA,
            country_code="IN",
            identifiers={Provider.WIKIDATA: "Q1156"},
            attributes={"population": 12_478_447},
        )
    )
    gazetteer.rebuild_index()

    result = gazetteer.merge_places(kept.place_id, removed.place_id, created_by="ops")

    assert result.names_moved == 1
    bombay = gazetteer.find_best("Bombay")
    assert bombay is not None
    assert bombay.place_id == kept.place_id
    assert gazetteer.stats().place_count == 1
    with pytest.raises(PlaceNotFound):
        gazetteer.get_place(removed.place_id)
    # the removed place's identifier now resolves to the survivor
    again = gazetteer.submit(
        make_candidate(
            "Bombay",
            source=Provider.WIKIDATA,
            country_code="IN",
            identifiers={Provider.WIKIDATA: "Q1156"},
        )
    )
    assert again.place_id == kept.place_id
    assert {str(obs.source) for obs in gazetteer.history(kept.place_id, "population")} == {
        "geonames",
        "wikidata",
    }


def test_pin_and_unpin_update_the_projection(gazetteer: Gazetteer) -> None:
    place_id = gazetteer.submit(_lyon(Provider.GEONAMES, 510_746)).place_id
    gazetteer.submit(_lyon(Provider.WIKIDATA, 552_000))
    gazetteer.rebuild_index()

    pinned = gazetteer.pin_preferred(place_id, "population", Provider.WIKIDATA, pinned_by="ops")

    assert pinned.value == 552_000
    found = gazetteer.find_best("Lyon")
    assert found is not None
    assert found.population == 552_000

    restored = gazetteer.unpin(place_id, "population")
    assert restored is not None
    assert restored.value == 510_746
    assert gazetteer.get_place(place_id).population == 510_746


def test_conflicting_identifier_is_parked_for_review(gazetteer: Gazetteer) -> None:
    first = gazetteer.submit(
        make_candidate("Springfield", country_code="US", identifiers={Provider.GEONAMES: "1"})
    )
    second = gazetteer.submit(
        make_candidate(
            "Capital City",
            country_code="US",
            adm1_code="IL",
            identifiers={Provider.GEONAMES: "2", Provider.WIKIDATA: "Q28515"},
        )
    )

    result = gazetteer.submit(
        make_candidate(
            "Springfield",
            source=Provider.WIKIDATA,
            country_code="US",
            identifiers={Provider.GEONAMES: "1", Provider.WIKIDATA: "Q28515"},
        )
    )

    assert result.place_id == second.place_id
    assert result.flagged_for_review
    [conflict] = result.conflicts
    assert conflict.existing_place_id == first.place_id
    queue = gazetteer.review_queue(kind=ReviewKind.IDENTIFIER_CONFLICT)
    assert [item.other_place_id for item in queue] == [first.place_id]

    item_id = queue[0].id
    assert item_id is not None
    resolved = gazetteer.resolve_review_item(item_id)
    assert resolved.status == ReviewStatus.RESOLVED
    assert gazetteer.review_queue(kind=ReviewKind.IDENTIFIER_CONFLICT) == []
    with pytest.raises(ReviewItemNotFound):
        gazetteer.resolve_review_item(999)


def test_weak_match_is_flagged(gazetteer: Gazetteer) -> None:
    first = gazetteer.submit(make_candidate("Cambridge", country_code="GB"))
    second = gazetteer.submit(make_candidate("Cambridge", source=Provider.OSM, country_code="GB"))

    assert second.place_id == first.place_id
    assert second.match_kind == MatchKind.WEAK
    assert [item.kind for item in gazetteer.review_queue()] == [ReviewKind.WEAK_MATCH]


def test_submit_batch_skips_invalid_records(gazetteer: Gazetteer) -> None:
    birmingham, alabama = birmingham_pair()
    batch = [birmingham, CandidateRecord(source=Provider.GEONAMES), alabama, birmingham]

    result = gazetteer.submit_batch(batch, source=Provider.GEONAMES)

    assert (result.processed, result.created, result.matched, result.skipped) == (4, 2, 1, 1)
    assert [position for position, _ in result.errors] == [1]
    assert result.run_id is not None
    run = gazetteer.ingestion_run(result.run_id)
    assert run is not None
    assert run.status == IngestionStatus.COMPLETED
    assert (run.processed, run.created, run.skipped) == (4, 2, 1)
    assert run.completed_at is not None


def test_batch_failure_marks_the_run_failed(
    gazetteer: Gazetteer, monkeypatch: pytest.MonkeyPatch
) -> None:
    def explode(candidate: CandidateRecord) -> None:
        raise RuntimeError("store went away")

    monkeypatch.setattr(gazetteer, "submit", explode)

    with pytest.raises(RuntimeError):
        gazetteer.submit_batch([make_candidate("Leeds")], source=Provider.GEONAMES)

    run = gazetteer.ingestion_run(1)
    assert run is not None
    assert run.status == IngestionStatus.FAILED
    assert run.error_message == "store went away"


def test_ingest_payloads_accepts_mappings_and_json_lines(gazetteer: Gazetteer) -> None:
    payloads: list[dict[str, object] | str] = [
        {"kind": "country", "country": "FR", "names": ["France"], "identifiers": {"geonames": 1}},
        '{"names": ["Lyon"], "country": "FR", "attributes": {"population": 522250}}',
        "not json",
        '["a", "list"]',
    ]

    result = gazetteer.ingest_payloads(payloads, source=Provider.GEONAMES)

    assert (result.created, result.skipped) == (2, 2)
    gazetteer.rebuild_index()
    france = gazetteer.find_best("france")
    assert france is not None
    assert france.kind == PlaceKind.COUNTRY


class _RacingEngine:
    """Loses the first race, then defers to the real engine."""

    def __init__(self, engine: ReconciliationEngine) -> None:
        self.engine = engine
        self.calls = 0

    def reconcile(
        self,
        candidate: CandidateRecord,
        *,
        within: Callable[[OpenTransaction, ReconciliationResult], None] | None = None,
    ) -> ReconciliationResult:
        self.calls += 1
        if self.calls == 1:
            raise ReconciliationRaceLost("bucket lock timed out")
        return self.engine.reconcile(candidate, within=within)


def test_submit_retries_a_lost_race_once(gazetteer: Gazetteer) -> None:
    racing = _RacingEngine(gazetteer.engine)
    gazetteer.engine = racing  # type: ignore[assignment]

    result = gazetteer.submit(make_candidate("Leeds"))

    assert result.created
    assert racing.calls == 2


def test_lost_race_propagates_when_retry_is_disabled(
    uow_factory: Callable[[], SqlAlchemyUnitOfWork],
    default_trust: TrustConfig,
    clock: FrozenClock,
) -> None:
    gazetteer = Gazetteer(
        uow_factory,
        trust=default_trust,
        reconciliation_config=ReconciliationConfig(retry_on_race=False),
        clock=clock,
    )
    gazetteer.engine = _RacingEngine(gazetteer.engine)  # type: ignore[assignment]

    with pytest.raises(ReconciliationRaceLost):
        gazetteer.submit(make_candidate("Leeds"))


class _RacingAttribution:
    """Loses the attribute race on its first write, then defers to the real store."""

    def __init__(self, store: AttributionStore) -> None:
        self.store = store
        self.calls = 0

    def record_in(self, *args: object, **kwargs: object) -> AttributeRecord:
        self.calls += 1
        if self.calls == 1:
            raise ReconciliationRaceLost("attribute lock timed out")
        return self.store.record_in(*args, **kwargs)  # type: ignore[arg-type]

    def __getattr__(self, name: str) -> object:
        return getattr(self.store, name)


def test_lost_attribute_race_retries_from_a_clean_slate(gazetteer: Gazetteer) -> None:
    racing = _RacingAttribution(gazetteer.attribution)
    gazetteer.attribution = racing  # type: ignore[assignment]

    result = gazetteer.submit(_lyon(Provider.GEONAMES, 522_250))

    assert racing.calls == 2
    assert result.created
    assert result.match_kind == MatchKind.NONE
    assert not result.flagged_for_review
    assert gazetteer.review_queue() == []
    assert gazetteer.get_place(result.place_id).population == 522_250
    with gazetteer.uow_factory() as uow:
        assert uow.repositories.places.count() == 1


def test_failed_attribute_write_leaves_no_place_behind(
    uow_factory: Callable[[], SqlAlchemyUnitOfWork],
    default_trust: TrustConfig,
    clock: FrozenClock,
) -> None:
    gazetteer = Gazetteer(
        uow_factory,
        trust=default_trust,
        reconciliation_config=ReconciliationConfig(retry_on_race=False),
        clock=clock,
    )
    gazetteer.attribution = _RacingAttribution(gazetteer.attribution)  # type: ignore[assignment]

    with pytest.raises(ReconciliationRaceLost):
        gazetteer.submit(_lyon(Provider.GEONAMES, 522_250))

    with uow_factory() as uow:
        assert uow.repositories.places.count() == 0
        assert uow.repositories.names.list_all() == []


def test_malformed_attribute_is_rejected_before_any_write(gazetteer: Gazetteer) -> None:
    gazetteer.rebuild_index()
    candidate = make_candidate("Lyon", country_code="FR", attributes={"coordinates": [200, 0]})

    with pytest.raises(InvalidCandidate, match="coordinates"):
        gazetteer.submit(candidate)

    with gazetteer.uow_factory() as uow:
        assert uow.repositories.places.count() == 0
    assert gazetteer.find_best("Lyon") is None


def test_naive_observation_time_is_accepted(gazetteer: Gazetteer) -> None:
    result = gazetteer.submit(
        make_candidate(
            "Lyon",
            country_code="FR",
            attributes={"population": 522_250},
            observed_at=datetime(2024, 5, 1),
        )
    )

    [observation] = gazetteer.history(result.place_id, "population")
    assert observation.observed_at == datetime(2024, 5, 1, tzinfo=UTC)


def test_new_place_next_to_a_known_one_is_queued(gazetteer: Gazetteer) -> None:
    known = gazetteer.submit(
        make_candidate("Lyon", country_code="FR", attributes={"coordinates": [45.7640, 4.8357]})
    )
    near = gazetteer.submit(
        make_candidate(
            "Villeurbanne", country_code="FR", attributes={"coordinates": [45.7719, 4.8902]}
        )
    )

    assert near.created
    assert near.flagged_for_review
    [item] = gazetteer.review_queue(kind=ReviewKind.COORDINATE_PROXIMITY)
    assert (item.place_id, item.other_place_id) == (near.place_id, known.place_id)


def test_list_conflicts_reports_disagreeing_sources(gazetteer: Gazetteer) -> None:
    place_id = gazetteer.submit(_lyon(Provider.GEONAMES, 522_250)).place_id
    gazetteer.submit(_lyon(Provider.OSM, 1_700_000))

    [conflict] = gazetteer.list_conflicts("population", 0.1)

    assert conflict.place_id == place_id
    assert gazetteer.list_conflicts("population", 0.9) == []
