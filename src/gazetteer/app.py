"""Application orchestration entry points."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from gazetteer.adapters.payloads import parse_candidate, parse_json_line
from gazetteer.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, is_started, startup
from gazetteer.config import (
    IndexConfig,
    ReconciliationConfig,
    TrustConfig,
    get_index_config,
    get_reconciliation_config,
    load_trust_config,
)
from gazetteer.domain import reconciliation
from gazetteer.domain.attribution import AttributeMetadata, AttributionStore, attribute_lock_key
from gazetteer.domain.errors import (
    InvalidCandidate,
    InvalidRename,
    PlaceNotFound,
    ReconciliationRaceLost,
    ReviewItemNotFound,
)
from gazetteer.domain.ingestion import BatchResult, SubmitResult, ingest_batch
from gazetteer.domain.locks import KeyedLocks
from gazetteer.domain.lookup import LookupIndex, StoreIndexSource
from gazetteer.domain.model import (
    AliasMapping,
    HierarchyEdge,
    HierarchyRelation,
    MergeReason,
    NameKind,
    NameVariant,
    Provider,
    ReviewStatus,
    utcnow,
)
from gazetteer.domain.normalize import normalize_text

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping
    from datetime import datetime

    from gazetteer.domain.attribution import AttributeConflict
    from gazetteer.domain.candidates import CandidateRecord
    from gazetteer.domain.lookup import IndexedPlace, IndexStats
    from gazetteer.domain.model import (
        AttributeObservation,
        AttributeRecord,
        IngestionRun,
        Place,
        PlaceId,
        ReviewItem,
        ReviewKind,
    )
    from gazetteer.domain.ports import GazetteerRepositories, UnitOfWorkFactory
    from gazetteer.domain.reconciliation import (
        MergeResult,
        OpenTransaction,
        ReconciliationResult,
    )


log = getLogger(__name__)


class Gazetteer:
    """Reconciled place store plus its owned lookup index.

    Writes go through :meth:`submit`; reads go through the lookup methods once
    :meth:`rebuild_index` has run. Every write that changes a place's names,
    aliases or projected attributes patches the index in place.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        *,
        trust: TrustConfig | None = None,
        reconciliation_config: ReconciliationConfig | None = None,
        index_config: IndexConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.uow_factory = uow_factory
        self.config = reconciliation_config or ReconciliationConfig()
        trust = trust or load_trust_config()
        index_config = index_config or IndexConfig()
        timeout = self.config.lock_timeout_seconds
        self.locks = KeyedLocks(default_timeout=timeout)
        self.engine = reconciliation.ReconciliationEngine(
            uow_factory=uow_factory,
            locks=self.locks,
            lock_timeout=timeout,
            match_admin_codes=self.config.match_admin_codes,
            proximity_km=self.config.proximity_km,
        )
        self.attribution = AttributionStore(
            uow_factory=uow_factory,
            trust=trust.trust,
            policies=trust.policies,
            locks=self.locks,
            lock_timeout=timeout,
            clock=clock,
        )
        self.index = LookupIndex(
            StoreIndexSource(uow_factory),
            freshness_bound=index_config.freshness_bound,
            clock=clock,
        )

    @classmethod
    def from_environment(cls, *, database_uri: str | None = None) -> Gazetteer:
        """Start the SQLAlchemy adapter if needed and read settings from the environment."""

        if not is_started():
            startup(database_uri=database_uri)
        return cls(
            SqlAlchemyUnitOfWork,
            trust=load_trust_config(),
            reconciliation_config=get_reconciliation_config(),
            index_config=get_index_config(),
        )

    def submit(self, candidate: CandidateRecord) -> SubmitResult:
        """Reconcile one candidate, record its attributes and patch the index."""

        candidate.validate()
        result = self._retry_once(lambda: self._submit_once(candidate), str(candidate.source))
        self._refresh(result.place_id)
        return result

    def submit_batch(
        self, candidates: Iterable[CandidateRecord], *, source: str
    ) -> BatchResult:
        return ingest_batch(
            candidates,
            source=source,
            prepare=lambda candidate: candidate,
            submit=self.submit,
            uow_factory=self.uow_factory,
        )

    def ingest_payloads(
        self, payloads: Iterable[Mapping[str, object] | str], *, source: str
    ) -> BatchResult:
        """Batch-ingest raw payloads (decoded mappings or JSON Lines strings)."""

        def prepare(payload: Mapping[str, object] | str) -> CandidateRecord:
            if isinstance(payload, str):
                return parse_json_line(payload, default_source=source)
            return parse_candidate(payload, default_source=source)

        return ingest_batch(
            payloads,
            source=source,
            prepare=prepare,
            submit=self.submit,
            uow_factory=self.uow_factory,
        )

    def _submit_once(self, candidate: CandidateRecord) -> SubmitResult:
        def record(txn: OpenTransaction, reconciled: ReconciliationResult) -> None:
            self._record_attributes(txn, reconciled.place_id, candidate)

        reconciled = self.engine.reconcile(
            candidate, within=record if candidate.attributes else None
        )
        return SubmitResult(
            place_id=reconciled.place_id,
            match_kind=reconciled.match_kind,
            created=reconciled.created,
            conflicts=reconciled.conflicts,
            flagged_for_review=reconciled.flagged_for_review,
        )

    def _record_attributes(
        self, txn: OpenTransaction, place_id: PlaceId, candidate: CandidateRecord
    ) -> None:
        """Record attributes inside the reconcile transaction, locked until it commits."""

        names = sorted({attribute.name for attribute in candidate.attributes})
        keys = [attribute_lock_key(place_id, name) for name in names]
        txn.held.enter_context(self.locks.hold(keys, timeout=self.config.lock_timeout_seconds))
        for attribute in candidate.attributes:
            self.attribution.record_in(
                txn.repositories,
                place_id,
                attribute.name,
                attribute.value,
                str(candidate.source),
                AttributeMetadata(
                    observed_at=candidate.observed_at,
                    source_record_id=candidate.source_record_id,
                    confidence=attribute.confidence,
                ),
            )
        txn.flush()
        for name in names:
            self.attribution.reevaluate_in(txn.repositories, place_id, name)

    def _retry_once[T](self, operation: Callable[[], T], label: str) -> T:
        try:
            return operation()
        except ReconciliationRaceLost as exc:
            if not self.config.retry_on_race:
                raise
            log.debug("Lost reconciliation race for %s candidate (%s); retrying once", label, exc)
            return operation()

    def pin_preferred(
        self,
        place_id: PlaceId,
        attribute_name: str,
        source: str,
        *,
        pinned_by: str | None = None,
    ) -> AttributeRecord:
        record = self.attribution.pin_preferred(
            place_id, attribute_name, source, pinned_by=pinned_by
        )
        self._refresh(place_id)
        return record

    def unpin(self, place_id: PlaceId, attribute_name: str) -> AttributeRecord | None:
        record = self.attribution.unpin(place_id, attribute_name)
        self._refresh(place_id)
        return record

    def merge_places(
        self,
        keep_id: PlaceId,
        remove_id: PlaceId,
        *,
        reason: MergeReason = MergeReason.MANUAL,
        created_by: str | None = None,
    ) -> MergeResult:
        """Fold ``remove_id`` into ``keep_id`` atomically, then patch both index entries."""

        keys = [("place", keep_id), ("place", remove_id)]
        with self.locks.hold(keys, timeout=self.config.lock_timeout_seconds):
            with self.uow_factory() as uow:
                result = reconciliation.merge_places(
                    uow.repositories,
                    keep_id,
                    remove_id,
                    attribution=self.attribution,
                    flush=uow.flush,
                    reason=reason,
                    created_by=created_by,
                )
                uow.commit()
        if self.index.is_built:
            self.index.remove_place(remove_id)
            self.index.update_place(keep_id)
        return result

    def add_alias(self, text: str, place_id: PlaceId, *, note: str | None = None) -> AliasMapping:
        """Map ``text`` straight to ``place_id``; alias hits win in :meth:`find_best`."""

        alias = AliasMapping(text=text, place_id=place_id, note=note)
        with self.uow_factory() as uow:
            repos = uow.repositories
            _require_place(repos, place_id)
            for existing in repos.aliases.find(alias.normalized_text):
                if existing.place_id == place_id:
                    return existing
            repos.aliases.add(alias)
            uow.commit()
        log.info("Aliased %r to place %s", text, place_id)
        self._refresh(place_id)
        return alias

    def rename_place(
        self, place_id: PlaceId, text: str, *, language_code: str | None = None
    ) -> NameVariant:
        """Replace the canonical name; the old canonical form stops resolving."""

        normalized = normalize_text(text)
        if normalized is None:
            raise InvalidCandidate(f"Name has no matchable characters: {text!r}")
        with self.uow_factory() as uow:
            repos = uow.repositories
            place = _require_place(repos, place_id)
            names = repos.names.list_for_place(place_id)
            canonical = next((name for name in names if name.id == place.canonical_name_id), None)
            kind = canonical.name_kind if canonical is not None else NameKind.OFFICIAL
            existing = next(
                (name for name in names if name.dedupe_key == (normalized, language_code, kind)),
                None,
            )
            if existing is not None and existing is not canonical:
                if canonical is not None:
                    canonical.is_preferred = False
                existing.is_preferred = True
                place.canonical_name_id = existing.id
                chosen = existing
            elif canonical is not None:
                canonical.set_text(text)
                canonical.language_code = language_code
                chosen = canonical
            else:
                chosen = NameVariant(
                    place_id=place_id,
                    text=text,
                    language_code=language_code,
                    is_preferred=True,
                    source=Provider.MANUAL,
                )
                repos.names.add(chosen)
                uow.flush()
                place.canonical_name_id = chosen.id
            place.touch()
            uow.commit()
        log.info("Renamed place %s to %r", place_id, text)
        self._refresh(place_id)
        return chosen

    def retract_name(self, place_id: PlaceId, text: str) -> int:
        """Remove every name of the place normalizing to ``text``; returns how many went."""

        normalized = normalize_text(text)
        if normalized is None:
            return 0
        with self.uow_factory() as uow:
            repos = uow.repositories
            place = _require_place(repos, place_id)
            names = repos.names.list_for_place(place_id)
            doomed = [name for name in names if name.normalized_text == normalized]
            if not doomed:
                return 0
            survivors = [name for name in names if name not in doomed]
            if any(name.id == place.canonical_name_id for name in doomed):
                if not survivors:
                    raise InvalidRename(f"Cannot retract the last name of place {place_id}")
                successor = next(
                    (name for name in survivors if name.name_kind == NameKind.OFFICIAL),
                    survivors[0],
                )
                successor.is_preferred = True
                place.canonical_name_id = successor.id
            for name in doomed:
                repos.names.remove(name)
            place.touch()
            uow.commit()
        self._refresh(place_id)
        return len(doomed)

    def add_hierarchy_edge(
        self,
        parent_id: PlaceId,
        child_id: PlaceId,
        *,
        relation: HierarchyRelation = HierarchyRelation.ADMIN_PARENT,
        source: str = Provider.MANUAL,
    ) -> bool:
        edge = HierarchyEdge(
            parent_id=parent_id, child_id=child_id, relation=relation, source=source
        )
        with self.uow_factory() as uow:
            repos = uow.repositories
            _require_place(repos, parent_id)
            _require_place(repos, child_id)
            added = reconciliation.add_edge(repos.hierarchy, edge)
            uow.commit()
        return added

    def review_queue(
        self,
        *,
        kind: ReviewKind | None = None,
        status: ReviewStatus | None = ReviewStatus.OPEN,
    ) -> list[ReviewItem]:
        with self.uow_factory() as uow:
            return list(uow.repositories.reviews.find(status=status, kind=kind))

    def resolve_review_item(self, item_id: int) -> ReviewItem:
        with self.uow_factory() as uow:
            item = uow.repositories.reviews.get(item_id)
            if item is None:
                raise ReviewItemNotFound(item_id)
            item.resolve()
            uow.commit()
        return item

    def list_conflicts(self, attribute_name: str, threshold: float) -> list[AttributeConflict]:
        return self.attribution.find_conflicts(attribute_name, threshold)

    def history(self, place_id: PlaceId, attribute_name: str) -> list[AttributeObservation]:
        return self.attribution.history(place_id, attribute_name)

    def preferred(self, place_id: PlaceId, attribute_name: str) -> AttributeRecord | None:
        return self.attribution.preferred(place_id, attribute_name)

    def get_place(self, place_id: PlaceId) -> Place:
        with self.uow_factory() as uow:
            return _require_place(uow.repositories, place_id)

    def ingestion_run(self, run_id: int) -> IngestionRun | None:
        with self.uow_factory() as uow:
            return uow.repositories.ingestion_runs.get(run_id)

    def rebuild_index(self) -> IndexStats:
        return self.index.rebuild()

    def lookup_by_normalized(self, text: str) -> tuple[IndexedPlace, ...]:
        return self.index.lookup_by_normalized(text)

    def lookup_by_slug(self, segment: str) -> tuple[IndexedPlace, ...]:
        return self.index.lookup_by_slug(segment)

    def find_best(self, text: str, *, country_code: str | None = None) -> IndexedPlace | None:
        return self.index.find_best(text, country_code=country_code)

    def find_all(self, text: str) -> tuple[IndexedPlace, ...]:
        return self.index.find_all(text)

    def stats(self) -> IndexStats:
        return self.index.stats()

    def _refresh(self, place_id: PlaceId) -> None:
        if self.index.is_built:
            self.index.update_place(place_id)


def _require_place(repos: GazetteerRepositories, place_id: PlaceId) -> Place:
    place = repos.places.get(place_id)
    if place is None:
        raise PlaceNotFound(place_id)
    return place
