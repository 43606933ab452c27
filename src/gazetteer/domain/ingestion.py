"""Batch ingestion of candidate records, tracked as an ingestion run."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from gazetteer.domain.errors import GazetteerError
from gazetteer.domain.model import IngestionRun
from gazetteer.domain.reconciliation import MatchKind

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from gazetteer.domain.candidates import CandidateRecord
    from gazetteer.domain.errors import ConflictingIdentifier
    from gazetteer.domain.model import PlaceId
    from gazetteer.domain.ports import UnitOfWorkFactory


log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class SubmitResult:
    """Outcome of submitting one candidate."""

    place_id: PlaceId
    match_kind: MatchKind
    created: bool
    conflicts: tuple[ConflictingIdentifier, ...] = ()
    flagged_for_review: bool = False


@dataclass(slots=True, kw_only=True)
class BatchResult:
    """Counters for one batch; ``errors`` holds ``(position, error)`` per skipped item."""

    processed: int = 0
    created: int = 0
    matched: int = 0
    weak_matched: int = 0
    conflicts: int = 0
    skipped: int = 0
    errors: list[tuple[int, Exception]] = field(default_factory=list[tuple[int, Exception]])
    run_id: int | None = None

    def count(self, result: SubmitResult) -> None:
        if result.created:
            self.created += 1
        elif result.match_kind == MatchKind.WEAK:
            self.weak_matched += 1
        else:
            self.matched += 1
        self.conflicts += len(result.conflicts)

    def skip(self, position: int, error: Exception) -> None:
        self.skipped += 1
        self.errors.append((position, error))


def ingest_batch[TItem](
    items: Iterable[TItem],
    *,
    source: str,
    prepare: Callable[[TItem], CandidateRecord],
    submit: Callable[[CandidateRecord], SubmitResult],
    uow_factory: UnitOfWorkFactory,
) -> BatchResult:
    """Submit every item, skipping the ones that fail on their own.

    Domain errors (invalid payloads, lost races after the retry) skip the item
    and are kept on the result. Anything else marks the run failed and
    propagates.
    """

    result = BatchResult(run_id=_open_run(uow_factory, source))
    try:
        for position, item in enumerate(items):
            result.processed += 1
            try:
                outcome = submit(prepare(item))
            except (GazetteerError, ValueError) as exc:
                log.warning("Skipping %s record %s: %s", source, position, exc)
                result.skip(position, exc)
                continue
            result.count(outcome)
    except Exception as exc:
        _close_run(uow_factory, result, error=str(exc) or type(exc).__name__)
        raise
    _close_run(uow_factory, result)
    log.info(
        "Ingested %s batch: processed=%s created=%s matched=%s weak=%s conflicts=%s skipped=%s",
        source,
        result.processed,
        result.created,
        result.matched,
        result.weak_matched,
        result.conflicts,
        result.skipped,
    )
    return result


def _open_run(uow_factory: UnitOfWorkFactory, source: str) -> int | None:
    with uow_factory() as uow:
        run = IngestionRun(source=source)
        uow.repositories.ingestion_runs.add(run)
        uow.flush()
        uow.commit()
        return run.id


def _close_run(
    uow_factory: UnitOfWorkFactory, result: BatchResult, *, error: str | None = None
) -> None:
    if result.run_id is None:
        return
    with uow_factory() as uow:
        run = uow.repositories.ingestion_runs.get(result.run_id)
        if run is None:
            return
        run.processed = result.processed
        run.created = result.created
        run.matched = result.matched
        run.weak_matched = result.weak_matched
        run.conflicts = result.conflicts
        run.skipped = result.skipped
        if error is None:
            run.complete()
        else:
            run.fail(error)
        uow.commit()
