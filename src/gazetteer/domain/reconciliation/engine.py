"""Reconciliation engine: decide which place a candidate describes.

Matching order is fixed:

1. hard match on external identifiers, tried in identifier priority order;
2. admin-code match for countries and regions (optional);
3. weak match on ``(normalized name, country)`` among places of the same kind,
   always queued for review;
4. otherwise a new place is created, and queued for review when it lies within
   the proximity threshold of a located place of the same kind and country.

Match, decide and attach run under the candidate's bucket locks and inside a
single unit of work. Callers that record more facts about the place (its
attributes) pass them in as ``within`` so they commit or roll back together.
"""

from __future__ import annotations

import logging
from contextlib import ExitStack
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from gazetteer.domain.errors import ConflictingIdentifier, HierarchyCycleError
from gazetteer.domain.locks import KeyedLocks
from gazetteer.domain.model import (
    ExternalIdentifier,
    HierarchyEdge,
    HierarchyRelation,
    NameVariant,
    Place,
    PlaceKind,
    ReviewItem,
    ReviewKind,
    ReviewStatus,
)

from .contracts import MatchKind, ReconciliationResult
from .hierarchy import add_edge
from .keys import bucket_keys

if TYPE_CHECKING:
    from collections.abc import Callable

    from gazetteer.domain.candidates import CandidateName, CandidateRecord
    from gazetteer.domain.model import PlaceId
    from gazetteer.domain.ports import GazetteerRepositories, UnitOfWorkFactory


log = logging.getLogger(__name__)


@dataclass(slots=True)
class _Match:
    place: Place
    kind: MatchKind
    detail: str | None = None


@dataclass(frozen=True, slots=True)
class OpenTransaction:
    """Handed to a ``within`` hook: the engine's unit of work before it commits.

    Context managers entered on ``held`` (extra locks) are released after the commit.
    """

    repositories: GazetteerRepositories
    flush: Callable[[], None]
    held: ExitStack


@dataclass(slots=True, kw_only=True)
class ReconciliationEngine:
    """Turn candidate records into place ids, creating places when nothing matches."""

    uow_factory: UnitOfWorkFactory
    locks: KeyedLocks = field(default_factory=KeyedLocks)
    lock_timeout: float | None = None
    match_admin_codes: bool = True
    proximity_km: float | None = None

    def reconcile(
        self,
        candidate: CandidateRecord,
        *,
        within: Callable[[OpenTransaction, ReconciliationResult], None] | None = None,
    ) -> ReconciliationResult:
        """Reconcile and commit; ``within`` runs before the commit, still under the locks."""

        candidate.validate()
        with self.locks.hold(bucket_keys(candidate), timeout=self.lock_timeout):
            with self.uow_factory() as uow, ExitStack() as held:
                result = reconcile_candidate(
                    uow.repositories,
                    candidate,
                    match_admin_codes=self.match_admin_codes,
                    proximity_km=self.proximity_km,
                    flush=uow.flush,
                )
                if within is not None:
                    within(OpenTransaction(uow.repositories, uow.flush, held), result)
                uow.commit()
        log.debug(
            "Reconciled %s candidate to place %s (%s)",
            candidate.source,
            result.place_id,
            result.match_kind,
        )
        return result


def reconcile_candidate(
    repos: GazetteerRepositories,
    candidate: CandidateRecord,
    *,
    match_admin_codes: bool = True,
    proximity_km: float | None = None,
    flush: Callable[[], None],
) -> ReconciliationResult:
    """Match ``candidate`` and attach what the place lacks; caller owns the transaction."""

    match = _match_hard(repos, candidate)
    if match is None and match_admin_codes:
        match = _match_admin_codes(repos, candidate)
    if match is None:
        match = _match_weak(repos, candidate)

    created = match is None
    if match is None:
        place = Place(
            kind=candidate.kind,
            country_code=candidate.country_code,
            adm1_code=candidate.adm1_code,
            adm2_code=candidate.adm2_code,
        )
        repos.places.add(place)
        flush()
        match = _Match(place=place, kind=MatchKind.NONE)
        log.debug("Created place %s for %s candidate", place.id, candidate.source)

    place = match.place
    place_id = place.require_id()
    identifiers_added, conflicts = _attach_identifiers(repos, place_id, candidate)
    names_added = _attach_names(repos, place, candidate, flush=flush)
    _attach_parents(repos, place_id, candidate)

    flagged = bool(conflicts)
    if match.kind == MatchKind.WEAK:
        flagged = True
        _park_weak_match(repos, place_id, candidate, match.detail)
    if created and proximity_km is not None:
        flagged = _park_nearby(repos, place_id, candidate, proximity_km) or flagged
    if not created and (names_added or identifiers_added):
        place.touch()

    return ReconciliationResult(
        place_id=place_id,
        match_kind=match.kind,
        created=created,
        conflicts=tuple(conflicts),
        flagged_for_review=flagged,
        names_added=names_added,
        identifiers_added=identifiers_added,
    )


def _match_hard(repos: GazetteerRepositories, candidate: CandidateRecord) -> _Match | None:
    for identifier in candidate.identifiers_by_priority():
        existing = repos.identifiers.get(str(identifier.source), identifier.external_id)
        if existing is None:
            continue
        place = repos.places.get(existing.place_id)
        if place is None:
            continue
        if place.kind != candidate.kind:
            log.warning(
                "Identifier %s:%s matched %s place %s for a %s candidate",
                identifier.source,
                identifier.external_id,
                place.kind,
                place.id,
                candidate.kind,
            )
        return _Match(place=place, kind=MatchKind.HARD)
    return None


def _match_admin_codes(
    repos: GazetteerRepositories, candidate: CandidateRecord
) -> _Match | None:
    if candidate.country_code is None:
        return None
    if candidate.kind == PlaceKind.COUNTRY:
        places = repos.places.find_by_admin_codes(
            PlaceKind.COUNTRY, candidate.country_code, None, None
        )
    elif candidate.kind == PlaceKind.REGION and candidate.adm1_code:
        places = repos.places.find_by_admin_codes(
            PlaceKind.REGION,
            candidate.country_code,
            candidate.adm1_code,
            candidate.adm2_code,
        )
    else:
        return None
    if not places:
        return None
    place = min(places, key=lambda item: item.require_id())
    return _Match(place=place, kind=MatchKind.ADMIN_CODE)


def _match_weak(repos: GazetteerRepositories, candidate: CandidateRecord) -> _Match | None:
    hits: set[PlaceId] = set()
    matched_names: list[str] = []
    for name in candidate.names:
        normalized = name.normalized_text
        if normalized is None:
            continue
        place_ids = repos.names.find_place_ids(normalized, candidate.country_code, candidate.kind)
        if place_ids:
            hits.update(place_ids)
            matched_names.append(normalized)
    if not hits:
        return None
    chosen = min(hits)
    place = repos.places.get(chosen)
    if place is None:
        return None
    detail = f"name {matched_names[0]!r} in {candidate.country_code or '-'}"
    if len(hits) > 1:
        others = ", ".join(str(place_id) for place_id in sorted(hits) if place_id != chosen)
        detail = f"{detail}; ambiguous, also matches {others}"
    coordinates = candidate.coordinates()
    if coordinates is not None and place.coordinates is not None:
        detail = f"{detail}; {coordinates.distance_km(place.coordinates):.1f} km apart"
    return _Match(place=place, kind=MatchKind.WEAK, detail=detail)


def _park_weak_match(
    repos: GazetteerRepositories,
    place_id: PlaceId,
    candidate: CandidateRecord,
    detail: str | None,
) -> None:
    source = str(candidate.source)
    for item in repos.reviews.list_for_place(place_id):
        if (
            item.kind == ReviewKind.WEAK_MATCH
            and item.status == ReviewStatus.OPEN
            and item.place_id == place_id
            and item.source == source
            and item.detail == detail
        ):
            log.debug("Weak match onto place %s already queued (item %s)", place_id, item.id)
            return
    repos.reviews.add(
        ReviewItem(
            kind=ReviewKind.WEAK_MATCH,
            place_id=place_id,
            source=source,
            external_id=candidate.source_record_id,
            detail=detail,
        )
    )
    log.info("Weak match for %s candidate onto place %s", source, place_id)


def _park_nearby(
    repos: GazetteerRepositories,
    place_id: PlaceId,
    candidate: CandidateRecord,
    proximity_km: float,
) -> bool:
    """Queue a new place lying within ``proximity_km`` of a located sibling."""

    coordinates = candidate.coordinates()
    if coordinates is None or candidate.country_code is None:
        return False
    nearest: tuple[float, PlaceId] | None = None
    for other in repos.places.find_with_coordinates(candidate.kind, candidate.country_code):
        located = other.coordinates
        if other.id == place_id or located is None:
            continue
        distance = coordinates.distance_km(located)
        if distance <= proximity_km and (nearest is None or distance < nearest[0]):
            nearest = (distance, other.require_id())
    if nearest is None:
        return False
    distance, other_id = nearest
    repos.reviews.add(
        ReviewItem(
            kind=ReviewKind.COORDINATE_PROXIMITY,
            place_id=place_id,
            other_place_id=other_id,
            source=str(candidate.source),
            external_id=candidate.source_record_id,
            detail=f"{distance:.1f} km from place {other_id} in {candidate.country_code}",
        )
    )
    log.info("New place %s lies %.1f km from place %s", place_id, distance, other_id)
    return True


def _attach_identifiers(
    repos: GazetteerRepositories,
    place_id: PlaceId,
    candidate: CandidateRecord,
) -> tuple[int, list[ConflictingIdentifier]]:
    added = 0
    conflicts: list[ConflictingIdentifier] = []
    for identifier in candidate.identifiers_by_priority():
        source = str(identifier.source)
        existing = repos.identifiers.get(source, identifier.external_id)
        if existing is not None:
            if existing.place_id == place_id:
                continue
            conflict = ConflictingIdentifier(
                source=source,
                external_id=identifier.external_id,
                existing_place_id=existing.place_id,
                proposed_place_id=place_id,
            )
            _park_conflict(repos, conflict, other_place_id=existing.place_id)
            conflicts.append(conflict)
            continue
        own = repos.identifiers.get_for_place(place_id, source)
        if own is not None:
            conflict = ConflictingIdentifier(
                source=source,
                external_id=identifier.external_id,
                existing_place_id=place_id,
                proposed_place_id=place_id,
            )
            _park_conflict(
                repos,
                conflict,
                other_place_id=None,
                detail=f"place already holds {source}:{own.external_id}",
            )
            conflicts.append(conflict)
            continue
        repos.identifiers.add(
            ExternalIdentifier(
                place_id=place_id,
                source=source,
                external_id=identifier.external_id,
            )
        )
        added += 1
    return added, conflicts


def _park_conflict(
    repos: GazetteerRepositories,
    conflict: ConflictingIdentifier,
    *,
    other_place_id: PlaceId | None,
    detail: str | None = None,
) -> None:
    log.warning("Identifier conflict: %s", conflict)
    repos.reviews.add(
        ReviewItem(
            kind=ReviewKind.IDENTIFIER_CONFLICT,
            place_id=conflict.proposed_place_id,
            other_place_id=other_place_id,
            source=conflict.source,
            external_id=conflict.external_id,
            detail=detail or str(conflict),
        )
    )


def _attach_names(
    repos: GazetteerRepositories,
    place: Place,
    candidate: CandidateRecord,
    *,
    flush: Callable[[], None],
) -> int:
    place_id = place.require_id()
    known = {name.dedupe_key for name in repos.names.list_for_place(place_id)}
    primary = candidate.primary_name() if place.canonical_name_id is None else None
    canonical: NameVariant | None = None
    added = 0
    for candidate_name in candidate.names:
        variant = _name_variant(place_id, candidate_name, source=str(candidate.source))
        if variant.dedupe_key in known:
            continue
        known.add(variant.dedupe_key)
        if candidate_name is primary:
            variant.is_preferred = True
            canonical = variant
        repos.names.add(variant)
        added += 1
    if canonical is not None:
        flush()
        place.canonical_name_id = canonical.id
    return added


def _name_variant(place_id: PlaceId, name: CandidateName, *, source: str) -> NameVariant:
    return NameVariant(
        place_id=place_id,
        text=name.text,
        language_code=name.language_code,
        name_kind=name.name_kind,
        source=source,
    )


def _attach_parents(
    repos: GazetteerRepositories,
    place_id: PlaceId,
    candidate: CandidateRecord,
) -> None:
    for parent in candidate.parent_identifiers:
        existing = repos.identifiers.get(str(parent.source), parent.external_id)
        if existing is None or existing.place_id == place_id:
            continue
        edge = HierarchyEdge(
            parent_id=existing.place_id,
            child_id=place_id,
            relation=HierarchyRelation.ADMIN_PARENT,
            source=str(candidate.source),
        )
        try:
            add_edge(repos.hierarchy, edge)
        except HierarchyCycleError:
            log.warning(
                "Skipping parent %s:%s for place %s: would create a cycle",
                parent.source,
                parent.external_id,
                place_id,
            )
