"""Fold a duplicate place into the surviving one.

Every dependent row of the removed place is migrated before it is deleted, so
no name, identifier, attribute observation or review item is lost. Identifiers
the kept place already holds for the same source are parked for review instead
of being attached twice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from gazetteer.domain.errors import HierarchyCycleError, InvalidMerge, PlaceNotFound
from gazetteer.domain.model import (
    HierarchyEdge,
    MergeReason,
    PlaceMerge,
    ReviewItem,
    ReviewKind,
)

from .hierarchy import add_edge

if TYPE_CHECKING:
    from collections.abc import Callable

    from gazetteer.domain.attribution import AttributionStore
    from gazetteer.domain.model import Place, PlaceId
    from gazetteer.domain.ports import GazetteerRepositories


log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class MergeResult:
    kept_id: PlaceId
    removed_id: PlaceId
    names_moved: int = 0
    identifiers_moved: int = 0
    identifier_collisions: int = 0
    attributes_moved: int = 0
    edges_moved: int = 0


def merge_places(
    repos: GazetteerRepositories,
    keep_id: PlaceId,
    remove_id: PlaceId,
    *,
    attribution: AttributionStore,
    flush: Callable[[], None],
    reason: MergeReason = MergeReason.MANUAL,
    created_by: str | None = None,
) -> MergeResult:
    """Migrate everything from ``remove_id`` onto ``keep_id`` and delete it.

    Runs inside the caller's transaction.
    """

    if keep_id == remove_id:
        raise InvalidMerge(f"Cannot merge place {keep_id} into itself")
    kept = repos.places.get(keep_id)
    if kept is None:
        raise PlaceNotFound(keep_id)
    removed = repos.places.get(remove_id)
    if removed is None:
        raise PlaceNotFound(remove_id)
    if kept.kind != removed.kind:
        raise InvalidMerge(
            f"Cannot merge {removed.kind} place {remove_id} into {kept.kind} place {keep_id}"
        )

    _move_reviews(repos, keep_id, remove_id)
    names_moved = _move_names(repos, kept, removed)
    identifiers_moved, collisions = _move_identifiers(repos, keep_id, remove_id)
    attributes_moved = _move_attributes(repos, keep_id, remove_id)
    _move_pins(repos, keep_id, remove_id)
    for observation in repos.observations.list_for_place(remove_id):
        observation.place_id = keep_id
    _move_aliases(repos, keep_id, remove_id)
    flush()
    edges_moved = _move_edges(repos, keep_id, remove_id)

    repos.merges.add(
        PlaceMerge(kept_id=keep_id, removed_id=remove_id, reason=reason, created_by=created_by)
    )
    flush()
    repos.places.remove(removed)
    flush()
    attribution.reevaluate_place_in(repos, keep_id)
    kept.touch()

    log.info(
        "Merged place %s into %s (%s names, %s identifiers, %s collisions)",
        remove_id,
        keep_id,
        names_moved,
        identifiers_moved,
        collisions,
    )
    return MergeResult(
        kept_id=keep_id,
        removed_id=remove_id,
        names_moved=names_moved,
        identifiers_moved=identifiers_moved,
        identifier_collisions=collisions,
        attributes_moved=attributes_moved,
        edges_moved=edges_moved,
    )


def _move_names(repos: GazetteerRepositories, kept: Place, removed: Place) -> int:
    keep_id = kept.require_id()
    known = {name.dedupe_key for name in repos.names.list_for_place(keep_id)}
    adopted = None
    moved = 0
    for name in repos.names.list_for_place(removed.require_id()):
        if name.dedupe_key in known:
            repos.names.remove(name)
            continue
        known.add(name.dedupe_key)
        name.place_id = keep_id
        name.is_preferred = False
        if name.id == removed.canonical_name_id:
            adopted = name
        moved += 1
    if kept.canonical_name_id is None and adopted is not None:
        adopted.is_preferred = True
        kept.canonical_name_id = adopted.id
    return moved


def _move_identifiers(
    repos: GazetteerRepositories, keep_id: PlaceId, remove_id: PlaceId
) -> tuple[int, int]:
    held = {str(identifier.source) for identifier in repos.identifiers.list_for_place(keep_id)}
    moved = 0
    collisions = 0
    for identifier in repos.identifiers.list_for_place(remove_id):
        source = str(identifier.source)
        if source in held:
            repos.reviews.add(
                ReviewItem(
                    kind=ReviewKind.MERGE_IDENTIFIER_COLLISION,
                    place_id=keep_id,
                    other_place_id=remove_id,
                    source=source,
                    external_id=identifier.external_id,
                    detail=f"place {keep_id} already holds a {source} identifier",
                )
            )
            repos.identifiers.remove(identifier)
            collisions += 1
            continue
        held.add(source)
        identifier.place_id = keep_id
        moved += 1
    return moved, collisions


def _move_attributes(repos: GazetteerRepositories, keep_id: PlaceId, remove_id: PlaceId) -> int:
    moved = 0
    for record in repos.attributes.list_for_place(remove_id):
        existing = repos.attributes.get(keep_id, record.attribute_name, str(record.source))
        if existing is None:
            record.place_id = keep_id
            record.is_preferred = False
            moved += 1
            continue
        if record.observed_at > existing.observed_at:
            existing.value = record.value
            existing.confidence = record.confidence
            existing.observed_at = record.observed_at
            existing.source_record_id = record.source_record_id
        repos.attributes.remove(record)
    return moved


def _move_pins(repos: GazetteerRepositories, keep_id: PlaceId, remove_id: PlaceId) -> None:
    for pin in repos.pins.list_for_place(remove_id):
        if repos.pins.get(keep_id, pin.attribute_name) is None:
            pin.place_id = keep_id
        else:
            repos.pins.remove(pin)


def _move_aliases(repos: GazetteerRepositories, keep_id: PlaceId, remove_id: PlaceId) -> None:
    known = {alias.normalized_text for alias in repos.aliases.list_for_place(keep_id)}
    for alias in repos.aliases.list_for_place(remove_id):
        if alias.normalized_text in known:
            repos.aliases.remove(alias)
            continue
        known.add(alias.normalized_text)
        alias.place_id = keep_id


def _move_reviews(repos: GazetteerRepositories, keep_id: PlaceId, remove_id: PlaceId) -> None:
    for item in repos.reviews.list_for_place(remove_id):
        if item.place_id == remove_id:
            item.place_id = keep_id
        if item.other_place_id == remove_id:
            item.other_place_id = keep_id


def _move_edges(repos: GazetteerRepositories, keep_id: PlaceId, remove_id: PlaceId) -> int:
    replacements: list[HierarchyEdge] = []
    edges = (*repos.hierarchy.list_parents(remove_id), *repos.hierarchy.list_children(remove_id))
    for edge in edges:
        parent_id = keep_id if edge.parent_id == remove_id else edge.parent_id
        child_id = keep_id if edge.child_id == remove_id else edge.child_id
        repos.hierarchy.remove(edge)
        if parent_id == child_id:
            continue
        replacements.append(
            HierarchyEdge(
                parent_id=parent_id,
                child_id=child_id,
                relation=edge.relation,
                depth=edge.depth,
                source=edge.source,
            )
        )
    moved = 0
    for edge in replacements:
        try:
            if add_edge(repos.hierarchy, edge):
                moved += 1
        except HierarchyCycleError:
            log.warning(
                "Dropping edge %s -> %s while merging %s into %s: would create a cycle",
                edge.parent_id,
                edge.child_id,
                remove_id,
                keep_id,
            )
    return moved
