"""Hierarchy edge maintenance; the parent graph is kept acyclic."""

from __future__ import annotations

from typing import TYPE_CHECKING

from gazetteer.domain.errors import HierarchyCycleError

if TYPE_CHECKING:
    from gazetteer.domain.model import HierarchyEdge, PlaceId
    from gazetteer.domain.ports import HierarchyRepository


def is_ancestor(hierarchy: HierarchyRepository, ancestor_id: PlaceId, place_id: PlaceId) -> bool:
    """Whether ``ancestor_id`` is reachable from ``place_id`` by following parents."""

    seen: set[PlaceId] = set()
    frontier = [place_id]
    while frontier:
        current = frontier.pop()
        for edge in hierarchy.list_parents(current):
            if edge.parent_id == ancestor_id:
                return True
            if edge.parent_id not in seen:
                seen.add(edge.parent_id)
                frontier.append(edge.parent_id)
    return False


def add_edge(hierarchy: HierarchyRepository, edge: HierarchyEdge) -> bool:
    """Persist ``edge`` unless it already exists; returns whether it was added.

    Raises :class:`HierarchyCycleError` if the child is already an ancestor of
    the parent.
    """

    if hierarchy.get(edge.parent_id, edge.child_id, edge.relation) is not None:
        return False
    if is_ancestor(hierarchy, edge.child_id, edge.parent_id):
        raise HierarchyCycleError(
            f"Place {edge.child_id} is an ancestor of {edge.parent_id}; "
            f"edge {edge.parent_id} -> {edge.child_id} would close a cycle"
        )
    hierarchy.add(edge)
    return True
