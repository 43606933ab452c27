"""Parent/child relations between places."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from gazetteer.domain.model.enums import HierarchyRelation
from gazetteer.domain.model.primitives import utcnow

if TYPE_CHECKING:
    from datetime import datetime

    from gazetteer.domain.model.primitives import PlaceId


@dataclass(eq=False, kw_only=True)
class HierarchyEdge:
    parent_id: PlaceId
    child_id: PlaceId
    relation: HierarchyRelation = HierarchyRelation.ADMIN_PARENT
    depth: int = 1
    source: str | None = None
    id: int | None = None
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if self.parent_id == self.child_id:
            raise ValueError("A place cannot be its own parent")
        if self.depth < 1:
            raise ValueError("Hierarchy depth must be >= 1")
