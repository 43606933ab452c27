"""Reconciliation outcome types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gazetteer.domain.errors import ConflictingIdentifier
    from gazetteer.domain.model import PlaceId


class MatchKind(StrEnum):
    """How a candidate was matched against existing places."""

    HARD = "hard"
    ADMIN_CODE = "admin_code"
    WEAK = "weak"
    NONE = "none"


@dataclass(frozen=True, slots=True, kw_only=True)
class ReconciliationResult:
    """Outcome of reconciling one candidate.

    ``conflicts`` lists identifiers that were not attached because they already
    belong to a different place (or clash with the place's own identifier for
    that source); each one is also parked in the review queue.
    """

    place_id: PlaceId
    match_kind: MatchKind
    created: bool
    conflicts: tuple[ConflictingIdentifier, ...] = ()
    flagged_for_review: bool = False
    names_added: int = 0
    identifiers_added: int = 0

    @property
    def matched(self) -> bool:
        return not self.created
