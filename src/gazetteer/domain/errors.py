"""Domain exception hierarchy."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import timedelta

    from gazetteer.domain.model import PlaceId


class GazetteerError(Exception):
    """Base class for gazetteer domain errors."""


class InvalidCandidate(GazetteerError, ValueError):
    """Candidate record is malformed; rejected before any write."""


class ConflictingIdentifier(GazetteerError):
    """An external identifier already points to a different place.

    Instances are collected on submit results and parked for review rather
    than raised through ingestion.
    """

    def __init__(
        self,
        *,
        source: str,
        external_id: str,
        existing_place_id: PlaceId,
        proposed_place_id: PlaceId,
    ) -> None:
        self.source = source
        self.external_id = external_id
        self.existing_place_id = existing_place_id
        self.proposed_place_id = proposed_place_id
        super().__init__(
            f"{source}:{external_id} belongs to place {existing_place_id}, "
            f"not {proposed_place_id}"
        )


class StaleIndexRead(GazetteerError):
    """The lookup snapshot is older than the configured freshness bound."""

    def __init__(self, age: timedelta, bound: timedelta) -> None:
        self.age = age
        self.bound = bound
        super().__init__(f"Index snapshot is {age} old (bound {bound})")


class ReconciliationRaceLost(GazetteerError):
    """A bucket lock deadline passed or a unique-key race was lost; retryable."""


class PlaceNotFound(GazetteerError, LookupError):
    def __init__(self, place_id: PlaceId) -> None:
        self.place_id = place_id
        super().__init__(f"Place {place_id} does not exist")


class IndexUnavailable(GazetteerError):
    """The lookup index has not completed a build yet."""


class HierarchyCycleError(GazetteerError):
    """Adding the edge would make the place hierarchy cyclic."""


class InvalidMerge(GazetteerError, ValueError):
    """Merge request cannot be carried out (same place, kind mismatch)."""


class AttributeNotFound(GazetteerError, LookupError):
    """No attribute record exists for the requested place, attribute and source."""


class ReviewItemNotFound(GazetteerError, LookupError):
    def __init__(self, item_id: int) -> None:
        self.item_id = item_id
        super().__init__(f"Review item {item_id} does not exist")


class InvalidRename(GazetteerError, ValueError):
    """Name edit would leave the place without any name."""
