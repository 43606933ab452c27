"""The canonical place aggregate."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from gazetteer.domain.model.primitives import Coordinates, utcnow

if TYPE_CHECKING:
    from datetime import datetime

    from gazetteer.domain.model.enums import PlaceKind
    from gazetteer.domain.model.primitives import CountryCode, PlaceId


@dataclass(eq=False, kw_only=True)
class Place:
    """One physical place.

    ``id`` is assigned by the store on first flush and never reused. ``kind`` is
    fixed at creation. ``population``, coordinates, ``timezone`` and
    ``bounding_box`` are projections of the preferred attribute records and are
    only written by the attribution store.
    """

    kind: PlaceKind
    country_code: CountryCode | None = None
    adm1_code: str | None = None
    adm2_code: str | None = None
    id: PlaceId | None = None
    canonical_name_id: int | None = None
    population: int | None = None
    latitude: float | None = None
    longitude: float | None = None
    timezone: str | None = None
    bounding_box: object | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime | None = None

    def __setattr__(self, name: str, value: object) -> None:
        if name == "kind" and "kind" in self.__dict__ and self.__dict__["kind"] != value:
            raise AttributeError("Place.kind is immutable after creation")
        super().__setattr__(name, value)

    @property
    def coordinates(self) -> Coordinates | None:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinates(self.latitude, self.longitude)

    def set_coordinates(self, coordinates: Coordinates | None) -> None:
        if coordinates is None:
            self.latitude = None
            self.longitude = None
            return
        self.latitude = coordinates.latitude
        self.longitude = coordinates.longitude

    def require_id(self) -> PlaceId:
        if self.id is None:
            raise ValueError("Place has not been persisted yet")
        return self.id

    def touch(self) -> None:
        self.updated_at = utcnow()
