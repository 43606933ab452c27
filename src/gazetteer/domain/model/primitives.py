"""Domain primitives: scalar aliases + small value objects.

Scalar aliases may be promoted to proper value objects later without changing imports.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import UTC, datetime

EARTH_RADIUS_KM = 6371.0

type CountryCode = str
type PlaceId = int
type AttributeValue = object


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude out of range: {self.longitude}")

    @classmethod
    def from_value(cls, value: object) -> Coordinates | None:
        """Coerce an attribute value (pair or mapping) into coordinates."""

        if isinstance(value, Coordinates):
            return value
        if isinstance(value, dict):
            lat = value.get("lat", value.get("latitude"))
            lng = value.get("lng", value.get("lon", value.get("longitude")))
            if lat is None or lng is None:
                return None
            return cls(float(lat), float(lng))
        if isinstance(value, (list, tuple)) and len(value) == 2:
            return cls(float(value[0]), float(value[1]))
        return None

    def as_list(self) -> list[float]:
        return [self.latitude, self.longitude]

    def distance_km(self, other: Coordinates) -> float:
        """Great-circle (haversine) distance in kilometres."""

        lat1, lat2 = math.radians(self.latitude), math.radians(other.latitude)
        dlat = lat2 - lat1
        dlng = math.radians(other.longitude - self.longitude)
        a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
        return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


def utcnow() -> datetime:
    return datetime.now(tz=UTC)


def as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC; aware ones are converted."""

    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)
