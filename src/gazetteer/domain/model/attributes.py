"""Provenance-tagged attribute observations.

``AttributeRecord`` is the single current row per (place, attribute, source);
``AttributeObservation`` is the append-only ledger of every observation ever
recorded, so the full history stays reconstructable after a row is refreshed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from gazetteer.domain.model.primitives import utcnow

if TYPE_CHECKING:
    from datetime import datetime

    from gazetteer.domain.model.external_ids import Source
    from gazetteer.domain.model.primitives import AttributeValue, PlaceId


@dataclass(eq=False, kw_only=True)
class AttributeRecord:
    place_id: PlaceId
    attribute_name: str
    value: AttributeValue
    source: Source
    confidence: float
    observed_at: datetime
    source_record_id: str | None = None
    is_preferred: bool = False
    id: int | None = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must lie in [0, 1], got {self.confidence}")

    @property
    def key(self) -> tuple[PlaceId, str, str]:
        return (self.place_id, self.attribute_name, str(self.source))


@dataclass(eq=False, kw_only=True)
class AttributeObservation:
    place_id: PlaceId
    attribute_name: str
    value: AttributeValue
    source: Source
    confidence: float
    observed_at: datetime
    source_record_id: str | None = None
    recorded_at: datetime = field(default_factory=utcnow)
    id: int | None = None

    @classmethod
    def of(cls, record: AttributeRecord) -> AttributeObservation:
        return cls(
            place_id=record.place_id,
            attribute_name=record.attribute_name,
            value=record.value,
            source=record.source,
            confidence=record.confidence,
            observed_at=record.observed_at,
            source_record_id=record.source_record_id,
        )


@dataclass(eq=False, kw_only=True)
class AttributePin:
    """Manual override selecting one source's value for a place attribute."""

    place_id: PlaceId
    attribute_name: str
    source: Source
    pinned_by: str | None = None
    pinned_at: datetime = field(default_factory=utcnow)
    id: int | None = None
