"""Attribution store: provenance-tagged attribute values and their preferred pick.

Every :meth:`AttributionStore.record` call upserts the single current row for
``(place, attribute, source)`` and appends an observation to the ledger.
:meth:`AttributionStore.reevaluate` applies the attribute's resolution policy,
flips exactly one preferred flag and projects the preferred value onto the
place's derived columns.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from gazetteer.domain.errors import AttributeNotFound, PlaceNotFound
from gazetteer.domain.locks import KeyedLocks
from gazetteer.domain.model import (
    AttributeObservation,
    AttributePin,
    AttributeRecord,
    Coordinates,
    as_utc,
    utcnow,
)

from .confidence import as_number, clamp, compute_confidence, disagreement
from .policy import (
    DEFAULT_ATTRIBUTE_POLICIES,
    DEFAULT_SOURCE_TRUST,
    AttributePolicyTable,
    SourceTrustTable,
    choose_preferred,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from gazetteer.domain.locks import LockKey
    from gazetteer.domain.model import AttributeValue, Place, PlaceId
    from gazetteer.domain.ports import GazetteerRepositories, UnitOfWorkFactory


log = logging.getLogger(__name__)

PROJECTED_ATTRIBUTES = ("population", "coordinates", "timezone", "bounding_box")


@dataclass(frozen=True, slots=True, kw_only=True)
class AttributeMetadata:
    observed_at: datetime | None = None
    source_record_id: str | None = None
    confidence: float | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class AttributeConflict:
    place_id: PlaceId
    attribute_name: str
    spread: float
    records: tuple[AttributeRecord, ...]


def attribute_lock_key(place_id: PlaceId, attribute_name: str) -> LockKey:
    return ("attribute", place_id, attribute_name)


@dataclass(slots=True, kw_only=True)
class AttributionStore:
    uow_factory: UnitOfWorkFactory
    trust: SourceTrustTable = DEFAULT_SOURCE_TRUST
    policies: AttributePolicyTable = DEFAULT_ATTRIBUTE_POLICIES
    locks: KeyedLocks = field(default_factory=KeyedLocks)
    lock_timeout: float | None = None
    clock: Callable[[], datetime] = utcnow

    def record(
        self,
        place_id: PlaceId,
        attribute_name: str,
        value: AttributeValue,
        source: str,
        metadata: AttributeMetadata | None = None,
    ) -> AttributeRecord:
        with self.uow_factory() as uow:
            record = self.record_in(
                uow.repositories, place_id, attribute_name, value, source, metadata
            )
            uow.commit()
        return record

    def record_in(
        self,
        repos: GazetteerRepositories,
        place_id: PlaceId,
        attribute_name: str,
        value: AttributeValue,
        source: str,
        metadata: AttributeMetadata | None = None,
    ) -> AttributeRecord:
        """Upsert the current row and append an observation inside the caller's transaction."""

        if repos.places.get(place_id) is None:
            raise PlaceNotFound(place_id)
        meta = metadata or AttributeMetadata()
        source = str(source)
        stored_value = _storable(value)
        observed_at = as_utc(meta.observed_at) if meta.observed_at else self.clock()

        if meta.confidence is not None:
            confidence = clamp(meta.confidence)
        else:
            peers = [
                record.value
                for record in repos.attributes.list_for(place_id, attribute_name)
                if str(record.source) != source
            ]
            confidence = compute_confidence(
                source=source,
                value=stored_value,
                observed_at=observed_at,
                peers=peers,
                trust=self.trust,
                now=self.clock(),
            )

        record = repos.attributes.get(place_id, attribute_name, source)
        if record is None:
            record = AttributeRecord(
                place_id=place_id,
                attribute_name=attribute_name,
                value=stored_value,
                source=source,
                confidence=confidence,
                observed_at=observed_at,
                source_record_id=meta.source_record_id,
            )
            repos.attributes.add(record)
        else:
            record.value = stored_value
            record.confidence = confidence
            record.observed_at = observed_at
            record.source_record_id = meta.source_record_id
        repos.observations.add(AttributeObservation.of(record))
        log.debug(
            "Recorded %s=%r for place %s from %s (confidence %.3f)",
            attribute_name,
            stored_value,
            place_id,
            source,
            confidence,
        )
        return record

    def reevaluate(self, place_id: PlaceId, attribute_name: str) -> AttributeRecord | None:
        with self.locks.hold(
            [attribute_lock_key(place_id, attribute_name)], timeout=self.lock_timeout
        ):
            with self.uow_factory() as uow:
                preferred = self.reevaluate_in(uow.repositories, place_id, attribute_name)
                uow.commit()
        return preferred

    def reevaluate_in(
        self,
        repos: GazetteerRepositories,
        place_id: PlaceId,
        attribute_name: str,
    ) -> AttributeRecord | None:
        place = repos.places.get(place_id)
        if place is None:
            raise PlaceNotFound(place_id)
        records = list(repos.attributes.list_for(place_id, attribute_name))
        preferred = choose_preferred(
            records,
            self.policies.policy_for(attribute_name),
            pin=repos.pins.get(place_id, attribute_name),
        )
        for record in records:
            flag = record is preferred
            if record.is_preferred != flag:
                record.is_preferred = flag
        _project(place, attribute_name, preferred)
        return preferred

    def reevaluate_place_in(self, repos: GazetteerRepositories, place_id: PlaceId) -> None:
        names = {record.attribute_name for record in repos.attributes.list_for_place(place_id)}
        for attribute_name in sorted(names):
            self.reevaluate_in(repos, place_id, attribute_name)

    def pin_preferred(
        self,
        place_id: PlaceId,
        attribute_name: str,
        source: str,
        *,
        pinned_by: str | None = None,
    ) -> AttributeRecord:
        with self.locks.hold(
            [attribute_lock_key(place_id, attribute_name)], timeout=self.lock_timeout
        ):
            with self.uow_factory() as uow:
                repos = uow.repositories
                if repos.places.get(place_id) is None:
                    raise PlaceNotFound(place_id)
                if repos.attributes.get(place_id, attribute_name, str(source)) is None:
                    raise AttributeNotFound(
                        f"No {attribute_name!r} record from {source} for place {place_id}"
                    )
                pin = repos.pins.get(place_id, attribute_name)
                if pin is None:
                    repos.pins.add(
                        AttributePin(
                            place_id=place_id,
                            attribute_name=attribute_name,
                            source=str(source),
                            pinned_by=pinned_by,
                        )
                    )
                else:
                    pin.source = str(source)
                    pin.pinned_by = pinned_by
                    pin.pinned_at = utcnow()
                uow.flush()
                preferred = self.reevaluate_in(repos, place_id, attribute_name)
                uow.commit()
        log.info("Pinned %s of place %s to %s", attribute_name, place_id, source)
        if preferred is None:
            raise AttributeNotFound(f"No {attribute_name!r} records for place {place_id}")
        return preferred

    def unpin(self, place_id: PlaceId, attribute_name: str) -> AttributeRecord | None:
        with self.locks.hold(
            [attribute_lock_key(place_id, attribute_name)], timeout=self.lock_timeout
        ):
            with self.uow_factory() as uow:
                repos = uow.repositories
                pin = repos.pins.get(place_id, attribute_name)
                if pin is not None:
                    repos.pins.remove(pin)
                    uow.flush()
                preferred = self.reevaluate_in(repos, place_id, attribute_name)
                uow.commit()
        return preferred

    def preferred(self, place_id: PlaceId, attribute_name: str) -> AttributeRecord | None:
        with self.uow_factory() as uow:
            for record in uow.repositories.attributes.list_for(place_id, attribute_name):
                if record.is_preferred:
                    return record
        return None

    def records(self, place_id: PlaceId, attribute_name: str) -> list[AttributeRecord]:
        with self.uow_factory() as uow:
            return list(uow.repositories.attributes.list_for(place_id, attribute_name))

    def history(self, place_id: PlaceId, attribute_name: str) -> list[AttributeObservation]:
        """Every observation ever recorded for the key, oldest first."""

        with self.uow_factory() as uow:
            return list(uow.repositories.observations.history(place_id, attribute_name))

    def find_conflicts(self, attribute_name: str, threshold: float) -> list[AttributeConflict]:
        """Places whose sources disagree beyond ``threshold`` (a review queue, not an error)."""

        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must lie in [0, 1], got {threshold}")
        with self.uow_factory() as uow:
            by_place: defaultdict[PlaceId, list[AttributeRecord]] = defaultdict(list)
            for record in uow.repositories.attributes.list_by_attribute(attribute_name):
                by_place[record.place_id].append(record)
        conflicts: list[AttributeConflict] = []
        for place_id, records in by_place.items():
            if len(records) < 2:
                continue
            spread = disagreement([record.value for record in records])
            if spread > threshold:
                conflicts.append(
                    AttributeConflict(
                        place_id=place_id,
                        attribute_name=attribute_name,
                        spread=spread,
                        records=tuple(sorted(records, key=lambda item: str(item.source))),
                    )
                )
        conflicts.sort(key=lambda item: (-item.spread, item.place_id))
        return conflicts


def _storable(value: AttributeValue) -> AttributeValue:
    if isinstance(value, Coordinates):
        return value.as_list()
    if isinstance(value, tuple):
        return list(value)
    return value


def _project(place: Place, attribute_name: str, preferred: AttributeRecord | None) -> None:
    if attribute_name not in PROJECTED_ATTRIBUTES:
        return
    value = preferred.value if preferred is not None else None
    match attribute_name:
        case "population":
            number = as_number(value)
            place.population = None if number is None else int(number)
        case "coordinates":
            place.set_coordinates(Coordinates.from_value(value) if value is not None else None)
        case "timezone":
            place.timezone = None if value is None else str(value)
        case "bounding_box":
            place.bounding_box = value
    place.touch()

