"""Candidate records: one provider's unreconciled observation of a place.

Candidates are built by ingestion adapters from provider payloads and handed
to the reconciliation engine. They carry no store identity; the engine decides
which place (existing or new) they describe.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from gazetteer.domain.errors import InvalidCandidate
from gazetteer.domain.model import (
    Coordinates,
    NameKind,
    PlaceKind,
    as_utc,
    identifier_rank,
    utcnow,
)
from gazetteer.domain.normalize import normalize_text

if TYPE_CHECKING:
    from datetime import datetime

    from gazetteer.domain.model import AttributeValue, CountryCode, Source


@dataclass(frozen=True, slots=True, kw_only=True)
class CandidateName:
    text: str
    language_code: str | None = None
    name_kind: NameKind = NameKind.OFFICIAL

    @property
    def normalized_text(self) -> str | None:
        return normalize_text(self.text)


@dataclass(frozen=True, slots=True, kw_only=True)
class CandidateIdentifier:
    source: Source
    external_id: str


@dataclass(frozen=True, slots=True, kw_only=True)
class CandidateAttribute:
    name: str
    value: AttributeValue
    confidence: float | None = None


@dataclass(slots=True, kw_only=True)
class CandidateRecord:
    """Provider observation of a single place prior to reconciliation."""

    source: Source
    kind: PlaceKind = PlaceKind.CITY
    country_code: CountryCode | None = None
    adm1_code: str | None = None
    adm2_code: str | None = None
    names: list[CandidateName] = field(default_factory=list[CandidateName])
    identifiers: list[CandidateIdentifier] = field(default_factory=list[CandidateIdentifier])
    attributes: list[CandidateAttribute] = field(default_factory=list[CandidateAttribute])
    parent_identifiers: list[CandidateIdentifier] = field(
        default_factory=list[CandidateIdentifier]
    )
    source_record_id: str | None = None
    observed_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if self.country_code is not None:
            self.country_code = self.country_code.strip().upper() or None
        self.observed_at = as_utc(self.observed_at)

    def validate(self) -> None:
        """Raise :class:`InvalidCandidate` unless the record can be reconciled."""

        if not self.names and not self.identifiers:
            raise InvalidCandidate("Candidate needs at least one name or identifier")
        for name in self.names:
            if normalize_text(name.text) is None:
                raise InvalidCandidate(f"Candidate name is blank: {name.text!r}")
        for identifier in (*self.identifiers, *self.parent_identifiers):
            if not str(identifier.source).strip() or not identifier.external_id.strip():
                raise InvalidCandidate(
                    f"Candidate identifier is blank: {identifier.source}:{identifier.external_id}"
                )
        for attribute in self.attributes:
            if not attribute.name.strip():
                raise InvalidCandidate("Candidate attribute name is blank")
            if attribute.confidence is not None and not 0.0 <= attribute.confidence <= 1.0:
                raise InvalidCandidate(
                    f"Confidence for {attribute.name!r} outside [0, 1]: {attribute.confidence}"
                )
            _check_attribute_value(attribute)

    def identifiers_by_priority(self) -> list[CandidateIdentifier]:
        """Identifiers in match order; sources outside the priority keep their given order."""

        return sorted(self.identifiers, key=lambda item: identifier_rank(item.source))

    def primary_name(self) -> CandidateName | None:
        """The name a newly created place should adopt as canonical."""

        for name in self.names:
            if name.name_kind == NameKind.OFFICIAL:
                return name
        return self.names[0] if self.names else None

    def coordinates(self) -> Coordinates | None:
        """Coordinates carried as a ``coordinates`` attribute, if any."""

        for attribute in self.attributes:
            if attribute.name == "coordinates":
                return _coordinates(attribute)
        return None


def _coordinates(attribute: CandidateAttribute) -> Coordinates | None:
    try:
        return Coordinates.from_value(attribute.value)
    except (TypeError, ValueError) as exc:
        raise InvalidCandidate(f"Invalid coordinates {attribute.value!r}: {exc}") from exc


def _check_attribute_value(attribute: CandidateAttribute) -> None:
    match attribute.name:
        case "coordinates":
            if _coordinates(attribute) is None:
                raise InvalidCandidate(f"Invalid coordinates {attribute.value!r}")
        case "population":
            value = attribute.value
            if isinstance(value, bool) or not isinstance(value, int | float) or value < 0:
                raise InvalidCandidate(f"Invalid population {attribute.value!r}")
