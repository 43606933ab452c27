"""Pydantic schemas for raw candidate payloads (one JSON object per record).

Accepted shape::

    {
      "source": "geonames",
      "kind": "city",
      "country_code": "GB",
      "names": ["Birmingham", {"text": "Brum", "kind": "alias"}],
      "identifiers": {"geonames": "2655603", "wikidata": "Q2256"},
      "attributes": {"population": 1144900, "timezone": "Europe/London"},
      "parents": {"geonames": "6269131"},
      "observed_at": "2024-05-01T00:00:00Z"
    }

``identifiers``/``parents`` may also be lists of ``{"source", "external_id"}``
and ``attributes`` a list of ``{"name", "value", "confidence"}``.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import cast

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from gazetteer.domain.candidates import (
    CandidateAttribute,
    CandidateIdentifier,
    CandidateName,
    CandidateRecord,
)
from gazetteer.domain.errors import InvalidCandidate
from gazetteer.domain.model import NameKind, PlaceKind


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


def _pairs_to_list(value: object, *, key: str, value_key: str) -> object:
    if isinstance(value, Mapping):
        mapping_value = cast(Mapping[str, object], value)
        return [{key: name, value_key: item} for name, item in mapping_value.items()]
    return value


class PayloadModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class NamePayload(PayloadModel):
    text: str
    language_code: str | None = Field(default=None, alias="lang")
    kind: NameKind = NameKind.OFFICIAL

    _normalize_language = field_validator("language_code", mode="before")(_blank_to_none)


class IdentifierPayload(PayloadModel):
    source: str
    external_id: str = Field(alias="id")

    @field_validator("external_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: object) -> object:
        # numeric ids (geonames, osm) arrive as JSON numbers
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class AttributePayload(PayloadModel):
    name: str
    value: object
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)


class CandidatePayload(PayloadModel):
    source: str | None = None
    kind: PlaceKind = PlaceKind.CITY
    country_code: str | None = Field(default=None, alias="country")
    adm1_code: str | None = Field(default=None, alias="adm1")
    adm2_code: str | None = Field(default=None, alias="adm2")
    names: list[NamePayload] = Field(default_factory=list)
    identifiers: list[IdentifierPayload] = Field(default_factory=list)
    attributes: list[AttributePayload] = Field(default_factory=list)
    parents: list[IdentifierPayload] = Field(default_factory=list)
    observed_at: datetime | None = None
    record_id: str | None = None

    _normalize_codes = field_validator(
        "country_code", "adm1_code", "adm2_code", "record_id", mode="before"
    )(_blank_to_none)

    @field_validator("names", mode="before")
    @classmethod
    def _expand_names(cls, value: object) -> object:
        if isinstance(value, str):
            return [{"text": value}]
        if isinstance(value, list):
            items = cast(list[object], value)
            return [{"text": item} if isinstance(item, str) else item for item in items]
        return value

    @field_validator("identifiers", "parents", mode="before")
    @classmethod
    def _expand_identifiers(cls, value: object) -> object:
        return _pairs_to_list(value, key="source", value_key="id")

    @field_validator("attributes", mode="before")
    @classmethod
    def _expand_attributes(cls, value: object) -> object:
        return _pairs_to_list(value, key="name", value_key="value")


def to_candidate(
    payload: CandidatePayload, *, default_source: str | None = None
) -> CandidateRecord:
    source = payload.source or default_source
    if not source:
        raise InvalidCandidate("Candidate payload has no source")
    observed_at = payload.observed_at or datetime.now(tz=UTC)
    if observed_at.tzinfo is None:
        observed_at = observed_at.replace(tzinfo=UTC)
    return CandidateRecord(
        source=source,
        kind=payload.kind,
        country_code=payload.country_code,
        adm1_code=payload.adm1_code,
        adm2_code=payload.adm2_code,
        names=[
            CandidateName(text=name.text, language_code=name.language_code, name_kind=name.kind)
            for name in payload.names
        ],
        identifiers=[
            CandidateIdentifier(source=item.source, external_id=item.external_id)
            for item in payload.identifiers
        ],
        attributes=[
            CandidateAttribute(name=item.name, value=item.value, confidence=item.confidence)
            for item in payload.attributes
        ],
        parent_identifiers=[
            CandidateIdentifier(source=item.source, external_id=item.external_id)
            for item in payload.parents
        ],
        source_record_id=payload.record_id,
        observed_at=observed_at,
    )


def parse_candidate(
    raw: Mapping[str, object], *, default_source: str | None = None
) -> CandidateRecord:
    """Validate one raw payload; schema errors surface as :class:`InvalidCandidate`."""

    try:
        payload = CandidatePayload.model_validate(raw)
    except ValidationError as exc:
        raise InvalidCandidate(f"Malformed candidate payload: {exc}") from exc
    return to_candidate(payload, default_source=default_source)


def parse_json_line(line: str, *, default_source: str | None = None) -> CandidateRecord:
    """Decode one JSON Lines record into a candidate."""

    try:
        raw = json.loads(line)
    except json.JSONDecodeError as exc:
        raise InvalidCandidate(f"Line is not valid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise InvalidCandidate("Candidate payload must be a JSON object")
    return parse_candidate(cast(dict[str, object], raw), default_source=default_source)
