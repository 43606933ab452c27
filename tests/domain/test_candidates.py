from __future__ import annotations

from datetime import UTC, datetime

import pytest

from gazetteer.domain.candidates import (
    CandidateAttribute,
    CandidateIdentifier,
    CandidateName,
    CandidateRecord,
)
from gazetteer.domain.errors import InvalidCandidate
from gazetteer.domain.model import Coordinates, NameKind, Provider


def test_candidate_needs_a_name_or_identifier() -> None:
    with pytest.raises(InvalidCandidate, match="at least one name or identifier"):
        CandidateRecord(source=Provider.GEONAMES).validate()


def test_identifier_only_candidate_is_valid() -> None:
    candidate = CandidateRecord(
        source=Provider.WIKIDATA,
        identifiers=[CandidateIdentifier(source=Provider.WIKIDATA, external_id="Q84")],
    )

    candidate.validate()


def test_blank_name_is_rejected() -> None:
    candidate = CandidateRecord(source=Provider.GEONAMES, names=[CandidateName(text=" ... ")])

    with pytest.raises(InvalidCandidate, match="blank"):
        candidate.validate()


def test_blank_identifier_is_rejected() -> None:
    candidate = CandidateRecord(
        source=Provider.GEONAMES,
        identifiers=[CandidateIdentifier(source=Provider.GEONAMES, external_id="  ")],
    )

    with pytest.raises(InvalidCandidate):
        candidate.validate()


@pytest.mark.parametrize("confidence", [-0.1, 1.5])
def test_out_of_range_confidence_is_rejected(confidence: float) -> None:
    candidate = CandidateRecord(
        source=Provider.GEONAMES,
        names=[CandidateName(text="Paris")],
        attributes=[CandidateAttribute(name="population", value=1, confidence=confidence)],
    )

    with pytest.raises(InvalidCandidate, match="outside"):
        candidate.validate()


def test_invalid_candidate_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        CandidateRecord(source=Provider.GEONAMES).validate()


def test_country_code_is_upper_cased() -> None:
    candidate = CandidateRecord(source=Provider.GEONAMES, country_code=" gb ")

    assert candidate.country_code == "GB"


def test_identifiers_follow_match_priority() -> None:
    candidate = CandidateRecord(
        source=Provider.GEONAMES,
        identifiers=[
            CandidateIdentifier(source="custom", external_id="x"),
            CandidateIdentifier(source=Provider.OSM, external_id="r1"),
            CandidateIdentifier(source=Provider.GEONAMES, external_id="1"),
            CandidateIdentifier(source=Provider.WIKIDATA, external_id="Q1"),
        ],
    )

    ordered = [str(item.source) for item in candidate.identifiers_by_priority()]

    assert ordered == ["wikidata", "geonames", "osm", "custom"]


def test_primary_name_prefers_official_names() -> None:
    candidate = CandidateRecord(
        source=Provider.GEONAMES,
        names=[
            CandidateName(text="Brum", name_kind=NameKind.ALIAS),
            CandidateName(text="Birmingham"),
        ],
    )

    primary = candidate.primary_name()

    assert primary is not None
    assert primary.text == "Birmingham"


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("coordinates", [200, 0]),
        ("coordinates", [45.0]),
        ("coordinates", {"lat": "north", "lng": 4.8}),
        ("coordinates", "45.76,4.84"),
        ("population", -5),
        ("population", True),
        ("population", "522250"),
    ],
)
def test_malformed_attribute_values_are_rejected(name: str, value: object) -> None:
    candidate = CandidateRecord(
        source=Provider.GEONAMES,
        names=[CandidateName(text="Lyon")],
        attributes=[CandidateAttribute(name=name, value=value)],
    )

    with pytest.raises(InvalidCandidate, match=name):
        candidate.validate()


def test_candidate_coordinates_come_from_the_attribute() -> None:
    candidate = CandidateRecord(
        source=Provider.GEONAMES,
        names=[CandidateName(text="Lyon")],
        attributes=[
            CandidateAttribute(name="population", value=522_250),
            CandidateAttribute(name="coordinates", value={"lat": 45.76, "lng": 4.84}),
        ],
    )

    candidate.validate()

    assert candidate.coordinates() == Coordinates(45.76, 4.84)
    assert CandidateRecord(source=Provider.GEONAMES).coordinates() is None


def test_naive_observation_time_is_read_as_utc() -> None:
    candidate = CandidateRecord(source=Provider.GEONAMES, observed_at=datetime(2024, 5, 1, 12))

    assert candidate.observed_at == datetime(2024, 5, 1, 12, tzinfo=UTC)
    assert candidate.observed_at.tzinfo is UTC
