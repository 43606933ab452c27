from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from gazetteer.domain.candidates import (
    CandidateAttribute,
    CandidateIdentifier,
    CandidateName,
    CandidateRecord,
)
from gazetteer.domain.model import PlaceKind, Provider

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

OBSERVED_AT = datetime(2024, 5, 1, tzinfo=UTC)


def make_candidate(
    *names: str,
    source: str = Provider.GEONAMES,
    kind: PlaceKind = PlaceKind.CITY,
    country_code: str | None = "GB",
    adm1_code: str | None = None,
    identifiers: Mapping[str, str] | None = None,
    attributes: Mapping[str, object] | None = None,
    confidence: float | None = None,
    parents: Mapping[str, str] | None = None,
    observed_at: datetime = OBSERVED_AT,
) -> CandidateRecord:
    return CandidateRecord(
        source=source,
        kind=kind,
        country_code=country_code,
        adm1_code=adm1_code,
        names=[CandidateName(text=name) for name in names],
        identifiers=_identifiers(identifiers or {}),
        attributes=[
            CandidateAttribute(name=name, value=value, confidence=confidence)
            for name, value in (attributes or {}).items()
        ],
        parent_identifiers=_identifiers(parents or {}),
        observed_at=observed_at,
    )


def _identifiers(pairs: Mapping[str, str]) -> list[CandidateIdentifier]:
    return [
        CandidateIdentifier(source=source, external_id=value) for source, value in pairs.items()
    ]


def birmingham_pair() -> Sequence[CandidateRecord]:
    """The classic ambiguous name: Birmingham, England and Birmingham, Alabama."""

    return (
        make_candidate(
            "Birmingham",
            country_code="GB",
            adm1_code="ENG",
            identifiers={Provider.GEONAMES: "2655603"},
            attributes={"population": 550000},
        ),
        make_candidate(
            "Birmingham",
            country_code="US",
            adm1_code="AL",
            identifiers={Provider.GEONAMES: "4049979"},
            attributes={"population": 210000},
        ),
    )
