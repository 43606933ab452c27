"""Conflict resolution: which source's value is preferred for an attribute.

Policies are configured per attribute name in an :class:`AttributePolicyTable`.
A pin always wins; otherwise the configured policy picks one record and ties
break by confidence, then recency, then source name.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from gazetteer.domain.model import Provider

if TYPE_CHECKING:
    from collections.abc import Sequence

    from gazetteer.domain.model import AttributePin, AttributeRecord


class ResolutionPolicy(StrEnum):
    PRIORITY_ORDER = "priority_order"
    RECENCY = "recency"
    CONFIDENCE = "confidence"
    MANUAL_OVERRIDE = "manual_override"


@dataclass(frozen=True, slots=True)
class AttributePolicy:
    policy: ResolutionPolicy = ResolutionPolicy.CONFIDENCE
    source_order: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.policy == ResolutionPolicy.PRIORITY_ORDER and not self.source_order:
            raise ValueError("priority_order policy requires a source order")


@dataclass(frozen=True, slots=True)
class AttributePolicyTable:
    """Resolution policy per attribute name; unknown attributes use ``default``."""

    policies: Mapping[str, AttributePolicy] = field(default_factory=dict[str, AttributePolicy])
    default: AttributePolicy = AttributePolicy()

    def __post_init__(self) -> None:
        object.__setattr__(self, "policies", MappingProxyType(dict(self.policies)))

    def policy_for(self, attribute_name: str) -> AttributePolicy:
        return self.policies.get(attribute_name, self.default)


@dataclass(frozen=True, slots=True)
class SourceTrustTable:
    """Static, inspectable trust parameters used to compute confidence."""

    base_confidence: Mapping[str, float] = field(default_factory=dict[str, float])
    default_confidence: float = 0.5
    max_recency_bonus: float = 0.1
    recency_horizon_days: float = 365.0
    outlier_tolerance: float = 0.1
    max_outlier_penalty: float = 0.3

    def __post_init__(self) -> None:
        for source, value in self.base_confidence.items():
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"base confidence for {source!r} outside [0, 1]: {value}")
        if self.recency_horizon_days <= 0:
            raise ValueError("recency_horizon_days must be positive")
        object.__setattr__(
            self,
            "base_confidence",
            MappingProxyType({str(key): value for key, value in self.base_confidence.items()}),
        )

    def confidence_for(self, source: str) -> float:
        return self.base_confidence.get(str(source), self.default_confidence)


DEFAULT_SOURCE_TRUST: Final[SourceTrustTable] = SourceTrustTable(
    base_confidence={
        Provider.MANUAL: 0.95,
        Provider.GEONAMES: 0.85,
        Provider.WIKIDATA: 0.75,
        Provider.OSM: 0.7,
        Provider.RESTCOUNTRIES: 0.7,
    },
)

DEFAULT_ATTRIBUTE_POLICIES: Final[AttributePolicyTable] = AttributePolicyTable(
    policies={
        "bounding_box": AttributePolicy(
            policy=ResolutionPolicy.PRIORITY_ORDER,
            source_order=(Provider.OSM,),
        ),
        "timezone": AttributePolicy(
            policy=ResolutionPolicy.PRIORITY_ORDER,
            source_order=(Provider.GEONAMES,),
        ),
        "population": AttributePolicy(policy=ResolutionPolicy.CONFIDENCE),
        "coordinates": AttributePolicy(policy=ResolutionPolicy.CONFIDENCE),
    },
)


def _by_confidence(record: AttributeRecord) -> tuple[float, float, str]:
    return (-record.confidence, -record.observed_at.timestamp(), str(record.source))


def _by_recency(record: AttributeRecord) -> tuple[float, float, str]:
    return (-record.observed_at.timestamp(), -record.confidence, str(record.source))


def choose_preferred(
    records: Sequence[AttributeRecord],
    policy: AttributePolicy,
    *,
    pin: AttributePin | None = None,
) -> AttributeRecord | None:
    """Pick the preferred record; deterministic for a given set of records."""

    if not records:
        return None
    if pin is not None:
        for record in records:
            if str(record.source) == str(pin.source):
                return record

    match policy.policy:
        case ResolutionPolicy.PRIORITY_ORDER:
            by_source = {str(record.source): record for record in records}
            for source in policy.source_order:
                if str(source) in by_source:
                    return by_source[str(source)]
            return min(records, key=_by_confidence)
        case ResolutionPolicy.RECENCY:
            return min(records, key=_by_recency)
        case ResolutionPolicy.CONFIDENCE:
            return min(records, key=_by_confidence)
        case ResolutionPolicy.MANUAL_OVERRIDE:
            for record in records:
                if record.is_preferred:
                    return record
            return min(records, key=lambda item: (item.observed_at, item.id or 0))
