"""Source trust and attribute policy configuration.

The trust file is TOML, read once and frozen::

    [trust]
    default_confidence = 0.5
    recency_horizon_days = 365

    [trust.sources]
    geonames = 0.85
    wikidata = 0.75

    [attributes.timezone]
    policy = "priority_order"
    sources = ["geonames"]
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gazetteer.domain.attribution import (
    DEFAULT_ATTRIBUTE_POLICIES,
    DEFAULT_SOURCE_TRUST,
    AttributePolicy,
    AttributePolicyTable,
    ResolutionPolicy,
    SourceTrustTable,
)

from .errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping

TRUST_FILE_ENV = "GAZETTEER_TRUST_FILE"


class _TrustFileModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class TrustSection(_TrustFileModel):
    default_confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    max_recency_bonus: float = Field(default=0.1, ge=0.0, le=1.0)
    recency_horizon_days: float = Field(default=365.0, gt=0.0)
    outlier_tolerance: float = Field(default=0.1, ge=0.0)
    max_outlier_penalty: float = Field(default=0.3, ge=0.0, le=1.0)
    sources: dict[str, float] = Field(default_factory=dict)


class AttributeSection(_TrustFileModel):
    policy: ResolutionPolicy = ResolutionPolicy.CONFIDENCE
    sources: list[str] = Field(default_factory=list)


class TrustFile(_TrustFileModel):
    trust: TrustSection | None = None
    attributes: dict[str, AttributeSection] = Field(default_factory=dict)
    default_policy: AttributeSection | None = None


@dataclass(frozen=True, slots=True)
class TrustConfig:
    trust: SourceTrustTable
    policies: AttributePolicyTable


def parse_trust_config(data: Mapping[str, object]) -> TrustConfig:
    """Validate a decoded trust document, falling back to defaults per section."""

    try:
        model = TrustFile.model_validate(data)
        trust = (
            SourceTrustTable(
                base_confidence=model.trust.sources,
                default_confidence=model.trust.default_confidence,
                max_recency_bonus=model.trust.max_recency_bonus,
                recency_horizon_days=model.trust.recency_horizon_days,
                outlier_tolerance=model.trust.outlier_tolerance,
                max_outlier_penalty=model.trust.max_outlier_penalty,
            )
            if model.trust is not None
            else DEFAULT_SOURCE_TRUST
        )
        policies = dict(DEFAULT_ATTRIBUTE_POLICIES.policies)
        for name, section in model.attributes.items():
            policies[name] = AttributePolicy(
                policy=section.policy, source_order=tuple(section.sources)
            )
        default = (
            AttributePolicy(
                policy=model.default_policy.policy,
                source_order=tuple(model.default_policy.sources),
            )
            if model.default_policy is not None
            else DEFAULT_ATTRIBUTE_POLICIES.default
        )
    except (ValidationError, ValueError) as exc:
        raise ConfigurationError(f"Invalid trust configuration: {exc}") from exc
    table = AttributePolicyTable(policies=policies, default=default)
    return TrustConfig(trust=trust, policies=table)


def load_trust_config(path: Path | str | None = None) -> TrustConfig:
    """Load the trust file from ``path`` or ``$GAZETTEER_TRUST_FILE``; defaults when unset."""

    location = path or os.getenv(TRUST_FILE_ENV)
    if not location:
        return TrustConfig(trust=DEFAULT_SOURCE_TRUST, policies=DEFAULT_ATTRIBUTE_POLICIES)
    file_path = Path(location).expanduser()
    try:
        with file_path.open("rb") as handle:
            data = tomllib.load(handle)
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Trust file not found: {file_path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"Trust file {file_path} is not valid TOML: {exc}") from exc
    return parse_trust_config(data)
