"""Computed confidence for attribute observations without an explicit score.

``confidence = base(source) + recency_bonus(observed_at) - outlier_penalty(value, peers)``,
clamped to ``[0, 1]``.
"""

from __future__ import annotations

import statistics
from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from .policy import SourceTrustTable


def clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


def as_number(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    return float(value)


def as_numeric_sequence(value: object) -> tuple[float, ...] | None:
    if isinstance(value, str | bytes) or not isinstance(value, Sequence):
        return None
    numbers = [as_number(item) for item in value]
    if not numbers or any(number is None for number in numbers):
        return None
    return tuple(number for number in numbers if number is not None)


def recency_bonus(observed_at: datetime, trust: SourceTrustTable, *, now: datetime) -> float:
    """Linear decay from ``max_recency_bonus`` (now) to zero at the horizon."""

    age_days = max(0.0, (now - observed_at).total_seconds() / 86400.0)
    remaining = max(0.0, 1.0 - age_days / trust.recency_horizon_days)
    return trust.max_recency_bonus * remaining


def outlier_penalty(value: object, peers: Sequence[object], trust: SourceTrustTable) -> float:
    """Penalty for a numeric value far from the median of the other sources."""

    number = as_number(value)
    if number is None:
        return 0.0
    peer_numbers = [peer for peer in (as_number(item) for item in peers) if peer is not None]
    if not peer_numbers:
        return 0.0
    median = statistics.median(peer_numbers)
    if median == 0:
        return 0.0 if number == 0 else trust.max_outlier_penalty
    deviation = abs(number - median) / abs(median)
    if deviation <= trust.outlier_tolerance:
        return 0.0
    return min(trust.max_outlier_penalty, deviation)


def compute_confidence(
    *,
    source: str,
    value: object,
    observed_at: datetime,
    peers: Sequence[object],
    trust: SourceTrustTable,
    now: datetime,
) -> float:
    score = (
        trust.confidence_for(source)
        + recency_bonus(observed_at, trust, now=now)
        - outlier_penalty(value, peers, trust)
    )
    return clamp(score)


def disagreement(values: Sequence[object]) -> float:
    """Normalized spread of ``values`` in ``[0, 1]``.

    Numbers use ``(max - min) / max(|max|, |min|)``; numeric sequences of equal
    length use the largest per-component spread; anything else is 1.0 when not
    all values are equal.
    """

    if len(values) < 2:
        return 0.0
    numbers = [as_number(value) for value in values]
    if all(number is not None for number in numbers):
        return _relative_spread([number for number in numbers if number is not None])
    sequences = [as_numeric_sequence(value) for value in values]
    if all(sequence is not None for sequence in sequences):
        present = [sequence for sequence in sequences if sequence is not None]
        if len({len(sequence) for sequence in present}) == 1:
            components = zip(*present, strict=True)
            return max(_relative_spread(list(component)) for component in components)
    first = values[0]
    return 0.0 if all(value == first for value in values[1:]) else 1.0


def _relative_spread(numbers: list[float]) -> float:
    high = max(numbers)
    low = min(numbers)
    scale = max(abs(high), abs(low))
    if scale == 0:
        return 0.0
    return min(1.0, (high - low) / scale)
