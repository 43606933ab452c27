"""Reconciliation and lookup index settings."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from .env import optional_env_bool, optional_env_float

DEFAULT_LOCK_TIMEOUT_SECONDS = 0.05
DEFAULT_PROXIMITY_KM = 5.0


@dataclass(frozen=True, slots=True)
class ReconciliationConfig:
    lock_timeout_seconds: float = DEFAULT_LOCK_TIMEOUT_SECONDS
    match_admin_codes: bool = True
    retry_on_race: bool = True
    proximity_km: float | None = DEFAULT_PROXIMITY_KM


@dataclass(frozen=True, slots=True)
class IndexConfig:
    freshness_bound: timedelta | None = None


def get_reconciliation_config() -> ReconciliationConfig:
    """Read reconciliation settings from the environment."""

    timeout_ms = optional_env_float("GAZETTEER_LOCK_TIMEOUT_MS", positive=True)
    match_admin_codes = optional_env_bool("GAZETTEER_MATCH_ADMIN_CODES")
    retry_on_race = optional_env_bool("GAZETTEER_RETRY_ON_RACE")
    proximity_km = optional_env_float("GAZETTEER_PROXIMITY_KM", positive=True)
    return ReconciliationConfig(
        lock_timeout_seconds=(
            DEFAULT_LOCK_TIMEOUT_SECONDS if timeout_ms is None else timeout_ms / 1000.0
        ),
        match_admin_codes=True if match_admin_codes is None else match_admin_codes,
        retry_on_race=True if retry_on_race is None else retry_on_race,
        proximity_km=DEFAULT_PROXIMITY_KM if proximity_km is None else proximity_km,
    )


def get_index_config() -> IndexConfig:
    seconds = optional_env_float("GAZETTEER_INDEX_FRESHNESS_SECONDS", positive=True)
    if seconds is None:
        return IndexConfig()
    return IndexConfig(freshness_bound=timedelta(seconds=seconds))
