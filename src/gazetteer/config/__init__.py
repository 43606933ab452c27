"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_env_bool, optional_env_float, require_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .logging import configure_logging, resolve_log_level
from .reconciliation import (
    IndexConfig,
    ReconciliationConfig,
    get_index_config,
    get_reconciliation_config,
)
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config
from .trust import TrustConfig, load_trust_config, parse_trust_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "IndexConfig",
    "MissingConfigurationError",
    "ReconciliationConfig",
    "StorageConfig",
    "TrustConfig",
    "configure_logging",
    "get_database_config",
    "get_index_config",
    "get_reconciliation_config",
    "get_storage_config",
    "load_trust_config",
    "optional_env_bool",
    "optional_env_float",
    "parse_trust_config",
    "require_env_var",
    "require_env_vars",
    "resolve_log_level",
]
