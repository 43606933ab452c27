"""Root logger setup for the command line and tests."""

from __future__ import annotations

import logging
import os

LOG_LEVEL_ENV = "GAZETTEER_LOG_LEVEL"

# loggers that drown reconciliation output at debug level
_NOISY_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool")


def resolve_log_level(default: int = logging.INFO) -> int:
    """Level named by ``$GAZETTEER_LOG_LEVEL`` (``debug``, ``WARNING``, ...) or ``default``."""

    name = os.getenv(LOG_LEVEL_ENV, "").strip().upper()
    if not name:
        return default
    level = logging.getLevelNamesMapping().get(name)
    return default if level is None else level


def configure_logging(*, level: int | None = None, force: bool = False) -> None:
    """Configure the root logger with a terse single-line format.

    ``level`` overrides the environment; SQLAlchemy's engine and pool loggers
    stay at WARNING unless explicitly raised elsewhere.
    """

    logging.basicConfig(
        level=resolve_log_level() if level is None else level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
