"""Logging configuration for procflow.

One stdout handler on the root logger. Engine modules log through
get_logger(__name__), so every engine record sits under the "procflow"
logger hierarchy and can be tuned as a unit.
"""

import logging
import sys

from procflow.core.config import get_settings

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Libraries that drown engine records at INFO.
_QUIET_LOGGERS = ("asyncpg", "opentelemetry", "redis")


def setup_logging() -> None:
    """Configure process-wide logging.

    procflow loggers run at DEBUG when settings.debug is True, otherwise
    INFO. SQL statement logging follows settings.database_echo and the
    libraries in _QUIET_LOGGERS stay at WARNING. Calling it again (one
    call per create_app()) only re-applies the levels.
    """
    settings = get_settings()
    logging.basicConfig(
        level=logging.INFO,
        format=_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logging.getLogger("procflow").setLevel(logging.DEBUG if settings.debug else logging.INFO)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.database_echo else logging.WARNING
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Return a logger for the given module name.

    Args:
        name: Usually __name__ of the calling module.

    Returns:
        Logger instance.
    """
    return logging.getLogger(name)
