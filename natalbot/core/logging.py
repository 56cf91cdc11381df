"""Configuration de logging basée sur structlog.

Objectif du module
------------------
- Fournir une configuration de logs structurés lisibles en développement.
- Laisser le niveau minimal piloté par la configuration (`LOG_LEVEL`).
"""

import logging
import sys

import structlog


def setup_logging(level: str = "INFO") -> None:
    """Configure structlog pour produire des logs détaillés et filtrables.

    Args:
        level: Nom du niveau minimal (DEBUG, INFO, WARNING...). Inconnu → INFO.
    """
    min_level = logging.getLevelName(level.upper())
    if not isinstance(min_level, int):
        min_level = logging.INFO
    timestamper = structlog.processors.TimeStamper(fmt="ISO")
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            timestamper,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )
