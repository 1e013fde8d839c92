"""Configuration de logging basée sur structlog.

Objectif du module
------------------
- Fournir une configuration de logs structurés lisibles en développement, en JSON sinon.
- Propager les variables de contexte (ex: `request_id`) liées par le middleware.
- Aligner le niveau des loggers standard (`logging`) utilisés par la couche API.
"""

import logging
import sys

import structlog


def setup_logging(level: str = "DEBUG", json_logs: bool = False) -> None:
    """Configure structlog pour produire des logs détaillés et filtrables."""
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.DEBUG
    logging.basicConfig(level=numeric_level, format="%(levelname)s %(name)s %(message)s")
    timestamper = structlog.processors.TimeStamper(fmt="ISO")
    renderer = (
        structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            timestamper,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )
