# movequote/logging_config.py
import logging
import sys
from typing import Optional

import structlog


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure structlog + standard logging.
    Logs go as JSON to stdout. Call once from the embedding application;
    the pipeline itself never configures logging on import.
    """
    if level is None:
        from .config import get_settings

        level = get_settings().log_level

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


# Global logger shared by the pipeline
logger = structlog.get_logger("movequote")
