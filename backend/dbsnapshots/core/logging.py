"""Central logging configuration.

Invoked from `dbsnapshots.main` during startup; library code only ever calls
`logging.getLogger(__name__)`.
"""

from __future__ import annotations

import logging
import os
from typing import Optional


class HealthCheckFilter(logging.Filter):
    """Drop access log lines for the /health and /ready probes."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        return not any(endpoint in message for endpoint in ("/health", "/ready"))


def setup_logging(level: Optional[str] = None) -> None:
    """Initialize application logging.

    - Level is taken from the `LOG_LEVEL` environment variable if not provided.
    - Uses a concise, structured-ish format with timestamps.
    """

    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()

    root_logger = logging.getLogger()

    # Configure handlers once to avoid duplicates in reloads
    if not root_logger.handlers:
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    root_logger.setLevel(log_level)

    logging.getLogger("uvicorn").setLevel(log_level)
    logging.getLogger("uvicorn.error").setLevel(log_level)
    logging.getLogger("uvicorn.access").addFilter(HealthCheckFilter())

    # Scheduler chatter ("Running job ...") is only useful when debugging
    apscheduler_level = logging.DEBUG if root_logger.level == logging.DEBUG else logging.WARNING
    logging.getLogger("apscheduler").setLevel(apscheduler_level)

    # SQLAlchemy: only show engine logs when DEBUG is enabled at the root
    sqlalchemy_engine_level = logging.DEBUG if root_logger.level == logging.DEBUG else logging.WARNING
    logging.getLogger("sqlalchemy.engine").setLevel(sqlalchemy_engine_level)
