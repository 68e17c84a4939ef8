"""Structured logging setup for Lambda workers.

Renders JSON lines so CloudWatch Logs Insights can query fields directly.
"""

import logging
import os
import sys

import structlog
from structlog.types import EventDict

_configured = False


def _add_service_info(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Processor that adds service metadata."""
    event_dict.setdefault("service", os.environ.get("SERVICE_NAME", "finpulse"))
    function_name = os.environ.get("AWS_LAMBDA_FUNCTION_NAME")
    if function_name:
        event_dict.setdefault("function_name", function_name)
    return event_dict


def configure_logging(level: str | None = None) -> None:
    """Configure structlog once per cold start.

    Args:
        level: Log level name. Defaults to LOG_LEVEL env var, then INFO.
    """
    global _configured
    if _configured:
        return

    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _add_service_info,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(default=str),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,
    )
    _configured = True
