"""Structured logging setup shared by the pipeline and the demo."""

import logging
import sys

import structlog

from pain_insights.config import LoggingConfig


def configure_logging(config: LoggingConfig | None = None) -> None:
    """
    Configure stdlib logging and structlog once per process.

    JSON output for services, a coloured console renderer for development.
    Analyses only log counts and gates, never record text.
    """
    config = config or LoggingConfig()
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=config.level)

    renderer = (
        structlog.dev.ConsoleRenderer()
        if config.format == "console"
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
