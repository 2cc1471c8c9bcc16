"""structlog setup shared by the CLI and library callers."""

import logging
import os
import sys

import structlog


def configure_logging(level: str | None = None, json_logs: bool = False) -> None:
    """Route structlog events through stdlib logging on stderr.

    Reports printed by the CLI go to stdout, so logs never interleave with
    them when output is piped. ``level`` falls back to ``LOG_LEVEL`` and then
    INFO; ``json_logs`` switches to one JSON object per line.
    """
    log_level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level, logging.INFO),
        force=True,
    )

    processors: list = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=json_logs),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_logs:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
