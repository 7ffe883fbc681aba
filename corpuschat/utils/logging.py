"""Structured logging setup using structlog.

One processor chain (context vars, level, timestamps, exception info)
feeds either a coloured ConsoleRenderer for interactive use or a
JSONRenderer when ``APP_ENV=production`` or ``json_output`` is set.

Everything is written to **stderr**: stdout carries the chat transcript,
so answers stay pipeable while ingestion progress and provider
diagnostics still reach the terminal.
"""

import logging
import os
import sys

import structlog

from corpuschat.utils.errors import ConfigurationError

_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Third-party loggers that are chatty at INFO (httpx logs every request,
# chromadb reports telemetry and migrations).
_NOISY_LIBRARIES = ("httpx", "httpcore", "chromadb", "openai", "trafilatura")


def configure_logging(log_level: str = "WARNING", json_output: bool = False) -> None:
    """Install the structlog configuration and route stdlib logging through it.

    Args:
        log_level: One of DEBUG, INFO, WARNING, ERROR, CRITICAL (any case).
        json_output: Force JSON lines even outside production.

    Raises:
        ConfigurationError: If *log_level* is not a known level name.
    """
    level_name = log_level.upper()
    if level_name not in _LEVELS:
        raise ConfigurationError(
            message=f"Unknown log level {log_level!r} (expected one of {', '.join(_LEVELS)})"
        )
    level = logging.getLevelName(level_name)
    use_json = json_output or os.environ.get("APP_ENV", "development") == "production"

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if use_json:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *shared_processors,
                renderer,
            ],
        )
    )
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(max(logging.WARNING, level))
