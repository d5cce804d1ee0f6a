"""Structured logging configuration using structlog.

Provides JSON output for production and human-readable console output when run
by hand. Every module logs through get_logger() instead of print(); the booking
run is one structured stream of attempts, pass results and the final outcome.
"""

import logging
import sys
from pathlib import Path

import structlog


def _shared_processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def setup_logging(
    json_output: bool = False, log_level: str = "INFO", log_file: str | None = None
) -> None:
    """Configure structlog with appropriate processors and output format.

    Args:
        json_output: If True, output JSON (production). If False, console format.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path; rendered lines are appended there as well as stdout.
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)
    shared = _shared_processors()

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    def _formatter(renderer) -> structlog.stdlib.ProcessorFormatter:
        return structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )

    if json_output:
        stream_renderer = file_renderer = structlog.processors.JSONRenderer()
    else:
        stream_renderer = structlog.dev.ConsoleRenderer()
        file_renderer = structlog.dev.ConsoleRenderer(colors=False)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(_formatter(stream_renderer))
    handlers: list[logging.Handler] = [stream_handler]

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(_formatter(file_renderer))
        handlers.append(file_handler)

    # Bridge stdlib logging (urllib3, requests) into the same handlers
    root = logging.getLogger()
    root.handlers = handlers
    root.setLevel(numeric_level)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a logger instance bound with the module name.

    Args:
        name: Logger name (typically __name__ from calling module).

    Returns:
        Configured structlog logger with module name context.
    """
    return structlog.get_logger(name)
