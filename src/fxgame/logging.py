"""Structured logging for the game core, built on structlog.

Every module logs through get_logger(__name__) with snake_case event names
and keyword fields. Prediction ids are bound with bound_prediction() so the
timer task, persistence and background score post all carry the same id.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

# Third-party loggers that are too chatty at INFO for a game session
QUIET_LOGGERS = ("httpx", "httpcore", "aiosqlite", "uvicorn.access")


def setup_logging(log_level: str = "INFO", log_format: str = "console") -> None:
    """Route structlog and stdlib logging through one ProcessorFormatter.

    Args:
        log_level: Root level name, e.g. "DEBUG" or "INFO".
        log_format: "json" for machine-readable lines, anything else renders
            coloured console output.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format.lower() == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Foreign (stdlib) records get the same timestamp/level treatment
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


@contextmanager
def bound_prediction(prediction_id: str) -> Iterator[None]:
    """Attach prediction_id to every log line emitted inside the block.

    Tasks created inside the block copy the context, so a background post
    spawned during resolution keeps the id after the block exits.
    """
    with structlog.contextvars.bound_contextvars(prediction_id=prediction_id):
        yield


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger with the given name."""
    return structlog.get_logger(name)
