"""
logging_config.py - Centralized logging configuration.

Every module logs through `get_logger(__name__)` using the
`event_name | key=value | key=value` message style, so one pass of the
batch generator can be followed line by line in the terminal.
"""

from __future__ import annotations

import logging
import sys
import time
from contextlib import contextmanager
from typing import Iterator

NOISY_LOGGERS = ("openpyxl", "multipart", "python_multipart")


def setup_logging(level: int = logging.INFO, json_format: bool = False) -> None:
    """Configure root logger with consistent formatting.

    Args:
        level: Logging level.
        json_format: If True, emit JSON-like log lines.
    """
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    if json_format:
        formatter = logging.Formatter(
            '{"timestamp":"%(asctime)s","level":"%(levelname)s",'
            '"module":"%(name)s","message":"%(message)s"}',
            datefmt="%H:%M:%S",
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(name)-16s] %(levelname)-7s %(message)s",
            datefmt="%H:%M:%S",
        )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """Get a named logger."""
    return logging.getLogger(name)


@contextmanager
def log_stage(logger: logging.Logger, stage: str, name: str) -> Iterator[None]:
    """Log start/complete lines with duration around one pipeline stage."""
    started = time.time()
    logger.info("pipeline_stage | stage=%s | name=%s | status=start", stage, name)
    try:
        yield
    except Exception as exc:
        logger.error(
            "pipeline_stage | stage=%s | name=%s | status=failed | error_type=%s | error=%s",
            stage,
            name,
            type(exc).__name__,
            exc,
        )
        raise
    logger.info(
        "pipeline_stage | stage=%s | name=%s | status=complete | duration_s=%.2f",
        stage,
        name,
        time.time() - started,
    )
