"""Operational logging setup for the CLI."""

from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"


def setup_operational_logger(
    name: str = "machine_init",
    *,
    level: str = "INFO",
    log_file: str | None = None,
) -> logging.Logger:
    """
    Configure the package logger: stream output at `level`, plus a DEBUG-level
    UTF-8 file when `log_file` is given. Module loggers under `machine_init.*`
    and `scriptkit.*` propagate here.
    """

    resolved_level = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved_level, int):
        raise ValueError(f"Unknown log level: {level!r}")

    formatter = logging.Formatter(LOG_FORMAT)
    loggers = [logging.getLogger(name), logging.getLogger("scriptkit")]

    handlers: list[logging.Handler] = []
    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(resolved_level)
    stream_handler.setFormatter(formatter)
    handlers.append(stream_handler)

    if log_file:
        directory = os.path.dirname(os.path.abspath(log_file))
        os.makedirs(directory, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    for configured in loggers:
        configured.handlers.clear()
        configured.setLevel(logging.DEBUG if log_file else resolved_level)
        for handler in handlers:
            configured.addHandler(handler)
        configured.propagate = False

    logger = loggers[0]
    if log_file:
        logger.debug("Operational log file: %s", log_file)
    return logger
