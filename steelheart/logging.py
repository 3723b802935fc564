"""Logging helpers shared by steelheart commands and the git/review pipeline."""

from __future__ import annotations

import logging
from pathlib import Path

_ROOT = "steelheart"
_CONSOLE_FORMAT = "[steelheart] %(levelname)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return ``steelheart.<name>`` (or the package root logger)."""
    if not name:
        return logging.getLogger(_ROOT)
    return logging.getLogger(f"{_ROOT}.{name}")


def configure_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    log_file: Path | None = None,
) -> logging.Logger:
    """Install console (and optionally file) handlers on the steelheart root logger.

    ``quiet`` wins over ``verbose`` and limits console output to errors; the
    file sink, when requested, always records at the verbose level so a
    failed CI run can be diagnosed after the fact.
    """
    if quiet:
        console_level = logging.ERROR
    elif verbose:
        console_level = logging.DEBUG
    else:
        console_level = logging.INFO

    logger = logging.getLogger(_ROOT)
    logger.setLevel(logging.DEBUG if (verbose or log_file is not None) else console_level)
    logger.propagate = False

    # Handlers are rebuilt on every call so repeated CLI invocations in one
    # process (tests, service wrappers) do not duplicate output.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        sink = logging.FileHandler(log_file, encoding="utf-8")
        sink.setLevel(logging.DEBUG)
        sink.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(sink)

    return logger


def log_failure(logger: logging.Logger, message: str, exc: BaseException) -> None:
    """Log ``exc`` with a traceback only when debug output is enabled."""
    if logger.isEnabledFor(logging.DEBUG):
        logger.exception("%s: %s", message, exc)
    else:
        logger.warning("%s: %s", message, exc)


__all__ = ["configure_logging", "get_logger", "log_failure"]
