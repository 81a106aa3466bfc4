"""Logging utilities for Satsuma."""

from __future__ import annotations

import logging

_LOGGER_NAME = "satsuma"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the satsuma hierarchy."""
    if name and name.startswith(f"{_LOGGER_NAME}."):
        name = name[len(_LOGGER_NAME) + 1 :]
    full_name = f"{_LOGGER_NAME}.{name}" if name and name != _LOGGER_NAME else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(*, verbose: bool = False) -> logging.Logger:
    """Configure the satsuma logger with a single console handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Reset handlers so repeated CLI invocations in one process do not duplicate output.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("[satsuma] %(levelname)s %(message)s"))
    logger.addHandler(handler)
    return logger


__all__ = ["configure_logging", "get_logger"]
