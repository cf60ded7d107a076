from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def resolve_log_level(cli_value: str | None) -> str:
    level = (cli_value or os.getenv("UNBIND_LOG_LEVEL") or "INFO").upper()
    return level if level in _LEVELS else "INFO"


def configure_logging(level: str | None = None) -> logging.Logger:
    """Attach a single stream handler to the package logger."""
    logger = logging.getLogger("unbind")
    logger.setLevel(resolve_log_level(level))
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False
    return logger


__all__ = ["LOG_FORMAT", "configure_logging", "resolve_log_level"]
