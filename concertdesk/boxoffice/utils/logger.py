"""Centralized logging configuration for the box office.

Exposes one configured logger shared by the API process and the Celery
worker. Context goes through ``extra=`` and is appended to each line so
order ids and bucket keys show up in plain-text logs.
"""
from __future__ import annotations

import logging
import os

_LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Attributes every LogRecord carries; anything else came in via extra=.
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class _ContextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = {k: v for k, v in vars(record).items() if k not in _RESERVED}
        if context:
            pairs = " ".join(f"{k}={v}" for k, v in sorted(context.items()))
            line = f"{line} | {pairs}"
        return line


def _create_logger() -> logging.Logger:
    logger = logging.getLogger("concertdesk")
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    formatter = _ContextFormatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)

    logger.setLevel(_LOG_LEVEL)
    logger.addHandler(handler)
    logger.propagate = False

    return logger


logger = _create_logger()
