"""Loguru sink setup for the command-line surface."""

from __future__ import annotations

import sys
from typing import Any, TextIO

from loguru import logger

_FORMAT = "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | {extra[module]} - {message}"


def configure_logging(debug: bool = False, sink: TextIO | Any = None) -> int:
    """Replace loguru's default handler.

    ``debug`` mirrors the Settings debug toggle: everything at ``DEBUG`` when
    on, only warnings and errors otherwise. Returns the new handler id.
    """
    logger.remove()
    logger.configure(extra={"module": "kadisync"})
    return logger.add(
        sink if sink is not None else sys.stderr,
        level="DEBUG" if debug else "WARNING",
        format=_FORMAT,
        backtrace=debug,
        diagnose=False,
    )
