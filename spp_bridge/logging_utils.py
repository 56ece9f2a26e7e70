"""Logging helpers for the SPP bridge."""
from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Iterable

from .paths import LOG_FILE

DEFAULT_LOG_LEVEL = logging.INFO

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


def setup_logging(
    extra_handlers: Iterable[logging.Handler] | None = None,
    *,
    log_file: Path | None = None,
) -> None:
    """Configure the root logger used by the bridge.

    Human-readable lines go to stdout and to a rotating file under
    ``/var/log/spp-bridge`` by default.  Embedders can pass additional
    handlers, or point ``log_file`` somewhere writable.
    """

    root = logging.getLogger()
    if root.handlers:
        # Assume logging is already configured.
        return

    target = log_file or LOG_FILE
    target.parent.mkdir(parents=True, exist_ok=True)

    root.setLevel(DEFAULT_LOG_LEVEL)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    file_handler = RotatingFileHandler(
        target,
        maxBytes=2 * 1024 * 1024,
        backupCount=5,
    )
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    if extra_handlers:
        for handler in extra_handlers:
            root.addHandler(handler)


__all__ = ["setup_logging", "DEFAULT_LOG_LEVEL"]
