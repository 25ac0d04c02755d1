"""Logging helpers."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO", log_dir: Optional[str] = None) -> logging.Logger:
    logger = logging.getLogger("sttnotes")
    logger.setLevel(logging.getLevelName(str(level or "INFO").upper()))

    if not logger.handlers:
        fmt = logging.Formatter(_FORMAT, datefmt=_DATEFMT)
        stream = logging.StreamHandler()
        stream.setFormatter(fmt)
        logger.addHandler(stream)

        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
            handler = RotatingFileHandler(
                os.path.join(log_dir, "sttnotes.log"), maxBytes=2_000_000, backupCount=3
            )
            handler.setFormatter(fmt)
            logger.addHandler(handler)

    return logger
