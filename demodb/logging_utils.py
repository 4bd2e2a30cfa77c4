from __future__ import annotations

import logging
import os


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging() -> None:
    level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
    if not isinstance(level, int):
        # Unknown names come back as "Level X"
        level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
