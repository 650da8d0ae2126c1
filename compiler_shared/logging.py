from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(default_level: str = "INFO", quiet: tuple[str, ...] = ("uvicorn.access",)) -> None:
    level_name = os.getenv("LOG_LEVEL", default_level).upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)

    # Per-request access lines drown out compile diagnostics at INFO.
    for name in quiet:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
