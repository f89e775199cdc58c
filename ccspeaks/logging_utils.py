from __future__ import annotations

import logging
import os

from .config import TRUTHY

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging() -> None:
    """Configure root logging from LOG_LEVEL.

    CCSPEAKS_DEBUG=1 turns only the ccspeaks loggers to DEBUG, so per-request
    transcode details show up without aiohttp's own debug output.
    """
    level = os.getenv("LOG_LEVEL", "INFO").upper().strip()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)

    if os.getenv("CCSPEAKS_DEBUG", "0").strip().lower() in TRUTHY:
        logging.getLogger("ccspeaks").setLevel(logging.DEBUG)
