from __future__ import annotations

import logging

from config.settings import log_level

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    """
    Configure root logging once for the process.

    Safe to call repeatedly (e.g. from tests creating several apps); only the
    level is updated after the first call.
    """
    lvl = getattr(logging, (level or log_level()).upper(), logging.INFO)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=lvl, format=_FORMAT)
    root.setLevel(lvl)
    # httpx logs every request at INFO; keep it out of the way.
    logging.getLogger("httpx").setLevel(max(lvl, logging.WARNING))
