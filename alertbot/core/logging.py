from __future__ import annotations

import logging

_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """
    Root logging setup for the service. Safe to call more than once
    (uvicorn reload, tests): existing handlers are replaced.
    """
    lvl = getattr(logging, str(level or "INFO").strip().upper(), logging.INFO)
    logging.basicConfig(level=lvl, format=_FORMAT, force=True)

    # requests/urllib3 are chatty at DEBUG
    logging.getLogger("urllib3").setLevel(max(lvl, logging.WARNING))
