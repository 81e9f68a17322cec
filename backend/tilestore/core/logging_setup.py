"""Root logger configuration for the tile store service."""

from __future__ import annotations

import logging
import os
import sys

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_configured = False


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger once.

    Level precedence:
      - explicit ``level`` argument
      - env LOG_LEVEL (e.g. DEBUG/INFO/WARNING/ERROR)
      - default INFO

    Args:
        level: Optional logging level name.
    """
    global _configured
    if _configured:
        return

    lvl_name = (level or os.environ.get("LOG_LEVEL") or "INFO").upper()
    lvl = logging.getLevelName(lvl_name)
    if not isinstance(lvl, int):
        lvl = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))

    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(lvl)
    _configured = True
