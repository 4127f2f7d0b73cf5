from __future__ import annotations

import logging
import sys

from ztask.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_configured = False


def configure_logging(level: str | None = None) -> None:
  global _configured
  lvl = (level or settings.log_level or "INFO").upper()
  if _configured:
    logging.getLogger().setLevel(lvl)
    return
  logging.basicConfig(level=lvl, format=LOG_FORMAT, stream=sys.stdout)
  # httpx logs every request at INFO.
  logging.getLogger("httpx").setLevel(logging.WARNING)
  _configured = True
