"""
Logging setup for monoctl.

Library modules only ever do ``log = logging.getLogger(__name__)``; the
embedding program (a CLI shell, a test, a systemd unit) calls
``configure_logging()`` once to pick plain or JSON output.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Optional

from .settings import LoggingConf, get_settings

PLAIN_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


class JsonLineFormatter(logging.Formatter):
    """One JSON object per line (journald / log shipper friendly)."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": round(record.created, 3),
            "time": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


def configure_logging(conf: Optional[LoggingConf] = None) -> logging.Logger:
    conf = conf or get_settings().logging
    root = logging.getLogger("monoctl")
    root.setLevel(getattr(logging, conf.level, logging.INFO))

    # idempotent: replace whatever a previous call installed
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler()
    if conf.json_format:
        handler.setFormatter(JsonLineFormatter())
    else:
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
    root.addHandler(handler)
    return root
