from __future__ import annotations

import logging
import sys

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    root.setLevel(level.upper())

    # Celery and uvicorn may both call this; keep a single handler.
    for h in root.handlers:
        if getattr(h, "_sendworker", False):
            return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))
    handler._sendworker = True  # type: ignore[attr-defined]
    root.addHandler(handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)
