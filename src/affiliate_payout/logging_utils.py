"""Logging helpers for the payout CLI."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: int = logging.INFO, log_path: Optional[Path] = None) -> None:
    """Configure default logging if no handlers are present.

    PAYOUT_LOG_LEVEL (e.g. "DEBUG") overrides level.
    """
    root = logging.getLogger()
    if root.handlers:
        return

    env_level = (os.getenv("PAYOUT_LOG_LEVEL") or "").strip().upper()
    if env_level:
        resolved = logging.getLevelName(env_level)
        if isinstance(resolved, int):
            level = resolved

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_path is not None:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    formatter = logging.Formatter(LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)
