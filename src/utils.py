from __future__ import annotations

import logging
from datetime import datetime, timezone


def setup_logging(level: int | str = "INFO") -> None:
    """Configure stdlib logging with a consistent, project-wide format."""
    root_logger = logging.getLogger()
    if root_logger.handlers:
        # Avoid duplicate handlers if called multiple times (e.g., service + CLI).
        root_logger.setLevel(level)
        return

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string with a trailing `Z`."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
