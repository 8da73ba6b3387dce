# booking_engine/core/logging.py
from __future__ import annotations

import logging

from booking_engine.core.config import settings


def configure_logging(level: str | None = None) -> None:
    """
    Configure root logging once for the process (called at app startup).
    """
    logging.basicConfig(
        level=getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # Noisy libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
