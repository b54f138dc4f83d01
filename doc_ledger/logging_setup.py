"""Logging configuration helpers for the document ledger."""

import logging
import os
from typing import Optional

LOG_FORMAT = "[%(asctime)s] %(levelname)s: %(message)s"


def _resolve_level(level_name: str) -> int:
    return getattr(logging, level_name.upper(), logging.INFO)


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging from the given level or LOG_LEVEL."""
    resolved = _resolve_level(level or os.getenv("LOG_LEVEL", "INFO"))
    formatter = logging.Formatter(LOG_FORMAT)
    root_logger = logging.getLogger()

    if root_logger.handlers:
        root_logger.setLevel(resolved)
        for handler in root_logger.handlers:
            handler.setLevel(resolved)
            handler.setFormatter(formatter)
        return

    logging.basicConfig(level=resolved)
    for handler in logging.getLogger().handlers:
        handler.setFormatter(formatter)
