"""
Centralized logging configuration for the Memories service.
"""
from __future__ import annotations

import logging
import sys
from typing import Optional

from .config import Settings


def setup_logging(settings: Optional[Settings] = None) -> None:
    """
    Configure the root logger once. Safe to call repeatedly.
    """
    level_name = (settings.log_level if settings else "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    logging.getLogger("memories").setLevel(level)
