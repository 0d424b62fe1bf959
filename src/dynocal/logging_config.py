"""
Logging setup for scripts and batch runs.
"""

from pathlib import Path
from typing import Optional
import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str = "INFO", log_file: Optional[str | Path] = None) -> None:
    """Configure root logging.

    Args:
        level: Level name (DEBUG, INFO, WARNING, ...)
        log_file: Optional file receiving a copy of the log
    """
    handlers = [logging.StreamHandler(sys.stdout)]

    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
