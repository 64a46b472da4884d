"""
Shared helpers: logging setup and ULID generation.
"""
import logging
import sys

import ulid

from app.core import config

_configured = False


def setup_logging() -> None:
    """Configure application-wide logging once, level taken from LOG_LEVEL."""
    global _configured
    if _configured:
        return
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """
    Return a logger for the given module name.

    Usage:
        log = get_logger(__name__)
    """
    setup_logging()
    return logging.getLogger(name)


def generate_ulid() -> str:
    """Generate a new ULID string (26-character Crockford Base32)."""
    return ulid.new().str
