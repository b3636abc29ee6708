"""Logging setup for ReviewDeck."""

import logging
import sys

from .config import get_settings


def configure_logging(level: str | None = None) -> None:
    """Configure logging for the CLI and library consumers.

    Args:
        level: Log level name. Defaults to the configured ``log_level``.
    """
    level = level or get_settings().log_level

    # Reset root logger handlers to allow reconfiguration
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )

    logging.getLogger("reviewdeck").setLevel(level)

    # Silence noisy libraries
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
