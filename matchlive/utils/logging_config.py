"""Logging setup for the web entry point."""
import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the ``matchlive`` logger."""
    logger = logging.getLogger("matchlive")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    if any(getattr(h, "_matchlive_handler", False) for h in logger.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._matchlive_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
