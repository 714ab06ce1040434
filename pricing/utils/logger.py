"""
Logging configuration for the pricing service.

All modules log through children of the ``pricing`` logger so a single
handler (stdout) and level applies to the whole service. The level comes from
the LOG_LEVEL environment variable and can be changed at runtime with
``set_level`` (used when the YAML config names a level).
"""
import logging
import os
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logger = logging.getLogger("pricing")


def _install_handler(root: logging.Logger, level: str) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(handler)


logger.setLevel(LOG_LEVEL)
if not logger.handlers:
    _install_handler(logger, LOG_LEVEL)

# Prevent propagation to root logger (avoid duplicate logs under uvicorn)
logger.propagate = False


def set_level(level: str) -> None:
    """Change the level of the service logger and its handlers."""
    level = level.upper()
    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)


def get_logger(name: str = None) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Optional name for the logger (will be appended to 'pricing')

    Returns:
        Logger instance
    """
    if name:
        return logging.getLogger(f"pricing.{name}")
    return logger
