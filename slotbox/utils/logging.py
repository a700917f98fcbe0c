"""Logging configuration for slotbox.

User-facing output goes through rich consoles in the CLI layer; this module
configures the ``slotbox`` logger tree used for diagnostics (docker argv,
mount resolution, version detection).

Enable debug logging via:
    - CLI flag: slotbox --verbose
    - Environment: SLOTBOX_DEBUG=1
"""

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

_initialized = False


def _get_log_level() -> int:
    """Determine log level from environment."""
    if os.environ.get("SLOTBOX_DEBUG", "").lower() in ("1", "true", "yes"):
        return logging.DEBUG
    return logging.WARNING


def _rich_handlers(logger: logging.Logger) -> list[RichHandler]:
    return [h for h in logger.handlers if isinstance(h, RichHandler)]


def _init_logging() -> None:
    """Attach a single stderr handler to the slotbox logger (called once)."""
    global _initialized
    if _initialized:
        return

    level = _get_log_level()
    root_logger = logging.getLogger("slotbox")
    root_logger.setLevel(level)

    if not _rich_handlers(root_logger):
        handler = RichHandler(
            console=Console(stderr=True),
            show_time=False,
            show_path=level == logging.DEBUG,
            markup=False,
        )
        handler.setLevel(level)
        root_logger.addHandler(handler)

    root_logger.propagate = False
    _initialized = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a module.

    Args:
        name: Module name (typically __name__).

    Returns:
        Logger under the slotbox namespace.
    """
    _init_logging()

    if not name.startswith("slotbox"):
        name = f"slotbox.{name}"

    return logging.getLogger(name)


def set_debug(enabled: bool = True) -> None:
    """Enable or disable debug logging.

    Args:
        enabled: If True, set log level to DEBUG.
    """
    _init_logging()

    level = logging.DEBUG if enabled else logging.WARNING
    root_logger = logging.getLogger("slotbox")
    root_logger.setLevel(level)
    for handler in _rich_handlers(root_logger):
        handler.setLevel(level)
