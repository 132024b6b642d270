"""Logging configuration."""

import logging
import sys

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"

VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

APP_LOGGER = "pulse_bridge"
BLE_LOGGER = "bleak"


def _resolve_level(level: str) -> tuple[int, bool]:
    """Return (numeric level, whether the name was recognised)."""
    level_upper = level.upper()
    if level_upper not in VALID_LEVELS:
        return logging.INFO, False
    return getattr(logging, level_upper), True


def setup_logging(level: str = "INFO", ble_debug: bool = False) -> None:
    """Configure logging for the bridge.

    Args:
        level: Log level for pulse_bridge loggers (DEBUG, INFO, WARNING, ERROR)
        ble_debug: Also show bleak's own debug output (adapter/D-Bus chatter)
    """
    numeric_level, known = _resolve_level(level)

    # Root stays at WARNING to keep third-party noise out; stderr keeps
    # --list output on stdout clean
    logging.basicConfig(
        level=logging.WARNING,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        stream=sys.stderr,
        force=True,
    )

    app_logger = logging.getLogger(APP_LOGGER)
    app_logger.setLevel(numeric_level)

    logging.getLogger(BLE_LOGGER).setLevel(logging.DEBUG if ble_debug else logging.NOTSET)

    if not known:
        app_logger.warning("Unknown log level '%s', defaulting to INFO", level)
