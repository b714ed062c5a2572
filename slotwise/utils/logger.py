# File: slotwise/utils/logger.py
"""
Logging for Slotwise.

All handlers live on the package logger "slotwise". Module and class loggers
are its children and only propagate, so a worker thread logging from
`slotwise.services.busy_times` ends up in the same console and file output
as the engine. The file format carries the thread name because busy-time and
limit reads run on named pool threads ("busy-<host>", "limits").
"""

import logging
import sys
from datetime import datetime
from typing import Optional

from slotwise.core.config_manager import Config

PACKAGE_LOGGER = "slotwise"

CONSOLE_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'
FILE_FORMAT = '%(asctime)s | %(levelname)-8s | %(threadName)s | %(name)s:%(funcName)s:%(lineno)d | %(message)s'


def _level_from_config() -> int:
    return getattr(logging, Config.LOG_LEVEL, logging.INFO)


def configure_logging(level: Optional[int] = None, log_to_file: Optional[bool] = None) -> logging.Logger:
    """
    Attach console (and optionally file) handlers to the package logger.

    Runs once; later calls only return the configured logger.

    Args:
        level: Console level (default: Config.LOG_LEVEL)
        log_to_file: Write a daily file under Config.LOGS_DIR (default: Config.LOG_TO_FILE)

    Returns:
        The "slotwise" logger
    """
    root = logging.getLogger(PACKAGE_LOGGER)
    if root.handlers:
        return root

    if level is None:
        level = _level_from_config()
    if log_to_file is None:
        log_to_file = Config.LOG_TO_FILE

    # The package logger passes everything; handlers filter
    root.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt='%H:%M:%S'))
    root.addHandler(console_handler)

    if log_to_file:
        try:
            Config.LOGS_DIR.mkdir(parents=True, exist_ok=True)
            log_file = Config.LOGS_DIR / f"slotwise_{datetime.now().strftime('%Y%m%d')}.log"
            file_handler = logging.FileHandler(log_file, encoding='utf-8')
        except OSError as e:
            root.warning(f"File logging disabled, {Config.LOGS_DIR} is not writable: {e}")
        else:
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
            root.addHandler(file_handler)

    return root


def set_console_level(level: int) -> None:
    """Change the console verbosity at runtime (e.g. for --verbose)."""
    root = configure_logging()
    for handler in root.handlers:
        if not isinstance(handler, logging.FileHandler):
            handler.setLevel(level)


def setup_logger(name: str = PACKAGE_LOGGER) -> logging.Logger:
    """
    Logger inside the "slotwise" hierarchy.

    Names outside the package (e.g. "__main__" of a script) are nested under
    it so their records reach the package handlers.
    """
    configure_logging()
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)


class LoggerMixin:
    """Mixin to add logging capability to any class."""

    @property
    def logger(self) -> logging.Logger:
        if not hasattr(self, '_logger'):
            self._logger = setup_logger(f"{self.__class__.__module__}.{self.__class__.__name__}")
        return self._logger
