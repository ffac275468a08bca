"""
Centralized logging configuration for Gavel.

All loggers live under the `gavel` namespace (`gavel.auction`,
`gavel.treasury`, `gavel.storage.sqlite`, `gavel.cli`, ...). Console output
goes to stderr with colors so it never mixes with CLI results on stdout;
a plain-text `gavel.log` file can be added through configuration.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

import colorlog

ROOT_LOGGER = "gavel"
LOG_FILE = "gavel.log"

CONSOLE_FORMAT = "%(log_color)s%(asctime)s [%(name)s] %(levelname)-8s%(reset)s %(message)s"
FILE_FORMAT = "%(asctime)s [%(name)s] %(levelname)-8s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}


class _StderrHandler(colorlog.StreamHandler):
    """Writes to whatever sys.stderr is at emit time (test runners swap it)."""

    def __init__(self):
        super().__init__(sys.stderr)

    @property
    def stream(self):
        return sys.stderr

    @stream.setter
    def stream(self, value):
        pass


def resolve_level(level: Union[int, str]) -> int:
    """Accept a logging constant or a level name such as "debug"."""
    if isinstance(level, int):
        return level

    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved


class GavelLogger:
    """Owns the handlers of the `gavel` root logger"""

    _initialized = False
    _log_file: Optional[Path] = None

    @classmethod
    def setup(
        cls,
        level: Union[int, str] = logging.INFO,
        log_dir: Optional[str] = None,
        log_to_file: bool = False,
    ):
        """
        Attach the console handler and, optionally, the file handler.

        Does nothing if logging is already configured; call reset() first
        to reconfigure.

        Args:
            level: Logging level, as a constant or a name
            log_dir: Directory for gavel.log. If None, uses ./logs
            log_to_file: Whether to write gavel.log
        """
        if cls._initialized:
            return

        level = resolve_level(level)

        root_logger = logging.getLogger(ROOT_LOGGER)
        root_logger.setLevel(level)
        root_logger.handlers.clear()
        root_logger.addHandler(cls._console_handler(level))

        if log_to_file:
            log_path = Path(log_dir) if log_dir else Path("logs")
            log_path.mkdir(exist_ok=True, parents=True)
            cls._log_file = log_path / LOG_FILE
            root_logger.addHandler(cls._file_handler(cls._log_file, level))

        cls._initialized = True

    @staticmethod
    def _console_handler(level: int) -> logging.Handler:
        handler = _StderrHandler()
        handler.setLevel(level)
        handler.setFormatter(colorlog.ColoredFormatter(
            CONSOLE_FORMAT, datefmt=DATE_FORMAT, log_colors=LOG_COLORS,
        ))
        return handler

    @staticmethod
    def _file_handler(path: Path, level: int) -> logging.Handler:
        handler = logging.FileHandler(path)
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
        return handler

    @classmethod
    def reset(cls):
        """Close and drop all handlers so setup() can run again."""
        root_logger = logging.getLogger(ROOT_LOGGER)
        for handler in list(root_logger.handlers):
            handler.close()
        root_logger.handlers.clear()
        cls._initialized = False
        cls._log_file = None

    @classmethod
    def log_file(cls) -> Optional[Path]:
        """Path of gavel.log when file logging is on."""
        return cls._log_file

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """
        Get a logger for a specific subsystem.

        Args:
            name: Subsystem name (e.g., 'auction', 'treasury', 'storage')

        Returns:
            Logger instance
        """
        if not cls._initialized:
            cls.setup()

        return logging.getLogger(f"{ROOT_LOGGER}.{name}")


# Convenience functions
def get_logger(name: str) -> logging.Logger:
    """Get a logger for a specific subsystem"""
    return GavelLogger.get_logger(name)


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_dir: Optional[str] = None,
    log_to_file: bool = False,
):
    """Reconfigure logging, replacing any implicit default setup"""
    GavelLogger.reset()
    GavelLogger.setup(level=level, log_dir=log_dir, log_to_file=log_to_file)
