"""Logging utilities for RoadYear.

Every module logs through its own named logger with a console handler and,
for pipeline runs, an optional log file.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(
    name: str,
    level: str = "INFO",
    log_file: Optional[Path] = None,
    format_string: Optional[str] = None,
) -> logging.Logger:
    """Set up a logger with console and optional file output.

    Args:
        name: Logger name (typically __name__ of calling module)
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file. If None, only logs to console.
        format_string: Optional custom format string. If None, uses default.

    Returns:
        Configured logger instance

    Example:
        >>> from roadyear.utils.logging import setup_logger
        >>> logger = setup_logger(__name__, level="DEBUG")
        >>> logger.info("Sampling 1,204 roads")
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))

    # Loggers are shared process-wide; only attach handlers once
    if logger.handlers:
        return logger

    formatter = logging.Formatter(format_string or DEFAULT_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level.upper()))
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file is not None:
        add_file_handler(logger, log_file, level=level, format_string=format_string)

    return logger


def add_file_handler(
    logger: logging.Logger,
    log_file: Path,
    level: str = "INFO",
    format_string: Optional[str] = None,
) -> None:
    """Attach a file handler to an already configured logger.

    Args:
        logger: Logger to extend
        log_file: Destination file, parent folders are created
        level: Logging level for the file handler
        format_string: Optional custom format string
    """
    log_file = Path(log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(getattr(logging, level.upper()))
    file_handler.setFormatter(
        logging.Formatter(format_string or DEFAULT_FORMAT, datefmt=DATE_FORMAT)
    )
    logger.addHandler(file_handler)

    logger.info(f"Logging to file: {log_file}")


def get_logger(name: str) -> logging.Logger:
    """Get an existing logger or create a new one with defaults.

    Args:
        name: Logger name (typically __name__ of calling module)

    Returns:
        Logger instance
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        return setup_logger(name)

    return logger


def set_package_level(level: str, package: str = "roadyear") -> None:
    """Change the level of every logger (and handler) under ``package``.

    Used by the command line scripts for ``--verbose``.
    """
    numeric = getattr(logging, level.upper())
    for name, logger in logging.Logger.manager.loggerDict.items():
        if not isinstance(logger, logging.Logger):
            continue
        if name == package or name.startswith(package + "."):
            logger.setLevel(numeric)
            for handler in logger.handlers:
                handler.setLevel(numeric)
