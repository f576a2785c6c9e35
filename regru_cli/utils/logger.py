"""
Centralized logging configuration with colored output
Console logs go to stderr so stdout stays free for command output
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import colorlog


PACKAGE_LOGGER = "regru_cli"

VALID_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def setup_logger(
    name: str = PACKAGE_LOGGER,
    level: str = "WARNING",
    log_file: Optional[str] = None,
    console: bool = True
) -> logging.Logger:
    """
    Set up a logger with colored console output and optional file logging.

    Calling it again for the same logger only adjusts the console level,
    so repeated invocations inside one process never stack handlers.

    Args:
        name: Logger name (the package logger by default)
        level: Console logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path of a file receiving DEBUG and above
        console: Whether to output to stderr

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    console_level = getattr(logging, level.upper())
    # Handlers filter; the logger itself passes everything through
    logger.setLevel(logging.DEBUG)

    # Prevent duplicate handlers
    if logger.handlers:
        for handler in logger.handlers:
            if not isinstance(handler, logging.FileHandler):
                handler.setLevel(console_level)
        return logger

    if console:
        console_handler = colorlog.StreamHandler(sys.stderr)
        console_handler.setLevel(console_level)

        console_formatter = colorlog.ColoredFormatter(
            "%(log_color)s%(levelname)-8s%(reset)s %(blue)s[%(name)s]%(reset)s %(message)s",
            datefmt=None,
            reset=True,
            log_colors={
                'DEBUG': 'cyan',
                'INFO': 'green',
                'WARNING': 'yellow',
                'ERROR': 'red',
                'CRITICAL': 'red,bg_white',
            },
            secondary_log_colors={},
            style='%'
        )
        console_handler.setFormatter(console_formatter)
        logger.addHandler(console_handler)

    if log_file:
        file_path = Path(log_file).expanduser()
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(file_path, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)

        file_formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a module logger.

    Module loggers are children of the package logger and inherit its
    handlers once setup_logger() has run.

    Args:
        name: Logger name (typically __name__ of the module)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def resolve_level(level: str, verbose: bool = False, quiet: bool = False) -> str:
    """Console level after applying --verbose / --quiet"""
    if quiet:
        return "ERROR"
    if verbose:
        return "DEBUG"
    return level
