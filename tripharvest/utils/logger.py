"""Structured logging configuration for TripHarvest.

This module provides colored console logging and rotating file logging
with timing utilities and scrape event helpers.
"""

import logging
import os
import time
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

import colorlog


CONSOLE_FORMAT_COLOR = "%(log_color)s%(levelname)-8s%(reset)s %(blue)s%(name)s%(reset)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _setup_console_handler(level: int) -> logging.Handler:
    """Create and configure colored console handler.

    Args:
        level: Logging level

    Returns:
        Configured console handler
    """
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)

    formatter = colorlog.ColoredFormatter(
        CONSOLE_FORMAT_COLOR,
        datefmt=DATE_FORMAT,
        log_colors={
            'DEBUG': 'cyan',
            'INFO': 'green',
            'WARNING': 'yellow',
            'ERROR': 'red',
            'CRITICAL': 'red,bg_white',
        }
    )

    console_handler.setFormatter(formatter)
    return console_handler


def _setup_file_handler(level: int, log_dir: Optional[Path] = None) -> logging.Handler:
    """Create and configure rotating file handler.

    Args:
        level: Logging level
        log_dir: Directory for log files (default: logs/)

    Returns:
        Configured rotating file handler
    """
    if log_dir is None:
        env_dir = os.environ.get('TRIPHARVEST_LOG_DIR')
        if env_dir:
            log_dir = Path(env_dir)
        else:
            project_root = Path(__file__).parent.parent.parent
            log_dir = project_root / "logs"

    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    log_file = log_dir / "tripharvest.log"

    # Rotating file handler: max 10MB, keep 5 backup files
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
        encoding='utf-8'
    )
    file_handler.setLevel(level)

    formatter = logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT)
    file_handler.setFormatter(formatter)

    return file_handler


def get_logger(name: str, log_dir: Optional[Path] = None, level: Optional[str] = None) -> logging.Logger:
    """Get or create a logger with console and file handlers.

    Args:
        name: Logger name (typically __name__ from calling module)
        log_dir: Directory for log files (default: logs/, or TRIPHARVEST_LOG_DIR)
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
              If None, uses LOG_LEVEL environment variable, defaulting to INFO.
              Pass config.log_level from AppConfig for config-driven logging.

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Only configure if logger has no handlers (avoid duplicate handlers)
    if not logger.handlers:
        if level is not None:
            log_level_str = level.upper()
        else:
            log_level_str = os.environ.get('LOG_LEVEL', 'INFO').upper()
        log_level = getattr(logging, log_level_str, logging.INFO)

        logger.setLevel(log_level)
        logger.addHandler(_setup_console_handler(log_level))
        logger.addHandler(_setup_file_handler(log_level, log_dir))

        # Prevent propagation to root logger
        logger.propagate = False

    return logger


def log_performance(logger: logging.Logger, operation: str, duration: float) -> None:
    """Log performance metrics for an operation.

    Args:
        logger: Logger instance
        operation: Name of the operation
        duration: Duration in seconds
    """
    logger.info(f"Performance: {operation} completed in {duration:.3f}s")


def log_scrape_start(logger: logging.Logger, scraper: str, url: str) -> None:
    """Log the start of a scrape."""
    logger.info(f"[{scraper}] Scrape started: {url}")


def log_scrape_complete(
    logger: logging.Logger,
    scraper: str,
    url: str,
    items_found: int,
    duration: float,
) -> None:
    """Log a successful scrape with its item count and duration.

    Args:
        logger: Logger instance
        scraper: Scraper name
        url: Scraped URL
        items_found: Number of records extracted
        duration: Duration in seconds
    """
    logger.info(f"[{scraper}] Scrape complete: {url} ({items_found} items in {duration:.2f}s)")


def log_scrape_error(logger: logging.Logger, scraper: str, url: str, error: BaseException) -> None:
    """Log a failed scrape. Tracebacks only go out at DEBUG."""
    logger.error(
        f"[{scraper}] Scrape failed: {url}: {error}",
        exc_info=logger.isEnabledFor(logging.DEBUG),
    )


@contextmanager
def log_execution_time(logger: logging.Logger, operation: str):
    """Context manager to automatically log operation execution time.

    Args:
        logger: Logger instance
        operation: Name of the operation

    Usage:
        with log_execution_time(logger, "document parsing"):
            document = HtmlDocument.parse(html, url)
    """
    logger.debug(f"Starting: {operation}")
    start_time = time.time()

    try:
        yield
    finally:
        duration = time.time() - start_time
        logger.debug(f"Completed: {operation} in {duration:.3f}s")


def set_log_level(logger: logging.Logger, level: str) -> None:
    """Change the log level of a logger and all its handlers.

    Args:
        logger: Logger instance
        level: New log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level_upper = level.upper()
    log_level = getattr(logging, level_upper, logging.INFO)

    logger.setLevel(log_level)
    for handler in logger.handlers:
        handler.setLevel(log_level)

    logger.info(f"Log level changed to {level_upper}")


def log_exception(logger: logging.Logger, operation: str, exception: Exception) -> None:
    """Log an exception with context.

    Args:
        logger: Logger instance
        operation: Name of the operation that failed
        exception: The exception that was raised
    """
    logger.error(f"Failed: {operation}: {exception}", exc_info=True)


def configure_logging(
    level: Optional[str] = None,
    log_dir: Optional[Path | str] = None,
    prefix: str = "tripharvest",
) -> list[logging.Logger]:
    """Apply application log settings to loggers already created by get_logger.

    Args:
        level: New log level for every matching logger and its handlers
        log_dir: Directory the file handlers are moved to
        prefix: Logger name prefix to match (the package name by default)

    Returns:
        The loggers that were reconfigured
    """
    configured = []
    for name, candidate in list(logging.Logger.manager.loggerDict.items()):
        if not isinstance(candidate, logging.Logger) or not candidate.handlers:
            continue
        if name != prefix and not name.startswith(f"{prefix}."):
            continue

        if log_dir is not None:
            for handler in list(candidate.handlers):
                if isinstance(handler, RotatingFileHandler):
                    candidate.removeHandler(handler)
                    handler.close()
                    candidate.addHandler(_setup_file_handler(handler.level, Path(log_dir)))
        if level is not None:
            set_log_level(candidate, level)
        configured.append(candidate)

    return configured
