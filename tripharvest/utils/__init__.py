"""Utility modules for configuration, logging, validation and errors."""

from .config import (
    AppConfig,
    BrowserOptions,
    ErrorHandlingPolicy,
    ExtractionPolicy,
    PaginationSelectors,
    ScraperConfiguration,
    ScrollOptions,
    SelectorMap,
    ThrottlingConfig,
    Viewport,
    get_config,
    load_config,
    reset_config,
)
from .logger import (
    configure_logging,
    get_logger,
    log_execution_time,
    log_performance,
    log_scrape_complete,
    log_scrape_error,
    log_scrape_start,
    set_log_level,
    log_exception,
)
from .validators import ensure_valid_url, hostname_of, resolve_url, validate_url

__all__ = [
    # Configuration
    "AppConfig",
    "BrowserOptions",
    "ErrorHandlingPolicy",
    "ExtractionPolicy",
    "PaginationSelectors",
    "ScraperConfiguration",
    "ScrollOptions",
    "SelectorMap",
    "ThrottlingConfig",
    "Viewport",
    "get_config",
    "load_config",
    "reset_config",
    # Logging
    "configure_logging",
    "get_logger",
    "log_execution_time",
    "log_performance",
    "log_scrape_complete",
    "log_scrape_error",
    "log_scrape_start",
    "set_log_level",
    "log_exception",
    # Validation
    "ensure_valid_url",
    "hostname_of",
    "resolve_url",
    "validate_url",
]
