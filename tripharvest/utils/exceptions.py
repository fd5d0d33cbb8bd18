"""
Custom exception hierarchy for TripHarvest.

Provides a structured exception hierarchy for different error scenarios:
- AppException: Base for all application errors
- ConfigError: Configuration-related errors
- ScraperError: Navigation, extraction and admission-control errors
- ValidationError: Input validation errors

Each exception includes:
- Descriptive message
- Optional error code for programmatic handling
- Optional context dictionary for debugging

Example:
    >>> from tripharvest.utils.exceptions import NavigationError
    >>> raise NavigationError("HTTP 503: Failed to load page", url=url, status_code=503)
"""

from __future__ import annotations

from typing import Any, Dict, Optional


# ============================================
# Base Exception
# ============================================


class AppException(Exception):
    """
    Base exception for all TripHarvest application errors.

    All custom exceptions inherit from this class, allowing:
    - Catch-all handling of application errors
    - Consistent error structure across the app
    - Error code and context support

    Attributes:
        message: Human-readable error description.
        code: Optional error code for programmatic handling.
        context: Optional dictionary with debugging context.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Initialize the exception.

        Args:
            message: Human-readable error description.
            code: Optional error code (e.g., "CONFIG_INVALID").
            context: Optional dict with additional debugging info.
        """
        self.message = message
        self.code = code or self._default_code()
        self.context = context or {}
        super().__init__(self.message)

    def _default_code(self) -> str:
        """Generate default error code from class name."""
        # CamelCase -> UPPER_SNAKE_CASE
        name = self.__class__.__name__
        code = ""
        for i, char in enumerate(name):
            if char.isupper() and i > 0:
                code += "_"
            code += char.upper()
        return code

    def __str__(self) -> str:
        """String representation with code if available."""
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def __repr__(self) -> str:
        """Detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code!r}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "context": self.context,
        }


# ============================================
# Configuration Errors
# ============================================


class ConfigError(AppException):
    """
    Base exception for configuration-related errors.

    Raised when there are issues with:
    - Loading configuration files
    - Parsing YAML
    - Validating configuration values
    """

    pass


class ConfigFileNotFoundError(ConfigError):
    """Raised when a required configuration file is not found."""

    def __init__(
        self,
        message: str = "Configuration file not found",
        path: Optional[str] = None,
        **kwargs,
    ) -> None:
        context = kwargs.pop("context", {})
        if path:
            context["path"] = path
        super().__init__(message, code="CONFIG_FILE_NOT_FOUND", context=context, **kwargs)


class ConfigurationError(ConfigError):
    """
    Raised when configuration is invalid or cannot be parsed.

    Example:
        >>> raise ConfigurationError(
        ...     "Invalid YAML in config file",
        ...     context={"path": "config/config.yaml"}
        ... )
    """

    def __init__(
        self,
        message: str = "Invalid configuration",
        **kwargs,
    ) -> None:
        super().__init__(message, code="CONFIG_INVALID", **kwargs)


class ConfigValidationError(ConfigError):
    """
    Raised when configuration values fail validation.

    Example:
        >>> raise ConfigValidationError(
        ...     "requests_per_minute must be positive",
        ...     field="throttling.requests_per_minute",
        ...     value=-1
        ... )
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Any = None,
        **kwargs,
    ) -> None:
        context = kwargs.pop("context", {})
        if field:
            context["field"] = field
        if value is not None:
            context["value"] = value
        super().__init__(message, code="CONFIG_VALIDATION", context=context, **kwargs)


# ============================================
# Scraper Errors
# ============================================


class ScraperError(AppException):
    """
    Base exception for web scraping errors.

    Raised when there are issues with:
    - Page navigation
    - Admission control (rate limiting, retries)
    - Record extraction
    """

    pass


class NavigationError(ScraperError):
    """
    Raised when a page cannot be loaded.

    Covers a missing response, a non-2xx/304 status, or a timeout.
    Aborts the scrape of that URL only.

    Example:
        >>> raise NavigationError(
        ...     "HTTP 503: Failed to load https://example.com",
        ...     url="https://example.com",
        ...     status_code=503
        ... )
    """

    def __init__(
        self,
        message: str = "Navigation failed",
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs,
    ) -> None:
        context = kwargs.pop("context", {})
        if url:
            context["url"] = url
        if status_code:
            context["status_code"] = status_code
        self.url = url
        self.status_code = status_code
        code = kwargs.pop("code", "NAVIGATION_ERROR")
        super().__init__(message, code=code, context=context, **kwargs)


class NavigationTimeoutError(NavigationError):
    """Raised when a navigation exceeds its configured timeout."""

    def __init__(
        self,
        message: str = "Navigation timed out",
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        **kwargs,
    ) -> None:
        context = kwargs.pop("context", {})
        if timeout is not None:
            context["timeout_seconds"] = timeout
        super().__init__(
            message,
            url=url,
            code="NAVIGATION_TIMEOUT",
            context=context,
            **kwargs,
        )


class ExtractionError(ScraperError):
    """
    Raised while building a single record from a content block.

    Caught at the per-record boundary, logged and skipped. Never aborts
    the extraction of other records on the same page.
    """

    def __init__(
        self,
        message: str = "Failed to extract record",
        index: Optional[int] = None,
        selector: Optional[str] = None,
        **kwargs,
    ) -> None:
        context = kwargs.pop("context", {})
        if index is not None:
            context["index"] = index
        if selector:
            context["selector"] = selector
        super().__init__(message, code="EXTRACTION_ERROR", context=context, **kwargs)


class AdmissionError(ScraperError):
    """Base exception for admission-controller failures."""

    pass


class RetriesExhaustedError(AdmissionError):
    """
    Raised when an operation failed on every allowed attempt.

    The underlying error of the final attempt is kept as ``last_error``
    (and chained as ``__cause__``).
    """

    def __init__(
        self,
        message: str = "Operation failed after retries",
        attempts: Optional[int] = None,
        last_error: Optional[BaseException] = None,
        **kwargs,
    ) -> None:
        context = kwargs.pop("context", {})
        if attempts is not None:
            context["attempts"] = attempts
        if last_error is not None:
            context["last_error"] = str(last_error)
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(message, code="RETRIES_EXHAUSTED", context=context, **kwargs)


class JobDroppedError(AdmissionError):
    """Raised to the awaiter of a job that was dropped before it started."""

    def __init__(
        self,
        message: str = "Job dropped before it started",
        reason: Optional[str] = None,
        **kwargs,
    ) -> None:
        context = kwargs.pop("context", {})
        if reason:
            context["reason"] = reason
        super().__init__(message, code="JOB_DROPPED", context=context, **kwargs)


class AdmissionClosedError(AdmissionError):
    """Raised when work is scheduled on a stopped or draining controller."""

    def __init__(
        self,
        message: str = "Admission controller is not accepting new work",
        **kwargs,
    ) -> None:
        super().__init__(message, code="ADMISSION_CLOSED", **kwargs)


# ============================================
# Validation Errors
# ============================================


class ValidationError(AppException):
    """
    Base exception for input validation errors.

    Raised when user input or data fails validation.
    """

    pass


class InvalidURLError(ValidationError):
    """Raised when URL is invalid."""

    def __init__(
        self,
        message: str = "Invalid URL",
        url: Optional[str] = None,
        **kwargs,
    ) -> None:
        context = kwargs.pop("context", {})
        if url:
            context["url"] = url
        super().__init__(message, code="INVALID_URL", context=context, **kwargs)


# Alias for common import pattern
TripHarvestError = AppException
