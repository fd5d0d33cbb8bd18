"""Configuration management system using Pydantic v2 and YAML.

This module provides the per-scraper ``ScraperConfiguration`` schema
(selectors, throttling, browser options, extraction and error policies)
and the application-wide ``AppConfig`` loaded from YAML.
"""

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from tripharvest.utils.exceptions import ConfigFileNotFoundError, ConfigurationError, ConfigValidationError


VALID_RESOURCE_TYPES = {
    "document", "stylesheet", "image", "media", "font", "script",
    "texttrack", "xhr", "fetch", "eventsource", "websocket", "manifest", "other",
}


class _FrozenModel(BaseModel):
    """Base for configuration sections that must not change after construction."""

    model_config = ConfigDict(frozen=True, extra="forbid")


class PaginationSelectors(_FrozenModel):
    """Selectors used to walk a paginated listing."""

    next_button: Optional[str] = Field(default=None, description="Link to the next page")
    page_numbers: Optional[str] = Field(default=None, description="Numbered page links")


class SelectorMap(_FrozenModel):
    """Named content field -> CSS selector.

    Every selector is optional; a missing or non-matching selector leaves
    the corresponding field absent on the record.
    """

    container: Optional[str] = Field(default=None, description="One element per record")
    id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    link: Optional[str] = None
    price: Optional[str] = None
    rating: Optional[str] = None
    review_count: Optional[str] = None
    images: Optional[str] = None
    location: Optional[str] = None
    category: Optional[str] = None

    # Activities
    duration: Optional[str] = None
    highlights: Optional[str] = None
    includes: Optional[str] = None
    excludes: Optional[str] = None
    meeting_point: Optional[str] = None
    cancel_policy: Optional[str] = None
    group_size: Optional[str] = None
    availability: Optional[str] = None
    difficulty: Optional[str] = None

    # Accommodations
    star_rating: Optional[str] = None
    amenities: Optional[str] = None
    room_types: Optional[str] = None
    room_name: Optional[str] = None
    room_price: Optional[str] = None
    room_capacity: Optional[str] = None
    room_amenities: Optional[str] = None
    policies: Optional[str] = None
    address: Optional[str] = None
    check_in: Optional[str] = None
    check_out: Optional[str] = None
    nearby_attractions: Optional[str] = None

    # Destinations
    attractions: Optional[str] = None
    overview: Optional[str] = None
    best_time_to_visit: Optional[str] = None
    weather: Optional[str] = None
    country: Optional[str] = None

    pagination: PaginationSelectors = Field(default_factory=PaginationSelectors)

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        """Treat empty selector strings as "not configured"."""
        if isinstance(v, str) and not v.strip():
            return None
        return v


class ThrottlingConfig(_FrozenModel):
    """Request pacing and retry settings. All times are in seconds."""

    requests_per_minute: int = Field(default=30, ge=1, description="Reservoir size per minute")
    max_concurrent: int = Field(default=2, ge=1, description="Simultaneous navigations")
    delay_between_requests: float = Field(default=2.0, ge=0.0, description="Pause between URLs of a batch")
    retry_attempts: int = Field(default=3, ge=1, description="Failed attempts tolerated before giving up")
    retry_delay: float = Field(default=2.0, ge=0.0, description="Base backoff delay")
    timeout: float = Field(default=30.0, gt=0.0, description="Navigation timeout")


class Viewport(_FrozenModel):
    """Browser viewport size in CSS pixels."""

    width: int = Field(default=1920, ge=320)
    height: int = Field(default=1080, ge=240)


class ScrollOptions(_FrozenModel):
    """Bounded scroll loop used to trigger lazily-loaded content."""

    enabled: bool = True
    step_px: int = Field(default=100, ge=1)
    step_delay: float = Field(default=0.1, ge=0.0)
    max_steps: int = Field(default=20, ge=0)
    settle_time: float = Field(default=1.0, ge=0.0)


class BrowserOptions(_FrozenModel):
    """Options for the automated browser and its pages."""

    headless: bool = True
    viewport: Viewport = Field(default_factory=Viewport)
    blocked_resources: tuple[str, ...] = Field(default=("image", "font", "media"))
    wait_selector: Optional[str] = Field(default=None, description="Selector signalling the page is ready")
    wait_selector_timeout: float = Field(default=10.0, gt=0.0)
    wait_time: float = Field(default=0.0, ge=0.0, description="Fixed settle delay after load")
    content_wait_timeout: float = Field(default=5.0, ge=0.0)
    scroll: ScrollOptions = Field(default_factory=ScrollOptions)
    rotate_user_agents: bool = True
    user_agent_strategy: str = Field(default="random")
    user_agent: Optional[str] = Field(default=None, description="Fixed user agent when rotation is off")
    launch_args: tuple[str, ...] = Field(
        default=(
            "--disable-blink-features=AutomationControlled",
            "--no-sandbox",
            "--disable-dev-shm-usage",
        )
    )

    @field_validator("blocked_resources")
    @classmethod
    def validate_blocked_resources(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Only Playwright resource types can be blocked."""
        unknown = [r for r in v if r not in VALID_RESOURCE_TYPES]
        if unknown:
            raise ValueError(f"Unknown resource types: {unknown}. Choose from: {sorted(VALID_RESOURCE_TYPES)}")
        return tuple(dict.fromkeys(v))

    @field_validator("user_agent_strategy")
    @classmethod
    def validate_strategy(cls, v: str) -> str:
        valid = ["round_robin", "random", "weighted", "mobile_ratio"]
        if v not in valid:
            raise ValueError(f"Invalid user agent strategy. Choose from: {valid}")
        return v


class ExtractionPolicy(_FrozenModel):
    """How much to extract and how to interpret provider values."""

    max_pages: int = Field(default=5, ge=1, description="Default page limit for paginated scrapes")
    max_images: int = Field(default=5, ge=0)
    rating_scale: Optional[float] = Field(
        default=None,
        description="Provider rating scale (5, 10, 100). Inferred from the value when unset",
    )
    source: Optional[str] = Field(default=None, description="Source label stored in record metadata")

    @field_validator("rating_scale")
    @classmethod
    def validate_rating_scale(cls, v: Optional[float]) -> Optional[float]:
        if v is not None and v <= 0:
            raise ValueError("rating_scale must be positive")
        return v


class ErrorHandlingPolicy(_FrozenModel):
    """Per-record and per-navigation error handling."""

    skip_on_error: bool = True
    log_errors: bool = True
    max_errors: int = Field(default=10, ge=0, description="Per-page record failures before giving up on a page")
    capture_screenshots: bool = True


class ScraperConfiguration(_FrozenModel):
    """Immutable configuration of one scraper instance.

    Validated once at construction; assigning to any field raises.
    """

    name: str = Field(..., min_length=1)
    base_url: str
    selectors: SelectorMap = Field(default_factory=SelectorMap)
    throttling: ThrottlingConfig = Field(default_factory=ThrottlingConfig)
    browser: BrowserOptions = Field(default_factory=BrowserOptions)
    extraction: ExtractionPolicy = Field(default_factory=ExtractionPolicy)
    error_handling: ErrorHandlingPolicy = Field(default_factory=ErrorHandlingPolicy)

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Ensure base URL is absolute http(s)."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v.rstrip("/")

    @model_validator(mode="after")
    def validate_throttling(self) -> "ScraperConfiguration":
        """A navigation timeout shorter than the ready-selector wait can never succeed."""
        if self.browser.wait_selector and self.browser.wait_selector_timeout > self.throttling.timeout * 2:
            raise ValueError("browser.wait_selector_timeout must not exceed twice throttling.timeout")
        return self


class AppConfig(BaseModel):
    """Root application configuration."""

    log_level: str = Field(default="INFO", description="Logging level")
    log_dir: Optional[str] = Field(default=None, description="Directory for log files (default: logs/)")
    browser: BrowserOptions = Field(default_factory=BrowserOptions)
    throttling: ThrottlingConfig = Field(default_factory=ThrottlingConfig)
    user_agents: list[str] = Field(default_factory=list, description="Extra user agent strings for rotation")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Choose from: {valid_levels}")
        return v_upper


# Singleton pattern for configuration
_config: Optional[AppConfig] = None


def load_config(config_path: Optional[Path | str] = None) -> AppConfig:
    """Load and validate configuration from YAML file.

    Args:
        config_path: Path to configuration file. Defaults to config/config.yaml
                    relative to project root, or TRIPHARVEST_CONFIG env var

    Returns:
        Validated AppConfig instance

    Raises:
        ConfigFileNotFoundError: If config file doesn't exist
        ConfigurationError: If the file is not valid YAML
        ConfigValidationError: If a value fails validation
    """
    if config_path is None:
        env_config_path = os.environ.get('TRIPHARVEST_CONFIG')
        if env_config_path:
            config_path = Path(env_config_path)
        else:
            project_root = Path(__file__).parent.parent.parent
            config_path = project_root / "config" / "config.yaml"
    else:
        config_path = Path(config_path)

    if not config_path.exists():
        example_path = config_path.parent / "config.example.yaml"
        raise ConfigFileNotFoundError(
            f"Configuration file not found: {config_path}\n"
            f"Please copy {example_path} to {config_path} and customize it.\n"
            f"Alternatively, set the TRIPHARVEST_CONFIG environment variable to the config file path.",
            path=str(config_path),
        )

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config_dict = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Invalid YAML in config file: {e}",
            context={"path": str(config_path)},
        ) from e

    try:
        return AppConfig.model_validate(config_dict)
    except ValidationError as e:
        first = e.errors()[0]
        raise ConfigValidationError(
            f"Invalid configuration in {config_path}: {e}",
            field=".".join(str(part) for part in first["loc"]) or None,
            value=first.get("input"),
            context={"path": str(config_path)},
        ) from e


def get_config(config_path: Optional[Path | str] = None, reload: bool = False) -> AppConfig:
    """Get configuration instance (singleton pattern).

    Args:
        config_path: Path to configuration file (only used on first call or if reload=True)
        reload: Force reload of configuration

    Returns:
        Cached or newly loaded AppConfig instance
    """
    global _config

    if _config is None or reload:
        _config = load_config(config_path)

    return _config


def reset_config() -> None:
    """Reset cached configuration (useful for testing)."""
    global _config
    _config = None
