"""Unit tests for configuration loading and validation."""

import pytest
import yaml
from pydantic import ValidationError

from tripharvest.utils.config import (
    AppConfig,
    BrowserOptions,
    ExtractionPolicy,
    ScraperConfiguration,
    SelectorMap,
    ThrottlingConfig,
    get_config,
    load_config,
    reset_config,
)
from tripharvest.utils.exceptions import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigurationError,
    ConfigValidationError,
)


class TestSelectorMap:
    """Test selector map validation."""

    def test_all_selectors_optional(self):
        """Test an empty selector map is valid."""
        selectors = SelectorMap()
        assert selectors.container is None
        assert selectors.pagination.next_button is None

    def test_blank_selector_is_unset(self):
        """Test blank strings mean "not configured"."""
        selectors = SelectorMap(title="   ", price="")
        assert selectors.title is None
        assert selectors.price is None

    def test_unknown_field_rejected(self):
        """Test typos in selector names are caught."""
        with pytest.raises(ValidationError):
            SelectorMap(titel=".title")

    def test_frozen(self):
        """Test selectors cannot change after construction."""
        selectors = SelectorMap(title=".title")
        with pytest.raises(ValidationError):
            selectors.title = ".other"


class TestThrottlingConfig:
    """Test throttling defaults and bounds."""

    def test_defaults(self):
        """Test default pacing values."""
        throttling = ThrottlingConfig()
        assert throttling.requests_per_minute == 30
        assert throttling.max_concurrent == 2
        assert throttling.retry_attempts == 3
        assert throttling.timeout == 30.0

    def test_requests_per_minute_positive(self):
        """Test zero requests per minute is rejected."""
        with pytest.raises(ValidationError):
            ThrottlingConfig(requests_per_minute=0)

    def test_retry_attempts_at_least_one(self):
        """Test every job gets at least one attempt."""
        with pytest.raises(ValidationError):
            ThrottlingConfig(retry_attempts=0)


class TestBrowserOptions:
    """Test browser option validation."""

    def test_unknown_resource_type(self):
        """Test only Playwright resource types can be blocked."""
        with pytest.raises(ValidationError, match="Unknown resource types"):
            BrowserOptions(blocked_resources=("image", "pictures"))

    def test_duplicate_resource_types_collapsed(self):
        """Test duplicates are removed, order kept."""
        options = BrowserOptions(blocked_resources=("font", "image", "font"))
        assert options.blocked_resources == ("font", "image")

    def test_invalid_strategy(self):
        """Test unknown user agent strategies are rejected."""
        with pytest.raises(ValidationError, match="Invalid user agent strategy"):
            BrowserOptions(user_agent_strategy="sometimes")


class TestExtractionPolicy:
    """Test extraction policy validation."""

    def test_rating_scale_positive(self):
        """Test a non-positive rating scale is rejected."""
        with pytest.raises(ValidationError):
            ExtractionPolicy(rating_scale=0)

    def test_rating_scale_optional(self):
        """Test rating scale defaults to inference."""
        assert ExtractionPolicy().rating_scale is None


class TestScraperConfiguration:
    """Test per-scraper configuration."""

    def test_base_url_trailing_slash_removed(self):
        """Test base URL is normalized."""
        config = ScraperConfiguration(name="Site", base_url="https://example.com/")
        assert config.base_url == "https://example.com"

    def test_base_url_requires_scheme(self):
        """Test base URL must be absolute http(s)."""
        with pytest.raises(ValidationError, match="base_url"):
            ScraperConfiguration(name="Site", base_url="example.com")

    def test_name_required(self):
        """Test an empty name is rejected."""
        with pytest.raises(ValidationError):
            ScraperConfiguration(name="", base_url="https://example.com")

    def test_wait_selector_timeout_bounded(self):
        """Test a ready-selector wait far beyond the navigation timeout is rejected."""
        with pytest.raises(ValidationError, match="wait_selector_timeout"):
            ScraperConfiguration(
                name="Site",
                base_url="https://example.com",
                throttling=ThrottlingConfig(timeout=5.0),
                browser=BrowserOptions(wait_selector=".card", wait_selector_timeout=30.0),
            )

    def test_immutable(self):
        """Test configuration cannot be reassigned."""
        config = ScraperConfiguration(name="Site", base_url="https://example.com")
        with pytest.raises(ValidationError):
            config.name = "Other"


class TestAppConfig:
    """Test application configuration."""

    def test_load_from_yaml(self, tmp_path):
        """Test loading configuration from YAML file."""
        config_data = {
            "log_level": "debug",
            "browser": {"headless": False, "blocked_resources": ["image"]},
            "throttling": {"requests_per_minute": 12, "timeout": 20},
            "user_agents": ["CustomAgent/1.0"],
        }
        config_path = tmp_path / "config.yaml"
        config_path.write_text(yaml.dump(config_data), encoding="utf-8")

        config = load_config(config_path)

        assert config.log_level == "DEBUG"
        assert config.browser.headless is False
        assert config.browser.blocked_resources == ("image",)
        assert config.throttling.requests_per_minute == 12
        assert config.user_agents == ["CustomAgent/1.0"]

    def test_empty_file_uses_defaults(self, tmp_path):
        """Test an empty YAML file gives the defaults."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text("", encoding="utf-8")

        config = load_config(config_path)
        assert config == AppConfig()

    def test_missing_file(self, tmp_path):
        """Test a missing file raises a helpful error."""
        with pytest.raises(ConfigFileNotFoundError) as exc_info:
            load_config(tmp_path / "missing.yaml")
        assert "config.example.yaml" in exc_info.value.message

    def test_invalid_yaml(self, tmp_path):
        """Test unparsable YAML is reported as a configuration error."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text("browser: [unclosed", encoding="utf-8")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config(config_path)

    def test_invalid_values(self, tmp_path):
        """Test schema violations are reported as configuration errors."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text(yaml.dump({"log_level": "LOUD"}), encoding="utf-8")

        with pytest.raises(ConfigValidationError, match="Invalid configuration") as exc_info:
            load_config(config_path)

        assert isinstance(exc_info.value, ConfigError)
        assert exc_info.value.code == "CONFIG_VALIDATION"
        assert exc_info.value.context["field"] == "log_level"
        assert exc_info.value.context["value"] == "LOUD"
        assert exc_info.value.context["path"] == str(config_path)

    def test_env_var_path(self, tmp_path, monkeypatch):
        """Test TRIPHARVEST_CONFIG points at the config file."""
        config_path = tmp_path / "custom.yaml"
        config_path.write_text(yaml.dump({"log_level": "WARNING"}), encoding="utf-8")
        monkeypatch.setenv("TRIPHARVEST_CONFIG", str(config_path))

        assert load_config().log_level == "WARNING"

    def test_get_config_caches(self, tmp_path):
        """Test get_config returns the same instance until reset."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text("", encoding="utf-8")
        reset_config()
        try:
            first = get_config(config_path)
            assert get_config() is first
            assert get_config(config_path, reload=True) is not first
        finally:
            reset_config()
