"""Unit tests for records, result envelopes, errors and URL validation."""

import pytest
from pydantic import ValidationError

from tripharvest.domain.entities import (
    Accommodation,
    Activity,
    Coordinates,
    GroupSize,
    RoomType,
    ScrapingResult,
)
from tripharvest.utils.exceptions import (
    AppException,
    InvalidURLError,
    NavigationError,
    NavigationTimeoutError,
    RetriesExhaustedError,
)
from tripharvest.utils.validators import ensure_valid_url, hostname_of, resolve_url, validate_url


class TestContentRecords:
    """Test record validation and helpers."""

    def test_only_url_and_title_required(self):
        activity = Activity(url="https://example.com/rome", title="  Old   Town Walk ")
        assert activity.title == "Old Town Walk"
        assert activity.price is None
        assert activity.images == []
        assert activity.id

    def test_blank_title_rejected(self):
        with pytest.raises(ValidationError):
            Activity(url="https://example.com", title="   ")

    def test_rating_bounds(self):
        """Test ratings live on the 0-5 scale."""
        with pytest.raises(ValidationError):
            Activity(url="https://example.com", title="Tour", rating=8.6)

    def test_negative_price_rejected(self):
        with pytest.raises(ValidationError):
            Activity(url="https://example.com", title="Tour", price=-1)

    def test_group_size_bounds(self):
        """Test min may not exceed max."""
        assert GroupSize(min=2, max=12).max == 12
        assert GroupSize(max=8).min is None
        with pytest.raises(ValidationError):
            GroupSize(min=10, max=2)

    def test_coordinates_range(self):
        with pytest.raises(ValidationError):
            Coordinates(lat=91, lng=0)

    def test_helpers_keep_values_unique(self):
        activity = Activity(url="https://example.com", title="Tour")
        activity.add_tag("tour")
        activity.add_tag("tour")
        activity.add_highlight("Sistine Chapel")
        activity.add_highlight("Sistine Chapel")
        assert activity.tags == ["tour"]
        assert activity.highlights == ["Sistine Chapel"]

    def test_room_types_unique_by_name(self):
        hotel = Accommodation(url="https://example.com", title="Hotel", star_rating=4)
        hotel.add_room_type(RoomType(name="Double", price=120))
        hotel.add_room_type(RoomType(name="Double", price=99))
        assert len(hotel.room_types) == 1
        assert hotel.room_types[0].price == 120


class TestScrapingResult:
    """Test the result envelope invariants."""

    def test_ok_counts_records(self):
        records = [Activity(url="https://example.com", title=f"Tour {i}") for i in range(3)]
        result = ScrapingResult.ok("https://example.com", records, processing_time=1.5)

        assert result.success
        assert result.metadata.items_found == 3
        assert result.metadata.pages_crawled == 1
        assert result.errors == []

    def test_mismatched_count_rejected(self):
        """Test a successful result must count exactly its records."""
        with pytest.raises(ValidationError):
            ScrapingResult(
                success=True,
                data=[],
                metadata={"url": "https://example.com", "items_found": 2},
            )

    def test_failed_carries_errors(self):
        result = ScrapingResult.failed("https://example.com", ["HTTP 404"])
        assert not result.success
        assert result.data == []
        assert result.metadata.items_found == 0
        assert result.errors == ["HTTP 404"]

    def test_failed_without_errors_gets_placeholder(self):
        result = ScrapingResult.failed("https://example.com", [])
        assert result.errors == ["Unknown error"]

    def test_failure_requires_error(self):
        with pytest.raises(ValidationError):
            ScrapingResult(success=False, metadata={"url": "https://example.com"})


class TestExceptions:
    """Test the error hierarchy."""

    def test_str_includes_code(self):
        error = NavigationError("HTTP 503: Failed to load", url="https://example.com", status_code=503)
        assert str(error) == "[NAVIGATION_ERROR] HTTP 503: Failed to load"
        assert error.context == {"url": "https://example.com", "status_code": 503}

    def test_timeout_is_navigation_error(self):
        error = NavigationTimeoutError("slow", url="https://example.com", timeout=30)
        assert isinstance(error, NavigationError)
        assert error.code == "NAVIGATION_TIMEOUT"
        assert error.context["timeout_seconds"] == 30

    def test_default_code_from_class_name(self):
        class CustomProblem(AppException):
            pass

        assert CustomProblem("x").code == "CUSTOM_PROBLEM"

    def test_to_dict(self):
        error = RetriesExhaustedError(attempts=3, last_error=ValueError("boom"))
        data = error.to_dict()
        assert data["error_type"] == "RetriesExhaustedError"
        assert data["code"] == "RETRIES_EXHAUSTED"
        assert data["context"] == {"attempts": 3, "last_error": "boom"}


class TestValidators:
    """Test URL validation helpers."""

    @pytest.mark.parametrize(
        "url, expected",
        [
            ("https://www.getyourguide.com/rome-l33/", True),
            ("http://localhost:8000/x", True),
            ("ftp://example.com", False),
            ("not-a-valid-url", False),
            ("", False),
            (None, False),
        ],
    )
    def test_validate_url(self, url, expected):
        assert validate_url(url) is expected

    def test_ensure_valid_url(self):
        assert ensure_valid_url("  https://example.com/a ") == "https://example.com/a"
        with pytest.raises(InvalidURLError) as exc_info:
            ensure_valid_url("example.com")
        assert exc_info.value.context["url"] == "example.com"

    def test_hostname_of(self):
        assert hostname_of("https://WWW.Booking.com/hotel") == "www.booking.com"
        assert hostname_of("garbage") == ""

    def test_resolve_url(self):
        assert resolve_url("/a", "https://example.com/x/") == "https://example.com/a"
        assert resolve_url("b", "https://example.com/x/") == "https://example.com/x/b"
        assert resolve_url("mailto:a@b.c", "https://example.com") is None
        assert resolve_url(None, "https://example.com") is None
