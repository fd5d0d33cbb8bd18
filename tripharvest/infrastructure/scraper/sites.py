"""
Built-in site definitions.

Each site pairs a ``ScraperConfiguration`` (selectors, pacing, browser
options) with the extractor that understands its markup. The registry
routes URLs to these by hostname.
"""

from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import urlparse

from tripharvest.domain.interfaces import ContentExtractor
from tripharvest.infrastructure.scraper.parsers import (
    AccommodationExtractor,
    ActivityExtractor,
    DestinationExtractor,
    GenericTourExtractor,
    SelectorContext,
)
from tripharvest.utils.config import (
    BrowserOptions,
    ErrorHandlingPolicy,
    ExtractionPolicy,
    PaginationSelectors,
    ScraperConfiguration,
    SelectorMap,
    ThrottlingConfig,
)


# Listing pages render client-side; block what the extractors never read.
LISTING_BLOCKED_RESOURCES = ("image", "stylesheet", "font")


@dataclass(frozen=True)
class SiteDefinition:
    """
    A routable site.

    Attributes:
        key: Routing key, also the registry cache key.
        host_pattern: Substring matched against the URL hostname. ``None``
            for the catch-all generic site.
        configuration: Builds the site configuration for a requested URL.
        extractor: Builds the extractor for a configuration.
    """
    key: str
    host_pattern: Optional[str]
    configuration: Callable[[str], ScraperConfiguration]
    extractor: Callable[[ScraperConfiguration], ContentExtractor]

    def matches(self, hostname: str) -> bool:
        return self.host_pattern is not None and self.host_pattern in hostname


def selector_context(config: ScraperConfiguration) -> SelectorContext:
    """Selector context for the site extractors, labelled with the site name."""
    return SelectorContext(
        selectors=config.selectors,
        base_url=config.base_url,
        extraction=config.extraction,
        error_handling=config.error_handling,
        source=config.extraction.source or config.name,
    )


# =========================================
# GetYourGuide
# =========================================

def getyourguide_config(url: str = "") -> ScraperConfiguration:
    return ScraperConfiguration(
        name="GetYourGuide",
        base_url="https://www.getyourguide.com",
        selectors=SelectorMap(
            container='[data-test-id="tour-card"]',
            title='[data-test-id="tour-title"]',
            description='[data-test-id="tour-description"]',
            price='[data-test-id="price"]',
            rating='[data-test-id="rating"]',
            images='img[data-test-id="tour-image"]',
            duration='[data-test-id="duration"]',
            highlights='[data-test-id="highlights"] li',
            location='[data-test-id="location"]',
            availability='[data-test-id="availability"]',
            includes='[data-test-id="includes"] li',
            excludes='[data-test-id="excludes"] li',
            meeting_point='[data-test-id="meeting-point"]',
            cancel_policy='[data-test-id="cancellation"]',
            group_size='[data-test-id="group-size"]',
            pagination=PaginationSelectors(
                next_button='a[aria-label="Next page"], button[aria-label="Next page"]',
                page_numbers=".pagination__page",
            ),
        ),
        throttling=ThrottlingConfig(
            requests_per_minute=18,
            max_concurrent=2,
            delay_between_requests=3.5,
            retry_attempts=3,
            retry_delay=2.5,
            timeout=35.0,
        ),
        browser=BrowserOptions(
            blocked_resources=LISTING_BLOCKED_RESOURCES,
            wait_selector='[data-test-id="tour-card"]',
            wait_time=2.5,
        ),
        extraction=ExtractionPolicy(max_pages=4),
        error_handling=ErrorHandlingPolicy(max_errors=5),
    )


# =========================================
# TripAdvisor
# =========================================

def tripadvisor_config(url: str = "") -> ScraperConfiguration:
    return ScraperConfiguration(
        name="TripAdvisor",
        base_url="https://www.tripadvisor.com",
        selectors=SelectorMap(
            container='[data-test-target="HR_CC_CARD"]',
            title='[data-test-target="experience-card-title"]',
            description='[data-test-target="experience-card-description"]',
            price='[data-test-target="price-from"]',
            rating='[data-test-target="rating-circle"]',
            images='img[src*="media"]',
            duration='[data-test-target="duration"]',
            highlights='[data-test-target="highlights"] li',
            location='[data-test-target="location"]',
            availability='[data-test-target="availability"]',
            pagination=PaginationSelectors(
                next_button='a[aria-label="Next page"]',
                page_numbers=".pageNumbers a",
            ),
        ),
        throttling=ThrottlingConfig(
            requests_per_minute=20,
            max_concurrent=2,
            delay_between_requests=3.0,
            retry_attempts=3,
            retry_delay=2.0,
            timeout=30.0,
        ),
        browser=BrowserOptions(
            blocked_resources=LISTING_BLOCKED_RESOURCES,
            wait_selector='[data-test-target="HR_CC_CARD"]',
            wait_time=2.0,
        ),
        extraction=ExtractionPolicy(max_pages=5),
        error_handling=ErrorHandlingPolicy(max_errors=10),
    )


# =========================================
# Booking.com
# =========================================

def booking_config(url: str = "") -> ScraperConfiguration:
    return ScraperConfiguration(
        name="Booking.com",
        base_url="https://www.booking.com",
        selectors=SelectorMap(
            container='[data-testid="property-card"]',
            title='[data-testid="title"]',
            link='a[data-testid="title-link"]',
            description='[data-testid="property-card-description"]',
            price='[data-testid="price-and-discounted-price"]',
            rating='[data-testid="review-score-badge"]',
            images='img[data-testid="image"]',
            star_rating='[data-testid="rating-stars"]',
            amenities='[data-testid="facility-highlight"]',
            check_in='[data-testid="checkin-time"]',
            check_out='[data-testid="checkout-time"]',
            room_types='[data-testid="room-option"]',
            policies='[data-testid="policies"]',
            address='[data-testid="address"]',
            location='[data-testid="location"]',
            pagination=PaginationSelectors(
                next_button='a[aria-label="Next page"], button[aria-label="Next page"]',
                page_numbers='[data-testid="page-number"]',
            ),
        ),
        throttling=ThrottlingConfig(
            requests_per_minute=15,
            max_concurrent=1,
            delay_between_requests=4.0,
            retry_attempts=3,
            retry_delay=3.0,
            timeout=45.0,
        ),
        browser=BrowserOptions(
            blocked_resources=LISTING_BLOCKED_RESOURCES,
            wait_selector='[data-testid="property-card"]',
            wait_time=3.0,
        ),
        extraction=ExtractionPolicy(max_pages=3, rating_scale=10),
        error_handling=ErrorHandlingPolicy(max_errors=5),
    )


# =========================================
# Generic tour operator
# =========================================

def origin_of(url: str) -> Optional[str]:
    parsed = urlparse(url)
    if parsed.scheme in ("http", "https") and parsed.netloc:
        return f"{parsed.scheme}://{parsed.netloc}"
    return None


def generic_config(
    url: str = "",
    throttling: Optional[ThrottlingConfig] = None,
    browser: Optional[BrowserOptions] = None,
) -> ScraperConfiguration:
    """
    Configuration for arbitrary tour-operator sites.

    There are no selectors; the generic extractor finds listings
    heuristically. The base URL is the origin of the first URL routed here.
    """
    return ScraperConfiguration(
        name="TourOperator",
        base_url=origin_of(url) or "https://localhost",
        throttling=throttling or ThrottlingConfig(
            requests_per_minute=30,
            max_concurrent=2,
            delay_between_requests=2.0,
            retry_attempts=3,
            retry_delay=5.0,
            timeout=30.0,
        ),
        browser=browser or BrowserOptions(
            blocked_resources=("font", "media"),
            wait_time=2.0,
        ),
        extraction=ExtractionPolicy(max_pages=1),
    )


def activity_extractor(config: ScraperConfiguration) -> ActivityExtractor:
    return ActivityExtractor(selector_context(config))


def accommodation_extractor(config: ScraperConfiguration) -> AccommodationExtractor:
    return AccommodationExtractor(selector_context(config))


def destination_extractor(config: ScraperConfiguration) -> DestinationExtractor:
    return DestinationExtractor(selector_context(config))


def generic_extractor(config: ScraperConfiguration) -> GenericTourExtractor:
    return GenericTourExtractor(
        rating_scale=config.extraction.rating_scale,
        source=config.extraction.source or config.name,
        base_url=config.base_url,
    )


TRIPADVISOR = SiteDefinition("tripadvisor", "tripadvisor", tripadvisor_config, activity_extractor)
BOOKING = SiteDefinition("booking", "booking.com", booking_config, accommodation_extractor)
GETYOURGUIDE = SiteDefinition("getyourguide", "getyourguide", getyourguide_config, activity_extractor)
GENERIC = SiteDefinition("generic", None, generic_config, generic_extractor)

# Matched in order; the first hit wins.
BUILTIN_SITES = (TRIPADVISOR, BOOKING, GETYOURGUIDE)
