"""Pytest fixtures and configuration for TripHarvest tests."""

from dataclasses import dataclass, field
from typing import Callable, Optional

import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from tripharvest.infrastructure.scraper.rate_limiter import AdmissionController, AdmissionSettings
from tripharvest.utils.config import (
    BrowserOptions,
    ExtractionPolicy,
    PaginationSelectors,
    ScraperConfiguration,
    ScrollOptions,
    SelectorMap,
    ThrottlingConfig,
)


# =========================================
# Fake Playwright
# =========================================

@dataclass
class FakeSite:
    """Scripted web: URL -> (status, html). Unknown URLs answer 404."""
    pages: dict[str, tuple[int, str]] = field(default_factory=dict)
    redirects: dict[str, str] = field(default_factory=dict)
    timeouts: set[str] = field(default_factory=set)
    # URL -> number of leading visits answered with HTTP 503
    flaky: dict[str, int] = field(default_factory=dict)
    visits: list[str] = field(default_factory=list)
    # URL -> document height in pixels; unlisted pages fit in the viewport
    heights: dict[str, int] = field(default_factory=dict)
    screenshot_error: Optional[Exception] = None
    new_page_error: Optional[Exception] = None
    launches: int = 0
    screenshots: int = 0
    contexts: list["FakeContext"] = field(default_factory=list)

    def add(self, url: str, html: str, status: int = 200) -> None:
        self.pages[url] = (status, html)


class FakeResponse:
    def __init__(self, status: int):
        self.status = status
        self.ok = 200 <= status < 300


class FakePage:
    def __init__(self, site: FakeSite, context: "FakeContext"):
        self.site = site
        self.context = context
        self.url = "about:blank"
        self.html = ""
        self.closed = False
        self.default_timeout: Optional[float] = None
        self.scroll_y = 0
        self.scripts: list[str] = []

    def set_default_timeout(self, timeout: float) -> None:
        self.default_timeout = timeout

    async def goto(self, url: str, wait_until: str = "load", timeout: Optional[float] = None):
        self.site.visits.append(url)
        if url in self.site.timeouts:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded")
        if self.site.flaky.get(url, 0) > 0:
            self.site.flaky[url] -= 1
            return FakeResponse(503)
        self.url = self.site.redirects.get(url, url)
        status, html = self.site.pages.get(self.url, (404, "<html><body>Not found</body></html>"))
        self.html = html
        return FakeResponse(status)

    async def wait_for_selector(self, selector: str, timeout: Optional[float] = None):
        return None

    async def evaluate(self, script: str):
        self.scripts.append(script)
        if script.startswith("() =>"):
            height = self.site.heights.get(self.url, 0)
            return self.scroll_y + self.context.viewport["height"] >= height - 50
        if script.startswith("window.scrollBy"):
            self.scroll_y += int(script.split(",")[1].strip(" )"))
        elif script.startswith("window.scrollTo"):
            self.scroll_y = 0
        return None

    async def content(self) -> str:
        return self.html

    async def screenshot(self) -> bytes:
        self.site.screenshots += 1
        if self.site.screenshot_error is not None:
            raise self.site.screenshot_error
        return b"\x89PNG fake"

    async def close(self) -> None:
        self.closed = True


class FakeContext:
    def __init__(self, site: FakeSite, viewport: dict, user_agent: Optional[str]):
        self.site = site
        self.viewport = viewport
        self.user_agent = user_agent
        self.init_scripts: list[str] = []
        self.routes: list[tuple[str, Callable]] = []
        self.pages: list[FakePage] = []
        self.closed = False

    async def add_init_script(self, script: str) -> None:
        self.init_scripts.append(script)

    async def route(self, pattern: str, handler: Callable) -> None:
        self.routes.append((pattern, handler))

    async def new_page(self) -> FakePage:
        if self.site.new_page_error is not None:
            raise self.site.new_page_error
        page = FakePage(self.site, self)
        self.pages.append(page)
        return page

    async def close(self) -> None:
        self.closed = True


class FakeBrowser:
    def __init__(self, site: FakeSite):
        self.site = site
        self.closed = False

    async def new_context(self, viewport: dict, user_agent: Optional[str] = None) -> FakeContext:
        context = FakeContext(self.site, viewport, user_agent)
        self.site.contexts.append(context)
        return context

    async def close(self) -> None:
        self.closed = True


class FakeChromium:
    def __init__(self, site: FakeSite):
        self.site = site

    async def launch(self, headless: bool = True, args: Optional[list] = None) -> FakeBrowser:
        self.site.launches += 1
        return FakeBrowser(self.site)


class FakePlaywright:
    def __init__(self, site: FakeSite):
        self.chromium = FakeChromium(site)
        self.stopped = False

    async def start(self) -> "FakePlaywright":
        return self

    async def stop(self) -> None:
        self.stopped = True


@pytest.fixture
def fake_site() -> FakeSite:
    """Scripted pages served by the fake browser."""
    return FakeSite()


@pytest.fixture
def playwright_factory(fake_site: FakeSite) -> Callable[[], FakePlaywright]:
    """Drop-in replacement for ``async_playwright``."""
    return lambda: FakePlaywright(fake_site)


# =========================================
# Configuration
# =========================================

@pytest.fixture
def activity_selectors() -> SelectorMap:
    """Selectors for the tour-card markup used across tests."""
    return SelectorMap(
        container=".tour-card",
        id=".tour-id",
        title=".tour-title",
        description=".tour-description",
        link="a.tour-link",
        price=".tour-price",
        rating=".tour-rating",
        images="img",
        duration=".tour-duration",
        highlights=".highlights li",
        includes=".includes li",
        excludes=".excludes li",
        meeting_point=".meeting-point",
        cancel_policy=".cancellation",
        group_size=".group-size",
        availability=".availability span",
        location=".tour-location",
        pagination=PaginationSelectors(next_button="a.next"),
    )


@pytest.fixture
def fast_config(activity_selectors: SelectorMap) -> ScraperConfiguration:
    """A scraper configuration with every wait and delay switched off."""
    return ScraperConfiguration(
        name="TestTours",
        base_url="https://tours.example.com",
        selectors=activity_selectors,
        throttling=ThrottlingConfig(
            requests_per_minute=6000,
            max_concurrent=2,
            delay_between_requests=0.0,
            retry_attempts=2,
            retry_delay=0.0,
            timeout=5.0,
        ),
        browser=BrowserOptions(
            content_wait_timeout=0.0,
            scroll=ScrollOptions(step_delay=0.0, settle_time=0.0),
        ),
        extraction=ExtractionPolicy(max_pages=3),
    )


@pytest.fixture
def fast_controller(fast_config: ScraperConfiguration) -> AdmissionController:
    """Admission controller without pacing or backoff delays."""
    max_retries = fast_config.throttling.retry_attempts
    return AdmissionController(
        AdmissionSettings(
            max_concurrent=2,
            max_retries=max_retries,
            retry_delay=0.0,
            max_jitter=0.0,
        ),
        name="test",
        # Retry immediately, even on 503 (whose default floor is 3s).
        retry_policy=lambda error, attempt: None if attempt >= max_retries else 0.0,
    )


# =========================================
# Markup
# =========================================

TOUR_LISTING_HTML = """
<html>
<head><title>Rome tours</title></head>
<body>
  <div class="tour-card">
    <span class="tour-id">T-100</span>
    <h3 class="tour-title">Colosseum Underground Tour</h3>
    <p class="tour-description">Skip the line and explore the arena floor.</p>
    <a class="tour-link" href="/tours/colosseum-underground">Details</a>
    <span class="tour-price">From €45</span>
  </div>
  <div class="tour-card">
    <span class="tour-id">T-200</span>
    <h3 class="tour-title">Vatican Museums Morning Visit</h3>
    <p class="tour-description">See the Sistine Chapel before the crowds.</p>
    <a class="tour-link" href="https://tours.example.com/tours/vatican-morning">Details</a>
    <span class="tour-price">€62.50</span>
  </div>
</body>
</html>
"""


@pytest.fixture
def tour_listing_html() -> str:
    """Two complete tour cards."""
    return TOUR_LISTING_HTML
