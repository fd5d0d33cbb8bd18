"""
Browser session management using Playwright.

Owns one Chromium browser per scraper, launched lazily on the first
navigation. Every navigation gets its own page in a fresh context, so the
viewport, user agent and resource blocking apply per navigation, and is
admitted through the scraper's ``AdmissionController``.

Example:
    >>> async with BrowserSession(config, controller) as session:
    ...     page = await session.navigate_to("https://www.getyourguide.com/rome-l33/")
    ...     try:
    ...         await session.scroll(page)
    ...         document = await session.snapshot(page)
    ...     finally:
    ...         await session.close_page(page)
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional, TYPE_CHECKING

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from tripharvest.infrastructure.scraper.parsers.document import HtmlDocument
from tripharvest.infrastructure.scraper.rate_limiter import AdmissionController, DEFAULT_PRIORITY
from tripharvest.infrastructure.scraper.user_agents import UserAgentRotator
from tripharvest.utils.config import ScraperConfiguration
from tripharvest.utils.exceptions import NavigationError, NavigationTimeoutError
from tripharvest.utils.logger import get_logger, log_exception

if TYPE_CHECKING:
    from playwright.async_api import Browser, BrowserContext, Page, Playwright, Route

logger = get_logger(__name__)


CONTENT_INDICATORS = "article, .tour, .product, .card"

# Hide the most common automation fingerprints
STEALTH_INIT_SCRIPT = """
    Object.defineProperty(navigator, 'webdriver', {
        get: () => undefined
    });
    Object.defineProperty(navigator, 'plugins', {
        get: () => [1, 2, 3, 4, 5]
    });
    Object.defineProperty(navigator, 'languages', {
        get: () => ['en-US', 'en']
    });
"""

SCROLL_AT_BOTTOM_JS = "() => window.scrollY + window.innerHeight >= document.body.scrollHeight - 50"


class BrowserSession:
    """
    Lazily-launched Playwright browser with per-navigation pages.

    Attributes:
        config: Scraper configuration (browser and throttling sections).
        controller: Admission controller gating every navigation.
        user_agents: Rotator consulted for each new context when rotation
            is enabled.
    """

    def __init__(
        self,
        config: ScraperConfiguration,
        controller: AdmissionController,
        user_agents: Optional[UserAgentRotator] = None,
        playwright_factory: Callable[[], Any] = async_playwright,
    ):
        """
        Initialize the session. Nothing is launched until the first navigation.

        Args:
            config: Scraper configuration.
            controller: Admission controller shared with the scraper.
            user_agents: User-agent pool. Defaults to the built-in pool with
                the configured strategy.
            playwright_factory: Returns an object whose ``start()`` yields a
                Playwright instance.
        """
        self.config = config
        self.controller = controller
        self.user_agents = user_agents or UserAgentRotator(
            strategy=config.browser.user_agent_strategy
        )
        self._playwright_factory = playwright_factory

        self._playwright: Optional["Playwright"] = None
        self._browser: Optional["Browser"] = None
        self._contexts: dict["Page", "BrowserContext"] = {}
        self._launch_lock = asyncio.Lock()
        self._disposed = False

    # =========================================
    # Context Manager
    # =========================================

    async def __aenter__(self) -> "BrowserSession":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.dispose()

    @property
    def is_launched(self) -> bool:
        return self._browser is not None

    @property
    def open_pages(self) -> int:
        return len(self._contexts)

    # =========================================
    # Browser lifecycle
    # =========================================

    async def _ensure_browser(self) -> "Browser":
        async with self._launch_lock:
            if self._disposed:
                raise NavigationError(f"[{self.config.name}] Browser session already disposed")
            if self._browser is None:
                options = self.config.browser
                logger.info(f"[{self.config.name}] Launching browser (headless={options.headless})")
                self._playwright = await self._playwright_factory().start()
                self._browser = await self._playwright.chromium.launch(
                    headless=options.headless,
                    args=list(options.launch_args),
                )
            return self._browser

    def _pick_user_agent(self) -> Optional[str]:
        options = self.config.browser
        if options.rotate_user_agents:
            return self.user_agents.next()
        return options.user_agent

    async def new_page(self) -> "Page":
        """Open a page in a fresh, fully configured context."""
        browser = await self._ensure_browser()
        options = self.config.browser

        context = await browser.new_context(
            viewport={"width": options.viewport.width, "height": options.viewport.height},
            user_agent=self._pick_user_agent(),
        )
        try:
            await context.add_init_script(STEALTH_INIT_SCRIPT)
            if options.blocked_resources:
                await context.route("**/*", self._route_request)
            page = await context.new_page()
        except Exception:
            # Untracked until registered below
            await self._close_context(context)
            raise

        page.set_default_timeout(self.config.throttling.timeout * 1000)
        self._contexts[page] = context
        return page

    async def _route_request(self, route: "Route") -> None:
        if route.request.resource_type in self.config.browser.blocked_resources:
            await route.abort()
        else:
            await route.continue_()

    # =========================================
    # Navigation
    # =========================================

    async def navigate_to(
        self,
        url: str,
        priority: int = DEFAULT_PRIORITY,
        on_admitted: Optional[Callable[[], None]] = None,
    ) -> "Page":
        """
        Load a URL once the admission controller lets it through.

        Each attempt opens a new page; a failed attempt's page is closed
        before the controller decides whether to retry.

        Args:
            url: Absolute URL.
            priority: Admission priority (lower runs first).
            on_admitted: Called at the start of every admitted attempt.

        Returns:
            The loaded page. The caller must pass it to ``close_page``.

        Raises:
            RetriesExhaustedError: Every attempt failed; the last
                ``NavigationError`` is available as ``last_error``.
        """
        async def attempt() -> "Page":
            if on_admitted is not None:
                on_admitted()
            return await self._load(url)

        return await self.controller.schedule(attempt, priority=priority)

    async def _load(self, url: str) -> "Page":
        page = await self.new_page()
        timeout_ms = self.config.throttling.timeout * 1000
        options = self.config.browser
        try:
            logger.info(f"[{self.config.name}] Navigating to: {url}")
            try:
                response = await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
            except PlaywrightTimeoutError as e:
                raise NavigationTimeoutError(
                    f"Navigation to {url} timed out after {self.config.throttling.timeout:.0f}s",
                    url=url,
                    timeout=self.config.throttling.timeout,
                ) from e
            except PlaywrightError as e:
                raise NavigationError(f"Failed to load {url}: {e}", url=url) from e

            if response is None:
                raise NavigationError(f"No response received from {url}", url=url)

            status = response.status
            logger.info(f"[{self.config.name}] Page response received (HTTP {status})")
            if not response.ok and status != 304:
                raise NavigationError(f"HTTP {status}: Failed to load {url}", url=url, status_code=status)

            if options.wait_selector:
                logger.debug(f"Waiting for selector: {options.wait_selector}")
                try:
                    await page.wait_for_selector(
                        options.wait_selector,
                        timeout=options.wait_selector_timeout * 1000,
                    )
                except PlaywrightTimeoutError as e:
                    raise NavigationTimeoutError(
                        f"Timed out waiting for {options.wait_selector!r} on {url}",
                        url=url,
                        timeout=options.wait_selector_timeout,
                    ) from e

            if options.wait_time > 0:
                logger.debug(f"Waiting additional {options.wait_time:.1f}s for content to load")
                await asyncio.sleep(options.wait_time)

            return page
        except Exception as e:
            logger.error(f"[{self.config.name}] Navigation failed: {url}: {e}")
            await self._capture_screenshot(page, url)
            await self.close_page(page)
            raise

    async def _capture_screenshot(self, page: "Page", url: str) -> None:
        """Best-effort diagnostic screenshot. Never raises."""
        if not self.config.error_handling.capture_screenshots:
            return
        try:
            data = await page.screenshot()
            logger.debug(f"Failed page screenshot captured for {url} ({len(data)} bytes)")
        except Exception as e:
            logger.debug(f"Could not capture screenshot: {e}")

    # =========================================
    # Page helpers
    # =========================================

    async def wait_for_content(self, page: "Page", selector: str = CONTENT_INDICATORS) -> bool:
        """
        Wait briefly for common content indicators.

        Returns:
            True if one appeared, False when the wait timed out (extraction
            proceeds either way).
        """
        timeout = self.config.browser.content_wait_timeout
        if timeout <= 0:
            return False
        try:
            await page.wait_for_selector(selector, timeout=timeout * 1000)
            return True
        except PlaywrightTimeoutError:
            logger.debug("Content wait timeout reached, proceeding with extraction")
            return False
        except PlaywrightError as e:
            logger.debug(f"Content wait failed: {e}")
            return False

    async def scroll(self, page: "Page") -> int:
        """
        Scroll down in fixed steps to trigger lazy loading, then return to top.

        Stops at the page bottom or after ``max_steps`` steps.

        Returns:
            Number of scroll steps performed.
        """
        options = self.config.browser.scroll
        if not options.enabled:
            return 0

        steps = 0
        try:
            while steps < options.max_steps:
                if await page.evaluate(SCROLL_AT_BOTTOM_JS):
                    break
                await page.evaluate(f"window.scrollBy(0, {options.step_px})")
                await asyncio.sleep(options.step_delay)
                steps += 1
            await page.evaluate("window.scrollTo(0, 0)")
            if options.settle_time > 0:
                await asyncio.sleep(options.settle_time)
        except PlaywrightError as e:
            logger.debug(f"Error during page scroll: {e}")

        logger.debug(f"Scrolling complete after {steps} step(s)")
        return steps

    async def snapshot(self, page: "Page") -> HtmlDocument:
        """Parse the page's current markup at its final URL."""
        html = await page.content()
        return HtmlDocument.parse(html, url=page.url)

    async def close_page(self, page: "Page") -> None:
        """Close a page and its context. Failures are logged, not raised."""
        context = self._contexts.pop(page, None)
        try:
            await page.close()
        except Exception as e:
            logger.warning(f"Failed to close page: {e}")
        if context is not None:
            await self._close_context(context)

    async def _close_context(self, context: "BrowserContext") -> None:
        try:
            await context.close()
        except Exception as e:
            logger.warning(f"Failed to close browser context: {e}")

    async def dispose(self) -> None:
        """Close open pages, the browser and Playwright. Safe to call repeatedly."""
        async with self._launch_lock:
            if self._disposed:
                return
            self._disposed = True

            for page in list(self._contexts):
                await self.close_page(page)

            try:
                if self._browser is not None:
                    await self._browser.close()
                if self._playwright is not None:
                    await self._playwright.stop()
            except Exception as e:
                log_exception(logger, f"[{self.config.name}] closing browser", e)
            finally:
                self._browser = None
                self._playwright = None

        logger.info(f"[{self.config.name}] Browser session disposed")
