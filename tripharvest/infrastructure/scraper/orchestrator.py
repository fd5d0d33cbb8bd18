"""
Scrape orchestration.

``ScrapeOrchestrator`` ties one site's pieces together: the admission
controller paces navigations, the browser session loads and snapshots
pages, and the site's extractor turns snapshots into records. Every public
scrape call returns a ``ScrapingResult``; a single URL's failure never
raises out of a batch.

Example:
    >>> async with ScrapeOrchestrator(config, extractor) as scraper:
    ...     results = await scraper.scrape_many(urls)
    ...     for result in results:
    ...         print(result.success, result.metadata.items_found)
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Generic, Optional, TypeVar

from tripharvest.domain.entities import ExtractedContent, ScrapingResult
from tripharvest.domain.interfaces import ContentExtractor
from tripharvest.infrastructure.scraper.browser_session import BrowserSession
from tripharvest.infrastructure.scraper.fetcher import StaticPageFetcher
from tripharvest.infrastructure.scraper.parsers.document import HtmlDocument
from tripharvest.infrastructure.scraper.rate_limiter import AdmissionController, AdmissionSettings
from tripharvest.infrastructure.scraper.user_agents import UserAgentRotator
from tripharvest.utils.config import ScraperConfiguration
from tripharvest.utils.exceptions import AppException, NavigationTimeoutError, RetriesExhaustedError
from tripharvest.utils.logger import (
    get_logger,
    log_execution_time,
    log_performance,
    log_scrape_complete,
    log_scrape_error,
    log_scrape_start,
)
from tripharvest.utils.validators import ensure_valid_url

logger = get_logger(__name__)

T = TypeVar("T", bound=ExtractedContent)

TIMEOUT_HINT = (
    "The page took too long to load. "
    "The website might be slow or blocking automated access."
)


class ScrapeState(str, Enum):
    """Lifecycle of a single page scrape."""
    IDLE = "idle"
    ADMISSION_WAIT = "admission_wait"
    NAVIGATING = "navigating"
    CONTENT_WAIT = "content_wait"
    SCROLLING = "scrolling"
    EXTRACTING = "extracting"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ScrapeStats:
    """Running totals for one orchestrator."""
    pages_visited: int = 0
    items_extracted: int = 0
    failures: int = 0
    start_time: Optional[datetime] = None

    def start(self) -> None:
        if self.start_time is None:
            self.start_time = datetime.now()

    @property
    def duration_seconds(self) -> float:
        if not self.start_time:
            return 0.0
        return (datetime.now() - self.start_time).total_seconds()

    def __str__(self) -> str:
        return (
            f"ScrapeStats(pages={self.pages_visited}, "
            f"items={self.items_extracted}, "
            f"failures={self.failures}, "
            f"duration={self.duration_seconds:.1f}s)"
        )


def root_cause(error: BaseException) -> BaseException:
    """The navigation error behind an exhausted retry, or the error itself."""
    if isinstance(error, RetriesExhaustedError) and error.last_error is not None:
        return error.last_error
    return error


def describe_failure(error: BaseException) -> list[str]:
    """Error lines for a failed result; timeouts get an explanatory hint."""
    cause = root_cause(error)
    message = cause.message if isinstance(cause, AppException) else str(cause)
    errors = [message or type(cause).__name__]
    if isinstance(error, RetriesExhaustedError) and error.attempts:
        errors[0] = f"{errors[0]} (after {error.attempts} attempts)"
    if isinstance(cause, NavigationTimeoutError):
        errors.append(TIMEOUT_HINT)
    return errors


class ScrapeOrchestrator(Generic[T]):
    """
    One site's scraper.

    Attributes:
        config: Site configuration.
        extractor: Turns page snapshots into records.
        controller: Admission controller pacing this site's requests.
        session: Browser session used for navigations.
        fetcher: Static fetch path sharing the same controller.
        state: Most recent page-scrape state.
        stats: Running totals.
    """

    def __init__(
        self,
        config: ScraperConfiguration,
        extractor: ContentExtractor[T],
        session: Optional[BrowserSession] = None,
        controller: Optional[AdmissionController] = None,
        fetcher: Optional[StaticPageFetcher] = None,
        user_agents: Optional[UserAgentRotator] = None,
    ):
        self.config = config
        self.extractor = extractor
        self.controller = controller or AdmissionController(
            AdmissionSettings.from_throttling(config.throttling),
            name=config.name,
        )
        user_agents = user_agents or UserAgentRotator(strategy=config.browser.user_agent_strategy)
        self.session = session or BrowserSession(config, self.controller, user_agents)
        self.fetcher = fetcher or StaticPageFetcher(config, self.controller, user_agents)
        self.state = ScrapeState.IDLE
        self.stats = ScrapeStats()
        self._disposed = False

        logger.info(
            f"[{config.name}] Scraper ready: "
            f"{config.throttling.requests_per_minute} req/min, "
            f"max_concurrent={config.throttling.max_concurrent}"
        )

    @property
    def name(self) -> str:
        return self.config.name

    # =========================================
    # Context Manager
    # =========================================

    async def __aenter__(self) -> "ScrapeOrchestrator[T]":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.dispose()

    # =========================================
    # Public API
    # =========================================

    async def scrape_one(self, url: str) -> ScrapingResult[T]:
        """
        Scrape a single page.

        Never raises for a page failure; the result carries the error.
        """
        started = time.perf_counter()
        self.stats.start()
        log_scrape_start(logger, self.name, url)
        try:
            url = ensure_valid_url(url)
            records, _ = await self._scrape_page(url)
        except Exception as e:
            return self._failed(url, e, started)

        elapsed = time.perf_counter() - started
        self._transition(ScrapeState.DONE, url)
        log_scrape_complete(logger, self.name, url, len(records), elapsed)
        return ScrapingResult.ok(url, records, processing_time=elapsed)

    async def scrape_many(self, urls: list[str]) -> list[ScrapingResult[T]]:
        """
        Scrape URLs one after another.

        Returns one result per URL, in order. The configured inter-request
        delay is observed between URLs.
        """
        results: list[ScrapingResult[T]] = []
        if not urls:
            return results

        started = time.perf_counter()
        logger.info(f"[{self.name}] Scraping {len(urls)} URL(s)")
        for index, url in enumerate(urls):
            if index > 0:
                await self._pause_between_requests()
            results.append(await self.scrape_one(url))

        succeeded = sum(1 for r in results if r.success)
        total_items = sum(r.metadata.items_found for r in results)
        logger.info(
            f"[{self.name}] Batch complete: {succeeded}/{len(results)} succeeded, "
            f"{total_items} item(s). {self.stats}"
        )
        log_performance(logger, f"[{self.name}] batch of {len(urls)} URL(s)", time.perf_counter() - started)
        return results

    async def scrape_paginated(self, url: str, max_pages: Optional[int] = None) -> ScrapingResult[T]:
        """
        Scrape a listing and the pages it links to as "next".

        Stops at ``max_pages`` (default ``extraction.max_pages``), when a page
        has no next link, or when a page fails. Records from pages scraped
        before a failure are kept.

        Raises:
            ValueError: ``max_pages`` is below 1.
        """
        if max_pages is not None and max_pages < 1:
            raise ValueError(f"max_pages must be at least 1, got {max_pages}")
        limit = self.config.extraction.max_pages if max_pages is None else max_pages
        started = time.perf_counter()
        self.stats.start()
        log_scrape_start(logger, self.name, url)
        try:
            url = ensure_valid_url(url)
        except Exception as e:
            return self._failed(url, e, started)

        records: list[T] = []
        errors: list[str] = []
        visited: set[str] = set()
        current: Optional[str] = url
        pages = 0

        while current and pages < limit:
            if current in visited:
                logger.info(f"[{self.name}] Pagination loops back to {current}, stopping")
                break
            visited.add(current)
            if pages > 0:
                await self._pause_between_requests()

            logger.info(f"[{self.name}] Scraping page {pages + 1}/{limit}: {current}")
            try:
                page_records, document = await self._scrape_page(current)
            except Exception as e:
                if pages == 0:
                    return self._failed(url, e, started)
                self._record_failure(current, e)
                errors.extend(describe_failure(e))
                break

            pages += 1
            records.extend(page_records)
            current = self.next_page_url(document)

        elapsed = time.perf_counter() - started
        self._transition(ScrapeState.DONE, url)
        log_scrape_complete(logger, self.name, url, len(records), elapsed)
        logger.info(f"[{self.name}] Pagination complete: {pages} page(s), {len(records)} item(s)")
        return ScrapingResult.ok(url, records, processing_time=elapsed, pages_crawled=pages, errors=errors)

    async def scrape_static(self, url: str) -> ScrapingResult[T]:
        """Scrape a page over plain HTTP, without a browser."""
        started = time.perf_counter()
        self.stats.start()
        log_scrape_start(logger, self.name, url)
        try:
            url = ensure_valid_url(url)
            self._transition(ScrapeState.ADMISSION_WAIT, url)
            document = await self.fetcher.fetch(url)
            self._transition(ScrapeState.EXTRACTING, url)
            records = self._extract(document, url)
        except Exception as e:
            return self._failed(url, e, started)

        elapsed = time.perf_counter() - started
        self._transition(ScrapeState.DONE, url)
        log_scrape_complete(logger, self.name, url, len(records), elapsed)
        return ScrapingResult.ok(url, records, processing_time=elapsed)

    def next_page_url(self, document: HtmlDocument) -> Optional[str]:
        """Absolute URL of the page's "next" link, if it has one."""
        selector = self.config.selectors.pagination.next_button
        if not selector:
            return None
        href = document.attr("href", selector)
        return document.resolve(href) if href else None

    async def dispose(self) -> None:
        """Stop admissions and release the browser and HTTP session. Idempotent."""
        if self._disposed:
            return
        self._disposed = True
        logger.info(f"[{self.name}] Disposing scraper. {self.stats}")
        try:
            await self.controller.stop()
        finally:
            try:
                await self.session.dispose()
            finally:
                await self.fetcher.close()

    # =========================================
    # Internals
    # =========================================

    async def _scrape_page(self, url: str) -> tuple[list[T], HtmlDocument]:
        self._transition(ScrapeState.ADMISSION_WAIT, url)
        page = await self.session.navigate_to(
            url, on_admitted=lambda: self._transition(ScrapeState.NAVIGATING, url)
        )
        try:
            if page.url.rstrip("/") != url.rstrip("/"):
                logger.info(f"[{self.name}] Redirected: {url} -> {page.url}")

            self._transition(ScrapeState.CONTENT_WAIT, url)
            await self.session.wait_for_content(page)

            self._transition(ScrapeState.SCROLLING, url)
            await self.session.scroll(page)

            self._transition(ScrapeState.EXTRACTING, url)
            document = await self.session.snapshot(page)
        finally:
            await self.session.close_page(page)

        self.stats.pages_visited += 1
        return self._extract(document, url), document

    def _extract(self, document: HtmlDocument, url: str) -> list[T]:
        with log_execution_time(logger, f"[{self.name}] extraction of {url}"):
            records = self.extractor.extract(document)
        self.stats.items_extracted += len(records)
        return records

    def _failed(self, url: str, error: Exception, started: float) -> ScrapingResult[T]:
        self._record_failure(url, error)
        return ScrapingResult.failed(
            url,
            describe_failure(error),
            processing_time=time.perf_counter() - started,
        )

    def _record_failure(self, url: str, error: Exception) -> None:
        self.stats.failures += 1
        self._transition(ScrapeState.FAILED, url)
        log_scrape_error(logger, self.name, url, root_cause(error))

    def _transition(self, state: ScrapeState, url: str) -> None:
        self.state = state
        logger.debug(f"[{self.name}] {state.value}: {url}")

    async def _pause_between_requests(self) -> None:
        delay = self.config.throttling.delay_between_requests
        if delay > 0:
            logger.debug(f"[{self.name}] Waiting {delay:.1f}s before next request")
            await asyncio.sleep(delay)
