# Scraper Package
"""
Scraping engine for travel sites.

This module provides:
- AdmissionController: Concurrency, pacing and retry gate for navigations
- BrowserSession: Playwright browser with per-navigation pages
- StaticPageFetcher: aiohttp fetch path for server-rendered pages
- ScrapeOrchestrator: Navigate, snapshot and extract for one site
- ScraperRegistry: Hostname routing to memoized site scrapers
- Parsers: Content extractors for activities, accommodations and destinations
"""

from tripharvest.infrastructure.scraper.rate_limiter import (
    AdmissionController,
    AdmissionControllerState,
    AdmissionSettings,
    exponential_backoff,
)
from tripharvest.infrastructure.scraper.user_agents import UserAgentRotator
from tripharvest.infrastructure.scraper.browser_session import BrowserSession
from tripharvest.infrastructure.scraper.fetcher import StaticPageFetcher
from tripharvest.infrastructure.scraper.orchestrator import (
    ScrapeOrchestrator,
    ScrapeState,
    ScrapeStats,
)
from tripharvest.infrastructure.scraper.sites import SiteDefinition
from tripharvest.infrastructure.scraper.registry import ScraperRegistry
from tripharvest.infrastructure.scraper.parsers import (
    AccommodationExtractor,
    ActivityExtractor,
    DestinationExtractor,
    GenericHeuristics,
    GenericTourExtractor,
    HtmlDocument,
)

__all__ = [
    # Admission control
    "AdmissionController",
    "AdmissionControllerState",
    "AdmissionSettings",
    "exponential_backoff",
    # Browser and fetch
    "UserAgentRotator",
    "BrowserSession",
    "StaticPageFetcher",
    # Orchestration
    "ScrapeOrchestrator",
    "ScrapeState",
    "ScrapeStats",
    "SiteDefinition",
    "ScraperRegistry",
    # Parsers
    "HtmlDocument",
    "ActivityExtractor",
    "AccommodationExtractor",
    "DestinationExtractor",
    "GenericHeuristics",
    "GenericTourExtractor",
]
