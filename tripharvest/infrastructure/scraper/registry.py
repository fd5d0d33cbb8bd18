"""
URL-to-scraper routing.

The registry maps a URL's hostname to a site and hands out one memoized
``ScrapeOrchestrator`` per site. It is an ordinary object: construct one,
use it, and ``dispose_all()`` when done.

Example:
    >>> registry = ScraperRegistry()
    >>> scraper = registry.get_scraper("https://www.booking.com/searchresults.html?ss=Lisbon")
    >>> result = await scraper.scrape_one("https://www.booking.com/searchresults.html?ss=Lisbon")
    >>> await registry.dispose_all()
"""

import asyncio
from typing import Optional

from tripharvest.infrastructure.scraper.orchestrator import ScrapeOrchestrator
from tripharvest.infrastructure.scraper.sites import BUILTIN_SITES, GENERIC, SiteDefinition, generic_config
from tripharvest.infrastructure.scraper.user_agents import UserAgentRotator
from tripharvest.utils.config import AppConfig, ScraperConfiguration
from tripharvest.utils.logger import configure_logging, get_logger
from tripharvest.utils.validators import hostname_of

logger = get_logger(__name__)


class ScraperRegistry:
    """
    Routes URLs to site scrapers.

    Routes are checked in order; the first site whose host pattern occurs in
    the URL's hostname wins. Anything else goes to the generic scraper.

    Attributes:
        app_config: Optional application settings. When given, its
            ``browser.headless`` flag applies to every site, its browser and
            throttling sections configure the generic site, its
            ``user_agents`` join every rotation pool, and its ``log_level``
            and ``log_dir`` are applied to the package loggers.
    """

    def __init__(self, app_config: Optional[AppConfig] = None):
        self.app_config = app_config
        if app_config is not None:
            configure_logging(app_config.log_level, app_config.log_dir)
        self._routes: list[SiteDefinition] = list(BUILTIN_SITES)
        self._fallback = GENERIC
        self._scrapers: dict[str, ScrapeOrchestrator] = {}

    @property
    def routes(self) -> list[SiteDefinition]:
        return list(self._routes)

    @property
    def cached_keys(self) -> list[str]:
        return list(self._scrapers)

    def register(self, site: SiteDefinition, first: bool = False) -> None:
        """
        Add a site route.

        Args:
            site: Site to route to. Replaces an existing route with the
                same key (and forgets its cached scraper).
            first: Check this route before the existing ones.
        """
        if site.host_pattern is None:
            raise ValueError(f"Site '{site.key}' needs a host pattern to be routable")
        self._routes = [route for route in self._routes if route.key != site.key]
        if first:
            self._routes.insert(0, site)
        else:
            self._routes.append(site)
        if site.key in self._scrapers:
            logger.warning(f"Route '{site.key}' replaced; its cached scraper is no longer used")
            self._scrapers.pop(site.key)
        logger.info(f"Registered scraper route '{site.key}' for hosts matching '{site.host_pattern}'")

    def site_for(self, url: str) -> SiteDefinition:
        hostname = hostname_of(url)
        for site in self._routes:
            if site.matches(hostname):
                return site
        return self._fallback

    def routing_key_for(self, url: str) -> str:
        """Routing key the URL resolves to (``"generic"`` when no site matches)."""
        return self.site_for(url).key

    def get_scraper(self, url: str) -> ScrapeOrchestrator:
        """Memoized scraper for the URL's site, created on first use."""
        site = self.site_for(url)
        scraper = self._scrapers.get(site.key)
        if scraper is None:
            logger.info(f"Creating scraper '{site.key}' for {url}")
            config = self._configuration(site, url)
            scraper = ScrapeOrchestrator(
                config,
                site.extractor(config),
                user_agents=self._user_agents(config),
            )
            self._scrapers[site.key] = scraper
        return scraper

    async def dispose_all(self) -> None:
        """Dispose every cached scraper concurrently. Failures are logged."""
        if not self._scrapers:
            return
        keys = list(self._scrapers)
        scrapers = list(self._scrapers.values())
        self._scrapers.clear()

        results = await asyncio.gather(
            *(scraper.dispose() for scraper in scrapers),
            return_exceptions=True,
        )
        for key, result in zip(keys, results):
            if isinstance(result, Exception):
                logger.error(f"Failed to dispose scraper '{key}': {result}")
        logger.info(f"Disposed {len(keys)} scraper(s)")

    def _configuration(self, site: SiteDefinition, url: str) -> ScraperConfiguration:
        if self.app_config is None:
            return site.configuration(url)
        if site is GENERIC:
            return generic_config(
                url,
                throttling=self.app_config.throttling,
                browser=self.app_config.browser,
            )
        config = site.configuration(url)
        browser = config.browser.model_copy(update={"headless": self.app_config.browser.headless})
        return config.model_copy(update={"browser": browser})

    def _user_agents(self, config: ScraperConfiguration) -> UserAgentRotator:
        rotator = UserAgentRotator(strategy=config.browser.user_agent_strategy)
        if self.app_config is not None:
            for user_agent in self.app_config.user_agents:
                rotator.add(user_agent, log=False)
        return rotator
