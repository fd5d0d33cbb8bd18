"""
Static page fetcher using aiohttp.

For pages whose content is server-rendered, a plain GET is enough and much
cheaper than a browser. Requests go through the same admission controller
as browser navigations and come back as an ``HtmlDocument``, so extractors
run unchanged on either path.
"""

import asyncio
from typing import Optional

import aiohttp

from tripharvest.infrastructure.scraper.parsers.document import HtmlDocument
from tripharvest.infrastructure.scraper.rate_limiter import AdmissionController, DEFAULT_PRIORITY
from tripharvest.infrastructure.scraper.user_agents import UserAgentRotator
from tripharvest.utils.config import ScraperConfiguration
from tripharvest.utils.exceptions import NavigationError, NavigationTimeoutError
from tripharvest.utils.logger import get_logger

logger = get_logger(__name__)


BROWSER_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate",
    "Cache-Control": "no-cache",
    "Upgrade-Insecure-Requests": "1",
}


class StaticPageFetcher:
    """
    Admission-gated HTTP GET returning parsed documents.

    The underlying ``aiohttp.ClientSession`` is created on first use and
    closed by ``close()``.
    """

    def __init__(
        self,
        config: ScraperConfiguration,
        controller: AdmissionController,
        user_agents: Optional[UserAgentRotator] = None,
    ):
        self.config = config
        self.controller = controller
        self.user_agents = user_agents or UserAgentRotator(
            strategy=config.browser.user_agent_strategy
        )
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "StaticPageFetcher":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _headers(self) -> dict[str, str]:
        headers = dict(BROWSER_HEADERS)
        options = self.config.browser
        user_agent = self.user_agents.next() if options.rotate_user_agents else options.user_agent
        if user_agent:
            headers["User-Agent"] = user_agent
        return headers

    def _client(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.throttling.timeout),
            )
        return self._session

    async def fetch(self, url: str, priority: int = DEFAULT_PRIORITY) -> HtmlDocument:
        """
        Fetch and parse a page.

        Raises:
            RetriesExhaustedError: Every attempt failed; ``last_error`` is
                the final ``NavigationError``.
        """
        return await self.controller.schedule(lambda: self._get(url), priority=priority)

    async def _get(self, url: str) -> HtmlDocument:
        logger.info(f"[{self.config.name}] Fetching: {url}")
        try:
            async with self._client().get(url, headers=self._headers()) as response:
                if not 200 <= response.status < 300:
                    raise NavigationError(
                        f"HTTP {response.status}: Failed to load {url}",
                        url=url,
                        status_code=response.status,
                    )
                html = await response.text(errors="replace")
                final_url = str(response.url)
        except asyncio.TimeoutError as e:
            raise NavigationTimeoutError(
                f"Fetching {url} timed out after {self.config.throttling.timeout:.0f}s",
                url=url,
                timeout=self.config.throttling.timeout,
            ) from e
        except aiohttp.ClientError as e:
            raise NavigationError(f"Failed to load {url}: {e}", url=url) from e

        if final_url != url:
            logger.info(f"[{self.config.name}] Redirected: {url} -> {final_url}")
        return HtmlDocument.parse(html, url=final_url)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
