"""Integration tests for the aiohttp fetch path against a local test server."""

import asyncio

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer as LocalServer

from tripharvest.infrastructure.scraper.fetcher import StaticPageFetcher
from tripharvest.infrastructure.scraper.orchestrator import ScrapeOrchestrator
from tripharvest.infrastructure.scraper.sites import activity_extractor
from tripharvest.infrastructure.scraper.user_agents import UserAgentRotator
from tripharvest.utils.exceptions import NavigationError, RetriesExhaustedError


def make_app(listing_html: str, seen: dict) -> web.Application:
    async def listing(request: web.Request) -> web.Response:
        seen["user_agents"].append(request.headers.get("User-Agent"))
        return web.Response(text=listing_html, content_type="text/html")

    async def moved(request: web.Request) -> web.Response:
        raise web.HTTPFound("/rome")

    async def missing(request: web.Request) -> web.Response:
        return web.Response(status=404, text="not here")

    async def flaky(request: web.Request) -> web.Response:
        seen["flaky"] += 1
        if seen["flaky"] == 1:
            return web.Response(status=503, text="busy")
        return web.Response(text=listing_html, content_type="text/html")

    app = web.Application()
    app.router.add_get("/rome", listing)
    app.router.add_get("/old-rome", moved)
    app.router.add_get("/missing", missing)
    app.router.add_get("/flaky", flaky)
    return app


def serve(app: web.Application, scenario):
    """Start the app on localhost, run ``scenario(server)`` and shut down."""
    async def main():
        server = LocalServer(app)
        await server.start_server()
        try:
            return await scenario(server)
        finally:
            await server.close()
    return asyncio.run(main())


@pytest.fixture
def seen() -> dict:
    """Requests observed by the test app."""
    return {"user_agents": [], "flaky": 0}


@pytest.fixture
def app(tour_listing_html, seen) -> web.Application:
    return make_app(tour_listing_html, seen)


class TestStaticPageFetcher:
    """Test plain HTTP fetching."""

    def test_fetch_parses_document(self, app, seen, fast_config, fast_controller):
        rotator = UserAgentRotator(["TestAgent/1.0"])
        fetcher = StaticPageFetcher(fast_config, fast_controller, rotator)

        async def scenario(server):
            async with fetcher:
                return await fetcher.fetch(str(server.make_url("/rome")))

        document = serve(app, scenario)

        assert len(document.select(".tour-card")) == 2
        assert document.url.endswith("/rome")
        assert seen["user_agents"] == ["TestAgent/1.0"]

    def test_redirect_final_url(self, app, fast_config, fast_controller):
        fetcher = StaticPageFetcher(fast_config, fast_controller)

        async def scenario(server):
            async with fetcher:
                return await fetcher.fetch(str(server.make_url("/old-rome")))

        document = serve(app, scenario)
        assert document.url.endswith("/rome")

    def test_http_error(self, app, fast_config, fast_controller):
        """Test non-2xx answers fail once retries run out."""
        fetcher = StaticPageFetcher(fast_config, fast_controller)

        async def scenario(server):
            async with fetcher:
                with pytest.raises(RetriesExhaustedError) as exc_info:
                    await fetcher.fetch(str(server.make_url("/missing")))
                return exc_info.value

        error = serve(app, scenario)

        assert isinstance(error.last_error, NavigationError)
        assert error.last_error.status_code == 404

    def test_transient_error_retried(self, app, seen, fast_config, fast_controller):
        fetcher = StaticPageFetcher(fast_config, fast_controller)

        async def scenario(server):
            async with fetcher:
                return await fetcher.fetch(str(server.make_url("/flaky")))

        document = serve(app, scenario)

        assert len(document.select(".tour-card")) == 2
        assert seen["flaky"] == 2


class TestStaticScrape:
    """Test the orchestrator's browser-less path end to end."""

    def test_scrape_static(self, app, fast_config, fast_controller):
        scraper = ScrapeOrchestrator(fast_config, activity_extractor(fast_config), controller=fast_controller)

        async def scenario(server):
            async with scraper:
                return await scraper.scrape_static(str(server.make_url("/rome")))

        result = serve(app, scenario)

        assert result.success
        assert [r.title for r in result.data] == [
            "Colosseum Underground Tour",
            "Vatican Museums Morning Visit",
        ]
        assert not scraper.session.is_launched
