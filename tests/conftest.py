"""Shared fixtures for harvest tests."""

from collections.abc import Callable, Generator
from typing import Any

import httpx
import pytest

from harvest.http import HttpClient
from harvest.scraper import Scraper, ScraperResult
from harvest.settings import ScraperSettings
from tests.utils import BOOKS_HTML, config


# =============================================================================
# Mock website
# =============================================================================


def _site_handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == "/books":
        return httpx.Response(200, html=BOOKS_HTML)
    if path == "/echo":
        if request.method == "POST":
            return httpx.Response(200, text=request.content.decode())
        query = "&".join(
            f"{name}={value}"
            for name, value in request.url.params.multi_items()
        )
        return httpx.Response(200, text=query)
    if path == "/headers":
        return httpx.Response(
            200,
            text=f"{request.headers.get('x-token', '')}|"
            f"{request.headers.get('user-agent', '')}",
        )
    if path == "/cover.png":
        return httpx.Response(
            200,
            content=b"\x89PNG\r\n",
            headers={"Content-Type": "image/png"},
        )
    if path == "/broken":
        return httpx.Response(500, text="internal error")
    if path == "/down":
        raise httpx.ConnectError("connection refused", request=request)
    return httpx.Response(404, text="not found")


@pytest.fixture
def mock_transport() -> httpx.MockTransport:
    """Transport serving a small book site under ``BASE_URL``."""
    return httpx.MockTransport(_site_handler)


@pytest.fixture
def http_client(
    mock_transport: httpx.MockTransport,
) -> Generator[HttpClient, None, None]:
    client = HttpClient(
        timeout=5.0, user_agent="harvest-tests", transport=mock_transport
    )
    yield client
    client.close()


# =============================================================================
# Running configurations
# =============================================================================


@pytest.fixture
def settings(tmp_path) -> ScraperSettings:
    """Settings with the working directory pointed at a temp dir."""
    return ScraperSettings(working_dir=tmp_path)


@pytest.fixture
def run_config(
    settings: ScraperSettings, http_client: HttpClient
) -> Callable[..., ScraperResult]:
    """Parse and run a configuration body.

    Returns:
        A function ``run(body, **variables) -> ScraperResult``.
    """

    def run(body: str, **variables: Any) -> ScraperResult:
        scraper = Scraper(config(body), settings, http_client=http_client)
        return scraper.execute(variables)

    return run
