"""Tests for src/docs_browse/server.py."""

import asyncio
import json
from unittest.mock import AsyncMock, patch

import pytest

from docs_browse import server
from docs_browse.config import settings
from docs_browse.models import (
    AcquiredVia,
    BrowseReport,
    BrowseSummary,
    PageResult,
    UrlResult,
)
from docs_browse.server import browse, documentation, integrate_api


def _report():
    page = PageResult(
        url="https://docs.example.com/api",
        title="Example API",
        content="GET /api/v1/users",
        api_endpoints=("/api/v1/users", "GET /api/v1/users"),
        word_count=3,
        acquired_via=AcquiredVia.RAW_FALLBACK,
    )
    return BrowseReport(
        requested_urls=(page.url,),
        results=(UrlResult(url=page.url, page=page),),
        summary=BrowseSummary(
            total_urls=1,
            successful=1,
            total_words=3,
            domains=("docs.example.com",),
            total_endpoints=2,
        ),
        documentation_context="## Example API (docs.example.com)\n",
        message="Successfully analyzed 1 of 1 URLs.",
    )


def _unwrap(result: str, tool: str) -> dict:
    tag = f"untrusted_{tool}_content"
    assert result.startswith(f"<{tag}>\n")
    body = result.split(f"<{tag}>\n", 1)[1].split(f"\n</{tag}>", 1)[0]
    return json.loads(body)


@pytest.fixture(autouse=True)
def _clear_last_result():
    server._last_result.clear()
    yield
    server._last_result.clear()


@pytest.mark.asyncio
async def test_browse_success():
    """Browse tool returns the wrapped JSON report."""
    with patch("docs_browse.server._browse", new_callable=AsyncMock) as mock_browse:
        mock_browse.return_value = _report()

        result = await browse(
            urls=["https://docs.example.com/api"], request="build a user list"
        )

    data = _unwrap(result, "browse")
    assert data["success"] is True
    assert data["summary"]["totalEndpoints"] == 2
    assert data["results"][0]["acquiredVia"] == "RawFallback"
    assert "scraped from third-party websites" in result
    mock_browse.assert_called_once_with(
        ["https://docs.example.com/api"],
        "build a user list",
        None,
        store=server._last_result,
    )


@pytest.mark.asyncio
async def test_browse_missing_urls():
    """Empty or non-list urls are rejected before browsing."""
    with patch("docs_browse.server._browse", new_callable=AsyncMock) as mock_browse:
        assert "Error: urls must be" in await browse(urls=[])
        assert "Error: urls must be" in await browse(urls="https://x.io")
    mock_browse.assert_not_called()


@pytest.mark.asyncio
async def test_browse_timeout(monkeypatch):
    """A browse call exceeding TOOL_TIMEOUT returns an error message."""

    async def slow_browse(*args, **kwargs):
        await asyncio.sleep(10)

    monkeypatch.setattr(settings, "tool_timeout", 0.1)
    with patch(
        "docs_browse.server._browse", new_callable=AsyncMock, side_effect=slow_browse
    ):
        result = await browse(urls=["https://docs.example.com/api"])

    assert result.startswith("Error: 'browse' timed out")


@pytest.mark.asyncio
async def test_documentation_empty():
    data = _unwrap(await documentation(), "documentation")
    assert data == {"hasDocumentation": False, "results": None}


@pytest.mark.asyncio
async def test_documentation_after_browse():
    server._last_result.store(_report())

    data = _unwrap(await documentation(), "documentation")

    assert data["hasDocumentation"] is True
    assert data["results"]["requestedUrls"] == ["https://docs.example.com/api"]
    assert data["results"]["documentationContext"].startswith("## Example API")


@pytest.mark.asyncio
async def test_browse_stores_last_result():
    """The real browse pipeline writes into the server's result store."""
    html = "<html><head><title>Users</title></head><body>GET /api/v1/users</body></html>"
    from docs_browse.sources.fetcher import FetchedPage

    fetched = FetchedPage(
        url="https://x.example.com/",
        final_url="https://x.example.com/",
        html=html,
        status_code=200,
    )
    with (
        patch("docs_browse.strategy.get_crawl_backend", return_value=None),
        patch(
            "docs_browse.sources.fetcher.fetch_html",
            new_callable=AsyncMock,
            return_value=fetched,
        ),
    ):
        await browse(urls=["https://x.example.com/"])

    report = server._last_result.retrieve()
    assert report is not None
    assert report.summary.successful == 1


def test_integrate_api_prompt():
    prompt = integrate_api(urls='"https://docs.example.com"', request="a login form")
    assert "a login form" in prompt
    assert "browse" in prompt
    assert "documentationContext" in prompt


@pytest.mark.asyncio
async def test_lifespan_clears_store_and_shuts_down_browser():
    server._last_result.store(_report())
    with patch(
        "docs_browse.server.shutdown_crawler", new_callable=AsyncMock
    ) as mock_shutdown:
        async with server._lifespan(server.mcp):
            assert server._last_result.retrieve() is not None

    assert server._last_result.retrieve() is None
    mock_shutdown.assert_awaited_once()
