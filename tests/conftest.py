"""Pytest configuration and fixtures."""

import ipaddress
import socket
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

# Public address handed out for every hostname lookup during tests
PUBLIC_IP = "93.184.216.34"


def _fake_getaddrinfo(host, *args, **kwargs):
    try:
        ip = str(ipaddress.ip_address(host))
    except ValueError:
        ip = PUBLIC_IP
    family = socket.AF_INET6 if ":" in ip else socket.AF_INET
    return [(family, socket.SOCK_STREAM, 6, "", (ip, 80))]


@pytest.fixture(autouse=True)
def _offline_dns():
    """Resolve hostnames to a public IP so the SSRF guard never hits DNS.

    IP literals resolve to themselves, so private addresses are still
    blocked.
    """
    with patch("socket.getaddrinfo", side_effect=_fake_getaddrinfo):
        yield


@pytest.fixture(autouse=True)
async def _reset_crawler_singleton():
    """Reset the crawler singleton state before and after each test."""
    import docs_browse.sources.crawler as crawler_mod

    crawler_mod._crawler_instance = None
    crawler_mod._crawler_stealth = False
    crawler_mod._browser_semaphore = None

    yield

    crawler_mod._crawler_instance = None
    crawler_mod._crawler_stealth = False
    crawler_mod._browser_semaphore = None


@pytest.fixture
def mock_crawler_instance():
    """Create a mock AsyncWebCrawler instance for use with _get_crawler patch.

    Tests should patch ``docs_browse.sources.crawler._get_crawler`` to return
    this mock so that the singleton browser pool is bypassed entirely.
    """
    instance = AsyncMock()
    instance.__aenter__ = AsyncMock(return_value=instance)
    instance.__aexit__ = AsyncMock(return_value=None)
    return instance


@pytest.fixture
def sample_url():
    """Sample documentation URL for testing."""
    return "https://example.com/docs/api"


@pytest.fixture
def sample_html():
    """Small documentation page with endpoints, code and noise."""
    return """<!DOCTYPE html>
<html>
<head>
  <title>Payments API &amp; Reference</title>
  <style>.hero { color: red; }</style>
  <script>window.track = function() { return "/api/tracking"; };</script>
  <link href="/static/fonts/inter.woff2" rel="preload">
</head>
<body>
  <h1>Payments API</h1>
  <p>Authenticate every request with a Bearer token in the header.</p>
  <p>Create a charge with POST /api/v1/charges and list them via GET /api/v1/charges.</p>
  <pre>curl https://pay.example.com/api/v1/charges -H "Authorization: Bearer sk_test"</pre>
  <p>Results use cursor Pagination.</p>
</body>
</html>"""


def _make_response(
    status: int = 200, text: str = "", url: str = "https://example.com", headers=None
):
    return httpx.Response(
        status,
        text=text,
        headers=headers or {},
        request=httpx.Request("GET", url),
    )


@pytest.fixture
def make_response():
    """Factory for real httpx.Response objects bound to a request."""
    return _make_response


@pytest.fixture
def mock_http_client():
    """Patchable stand-in for ``httpx.AsyncClient``.

    Returns ``(client_cls, client)``: patch the module's ``httpx.AsyncClient``
    with ``client_cls`` and configure ``client.get`` / ``client.post``.

    Example usage::

        def test_something(mock_http_client):
            client_cls, client = mock_http_client
            client.get.return_value = make_response(200, "<html></html>")
            with patch("docs_browse.sources.fetcher.httpx.AsyncClient", client_cls):
                ...
    """
    client = AsyncMock()
    client.__aenter__.return_value = client
    client.__aexit__.return_value = None
    client_cls = MagicMock(return_value=client)
    return client_cls, client


class FakeCrawlBackend:
    """In-memory crawl backend recording every call."""

    name = "fake"

    def __init__(self, pages=None, error: Exception | None = None):
        self.pages = pages or []
        self.error = error
        self.calls = []

    async def crawl(self, url, options):
        self.calls.append((url, options))
        if self.error is not None:
            raise self.error
        return list(self.pages)


@pytest.fixture
def fake_backend_cls():
    return FakeCrawlBackend
