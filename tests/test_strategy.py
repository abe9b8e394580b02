"""Tests for src/docs_browse/strategy.py: tiered acquisition."""

from unittest.mock import AsyncMock, patch

import pytest

from docs_browse.errors import (
    CrawlBackendError,
    CrawlBackendUnavailableError,
    HttpStatusError,
    InvalidUrlError,
)
from docs_browse.models import AcquiredVia
from docs_browse.sources.crawler import CrawledPage
from docs_browse.sources.fetcher import FetchedPage
from docs_browse.strategy import (
    PAGE_SEPARATOR,
    Acquirer,
    DeepCrawlStrategy,
    RawFetchStrategy,
    SingleFetchStrategy,
    crawl_options_for,
    is_documentation_url,
    merge_crawled_pages,
)

_FETCH_HTML = "docs_browse.sources.fetcher.fetch_html"

_DIRECT_HTML = (
    "<html><head><title>Direct Page</title></head>"
    "<body><p>Call GET /api/v1/direct with an API key.</p></body></html>"
)


def _fetched(url):
    return FetchedPage(
        url=url, final_url=url, html=_DIRECT_HTML, status_code=200
    )


@pytest.fixture
def mock_fetch():
    mock = AsyncMock(side_effect=lambda url, timeout=None: _fetched(url))
    with patch(_FETCH_HTML, mock):
        yield mock


def _crawled():
    return [
        CrawledPage(
            url="https://docs.example.com/intro",
            title="Example Docs",
            content="# Intro\nUse POST /api/v1/charges",
        ),
        CrawledPage(
            url="https://docs.example.com/auth",
            title="Auth",
            content="# Auth\nSend a Bearer token.",
        ),
    ]


# -----------------------------------------------------------------------
# Heuristics
# -----------------------------------------------------------------------


class TestIsDocumentationUrl:
    @pytest.mark.parametrize(
        "url",
        [
            "https://docs.stripe.com/api",
            "https://example.com/docs/getting-started",
            "https://developer.example.com/",
            "https://example.com/api/reference",
            "https://team.gitbook.io/product",
            "https://example.readme.io/reference",
            "https://example.com/README",
        ],
    )
    def test_documentation(self, url):
        assert is_documentation_url(url)

    @pytest.mark.parametrize(
        "url",
        ["https://example.com/", "https://news.example.com/story", "https://shop.io/cart"],
    )
    def test_not_documentation(self, url):
        assert not is_documentation_url(url)


class TestCrawlOptionsFor:
    def test_docs_section(self):
        options = crawl_options_for("https://example.com/docs/payments")
        assert options.include_paths == ("/docs/*",)
        assert "blog/*" in options.exclude_paths
        assert "*/node_modules/*" in options.exclude_paths
        assert options.page_limit == 30
        assert options.max_depth == 3

    def test_api_section(self):
        options = crawl_options_for("https://example.com/api/v1")
        assert options.include_paths == ("/api/*", "/docs/*")

    def test_reference_section(self):
        options = crawl_options_for("https://example.com/reference/charges")
        assert options.include_paths == ("/reference/*", "/docs/*")

    def test_docs_subdomain_unrestricted(self):
        assert crawl_options_for("https://docs.example.com/").include_paths == ()


class TestMergeCrawledPages:
    def test_merge(self):
        page = merge_crawled_pages("https://docs.example.com/", _crawled())
        assert page.title == "Example Docs (2 pages)"
        assert page.page_count == 2
        assert page.acquired_via is AcquiredVia.DEEP_CRAWL
        assert PAGE_SEPARATOR in page.content
        assert page.content.index("# Intro") < page.content.index("# Auth")
        assert "POST /api/v1/charges" in page.api_endpoints
        assert page.word_count == len(page.content.split())

    def test_title_falls_back_to_host(self):
        pages = [CrawledPage(url="https://docs.example.com/", title="", content="x")]
        page = merge_crawled_pages("https://docs.example.com/", pages)
        assert page.title == "docs.example.com (1 pages)"


# -----------------------------------------------------------------------
# Strategies
# -----------------------------------------------------------------------


class TestDeepCrawlStrategy:
    async def test_timeout_is_crawl_error(self, fake_backend_cls):
        backend = fake_backend_cls()
        backend.crawl = AsyncMock(side_effect=TimeoutError())
        strategy = DeepCrawlStrategy(backend, timeout=5)

        with pytest.raises(CrawlBackendError, match="timed out"):
            await strategy.acquire("https://docs.example.com/")

    async def test_empty_result_is_crawl_error(self, fake_backend_cls):
        strategy = DeepCrawlStrategy(fake_backend_cls(pages=[]))
        with pytest.raises(CrawlBackendError):
            await strategy.acquire("https://docs.example.com/")

    async def test_unexpected_error_is_crawl_error(self, fake_backend_cls):
        strategy = DeepCrawlStrategy(fake_backend_cls(error=RuntimeError("boom")))

        with pytest.raises(CrawlBackendError) as exc_info:
            await strategy.acquire("https://docs.example.com/")
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert str(exc_info.value) == "fake crawl failed: boom"

    async def test_unavailable_passes_through(self, fake_backend_cls):
        strategy = DeepCrawlStrategy(
            fake_backend_cls(error=CrawlBackendUnavailableError("down"))
        )
        with pytest.raises(CrawlBackendUnavailableError):
            await strategy.acquire("https://docs.example.com/")

    async def test_passes_crawl_options(self, fake_backend_cls):
        backend = fake_backend_cls(pages=_crawled())
        await DeepCrawlStrategy(backend).acquire("https://example.com/docs/intro")
        ((url, options),) = backend.calls
        assert url == "https://example.com/docs/intro"
        assert options.include_paths == ("/docs/*",)


class TestAcquirerPlan:
    def test_no_backend(self):
        (strategy,) = Acquirer().plan("https://docs.example.com/")
        assert isinstance(strategy, RawFetchStrategy)

    def test_non_documentation_url(self, fake_backend_cls):
        (strategy,) = Acquirer(fake_backend_cls()).plan("https://example.com/pricing")
        assert type(strategy) is SingleFetchStrategy

    def test_documentation_url(self, fake_backend_cls):
        plan = Acquirer(fake_backend_cls()).plan("https://docs.example.com/")
        assert [s.via for s in plan] == [
            AcquiredVia.DEEP_CRAWL,
            AcquiredVia.SINGLE_FETCH,
        ]


class TestAcquirer:
    async def test_deep_crawl(self, fake_backend_cls, mock_fetch):
        acquirer = Acquirer(fake_backend_cls(pages=_crawled()))
        page = await acquirer.acquire("https://docs.example.com/")

        assert page.acquired_via is AcquiredVia.DEEP_CRAWL
        assert page.page_count == 2
        mock_fetch.assert_not_called()

    async def test_crawl_error_falls_back_to_single_fetch(
        self, fake_backend_cls, mock_fetch
    ):
        backend = fake_backend_cls(error=CrawlBackendError("job failed"))
        page = await Acquirer(backend).acquire("https://docs.example.com/")

        assert page.acquired_via is AcquiredVia.SINGLE_FETCH
        assert page.title == "Direct Page"
        assert page.page_count is None
        assert len(backend.calls) == 1

    async def test_unexpected_backend_error_falls_back_to_single_fetch(
        self, fake_backend_cls, mock_fetch
    ):
        backend = fake_backend_cls(error=RuntimeError("boom"))
        page = await Acquirer(backend).acquire("https://docs.example.com/")

        assert page.acquired_via is AcquiredVia.SINGLE_FETCH
        assert len(backend.calls) == 1

    async def test_backend_unavailable_uses_raw_fallback(
        self, fake_backend_cls, mock_fetch
    ):
        backend = fake_backend_cls(error=CrawlBackendUnavailableError("down"))
        page = await Acquirer(backend).acquire("https://docs.example.com/")

        assert page.acquired_via is AcquiredVia.RAW_FALLBACK
        assert "GET /api/v1/direct" in page.api_endpoints

    async def test_no_backend_uses_raw_fallback(self, mock_fetch):
        page = await Acquirer().acquire("https://docs.example.com/")
        assert page.acquired_via is AcquiredVia.RAW_FALLBACK

    async def test_non_documentation_url_skips_crawl(
        self, fake_backend_cls, mock_fetch
    ):
        backend = fake_backend_cls(pages=_crawled())
        page = await Acquirer(backend).acquire("https://example.com/pricing")

        assert page.acquired_via is AcquiredVia.SINGLE_FETCH
        assert backend.calls == []

    async def test_fetch_error_is_terminal(self, fake_backend_cls):
        backend = fake_backend_cls(error=CrawlBackendError("job failed"))
        with (
            patch(_FETCH_HTML, AsyncMock(side_effect=HttpStatusError(404))),
            pytest.raises(HttpStatusError),
        ):
            await Acquirer(backend).acquire("https://docs.example.com/")

    async def test_invalid_url(self, fake_backend_cls):
        backend = fake_backend_cls(pages=_crawled())
        with pytest.raises(InvalidUrlError):
            await Acquirer(backend).acquire("not-a-url")
        assert backend.calls == []
