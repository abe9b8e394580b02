"""Acquisition strategy selection.

Decides per URL whether a deep crawl is worth attempting, derives the
crawl bounds, and runs an ordered list of acquisition strategies:

1. ``DeepCrawlStrategy``: crawl backend, documentation-like URLs only
2. ``SingleFetchStrategy``: direct fetch after the backend was skipped or failed
3. ``RawFetchStrategy``: direct fetch when no backend is usable

Every strategy returns a ``PageResult`` or raises a ``BrowseError``. Crawl
errors move on to the next strategy; fetch errors are terminal for the URL.
"""

import asyncio
from typing import Protocol
from urllib.parse import urlparse

from loguru import logger

from docs_browse.config import settings
from docs_browse.errors import (
    CrawlBackendError,
    CrawlBackendUnavailableError,
    InvalidUrlError,
)
from docs_browse.extract import extract_api_endpoints, extract_code_examples
from docs_browse.models import AcquiredVia, PageResult
from docs_browse.security import is_absolute_http_url
from docs_browse.sources.crawler import (
    CrawlBackend,
    CrawledPage,
    CrawlOptions,
    get_crawl_backend,
)
from docs_browse.sources.fetcher import count_words, fetch_page

# Substrings that suggest a URL hosts developer documentation
_DOC_INDICATORS = (
    "docs.",
    "/docs/",
    "/documentation/",
    "/api/",
    "/reference/",
    "/guide/",
    "/tutorial/",
    "developer.",
    "/dev/",
    "/sdk/",
    "readme",
    "/help/",
    "/support/",
    "gitbook.io",
    "notion.so",
    "readme.io",
)

# Sections that never hold API documentation
_CRAWL_EXCLUDES = (
    "blog/*",
    "changelog/*",
    "news/*",
    "legal/*",
    "privacy/*",
    "terms/*",
    "about/*",
    "contact/*",
    "careers/*",
    "*/download/*",
    "*/downloads/*",
    "*/.git/*",
    "*/node_modules/*",
)

# Path marker -> include globs, first match wins
_SECTION_INCLUDES = (
    ("/docs/", ("/docs/*",)),
    ("/api/", ("/api/*", "/docs/*")),
    ("/reference/", ("/reference/*", "/docs/*")),
)

PAGE_SEPARATOR = "\n\n---\n\n"


def is_documentation_url(url: str) -> bool:
    """Heuristic: does the URL look like an API/developer docs site?"""
    url_lower = url.lower()
    return any(indicator in url_lower for indicator in _DOC_INDICATORS)


def crawl_options_for(url: str) -> CrawlOptions:
    """Derive crawl bounds that keep a crawl inside the docs section."""
    path = urlparse(url).path
    include: tuple[str, ...] = ()
    for marker, globs in _SECTION_INCLUDES:
        if marker in path:
            include = globs
            break
    return CrawlOptions(
        page_limit=settings.crawl_page_limit,
        max_depth=settings.crawl_max_depth,
        include_paths=include,
        exclude_paths=_CRAWL_EXCLUDES,
    )


def merge_crawled_pages(url: str, pages: list[CrawledPage]) -> PageResult:
    """Concatenate crawled pages into one DeepCrawl result."""
    content = PAGE_SEPARATOR.join(p.content for p in pages).strip()
    first_title = next((p.title for p in pages if p.title), "")
    main_title = first_title or urlparse(url).hostname or url
    return PageResult(
        url=url,
        title=f"{main_title} ({len(pages)} pages)",
        content=content,
        api_endpoints=tuple(extract_api_endpoints(content)),
        code_examples=tuple(extract_code_examples(content)),
        word_count=count_words(content),
        acquired_via=AcquiredVia.DEEP_CRAWL,
        page_count=len(pages),
        final_url=url,
    )


class AcquisitionStrategy(Protocol):
    via: AcquiredVia

    async def acquire(self, url: str) -> PageResult: ...


class DeepCrawlStrategy:
    via = AcquiredVia.DEEP_CRAWL

    def __init__(self, backend: CrawlBackend, timeout: float | None = None):
        self.backend = backend
        self.timeout = settings.crawl_timeout if timeout is None else timeout

    async def acquire(self, url: str) -> PageResult:
        options = crawl_options_for(url)
        try:
            pages = await asyncio.wait_for(
                self.backend.crawl(url, options), timeout=self.timeout
            )
        except TimeoutError as e:
            raise CrawlBackendError(
                f"{self.backend.name} crawl timed out after {self.timeout}s"
            ) from e
        except CrawlBackendError:
            raise
        except Exception as e:
            raise CrawlBackendError(f"{self.backend.name} crawl failed: {e}") from e
        if not pages:
            raise CrawlBackendError(f"{self.backend.name} crawl returned no pages")
        return merge_crawled_pages(url, pages)


class SingleFetchStrategy:
    via = AcquiredVia.SINGLE_FETCH

    async def acquire(self, url: str) -> PageResult:
        return await fetch_page(url, self.via)


class RawFetchStrategy(SingleFetchStrategy):
    via = AcquiredVia.RAW_FALLBACK


class Acquirer:
    """Run the acquisition strategies for one URL, most capable first."""

    def __init__(self, backend: CrawlBackend | None = None):
        self.backend = backend

    @classmethod
    def from_settings(cls) -> "Acquirer":
        return cls(get_crawl_backend())

    def plan(self, url: str) -> list[AcquisitionStrategy]:
        """Ordered strategies to try for *url*."""
        if self.backend is None:
            return [RawFetchStrategy()]
        if not is_documentation_url(url):
            return [SingleFetchStrategy()]
        return [DeepCrawlStrategy(self.backend), SingleFetchStrategy()]

    async def acquire(self, url: str) -> PageResult:
        if not is_absolute_http_url(url):
            raise InvalidUrlError("Invalid URL format")

        strategies = self.plan(url)
        if strategies[0].via is AcquiredVia.DEEP_CRAWL:
            logger.info(f"URL appears to be documentation - attempting crawl: {url}")

        while strategies:
            strategy = strategies.pop(0)
            try:
                return await strategy.acquire(url)
            except CrawlBackendUnavailableError as e:
                logger.warning(f"Crawl backend unavailable, using direct fetch: {e}")
                # Only the raw tier remains once the backend is gone
                strategies = [RawFetchStrategy()]
            except CrawlBackendError as e:
                if not strategies:
                    raise
                logger.warning(
                    f"Crawl failed, falling back to {strategies[0].via.value}: {e}"
                )

        raise CrawlBackendError(f"No acquisition strategy left for {url}")
