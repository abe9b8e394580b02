"""Deep crawl backends.

A backend takes a documentation root URL plus crawl bounds and returns the
markdown of every page it reached. Two backends are available:

- Firecrawl: hosted (or self-hosted) crawl API, driven over HTTP.
- Crawl4AI: local headless browser, breadth-first within the root host.

Backends raise ``CrawlBackendError`` when a crawl fails and
``CrawlBackendUnavailableError`` when the backend cannot be reached at all;
callers use the difference to choose the fallback tier.

The Crawl4AI backend uses a singleton browser pool to reuse a single
browser instance across requests instead of starting/stopping the browser
on every call. Concurrency is bounded by a semaphore.
"""

import asyncio
import os
import tempfile
from dataclasses import dataclass
from fnmatch import fnmatch
from pathlib import Path
from typing import Protocol
from urllib.parse import urldefrag, urljoin, urlparse

import httpx
from crawl4ai import AsyncWebCrawler, BrowserConfig, CrawlerRunConfig
from loguru import logger

from docs_browse.config import settings
from docs_browse.errors import (
    BlockedUrlError,
    CrawlBackendError,
    CrawlBackendUnavailableError,
)
from docs_browse.security import ensure_safe_url


@dataclass(frozen=True)
class CrawlOptions:
    page_limit: int = 30
    max_depth: int = 3
    include_paths: tuple[str, ...] = ()
    exclude_paths: tuple[str, ...] = ()

    def allows(self, path: str) -> bool:
        """Check a URL path against the include/exclude globs.

        Globs are matched without the leading slash, so ``blog/*`` and
        ``/blog/*`` are equivalent.
        """
        path = path.lstrip("/")
        if any(fnmatch(path, p.lstrip("/")) for p in self.exclude_paths):
            return False
        if not self.include_paths:
            return True
        return any(fnmatch(path, p.lstrip("/")) for p in self.include_paths)


@dataclass(frozen=True)
class CrawledPage:
    url: str
    title: str
    content: str


class CrawlBackend(Protocol):
    name: str

    async def crawl(self, url: str, options: CrawlOptions) -> list[CrawledPage]: ...


# ---------------------------------------------------------------------------
# Firecrawl
# ---------------------------------------------------------------------------

_FIRECRAWL_DONE = "completed"
_FIRECRAWL_FAILED = ("failed", "cancelled")


def _json_object(resp: httpx.Response) -> dict:
    data = resp.json()
    if not isinstance(data, dict):
        raise CrawlBackendError(
            f"Firecrawl returned a JSON {type(data).__name__}, expected an object"
        )
    return data


def _page_entries(data: dict) -> list[dict]:
    entries = data.get("data")
    if not isinstance(entries, list):
        return []
    return [entry for entry in entries if isinstance(entry, dict)]


def _text(value) -> str:
    return value if isinstance(value, str) else ""


class FirecrawlBackend:
    """Crawl through the Firecrawl v1 crawl API (start job, then poll)."""

    name = "firecrawl"

    def __init__(
        self,
        api_key: str,
        api_url: str | None = None,
        poll_interval: float | None = None,
    ):
        self._api_key = api_key
        self._api_url = (api_url or settings.firecrawl_api_url).rstrip("/")
        self._poll_interval = (
            settings.crawl_poll_interval if poll_interval is None else poll_interval
        )

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _payload(url: str, options: CrawlOptions) -> dict:
        payload: dict = {
            "url": url,
            "limit": options.page_limit,
            "maxDepth": options.max_depth,
            "scrapeOptions": {
                "formats": ["markdown"],
                "onlyMainContent": True,
            },
        }
        if options.include_paths:
            payload["includePaths"] = list(options.include_paths)
        if options.exclude_paths:
            payload["excludePaths"] = list(options.exclude_paths)
        return payload

    async def _start(self, client: httpx.AsyncClient, payload: dict) -> str:
        resp = await client.post(f"{self._api_url}/v1/crawl", json=payload)
        if resp.status_code != 200:
            raise CrawlBackendError(
                f"Firecrawl crawl request failed ({resp.status_code}): {resp.text[:200]}"
            )
        data = _json_object(resp)
        job_id = data.get("id")
        if not data.get("success", True) or not isinstance(job_id, str) or not job_id:
            raise CrawlBackendError(f"Firecrawl did not start a crawl: {data}")
        return job_id

    def _same_api_host(self, next_url) -> bool:
        if not isinstance(next_url, str) or not next_url:
            return False
        return urlparse(next_url).netloc == urlparse(self._api_url).netloc

    async def _collect_pages(self, client: httpx.AsyncClient, data: dict) -> list[dict]:
        pages = _page_entries(data)
        # Large results are paginated through "next"
        next_url = data.get("next")
        while next_url:
            if not self._same_api_host(next_url):
                logger.warning(
                    f"Firecrawl pagination stopped: next page {next_url!r} is not "
                    f"on {self._api_url} ({len(pages)} pages kept)"
                )
                break
            resp = await client.get(next_url)
            if resp.status_code != 200:
                logger.warning(
                    f"Firecrawl pagination stopped at {next_url} "
                    f"({resp.status_code}, {len(pages)} pages kept)"
                )
                break
            more = _json_object(resp)
            pages.extend(_page_entries(more))
            next_url = more.get("next")
        return pages

    async def _poll(self, client: httpx.AsyncClient, job_id: str) -> list[dict]:
        status_url = f"{self._api_url}/v1/crawl/{job_id}"
        while True:
            resp = await client.get(status_url)
            if resp.status_code != 200:
                raise CrawlBackendError(
                    f"Firecrawl status check failed ({resp.status_code})"
                )
            data = _json_object(resp)
            status = data.get("status", "")

            if status == _FIRECRAWL_DONE:
                return await self._collect_pages(client, data)

            if status in _FIRECRAWL_FAILED:
                raise CrawlBackendError(f"Firecrawl crawl {job_id} {status}")

            logger.debug(
                f"Firecrawl crawl {job_id}: {status} "
                f"({data.get('completed', 0)}/{data.get('total', '?')})"
            )
            await asyncio.sleep(self._poll_interval)

    async def crawl(self, url: str, options: CrawlOptions) -> list[CrawledPage]:
        logger.info(
            f"Firecrawl crawl: {url} (limit={options.page_limit}, "
            f"depth={options.max_depth})"
        )
        try:
            async with httpx.AsyncClient(timeout=30, headers=self._headers()) as client:
                job_id = await self._start(client, self._payload(url, options))
                raw_pages = await self._poll(client, job_id)
        except (httpx.ConnectError, httpx.ConnectTimeout) as e:
            raise CrawlBackendUnavailableError(
                f"Firecrawl unreachable at {self._api_url}: {e}"
            ) from e
        except httpx.HTTPError as e:
            raise CrawlBackendError(f"Firecrawl request failed: {e}") from e
        except ValueError as e:
            # Non-JSON body
            raise CrawlBackendError(f"Firecrawl returned invalid JSON: {e}") from e

        pages = []
        for raw in raw_pages:
            content = _text(raw.get("markdown")) or _text(raw.get("content"))
            if not content.strip():
                continue
            metadata = raw.get("metadata")
            if not isinstance(metadata, dict):
                metadata = {}
            pages.append(
                CrawledPage(
                    url=_text(metadata.get("sourceURL"))
                    or _text(metadata.get("url"))
                    or url,
                    title=_text(metadata.get("title")).strip(),
                    content=content,
                )
            )
        if not pages:
            raise CrawlBackendError(f"Firecrawl crawl returned no pages for {url}")
        logger.info(f"Firecrawl crawled {len(pages)} pages from {url}")
        return pages


# ---------------------------------------------------------------------------
# Crawl4AI browser pool (singleton)
# ---------------------------------------------------------------------------

# Per-process browser data directory to prevent Playwright lock deadlock
# when multiple server instances run simultaneously.
_BROWSER_DATA_DIR = str(
    Path(tempfile.gettempdir()) / f"docs-browse-browser-{os.getpid()}"
)

# Maximum number of concurrent browser operations.
_MAX_CONCURRENT_OPS = 4

# Tags that never hold main documentation content
_NON_CONTENT_TAGS = ["nav", "header", "footer", "aside", "form"]

# Guards all access to the shared crawler instance.
_pool_lock = asyncio.Lock()
_crawler_instance: AsyncWebCrawler | None = None
_crawler_stealth: bool = False

_browser_semaphore: asyncio.Semaphore | None = None


def _browser_config(stealth: bool = False) -> BrowserConfig:
    """Create BrowserConfig with per-process isolated data directory."""
    return BrowserConfig(
        headless=settings.crawler_headless,
        enable_stealth=stealth,
        verbose=False,
        user_data_dir=_BROWSER_DATA_DIR,
    )


def _run_config() -> CrawlerRunConfig:
    return CrawlerRunConfig(
        verbose=False,
        excluded_tags=_NON_CONTENT_TAGS,
        exclude_external_links=True,
    )


def _get_semaphore() -> asyncio.Semaphore:
    """Return the module-level semaphore, creating it lazily.

    The semaphore must be bound to the running event loop at creation time.
    """
    global _browser_semaphore
    if _browser_semaphore is None:
        _browser_semaphore = asyncio.Semaphore(_MAX_CONCURRENT_OPS)
    return _browser_semaphore


async def _get_crawler(stealth: bool = False) -> AsyncWebCrawler:
    """Return a shared AsyncWebCrawler, creating one if necessary.

    If the requested *stealth* mode differs from the current instance the
    old browser is shut down and a new one is started.
    """
    global _crawler_instance, _crawler_stealth

    async with _pool_lock:
        if _crawler_instance is not None and _crawler_stealth == stealth:
            return _crawler_instance

        if _crawler_instance is not None:
            logger.debug(f"Recycling browser (stealth {_crawler_stealth} -> {stealth})")
            try:
                await _crawler_instance.__aexit__(None, None, None)
            except Exception as exc:
                logger.debug(f"Error closing old crawler: {exc}")
            _crawler_instance = None

        logger.info(f"Starting shared browser (stealth={stealth})...")
        crawler = AsyncWebCrawler(
            verbose=False,
            config=_browser_config(stealth),
        )
        try:
            await crawler.__aenter__()
        except Exception:
            logger.error("Failed to start shared browser")
            raise

        _crawler_instance = crawler
        _crawler_stealth = stealth
        logger.info("Shared browser started")
        return _crawler_instance


async def shutdown_crawler() -> None:
    """Shut down the shared browser (called during server shutdown)."""
    global _crawler_instance, _browser_semaphore

    async with _pool_lock:
        if _crawler_instance is not None:
            logger.info("Shutting down shared browser...")
            try:
                await _crawler_instance.__aexit__(None, None, None)
            except Exception as exc:
                logger.debug(f"Error during browser shutdown: {exc}")
            _crawler_instance = None
            logger.info("Shared browser shut down")
        _browser_semaphore = None


def _link_href(link) -> str:
    # Crawl4AI returns dicts with 'href' key
    return _text(link.get("href")) if isinstance(link, dict) else _text(link)


class Crawl4AIBackend:
    """Breadth-first crawl with a local headless browser."""

    name = "crawl4ai"

    def __init__(self, stealth: bool = True):
        self._stealth = stealth

    def _next_links(
        self, result, page_url: str, root_host: str, options: CrawlOptions
    ) -> list[str]:
        links = []
        for link in result.links.get("internal", []):
            href = _link_href(link)
            if not href:
                continue
            try:
                link_url, _ = urldefrag(urljoin(page_url, href))
                parsed = urlparse(link_url)
            except ValueError:
                logger.debug(f"Skipping malformed link on {page_url}: {href!r}")
                continue
            if parsed.netloc != root_host:
                continue
            if not options.allows(parsed.path):
                continue
            links.append(link_url)
        return links

    async def crawl(self, url: str, options: CrawlOptions) -> list[CrawledPage]:
        logger.info(
            f"Crawl4AI crawl: {url} (limit={options.page_limit}, "
            f"depth={options.max_depth})"
        )
        try:
            crawler = await _get_crawler(self._stealth)
        except Exception as e:
            raise CrawlBackendUnavailableError(f"Browser could not start: {e}") from e
        sem = _get_semaphore()

        root_host = urlparse(url).netloc
        pages: list[CrawledPage] = []
        visited: set[str] = set()
        to_crawl: list[tuple[str, int]] = [(url, 0)]

        while to_crawl and len(pages) < options.page_limit:
            page_url, depth = to_crawl.pop(0)

            if page_url in visited or depth > options.max_depth:
                continue
            visited.add(page_url)

            try:
                await ensure_safe_url(page_url)
            except BlockedUrlError:
                continue

            async with sem:
                try:
                    result = await crawler.arun(
                        page_url,  # ty: ignore[invalid-argument-type]
                        config=_run_config(),
                    )  # ty: ignore[missing-argument]
                except Exception as e:
                    logger.error(f"Error crawling {page_url}: {e}")
                    continue

            if not result.success:
                logger.debug(f"Crawl failed for {page_url}: {result.error_message}")
                continue

            content = str(result.markdown or "")
            if content.strip():
                pages.append(
                    CrawledPage(
                        url=page_url,
                        title=(result.metadata or {}).get("title", "") or "",
                        content=content,
                    )
                )

            if depth < options.max_depth:
                for link_url in self._next_links(result, page_url, root_host, options):
                    if link_url not in visited:
                        to_crawl.append((link_url, depth + 1))

        if not pages:
            raise CrawlBackendError(f"Crawl produced no pages for {url}")
        logger.info(f"Crawled {len(pages)} pages from {url}")
        return pages


def get_crawl_backend() -> CrawlBackend | None:
    """Build the configured crawl backend, or None when crawling is off."""
    backend = settings.resolve_crawl_backend()
    if backend == "firecrawl":
        api_key = settings.get_firecrawl_key()
        if not api_key:
            logger.warning("CRAWL_BACKEND=firecrawl but FIRECRAWL_API_KEY is not set")
            return None
        return FirecrawlBackend(api_key)
    if backend == "crawl4ai":
        return Crawl4AIBackend()
    return None
