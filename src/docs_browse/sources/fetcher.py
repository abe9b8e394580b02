"""Direct page fetching and HTML normalization.

The fetcher is the lowest acquisition tier: a plain GET with browser-like
headers, a hard timeout and manual redirect following so every hop can be
checked against the SSRF guard. The normalizer is a regex pass that turns
arbitrary (possibly malformed) HTML into a title and plain text.
"""

import asyncio
import html
import re
from typing import NamedTuple
from urllib.parse import urljoin, urlparse

import httpx
from loguru import logger

from docs_browse.config import settings
from docs_browse.errors import (
    FetchTimeoutError,
    HttpStatusError,
    InvalidUrlError,
    NetworkError,
)
from docs_browse.extract import extract_api_endpoints, extract_code_examples
from docs_browse.models import AcquiredVia, PageResult
from docs_browse.security import ensure_safe_url, is_absolute_http_url

_REDIRECT_CODES = frozenset({301, 302, 303, 307, 308})

_SCRIPT_RE = re.compile(r"<script[^>]*>[\s\S]*?</script>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style[^>]*>[\s\S]*?</style>", re.IGNORECASE)
_COMMENT_RE = re.compile(r"<!--[\s\S]*?-->")
_TITLE_RE = re.compile(r"<title[^>]*>([\s\S]*?)</title>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_WHITESPACE_RE = re.compile(r"\s+")


class FetchedPage(NamedTuple):
    url: str
    final_url: str
    html: str
    status_code: int


class NormalizedPage(NamedTuple):
    title: str
    content: str


def _browser_headers() -> dict[str, str]:
    """Headers that look like a desktop browser to get past naive bot checks."""
    return {
        "User-Agent": settings.user_agent,
        "Accept": (
            "text/html,application/xhtml+xml,application/xml;q=0.9,"
            "image/webp,*/*;q=0.8"
        ),
        "Accept-Language": "en-US,en;q=0.5",
        "Accept-Encoding": "gzip, deflate",
        "Upgrade-Insecure-Requests": "1",
    }


async def _get_following_redirects(url: str, timeout: float) -> FetchedPage:
    current = url
    async with httpx.AsyncClient(timeout=timeout, headers=_browser_headers()) as client:
        for _ in range(settings.max_redirects + 1):
            await ensure_safe_url(current)
            try:
                resp = await client.get(current, follow_redirects=False)
            except httpx.InvalidURL as e:
                raise NetworkError(f"Invalid request URL {current}: {e}", cause=e) from e

            location = resp.headers.get("location")
            if resp.status_code in _REDIRECT_CODES and location:
                try:
                    next_url = urljoin(current, location)
                except ValueError as e:
                    raise NetworkError(
                        f"Invalid redirect target from {current}: {location!r}", cause=e
                    ) from e
                logger.debug(f"Redirect {resp.status_code}: {current} -> {next_url}")
                if not is_absolute_http_url(next_url):
                    raise NetworkError(f"Invalid redirect target: {next_url}")
                current = next_url
                continue

            if not 200 <= resp.status_code < 300:
                raise HttpStatusError(resp.status_code)

            return FetchedPage(
                url=url,
                final_url=current,
                html=resp.text,
                status_code=resp.status_code,
            )

    raise NetworkError(f"Too many redirects (>{settings.max_redirects}) for {url}")


async def fetch_html(url: str, timeout: float | None = None) -> FetchedPage:
    """Fetch raw HTML for one URL.

    Args:
        url: Absolute http(s) URL.
        timeout: Overall bound in seconds (default: FETCH_TIMEOUT).

    Raises:
        InvalidUrlError: URL is not a well-formed absolute http(s) URL.
        BlockedUrlError: URL or a redirect hop points at a private host.
        FetchTimeoutError: The request exceeded the timeout.
        HttpStatusError: The final response was not 2xx.
        NetworkError: DNS, connection or protocol failure.
    """
    if not is_absolute_http_url(url):
        raise InvalidUrlError("Invalid URL format")

    url = url.strip()
    timeout = settings.fetch_timeout if timeout is None else timeout

    try:
        return await asyncio.wait_for(
            _get_following_redirects(url, timeout), timeout=timeout
        )
    except (TimeoutError, httpx.TimeoutException) as e:
        raise FetchTimeoutError(
            "Request timeout - URL took too long to respond"
        ) from e
    except httpx.HTTPError as e:
        raise NetworkError(f"Network error: {e}", cause=e) from e


def _collapse(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_html(raw_html: str, url: str = "") -> NormalizedPage:
    """Strip scripts, styles and tags from HTML and extract the title.

    Falls back to the URL host name when the page has no usable title.
    Never raises on malformed markup.
    """
    raw_html = raw_html or ""

    title = ""
    title_match = _TITLE_RE.search(raw_html)
    if title_match:
        title = _collapse(html.unescape(_TAG_RE.sub("", title_match.group(1))))
    if not title:
        title = urlparse(url).hostname or url

    text = _SCRIPT_RE.sub("", raw_html)
    text = _STYLE_RE.sub("", text)
    text = _COMMENT_RE.sub("", text)
    text = _TAG_RE.sub(" ", text)
    content = _collapse(html.unescape(text))

    return NormalizedPage(title=title, content=content)


def count_words(content: str) -> int:
    return len(content.split())


async def fetch_page(
    url: str, acquired_via: AcquiredVia = AcquiredVia.RAW_FALLBACK
) -> PageResult:
    """Fetch a single page and turn it into a PageResult.

    Endpoints and code samples are extracted from the raw HTML, where
    attribute values and ``<pre>`` blocks are still intact.
    """
    fetched = await fetch_html(url)
    page = normalize_html(fetched.html, fetched.final_url or url)

    logger.info(
        f"Fetched {url} ({count_words(page.content)} words, via {acquired_via.value})"
    )
    return PageResult(
        url=url,
        title=page.title,
        content=page.content,
        api_endpoints=tuple(extract_api_endpoints(fetched.html)),
        code_examples=tuple(extract_code_examples(fetched.html)),
        word_count=count_words(page.content),
        acquired_via=acquired_via,
        final_url=fetched.final_url,
    )
