"""Browse orchestration: the public entry point of the pipeline.

For each requested URL (at most MAX_URLS, processed sequentially):
acquire -> relevance filter -> analyze. Failures are isolated per URL and
reported as failure records; the call itself only raises for a malformed
``urls`` argument.
"""

from dataclasses import replace

from loguru import logger

from docs_browse.analyzer import analyze_documentation
from docs_browse.config import settings
from docs_browse.errors import BrowseError
from docs_browse.models import (
    AcquiredVia,
    BrowseReport,
    BrowseSummary,
    FailureRecord,
    UrlResult,
)
from docs_browse.relevance import extract_topics, filter_relevant_content
from docs_browse.store import LastResultStore
from docs_browse.strategy import Acquirer

SECTION_SEPARATOR = "\n\n---\n\n"
MAX_CONTEXT_ENDPOINTS = 10


async def _process_url(
    url: str,
    acquirer: Acquirer,
    topics: set[str],
    focus: str | None,
) -> UrlResult:
    try:
        page = await acquirer.acquire(url)
    except BrowseError as e:
        logger.error(f"Error browsing {url}: {e.kind}: {e.message}")
        return UrlResult(
            url=url, failure=FailureRecord(url=url, error_kind=e.kind, message=e.message)
        )

    if topics:
        filtered = filter_relevant_content(page.content, topics)
        logger.debug(
            f"Relevance filter {sorted(topics)}: {len(page.content)} -> "
            f"{len(filtered)} chars for {url}"
        )
        page = replace(page, content=filtered)

    analysis = analyze_documentation(page.content, page.api_endpoints, focus)
    logger.info(
        f"Browsed {url} ({page.word_count} words, "
        f"{len(page.api_endpoints)} endpoints, via {page.acquired_via.value})"
    )
    return UrlResult(url=url, page=page, analysis=analysis)


def _summarize(requested: tuple, results: list[UrlResult]) -> BrowseSummary:
    successful = [r for r in results if r.success]
    domains: list[str] = []
    for r in successful:
        domain = r.page.domain
        if domain and domain not in domains:
            domains.append(domain)
    return BrowseSummary(
        total_urls=len(requested),
        successful=len(successful),
        failed=len(results) - len(successful),
        total_words=sum(r.page.word_count for r in successful),
        domains=tuple(domains),
        total_endpoints=sum(len(r.page.api_endpoints) for r in successful),
    )


def _preview(content: str, limit: int) -> str:
    if not content:
        return "No content available"
    if len(content) <= limit:
        return content
    return content[:limit] + "..."


def _acquisition_label(result: UrlResult) -> str:
    page = result.page
    if page.acquired_via is AcquiredVia.DEEP_CRAWL and page.page_count:
        return f"{page.acquired_via.value} ({page.page_count} pages)"
    return page.acquired_via.value


def format_context_section(result: UrlResult, preview_chars: int | None = None) -> str:
    """Render one successful result as a Markdown context section."""
    page, analysis = result.page, result.analysis
    preview_chars = (
        settings.context_preview_chars if preview_chars is None else preview_chars
    )

    endpoints = page.api_endpoints[:MAX_CONTEXT_ENDPOINTS]
    endpoint_lines = (
        "\n".join(f"- {ep}" for ep in endpoints)
        if endpoints
        else "No specific endpoints detected"
    )

    parts = [
        f"## {page.title} ({page.domain})",
        f"**URL:** {page.url}\n**Acquired via:** {_acquisition_label(result)}",
        f"**API Analysis:**\n{analysis.summary}",
        f"**Key Endpoints:**\n{endpoint_lines}",
        f"**Integration Notes:**\n{analysis.integration_notes}",
    ]
    if analysis.auth_methods:
        parts.append(f"**Authentication:** {', '.join(analysis.auth_methods)}")
    if analysis.code_snippets:
        blocks = "\n\n".join(f"```\n{s}\n```" for s in analysis.code_snippets)
        parts.append(f"**Code Examples:**\n{blocks}")
    parts.append(f"**Content Preview:**\n{_preview(page.content, preview_chars)}")
    return "\n\n".join(parts) + "\n"


def build_documentation_context(results: list[UrlResult]) -> str:
    """Concatenate one section per successful result."""
    return SECTION_SEPARATOR.join(
        format_context_section(r) for r in results if r.success
    )


async def browse(
    urls: list[str],
    user_request: str | None = None,
    focus: str | None = None,
    *,
    store: LastResultStore | None = None,
    acquirer: Acquirer | None = None,
) -> BrowseReport:
    """Acquire, filter and analyze documentation URLs.

    Args:
        urls: URLs to browse; only the first MAX_URLS are processed.
        user_request: The user's natural-language request. Drives relevance
            filtering and doubles as the analysis focus.
        focus: Explicit analysis focus (regex), overrides *user_request*.
        store: Receives the finished report.
        acquirer: Acquisition strategy runner (default: from settings).

    Returns:
        BrowseReport with one result per processed URL, in input order.

    Raises:
        TypeError: *urls* is not a list or tuple.
    """
    if not isinstance(urls, (list, tuple)):
        raise TypeError(f"urls must be a list of URLs, got {type(urls).__name__}")

    requested = tuple(urls)
    to_process = requested[: settings.max_urls]
    if len(requested) > len(to_process):
        logger.warning(
            f"Browsing only the first {len(to_process)} of {len(requested)} URLs"
        )
    logger.info(
        f"Browsing URLs: {', '.join(map(str, to_process))}"
        + (f" with focus: {focus}" if focus else "")
    )

    acquirer = acquirer or Acquirer.from_settings()
    topics = extract_topics(user_request)
    analysis_focus = focus or user_request

    results: list[UrlResult] = []
    for url in to_process:
        results.append(await _process_url(url, acquirer, topics, analysis_focus))

    summary = _summarize(requested, results)
    report = BrowseReport(
        requested_urls=requested,
        results=tuple(results),
        summary=summary,
        documentation_context=build_documentation_context(results),
        message=(
            f"Successfully analyzed {summary.successful} of {summary.total_urls} URLs. "
            f"Found {summary.total_endpoints} API endpoints across "
            f"{len(summary.domains)} domains."
        ),
    )

    if store is not None:
        store.store(report)
    return report
