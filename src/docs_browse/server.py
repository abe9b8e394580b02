"""Docs Browse MCP Server - Main server definition."""

import asyncio
import functools
import json
import sys
from contextlib import asynccontextmanager

from loguru import logger
from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations

from docs_browse.browse import browse as _browse
from docs_browse.config import settings
from docs_browse.security import wrap_external_content
from docs_browse.sources.crawler import shutdown_crawler
from docs_browse.store import LastResultStore

# Configure logging
logger.remove()
logger.add(sys.stderr, level=settings.log_level)

# Grace period for a cancelled tool task to release browser pages / sockets
_CANCEL_GRACE_PERIOD = 5

# Last browse report, read back by the `documentation` tool
_last_result = LastResultStore()


@asynccontextmanager
async def _lifespan(_server: FastMCP):
    """Server lifespan: report crawl backend, shut down the browser pool on exit."""
    logger.info("Starting Docs Browse MCP Server...")

    backend = settings.resolve_crawl_backend()
    if backend:
        logger.info(f"Deep crawl backend: {backend}")
    else:
        logger.info("No deep crawl backend configured, using direct fetch only")

    yield

    logger.info("Shutting down Docs Browse MCP Server...")
    _last_result.clear()

    try:
        await shutdown_crawler()
    except Exception as exc:
        logger.debug(f"Browser pool shutdown error (non-fatal): {exc}")


mcp = FastMCP(
    name="docs-browse",
    instructions=(
        "Documentation browsing MCP Server. "
        "Use `browse` with documentation URLs and the user's request to get "
        "API endpoints, auth hints, code samples and a compact documentation "
        "context for code generation. "
        "Use `documentation` to read back the latest browse result."
    ),
    lifespan=_lifespan,
)


def _wrap_tool(tool_name: str):
    """Decorator to wrap tool results with XPIA safety markers.

    Error responses are passed through unwrapped.
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            result = await func(*args, **kwargs)
            return wrap_external_content(tool_name, result)

        return wrapper

    return decorator


async def _with_timeout(coro, action: str) -> str:
    """Wrap coroutine with hard timeout.

    Uses ``asyncio.wait`` instead of ``asyncio.wait_for`` because
    Playwright / Crawl4AI may suppress ``CancelledError`` internally,
    causing ``wait_for`` to block indefinitely.
    """
    timeout = settings.tool_timeout
    if timeout <= 0:
        return await coro

    task = asyncio.create_task(coro)
    done, _pending = await asyncio.wait({task}, timeout=timeout)

    if done:
        return task.result()

    task.cancel()
    logger.warning(f"Tool '{action}' timed out after {timeout}s, cancelling...")

    try:
        await asyncio.wait_for(asyncio.shield(task), timeout=_CANCEL_GRACE_PERIOD)
    except (asyncio.CancelledError, TimeoutError, Exception):
        # Task either cancelled cleanly, timed out again, or raised
        pass

    logger.error(f"Tool '{action}' timed out after {timeout}s")
    return (
        f"Error: '{action}' timed out after {timeout}s. "
        "Increase TOOL_TIMEOUT or pass fewer URLs."
    )


async def _run_browse(
    urls: list[str], request: str | None, focus: str | None
) -> str:
    report = await _browse(urls, request, focus, store=_last_result)
    return json.dumps(report.to_dict(), ensure_ascii=False, indent=2)


@mcp.tool(
    annotations=ToolAnnotations(
        readOnlyHint=True,
        openWorldHint=True,
    ),
)
@_wrap_tool("browse")
async def browse(
    urls: list[str],
    request: str | None = None,
    focus: str | None = None,
) -> str:
    """Fetch and analyze API documentation pages.
    - urls: documentation URLs (only the first 3 are processed)
    - request: what the user wants to build; narrows content to relevant parts
    - focus: regex to quote matching lines in each summary (default: request)
    Returns JSON with per-URL results, a summary and `documentationContext`.
    """
    if not isinstance(urls, list) or not urls:
        return "Error: urls must be a non-empty list of URLs"
    return await _with_timeout(_run_browse(urls, request, focus), "browse")


@mcp.tool(
    annotations=ToolAnnotations(
        readOnlyHint=True,
        openWorldHint=False,
        idempotentHint=True,
    ),
)
@_wrap_tool("documentation")
async def documentation() -> str:
    """Return the most recent browse result, if any."""
    report = _last_result.retrieve()
    return json.dumps(
        {
            "hasDocumentation": report is not None,
            "results": report.to_dict() if report is not None else None,
        },
        ensure_ascii=False,
        indent=2,
    )


@mcp.prompt()
def integrate_api(urls: str, request: str) -> str:
    """Generate a prompt to build a component against documented APIs."""
    return (
        f"The user wants: {request}\n\n"
        f"Call the browse tool with urls=[{urls}] and request='{request}'. "
        "Use the returned documentationContext (endpoints, authentication, "
        "code examples) to implement the component against the real API."
    )


def main() -> None:
    """Entry point for the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
