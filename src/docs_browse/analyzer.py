"""Heuristic documentation analysis.

Detects authentication hints and integration patterns, picks representative
code snippets and writes a short summary plus integration notes. Detection
is presence-only: a pattern either appears somewhere in the content or not.
"""

import re

from docs_browse.models import AnalysisResult
from docs_browse.relevance import split_into_lines

# (name, pattern) pairs, checked in order
AUTH_PATTERNS = (
    ("api key", re.compile(r"api[_\s-]?key", re.IGNORECASE)),
    ("bearer token", re.compile(r"bearer[_\s]token", re.IGNORECASE)),
    ("oauth", re.compile(r"oauth", re.IGNORECASE)),
    ("jwt", re.compile(r"\bjwt\b", re.IGNORECASE)),
    ("basic auth", re.compile(r"basic[_\s]auth", re.IGNORECASE)),
    ("authentication", re.compile(r"authentication", re.IGNORECASE)),
)

INTEGRATION_PATTERNS = (
    "REST API",
    "GraphQL",
    "WebSocket",
    "Pagination",
    "Rate limiting",
    "Webhooks",
    "SDK",
    "Error handling",
)

MAX_KEY_ENDPOINTS = 5
MAX_SNIPPETS = 3
MAX_SNIPPET_LENGTH = 200
MAX_FOCUS_SECTIONS = 3

_FENCED_RE = re.compile(r"```[\s\S]*?```")


def detect_auth_methods(content: str) -> list[str]:
    return [name for name, pattern in AUTH_PATTERNS if pattern.search(content)]


def detect_patterns(content: str) -> list[str]:
    lower = content.lower()
    return [p for p in INTEGRATION_PATTERNS if p.lower() in lower]


def extract_snippets(content: str) -> list[str]:
    """Up to three fenced code blocks, fences removed, 200 chars each."""
    snippets = []
    for match in _FENCED_RE.finditer(content):
        snippet = match.group(0).replace("```", "").strip()[:MAX_SNIPPET_LENGTH]
        snippets.append(snippet)
        if len(snippets) >= MAX_SNIPPETS:
            break
    return snippets


def _focus_regex(focus: str) -> re.Pattern[str]:
    try:
        return re.compile(focus, re.IGNORECASE)
    except re.error:
        # Not a valid pattern, match it literally
        return re.compile(re.escape(focus), re.IGNORECASE)


def _focus_summary(content: str, focus: str) -> str:
    pattern = _focus_regex(focus)
    sections = []
    for line in split_into_lines(content):
        line = line.strip()
        if line and pattern.search(line):
            sections.append(line)
            if len(sections) >= MAX_FOCUS_SECTIONS:
                break

    if not sections:
        return (
            f'No specific information found for "{focus}". '
            "General API documentation available."
        )
    return (
        f'Found {len(sections)} sections related to "{focus}": '
        f"{'. '.join(sections)}"
    )


def _general_summary(content: str, endpoint_count: int, has_auth: bool) -> str:
    auth = "Authentication required." if has_auth else "No authentication details found."
    return (
        f"Documentation contains {len(content.split())} words "
        f"with {endpoint_count} API endpoints. {auth}"
    )


def _integration_notes(
    endpoint_count: int,
    auth_methods: list[str],
    snippet_count: int,
    patterns: list[str],
) -> str:
    return ". ".join(
        [
            f"{endpoint_count} API endpoints available"
            if endpoint_count
            else "No clear API endpoints found",
            f"Authentication: {', '.join(auth_methods)}"
            if auth_methods
            else "Authentication method unclear",
            f"{snippet_count} code examples found"
            if snippet_count
            else "No code examples available",
            f"Supports: {', '.join(patterns)}"
            if patterns
            else "Integration patterns unclear",
        ]
    )


def analyze_documentation(
    content: str,
    api_endpoints: list[str] | tuple[str, ...] = (),
    focus: str | None = None,
) -> AnalysisResult:
    """Analyze documentation text for integration-relevant signals.

    Args:
        content: Page text (possibly relevance-filtered).
        api_endpoints: Endpoints extracted for the page.
        focus: Optional case-insensitive regex; the summary then quotes up
            to three matching lines instead of general statistics.
    """
    content = content or ""
    endpoints = list(api_endpoints)
    auth_methods = detect_auth_methods(content)
    patterns = detect_patterns(content)
    snippets = extract_snippets(content)

    if focus:
        summary = _focus_summary(content, focus)
    else:
        summary = _general_summary(content, len(endpoints), bool(auth_methods))

    return AnalysisResult(
        summary=summary,
        integration_notes=_integration_notes(
            len(endpoints), auth_methods, len(snippets), patterns
        ),
        key_endpoints=tuple(endpoints[:MAX_KEY_ENDPOINTS]),
        auth_methods=tuple(auth_methods),
        code_snippets=tuple(snippets),
        common_patterns=tuple(patterns),
    )
