"""Endpoint and code sample extraction.

Pure text analysis over raw HTML or normalized/markdown content. Each
pattern yields candidates independently; candidates are deduplicated and
filtered afterwards.
"""

import html
import re

# Characters that end an endpoint candidate
_STOP = r"""[^\s)"'<>`,]"""

_ENDPOINT_PATTERNS = (
    re.compile(rf"/api/{_STOP}+", re.IGNORECASE),
    re.compile(rf"\b(?:GET|POST|PUT|DELETE|PATCH)\s+/{_STOP}+", re.IGNORECASE),
    re.compile(rf"https?://[^\s/]+/api/{_STOP}+", re.IGNORECASE),
    re.compile(rf"/webhooks?/{_STOP}+", re.IGNORECASE),
    re.compile(rf"/graphql{_STOP}*", re.IGNORECASE),
)

_STATIC_ASSET_RE = re.compile(
    r"\.(?:woff2?|ttf|eot|css|js|png|jpg|jpeg|gif|svg|ico)(?:\?|$)", re.IGNORECASE
)

# Sentence punctuation that sticks to the end of a match
_TRAILING_PUNCT = ".;:!"

MAX_ENDPOINT_LENGTH = 100
MAX_ENDPOINTS = 20

_FENCED_RE = re.compile(r"```[\s\S]*?```")
_CODE_TAG_RE = re.compile(r"<code[^>]*>([\s\S]*?)</code>", re.IGNORECASE)
_PRE_TAG_RE = re.compile(r"<pre[^>]*>([\s\S]*?)</pre>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")

MAX_EXAMPLES_PER_PATTERN = 5
MAX_CODE_EXAMPLES = 10
MAX_EXAMPLE_LENGTH = 500


def _is_api_endpoint(candidate: str) -> bool:
    if len(candidate) >= MAX_ENDPOINT_LENGTH:
        return False
    if _STATIC_ASSET_RE.search(candidate):
        return False
    return "font" not in candidate.lower()


def extract_api_endpoints(text: str) -> list[str]:
    """Extract candidate API endpoints from *text*.

    Matches are collected pattern by pattern, deduplicated keeping the
    first occurrence, then long matches, static assets and font paths are
    dropped. At most 20 endpoints are returned.
    """
    if not text:
        return []

    seen: set[str] = set()
    candidates: list[str] = []
    for pattern in _ENDPOINT_PATTERNS:
        for match in pattern.finditer(text):
            candidate = match.group(0).rstrip(_TRAILING_PUNCT)
            if candidate and candidate not in seen:
                seen.add(candidate)
                candidates.append(candidate)

    return [c for c in candidates if _is_api_endpoint(c)][:MAX_ENDPOINTS]


def _clean_tag_body(body: str) -> str:
    return html.unescape(_TAG_RE.sub("", body)).strip()


def extract_code_examples(text: str) -> list[str]:
    """Extract code samples from fenced blocks and ``<code>``/``<pre>`` tags.

    Fenced blocks are kept verbatim; tag contents are stripped of nested
    markup and unescaped. Each sample is truncated to 500 characters.
    """
    if not text:
        return []

    examples: list[str] = []
    seen: set[str] = set()

    def _add(sample: str) -> None:
        sample = sample[:MAX_EXAMPLE_LENGTH]
        if sample and sample not in seen:
            seen.add(sample)
            examples.append(sample)

    for match in _FENCED_RE.finditer(text):
        if len(examples) >= MAX_EXAMPLES_PER_PATTERN:
            break
        _add(match.group(0).strip())

    for pattern in (_CODE_TAG_RE, _PRE_TAG_RE):
        taken = 0
        for match in pattern.finditer(text):
            if taken >= MAX_EXAMPLES_PER_PATTERN:
                break
            body = _clean_tag_body(match.group(1))
            if body:
                _add(body)
                taken += 1

    return examples[:MAX_CODE_EXAMPLES]
