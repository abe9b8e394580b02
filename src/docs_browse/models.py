"""Result records produced by a browse call.

All records are frozen; ``to_dict`` renders the JSON shape returned by the
MCP tools (camelCase keys).
"""

from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import urlparse


class AcquiredVia(str, Enum):
    """Acquisition tier that produced a page."""

    DEEP_CRAWL = "DeepCrawl"
    SINGLE_FETCH = "SingleFetch"
    RAW_FALLBACK = "RawFallback"


@dataclass(frozen=True)
class PageResult:
    url: str
    title: str
    content: str
    api_endpoints: tuple[str, ...] = ()
    code_examples: tuple[str, ...] = ()
    word_count: int = 0
    acquired_via: AcquiredVia = AcquiredVia.RAW_FALLBACK
    page_count: int | None = None
    final_url: str = ""

    @property
    def domain(self) -> str:
        return urlparse(self.url).hostname or ""

    def to_dict(self) -> dict:
        data = {
            "url": self.url,
            "title": self.title,
            "content": self.content,
            "apiEndpoints": list(self.api_endpoints),
            "codeExamples": list(self.code_examples),
            "wordCount": self.word_count,
            "acquiredVia": self.acquired_via.value,
        }
        if self.page_count is not None:
            data["pageCount"] = self.page_count
        if self.final_url and self.final_url != self.url:
            data["finalUrl"] = self.final_url
        return data


@dataclass(frozen=True)
class AnalysisResult:
    summary: str = ""
    integration_notes: str = ""
    key_endpoints: tuple[str, ...] = ()
    auth_methods: tuple[str, ...] = ()
    code_snippets: tuple[str, ...] = ()
    common_patterns: tuple[str, ...] = ()

    @property
    def requires_auth(self) -> bool:
        return bool(self.auth_methods)

    def to_dict(self) -> dict:
        return {
            "summary": self.summary,
            "integrationNotes": self.integration_notes,
            "keyEndpoints": list(self.key_endpoints),
            "authMethods": list(self.auth_methods),
            "codeSnippets": list(self.code_snippets),
            "commonPatterns": list(self.common_patterns),
        }


@dataclass(frozen=True)
class FailureRecord:
    url: str
    error_kind: str
    message: str

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "errorKind": self.error_kind,
            "error": self.message,
        }


@dataclass(frozen=True)
class UrlResult:
    """Outcome for one requested URL: a page with its analysis, or a failure."""

    url: str
    page: PageResult | None = None
    analysis: AnalysisResult | None = None
    failure: FailureRecord | None = None

    @property
    def success(self) -> bool:
        return self.page is not None

    def to_dict(self) -> dict:
        if self.page is None:
            failure = self.failure or FailureRecord(self.url, "Unknown", "")
            return {**failure.to_dict(), "success": False}
        data = self.page.to_dict()
        if self.analysis is not None:
            data["analysis"] = self.analysis.to_dict()
        data["success"] = True
        return data


@dataclass(frozen=True)
class BrowseSummary:
    total_urls: int = 0
    successful: int = 0
    failed: int = 0
    total_words: int = 0
    domains: tuple[str, ...] = ()
    total_endpoints: int = 0

    def to_dict(self) -> dict:
        return {
            "totalUrls": self.total_urls,
            "successful": self.successful,
            "failed": self.failed,
            "totalWords": self.total_words,
            "domains": list(self.domains),
            "totalEndpoints": self.total_endpoints,
        }


@dataclass(frozen=True)
class BrowseReport:
    requested_urls: tuple[str, ...]
    results: tuple[UrlResult, ...] = ()
    summary: BrowseSummary = field(default_factory=BrowseSummary)
    documentation_context: str = ""
    message: str = ""

    @property
    def successful_results(self) -> list[UrlResult]:
        return [r for r in self.results if r.success]

    def to_dict(self) -> dict:
        return {
            "success": True,
            "requestedUrls": list(self.requested_urls),
            "summary": self.summary.to_dict(),
            "results": [r.to_dict() for r in self.results],
            "documentationContext": self.documentation_context,
            "message": self.message,
        }
