"""Error types raised while acquiring documentation pages.

Every error carries a ``kind`` string that ends up in the failure record
of the URL it belongs to. Crawl backend errors are recovered by falling
back to a direct fetch; fetch errors are terminal for their URL.
"""


class BrowseError(Exception):
    """Base class for per-URL acquisition failures."""

    kind = "BrowseError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidUrlError(BrowseError):
    kind = "InvalidUrl"


class BlockedUrlError(BrowseError):
    """URL points at a loopback, private or otherwise unsafe host."""

    kind = "BlockedUrl"


class FetchTimeoutError(BrowseError):
    kind = "Timeout"


class HttpStatusError(BrowseError):
    kind = "HttpStatusError"

    def __init__(self, status: int, message: str | None = None):
        super().__init__(message or f"HTTP error! status: {status}")
        self.status = status


class NetworkError(BrowseError):
    kind = "NetworkError"

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class CrawlBackendError(BrowseError):
    """The deep crawl backend answered but the crawl did not succeed."""

    kind = "CrawlBackendError"


class CrawlBackendUnavailableError(CrawlBackendError):
    """The deep crawl backend could not be reached at all."""

    kind = "CrawlBackendUnavailable"
