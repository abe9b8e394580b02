"""Configuration settings for the docs browse server."""

from pydantic import SecretStr
from pydantic_settings import BaseSettings

# Backends accepted by CRAWL_BACKEND
_CRAWL_BACKENDS = ("firecrawl", "crawl4ai", "none")

_DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)


class Settings(BaseSettings):
    """Docs browse configuration.

    Environment variables:
    - FETCH_TIMEOUT: Direct page fetch timeout in seconds (default: 15)
    - MAX_REDIRECTS: Redirect hops followed per fetch (default: 5)
    - BLOCK_PRIVATE_URLS: Refuse loopback/private hosts (default: true)
    - MAX_URLS: URLs processed per browse call (default: 3)
    - CRAWL_BACKEND: "firecrawl" | "crawl4ai" | "none"
        (auto: FIRECRAWL_API_KEY -> firecrawl, else none)
    - FIRECRAWL_API_KEY: Firecrawl API key
    - FIRECRAWL_API_URL: Firecrawl base URL (self-hosted instances)
    - CRAWL_TIMEOUT: Upper bound for one deep crawl in seconds (default: 90)
    - CRAWL_PAGE_LIMIT / CRAWL_MAX_DEPTH: Deep crawl bounds (30 / 3)
    - RELEVANCE_WINDOW: Lines kept around each relevant line (default: 3)
    - FALLBACK_WORD_LIMIT: Words kept when nothing matches (default: 2000)
    - CONTEXT_PREVIEW_CHARS: Content preview per page in the context (1500)
    - TOOL_TIMEOUT: MCP tool hard timeout in seconds (0 = no timeout)
    """

    # Direct fetch
    fetch_timeout: float = 15.0
    max_redirects: int = 5
    user_agent: str = _DEFAULT_USER_AGENT
    block_private_urls: bool = True

    # Browse
    max_urls: int = 3

    # Deep crawl
    crawl_backend: str = ""  # "firecrawl" | "crawl4ai" | "none" | "" (auto)
    firecrawl_api_key: SecretStr | None = None
    firecrawl_api_url: str = "https://api.firecrawl.dev"
    crawl_timeout: float = 90.0
    crawl_poll_interval: float = 2.0
    crawl_page_limit: int = 30
    crawl_max_depth: int = 3
    crawler_headless: bool = True

    # Relevance filtering
    relevance_window: int = 3
    fallback_word_limit: int = 2000

    # Documentation context
    context_preview_chars: int = 1500

    # Tool execution timeout (seconds, 0 = no timeout)
    tool_timeout: int = 180

    # Logging
    log_level: str = "INFO"

    model_config = {"env_prefix": "", "case_sensitive": False}

    def get_firecrawl_key(self) -> str:
        """Return the Firecrawl API key, or '' when unset."""
        if self.firecrawl_api_key is None:
            return ""
        return self.firecrawl_api_key.get_secret_value().strip()

    def resolve_crawl_backend(self) -> str:
        """Resolve deep crawl backend: 'firecrawl', 'crawl4ai', or ''.

        Returns '' when no backend is configured.

        Auto-detect order:
        1. Explicit CRAWL_BACKEND setting ('none' disables crawling)
        2. 'firecrawl' if FIRECRAWL_API_KEY is set
        3. '' (direct fetch only)
        """
        backend = self.crawl_backend.strip().lower()
        if backend:
            if backend not in _CRAWL_BACKENDS:
                raise ValueError(
                    f"Unknown CRAWL_BACKEND '{self.crawl_backend}', "
                    f"expected one of {', '.join(_CRAWL_BACKENDS)}"
                )
            return "" if backend == "none" else backend
        if self.get_firecrawl_key():
            return "firecrawl"
        return ""


settings = Settings()
