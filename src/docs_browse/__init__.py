"""Docs Browse - documentation acquisition and analysis for code generation."""

from importlib.metadata import version

from docs_browse.__main__ import _cli as main
from docs_browse.browse import browse
from docs_browse.models import AcquiredVia, BrowseReport, PageResult
from docs_browse.store import LastResultStore

__version__ = version("docs-browse-mcp")
__all__ = [
    "AcquiredVia",
    "BrowseReport",
    "LastResultStore",
    "PageResult",
    "browse",
    "main",
    "__version__",
]
