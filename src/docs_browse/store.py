"""Single-slot register for the most recent browse report."""

from docs_browse.models import BrowseReport


class LastResultStore:
    """Holds the latest ``BrowseReport``; one writer, one reader."""

    def __init__(self) -> None:
        self._report: BrowseReport | None = None

    def store(self, report: BrowseReport) -> None:
        self._report = report

    def retrieve(self) -> BrowseReport | None:
        return self._report

    def clear(self) -> None:
        self._report = None
