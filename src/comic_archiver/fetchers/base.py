"""Page loader interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..errors import ExtractionError
from ..models import FetchResult, PageContext


class BaseFetcher(ABC):
    """Abstract page loader."""

    def __init__(self, *, timeout_sec: float = 20.0) -> None:
        self.timeout_sec = timeout_sec

    @abstractmethod
    def fetch(self, url: str, timeout_sec: float) -> FetchResult:
        """Fetch page HTML."""

    def load(self, url: str) -> PageContext:
        """Navigate to ``url`` and return the page for adapters to read."""
        result = self.fetch(url, timeout_sec=self.timeout_sec)
        if not result.ok or result.html is None:
            raise ExtractionError(f"页面抓取失败: {url}: {result.error}")
        return PageContext(result.url, result.html)

    def close(self) -> None:
        """Release browser or connection resources."""
