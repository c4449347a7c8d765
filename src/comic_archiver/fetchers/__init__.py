"""Page loader implementations."""

from .base import BaseFetcher
from .playwright_fetcher import PlaywrightFetcher
from .requests_fetcher import RequestsFetcher

__all__ = ["BaseFetcher", "RequestsFetcher", "PlaywrightFetcher"]
