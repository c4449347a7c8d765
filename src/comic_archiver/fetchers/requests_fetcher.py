"""Requests-based static page loader."""

from __future__ import annotations

import time

import requests
from requests.adapters import HTTPAdapter

from ..images import USER_AGENT
from ..models import FetchResult
from .base import BaseFetcher


class RequestsFetcher(BaseFetcher):
    """HTML loader using requests.Session. Pages are static snapshots."""

    def __init__(self, *, timeout_sec: float = 20.0, session: requests.Session | None = None) -> None:
        super().__init__(timeout_sec=timeout_sec)
        self._session = session or self._build_session()

    def _build_session(self) -> requests.Session:
        session = requests.Session()
        session.headers.update({"User-Agent": USER_AGENT})
        adapter = HTTPAdapter(pool_connections=4, pool_maxsize=4)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    def fetch(self, url: str, timeout_sec: float) -> FetchResult:
        started = time.perf_counter()
        try:
            response = self._session.get(url, timeout=timeout_sec)
            response.raise_for_status()
            response.encoding = response.apparent_encoding or "utf-8"
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            return FetchResult(
                url=response.url or url,
                ok=True,
                html=response.text,
                status_code=response.status_code,
                error=None,
                elapsed_ms=elapsed_ms,
            )
        except requests.RequestException as exc:
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            status_code = getattr(getattr(exc, "response", None), "status_code", None)
            return FetchResult(
                url=url,
                ok=False,
                html=None,
                status_code=status_code,
                error=str(exc),
                elapsed_ms=elapsed_ms,
            )

    def close(self) -> None:
        self._session.close()
