"""Optional Playwright-based live page loader."""

from __future__ import annotations

import time
from typing import Any

from ..errors import ExtractionError
from ..models import FetchResult, PageContext
from .base import BaseFetcher


class PlaywrightFetcher(BaseFetcher):
    """Loader backed by one headless Chromium tab kept open across pages.

    Unlike static fetches, the returned context re-reads the live DOM on
    ``refresh()``, so readiness checks see content inserted after load.
    """

    def __init__(self, *, timeout_sec: float = 20.0) -> None:
        super().__init__(timeout_sec=timeout_sec)
        try:
            from playwright.sync_api import sync_playwright  # type: ignore
        except Exception as exc:  # pragma: no cover - import depends on optional dep
            raise RuntimeError(
                "Playwright 不可用。请先执行 `pip install -e \".[playwright]\"` 安装依赖。"
            ) from exc
        self._sync_playwright = sync_playwright
        self._playwright: Any = None
        self._browser: Any = None
        self._page: Any = None

    def _ensure_page(self) -> Any:
        if self._page is None:
            self._playwright = self._sync_playwright().start()
            self._browser = self._playwright.chromium.launch(headless=True)
            self._page = self._browser.new_page()
        return self._page

    def fetch(self, url: str, timeout_sec: float) -> FetchResult:
        started = time.perf_counter()
        timeout_ms = int(timeout_sec * 1000)
        try:
            page = self._ensure_page()
            response = page.goto(url, wait_until="load", timeout=timeout_ms)
            html = page.content()
            status_code = response.status if response else None
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            return FetchResult(
                url=page.url,
                ok=True,
                html=html,
                status_code=status_code,
                error=None,
                elapsed_ms=elapsed_ms,
            )
        except Exception as exc:
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            return FetchResult(
                url=url,
                ok=False,
                html=None,
                status_code=None,
                error=str(exc),
                elapsed_ms=elapsed_ms,
            )

    def load(self, url: str) -> PageContext:
        result = self.fetch(url, timeout_sec=self.timeout_sec)
        if not result.ok or result.html is None:
            raise ExtractionError(f"页面抓取失败: {url}: {result.error}")
        return PageContext(result.url, result.html, reload=self._page.content)

    def close(self) -> None:
        if self._browser is not None:
            self._browser.close()
        if self._playwright is not None:
            self._playwright.stop()
        self._page = None
        self._browser = None
        self._playwright = None
