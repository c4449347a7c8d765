"""Test bootstrap and shared fakes."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterator

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from PIL import Image  # noqa: E402

from comic_archiver.adapters import AdapterRegistry, PageAdapter, site  # noqa: E402
from comic_archiver.errors import ImageLoadError  # noqa: E402
from comic_archiver.fetchers.base import BaseFetcher  # noqa: E402
from comic_archiver.models import FetchResult, PageContext, RunConfig  # noqa: E402
from comic_archiver.sites import absolute, first_href, select_one  # noqa: E402
from comic_archiver.state import ArchivalStateStore  # noqa: E402

COMIC_ROOT = "https://comic.test/page/"


def pytest_configure(config: pytest.Config) -> None:
    """Pre-create cache_dir to avoid flaky tempdir creation on Windows."""
    if not config.pluginmanager.has_plugin("cacheprovider"):
        return
    configured = config.getini("cache_dir")
    if not configured:
        return
    cache_dir = Path(configured)
    if not cache_dir.is_absolute():
        cache_dir = Path(config.rootpath) / cache_dir
    cache_dir.mkdir(parents=True, exist_ok=True)


def comic_page(number: int, *, next_href: str | None = None, title: str = "") -> str:
    link = f'<a class="next" href="{next_href}">next</a>' if next_href is not None else ""
    return (
        "<html><body>"
        f'<h2 class="title">{title}</h2>'
        f'<div id="number">{number}</div>'
        f'<img id="strip" src="/img/{number}.png" />'
        f"{link}"
        "</body></html>"
    )


def comic_pages(count: int) -> dict[str, str]:
    """Linear comic of ``count`` pages; the last page has no next link."""
    pages: dict[str, str] = {}
    for number in range(1, count + 1):
        next_href = f"{COMIC_ROOT}{number + 1}" if number < count else None
        pages[f"{COMIC_ROOT}{number}"] = comic_page(number, next_href=next_href, title=f"Strip {number}")
    return pages


def comic_adapter(**overrides: object) -> PageAdapter:
    hooks: dict[str, object] = {
        "book_name": lambda first_page, last_page: f"Test Comic {first_page} to {last_page}",
        "page_number": lambda ctx: select_one(ctx, "#number").get_text(strip=True),
        "next_page_url": lambda ctx: first_href(ctx, "a.next"),
        "image_url": lambda ctx: absolute(ctx, select_one(ctx, "#strip").get("src")),
        "top_text": lambda ctx: [{"text": select_one(ctx, "h2.title").get_text(strip=True)}],
    }
    hooks.update(overrides)
    return site("Test Comic", r"comic\.test/page/", **hooks)


class FakeFetcher(BaseFetcher):
    """Serves canned HTML keyed by URL."""

    def __init__(self, html_by_url: dict[str, str]) -> None:
        super().__init__(timeout_sec=1.0)
        self.html_by_url = html_by_url
        self.visited: list[str] = []
        self.closed = False

    def fetch(self, url: str, timeout_sec: float) -> FetchResult:
        self.visited.append(url)
        html = self.html_by_url.get(url)
        if html is None:
            return FetchResult(url=url, ok=False, html=None, status_code=404, error="not found", elapsed_ms=1)
        return FetchResult(url=url, ok=True, html=html, status_code=200, error=None, elapsed_ms=1)

    def close(self) -> None:
        self.closed = True


class LivePageFetcher(FakeFetcher):
    """Pages whose DOM changes after each refresh, like a script-driven site."""

    def __init__(self, snapshots: dict[str, list[str]]) -> None:
        super().__init__({url: versions[0] for url, versions in snapshots.items()})
        self.snapshots = snapshots

    def load(self, url: str) -> PageContext:
        self.visited.append(url)
        versions = list(self.snapshots[url])
        current = versions.pop(0)

        def reload() -> str:
            return versions.pop(0) if versions else current

        return PageContext(url, current, reload=reload)


class FakeImageLoader:
    """Returns a small solid image, or raises for URLs listed in ``failing``."""

    def __init__(self, *, size: tuple[int, int] = (40, 30), failing: set[str] | None = None) -> None:
        self.size = size
        self.failing = failing or set()
        self.requested: list[str] = []

    def load(self, url: str, *, referer: str | None = None) -> Image.Image:
        self.requested.append(url)
        if url in self.failing:
            raise ImageLoadError(f"图片加载失败: {url}: boom")
        return Image.new("RGB", self.size, (200, 30, 30))


@pytest.fixture
def comic_registry() -> AdapterRegistry:
    return AdapterRegistry([comic_adapter()])


@pytest.fixture
def run_config(tmp_path: Path) -> RunConfig:
    return RunConfig(
        state_db=tmp_path / "state.sqlite3",
        output_dir=tmp_path / "archives",
        request_delay_sec=0.0,
        ready_timeout_sec=1.0,
        ready_poll_interval_sec=0.0,
    )


@pytest.fixture
def store(run_config: RunConfig) -> Iterator[ArchivalStateStore]:
    opened = ArchivalStateStore(run_config.state_db, scope=run_config.session, quota_bytes=run_config.quota_bytes)
    try:
        yield opened
    finally:
        opened.close()
