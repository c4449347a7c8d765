"""Core datatypes used across controller, state, and CLI."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from bs4 import BeautifulSoup


def utc_now_iso() -> str:
    """Return UTC timestamp in ISO-8601."""
    return datetime.now(timezone.utc).isoformat()


@dataclass(slots=True)
class RunConfig:
    """Runtime configuration for an archiving session."""

    state_db: Path = Path("data/state.sqlite3")
    session: str = "default"
    output_dir: Path = Path("data/archives")
    engine: str = "requests"
    page_timeout_sec: float = 20.0
    image_timeout_sec: float = 30.0
    image_retries: int = 3
    request_delay_sec: float = 0.2
    ready_timeout_sec: float = 30.0
    ready_poll_interval_sec: float = 0.5
    quota_bytes: int = 64 * 1024 * 1024
    jpeg_quality: int = 100


PHASE_TRAVERSING = "traversing"
PHASE_FINALIZING = "finalizing"


@dataclass(slots=True)
class RunState:
    """Persisted state of the single active run in a store scope."""

    remaining_pages: int
    location: str
    images: list[str] = field(default_factory=list)
    start_page: str | None = None
    phase: str = PHASE_TRAVERSING
    started_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    def to_json(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False, sort_keys=True)

    @classmethod
    def from_json(cls, raw: str) -> "RunState":
        payload = json.loads(raw)
        return cls(
            remaining_pages=int(payload["remaining_pages"]),
            location=str(payload["location"]),
            images=[str(item) for item in payload.get("images", [])],
            start_page=payload.get("start_page"),
            phase=str(payload.get("phase", PHASE_TRAVERSING)),
            started_at=str(payload.get("started_at") or utc_now_iso()),
            updated_at=str(payload.get("updated_at") or utc_now_iso()),
        )


@dataclass(slots=True, frozen=True)
class TextBlockSpec:
    """One caption block with every layout field resolved."""

    text: str = ""
    padding_top: int = 5
    padding_bottom: int = 5
    padding_left: int = 5
    padding_right: int = 5
    text_align: str = "center"
    # CSS-style font fields; empty strings have no effect.
    font_style: str = ""
    font_variant: str = ""
    font_weight: str = ""
    font_stretch: str = ""
    # Pixel values, unlike CSS. Keep them consistent with each other.
    font_size: int = 18
    line_height: int = 20
    font_family: str = "Arial"
    fill_style: str = "#000000"


class PageContext:
    """Snapshot of the currently loaded page that adapters read from."""

    def __init__(
        self,
        url: str,
        html: str,
        *,
        reload: Callable[[], str] | None = None,
    ) -> None:
        self.url = url
        self.html = html
        self._reload = reload
        self._soup: BeautifulSoup | None = None

    @property
    def soup(self) -> BeautifulSoup:
        if self._soup is None:
            self._soup = BeautifulSoup(self.html, "html.parser")
        return self._soup

    def refresh(self) -> None:
        """Re-read the live DOM. Static pages keep their snapshot."""
        if self._reload is None:
            return
        self.html = self._reload()
        self._soup = None


@dataclass(slots=True)
class ArchiveResult:
    """Result of building and delivering one archive."""

    filename: str
    path: Path
    pages: list[str]
    size_bytes: int
    first_page: str | None
    last_page: str | None
    delivered_at: str = field(default_factory=utc_now_iso)

    def as_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["path"] = str(self.path)
        return payload


@dataclass(slots=True)
class FetchResult:
    """Result of fetching a page."""

    url: str
    ok: bool
    html: str | None
    status_code: int | None
    error: str | None
    elapsed_ms: int
    fetched_at: str = field(default_factory=utc_now_iso)
