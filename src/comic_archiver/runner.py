"""Navigation driver: runs controllers page by page until the run ends."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from .adapters import AdapterRegistry
from .archive import ArchiveBuilder, FileDelivery
from .config import run_config_json
from .controller import StepOutcome, TraversalController
from .fetchers import PlaywrightFetcher, RequestsFetcher
from .fetchers.base import BaseFetcher
from .images import ImageLoader
from .models import RunConfig
from .state import ArchivalStateStore

logger = logging.getLogger(__name__)

PageCallback = Callable[[StepOutcome], None]


def open_store(config: RunConfig) -> ArchivalStateStore:
    return ArchivalStateStore(config.state_db, scope=config.session, quota_bytes=config.quota_bytes)


def build_fetcher(config: RunConfig) -> BaseFetcher:
    if config.engine == "requests":
        return RequestsFetcher(timeout_sec=config.page_timeout_sec)
    if config.engine == "playwright":
        return PlaywrightFetcher(timeout_sec=config.page_timeout_sec)
    raise ValueError(f"不支持的引擎: {config.engine}")


def build_image_loader(config: RunConfig) -> ImageLoader:
    return ImageLoader(
        timeout_sec=config.image_timeout_sec,
        retries=config.image_retries,
        delay_sec=config.request_delay_sec,
    )


@dataclass(slots=True)
class TraversalRunner:
    """Plays the browser's part: after each navigation a new controller
    is built and resumes from the store, as a reloaded page would."""

    config: RunConfig
    registry: AdapterRegistry
    store: ArchivalStateStore
    fetcher: BaseFetcher
    image_loader: ImageLoader
    sleep: Callable[[float], None] = time.sleep
    on_page: PageCallback | None = None
    pages: list[str] = field(default_factory=list)

    def new_controller(self) -> TraversalController:
        return TraversalController(
            self.registry,
            self.store,
            self.fetcher,
            self.image_loader,
            ArchiveBuilder(self.store, FileDelivery(self.config.output_dir)),
            ready_timeout_sec=self.config.ready_timeout_sec,
            ready_poll_interval_sec=self.config.ready_poll_interval_sec,
            jpeg_quality=self.config.jpeg_quality,
            sleep=self.sleep,
        )

    def start(self, url: str, pages: int) -> dict[str, Any]:
        """Start a fresh run and follow it to the end."""
        self.store.add_event("run_config", run_config_json(self.config))
        outcome = self.new_controller().start(pages, url)
        return self._follow(outcome)

    def resume(self) -> dict[str, Any]:
        """Continue whatever run the store holds."""
        return self._follow(self.new_controller().resume())

    def _follow(self, outcome: StepOutcome) -> dict[str, Any]:
        self._record(outcome)
        while outcome.navigating:
            if self.config.request_delay_sec > 0:
                self.sleep(self.config.request_delay_sec)
            outcome = self.new_controller().resume()
            self._record(outcome)
        return {
            "status": "completed" if outcome.archive is not None else outcome.reason,
            "reason": outcome.reason,
            "pages": list(self.pages),
            "archive": outcome.archive.as_dict() if outcome.archive is not None else None,
        }

    def _record(self, outcome: StepOutcome) -> None:
        if outcome.page_key is not None:
            self.pages.append(outcome.page_key)
        if self.on_page is not None:
            self.on_page(outcome)
