"""Page traversal state machine.

The controller keeps nothing in memory between pages. Each execution reads
the run from the store, processes exactly one page, and either persists the
advanced state and hands back the next location, or builds the archive. A
fresh controller constructed after navigation resumes from the store alone.
"""

from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from typing import Callable

from .adapters import AdapterRegistry, PageAdapter
from .archive import ArchiveBuilder
from .compositor import compose_page, encode_page
from .config import validate_page_budget
from .errors import ArchiveAssemblyError, ComicArchiverError, ExtractionError, ReadinessTimeoutError
from .fetchers.base import BaseFetcher
from .images import ImageLoader
from .models import PHASE_FINALIZING, ArchiveResult, PageContext, RunState
from .state import ArchivalStateStore

logger = logging.getLogger(__name__)


class TraversalState(str, enum.Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    WAITING_FOR_PAGE = "waiting_for_page"
    EXTRACTING = "extracting"
    COMPOSITING = "compositing"
    DECIDING = "deciding"
    NAVIGATING = "navigating"
    FINALIZING = "finalizing"


@dataclass(slots=True)
class StepOutcome:
    """What one execution did: navigate onward, or finish the run."""

    state: TraversalState
    page_key: str | None = None
    next_url: str | None = None
    archive: ArchiveResult | None = None
    reason: str | None = None

    @property
    def navigating(self) -> bool:
        return self.state is TraversalState.NAVIGATING


class TraversalController:
    """Drive one page of a run from the persisted state."""

    def __init__(
        self,
        registry: AdapterRegistry,
        store: ArchivalStateStore,
        fetcher: BaseFetcher,
        image_loader: ImageLoader,
        builder: ArchiveBuilder,
        *,
        ready_timeout_sec: float = 30.0,
        ready_poll_interval_sec: float = 0.5,
        jpeg_quality: int = 100,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.registry = registry
        self.store = store
        self.fetcher = fetcher
        self.image_loader = image_loader
        self.builder = builder
        self.ready_timeout_sec = ready_timeout_sec
        self.ready_poll_interval_sec = ready_poll_interval_sec
        self.jpeg_quality = jpeg_quality
        self._sleep = sleep
        self._clock = clock
        self.state = TraversalState.IDLE

    def start(self, budget: int, url: str) -> StepOutcome:
        """Begin a new run at ``url``, discarding any previous one."""
        validate_page_budget(budget)
        # Resolve first so an unsupported site leaves the store untouched.
        self.registry.resolve(url)

        self.state = TraversalState.INITIALIZING
        logger.info("Starting archival for %d pages at %s", budget, url)
        self.store.clear_all()
        self.store.set_state(RunState(remaining_pages=budget, location=url, start_page=url))
        self.store.add_event("run_start", f"开始归档 {budget} 页: {url}")
        return self.resume()

    def resume(self) -> StepOutcome:
        """Continue the persisted run, if there is one."""
        run = self.store.get_state()
        if run is None:
            self.state = TraversalState.IDLE
            return StepOutcome(TraversalState.IDLE, reason="no_run")

        try:
            adapter = self.registry.resolve(run.location)
            if run.phase == PHASE_FINALIZING:
                return self._finalize(run, adapter, reason="retry")
            return self._process_page(run, adapter)
        except ArchiveAssemblyError:
            # The builder journals its own failure.
            self.state = TraversalState.IDLE
            raise
        except ComicArchiverError as exc:
            logger.error("Run stopped at %s: %s", run.location, exc)
            self.store.add_event("page_failed", f"{run.location}: {exc}")
            self.state = TraversalState.IDLE
            raise

    def _process_page(self, run: RunState, adapter: PageAdapter) -> StepOutcome:
        self.state = TraversalState.WAITING_FOR_PAGE
        context = self.fetcher.load(run.location)
        self._wait_until_ready(adapter, context)
        logger.debug("Page is loaded: %s", context.url)

        self.state = TraversalState.EXTRACTING
        page_key = adapter.key_for(context)
        logger.info("Processing page: %s", page_key)
        image = self.image_loader.load(adapter.image_for(context), referer=context.url)

        self.state = TraversalState.COMPOSITING
        # Captions are read after the image load; some sites insert them late.
        top_blocks = adapter.top_blocks(context)
        bottom_blocks = adapter.bottom_blocks(context)
        try:
            composed = compose_page(image, top_blocks, bottom_blocks, adapter.fill_for(context))
        except ValueError as exc:
            raise ExtractionError(f"{adapter.name} 页面合成失败: {exc}") from exc
        data = encode_page(composed, quality=self.jpeg_quality)
        next_url = adapter.next_for(context)

        # A key first seen here is dropped again if the state write fails.
        orphan = None if page_key in run.images else page_key
        self.store.cache_page(page_key, data)
        logger.info("Saved page %s as %s (%dx%d)", context.url, page_key, composed.width, composed.height)

        self.state = TraversalState.DECIDING
        # The budget counts this page too: a run started with N saves N pages.
        budget_spent = run.remaining_pages <= 1
        if orphan is not None:
            run.images.append(page_key)
        run.remaining_pages -= 1

        if not next_url or next_url in {context.url, run.location}:
            logger.info("Reached the last page, zipping up now")
            return self._finalize(run, adapter, reason="last_page", page_key=page_key, orphan=orphan)
        if budget_spent:
            logger.info("Page count reached, zipping up now")
            return self._finalize(run, adapter, reason="budget", page_key=page_key, orphan=orphan)

        run.location = next_url
        self._save_state(run, orphan=orphan)
        self.store.add_event("page_saved", f"已保存 {page_key}，下一页 {next_url}")
        self.state = TraversalState.NAVIGATING
        logger.info("Navigating to next page: %s", next_url)
        return StepOutcome(TraversalState.NAVIGATING, page_key=page_key, next_url=next_url)

    def _wait_until_ready(self, adapter: PageAdapter, context: PageContext) -> None:
        deadline = self._clock() + self.ready_timeout_sec if self.ready_timeout_sec > 0 else None
        while not adapter.is_loaded(context):
            if deadline is not None and self._clock() >= deadline:
                raise ReadinessTimeoutError(context.url, self.ready_timeout_sec)
            self._sleep(self.ready_poll_interval_sec)
            context.refresh()

    def _finalize(
        self,
        run: RunState,
        adapter: PageAdapter,
        *,
        reason: str,
        page_key: str | None = None,
        orphan: str | None = None,
    ) -> StepOutcome:
        self.state = TraversalState.FINALIZING
        # Persisted first so a failed build can be retried without re-scraping.
        run.phase = PHASE_FINALIZING
        run.remaining_pages = max(0, run.remaining_pages)
        self._save_state(run, orphan=orphan)
        logger.info("Generating archive from %d pages", len(run.images))
        archive = self.builder.build(run.images, adapter.archive_name)
        if archive is not None:
            logger.info("Download complete: %s", archive.filename)
        self.state = TraversalState.IDLE
        return StepOutcome(TraversalState.IDLE, page_key=page_key, archive=archive, reason=reason)

    def _save_state(self, run: RunState, *, orphan: str | None = None) -> None:
        try:
            self.store.set_state(run)
        except ComicArchiverError:
            if orphan is not None:
                self.store.evict_page(orphan)
            raise
