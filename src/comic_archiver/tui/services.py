"""Backend services used by the Textual TUI."""

from __future__ import annotations

import copy
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator

from ..adapters import AdapterRegistry
from ..fetchers.base import BaseFetcher
from ..images import ImageLoader
from ..models import RunConfig, RunState, utc_now_iso
from ..runner import TraversalRunner, build_fetcher, build_image_loader, open_store
from ..sites import default_registry
from ..state import ArchivalStateStore

FetcherBuilder = Callable[[RunConfig], BaseFetcher]
ImageLoaderBuilder = Callable[[RunConfig], ImageLoader]


@dataclass(slots=True)
class WorkerSnapshot:
    """Public worker state for UI polling."""

    status: str
    error: str | None
    summary: dict[str, Any] | None
    pages: list[str]
    started_at: str | None
    finished_at: str | None


class RunWorker:
    """Run one traversal in a background thread."""

    def __init__(
        self,
        run_config: RunConfig,
        url: str,
        pages: int,
        *,
        registry: AdapterRegistry | None = None,
        fetcher_builder: FetcherBuilder = build_fetcher,
        image_loader_builder: ImageLoaderBuilder = build_image_loader,
    ) -> None:
        self.run_config = run_config
        self.url = url
        self.pages = pages
        self._registry = registry or default_registry()
        self._fetcher_builder = fetcher_builder
        self._image_loader_builder = image_loader_builder
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._status = "idle"
        self._error: str | None = None
        self._summary: dict[str, Any] | None = None
        self._saved: list[str] = []
        self._started_at: str | None = None
        self._finished_at: str | None = None

    def start(self) -> None:
        """Start worker once. Raises if already running."""
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                raise RuntimeError("已有归档在运行中。")
            self._status = "running"
            self._error = None
            self._summary = None
            self._saved = []
            self._started_at = utc_now_iso()
            self._finished_at = None

        self._thread = threading.Thread(
            target=self._run,
            name="comic-archiver-runner",
            daemon=True,
        )
        self._thread.start()

    def wait(self, timeout: float | None = None) -> bool:
        """Wait until worker finishes."""
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout=timeout)
        return not thread.is_alive()

    def is_running(self) -> bool:
        thread = self._thread
        return bool(thread and thread.is_alive())

    def snapshot(self) -> WorkerSnapshot:
        """Get thread-safe state snapshot for UI."""
        with self._lock:
            return WorkerSnapshot(
                status=self._status,
                error=self._error,
                summary=copy.deepcopy(self._summary),
                pages=list(self._saved),
                started_at=self._started_at,
                finished_at=self._finished_at,
            )

    def _on_page(self, outcome: Any) -> None:
        if outcome.page_key is None:
            return
        with self._lock:
            self._saved.append(outcome.page_key)

    def _run(self) -> None:
        # SQLite connections are bound to the thread that opened them.
        store = open_store(self.run_config)
        fetcher: BaseFetcher | None = None
        try:
            fetcher = self._fetcher_builder(self.run_config)
            runner = TraversalRunner(
                config=self.run_config,
                registry=self._registry,
                store=store,
                fetcher=fetcher,
                image_loader=self._image_loader_builder(self.run_config),
                on_page=self._on_page,
            )
            summary = runner.start(self.url, self.pages)
        except Exception as exc:
            with self._lock:
                self._status = "failed"
                self._error = str(exc)
                self._finished_at = utc_now_iso()
            return
        finally:
            if fetcher is not None:
                fetcher.close()
            store.close()

        with self._lock:
            self._status = "completed"
            self._summary = summary
            self._finished_at = utc_now_iso()


@dataclass(slots=True)
class SessionSnapshot:
    """State snapshot used by monitoring panels."""

    state: RunState | None
    cached_pages: list[str]
    used_bytes: int
    events: list[dict[str, Any]]


class SnapshotService:
    """Read-only helpers for polling session state from SQLite."""

    def __init__(self, run_config: RunConfig) -> None:
        self.run_config = run_config

    @contextmanager
    def _store(self) -> Iterator[ArchivalStateStore]:
        store = open_store(self.run_config)
        try:
            yield store
        finally:
            store.close()

    def get_snapshot(self, *, events_limit: int = 100) -> SessionSnapshot:
        with self._store() as store:
            return SessionSnapshot(
                state=store.get_state(),
                cached_pages=store.cached_pages(),
                used_bytes=store.used_bytes(),
                events=store.list_events(limit=events_limit),
            )
