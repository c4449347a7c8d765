"""Assemble cached pages into a .cbz archive and deliver it."""

from __future__ import annotations

import logging
import os
import tempfile
import zipfile
from pathlib import Path
from typing import Callable, Sequence

from .errors import ArchiveAssemblyError
from .models import ArchiveResult
from .naming import archive_filename, entry_name
from .state import ArchivalStateStore

logger = logging.getLogger(__name__)

BookNamer = Callable[[str | None, str | None], str]


class FileDelivery:
    """Deliver finished archives by moving them into an output directory."""

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = output_dir

    def staging_path(self) -> Path:
        """Temporary file on the same filesystem as the final location."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        fd, path = tempfile.mkstemp(dir=self.output_dir, suffix=".part")
        os.close(fd)
        return Path(path)

    def deliver(self, source: Path, filename: str) -> Path:
        target = self.output_dir / filename
        os.replace(source, target)
        logger.info("Delivered %s", target)
        return target


class ArchiveBuilder:
    """Drain cached pages, in run order, into one ZIP container."""

    def __init__(self, store: ArchivalStateStore, delivery: FileDelivery) -> None:
        self.store = store
        self.delivery = delivery

    def build(self, images: Sequence[str], book_name: BookNamer) -> ArchiveResult | None:
        """Build and deliver the archive, then wipe all run state.

        Missing pages are skipped. Cached pages are evicted only after the
        archive has been delivered, so a failed build can be retried. Returns
        None when no cached page was found.
        """
        first_page: str | None = None
        last_page: str | None = None
        consumed: list[str] = []
        staging = self.delivery.staging_path()
        try:
            with zipfile.ZipFile(staging, "w", zipfile.ZIP_DEFLATED) as zf:
                for key in images:
                    if key in consumed:
                        continue
                    data = self.store.read_page(key)
                    if data is None:
                        logger.warning("Page %s missing from cache, skipped", key)
                        continue
                    if first_page is None:
                        first_page = key
                    last_page = key
                    zf.writestr(entry_name(key), data)
                    consumed.append(key)

            if not consumed:
                staging.unlink(missing_ok=True)
                logger.warning("No cached pages to archive")
                self.store.clear_all()
                self.store.add_event("archive_empty", "没有可归档的页面，已清空运行状态")
                return None

            filename = archive_filename(book_name(first_page, last_page))
            size_bytes = staging.stat().st_size
            path = self.delivery.deliver(staging, filename)
        except Exception as exc:
            staging.unlink(missing_ok=True)
            self.store.add_event("archive_failed", f"归档失败: {exc}")
            raise ArchiveAssemblyError(f"归档失败，已缓存页面保留以便重试: {exc}") from exc

        for key in consumed:
            self.store.evict_page(key)
        self.store.clear_all()
        self.store.add_event(
            "archive_delivered",
            f"已生成 {filename}，共 {len(consumed)} 页",
        )
        return ArchiveResult(
            filename=filename,
            path=path,
            pages=consumed,
            size_bytes=size_bytes,
            first_page=first_page,
            last_page=last_page,
        )
