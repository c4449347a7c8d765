"""Exception hierarchy for archiving runs."""

from __future__ import annotations


class ComicArchiverError(Exception):
    """Base error for all archiver failures."""


class AdapterNotFoundError(ComicArchiverError):
    """No registered adapter matches the current location."""

    def __init__(self, url: str) -> None:
        super().__init__(f"没有匹配当前页面的站点配置: {url}")
        self.url = url


class ReadinessTimeoutError(ComicArchiverError):
    """Page never reported ready within the configured wait."""

    def __init__(self, url: str, timeout_sec: float) -> None:
        super().__init__(f"页面在 {timeout_sec:g} 秒内未就绪: {url}")
        self.url = url
        self.timeout_sec = timeout_sec


class ExtractionError(ComicArchiverError):
    """An adapter hook failed on the current page."""


class ImageLoadError(ExtractionError):
    """Source image could not be downloaded or decoded."""


class CapacityExceededError(ComicArchiverError):
    """Store write refused because the scope quota would be exceeded."""

    def __init__(self, key: str, required: int, quota: int) -> None:
        super().__init__(
            f"存储容量不足: 写入 {key} 需要 {required} 字节，配额 {quota} 字节。"
            "请减少单次页数分批归档。"
        )
        self.key = key
        self.required = required
        self.quota = quota


class ArchiveAssemblyError(ComicArchiverError):
    """Archive could not be built or delivered; cached pages are kept."""
