"""Reusable Textual widgets for the TUI dashboard."""

from __future__ import annotations

from typing import Sequence

from textual.widgets import DataTable, Static

from ..models import RunState


def _fmt_ts(value: str | None) -> str:
    if not value:
        return "-"
    return value[:19].replace("T", " ")


def _short(text: str | None, limit: int) -> str:
    if not text:
        return "-"
    if len(text) <= limit:
        return text
    return text[: max(1, limit - 3)] + "..."


class RunStatePanel(Static):
    """Current run summary and store usage."""

    def set_state(self, state: RunState | None, *, used_bytes: int, quota_bytes: int) -> None:
        usage = f"存储: {used_bytes / 1024:.0f} KB / {quota_bytes / 1024:.0f} KB"
        if state is None:
            self.update(f"当前没有进行中的归档。\n{usage}")
            return
        lines = [
            f"阶段: {state.phase}",
            f"当前页面: {_short(state.location, 70)}",
            f"剩余页数: {state.remaining_pages}",
            f"已处理: {len(state.images)} 页",
            f"开始: {_fmt_ts(state.started_at)}",
            usage,
        ]
        self.update("\n".join(lines))


class PagesTable(DataTable):
    """Processed pages of the current run, in archive order."""

    def on_mount(self) -> None:
        self.cursor_type = "row"
        self.zebra_stripes = True
        self.add_columns("#", "page", "cached")

    def set_pages(self, images: Sequence[str], cached: Sequence[str]) -> None:
        self.clear(columns=False)
        cached_set = set(cached)
        for index, key in enumerate(images, start=1):
            self.add_row(
                str(index),
                key,
                "yes" if key in cached_set else "no",
                key=f"page-{index}",
            )


class EventsTable(DataTable):
    """Recent journal events for the session."""

    def on_mount(self) -> None:
        self.cursor_type = "row"
        self.zebra_stripes = True
        self.add_columns("time", "event", "message")

    def set_events(self, events: Sequence[dict]) -> None:
        self.clear(columns=False)
        for item in events:
            self.add_row(
                _fmt_ts(str(item.get("created_at", ""))),
                str(item.get("event_type", "-")),
                _short(str(item.get("message", "")), 90),
                key=f"event-{item.get('id', 'x')}",
            )
