"""Start-run form model + widget helpers for TUI."""

from __future__ import annotations

from typing import Any, Mapping

from ..config import build_run_config, validate_page_budget
from ..models import RunConfig

FORM_DEFAULTS: dict[str, Any] = {
    "url": "",
    "pages": "1",
    "state_db": "data/state.sqlite3",
    "session": "default",
    "output_dir": "data/archives",
    "engine": "requests",
}


def form_defaults() -> dict[str, Any]:
    """Return mutable defaults for run form fields."""
    return dict(FORM_DEFAULTS)


def parse_start_form(payload: Mapping[str, object]) -> tuple[RunConfig, str, int]:
    """Parse form payload into (config, start url, page budget)."""
    url = _required_text(payload, "url", "起始页面 URL")
    pages = validate_page_budget(_required_int(payload, "pages", "页数"))
    raw: dict[str, Any] = {
        "state_db": _text_or_default(payload, "state_db", str(FORM_DEFAULTS["state_db"])),
        "session": _text_or_default(payload, "session", str(FORM_DEFAULTS["session"])),
        "output_dir": _text_or_default(payload, "output_dir", str(FORM_DEFAULTS["output_dir"])),
        "engine": _text_or_default(payload, "engine", str(FORM_DEFAULTS["engine"])).lower(),
    }
    return build_run_config(raw), url, pages


def _required_text(payload: Mapping[str, object], field: str, label: str) -> str:
    value = str(payload.get(field, "")).strip()
    if not value:
        raise ValueError(f"{label} 不能为空。")
    return value


def _text_or_default(payload: Mapping[str, object], field: str, default: str) -> str:
    value = str(payload.get(field, "")).strip()
    return value or default


def _required_int(payload: Mapping[str, object], field: str, label: str) -> int:
    raw = str(payload.get(field, "")).strip()
    if not raw:
        raise ValueError(f"{label} 不能为空。")
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{label} 必须是整数。") from exc


try:  # pragma: no cover - UI class is covered by manual interaction
    from textual.app import ComposeResult
    from textual.containers import VerticalScroll
    from textual.widgets import Button, Input, Label, Select, Static

    class StartRunForm(VerticalScroll):
        """Left-side form: start page, page budget, and session settings."""

        def compose(self) -> ComposeResult:
            defaults = form_defaults()
            yield Label("归档参数", classes="section-title")
            yield Label("起始页面 URL")
            yield Input(value=str(defaults["url"]), placeholder="https://www.buttersafe.com/2008/04/23/", id="url")
            yield Label("页数 pages")
            yield Input(value=str(defaults["pages"]), type="integer", id="pages")
            yield Label("状态库 state_db")
            yield Input(value=str(defaults["state_db"]), id="state_db")
            yield Label("会话 session")
            yield Input(value=str(defaults["session"]), id="session")
            yield Label("输出目录 output_dir")
            yield Input(value=str(defaults["output_dir"]), id="output_dir")
            yield Label("加载引擎 engine")
            yield Select(
                options=[("requests", "requests"), ("playwright", "playwright")],
                value=str(defaults["engine"]),
                id="engine",
            )
            yield Button("保存页面", id="start-run", variant="primary")
            yield Static("", id="run-form-status")
            yield Static("", id="run-form-error")

        def get_payload(self) -> dict[str, object]:
            engine_value = self.query_one("#engine", Select).value
            engine = "" if engine_value == Select.BLANK else str(engine_value)
            return {
                "url": self.query_one("#url", Input).value,
                "pages": self.query_one("#pages", Input).value,
                "state_db": self.query_one("#state_db", Input).value,
                "session": self.query_one("#session", Input).value,
                "output_dir": self.query_one("#output_dir", Input).value,
                "engine": engine,
            }

        def set_error(self, message: str) -> None:
            self.query_one("#run-form-error", Static).update(message)

        def set_status(self, message: str) -> None:
            self.query_one("#run-form-status", Static).update(message)


except Exception:  # pragma: no cover - textual optional dependency
    StartRunForm = None  # type: ignore[assignment]
