"""Textual TUI entrypoint."""

from __future__ import annotations

from ..config import build_run_config
from ..models import RunConfig
from .forms import StartRunForm, form_defaults, parse_start_form
from .services import RunWorker, SnapshotService

_TEXTUAL_IMPORT_ERROR: Exception | None = None
try:  # pragma: no cover - import path depends on optional dependency
    from textual.app import App, ComposeResult
    from textual.containers import Horizontal, Vertical, VerticalScroll
    from textual.widgets import Button, Footer, Header, Static

    from .widgets import EventsTable, PagesTable, RunStatePanel
except Exception as exc:  # pragma: no cover - optional dependency not installed
    _TEXTUAL_IMPORT_ERROR = exc


if _TEXTUAL_IMPORT_ERROR is None:

    class ArchiverTUIApp(App[None]):
        """Terminal UI for starting and monitoring an archival run."""

        CSS = """
        Screen {
            layout: vertical;
        }

        #body {
            layout: horizontal;
            height: 1fr;
        }

        #left-panel {
            width: 40%;
            min-width: 40;
            border: round $primary;
            padding: 0 1;
        }

        #right-panel {
            width: 60%;
            border: round $secondary;
            padding: 0 1;
        }

        .section-title {
            text-style: bold;
            margin-top: 1;
        }

        #state-panel {
            height: 8;
            border: tall $accent;
            padding: 0 1;
        }

        #pages-table {
            height: 12;
        }

        #events-table {
            height: 14;
        }

        #status-bar {
            height: 1;
            padding: 0 1;
            background: $surface;
            color: $text;
        }

        #run-form-error {
            color: $error;
            text-style: bold;
        }
        """
        BINDINGS = [
            ("q", "quit", "退出"),
            ("r", "refresh", "刷新"),
        ]
        TITLE = "Comic Archiver TUI"
        SUB_TITLE = "逐页归档网络漫画"

        def __init__(self) -> None:
            super().__init__()
            self._worker: RunWorker | None = None
            self._monitor_config: RunConfig = self._default_monitor_config()
            self._last_worker_status: str | None = None
            self._quit_guard_armed = False

        @staticmethod
        def _default_monitor_config() -> RunConfig:
            defaults = form_defaults()
            return build_run_config(
                {"state_db": defaults["state_db"], "session": defaults["session"]}
            )

        def compose(self) -> ComposeResult:
            yield Header(show_clock=True)
            with Horizontal(id="body"):
                with Vertical(id="left-panel"):
                    if StartRunForm is None:  # pragma: no cover - guarded by import
                        yield Static("Textual 表单组件不可用。", id="run-form-error")
                    else:
                        yield StartRunForm(id="run-form")
                with VerticalScroll(id="right-panel"):
                    yield Static("运行状态", classes="section-title")
                    yield RunStatePanel("当前没有进行中的归档。", id="state-panel")
                    yield Static("已处理页面", classes="section-title")
                    yield PagesTable(id="pages-table")
                    yield Static("最近事件", classes="section-title")
                    yield EventsTable(id="events-table")
            yield Static("就绪", id="status-bar")
            yield Footer()

        def on_mount(self) -> None:
            self._refresh_all()
            self.set_interval(1.0, self._refresh_all)

        def action_refresh(self) -> None:
            self._refresh_all()

        def action_quit(self) -> None:
            if self._worker and self._worker.is_running():
                if not self._quit_guard_armed:
                    self._quit_guard_armed = True
                    self._set_status("归档运行中。已保存的进度可用 resume 继续，再按一次 q 强制退出。")
                    return
            self.exit()

        def on_button_pressed(self, event: Button.Pressed) -> None:
            if event.button.id != "start-run":
                return
            self._start_run_from_form()

        def _start_run_from_form(self) -> None:
            if self._worker and self._worker.is_running():
                self._set_status("已有归档在运行中，请等待完成后再启动。")
                return

            form = self._form()
            if form is None:
                self._set_status("表单组件不可用。")
                return

            try:
                run_config, url, pages = parse_start_form(form.get_payload())
            except ValueError as exc:
                form.set_error(str(exc))
                self._set_status(f"配置错误: {exc}")
                return

            form.set_error("")
            worker = RunWorker(run_config, url, pages)
            try:
                worker.start()
            except Exception as exc:
                form.set_error(str(exc))
                self._set_status(f"启动失败: {exc}")
                return

            self._worker = worker
            self._monitor_config = run_config
            self._last_worker_status = None
            self._quit_guard_armed = False
            self._set_status(f"开始归档 {pages} 页: {url}")
            self._refresh_all()

        def _refresh_all(self) -> None:
            self._sync_worker_state()
            self._refresh_snapshot()

        def _sync_worker_state(self) -> None:
            if self._worker is None:
                return
            snapshot = self._worker.snapshot()
            if snapshot.status != self._last_worker_status:
                if snapshot.status == "running":
                    self._set_status("归档运行中...")
                elif snapshot.status == "completed":
                    archive = (snapshot.summary or {}).get("archive") or {}
                    self._set_status(f"归档完成: {archive.get('filename', '-')}")
                elif snapshot.status == "failed":
                    self._set_status(f"归档失败: {snapshot.error}")
                self._last_worker_status = snapshot.status
            if snapshot.status != "running":
                self._quit_guard_armed = False

        def _refresh_snapshot(self) -> None:
            state_panel = self.query_one("#state-panel", RunStatePanel)
            pages_table = self.query_one("#pages-table", PagesTable)
            events_table = self.query_one("#events-table", EventsTable)
            try:
                snapshot = SnapshotService(self._monitor_config).get_snapshot(events_limit=100)
            except Exception as exc:
                self._set_status(f"读取状态失败: {exc}")
                return
            state_panel.set_state(
                snapshot.state,
                used_bytes=snapshot.used_bytes,
                quota_bytes=self._monitor_config.quota_bytes,
            )
            images = snapshot.state.images if snapshot.state is not None else []
            pages_table.set_pages(images, snapshot.cached_pages)
            events_table.set_events(snapshot.events)

        def _form(self) -> StartRunForm | None:
            if StartRunForm is None:
                return None
            return self.query_one("#run-form", StartRunForm)

        def _set_status(self, message: str) -> None:
            self.query_one("#status-bar", Static).update(message)
            form = self._form()
            if form is not None:
                form.set_status(message)

else:

    class ArchiverTUIApp:  # pragma: no cover - fallback class for missing dependency
        """Fallback placeholder when Textual is unavailable."""

        def run(self) -> None:
            raise RuntimeError(
                "Textual 不可用。请先执行 `pip install -e \".[tui]\"` 安装 TUI 依赖。"
            )


def main() -> None:
    """CLI entry for `comic-archiver-tui`."""
    if _TEXTUAL_IMPORT_ERROR is not None:
        raise SystemExit(
            "Textual 不可用。请先执行 `pip install -e \".[tui]\"` 安装 TUI 依赖。"
        )
    ArchiverTUIApp().run()
