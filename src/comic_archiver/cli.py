"""Command-line interface for Comic Archiver."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any

from .config import build_run_config, load_yaml_config, validate_page_budget
from .errors import ComicArchiverError
from .models import PHASE_FINALIZING, RunConfig
from .runner import TraversalRunner, build_fetcher, build_image_loader, open_store
from .sites import default_registry

SETTING_KEYS = [
    "state_db",
    "session",
    "output_dir",
    "engine",
    "page_timeout_sec",
    "image_timeout_sec",
    "image_retries",
    "request_delay_sec",
    "ready_timeout_sec",
    "ready_poll_interval_sec",
    "quota_bytes",
    "jpeg_quality",
]


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return

    logging.basicConfig(
        level=logging.DEBUG if getattr(args, "verbose", False) else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "run":
        _handle_run(args)
    elif args.command == "resume":
        _handle_resume(args)
    elif args.command == "finalize":
        _handle_finalize(args)
    elif args.command == "status":
        _handle_status(args)
    elif args.command == "sites":
        _handle_sites(args)
    else:
        parser.error(f"未知命令: {args.command}")


def _add_settings_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", type=Path, default=None, help="YAML 配置文件路径。")
    parser.add_argument("--state-db", dest="state_db", default=None, help="SQLite 状态库路径。")
    parser.add_argument("--session", default=None, help="会话名称，不同会话的运行互不影响。")
    parser.add_argument("--output-dir", dest="output_dir", default=None, help="归档输出目录。")
    parser.add_argument(
        "--engine",
        default=None,
        choices=["requests", "playwright"],
        help="页面加载引擎。",
    )
    parser.add_argument(
        "--page-timeout-sec",
        dest="page_timeout_sec",
        type=float,
        default=None,
        help="页面加载超时秒数。",
    )
    parser.add_argument(
        "--image-timeout-sec",
        dest="image_timeout_sec",
        type=float,
        default=None,
        help="图片下载超时秒数。",
    )
    parser.add_argument(
        "--image-retries",
        dest="image_retries",
        type=int,
        default=None,
        help="图片下载重试次数。",
    )
    parser.add_argument(
        "--request-delay-sec",
        dest="request_delay_sec",
        type=float,
        default=None,
        help="翻页间隔秒数。",
    )
    parser.add_argument(
        "--ready-timeout-sec",
        dest="ready_timeout_sec",
        type=float,
        default=None,
        help="等待页面就绪的最长秒数，0 表示不限时。",
    )
    parser.add_argument(
        "--ready-poll-interval-sec",
        dest="ready_poll_interval_sec",
        type=float,
        default=None,
        help="就绪检查间隔秒数。",
    )
    parser.add_argument(
        "--quota-bytes",
        dest="quota_bytes",
        type=int,
        default=None,
        help="单个会话的存储配额（字节）。",
    )
    parser.add_argument(
        "--jpeg-quality",
        dest="jpeg_quality",
        type=int,
        default=None,
        help="页面 JPEG 质量（1-100）。",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="输出调试日志。")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="网络漫画归档器")
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="从指定页面开始逐页归档。")
    run_parser.add_argument("--url", default=None, help="起始页面 URL。")
    run_parser.add_argument("--pages", type=int, default=1, help="最多归档的页数（>= 1）。")
    _add_settings_arguments(run_parser)

    resume_parser = subparsers.add_parser("resume", help="从状态库继续中断的归档。")
    _add_settings_arguments(resume_parser)

    finalize_parser = subparsers.add_parser(
        "finalize",
        help="立即用已缓存的页面生成归档（失败重试或分批归档）。",
    )
    _add_settings_arguments(finalize_parser)

    status_parser = subparsers.add_parser("status", help="查看当前运行状态。")
    _add_settings_arguments(status_parser)
    status_parser.add_argument(
        "--events-limit",
        dest="events_limit",
        type=int,
        default=10,
        help="返回事件条数上限。",
    )

    subparsers.add_parser("sites", help="列出已注册的站点配置。")
    return parser


def _load_run_config(args: argparse.Namespace) -> RunConfig:
    yaml_data = load_yaml_config(args.config)
    try:
        return build_run_config(_merge_run_settings(args, yaml_data))
    except ValueError as exc:
        raise SystemExit(f"配置错误: {exc}") from exc


def _merge_run_settings(args: argparse.Namespace, yaml_data: dict[str, Any]) -> dict[str, Any]:
    merged: dict[str, Any] = {}
    for key in SETTING_KEYS:
        cli_value = getattr(args, key, None)
        if cli_value is not None:
            merged[key] = cli_value
        elif key in yaml_data:
            merged[key] = yaml_data[key]
    return merged


def _execute(run_config: RunConfig, action: str, **kwargs: Any) -> None:
    store = open_store(run_config)
    fetcher = None
    try:
        fetcher = build_fetcher(run_config)
        runner = TraversalRunner(
            config=run_config,
            registry=default_registry(),
            store=store,
            fetcher=fetcher,
            image_loader=build_image_loader(run_config),
        )
        if action == "start":
            summary = runner.start(kwargs["url"], kwargs["pages"])
        else:
            summary = runner.resume()
        print(json.dumps({"status": "ok", "summary": summary}, ensure_ascii=False, indent=2))
    except ComicArchiverError as exc:
        raise SystemExit(f"归档失败: {exc}") from exc
    finally:
        if fetcher is not None:
            fetcher.close()
        store.close()


def _handle_run(args: argparse.Namespace) -> None:
    if not args.url:
        raise SystemExit("缺少必填项: --url。")
    try:
        pages = validate_page_budget(args.pages)
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc
    run_config = _load_run_config(args)
    _execute(run_config, "start", url=args.url, pages=pages)


def _handle_resume(args: argparse.Namespace) -> None:
    run_config = _load_run_config(args)
    store = open_store(run_config)
    try:
        if store.get_state() is None:
            raise SystemExit("状态库中没有进行中的归档。")
    finally:
        store.close()
    _execute(run_config, "resume")


def _handle_finalize(args: argparse.Namespace) -> None:
    run_config = _load_run_config(args)
    store = open_store(run_config)
    try:
        state = store.get_state()
        if state is None:
            raise SystemExit("状态库中没有进行中的归档。")
        if state.phase != PHASE_FINALIZING:
            state.phase = PHASE_FINALIZING
            store.set_state(state)
            store.add_event("finalize_requested", f"手动归档已缓存的 {len(state.images)} 页")
    finally:
        store.close()
    _execute(run_config, "resume")


def _handle_status(args: argparse.Namespace) -> None:
    run_config = _load_run_config(args)
    store = open_store(run_config)
    try:
        state = store.get_state()
        payload = {
            "session": run_config.session,
            "state": None
            if state is None
            else {
                "phase": state.phase,
                "location": state.location,
                "remaining_pages": state.remaining_pages,
                "images": state.images,
                "start_page": state.start_page,
                "started_at": state.started_at,
                "updated_at": state.updated_at,
            },
            "cached_pages": store.cached_pages(),
            "used_bytes": store.used_bytes(),
            "quota_bytes": run_config.quota_bytes,
            "events": list(reversed(store.list_events(limit=args.events_limit))),
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    finally:
        store.close()


def _handle_sites(args: argparse.Namespace) -> None:
    _ = args
    payload = [
        {"name": adapter.name, "url_pattern": adapter.url_pattern.pattern}
        for adapter in default_registry()
    ]
    print(json.dumps(payload, ensure_ascii=False, indent=2))
