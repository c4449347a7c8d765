"""Configuration helpers for CLI + YAML input."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from .models import RunConfig


def load_yaml_config(path: Path | None) -> dict[str, Any]:
    """Load YAML config or return empty dict when path is absent."""
    if path is None:
        return {}
    if not path.exists():
        raise FileNotFoundError(f"配置文件不存在: {path}")
    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    if not isinstance(data, dict):
        raise ValueError("YAML 配置根节点必须是对象（mapping）。")
    return data


def build_run_config(raw: dict[str, Any]) -> RunConfig:
    """Construct RunConfig with normalized paths."""
    config = RunConfig(
        state_db=Path(raw.get("state_db", "data/state.sqlite3")),
        session=str(raw.get("session", "default")).strip(),
        output_dir=Path(raw.get("output_dir", "data/archives")),
        engine=str(raw.get("engine", "requests")).lower(),
        page_timeout_sec=float(raw.get("page_timeout_sec", 20.0)),
        image_timeout_sec=float(raw.get("image_timeout_sec", 30.0)),
        image_retries=int(raw.get("image_retries", 3)),
        request_delay_sec=float(raw.get("request_delay_sec", 0.2)),
        ready_timeout_sec=float(raw.get("ready_timeout_sec", 30.0)),
        ready_poll_interval_sec=float(raw.get("ready_poll_interval_sec", 0.5)),
        quota_bytes=int(raw.get("quota_bytes", 64 * 1024 * 1024)),
        jpeg_quality=int(raw.get("jpeg_quality", 100)),
    )
    validate_run_config(config)
    return config


def validate_run_config(config: RunConfig) -> None:
    """Validate config values and raise ValueError on invalid input."""
    if not config.session:
        raise ValueError("session 不能为空。")
    if config.engine not in {"requests", "playwright"}:
        raise ValueError("engine 必须是以下之一: requests, playwright")
    if config.page_timeout_sec <= 0:
        raise ValueError("page_timeout_sec 必须 > 0")
    if config.image_timeout_sec <= 0:
        raise ValueError("image_timeout_sec 必须 > 0")
    if config.image_retries < 0:
        raise ValueError("image_retries 必须 >= 0")
    if config.request_delay_sec < 0:
        raise ValueError("request_delay_sec 必须 >= 0")
    if config.ready_timeout_sec < 0:
        raise ValueError("ready_timeout_sec 必须 >= 0（0 表示不限时等待）")
    if config.ready_poll_interval_sec <= 0:
        raise ValueError("ready_poll_interval_sec 必须 > 0")
    if config.quota_bytes < 1:
        raise ValueError("quota_bytes 必须 >= 1")
    if not 1 <= config.jpeg_quality <= 100:
        raise ValueError("jpeg_quality 必须在 1 到 100 之间。")


def validate_page_budget(pages: int) -> int:
    """Page budget entered by the user; at least one page."""
    if pages < 1:
        raise ValueError("页数必须 >= 1")
    return pages


def run_config_json(config: RunConfig) -> str:
    """Serialize config as JSON for the event journal."""
    payload = {
        "state_db": str(config.state_db),
        "session": config.session,
        "output_dir": str(config.output_dir),
        "engine": config.engine,
        "page_timeout_sec": config.page_timeout_sec,
        "image_timeout_sec": config.image_timeout_sec,
        "image_retries": config.image_retries,
        "request_delay_sec": config.request_delay_sec,
        "ready_timeout_sec": config.ready_timeout_sec,
        "ready_poll_interval_sec": config.ready_poll_interval_sec,
        "quota_bytes": config.quota_bytes,
        "jpeg_quality": config.jpeg_quality,
    }
    return json.dumps(payload, ensure_ascii=True, sort_keys=True)
