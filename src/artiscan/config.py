from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from .interaction.keybinds import DEFAULT_STOP_KEY, normalize_stop_key

CONFIG_VERSION = 1
APP_CONFIG_DIR_NAME = "Artiscan"
CONFIG_FILE_NAME = "config.json"


@dataclass(frozen=True)
class ScanSettings:
    stability_frames: int = 3
    stability_threshold: float = 2.0
    stability_poll_ms: int = 40
    stability_max_polls: int = 25
    slot_retries: int = 2
    no_progress_limit: int = 3
    capture_retries: int = 3
    capture_retry_delay_ms: int = 100
    min_rarity: int = 1
    max_rarity: int = 5
    max_rows: Optional[int] = None
    recognition_workers: int = 4
    action_delay_ms: int = 50
    scroll_settle_ms: int = 150
    stop_key: str = DEFAULT_STOP_KEY
    model_path: Optional[str] = None
    alphabet_path: Optional[str] = None
    debug_ocr: bool = False
    profile: bool = False


def config_dir() -> Path:
    if os.name == "nt":
        appdata = os.environ.get("APPDATA")
        if appdata:
            return Path(appdata) / APP_CONFIG_DIR_NAME
    return Path.home() / f".{APP_CONFIG_DIR_NAME.lower()}"


def config_path() -> Path:
    return config_dir() / CONFIG_FILE_NAME


def validate_settings(settings: ScanSettings) -> None:
    if settings.stability_frames < 1:
        raise ValueError("stability_frames must be >= 1")
    if settings.stability_threshold < 0:
        raise ValueError("stability_threshold must be >= 0")
    if settings.stability_poll_ms < 0:
        raise ValueError("stability_poll_ms must be >= 0")
    # the first poll only captures the reference frame
    if settings.stability_max_polls < settings.stability_frames + 1:
        raise ValueError("stability_max_polls must be > stability_frames")
    if settings.slot_retries < 1:
        raise ValueError("slot_retries must be >= 1")
    if settings.no_progress_limit < 1:
        raise ValueError("no_progress_limit must be >= 1")
    if settings.capture_retries < 0:
        raise ValueError("capture_retries must be >= 0")
    if settings.capture_retry_delay_ms < 0:
        raise ValueError("capture_retry_delay_ms must be >= 0")
    if not 1 <= settings.min_rarity <= settings.max_rarity <= 5:
        raise ValueError("rarity filter must satisfy 1 <= min_rarity <= max_rarity <= 5")
    if settings.max_rows is not None and settings.max_rows < 1:
        raise ValueError("max_rows must be >= 1")
    if settings.recognition_workers < 1:
        raise ValueError("recognition_workers must be >= 1")
    if settings.action_delay_ms < 0:
        raise ValueError("action_delay_ms must be >= 0")
    if settings.scroll_settle_ms < 0:
        raise ValueError("scroll_settle_ms must be >= 0")


def _coerce_bool(value: Any, default: bool) -> bool:
    return value if isinstance(value, bool) else default


def _coerce_int(value: Any, default: Optional[int], minimum: int) -> Optional[int]:
    if isinstance(value, int) and not isinstance(value, bool) and value >= minimum:
        return value
    return default


def _coerce_float(value: Any, default: float) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0:
        return float(value)
    return default


def _coerce_path(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value.strip() else None


def _from_raw_scan_settings(raw: Any) -> ScanSettings:
    if not isinstance(raw, dict):
        return ScanSettings()

    defaults = ScanSettings()
    int_fields = {
        "stability_frames": 1,
        "stability_poll_ms": 0,
        "stability_max_polls": 1,
        "slot_retries": 1,
        "no_progress_limit": 1,
        "capture_retries": 0,
        "capture_retry_delay_ms": 0,
        "min_rarity": 1,
        "max_rarity": 1,
        "recognition_workers": 1,
        "action_delay_ms": 0,
        "scroll_settle_ms": 0,
    }
    values: Dict[str, Any] = {
        name: _coerce_int(raw.get(name), getattr(defaults, name), minimum)
        for name, minimum in int_fields.items()
    }
    values["stability_threshold"] = _coerce_float(
        raw.get("stability_threshold"), defaults.stability_threshold
    )
    values["max_rows"] = _coerce_int(raw.get("max_rows"), None, 1)
    values["stop_key"] = normalize_stop_key(raw.get("stop_key"))
    values["model_path"] = _coerce_path(raw.get("model_path"))
    values["alphabet_path"] = _coerce_path(raw.get("alphabet_path"))
    values["debug_ocr"] = _coerce_bool(raw.get("debug_ocr"), False)
    values["profile"] = _coerce_bool(raw.get("profile"), False)

    settings = ScanSettings(**values)
    try:
        validate_settings(settings)
    except ValueError:
        return defaults
    return settings


def load_scan_settings() -> ScanSettings:
    path = config_path()
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return ScanSettings()
    except (OSError, json.JSONDecodeError):
        return ScanSettings()

    if not isinstance(raw, dict):
        return ScanSettings()

    scan_raw = raw.get("scan")
    return _from_raw_scan_settings(scan_raw)


def save_scan_settings(settings: ScanSettings) -> None:
    validate_settings(settings)
    path = config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    payload: Dict[str, Any] = {
        "version": CONFIG_VERSION,
        "scan": asdict(settings),
    }
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def reset_scan_settings() -> None:
    save_scan_settings(ScanSettings())


def setting_names() -> list[str]:
    return [f.name for f in fields(ScanSettings)]
