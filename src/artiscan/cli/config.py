from __future__ import annotations

from dataclasses import replace
from typing import Optional

from ..config import (
    ScanSettings,
    config_path,
    load_scan_settings,
    reset_scan_settings,
    save_scan_settings,
)
from ..interaction.keybinds import normalize_stop_key, stop_key_label


def _format_settings(settings: ScanSettings) -> list[str]:
    rows_label = "All" if settings.max_rows is None else str(settings.max_rows)
    model_label = settings.model_path or "Default (config dir)"
    return [
        f"Rarity filter: {settings.min_rarity}-{settings.max_rarity} stars",
        f"Max rows: {rows_label}",
        f"Stable frames required: {settings.stability_frames}",
        f"Stability threshold: {settings.stability_threshold:g}",
        f"Recognition attempts per slot: {settings.slot_retries}",
        f"Duplicate limit before abort: {settings.no_progress_limit}",
        f"Recognition workers: {settings.recognition_workers}",
        f"Stop key: {stop_key_label(settings.stop_key)}",
        f"Model: {model_label}",
        f"Debug OCR: {'On' if settings.debug_ocr else 'Off'}",
        f"Profile timing: {'On' if settings.profile else 'Off'}",
    ]


def _prompt_int(prompt: str, *, min_value: int, max_value: Optional[int] = None) -> int:
    while True:
        raw = input(prompt).strip()
        try:
            value = int(raw)
        except ValueError:
            print("Please enter a whole number.")
            continue
        if value < min_value:
            print(f"Please enter a value >= {min_value}.")
            continue
        if max_value is not None and value > max_value:
            print(f"Please enter a value <= {max_value}.")
            continue
        return value


def _prompt_float(prompt: str, *, min_value: float) -> float:
    while True:
        raw = input(prompt).strip()
        try:
            value = float(raw)
        except ValueError:
            print("Please enter a number.")
            continue
        if value < min_value:
            print(f"Please enter a value >= {min_value:g}.")
            continue
        return value


def _edit(settings: ScanSettings, choice: str) -> Optional[ScanSettings]:
    if choice == "1":
        low = _prompt_int("Minimum stars (1-5): ", min_value=1, max_value=5)
        high = _prompt_int("Maximum stars (1-5): ", min_value=low, max_value=5)
        return replace(settings, min_rarity=low, max_rarity=high)
    if choice == "2":
        rows = _prompt_int("Max rows to scan (0 scans everything): ", min_value=0)
        return replace(settings, max_rows=rows or None)
    if choice == "3":
        frames = _prompt_int("Consecutive stable frames: ", min_value=1)
        return replace(
            settings,
            stability_frames=frames,
            stability_max_polls=max(settings.stability_max_polls, frames + 1),
        )
    if choice == "4":
        return replace(
            settings, stability_threshold=_prompt_float("Mean pixel difference: ", min_value=0.0)
        )
    if choice == "5":
        return replace(settings, slot_retries=_prompt_int("Attempts per slot: ", min_value=1))
    if choice == "6":
        return replace(
            settings, no_progress_limit=_prompt_int("Duplicates before abort: ", min_value=1)
        )
    if choice == "7":
        return replace(
            settings, recognition_workers=_prompt_int("Worker threads: ", min_value=1)
        )
    if choice == "8":
        raw = input("Stop key (e.g. esc, f10, q): ")
        return replace(settings, stop_key=normalize_stop_key(raw))
    if choice == "9":
        raw = input("Model path (blank for default): ").strip()
        return replace(settings, model_path=raw or None)
    if choice == "10":
        return replace(settings, debug_ocr=not settings.debug_ocr)
    if choice == "11":
        return replace(settings, profile=not settings.profile)
    return None


def main(argv=None) -> int:
    _ = argv
    while True:
        settings = load_scan_settings()
        lines = _format_settings(settings)
        print("\nScan Configuration (persists across sessions)\n")
        for idx, line in enumerate(lines, start=1):
            print(f"  {idx}) {line}")
        print(f"  {len(lines) + 1}) Reset all to defaults")
        print("  b) Back\n")
        print(f"Config file: {config_path()}\n")

        choice = input("Select an option: ").strip().lower()
        if choice == "b":
            return 0
        if choice == str(len(lines) + 1):
            reset_scan_settings()
            continue

        updated = _edit(settings, choice)
        if updated is None:
            print("Invalid choice.")
            continue
        try:
            save_scan_settings(updated)
        except ValueError as exc:
            print(f"Not saved: {exc}")
