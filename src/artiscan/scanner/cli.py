from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path
from typing import Iterable, Optional

from .engine import scan_inventory
from .report import render_report
from ..config import ScanSettings, load_scan_settings, validate_settings
from ..errors import FatalScanError, ScanCancelled
from ..export.good import write_good
from ..interaction.keybinds import stop_key_label

DEFAULT_OUTPUT = Path("artifacts.good.json")


def _positive_int_arg(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("must be an integer") from exc
    if parsed < 1:
        raise argparse.ArgumentTypeError("must be >= 1")
    return parsed


def _rarity_arg(value: str) -> int:
    parsed = _positive_int_arg(value)
    if parsed > 5:
        raise argparse.ArgumentTypeError("must be between 1 and 5")
    return parsed


def build_parser(settings: ScanSettings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Scan the artifact inventory and export it as GOOD JSON."
    )
    parser.add_argument(
        "--max-rows",
        type=_positive_int_arg,
        default=settings.max_rows,
        help="Stop after this many inventory rows.",
    )
    parser.add_argument(
        "--min-rarity",
        type=_rarity_arg,
        default=settings.min_rarity,
        help="Ignore artifacts below this star rating.",
    )
    parser.add_argument(
        "--max-rarity",
        type=_rarity_arg,
        default=settings.max_rarity,
        help="Ignore artifacts above this star rating.",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=DEFAULT_OUTPUT,
        help=f"GOOD JSON output path (default: {DEFAULT_OUTPUT}).",
    )
    parser.add_argument(
        "--model",
        dest="model_path",
        default=settings.model_path,
        help="Path to the recognition model (.onnx).",
    )
    parser.add_argument(
        "--alphabet",
        dest="alphabet_path",
        default=settings.alphabet_path,
        help="Path to the model's index_to_word.json.",
    )

    profile_group = parser.add_mutually_exclusive_group()
    profile_group.add_argument(
        "--profile",
        dest="profile",
        action="store_true",
        help="Log per-slot timing (capture, recognition, total).",
    )
    profile_group.add_argument(
        "--no-profile",
        dest="profile",
        action="store_false",
        help="Disable per-slot profiling (ignores saved scan configuration).",
    )
    parser.set_defaults(profile=settings.profile)

    debug_group = parser.add_mutually_exclusive_group()
    debug_group.add_argument(
        "--debug",
        "--debug-ocr",
        dest="debug_ocr",
        action="store_true",
        help="Save recognizer input crops for debugging.",
    )
    debug_group.add_argument(
        "--no-debug",
        dest="debug_ocr",
        action="store_false",
        help="Disable OCR debug images (ignores saved scan configuration).",
    )
    parser.set_defaults(debug_ocr=settings.debug_ocr)
    return parser


def main(argv: Optional[Iterable[str]] = None) -> int:
    saved = load_scan_settings()
    parser = build_parser(saved)
    args = parser.parse_args(list(argv) if argv is not None else None)

    settings = replace(
        saved,
        max_rows=args.max_rows,
        min_rarity=args.min_rarity,
        max_rarity=args.max_rarity,
        model_path=args.model_path,
        alphabet_path=args.alphabet_path,
        profile=args.profile,
        debug_ocr=args.debug_ocr,
    )

    try:
        validate_settings(settings)
        print(f"Press {stop_key_label(settings.stop_key)} to stop the scan.", flush=True)
        report = scan_inventory(settings, show_progress=True)
    except KeyboardInterrupt:
        print(f"Aborted by {stop_key_label(settings.stop_key)} key.")
        return 0
    except ValueError as exc:
        print(f"Error: {exc}")
        return 1
    except TimeoutError as exc:
        print(exc)
        return 1
    except FatalScanError as exc:
        print(f"Fatal: {exc}")
        return 1

    render_report(report)
    path = write_good(report, args.output)
    print(f"Wrote {len(report.records)} artifacts to {path}")

    if report.completed or isinstance(report.abort_reason, ScanCancelled):
        return 0
    return 1
