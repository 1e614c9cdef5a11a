from __future__ import annotations

from typing import Optional

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from .outcomes import OUTCOME_ORDER, _outcome_style
from .types import ScanReport


def _render_scan_overview(report: ScanReport, console: Console) -> None:
    """
    Display high-level scan metrics (expected total, processed count, time).
    """
    expected = str(report.expected_total) if report.expected_total is not None else "?"
    status = report.phase.value.upper()

    table = Table(
        title="Inventory Overview",
        box=box.SIMPLE,
        show_header=False,
        show_lines=False,
        padding=(0, 1),
    )
    table.add_column("Metric", justify="left", style="cyan", no_wrap=True)
    table.add_column("Value", justify="left", style="white")
    table.add_row("Status", Text(status, style=_outcome_style(status)))
    if report.abort_reason is not None:
        table.add_row("Abort reason", f"{type(report.abort_reason).__name__}: {report.abort_reason}")
    elif report.end_reason:
        table.add_row("Stopped because", report.end_reason)
    table.add_row("Artifacts in inventory", expected)
    table.add_row("Slots processed", str(report.processed))
    table.add_row("Processing time", f"{report.processing_seconds:.1f}s")
    console.print(table)


def _render_summary(report: ScanReport, console: Console) -> None:
    counts = {
        "RECORDED": report.recorded,
        "DUPLICATE": report.duplicates,
        "FILTERED": report.filtered,
        "SKIPPED": report.skipped,
    }
    table = Table(
        title="Summary",
        box=box.SIMPLE,
        show_header=True,
        header_style="bold",
        padding=(0, 1),
    )
    table.add_column("Outcome", justify="left", style="cyan", no_wrap=True)
    table.add_column("Count", justify="right", style="white", no_wrap=True)
    for key in OUTCOME_ORDER:
        if counts[key]:
            table.add_row(Text(key, style=_outcome_style(key)), str(counts[key]))
    console.print(table)


def _render_skipped(report: ScanReport, console: Console) -> None:
    table = Table(
        title="Skipped Slots",
        box=box.SIMPLE_HEAVY,
        show_header=True,
        header_style="bold",
        pad_edge=False,
    )
    table.add_column("Idx", justify="right", style="cyan", width=4, no_wrap=True)
    table.add_column("Reason", justify="left", style="dim", overflow="fold")
    for slot in report.skipped_slots:
        table.add_row(f"{slot.index:03d}", slot.reason)
    console.print(table)


def render_report(report: ScanReport, console: Optional[Console] = None) -> None:
    console = console if console is not None else Console()
    _render_scan_overview(report, console)

    if not report.records:
        console.print()
        console.print("No artifacts recorded.")
    else:
        console.print()
        table = Table(
            title="Recorded Artifacts",
            box=box.SIMPLE_HEAVY,
            show_header=True,
            header_style="bold",
            pad_edge=False,
        )
        table.add_column("#", justify="right", style="cyan", width=4, no_wrap=True)
        table.add_column("Set", justify="left", style="white", overflow="fold")
        table.add_column("Slot", justify="left", style="white", no_wrap=True)
        table.add_column("Lv", justify="right", style="white", no_wrap=True)
        table.add_column("Main", justify="left", style="white", no_wrap=True)
        table.add_column("Subs", justify="left", style="dim", overflow="fold")
        for idx, record in enumerate(report.records, start=1):
            table.add_row(
                f"{idx:03d}",
                f"{'*' * record.rarity} {record.set_name}",
                record.slot.value,
                f"+{record.level}",
                str(record.main_stat),
                ", ".join(str(stat) for stat in record.sub_stats),
            )
        console.print(table)

    if report.skipped_slots:
        _render_skipped(report, console)
    _render_summary(report, console)
