from __future__ import annotations

import time
from collections import Counter, deque
from datetime import datetime, timedelta
from typing import Optional

from rich import box
from rich.align import Align
from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    ProgressColumn,
    SpinnerColumn,
    Task,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)
from rich.table import Table
from rich.text import Text

from .outcomes import OUTCOME_ORDER, _outcome_style

ARTISCAN_ASCII = r"""
   ___       __  _
  / _ | ____/ /_(_)__ _______ ____
 / __ |/ __/ __/ (_-</ __/ _ `/ _ \
/_/ |_/_/  \__/_/___/\__/\_,_/_//_/
""".strip("\n")


def _format_duration(seconds: Optional[float]) -> str:
    if seconds is None:
        return "--:--"
    if seconds < 0:
        seconds = 0
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours:d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


class _SlotsPerSecondColumn(ProgressColumn):
    def render(self, task: Task) -> Text:
        speed = getattr(task, "finished_speed", None) or task.speed
        if speed is None:
            return Text("-- slot/s", style="dim")
        return Text(f"{speed:0.2f} slot/s", style="dim")


class _ScanLiveUI:
    def __init__(self) -> None:
        self.console = Console()
        self._events: deque[tuple[Text, Text]] = deque(maxlen=6)
        self._counts: Counter = Counter()

        self.phase = "Starting…"
        self.count_label = ""
        self.current_label = ""
        self.last_item_label = ""
        self.last_outcome_label = ""

        self._scan_started_at: Optional[float] = None

        self.progress = Progress(
            SpinnerColumn(style="cyan"),
            BarColumn(bar_width=None),
            TextColumn("{task.completed}/{task.total}", style="cyan"),
            TaskProgressColumn(),
            _SlotsPerSecondColumn(),
            TextColumn("[dim]elapsed[/]"),
            TimeElapsedColumn(),
            TextColumn("[dim]left[/]"),
            TimeRemainingColumn(),
            expand=True,
        )
        self._task_id = self.progress.add_task("Scanning", total=None, start=True)

        self._live = Live(
            self._render(),
            console=self.console,
            refresh_per_second=12,
            transient=True,
        )

    def start(self) -> None:
        self._live.start()

    def stop(self) -> None:
        self._live.stop()

    def start_timer(self) -> None:
        if self._scan_started_at is None:
            self._scan_started_at = time.perf_counter()

    def set_total(self, total: Optional[int]) -> None:
        self.progress.update(self._task_id, total=total)
        self.refresh()

    def set_phase(self, phase: str) -> None:
        self.phase = phase
        self.refresh()

    def add_event(self, message: str, style: str = "dim") -> None:
        timestamp = Text(time.strftime("%H:%M:%S"), style="dim")
        line = Text("• ", style="dim")
        line.append(message, style=style)
        self._events.append((timestamp, line))
        self.refresh()

    def update_item(self, current_label: str, item_label: str, outcome: str) -> None:
        self.progress.advance(self._task_id, 1)
        self._counts[outcome] += 1
        self.current_label = current_label
        self.last_item_label = item_label
        self.last_outcome_label = outcome
        self.refresh()

    def refresh(self) -> None:
        self._live.update(self._render(), refresh=True)

    def _render_counts(self) -> Table:
        table = Table(box=box.SIMPLE, show_header=False, padding=(0, 1))
        table.add_column("Outcome", justify="left", style="cyan", no_wrap=True)
        table.add_column("Count", justify="right", style="white", no_wrap=True)
        for key in OUTCOME_ORDER:
            if key in self._counts:
                table.add_row(Text(key, style=_outcome_style(key)), str(self._counts[key]))
        return table

    def _completion_eta_label(self) -> str:
        task = self.progress.tasks[0]
        if task.total is None:
            return "--:--"

        speed = getattr(task, "finished_speed", None) or task.speed
        if speed is None or speed <= 0:
            return "--:--"

        remaining = max(0.0, float(task.total) - float(task.completed))
        eta = datetime.now() + timedelta(seconds=remaining / speed)
        return eta.strftime("%H:%M:%S")

    def _render_events(self) -> Table:
        table = Table.grid(expand=True)
        table.add_column(justify="right", width=8, no_wrap=True, style="dim")
        table.add_column(ratio=1, overflow="fold")

        if not self._events:
            table.add_row(Text("--:--:--", style="dim"), Text("-", style="dim"))
            return table

        for timestamp, line in self._events:
            table.add_row(timestamp, line)
        return table

    def _render(self) -> Group:
        header_panel = Panel(
            Group(
                Align.center(Text(ARTISCAN_ASCII, style="bold cyan")),
                Align.center(Text(self.phase, style="cyan")),
            ),
            box=box.ROUNDED,
            padding=(0, 1),
        )

        stats = Table.grid(expand=True)
        stats.add_column(ratio=1)
        stats.add_column(ratio=1)

        left = Table.grid(padding=(0, 1))
        left.add_column("k", style="cyan", justify="right", no_wrap=True)
        left.add_column("v", style="white", justify="left")
        if self.count_label:
            left.add_row("Inventory", self.count_label)
        if self._scan_started_at is not None:
            elapsed = time.perf_counter() - self._scan_started_at
            left.add_row("Elapsed", _format_duration(elapsed))
            left.add_row("Completion ETA", self._completion_eta_label())

        right = Table.grid(padding=(0, 1))
        right.add_column("k", style="cyan", justify="right", no_wrap=True)
        right.add_column("v", style="white", justify="left")
        if self.current_label:
            right.add_row("Current", self.current_label)
        if self.last_item_label:
            right.add_row("Last", self.last_item_label)
        if self.last_outcome_label:
            right.add_row(
                "Outcome",
                Text(self.last_outcome_label, style=_outcome_style(self.last_outcome_label)),
            )

        stats.add_row(
            Panel(left, box=box.SIMPLE, title="Status", padding=(0, 1)),
            Panel(right, box=box.SIMPLE, title="Last Artifact", padding=(0, 1)),
        )

        bottom = Table.grid(expand=True)
        bottom.add_column(ratio=1)
        bottom.add_column(ratio=2)
        bottom.add_row(
            Panel(self._render_counts(), box=box.SIMPLE, title="Outcomes", padding=(0, 1)),
            Panel(self._render_events(), box=box.SIMPLE, title="Events", padding=(0, 1)),
        )

        return Group(header_panel, stats, self.progress, bottom)
