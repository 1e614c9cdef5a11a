"""
Progress sinks for ScanController.

The controller reports what happens during a scan (start, phase changes, each
slot's outcome, free-form notes, the final report); a sink decides how much of
that to show.
"""

from __future__ import annotations

from typing import Optional, Tuple

from .live_ui import _ScanLiveUI
from .outcomes import SlotOutcome
from .types import ScanPhase, ScanReport

# Phases worth surfacing in the live header; the rest change several times per slot.
_HEADLINE_PHASES = frozenset(
    {
        ScanPhase.SELECTING,
        ScanPhase.RECOGNITION_RETRY,
        ScanPhase.COMPLETED,
        ScanPhase.ABORTED,
    }
)


class ScanProgress:
    def start(self) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError

    def scan_started(self, resolution: Tuple[int, int], expected_total: Optional[int]) -> None:
        raise NotImplementedError

    def phase_changed(self, phase: ScanPhase) -> None:
        raise NotImplementedError

    def slot_finished(self, slot_label: str, item_label: str, outcome: SlotOutcome) -> None:
        raise NotImplementedError

    def note(self, message: str, *, style: str = "dim") -> None:
        raise NotImplementedError

    def scan_finished(self, report: ScanReport) -> None:
        raise NotImplementedError


class NullScanProgress(ScanProgress):
    def start(self) -> None:
        return None

    def stop(self) -> None:
        return None

    def scan_started(self, resolution: Tuple[int, int], expected_total: Optional[int]) -> None:
        return None

    def phase_changed(self, phase: ScanPhase) -> None:
        return None

    def slot_finished(self, slot_label: str, item_label: str, outcome: SlotOutcome) -> None:
        return None

    def note(self, message: str, *, style: str = "dim") -> None:
        return None

    def scan_finished(self, report: ScanReport) -> None:
        return None


class RichScanProgress(ScanProgress):
    """
    Live rich panel: header phase, inventory size and resolution, per-outcome
    counts, the last few notes and a progress bar over the expected total.
    """

    def __init__(self) -> None:
        self._ui = _ScanLiveUI()

    def start(self) -> None:
        self._ui.start()

    def stop(self) -> None:
        self._ui.stop()

    def scan_started(self, resolution: Tuple[int, int], expected_total: Optional[int]) -> None:
        width, height = resolution
        total = str(expected_total) if expected_total is not None else "?"
        self._ui.count_label = f"{total} artifacts ({width}x{height})"
        self._ui.set_total(expected_total)
        self._ui.start_timer()

    def phase_changed(self, phase: ScanPhase) -> None:
        if phase in _HEADLINE_PHASES:
            self._ui.set_phase(phase.label)

    def slot_finished(self, slot_label: str, item_label: str, outcome: SlotOutcome) -> None:
        self._ui.update_item(slot_label, item_label, outcome.value)

    def note(self, message: str, *, style: str = "dim") -> None:
        self._ui.add_event(message, style=style)

    def scan_finished(self, report: ScanReport) -> None:
        if report.abort_reason is not None:
            self._ui.set_phase(f"{report.phase.label}: {type(report.abort_reason).__name__}")
        else:
            self._ui.set_phase(f"{report.phase.label}: {report.end_reason}")
