from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .engine import ScanController, scan_inventory
    from .types import ScanPhase, ScanReport

__all__ = ["ScanController", "ScanPhase", "ScanReport", "scan_inventory"]


def __getattr__(name: str):
    if name == "ScanController":
        from .engine import ScanController as _scan_controller

        return _scan_controller
    if name == "scan_inventory":
        from .engine import scan_inventory as _scan_inventory

        return _scan_inventory
    if name == "ScanPhase":
        from .types import ScanPhase as _scan_phase

        return _scan_phase
    if name == "ScanReport":
        from .types import ScanReport as _scan_report

        return _scan_report
    raise AttributeError(f"module 'artiscan.scanner' has no attribute {name!r}")
