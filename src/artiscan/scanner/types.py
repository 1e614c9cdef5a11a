from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from ..core.records import ArtifactRecord
from ..errors import FatalScanError


class ScanPhase(str, Enum):
    IDLE = "idle"
    SELECTING = "selecting"
    AWAITING_STABLE = "awaiting_stable"
    CAPTURING = "capturing"
    RECOGNIZING = "recognizing"
    VALIDATING = "validating"
    RECORDING = "recording"
    DUPLICATE_SKIP = "duplicate_skip"
    RECOGNITION_RETRY = "recognition_retry"
    ADVANCING = "advancing"
    COMPLETED = "completed"
    ABORTED = "aborted"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").capitalize()


TERMINAL_PHASES = frozenset({ScanPhase.COMPLETED, ScanPhase.ABORTED})


@dataclass(frozen=True)
class SkippedSlot:
    index: int
    reason: str


@dataclass
class ScanState:
    """
    Mutable bookkeeping owned by the controller for one scan.
    """

    phase: ScanPhase = ScanPhase.IDLE
    slot_index: int = 0
    expected_total: Optional[int] = None
    recorded: int = 0
    skipped: int = 0
    duplicates: int = 0
    filtered: int = 0
    consecutive_duplicates: int = 0
    recognition_attempts: int = 0
    reselections: int = 0
    end_reason: str = ""
    skipped_slots: List[SkippedSlot] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.recorded + self.skipped + self.duplicates + self.filtered

    def reset_slot(self) -> None:
        self.recognition_attempts = 0
        self.reselections = 0


@dataclass(frozen=True)
class ScanReport:
    """
    Final outcome of a scan. Records are kept on abort too.
    """

    records: Tuple[ArtifactRecord, ...]
    phase: ScanPhase
    expected_total: Optional[int]
    recorded: int
    skipped: int
    duplicates: int
    filtered: int
    skipped_slots: Tuple[SkippedSlot, ...]
    processing_seconds: float
    end_reason: str = ""
    abort_reason: Optional[FatalScanError] = None

    @property
    def completed(self) -> bool:
        return self.phase is ScanPhase.COMPLETED

    @property
    def processed(self) -> int:
        return self.recorded + self.skipped + self.duplicates + self.filtered
