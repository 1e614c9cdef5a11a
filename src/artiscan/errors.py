from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Tuple

if TYPE_CHECKING:
    from .layout.profiles import FieldId


class ScanError(Exception):
    """Base type for every error raised by the scan engine."""


# ---------------------------------------------------------------------------
# Fatal: the controller stops, accumulated records are kept
# ---------------------------------------------------------------------------


class FatalScanError(ScanError):
    pass


class UnsupportedResolution(FatalScanError):
    def __init__(self, resolution: Tuple[int, int]) -> None:
        width, height = resolution
        super().__init__(f"No layout profile for resolution {width}x{height}")
        self.resolution = resolution


class CaptureUnavailable(FatalScanError):
    pass


class NoProgress(FatalScanError):
    def __init__(self, repeats: int) -> None:
        super().__init__(
            f"Selection did not move for {repeats} consecutive slots; cursor appears stuck"
        )
        self.repeats = repeats


class TargetLost(FatalScanError):
    pass


class ModelUnavailable(FatalScanError):
    pass


class ScanCancelled(FatalScanError):
    pass


class ScanFailed(FatalScanError):
    """Any other exception raised inside the scan loop."""

    def __init__(self, cause: Exception) -> None:
        super().__init__(f"{type(cause).__name__}: {cause}")
        self.cause = cause


# ---------------------------------------------------------------------------
# Local: the current slot is retried, then skipped
# ---------------------------------------------------------------------------


class SlotError(ScanError):
    pass


class EmptyRecognition(SlotError):
    def __init__(self, field: "FieldId") -> None:
        super().__init__(f"Nothing recognized in required field {field.value!r}")
        self.field = field


class MalformedField(SlotError):
    def __init__(self, field: "FieldId", raw_text: str, reason: Optional[str] = None) -> None:
        message = f"Malformed {field.value!r}: {raw_text!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.field = field
        self.raw_text = raw_text
        self.reason = reason


class StabilityTimeout(SlotError):
    def __init__(self, polls: int) -> None:
        super().__init__(f"Detail panel did not settle after {polls} polls")
        self.polls = polls


class InvalidRecord(SlotError, ValueError):
    pass
