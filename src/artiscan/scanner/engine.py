"""
Scan controller: drives the inventory grid one slot at a time and turns each
detail panel into a validated ArtifactRecord.

The controller is an explicit state machine. Every phase has a handler that
performs the phase's side effects and returns the next phase; `run()` loops
until COMPLETED or ABORTED. Slot-local failures (unstable panel, unreadable or
malformed fields) are retried and then skipped, fatal failures abort the scan
with whatever has been recorded so far.
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Optional

import numpy as np

from .adapters import CaptureAdapter, CaptureFrame, InputAdapter
from .outcomes import SlotOutcome
from .progress import ScanProgress
from .types import ScanPhase, ScanReport, ScanState, SkippedSlot, TERMINAL_PHASES
from ..config import ScanSettings, validate_settings
from ..core.field_parser import parse_field, parse_panel
from ..core.records import ArtifactRecord
from ..core.result_store import ResultStore
from ..errors import (
    CaptureUnavailable,
    EmptyRecognition,
    FatalScanError,
    MalformedField,
    NoProgress,
    ScanCancelled,
    ScanFailed,
    SlotError,
    StabilityTimeout,
)
from ..interaction.inventory_grid import GridCursor
from ..layout.profiles import (
    OPTIONAL_TEXT_FIELDS,
    TEXT_FIELDS,
    FieldId,
    LayoutProfile,
    profile_for,
)
from ..ocr.ctc import DecodedText
from ..ocr.preprocess import FieldCrop
from ..ocr.panel_vision import (
    count_stars,
    crop_field,
    crop_fields,
    detect_lock,
    frame_difference,
    is_slot_empty,
)

# A stuck panel is re-selected this many times before the slot is skipped.
RESELECT_LIMIT = 1

# Fields whose mean per-character confidence falls below this are reported in
# profile mode.
LOW_CONFIDENCE = 0.8


class ScanController:
    def __init__(
        self,
        capture: CaptureAdapter,
        input_adapter: InputAdapter,
        recognizer,
        settings: Optional[ScanSettings] = None,
        *,
        store: Optional[ResultStore] = None,
        progress: Optional[ScanProgress] = None,
        cancel_event: Optional[threading.Event] = None,
        should_stop: Optional[Callable[[], bool]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings if settings is not None else ScanSettings()
        validate_settings(self.settings)

        self._capture_adapter = capture
        self._input = input_adapter
        self._recognizer = recognizer
        self._progress = progress
        self._cancel_event = cancel_event if cancel_event is not None else threading.Event()
        self._should_stop = should_stop
        self._sleep = sleep

        self.store = store if store is not None else ResultStore()
        self.state = ScanState()

        self._profile: Optional[LayoutProfile] = None
        self._cursor: Optional[GridCursor] = None
        self._executor: Optional[ThreadPoolExecutor] = None

        # Per-slot working data, dropped when the controller advances.
        self._frame: Optional[CaptureFrame] = None
        self._texts: Dict[FieldId, DecodedText] = {}
        self._star_count = 0
        self._locked: Optional[bool] = None
        self._candidate: Optional[ArtifactRecord] = None
        self._slot_error: Optional[SlotError] = None
        self._slot_started = 0.0
        self._capture_seconds = 0.0
        self._recognize_seconds = 0.0

        self._handlers: Dict[ScanPhase, Callable[[], ScanPhase]] = {
            ScanPhase.IDLE: self._on_idle,
            ScanPhase.SELECTING: self._on_selecting,
            ScanPhase.AWAITING_STABLE: self._on_awaiting_stable,
            ScanPhase.CAPTURING: self._on_capturing,
            ScanPhase.RECOGNIZING: self._on_recognizing,
            ScanPhase.VALIDATING: self._on_validating,
            ScanPhase.RECORDING: self._on_recording,
            ScanPhase.DUPLICATE_SKIP: self._on_duplicate_skip,
            ScanPhase.RECOGNITION_RETRY: self._on_recognition_retry,
            ScanPhase.ADVANCING: self._on_advancing,
        }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def phase(self) -> ScanPhase:
        return self.state.phase

    def cancel(self) -> None:
        """
        Request cancellation; honored the next time a slot is selected.
        """
        self._cancel_event.set()

    def run(self) -> ScanReport:
        if self.state.phase is not ScanPhase.IDLE:
            raise RuntimeError("ScanController.run() can only be called once")

        started = time.perf_counter()
        abort_reason: Optional[FatalScanError] = None
        workers = max(1, min(len(TEXT_FIELDS), self.settings.recognition_workers))
        self._executor = ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="artiscan-ocr"
        )
        try:
            while self.state.phase not in TERMINAL_PHASES:
                handler = self._handlers[self.state.phase]
                self._enter(handler())
        except FatalScanError as exc:
            abort_reason = exc
        except Exception as exc:
            abort_reason = ScanFailed(exc)
            abort_reason.__cause__ = exc
        finally:
            self._executor.shutdown(wait=True)
            self._executor = None
            self._clear_slot()

        if abort_reason is not None:
            self._enter(ScanPhase.ABORTED)
            self._event(f"Scan aborted: {abort_reason}", style="red")
        else:
            self._event(f"Scan complete ({self.state.end_reason})", style="green")

        state = self.state
        report = ScanReport(
            records=self.store.export_snapshot(),
            phase=state.phase,
            expected_total=state.expected_total,
            recorded=state.recorded,
            skipped=state.skipped,
            duplicates=state.duplicates,
            filtered=state.filtered,
            skipped_slots=tuple(state.skipped_slots),
            processing_seconds=time.perf_counter() - started,
            end_reason=state.end_reason,
            abort_reason=abort_reason,
        )
        if self._progress is not None:
            self._progress.scan_finished(report)
        return report

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _enter(self, phase: ScanPhase) -> None:
        if phase is not self.state.phase and self._progress is not None:
            self._progress.phase_changed(phase)
        self.state.phase = phase

    def _event(self, message: str, *, style: str = "dim") -> None:
        if self._progress is not None:
            self._progress.note(message, style=style)
        else:
            print(f"[scan] {message}", flush=True)

    def _cancel_requested(self) -> bool:
        if self._cancel_event.is_set():
            return True
        if self._should_stop is not None and self._should_stop():
            self._cancel_event.set()
            return True
        return False

    def _wait_ms(self, ms: int) -> None:
        if ms > 0:
            self._sleep(ms / 1000.0)

    def _capture(self, grab: Callable[..., CaptureFrame], *args) -> CaptureFrame:
        """
        Call a capture method, retrying CaptureUnavailable a bounded number of times.
        """
        retries = self.settings.capture_retries
        attempt = 0
        while True:
            try:
                return grab(*args)
            except CaptureUnavailable as exc:
                attempt += 1
                if attempt > retries:
                    raise
                self._event(f"Capture failed ({exc}); retry {attempt}/{retries}", style="yellow")
                self._wait_ms(self.settings.capture_retry_delay_ms)

    def _capture_panel(self) -> np.ndarray:
        return self._capture(self._capture_adapter.capture_region, self._profile.panel).image

    def _capture_grid(self) -> np.ndarray:
        return self._capture(self._capture_adapter.capture_region, self._profile.grid.region).image

    def _clear_slot(self) -> None:
        self._frame = None
        self._texts = {}
        self._star_count = 0
        self._locked = None
        self._candidate = None
        self._slot_error = None

    def _slot_label(self) -> str:
        pos = self._cursor.position(self.state.slot_index)
        total = self.state.expected_total
        total_label = str(total) if total is not None else "?"
        return f"#{pos.index + 1}/{total_label} r{pos.row}c{pos.col}"

    def _report_slot(self, outcome: SlotOutcome, item_label: str) -> None:
        if self._progress is not None:
            self._progress.slot_finished(self._slot_label(), item_label, outcome)
        if self.settings.profile:
            total_ms = (time.perf_counter() - self._slot_started) * 1000.0
            self._event(
                f"{self._slot_label()} {outcome.value} total={total_ms:.0f}ms "
                f"capture={self._capture_seconds * 1000.0:.0f}ms "
                f"recognize={self._recognize_seconds * 1000.0:.0f}ms"
            )

    def _note_low_confidence(self, texts: Dict[FieldId, DecodedText]) -> None:
        weak = [
            f"{field.value}={decoded.mean_confidence:.2f}"
            for field, decoded in texts.items()
            if decoded and decoded.mean_confidence < LOW_CONFIDENCE
        ]
        if weak:
            self._event(
                f"{self._slot_label()} low confidence: {', '.join(weak)}", style="yellow"
            )

    def _finished_reason(self) -> Optional[str]:
        state = self.state
        if state.expected_total is not None and state.processed >= state.expected_total:
            return "expected count reached"
        max_rows = self.settings.max_rows
        if max_rows is not None and self._cursor.rows_traversed(state.slot_index) >= max_rows:
            return f"row limit {max_rows} reached"
        return None

    def _read_expected_total(self, frame: CaptureFrame) -> Optional[int]:
        crop = FieldCrop(field=FieldId.COUNT, image=self._profile.count.crop(frame.image))
        try:
            decoded = self._recognizer.recognize(crop, required=True)
            return parse_field(FieldId.COUNT, decoded)
        except (EmptyRecognition, MalformedField) as exc:
            self._event(f"Inventory count unreadable ({exc}); scanning until the list ends", style="yellow")
            return None

    def _skip_slot(self, error: SlotError) -> ScanPhase:
        state = self.state
        state.skipped += 1
        state.skipped_slots.append(SkippedSlot(index=state.slot_index, reason=str(error)))
        self._event(f"{self._slot_label()} skipped: {error}", style="red")
        self._report_slot(SlotOutcome.SKIPPED, "<unreadable>")
        return ScanPhase.ADVANCING

    def _scroll_one_row(self) -> bool:
        """
        Scroll the grid down a row. Returns False if the grid did not move,
        which means the list is exhausted.
        """
        before = self._capture_grid()
        self._input.scroll(self._cursor.scroll_amount())
        self._wait_ms(self.settings.scroll_settle_ms)
        after = self._capture_grid()
        if frame_difference(before, after) <= self.settings.stability_threshold:
            return False
        self._cursor.advance_view()
        return True

    def _scroll_into_view(self) -> bool:
        """
        Scroll until the current slot's row is on screen. A resize can shrink the
        view, so this may take more than one row. False once the grid stops moving.
        """
        cursor = self._cursor
        row = cursor.position(self.state.slot_index).row
        while row >= cursor.top_row + cursor.metrics.visible_rows:
            if not self._scroll_one_row():
                return False
        return True

    def _slot_is_empty(self) -> bool:
        rect = self._cursor.cell_rect(self.state.slot_index)
        image = self._capture(self._capture_adapter.capture_region, rect).image
        return is_slot_empty(image)

    # ------------------------------------------------------------------
    # Phase handlers
    # ------------------------------------------------------------------

    def _on_idle(self) -> ScanPhase:
        frame = self._capture(self._capture_adapter.capture_screen)
        self._profile = profile_for(frame.resolution)
        self._cursor = GridCursor(self._profile.grid)

        width, height = frame.resolution
        self._event(f"Layout profile {width}x{height}")

        expected = self._read_expected_total(frame)
        self.state.expected_total = expected
        if self._progress is not None:
            self._progress.scan_started(frame.resolution, expected)
        self.state.reset_slot()
        return ScanPhase.SELECTING

    def _on_selecting(self) -> ScanPhase:
        if self._cancel_requested():
            raise ScanCancelled("Scan cancelled by user")

        reason = self._finished_reason()
        if reason is not None:
            self.state.end_reason = reason
            return ScanPhase.COMPLETED

        if not self._scroll_into_view():
            self.state.end_reason = "grid stopped scrolling"
            return ScanPhase.COMPLETED

        if self.state.expected_total is None and self._slot_is_empty():
            self.state.end_reason = "reached an empty slot"
            return ScanPhase.COMPLETED

        if self.state.reselections == 0 and self.state.recognition_attempts == 0:
            self._slot_started = time.perf_counter()
        self._input.click(self._cursor.screen_point(self.state.slot_index))
        self._wait_ms(self.settings.action_delay_ms)
        return ScanPhase.AWAITING_STABLE

    def _await_stable(self) -> None:
        settings = self.settings
        previous = self._capture_panel()
        polls = 1
        stable = 0
        while polls < settings.stability_max_polls:
            self._wait_ms(settings.stability_poll_ms)
            current = self._capture_panel()
            polls += 1
            if frame_difference(previous, current) <= settings.stability_threshold:
                stable += 1
                if stable >= settings.stability_frames:
                    return
            else:
                stable = 0
            previous = current
        raise StabilityTimeout(polls)

    def _on_awaiting_stable(self) -> ScanPhase:
        try:
            self._await_stable()
        except StabilityTimeout as exc:
            if self.state.reselections < RESELECT_LIMIT:
                self.state.reselections += 1
                self._event(f"{self._slot_label()} panel unsettled; selecting again", style="yellow")
                return ScanPhase.SELECTING
            return self._skip_slot(exc)
        return ScanPhase.CAPTURING

    def _on_capturing(self) -> ScanPhase:
        start = time.perf_counter()
        frame = self._capture(self._capture_adapter.capture_screen)
        if frame.resolution != self._profile.resolution:
            self._event(f"Window resized to {frame.resolution[0]}x{frame.resolution[1]}", style="yellow")
            self._profile = profile_for(frame.resolution)
            self._cursor = GridCursor(self._profile.grid, top_row=self._cursor.top_row)
        self._frame = frame
        self._capture_seconds = time.perf_counter() - start
        return ScanPhase.RECOGNIZING

    def _outside_rarity_filter(self, stars: int) -> bool:
        # an unreadable star count is left to validation
        settings = self.settings
        return 1 <= stars <= 5 and not settings.min_rarity <= stars <= settings.max_rarity

    def _on_recognizing(self) -> ScanPhase:
        start = time.perf_counter()
        image = self._frame.image
        self._star_count = count_stars(crop_field(image, self._profile, FieldId.RARITY).image)
        if self._outside_rarity_filter(self._star_count):
            self.state.filtered += 1
            self._report_slot(SlotOutcome.FILTERED, f"{self._star_count}-star artifact")
            return ScanPhase.ADVANCING

        crops = crop_fields(image, self._profile, TEXT_FIELDS)
        futures = [
            (
                crop.field,
                self._executor.submit(
                    self._recognizer.recognize,
                    crop,
                    required=crop.field not in OPTIONAL_TEXT_FIELDS,
                ),
            )
            for crop in crops
        ]

        texts: Dict[FieldId, DecodedText] = {}
        first_error: Optional[SlotError] = None
        for field, future in futures:
            try:
                texts[field] = future.result()
            except SlotError as exc:
                if first_error is None:
                    first_error = exc

        self._locked = detect_lock(crop_field(image, self._profile, FieldId.LOCK).image)
        self._texts = texts
        self._recognize_seconds = time.perf_counter() - start
        if self.settings.profile:
            self._note_low_confidence(texts)

        if first_error is not None:
            self._slot_error = first_error
            return ScanPhase.RECOGNITION_RETRY
        return ScanPhase.VALIDATING

    def _on_validating(self) -> ScanPhase:
        try:
            record = parse_panel(self._texts, self._star_count, self._locked)
        except SlotError as exc:
            self._slot_error = exc
            return ScanPhase.RECOGNITION_RETRY

        self._candidate = record
        last = self.store.last()
        if last is not None and last.fingerprint() == record.fingerprint():
            return ScanPhase.DUPLICATE_SKIP
        return ScanPhase.RECORDING

    def _on_recognition_retry(self) -> ScanPhase:
        state = self.state
        state.recognition_attempts += 1
        error = self._slot_error
        if state.recognition_attempts < self.settings.slot_retries:
            self._event(
                f"{self._slot_label()} retry {state.recognition_attempts}: {error}",
                style="yellow",
            )
            self._texts = {}
            self._slot_error = None
            return ScanPhase.AWAITING_STABLE
        return self._skip_slot(error)

    def _on_recording(self) -> ScanPhase:
        record = self._candidate
        self.store.append(record)
        self.state.recorded += 1
        self.state.consecutive_duplicates = 0
        self._report_slot(SlotOutcome.RECORDED, record.label())
        return ScanPhase.ADVANCING

    def _on_duplicate_skip(self) -> ScanPhase:
        state = self.state
        state.duplicates += 1
        state.consecutive_duplicates += 1
        if state.consecutive_duplicates > self.settings.no_progress_limit:
            raise NoProgress(state.consecutive_duplicates)
        self._report_slot(SlotOutcome.DUPLICATE, self._candidate.label())
        return ScanPhase.ADVANCING

    def _on_advancing(self) -> ScanPhase:
        self._clear_slot()
        state = self.state
        state.slot_index += 1
        state.reset_slot()

        reason = self._finished_reason()
        if reason is not None:
            state.end_reason = reason
            return ScanPhase.COMPLETED
        return ScanPhase.SELECTING


def scan_inventory(
    settings: Optional[ScanSettings] = None,
    *,
    show_progress: bool = True,
    window_timeout: Optional[float] = None,
) -> ScanReport:
    """
    Wait for the game window, load the recognition model and scan the
    artifact inventory that is currently open on screen.
    """
    from ..interaction.input_driver import stop_key_pressed
    from ..interaction.ui_windows import (
        WINDOW_TIMEOUT,
        ScreenCapture,
        WindowInput,
        wait_for_target_window,
    )
    from ..ocr.model import load_model
    from ..ocr.preprocess import disable_ocr_debug, enable_ocr_debug
    from ..ocr.recognizer import Recognizer
    from ..config import config_dir
    from .progress import RichScanProgress

    settings = settings if settings is not None else ScanSettings()
    validate_settings(settings)

    model, alphabet = load_model(settings.model_path, settings.alphabet_path)
    recognizer = Recognizer(model, alphabet)
    if settings.debug_ocr:
        enable_ocr_debug(config_dir() / "ocr_debug")

    print("waiting for the game to be the active window...", flush=True)
    window = wait_for_target_window(
        timeout=window_timeout if window_timeout is not None else WINDOW_TIMEOUT,
        stop_key=settings.stop_key,
    )

    progress: Optional[ScanProgress] = RichScanProgress() if show_progress else None
    capture = ScreenCapture(window)
    controller = ScanController(
        capture,
        WindowInput(window, settle_delay=settings.action_delay_ms / 1000.0),
        recognizer,
        settings,
        progress=progress,
        should_stop=lambda: stop_key_pressed(settings.stop_key),
    )

    if progress is not None:
        progress.start()
    try:
        report = controller.run()
    finally:
        if progress is not None:
            progress.stop()
        capture.close()
        if settings.debug_ocr:
            disable_ocr_debug()

    if settings.profile:
        print(
            f"[ocr] {recognizer.invoke_count} inferences, "
            f"avg {recognizer.average_inference_time * 1000.0:.1f}ms",
            flush=True,
        )
    return report
