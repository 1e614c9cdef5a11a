import threading
from dataclasses import replace

import pytest

from artiscan.config import ScanSettings
from artiscan.core.records import ArtifactRecord, Slot, StatKey, StatValue
from artiscan.errors import (
    CaptureUnavailable,
    NoProgress,
    ScanCancelled,
    ScanFailed,
    TargetLost,
    UnsupportedResolution,
)
from artiscan.layout.profiles import FieldId
from artiscan.scanner.engine import ScanController
from artiscan.ocr.ctc import DecodedText
from artiscan.scanner.outcomes import SlotOutcome
from artiscan.scanner.progress import NullScanProgress
from artiscan.scanner.types import ScanPhase

from panel_fakes import FakeRecognizer, FakeScreen, make_panel, noise_panel, numbered_panel

FAST = ScanSettings(
    stability_frames=2,
    stability_poll_ms=0,
    stability_max_polls=6,
    capture_retry_delay_ms=0,
    action_delay_ms=0,
    scroll_settle_ms=0,
)


def _controller(screen, settings=FAST, **kwargs):
    kwargs.setdefault("progress", NullScanProgress())
    return ScanController(
        screen,
        screen,
        FakeRecognizer(screen),
        settings,
        sleep=lambda _seconds: None,
        **kwargs,
    )


def test_five_distinct_panels_are_recorded_in_scan_order():
    screen = FakeScreen([numbered_panel(i) for i in range(5)])

    report = _controller(screen).run()

    assert report.phase is ScanPhase.COMPLETED
    assert report.expected_total == 5
    assert report.recorded == 5
    assert report.skipped == 0
    assert [r.level for r in report.records] == [0, 1, 2, 3, 4]
    assert [r.slot for r in report.records] == [
        Slot.FLOWER,
        Slot.PLUME,
        Slot.SANDS,
        Slot.GOBLET,
        Slot.CIRCLET,
    ]
    assert screen.clicks == [0, 1, 2, 3, 4]


def test_recorded_panel_matches_drawn_fields():
    screen = FakeScreen([make_panel(locked=True, equipped="Hu Tao")])

    report = _controller(screen).run()

    assert report.records == (
        ArtifactRecord(
            set_name="Gladiator's Finale",
            slot=Slot.FLOWER,
            rarity=5,
            level=20,
            main_stat=StatValue(StatKey.HP, 4780.0),
            sub_stats=(
                StatValue(StatKey.CRIT_RATE, 3.9),
                StatValue(StatKey.CRIT_DMG, 7.8),
                StatValue(StatKey.ATK_PERCENT, 5.8),
                StatValue(StatKey.ENERGY_RECHARGE, 6.5),
            ),
            locked=True,
            equipped_by="Hu Tao",
        ),
    )


def test_unstable_panel_is_skipped_and_scan_continues():
    panels = [numbered_panel(0), numbered_panel(1), noise_panel(), numbered_panel(3), numbered_panel(4)]
    screen = FakeScreen(panels)

    report = _controller(screen).run()

    assert report.phase is ScanPhase.COMPLETED
    assert report.recorded == 4
    assert report.skipped == 1
    assert [slot.index for slot in report.skipped_slots] == [2]
    assert "did not settle" in report.skipped_slots[0].reason
    # the stuck slot is selected once more before it is given up
    assert screen.clicks == [0, 1, 2, 2, 3, 4]


def test_malformed_field_is_retried_then_skipped():
    panels = [numbered_panel(0), make_panel(main_value="abc"), numbered_panel(2)]
    screen = FakeScreen(panels)

    report = _controller(screen).run()

    assert report.phase is ScanPhase.COMPLETED
    assert report.recorded == 2
    assert report.skipped == 1
    assert "Malformed" in report.skipped_slots[0].reason


def test_missing_required_field_is_skipped():
    panel = make_panel()
    del panel.texts[FieldId.NAME]
    screen = FakeScreen([numbered_panel(0), panel])

    report = _controller(screen).run()

    assert report.recorded == 1
    assert report.skipped == 1
    assert "name" in report.skipped_slots[0].reason


def test_single_repeat_is_dropped_without_aborting():
    screen = FakeScreen([numbered_panel(0), numbered_panel(0), numbered_panel(1)])

    report = _controller(screen).run()

    assert report.phase is ScanPhase.COMPLETED
    assert report.recorded == 2
    assert report.duplicates == 1
    assert report.processed == 3


def test_identical_fingerprints_beyond_limit_abort_with_no_progress():
    screen = FakeScreen([numbered_panel(0)] * 10)
    settings = replace(FAST, no_progress_limit=3)

    report = _controller(screen, settings).run()

    assert report.phase is ScanPhase.ABORTED
    assert isinstance(report.abort_reason, NoProgress)
    assert len(report.records) == 1
    assert report.duplicates == 4


def test_cancellation_finishes_current_slot_then_aborts():
    screen = FakeScreen([numbered_panel(i) for i in range(6)])
    cancel = threading.Event()

    def on_click(index):
        if index == 1:
            cancel.set()

    screen.on_click = on_click
    report = _controller(screen, cancel_event=cancel).run()

    assert report.phase is ScanPhase.ABORTED
    assert isinstance(report.abort_reason, ScanCancelled)
    assert len(report.records) == 2
    assert screen.clicks == [0, 1]


def test_should_stop_callback_cancels_before_first_slot():
    screen = FakeScreen([numbered_panel(0)])

    report = _controller(screen, should_stop=lambda: True).run()

    assert isinstance(report.abort_reason, ScanCancelled)
    assert report.records == ()
    assert screen.clicks == []


def test_unsupported_resolution_aborts_before_any_click():
    class OddScreen(FakeScreen):
        def capture_screen(self):
            frame = super().capture_screen()
            return frame.__class__(
                image=frame.image[:700, :1000],
                resolution=(1000, 700),
                sequence=frame.sequence,
                timestamp=frame.timestamp,
            )

    screen = OddScreen([numbered_panel(0)])

    report = _controller(screen).run()

    assert report.phase is ScanPhase.ABORTED
    assert isinstance(report.abort_reason, UnsupportedResolution)
    assert report.abort_reason.resolution == (1000, 700)
    assert screen.clicks == []


def test_transient_capture_failures_are_retried():
    screen = FakeScreen([numbered_panel(0), numbered_panel(1)])
    screen.fail_captures = 2

    report = _controller(screen).run()

    assert report.phase is ScanPhase.COMPLETED
    assert report.recorded == 2


def test_persistent_capture_failure_aborts_with_partial_results():
    screen = FakeScreen([numbered_panel(i) for i in range(3)])

    def on_click(index):
        if index == 1:
            screen.fail_captures = 1000

    screen.on_click = on_click
    report = _controller(screen).run()

    assert report.phase is ScanPhase.ABORTED
    assert isinstance(report.abort_reason, CaptureUnavailable)
    assert len(report.records) == 1


def test_rarity_filter_counts_toward_processed_total():
    panels = [numbered_panel(0), make_panel(level="+8", stars=4), numbered_panel(2)]
    screen = FakeScreen(panels)
    settings = replace(FAST, min_rarity=5)

    report = _controller(screen, settings).run()

    assert report.phase is ScanPhase.COMPLETED
    assert report.recorded == 2
    assert report.filtered == 1
    assert all(record.rarity == 5 for record in report.records)


def test_scrolls_one_row_when_next_slot_is_off_screen():
    screen = FakeScreen([numbered_panel(i) for i in range(45)])

    report = _controller(screen).run()

    assert report.phase is ScanPhase.COMPLETED
    assert report.recorded == 45
    assert screen.scrolls == [-5]
    assert screen.top_row == 1
    assert report.records[40].level == 40 % 21


def test_unreadable_count_stops_when_grid_stops_scrolling():
    screen = FakeScreen([numbered_panel(i) for i in range(40)], count_text=None)

    report = _controller(screen).run()

    assert report.phase is ScanPhase.COMPLETED
    assert report.expected_total is None
    assert report.recorded == 40
    assert report.end_reason == "grid stopped scrolling"


def test_unreadable_count_stops_at_first_empty_slot():
    screen = FakeScreen([numbered_panel(i) for i in range(3)], count_text=None)

    report = _controller(screen).run()

    assert report.phase is ScanPhase.COMPLETED
    assert report.recorded == 3
    assert report.end_reason == "reached an empty slot"
    assert screen.clicks == [0, 1, 2]


def test_max_rows_limits_the_scan():
    screen = FakeScreen([numbered_panel(i) for i in range(20)])
    settings = replace(FAST, max_rows=1)

    report = _controller(screen, settings).run()

    assert report.phase is ScanPhase.COMPLETED
    assert report.recorded == 8
    assert "row limit" in report.end_reason


def test_store_snapshot_is_readable_while_scanning():
    screen = FakeScreen([numbered_panel(i) for i in range(4)])
    controller = _controller(screen)
    seen = []
    screen.on_click = lambda _index: seen.append(len(controller.store.export_snapshot()))

    controller.run()

    assert seen == [0, 1, 2, 3]


def test_run_is_single_use():
    screen = FakeScreen([numbered_panel(0)])
    controller = _controller(screen)
    controller.run()

    with pytest.raises(RuntimeError):
        controller.run()


def test_invalid_settings_are_rejected_up_front():
    screen = FakeScreen([numbered_panel(0)])

    with pytest.raises(ValueError):
        _controller(screen, ScanSettings(min_rarity=4, max_rarity=2))


def test_one_reference_poll_plus_stable_frames_is_enough_to_settle():
    screen = FakeScreen([numbered_panel(i) for i in range(3)])
    settings = replace(FAST, stability_frames=3, stability_max_polls=4)

    report = _controller(screen, settings).run()

    assert report.phase is ScanPhase.COMPLETED
    assert report.recorded == 3
    assert report.skipped == 0


def test_low_rarity_panel_is_filtered_before_its_text_is_parsed():
    panels = [numbered_panel(0), make_panel(main_value="abc", stars=3), numbered_panel(2)]
    screen = FakeScreen(panels)
    settings = replace(FAST, min_rarity=4)

    report = _controller(screen, settings).run()

    assert report.phase is ScanPhase.COMPLETED
    assert report.filtered == 1
    assert report.skipped == 0
    assert screen.clicks == [0, 1, 2]


def test_lost_window_aborts_and_keeps_scanned_records():
    screen = FakeScreen([numbered_panel(i) for i in range(5)])

    def on_click(index):
        if index == 2:
            raise TargetLost("Game window closed during scan")

    screen.on_click = on_click
    report = _controller(screen).run()

    assert report.phase is ScanPhase.ABORTED
    assert isinstance(report.abort_reason, TargetLost)
    assert [r.level for r in report.records] == [0, 1]
    assert screen.clicks == [0, 1, 2]


def test_unexpected_error_aborts_with_partial_results():
    screen = FakeScreen([numbered_panel(i) for i in range(5)])

    class BrokenRecognizer(FakeRecognizer):
        def recognize(self, crop, *, required=True):
            if self._screen.current == 2:
                raise RuntimeError("inference backend failed")
            return super().recognize(crop, required=required)

    controller = ScanController(
        screen,
        screen,
        BrokenRecognizer(screen),
        FAST,
        progress=NullScanProgress(),
        sleep=lambda _seconds: None,
    )
    report = controller.run()

    assert report.phase is ScanPhase.ABORTED
    assert isinstance(report.abort_reason, ScanFailed)
    assert isinstance(report.abort_reason.cause, RuntimeError)
    assert "inference backend failed" in str(report.abort_reason)
    assert len(report.records) == 2


def test_resize_mid_scan_switches_layout_and_scrolls_smaller_grid():
    screen = FakeScreen([numbered_panel(i) for i in range(48)], resolution=(1920, 1200))

    def on_click(index):
        if index == 39:
            screen.resize((1920, 1080))

    screen.on_click = on_click
    report = _controller(screen).run()

    assert report.phase is ScanPhase.COMPLETED
    assert report.recorded == 48
    # 16:10 shows all six rows; after the switch to 16:9 the sixth needs a scroll
    assert screen.scrolls == [-5]
    assert screen.top_row == 1
    assert screen.clicks == list(range(48))
    assert report.records[40].level == 40 % 21


def test_reselect_after_resize_scrolls_slot_back_into_view():
    panels = [numbered_panel(i) for i in range(48)]
    panels[40] = make_panel(main_value="abc")
    screen = FakeScreen(panels, resolution=(1920, 1200))

    def on_click(index):
        if index == 40 and screen.resolution == (1920, 1200):
            screen.resize((1920, 1080))

    class SettleOnceRecognizer(FakeRecognizer):
        # slot 40 reads as malformed once, then its panel never settles again
        def recognize(self, crop, *, required=True):
            decoded = super().recognize(crop, required=required)
            if self._screen.current == 40:
                self._screen.panels[40].noisy = True
            return decoded

    screen.on_click = on_click
    controller = ScanController(
        screen,
        screen,
        SettleOnceRecognizer(screen),
        FAST,
        progress=NullScanProgress(),
        sleep=lambda _seconds: None,
    )
    report = controller.run()

    assert report.phase is ScanPhase.COMPLETED
    assert report.recorded == 47
    assert [slot.index for slot in report.skipped_slots] == [40]
    assert screen.scrolls == [-5]
    assert screen.clicks == list(range(41)) + [40] + list(range(41, 48))


class RecordingProgress(NullScanProgress):
    def __init__(self):
        self.started = None
        self.phases = []
        self.outcomes = []
        self.notes = []
        self.finished = None

    def scan_started(self, resolution, expected_total):
        self.started = (resolution, expected_total)

    def phase_changed(self, phase):
        self.phases.append(phase)

    def slot_finished(self, slot_label, item_label, outcome):
        self.outcomes.append(outcome)

    def note(self, message, *, style="dim"):
        self.notes.append(message)

    def scan_finished(self, report):
        self.finished = report


def test_progress_sink_receives_scan_lifecycle():
    screen = FakeScreen([numbered_panel(0), numbered_panel(0), numbered_panel(1)])
    progress = RecordingProgress()

    report = _controller(screen, progress=progress).run()

    assert progress.started == ((1920, 1080), 3)
    assert progress.outcomes == [SlotOutcome.RECORDED, SlotOutcome.DUPLICATE, SlotOutcome.RECORDED]
    assert progress.phases[0] is ScanPhase.SELECTING
    assert progress.phases[-1] is ScanPhase.COMPLETED
    assert progress.finished is report


def test_profile_mode_reports_low_confidence_fields():
    screen = FakeScreen([numbered_panel(0)])

    class HesitantRecognizer(FakeRecognizer):
        def recognize(self, crop, *, required=True):
            decoded = super().recognize(crop, required=required)
            if crop.field is FieldId.LEVEL:
                return DecodedText(decoded.text, (0.4,) * len(decoded.text))
            return decoded

    progress = RecordingProgress()
    controller = ScanController(
        screen,
        screen,
        HesitantRecognizer(screen),
        replace(FAST, profile=True),
        progress=progress,
        sleep=lambda _seconds: None,
    )
    report = controller.run()

    assert report.recorded == 1
    weak = [note for note in progress.notes if "low confidence" in note]
    assert len(weak) == 1
    assert "level=0.40" in weak[0]
    assert "name=" not in weak[0]
