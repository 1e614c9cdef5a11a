from __future__ import annotations

import time
from typing import Optional, Tuple

import mss
import numpy as np
import pywinctl as pwc
from mss.exception import ScreenShotError

from . import input_driver as pdi
from .keybinds import DEFAULT_STOP_KEY
from ..errors import CaptureUnavailable, TargetLost
from ..layout.profiles import Point, Rect
from ..scanner.adapters import CaptureFrame

# Target window
TARGET_APPS = ("GenshinImpact.exe", "YuanShen.exe")
WINDOW_TIMEOUT = 30.0
WINDOW_POLL_INTERVAL = 0.05

# Input pacing
ACTION_DELAY = 0.05
MOVE_DURATION = 0.05
SCROLL_INTERVAL = 0.02


def abort_if_stop_pressed(stop_key: str = DEFAULT_STOP_KEY) -> None:
    """
    Raise KeyboardInterrupt if the stop key is down.
    """
    if pdi.stop_key_pressed(stop_key):
        raise KeyboardInterrupt(f"{stop_key} pressed")


def wait_for_target_window(
    target_apps: Tuple[str, ...] = TARGET_APPS,
    timeout: float = WINDOW_TIMEOUT,
    poll_interval: float = WINDOW_POLL_INTERVAL,
    stop_key: str = DEFAULT_STOP_KEY,
) -> pwc.Window:
    """
    Wait until the active window belongs to the game process.
    """
    start = time.monotonic()
    targets = {app.lower() for app in target_apps}

    while time.monotonic() - start < timeout:
        abort_if_stop_pressed(stop_key)
        win = pwc.getActiveWindow()
        if win is not None:
            app = (win.getAppName() or "").lower()
            if app in targets:
                return win
        time.sleep(poll_interval)

    raise TimeoutError(f"Timed out waiting for active window {', '.join(target_apps)}")


def window_rect(win: pwc.Window) -> Tuple[int, int, int, int]:
    """
    (left, top, width, height) in screen coordinates for the window's client area.
    """
    try:
        client = win.getClientFrame()
        left, top = int(client.left), int(client.top)
        right, bottom = int(client.right), int(client.bottom)
        return left, top, right - left, bottom - top
    except (AttributeError, NotImplementedError):
        return int(win.left), int(win.top), int(win.width), int(win.height)


def _ensure_alive(win: pwc.Window) -> None:
    alive = getattr(win, "isAlive", True)
    if not alive:
        raise TargetLost("Game window closed during scan")


class ScreenCapture:
    """
    CaptureAdapter backed by mss, addressed in window-relative coordinates.
    """

    def __init__(self, window: pwc.Window) -> None:
        self._window = window
        self._sct: Optional["mss.base.MSSBase"] = None
        self._sequence = 0

    def _get_mss(self) -> "mss.base.MSSBase":
        if self._sct is None:
            self._sct = mss.mss()
        return self._sct

    def _grab(self, left: int, top: int, width: int, height: int) -> np.ndarray:
        if width <= 0 or height <= 0:
            raise CaptureUnavailable(
                f"Invalid capture region size: width={width}, height={height}"
            )
        bbox = {"left": int(left), "top": int(top), "width": int(width), "height": int(height)}
        try:
            shot = self._get_mss().grab(bbox)
        except ScreenShotError as exc:
            raise CaptureUnavailable(
                f"mss failed to capture the requested region {bbox}: {exc}"
            ) from exc

        frame = np.asarray(shot)
        if frame.shape[2] == 4:
            frame = frame[:, :, :3]  # drop alpha, keep BGR order
        return np.ascontiguousarray(frame)

    def _frame(self, image: np.ndarray, resolution: Tuple[int, int], origin: Point) -> CaptureFrame:
        self._sequence += 1
        return CaptureFrame(
            image=image,
            resolution=resolution,
            sequence=self._sequence,
            timestamp=time.monotonic(),
            origin=origin,
        )

    def capture_screen(self) -> CaptureFrame:
        _ensure_alive(self._window)
        left, top, width, height = window_rect(self._window)
        image = self._grab(left, top, width, height)
        return self._frame(image, (width, height), Point(0, 0))

    def capture_region(self, rect: Rect) -> CaptureFrame:
        _ensure_alive(self._window)
        left, top, width, height = window_rect(self._window)
        image = self._grab(left + rect.x, top + rect.y, rect.width, rect.height)
        return self._frame(image, (width, height), Point(rect.x, rect.y))

    def close(self) -> None:
        if self._sct is not None:
            self._sct.close()
            self._sct = None


class WindowInput:
    """
    InputAdapter that injects window-relative clicks, scrolls and key taps and
    then waits `settle_delay` seconds.
    """

    def __init__(self, window: pwc.Window, settle_delay: float = ACTION_DELAY) -> None:
        self._window = window
        self._settle_delay = settle_delay

    def _absolute(self, point: Point) -> Tuple[int, int]:
        left, top, _, _ = window_rect(self._window)
        return left + point.x, top + point.y

    def _settle(self) -> None:
        if self._settle_delay > 0:
            time.sleep(self._settle_delay)

    def click(self, point: Point) -> None:
        _ensure_alive(self._window)
        x, y = self._absolute(point)
        pdi.moveTo(x, y, duration=MOVE_DURATION, _pause=False)
        pdi.leftClick(x, y, _pause=False)
        self._settle()

    def scroll(self, amount: int) -> None:
        _ensure_alive(self._window)
        pdi.vscroll(clicks=amount, interval=SCROLL_INTERVAL, _pause=False)
        self._settle()

    def key_press(self, key: str) -> None:
        _ensure_alive(self._window)
        pdi.keyPress(key, _pause=False)
        self._settle()

