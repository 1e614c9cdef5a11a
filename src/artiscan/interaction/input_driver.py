from __future__ import annotations

import sys
import time
from typing import Optional

from .keybinds import DEFAULT_STOP_KEY, normalize_stop_key, virtual_key_code

PAUSE = 0.0


def _maybe_pause(pause: bool) -> None:
    if pause and PAUSE > 0:
        time.sleep(PAUSE)


if sys.platform == "win32":
    import ctypes
    from ctypes import wintypes

    import pydirectinput as _pydirectinput

    _pydirectinput.FAILSAFE = False
    _pydirectinput.PAUSE = 0

    _USER32 = ctypes.WinDLL("user32", use_last_error=True)
    _GetAsyncKeyState = _USER32.GetAsyncKeyState
    _GetAsyncKeyState.argtypes = [wintypes.INT]
    _GetAsyncKeyState.restype = wintypes.SHORT

    _PDI_KEY_NAMES = {"escape": "esc", "pageup": "pageup", "pagedown": "pagedown"}

    def stop_key_pressed(stop_key: str = DEFAULT_STOP_KEY) -> bool:
        vk = virtual_key_code(stop_key)
        if vk is None:
            return False
        state = _GetAsyncKeyState(vk)
        return bool(state & 0x8000) or bool(state & 0x0001)

    def moveTo(x: int, y: int, duration: float = 0.0, _pause: bool = True) -> None:
        _pydirectinput.moveTo(int(x), int(y), duration=duration)
        _maybe_pause(_pause)

    def leftClick(x: int, y: int, _pause: bool = True) -> None:
        _pydirectinput.click(x=int(x), y=int(y), button="left")
        _maybe_pause(_pause)

    def vscroll(clicks: int, interval: float = 0.0, _pause: bool = True) -> None:
        if clicks == 0:
            return
        step = 1 if clicks > 0 else -1
        for _ in range(abs(clicks)):
            _pydirectinput.scroll(step)
            if interval > 0:
                time.sleep(interval)
        _maybe_pause(_pause)

    def keyPress(key: str, _pause: bool = True) -> None:
        canonical = normalize_stop_key(key)
        _pydirectinput.press(_PDI_KEY_NAMES.get(canonical, canonical))
        _maybe_pause(_pause)

elif sys.platform.startswith("linux"):
    import threading

    from pynput import keyboard, mouse

    _MOUSE = mouse.Controller()
    _KEYBOARD = keyboard.Controller()
    _KEY_STATE: set[object] = set()
    _KEY_HITS: set[object] = set()
    _LISTENER: Optional[keyboard.Listener] = None
    _LISTENER_LOCK = threading.Lock()

    _PYNPUT_KEYS = {
        "escape": keyboard.Key.esc,
        "enter": keyboard.Key.enter,
        "space": keyboard.Key.space,
        "tab": keyboard.Key.tab,
        "backspace": keyboard.Key.backspace,
        "delete": keyboard.Key.delete,
        "insert": keyboard.Key.insert,
        "home": keyboard.Key.home,
        "end": keyboard.Key.end,
        "pageup": keyboard.Key.page_up,
        "pagedown": keyboard.Key.page_down,
        "up": keyboard.Key.up,
        "down": keyboard.Key.down,
        "left": keyboard.Key.left,
        "right": keyboard.Key.right,
    }

    def _pynput_key(key: str) -> object:
        canonical = normalize_stop_key(key)
        named = _PYNPUT_KEYS.get(canonical)
        if named is not None:
            return named
        if canonical.startswith("f") and canonical[1:].isdigit():
            return getattr(keyboard.Key, canonical)
        return keyboard.KeyCode.from_char(canonical)

    def _ensure_key_listener() -> None:
        global _LISTENER
        if _LISTENER is not None:
            return
        with _LISTENER_LOCK:
            if _LISTENER is not None:
                return

            def on_press(key) -> None:
                _KEY_STATE.add(key)
                _KEY_HITS.add(key)

            def on_release(key) -> None:
                _KEY_STATE.discard(key)

            listener = keyboard.Listener(on_press=on_press, on_release=on_release)
            listener.daemon = True
            listener.start()
            _LISTENER = listener

    def stop_key_pressed(stop_key: str = DEFAULT_STOP_KEY) -> bool:
        _ensure_key_listener()
        target = _pynput_key(stop_key)
        if target in _KEY_STATE:
            return True
        if target in _KEY_HITS:
            _KEY_HITS.discard(target)
            return True
        return False

    def moveTo(x: int, y: int, duration: float = 0.0, _pause: bool = True) -> None:
        x = int(x)
        y = int(y)
        if duration <= 0:
            _MOUSE.position = (x, y)
            _maybe_pause(_pause)
            return

        start_x, start_y = _MOUSE.position
        steps = max(1, int(duration / 0.01))
        sleep_time = duration / steps
        for i in range(1, steps + 1):
            nx = start_x + (x - start_x) * (i / steps)
            ny = start_y + (y - start_y) * (i / steps)
            _MOUSE.position = (int(nx), int(ny))
            time.sleep(sleep_time)
        _maybe_pause(_pause)

    def leftClick(x: int, y: int, _pause: bool = True) -> None:
        _MOUSE.position = (int(x), int(y))
        _MOUSE.click(mouse.Button.left, 1)
        _maybe_pause(_pause)

    def vscroll(clicks: int, interval: float = 0.0, _pause: bool = True) -> None:
        if clicks == 0:
            return
        step = 1 if clicks > 0 else -1
        for _ in range(abs(clicks)):
            _MOUSE.scroll(0, step)
            if interval > 0:
                time.sleep(interval)
        _maybe_pause(_pause)

    def keyPress(key: str, _pause: bool = True) -> None:
        target = _pynput_key(key)
        _KEYBOARD.press(target)
        _KEYBOARD.release(target)
        _maybe_pause(_pause)

else:
    raise RuntimeError(f"Unsupported platform for input driver: {sys.platform}")
