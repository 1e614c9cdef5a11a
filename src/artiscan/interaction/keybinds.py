from __future__ import annotations

import re
from typing import Optional

DEFAULT_STOP_KEY = "escape"

_ALIAS_TO_CANONICAL = {
    "esc": "escape",
    "escape": "escape",
    "return": "enter",
    "enter": "enter",
    "spacebar": "space",
    "space": "space",
    "tab": "tab",
    "backspace": "backspace",
    "del": "delete",
    "delete": "delete",
    "ins": "insert",
    "insert": "insert",
    "home": "home",
    "end": "end",
    "pgup": "pageup",
    "pageup": "pageup",
    "page_up": "pageup",
    "pgdn": "pagedown",
    "pagedown": "pagedown",
    "page_down": "pagedown",
    "up": "up",
    "down": "down",
    "left": "left",
    "right": "right",
}

_CANONICAL_DISPLAY = {
    "escape": "Esc",
    "enter": "Enter",
    "space": "Space",
    "tab": "Tab",
    "backspace": "Backspace",
    "delete": "Delete",
    "insert": "Insert",
    "home": "Home",
    "end": "End",
    "pageup": "Page Up",
    "pagedown": "Page Down",
    "up": "Up Arrow",
    "down": "Down Arrow",
    "left": "Left Arrow",
    "right": "Right Arrow",
}

# Windows virtual-key codes for the named keys.
_CANONICAL_VK = {
    "escape": 0x1B,
    "enter": 0x0D,
    "space": 0x20,
    "tab": 0x09,
    "backspace": 0x08,
    "delete": 0x2E,
    "insert": 0x2D,
    "home": 0x24,
    "end": 0x23,
    "pageup": 0x21,
    "pagedown": 0x22,
    "up": 0x26,
    "down": 0x28,
    "left": 0x25,
    "right": 0x27,
}

_FUNCTION_KEY_PATTERN = re.compile(r"^f([1-9]|1[0-2])$")


def normalize_stop_key(value: object) -> str:
    """
    Normalize user/config input into a canonical stop-key name.
    """
    if not isinstance(value, str):
        return DEFAULT_STOP_KEY

    raw = value.strip()
    if not raw:
        return DEFAULT_STOP_KEY

    lowered = raw.lower()
    alias = _ALIAS_TO_CANONICAL.get(lowered)
    if alias is not None:
        return alias

    if _FUNCTION_KEY_PATTERN.match(lowered):
        return lowered

    if len(raw) == 1 and raw.isprintable() and not raw.isspace():
        return lowered if raw.isalpha() else raw

    return DEFAULT_STOP_KEY


def stop_key_label(key: object) -> str:
    canonical = normalize_stop_key(key)
    display = _CANONICAL_DISPLAY.get(canonical)
    if display is not None:
        return display
    if _FUNCTION_KEY_PATTERN.match(canonical):
        return canonical.upper()
    if len(canonical) == 1:
        return canonical.upper() if canonical.isalpha() else canonical
    return canonical


def virtual_key_code(key: object) -> Optional[int]:
    """
    Windows virtual-key code for a canonical key name, or None if unmapped.
    """
    canonical = normalize_stop_key(key)
    vk = _CANONICAL_VK.get(canonical)
    if vk is not None:
        return vk
    match = _FUNCTION_KEY_PATTERN.match(canonical)
    if match:
        return 0x6F + int(match.group(1))
    if len(canonical) == 1 and canonical.isalnum() and canonical.isascii():
        return ord(canonical.upper())
    return None
