"""
Turn decoded panel text into typed, validated record fields.

Every function here is pure: the same text always parses the same way, and
anything that does not match the expected shape raises MalformedField instead
of being coerced to a nearby valid value.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Mapping, Optional, Union

from .records import (
    SLOT_DISPLAY_NAMES,
    STAT_DISPLAY_NAMES,
    STAT_VALUE_LIMITS,
    ArtifactRecord,
    Slot,
    StatValue,
    resolve_stat_key,
)
from ..errors import EmptyRecognition, MalformedField
from ..layout.profiles import SUB_STAT_FIELDS, FieldId
from ..ocr.ctc import DecodedText

MAX_LEVEL = 20
EQUIPPED_PREFIX = "Equipped:"

_NUMBER_JUNK = re.compile(r"[^0-9.%]")
_LEVEL_PATTERN = re.compile(r"^\+?(\d{1,2})$")
_COUNT_PATTERN = re.compile(r"(\d+)\s*/\s*\d+")
_BULLETS = "·•"


@dataclass(frozen=True)
class ParsedNumber:
    value: float
    is_percent: bool


ParsedValue = Union[str, int, Slot, ParsedNumber, StatValue, None]


def parse_number(text: str, field: FieldId = FieldId.MAIN_STAT_VALUE) -> ParsedNumber:
    """
    Keep digits, one decimal point and one trailing '%'; everything else is
    stripped. "46.6%" -> (46.6, percent), "4,780" -> (4780, flat).
    """
    cleaned = _NUMBER_JUNK.sub("", text.strip())
    is_percent = cleaned.endswith("%")
    body = cleaned[:-1] if is_percent else cleaned

    if "%" in body:
        raise MalformedField(field, text, "'%' is only allowed as a suffix")
    if body.count(".") > 1:
        raise MalformedField(field, text, "more than one decimal point")
    if not any(ch.isdigit() for ch in body):
        raise MalformedField(field, text, "no digits")
    try:
        value = float(body)
    except ValueError as exc:
        raise MalformedField(field, text, str(exc)) from exc
    return ParsedNumber(value=value, is_percent=is_percent)


def parse_level(text: str) -> int:
    match = _LEVEL_PATTERN.match(text.strip())
    if match is None:
        raise MalformedField(FieldId.LEVEL, text, "expected +N")
    level = int(match.group(1))
    if level > MAX_LEVEL:
        raise MalformedField(FieldId.LEVEL, text, f"level outside 0-{MAX_LEVEL}")
    return level


def parse_rarity(star_count: int) -> int:
    if not 1 <= star_count <= 5:
        raise MalformedField(FieldId.RARITY, str(star_count), "star count outside 1-5")
    return star_count


def _clean_label(text: str) -> str:
    return text.strip().lstrip(_BULLETS).strip()


def parse_stat_name(text: str, field: FieldId = FieldId.MAIN_STAT_NAME) -> str:
    label = _clean_label(text)
    if label not in STAT_DISPLAY_NAMES:
        raise MalformedField(field, text, "unknown stat")
    return label


def _stat_value(name: str, number: ParsedNumber, field: FieldId, raw: str) -> StatValue:
    key = resolve_stat_key(name, number.is_percent)
    if key is None:
        unit = "percent" if number.is_percent else "flat"
        raise MalformedField(field, raw, f"{name} has no {unit} form")
    limit = STAT_VALUE_LIMITS[key]
    if not 0 < number.value <= limit:
        raise MalformedField(field, raw, f"value outside 0-{limit:g}")
    return StatValue(key=key, value=number.value)


def parse_main_stat(name_text: str, value_text: str) -> StatValue:
    name = parse_stat_name(name_text, FieldId.MAIN_STAT_NAME)
    number = parse_number(value_text, FieldId.MAIN_STAT_VALUE)
    return _stat_value(name, number, FieldId.MAIN_STAT_VALUE, f"{name_text} {value_text}")


def parse_sub_stat(text: str, field: FieldId = FieldId.SUB_STAT_1) -> StatValue:
    """
    Parse a "Name+Value" sub-stat line such as "CRIT Rate+3.9%".
    """
    head, sep, tail = text.rpartition("+")
    if not sep:
        raise MalformedField(field, text, "expected Name+Value")
    name = parse_stat_name(head, field)
    number = parse_number(tail, field)
    return _stat_value(name, number, field, text)


def parse_slot(text: str) -> Slot:
    slot = SLOT_DISPLAY_NAMES.get(text.strip())
    if slot is None:
        raise MalformedField(FieldId.SLOT, text, "unknown piece type")
    return slot


def parse_set_name(text: str) -> str:
    name = text.strip().rstrip(":").strip()
    if not name:
        raise MalformedField(FieldId.NAME, text, "empty set name")
    return name


def parse_equipped(text: str) -> Optional[str]:
    value = text.strip()
    if value.startswith(EQUIPPED_PREFIX):
        value = value[len(EQUIPPED_PREFIX) :].strip()
    return value or None


def parse_count(text: str) -> int:
    """
    Read the numerator of the inventory counter, e.g. "Artifacts 512/1800" -> 512.
    """
    match = _COUNT_PATTERN.search(text)
    if match is not None:
        return int(match.group(1))
    digits = re.findall(r"\d+", text)
    if len(digits) == 1:
        return int(digits[0])
    raise MalformedField(FieldId.COUNT, text, "expected N/M")


def parse_field(field: FieldId, decoded: DecodedText) -> ParsedValue:
    text = decoded.text
    if field is FieldId.NAME:
        return parse_set_name(text)
    if field is FieldId.SLOT:
        return parse_slot(text)
    if field is FieldId.LEVEL:
        return parse_level(text)
    if field is FieldId.MAIN_STAT_NAME:
        return parse_stat_name(text)
    if field is FieldId.MAIN_STAT_VALUE:
        return parse_number(text)
    if field in SUB_STAT_FIELDS:
        return parse_sub_stat(text, field) if text.strip() else None
    if field is FieldId.EQUIPPED:
        return parse_equipped(text)
    if field is FieldId.COUNT:
        return parse_count(text)
    raise ValueError(f"{field.value!r} is not a text field")


def _required(texts: Mapping[FieldId, DecodedText], field: FieldId) -> DecodedText:
    decoded = texts.get(field)
    if decoded is None or not decoded.text.strip():
        raise EmptyRecognition(field)
    return decoded


def parse_sub_stats(texts: Mapping[FieldId, DecodedText]) -> List[StatValue]:
    """
    Sub-stat lines are contiguous from the top; a blank line ends the list and
    any text after a blank line is malformed.
    """
    stats: List[StatValue] = []
    blank_seen: Optional[FieldId] = None
    for field in SUB_STAT_FIELDS:
        decoded = texts.get(field)
        text = decoded.text if decoded is not None else ""
        if not text.strip():
            blank_seen = blank_seen or field
            continue
        if blank_seen is not None:
            raise MalformedField(field, text, f"follows blank {blank_seen.value}")
        stats.append(parse_sub_stat(text, field))
    return stats


def parse_panel(
    texts: Mapping[FieldId, DecodedText],
    star_count: int,
    locked: Optional[bool] = None,
) -> ArtifactRecord:
    """
    Build a record from one panel's decoded fields. Raises EmptyRecognition,
    MalformedField or InvalidRecord.
    """
    equipped = texts.get(FieldId.EQUIPPED)
    return ArtifactRecord(
        set_name=parse_field(FieldId.NAME, _required(texts, FieldId.NAME)),
        slot=parse_field(FieldId.SLOT, _required(texts, FieldId.SLOT)),
        rarity=parse_rarity(star_count),
        level=parse_field(FieldId.LEVEL, _required(texts, FieldId.LEVEL)),
        main_stat=parse_main_stat(
            _required(texts, FieldId.MAIN_STAT_NAME).text,
            _required(texts, FieldId.MAIN_STAT_VALUE).text,
        ),
        sub_stats=tuple(parse_sub_stats(texts)),
        locked=locked,
        equipped_by=parse_field(FieldId.EQUIPPED, equipped) if equipped is not None else None,
    )

