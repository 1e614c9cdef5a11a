"""
Pixel geometry of the artifact inventory screen.

Every rectangle is stored normalized to the window for an aspect-ratio family
and expanded to pixels once, at import, for each supported resolution. The rest
of the pipeline only ever asks for pixel rectangles by field name.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Tuple

import numpy as np

from ..errors import UnsupportedResolution

Resolution = Tuple[int, int]
NormRect = Tuple[float, float, float, float]


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------


class FieldId(str, Enum):
    NAME = "name"
    SLOT = "slot"
    MAIN_STAT_NAME = "main_stat_name"
    MAIN_STAT_VALUE = "main_stat_value"
    LEVEL = "level"
    RARITY = "rarity"
    SUB_STAT_1 = "sub_stat_1"
    SUB_STAT_2 = "sub_stat_2"
    SUB_STAT_3 = "sub_stat_3"
    SUB_STAT_4 = "sub_stat_4"
    EQUIPPED = "equipped"
    LOCK = "lock"
    COUNT = "count"


SUB_STAT_FIELDS = (
    FieldId.SUB_STAT_1,
    FieldId.SUB_STAT_2,
    FieldId.SUB_STAT_3,
    FieldId.SUB_STAT_4,
)

# Fields read as text by the recognizer (rarity and lock are classified from pixels).
TEXT_FIELDS = (
    FieldId.NAME,
    FieldId.SLOT,
    FieldId.MAIN_STAT_NAME,
    FieldId.MAIN_STAT_VALUE,
    FieldId.LEVEL,
    *SUB_STAT_FIELDS,
    FieldId.EQUIPPED,
)

# Text fields that may legitimately be blank on a panel.
OPTIONAL_TEXT_FIELDS = frozenset((*SUB_STAT_FIELDS, FieldId.EQUIPPED))


@dataclass(frozen=True)
class Point:
    x: int
    y: int


@dataclass(frozen=True)
class Rect:
    """(x, y, width, height) rectangle in pixels, top-left origin."""

    x: int
    y: int
    width: int
    height: int

    @property
    def center(self) -> Point:
        return Point(self.x + self.width // 2, self.y + self.height // 2)

    def as_tuple(self) -> Tuple[int, int, int, int]:
        return self.x, self.y, self.width, self.height

    def offset(self, dx: int, dy: int) -> "Rect":
        return Rect(self.x + dx, self.y + dy, self.width, self.height)

    def crop(self, image: np.ndarray) -> np.ndarray:
        return image[self.y : self.y + self.height, self.x : self.x + self.width]


@dataclass(frozen=True)
class GridMetrics:
    origin: Point  # center of the top-left visible cell
    columns: int
    visible_rows: int
    column_pitch: int
    row_height: int
    scroll_ticks_per_row: int
    region: Rect  # whole visible grid

    def cell_center(self, screen_row: int, col: int) -> Point:
        """Center of a cell given its row on screen (0 = top visible row)."""
        return Point(
            self.origin.x + col * self.column_pitch,
            self.origin.y + screen_row * self.row_height,
        )


@dataclass(frozen=True)
class LayoutProfile:
    resolution: Resolution
    fields: Mapping[FieldId, Rect]
    panel: Rect
    grid: GridMetrics

    def rect(self, field: FieldId) -> Rect:
        return self.fields[field]

    @property
    def count(self) -> Rect:
        return self.fields[FieldId.COUNT]


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

# Reference layout captured at 1920x1080.
_FIELDS_16_9: Dict[FieldId, NormRect] = {
    FieldId.SLOT: (0.6833, 0.1583, 0.1250, 0.0259),
    FieldId.MAIN_STAT_NAME: (0.6833, 0.2500, 0.1250, 0.0241),
    FieldId.MAIN_STAT_VALUE: (0.6833, 0.2750, 0.1000, 0.0417),
    FieldId.RARITY: (0.6833, 0.3250, 0.0900, 0.0306),
    FieldId.LEVEL: (0.6885, 0.3787, 0.0240, 0.0213),
    FieldId.LOCK: (0.8740, 0.3750, 0.0167, 0.0296),
    FieldId.SUB_STAT_1: (0.6958, 0.4194, 0.1700, 0.0278),
    FieldId.SUB_STAT_2: (0.6958, 0.4528, 0.1700, 0.0278),
    FieldId.SUB_STAT_3: (0.6958, 0.4861, 0.1700, 0.0278),
    FieldId.SUB_STAT_4: (0.6958, 0.5194, 0.1700, 0.0278),
    FieldId.NAME: (0.6833, 0.5602, 0.2000, 0.0296),
    FieldId.EQUIPPED: (0.6958, 0.8833, 0.1700, 0.0278),
    FieldId.COUNT: (0.8229, 0.0352, 0.0833, 0.0259),
}
_PANEL_16_9: NormRect = (0.6807, 0.1065, 0.2370, 0.8148)
_GRID_16_9 = {
    "origin": (0.0932, 0.2315),
    "pitch": (0.0760, 0.1620),
    "region": (0.0547, 0.1296, 0.6120, 0.8102),
    "columns": 8,
    "visible_rows": 5,
    "scroll_ticks_per_row": 5,
}

# 16:10 pushes the panel down and gives the grid one extra visible row.
_FIELDS_16_10: Dict[FieldId, NormRect] = {
    FieldId.SLOT: (0.6833, 0.1925, 0.1250, 0.0233),
    FieldId.MAIN_STAT_NAME: (0.6833, 0.2750, 0.1250, 0.0217),
    FieldId.MAIN_STAT_VALUE: (0.6833, 0.2975, 0.1000, 0.0375),
    FieldId.RARITY: (0.6833, 0.3425, 0.0900, 0.0275),
    FieldId.LEVEL: (0.6885, 0.3908, 0.0240, 0.0192),
    FieldId.LOCK: (0.8740, 0.3875, 0.0167, 0.0267),
    FieldId.SUB_STAT_1: (0.6958, 0.4275, 0.1700, 0.0250),
    FieldId.SUB_STAT_2: (0.6958, 0.4575, 0.1700, 0.0250),
    FieldId.SUB_STAT_3: (0.6958, 0.4875, 0.1700, 0.0250),
    FieldId.SUB_STAT_4: (0.6958, 0.5175, 0.1700, 0.0250),
    FieldId.NAME: (0.6833, 0.5542, 0.2000, 0.0267),
    FieldId.EQUIPPED: (0.6958, 0.8950, 0.1700, 0.0250),
    FieldId.COUNT: (0.8229, 0.0817, 0.0833, 0.0233),
}
_PANEL_16_10: NormRect = (0.6807, 0.1458, 0.2370, 0.7833)
_GRID_16_10 = {
    "origin": (0.0932, 0.2383),
    "pitch": (0.0760, 0.1458),
    "region": (0.0547, 0.1650, 0.6120, 0.8058),
    "columns": 8,
    "visible_rows": 6,
    "scroll_ticks_per_row": 5,
}

_FAMILIES = {
    "16:9": (_FIELDS_16_9, _PANEL_16_9, _GRID_16_9),
    "16:10": (_FIELDS_16_10, _PANEL_16_10, _GRID_16_10),
}

SUPPORTED_RESOLUTIONS: Dict[Resolution, str] = {
    (1280, 720): "16:9",
    (1366, 768): "16:9",
    (1600, 900): "16:9",
    (1920, 1080): "16:9",
    (2560, 1440): "16:9",
    (3840, 2160): "16:9",
    (1440, 900): "16:10",
    (1680, 1050): "16:10",
    (1920, 1200): "16:10",
    (2560, 1600): "16:10",
}


# ---------------------------------------------------------------------------
# Geometry helpers
# ---------------------------------------------------------------------------


def normalized_rect_to_window(
    norm_rect: NormRect, window_width: int, window_height: int
) -> Rect:
    """
    Scale a normalized rectangle (x, y, w, h in [0,1]) to window-relative pixels.
    """
    nx, ny, nw, nh = norm_rect
    x = int(round(nx * window_width))
    y = int(round(ny * window_height))
    w = max(1, int(round(nw * window_width)))
    h = max(1, int(round(nh * window_height)))
    return Rect(x, y, w, h)


def _build_grid(table: dict, width: int, height: int) -> GridMetrics:
    ox, oy = table["origin"]
    px, py = table["pitch"]
    return GridMetrics(
        origin=Point(int(round(ox * width)), int(round(oy * height))),
        columns=table["columns"],
        visible_rows=table["visible_rows"],
        column_pitch=max(1, int(round(px * width))),
        row_height=max(1, int(round(py * height))),
        scroll_ticks_per_row=table["scroll_ticks_per_row"],
        region=normalized_rect_to_window(table["region"], width, height),
    )


def _build_profile(resolution: Resolution, family: str) -> LayoutProfile:
    width, height = resolution
    fields_norm, panel_norm, grid_table = _FAMILIES[family]
    fields = {
        field: normalized_rect_to_window(norm, width, height)
        for field, norm in fields_norm.items()
    }
    return LayoutProfile(
        resolution=resolution,
        fields=MappingProxyType(fields),
        panel=normalized_rect_to_window(panel_norm, width, height),
        grid=_build_grid(grid_table, width, height),
    )


_PROFILES: Mapping[Resolution, LayoutProfile] = MappingProxyType(
    {res: _build_profile(res, family) for res, family in SUPPORTED_RESOLUTIONS.items()}
)


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------


def supported_resolutions() -> List[Resolution]:
    return sorted(_PROFILES)


def profile_for(resolution: Resolution) -> LayoutProfile:
    key = (int(resolution[0]), int(resolution[1]))
    profile = _PROFILES.get(key)
    if profile is None:
        raise UnsupportedResolution(key)
    return profile


def rectangle_for(resolution: Resolution, field: FieldId) -> Rect:
    return profile_for(resolution).rect(field)
