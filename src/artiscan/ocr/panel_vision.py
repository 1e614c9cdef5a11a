from __future__ import annotations

from typing import List, Sequence, Tuple

import cv2
import numpy as np

from .preprocess import FieldCrop, save_debug_image
from ..layout.profiles import FieldId, LayoutProfile

# Rarity stars are drawn in a saturated gold (#FFCC32 in BGR).
STAR_COLOR_BGR = np.array([50, 204, 255], dtype=np.uint8)
STAR_TOLERANCE = 40
# A star blob must be at least this fraction of the strip height on each side.
STAR_MIN_SIZE_REL = 0.35

# Lock icon: locked renders a bright glyph, unlocked a dim outline.
LOCK_V_THRESH = 170
LOCK_BRIGHT_FRACTION = 0.12


def crop_field(image: np.ndarray, profile: LayoutProfile, field: FieldId) -> FieldCrop:
    return FieldCrop(field=field, image=profile.rect(field).crop(image))


def crop_fields(
    image: np.ndarray, profile: LayoutProfile, fields: Sequence[FieldId]
) -> List[FieldCrop]:
    return [crop_field(image, profile, field) for field in fields]


def frame_difference(previous: np.ndarray, current: np.ndarray) -> float:
    """
    Mean absolute grayscale difference (0-255) between two captures of the
    same region. Frames of different shape are maximally different.
    """
    if previous.shape != current.shape:
        return 255.0
    if previous.ndim == 3:
        previous = cv2.cvtColor(previous, cv2.COLOR_BGR2GRAY)
        current = cv2.cvtColor(current, cv2.COLOR_BGR2GRAY)
    return float(np.mean(cv2.absdiff(previous, current)))


def _star_boxes(mask: np.ndarray) -> List[Tuple[int, int, int, int]]:
    contours, _ = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
    min_side = max(2, int(mask.shape[0] * STAR_MIN_SIZE_REL))
    boxes = []
    for contour in contours:
        x, y, w, h = cv2.boundingRect(contour)
        if w >= min_side and h >= min_side:
            boxes.append((x, y, w, h))
    boxes.sort(key=lambda b: b[0])
    return boxes


def count_stars(rarity_bgr: np.ndarray) -> int:
    """
    Count the rendered star glyphs in the rarity strip.
    """
    if rarity_bgr.size == 0 or rarity_bgr.ndim != 3:
        return 0
    save_debug_image("rarity_raw", rarity_bgr)

    color = STAR_COLOR_BGR.astype(np.int16)
    lower = np.clip(color - STAR_TOLERANCE, 0, 255).astype(np.uint8)
    upper = np.clip(color + STAR_TOLERANCE, 0, 255).astype(np.uint8)
    mask = cv2.inRange(np.ascontiguousarray(rarity_bgr[:, :, :3]), lower, upper)
    mask = cv2.morphologyEx(mask, cv2.MORPH_CLOSE, np.ones((3, 3), np.uint8), iterations=1)
    save_debug_image("rarity_mask", mask)
    return len(_star_boxes(mask))


def detect_lock(lock_bgr: np.ndarray) -> bool:
    """
    Decide whether the lock icon is in its locked state from its brightness.
    """
    if lock_bgr.size == 0 or lock_bgr.ndim != 3:
        return False
    hsv = cv2.cvtColor(np.ascontiguousarray(lock_bgr[:, :, :3]), cv2.COLOR_BGR2HSV)
    bright_fraction = float(np.mean(hsv[:, :, 2] > LOCK_V_THRESH))
    return bright_fraction >= LOCK_BRIGHT_FRACTION


def slot_metrics(
    slot_bgr: np.ndarray,
    v_thresh: int = 120,
    canny1: int = 50,
    canny2: int = 150,
) -> Tuple[float, float, float]:
    """
    Compute simple statistics for an inventory cell.

    Returns:
        (bright_fraction, gray_var, edge_fraction)
    """
    if slot_bgr.size == 0:
        raise ValueError("slot_bgr is empty (ROI outside image bounds?)")

    slot_bgr = np.ascontiguousarray(slot_bgr[:, :, :3])
    hsv = cv2.cvtColor(slot_bgr, cv2.COLOR_BGR2HSV)
    bright_fraction = float(np.mean(hsv[:, :, 2] > v_thresh))

    gray = cv2.cvtColor(slot_bgr, cv2.COLOR_BGR2GRAY)
    gray_var = float(gray.var())

    edges = cv2.Canny(gray, canny1, canny2)
    edge_fraction = float(np.count_nonzero(edges)) / edges.size

    return bright_fraction, gray_var, edge_fraction


def is_slot_empty(slot_bgr: np.ndarray) -> bool:
    """
    An empty cell is mostly dark with low texture and few edges.
    """
    bright_fraction, gray_var, edge_fraction = slot_metrics(slot_bgr)
    if bright_fraction >= 0.03:
        return False
    if gray_var > 700:
        return False
    if edge_fraction > 0.09:
        return False
    return True
