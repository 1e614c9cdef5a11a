from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import cv2
import numpy as np

from ..layout.profiles import FieldId

# Fixed model input (height, width)
MODEL_HEIGHT = 32
MODEL_WIDTH = 384

# A crop whose intensity range is below this (on a 0-1 scale) holds no text.
MONO_RANGE = 0.12
# Pixels darker than this after normalization count as ink when trimming.
INK_THRESHOLD = 0.5
TRIM_MARGIN = 2

_OCR_DEBUG_DIR: Optional[Path] = None


@dataclass(frozen=True)
class FieldCrop:
    field: FieldId
    image: np.ndarray


def enable_ocr_debug(debug_dir: Path) -> None:
    """
    Enable saving field crops and model inputs into the provided directory.
    """
    global _OCR_DEBUG_DIR
    try:
        debug_dir.mkdir(parents=True, exist_ok=True)
        _OCR_DEBUG_DIR = debug_dir
        print(f"[ocr_preprocess] OCR debug output enabled at {_OCR_DEBUG_DIR}", flush=True)
    except OSError as exc:  # pragma: no cover - filesystem dependent
        print(f"[ocr_preprocess] failed to enable OCR debug dir: {exc}", flush=True)
        _OCR_DEBUG_DIR = None


def disable_ocr_debug() -> None:
    global _OCR_DEBUG_DIR
    _OCR_DEBUG_DIR = None


def save_debug_image(name: str, image: np.ndarray) -> None:
    """
    Write a debug image if a debug directory has been configured.
    """
    if _OCR_DEBUG_DIR is None:
        return
    if image.dtype != np.uint8:
        image = np.clip(image * 255.0, 0, 255).astype(np.uint8)
    timestamp = time.strftime("%Y%m%d_%H%M%S")
    filename = f"{timestamp}_{time.time_ns() % 1_000_000_000:09d}_{name}.png"
    path = _OCR_DEBUG_DIR / filename
    try:
        cv2.imwrite(str(path), image)
    except cv2.error as exc:  # pragma: no cover - filesystem dependent
        print(f"[ocr_preprocess] failed to save debug image {path}: {exc}", flush=True)


def to_gray(image: np.ndarray) -> np.ndarray:
    """
    BGR/BGRA/gray uint8 -> float32 gray in [0, 1].
    """
    if image.ndim == 3 and image.shape[2] == 4:
        gray = cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    elif image.ndim == 3 and image.shape[2] == 3:
        gray = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    elif image.ndim == 2:
        gray = image
    else:
        raise ValueError(f"Unsupported image shape for OCR: {image.shape}")
    return gray.astype(np.float32) / 255.0


def _normalize_polarity(gray: np.ndarray) -> np.ndarray:
    """
    Stretch contrast to [0, 1] and make the background light and the text dark.
    The background is taken to be the border's dominant tone.
    """
    lo, hi = float(gray.min()), float(gray.max())
    stretched = (gray - lo) / (hi - lo)
    border = np.concatenate(
        (stretched[0, :], stretched[-1, :], stretched[:, 0], stretched[:, -1])
    )
    if float(np.median(border)) < 0.5:
        stretched = 1.0 - stretched
    return stretched


def _trim_to_ink(gray: np.ndarray) -> np.ndarray:
    ink = gray < INK_THRESHOLD
    rows = np.flatnonzero(ink.any(axis=1))
    cols = np.flatnonzero(ink.any(axis=0))
    if rows.size == 0 or cols.size == 0:
        return gray
    y1 = max(0, int(rows[0]) - TRIM_MARGIN)
    y2 = min(gray.shape[0], int(rows[-1]) + 1 + TRIM_MARGIN)
    x1 = max(0, int(cols[0]) - TRIM_MARGIN)
    x2 = min(gray.shape[1], int(cols[-1]) + 1 + TRIM_MARGIN)
    return gray[y1:y2, x1:x2]


def _fit_to_model(gray: np.ndarray) -> np.ndarray:
    """
    Resize keeping aspect ratio so the text fits MODEL_HEIGHT x MODEL_WIDTH,
    then pad right/bottom with background.
    """
    h, w = gray.shape[:2]
    scale = min(MODEL_HEIGHT / float(h), MODEL_WIDTH / float(w))
    new_w = max(1, min(MODEL_WIDTH, int(round(w * scale))))
    new_h = max(1, min(MODEL_HEIGHT, int(round(h * scale))))
    resized = cv2.resize(gray, (new_w, new_h), interpolation=cv2.INTER_AREA)

    canvas = np.ones((MODEL_HEIGHT, MODEL_WIDTH), dtype=np.float32)
    canvas[:new_h, :new_w] = resized
    return canvas


def preprocess_for_model(image: np.ndarray) -> Tuple[np.ndarray, bool]:
    """
    Prepare a field crop for the recognition model.

    Returns (model_input, has_ink). When has_ink is False the crop is a flat
    patch and model_input is a blank canvas; callers skip inference.
    """
    if image.size == 0:
        return np.ones((MODEL_HEIGHT, MODEL_WIDTH), dtype=np.float32), False

    gray = to_gray(image)
    if float(gray.max() - gray.min()) < MONO_RANGE:
        return np.ones((MODEL_HEIGHT, MODEL_WIDTH), dtype=np.float32), False

    normalized = _normalize_polarity(gray)
    trimmed = _trim_to_ink(normalized)
    return _fit_to_model(trimmed), True
