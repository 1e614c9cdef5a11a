from __future__ import annotations

from pathlib import Path
from typing import Optional, Protocol, Tuple

import cv2
import numpy as np

from .ctc import Alphabet
from .preprocess import MODEL_HEIGHT, MODEL_WIDTH
from ..errors import ModelUnavailable

MODEL_FILE_NAME = "model.onnx"
ALPHABET_FILE_NAME = "index_to_word.json"


class SequenceModel(Protocol):
    def infer(self, image: np.ndarray) -> np.ndarray:
        """
        Run one preprocessed [MODEL_HEIGHT, MODEL_WIDTH] float image and return
        per-step class scores shaped [steps, classes].
        """
        ...


class OnnxSequenceModel:
    """
    Convolutional feature extractor + recurrent labeler exported to ONNX,
    executed through OpenCV's DNN module.
    """

    def __init__(self, net: "cv2.dnn.Net") -> None:
        self._net = net

    @classmethod
    def load(cls, path: Path) -> "OnnxSequenceModel":
        return cls(cv2.dnn.readNetFromONNX(str(path)))

    def infer(self, image: np.ndarray) -> np.ndarray:
        blob = np.ascontiguousarray(image, dtype=np.float32).reshape(
            1, 1, MODEL_HEIGHT, MODEL_WIDTH
        )
        self._net.setInput(blob)
        out = np.asarray(self._net.forward())
        return _squeeze_scores(out)


def _squeeze_scores(out: np.ndarray) -> np.ndarray:
    """
    Accept [steps, 1, classes], [1, steps, classes] or [steps, classes].
    """
    if out.ndim == 3 and out.shape[1] == 1:
        return out[:, 0, :]
    if out.ndim == 3 and out.shape[0] == 1:
        return out[0]
    if out.ndim == 2:
        return out
    raise ValueError(f"Unexpected recognition model output shape {out.shape}")


def _default_model_dir() -> Path:
    from ..config import config_dir

    return config_dir() / "model"


def load_model(
    model_path: Optional[Path] = None,
    alphabet_path: Optional[Path] = None,
) -> Tuple[SequenceModel, Alphabet]:
    """
    Load trained weights and the fixed alphabet, then run one blank inference
    to confirm the output width matches the alphabet. Any failure is fatal.
    """
    model_dir = _default_model_dir()
    model_path = Path(model_path) if model_path else model_dir / MODEL_FILE_NAME
    alphabet_path = Path(alphabet_path) if alphabet_path else model_dir / ALPHABET_FILE_NAME

    if not model_path.is_file():
        raise ModelUnavailable(f"Recognition model not found at {model_path}")
    if not alphabet_path.is_file():
        raise ModelUnavailable(f"Model alphabet not found at {alphabet_path}")

    try:
        alphabet = Alphabet.load(alphabet_path)
    except (OSError, ValueError) as exc:
        raise ModelUnavailable(f"Could not load alphabet {alphabet_path}: {exc}") from exc

    try:
        model = OnnxSequenceModel.load(model_path)
        scores = model.infer(np.ones((MODEL_HEIGHT, MODEL_WIDTH), dtype=np.float32))
    except (cv2.error, ValueError) as exc:
        raise ModelUnavailable(f"Could not load model {model_path}: {exc}") from exc

    if scores.shape[1] != len(alphabet):
        raise ModelUnavailable(
            f"Model emits {scores.shape[1]} classes but alphabet has {len(alphabet)}"
        )

    print(
        f"[ocr_model] model={model_path} steps={scores.shape[0]} classes={len(alphabet)}",
        flush=True,
    )
    return model, alphabet
