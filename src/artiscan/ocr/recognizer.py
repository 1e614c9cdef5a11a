from __future__ import annotations

import threading
import time

from .ctc import EMPTY_TEXT, Alphabet, DecodedText, ctc_greedy_decode
from .model import SequenceModel
from .preprocess import FieldCrop, preprocess_for_model, save_debug_image
from ..errors import EmptyRecognition


class Recognizer:
    """
    Field crop -> DecodedText using the CTC recognition model.

    Preprocessing and decoding run on the caller's thread; model inference is
    serialized because one model instance is shared by every worker.
    """

    def __init__(self, model: SequenceModel, alphabet: Alphabet) -> None:
        self._model = model
        self._alphabet = alphabet
        self._model_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._inference_time = 0.0
        self._invoke_count = 0

    @property
    def alphabet(self) -> Alphabet:
        return self._alphabet

    @property
    def invoke_count(self) -> int:
        with self._stats_lock:
            return self._invoke_count

    @property
    def average_inference_time(self) -> float:
        with self._stats_lock:
            if self._invoke_count == 0:
                return 0.0
            return self._inference_time / self._invoke_count

    def _record_inference(self, seconds: float) -> None:
        with self._stats_lock:
            self._invoke_count += 1
            self._inference_time += seconds

    def recognize(self, crop: FieldCrop, *, required: bool = True) -> DecodedText:
        save_debug_image(f"{crop.field.value}_raw", crop.image)
        model_input, has_ink = preprocess_for_model(crop.image)
        if not has_ink:
            if required:
                raise EmptyRecognition(crop.field)
            return EMPTY_TEXT

        save_debug_image(f"{crop.field.value}_input", model_input)
        start = time.perf_counter()
        with self._model_lock:
            scores = self._model.infer(model_input)
        self._record_inference(time.perf_counter() - start)

        decoded = ctc_greedy_decode(scores, self._alphabet)
        if required and not decoded.text.strip():
            raise EmptyRecognition(crop.field)
        return decoded
