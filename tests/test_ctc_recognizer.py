import cv2
import numpy as np
import pytest

from artiscan.errors import EmptyRecognition
from artiscan.layout.profiles import FieldId
from artiscan.ocr.ctc import Alphabet, ctc_greedy_decode
from artiscan.ocr.preprocess import (
    MODEL_HEIGHT,
    MODEL_WIDTH,
    FieldCrop,
    disable_ocr_debug,
    enable_ocr_debug,
    preprocess_for_model,
    save_debug_image,
)
from artiscan.ocr.recognizer import Recognizer

ALPHABET = Alphabet.from_index_map({"0": "-", "1": "A", "2": "B", "3": "1"})


def _one_hot(labels, alphabet=ALPHABET):
    scores = np.zeros((len(labels), len(alphabet)), dtype=np.float32)
    for step, label in enumerate(labels):
        scores[step, alphabet.symbols.index(label)] = 1.0
    return scores


class ScriptedModel:
    def __init__(self, scores):
        self.scores = scores
        self.inputs = []

    def infer(self, image):
        assert image.shape == (MODEL_HEIGHT, MODEL_WIDTH)
        self.inputs.append(image)
        return self.scores


def _text_crop(text="AB1", field=FieldId.LEVEL):
    image = np.zeros((30, 160, 3), dtype=np.uint8)
    cv2.putText(image, text, (4, 22), cv2.FONT_HERSHEY_SIMPLEX, 0.6, (255, 255, 255), 1)
    return FieldCrop(field=field, image=image)


def test_alphabet_reads_blank_from_index_map():
    assert ALPHABET.blank_index == 0
    assert len(ALPHABET) == 4
    assert ALPHABET.characters == frozenset({"A", "B", "1"})


def test_alphabet_rejects_gaps_and_missing_blank():
    with pytest.raises(ValueError):
        Alphabet.from_index_map({"0": "-", "2": "A"})
    with pytest.raises(ValueError):
        Alphabet.from_index_map({"0": "A", "1": "B"})


def test_decode_collapses_repeats_and_drops_blanks():
    decoded = ctc_greedy_decode(_one_hot("AA-ABB-1"), ALPHABET)
    assert decoded.text == "AAB1"
    assert len(decoded.confidences) == 4


def test_decode_all_blank_is_empty():
    decoded = ctc_greedy_decode(_one_hot("----"), ALPHABET)
    assert decoded.text == ""
    assert not decoded


def test_decode_softmaxes_logits():
    logits = np.array([[0.0, 5.0, 0.0, 0.0], [0.0, 0.0, 4.0, 0.0]], dtype=np.float32)
    decoded = ctc_greedy_decode(logits, ALPHABET)
    assert decoded.text == "AB"
    assert all(0.9 < c < 1.0 for c in decoded.confidences)


def test_decode_rejects_wrong_class_count():
    with pytest.raises(ValueError):
        ctc_greedy_decode(np.zeros((5, 7), dtype=np.float32), ALPHABET)


def test_recognizer_is_deterministic():
    model = ScriptedModel(_one_hot("A-B-11"))
    recognizer = Recognizer(model, ALPHABET)
    crop = _text_crop()

    first = recognizer.recognize(crop)
    second = recognizer.recognize(crop)

    assert first == second
    assert first.text == "AB1"
    assert np.array_equal(model.inputs[0], model.inputs[1])
    assert recognizer.invoke_count == 2


def test_blank_crop_skips_inference():
    model = ScriptedModel(_one_hot("AB"))
    recognizer = Recognizer(model, ALPHABET)
    blank = FieldCrop(field=FieldId.SUB_STAT_4, image=np.full((30, 160, 3), 40, dtype=np.uint8))

    assert recognizer.recognize(blank, required=False).text == ""
    with pytest.raises(EmptyRecognition) as excinfo:
        recognizer.recognize(blank)
    assert excinfo.value.field is FieldId.SUB_STAT_4
    assert model.inputs == []


def test_required_field_decoding_to_nothing_raises():
    recognizer = Recognizer(ScriptedModel(_one_hot("---")), ALPHABET)

    with pytest.raises(EmptyRecognition):
        recognizer.recognize(_text_crop(field=FieldId.NAME))


def test_preprocess_normalizes_both_polarities_to_dark_on_light():
    light_on_dark = np.zeros((30, 160, 3), dtype=np.uint8)
    cv2.putText(light_on_dark, "AB1", (4, 22), cv2.FONT_HERSHEY_SIMPLEX, 0.6, (255, 255, 255), 2)
    dark_on_light = 255 - light_on_dark

    for image in (light_on_dark, dark_on_light):
        model_input, has_ink = preprocess_for_model(image)
        assert has_ink
        assert model_input.shape == (MODEL_HEIGHT, MODEL_WIDTH)
        assert model_input.dtype == np.float32
        assert float(model_input.mean()) > 0.5
        assert float(model_input.min()) < 0.5


def test_debug_images_only_written_while_enabled(tmp_path):
    image = np.full((8, 8), 200, dtype=np.uint8)

    enable_ocr_debug(tmp_path)
    try:
        save_debug_image("enabled", image)
    finally:
        disable_ocr_debug()
    save_debug_image("disabled", image)

    names = [path.name for path in tmp_path.iterdir()]
    assert len(names) == 1
    assert names[0].endswith("_enabled.png")
