from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Tuple

import numpy as np

DEFAULT_BLANK = "-"


@dataclass(frozen=True)
class Alphabet:
    """
    The closed output space of the recognition model: one symbol per class
    index, one of which is the CTC blank.
    """

    symbols: Tuple[str, ...]
    blank_index: int

    def __post_init__(self) -> None:
        if not 0 <= self.blank_index < len(self.symbols):
            raise ValueError(
                f"blank index {self.blank_index} outside alphabet of {len(self.symbols)}"
            )

    def __len__(self) -> int:
        return len(self.symbols)

    @property
    def characters(self) -> frozenset:
        return frozenset(
            s for i, s in enumerate(self.symbols) if i != self.blank_index
        )

    @classmethod
    def from_index_map(
        cls, index_to_symbol: Dict[str, str], blank: str = DEFAULT_BLANK
    ) -> "Alphabet":
        """
        Build from the model's JSON mapping {"0": "-", "1": "A", ...}.
        """
        try:
            entries = sorted((int(k), v) for k, v in index_to_symbol.items())
        except (TypeError, ValueError) as exc:
            raise ValueError(f"alphabet keys must be integer indices: {exc}") from exc
        indices = [idx for idx, _ in entries]
        if indices != list(range(len(indices))):
            raise ValueError("alphabet indices must be contiguous from 0")
        symbols = tuple(str(symbol) for _, symbol in entries)
        if blank not in symbols:
            raise ValueError(f"alphabet has no blank symbol {blank!r}")
        return cls(symbols=symbols, blank_index=symbols.index(blank))

    @classmethod
    def load(cls, path: Path, blank: str = DEFAULT_BLANK) -> "Alphabet":
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise ValueError(f"alphabet file {path} must be a JSON object")
        return cls.from_index_map(raw, blank=blank)


@dataclass(frozen=True)
class DecodedText:
    text: str
    confidences: Tuple[float, ...] = ()

    @property
    def mean_confidence(self) -> float:
        if not self.confidences:
            return 0.0
        return float(sum(self.confidences) / len(self.confidences))

    def __bool__(self) -> bool:
        return bool(self.text)


EMPTY_TEXT = DecodedText("")


def _as_probabilities(scores: np.ndarray) -> np.ndarray:
    """
    Return per-step class probabilities; logits are softmaxed, rows that are
    already a distribution are kept as-is.
    """
    scores = scores.astype(np.float64, copy=False)
    if scores.size and scores.min() >= 0.0 and np.allclose(scores.sum(axis=1), 1.0, atol=1e-3):
        return scores
    shifted = scores - scores.max(axis=1, keepdims=True)
    exp = np.exp(shifted)
    return exp / exp.sum(axis=1, keepdims=True)


def ctc_greedy_decode(scores: np.ndarray, alphabet: Alphabet) -> DecodedText:
    """
    Collapse a [steps, classes] score sequence into text: take the best class
    per step, merge consecutive repeats, drop blanks. A symbol's confidence is
    its probability at the first step of its run.
    """
    if scores.ndim != 2 or scores.shape[1] != len(alphabet):
        raise ValueError(
            f"expected scores shaped [steps, {len(alphabet)}], got {scores.shape}"
        )

    probs = _as_probabilities(scores)
    best = probs.argmax(axis=1)

    chars = []
    confidences = []
    previous = -1
    for step, index in enumerate(best):
        index = int(index)
        if index != previous and index != alphabet.blank_index:
            chars.append(alphabet.symbols[index])
            confidences.append(float(probs[step, index]))
        previous = index

    return DecodedText("".join(chars), tuple(confidences))
