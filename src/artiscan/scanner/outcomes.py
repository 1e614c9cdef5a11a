from __future__ import annotations

from enum import Enum


class SlotOutcome(str, Enum):
    RECORDED = "RECORDED"
    DUPLICATE = "DUPLICATE"
    FILTERED = "FILTERED"
    SKIPPED = "SKIPPED"


OUTCOME_ORDER = tuple(outcome.value for outcome in SlotOutcome)


def _outcome_style(label: str) -> str:
    return {
        "RECORDED": "green",
        "DUPLICATE": "yellow",
        "FILTERED": "cyan",
        "SKIPPED": "red",
        "COMPLETED": "green",
        "ABORTED": "red",
    }.get(label, "white")
