"""
Export recorded artifacts in the GOOD (Genshin Open Object Description) v1
JSON format understood by the common optimizer tools.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from ..core.records import ArtifactRecord
from ..scanner.types import ScanReport

GOOD_FORMAT = "GOOD"
GOOD_VERSION = 1
GOOD_SOURCE = "Artiscan"

_WORD_PATTERN = re.compile(r"[A-Za-z0-9]+")


def good_key(display_name: str) -> str:
    """
    PascalCase key for a set or character name: "Gladiator's Finale" -> "GladiatorsFinale".
    """
    cleaned = display_name.replace("'", "").replace("’", "")
    return "".join(word[:1].upper() + word[1:] for word in _WORD_PATTERN.findall(cleaned))


def _stat_number(value: float) -> Union[int, float]:
    return int(value) if float(value).is_integer() else round(float(value), 1)


def artifact_to_good(record: ArtifactRecord) -> Dict[str, Any]:
    return {
        "setKey": good_key(record.set_name),
        "slotKey": record.slot.value,
        "level": record.level,
        "rarity": record.rarity,
        "mainStatKey": record.main_stat.key.value,
        "location": good_key(record.equipped_by) if record.equipped_by else "",
        "lock": bool(record.locked),
        "substats": [
            {"key": stat.key.value, "value": _stat_number(stat.value)}
            for stat in record.sub_stats
        ],
    }


def to_good(records: Iterable[ArtifactRecord]) -> Dict[str, Any]:
    artifacts: List[Dict[str, Any]] = [artifact_to_good(record) for record in records]
    return {
        "format": GOOD_FORMAT,
        "version": GOOD_VERSION,
        "source": GOOD_SOURCE,
        "artifacts": artifacts,
    }


def write_good(
    source: Union[ScanReport, Iterable[ArtifactRecord]],
    path: Path,
    *,
    indent: Optional[int] = 2,
) -> Path:
    """
    Write a ScanReport's records (or any iterable of records) to `path`.
    Aborted scans export whatever was recorded.
    """
    records = source.records if isinstance(source, ScanReport) else tuple(source)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(to_good(records), indent=indent), encoding="utf-8")
    return path
