from __future__ import annotations

import threading
from typing import Iterator, List, Optional, Tuple

from .records import ArtifactRecord


class ResultStore:
    """
    Append-only, scan-ordered collection of records.

    Only the scan controller appends. Readers on other threads go through
    export_snapshot(), which copies under a short lock instead of holding the
    store for the duration of the scan.
    """

    def __init__(self) -> None:
        self._records: List[ArtifactRecord] = []
        self._lock = threading.Lock()

    def append(self, record: ArtifactRecord) -> None:
        if not isinstance(record, ArtifactRecord):
            raise TypeError(f"expected ArtifactRecord, got {type(record).__name__}")
        with self._lock:
            self._records.append(record)

    def last(self) -> Optional[ArtifactRecord]:
        with self._lock:
            return self._records[-1] if self._records else None

    def export_snapshot(self) -> Tuple[ArtifactRecord, ...]:
        with self._lock:
            return tuple(self._records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __iter__(self) -> Iterator[ArtifactRecord]:
        return iter(self.export_snapshot())
