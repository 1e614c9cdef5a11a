import threading

import pytest

from artiscan.core.records import ArtifactRecord, Slot, StatKey, StatValue
from artiscan.core.result_store import ResultStore


def _record(level):
    return ArtifactRecord(
        set_name="Wanderer's Troupe",
        slot=Slot.PLUME,
        rarity=5,
        level=level,
        main_stat=StatValue(StatKey.ATK, 311.0),
    )


def test_append_keeps_scan_order():
    store = ResultStore()
    for level in (4, 0, 20):
        store.append(_record(level))

    assert [r.level for r in store] == [4, 0, 20]
    assert store.last().level == 20
    assert len(store) == 3


def test_empty_store():
    store = ResultStore()
    assert store.last() is None
    assert store.export_snapshot() == ()


def test_only_records_are_accepted():
    with pytest.raises(TypeError):
        ResultStore().append({"level": 20})


def test_snapshot_is_not_affected_by_later_appends():
    store = ResultStore()
    store.append(_record(1))
    snapshot = store.export_snapshot()
    store.append(_record(2))

    assert len(snapshot) == 1
    assert isinstance(snapshot, tuple)


def test_snapshots_taken_during_appends_are_prefixes():
    store = ResultStore()
    records = [_record(level % 21) for level in range(200)]
    snapshots = []
    done = threading.Event()

    def reader():
        while not done.is_set():
            snapshots.append(store.export_snapshot())

    thread = threading.Thread(target=reader)
    thread.start()
    for record in records:
        store.append(record)
    done.set()
    thread.join()

    for snapshot in snapshots:
        assert list(snapshot) == records[: len(snapshot)]
