"""Unit tests for the file-backed record store."""

from __future__ import annotations

import json
import os
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from core.errors import HelioStoreError, VersionConflictError
from core.types import EnergyRecord, RecordListFilters, RecordPatch
from store import record_store
from store.record_etag import compute_record_etag
from store.record_store import RecordStore, StoreState

_BASE_TIME = datetime(2019, 7, 9, 0, 0, tzinfo=timezone.utc)


def _record(
    record_id: str,
    minutes: int = 0,
    outputs: dict[str, float | None] | None = None,
) -> EnergyRecord:
    return EnergyRecord(
        record_id=record_id,
        timestamp=_BASE_TIME + timedelta(minutes=minutes),
        outputs=outputs if outputs is not None else {"INV1": 0.0, "INV2": 0.0},
    )


def _store(tmp_path: Path) -> RecordStore:
    return RecordStore(tmp_path / "data" / "records.json")


def test_replace_all_then_find_all_preserves_order(tmp_path: Path) -> None:
    """Records should come back exactly as installed, in insertion order."""
    store = _store(tmp_path)
    records = [_record("c", 10), _record("a", 0), _record("b", 5)]

    store.replace_all(records)

    assert list(store.find_all().records) == records


def test_persisted_records_visible_to_new_instance(tmp_path: Path) -> None:
    """A fresh store on the same file should load the persisted collection."""
    store = _store(tmp_path)
    store.create(_record("id-1", outputs={"INV1": 100.0, "INV2": None}))

    reloaded = _store(tmp_path)

    record = reloaded.find_by_id("id-1")
    assert record is not None
    assert record.timestamp == _BASE_TIME
    assert dict(record.outputs) == {"INV1": 100.0, "INV2": None}


def test_store_loads_lazily(tmp_path: Path) -> None:
    """The backing file should only be read on first access."""
    store = _store(tmp_path)
    assert store.state is StoreState.UNLOADED

    store.find_by_id("anything")

    assert store.is_loaded


def test_missing_file_is_empty_collection(tmp_path: Path) -> None:
    """Loading without a backing file should not fail."""
    result = _store(tmp_path).find_all()

    assert result.records == () and result.record_count == 0 and result.total_energy == 0


def test_corrupt_file_raises_store_error(tmp_path: Path) -> None:
    """Unparseable content should be fatal, not treated as empty."""
    records_path = tmp_path / "records.json"
    records_path.write_text("{not json", encoding="utf-8")
    store = RecordStore(records_path)

    with pytest.raises(HelioStoreError, match="Failed to parse"):
        store.find_all()

    assert store.state is StoreState.UNLOADED


def test_unreadable_path_raises_store_error(tmp_path: Path) -> None:
    """Read failures other than a missing file should surface."""
    (tmp_path / "records.json").mkdir()

    with pytest.raises(HelioStoreError, match="Failed to read"):
        RecordStore(tmp_path / "records.json").find_all()


def test_persisted_file_is_json_array_without_null_optionals(tmp_path: Path) -> None:
    """Unset optional fields should be omitted from the stored document."""
    store = _store(tmp_path)
    store.create(_record("id-1"))

    payload = json.loads(store.records_path.read_text(encoding="utf-8"))

    assert payload == [
        {
            "id": "id-1",
            "timestamp": "2019-07-09T00:00:00.000Z",
            "outputs": {"INV1": 0.0, "INV2": 0.0},
        }
    ]


def test_persist_leaves_no_temp_file(tmp_path: Path) -> None:
    """The temporary file should be renamed over the canonical file."""
    store = _store(tmp_path)

    store.replace_all([_record("a")])

    assert sorted(path.name for path in store.records_path.parent.iterdir()) == ["records.json"]


def test_failed_persist_keeps_previous_state(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """A failed rename should leave both cache and file unchanged."""
    store = _store(tmp_path)
    store.replace_all([_record("a")])

    def _fail_replace(source: object, target: object) -> None:
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(record_store.os, "replace", _fail_replace)
    with pytest.raises(HelioStoreError, match="Failed to persist"):
        store.replace_all([_record("b")])
    monkeypatch.setattr(record_store.os, "replace", os.replace)

    assert [record.record_id for record in store.find_all().records] == ["a"]
    assert [record.record_id for record in _store(tmp_path).find_all().records] == ["a"]
    assert not (store.records_path.parent / "records.json.tmp").exists()


def test_duplicate_ids_are_rejected(tmp_path: Path) -> None:
    """Ids must stay unique across the collection."""
    store = _store(tmp_path)
    store.create(_record("a"))

    with pytest.raises(HelioStoreError, match="Duplicate record id"):
        store.create_many([_record("b"), _record("a")])

    assert store.find_all().record_count == 1


def test_find_all_filters_inclusive_time_range(tmp_path: Path) -> None:
    """Start and end bounds should both be inclusive."""
    store = _store(tmp_path)
    store.create_many([_record("a", 0), _record("b", 5), _record("c", 10)])
    filters = RecordListFilters(
        start=_BASE_TIME + timedelta(minutes=5),
        end=_BASE_TIME + timedelta(minutes=10),
    )

    result = store.find_all(filters)

    assert [record.record_id for record in result.records] == ["b", "c"]


def test_find_all_sums_non_negative_readings(tmp_path: Path) -> None:
    """Energy totals should skip None and negative readings."""
    store = _store(tmp_path)
    store.create(_record("r1", outputs={"A": 100.0, "B": 50.0, "C": None, "D": -1.0}))

    result = store.find_all()

    assert result.record_count == 1
    assert result.total_energy == 150


def test_find_all_device_filter_limits_energy(tmp_path: Path) -> None:
    """A device filter should sum that device only and drop records without it."""
    store = _store(tmp_path)
    store.create_many(
        [
            _record("r1", 0, {"A": 100.0, "B": 50.0, "C": None, "D": -1.0}),
            _record("r2", 5, {"A": None, "B": 7.0}),
        ]
    )

    result = store.find_all(RecordListFilters(device="A"))

    assert result.total_energy == 100
    assert [record.record_id for record in result.records] == ["r1"]


def test_find_all_paginates(tmp_path: Path) -> None:
    """Pages should slice the filtered set and report page counts."""
    store = _store(tmp_path)
    store.create_many([_record("r0", 0), _record("r1", 5)])

    first = store.find_all(RecordListFilters(page=0, page_size=1))
    second = store.find_all(RecordListFilters(page=1, page_size=1))

    assert [record.record_id for record in first.records] == ["r0"]
    assert [record.record_id for record in second.records] == ["r1"]
    assert (first.total_count, first.page_count) == (2, 2)


def test_find_all_out_of_range_page_is_empty(tmp_path: Path) -> None:
    """A page past the end should be empty rather than an error."""
    store = _store(tmp_path)
    store.create_many([_record("r0", 0), _record("r1", 5)])

    result = store.find_all(RecordListFilters(page=10, page_size=5))

    assert result.records == ()
    assert (result.total_count, result.page_count, result.record_count) == (2, 1, 2)


def test_find_all_ignores_invalid_page_parameters(tmp_path: Path) -> None:
    """Without a valid page and page size the full set is returned."""
    store = _store(tmp_path)
    store.create_many([_record("r0", 0), _record("r1", 5)])

    result = store.find_all(RecordListFilters(page=0, page_size=0))

    assert len(result.records) == 2 and result.page_count is None


def test_delete_soft_deletes_record(tmp_path: Path) -> None:
    """Deleted records should be hidden by default but still stored."""
    store = _store(tmp_path)
    store.create_many([_record("r1", 0), _record("r2", 1)])

    deleted = store.delete("r1")

    visible = store.find_all()
    everything = store.find_all(RecordListFilters(include_deleted=True))
    assert deleted is True
    assert [record.record_id for record in visible.records] == ["r2"]
    assert everything.records[0].deleted_at is not None
    assert store.find_by_id("r1") is None
    assert store.find_by_id("r1", include_deleted=True) is not None


def test_delete_twice_reports_not_found(tmp_path: Path) -> None:
    """A second delete should be a no-op."""
    store = _store(tmp_path)
    store.create(_record("r1"))
    store.delete("r1")
    first_deleted_at = store.find_by_id("r1", include_deleted=True).deleted_at

    assert store.delete("r1") is False
    assert store.delete("missing") is False
    assert store.find_by_id("r1", include_deleted=True).deleted_at == first_deleted_at


def test_update_merges_outputs_and_captures_original(tmp_path: Path) -> None:
    """Update should change only supplied devices and snapshot the original."""
    store = _store(tmp_path)
    original = _record("r1", outputs={"INV1": 10.0, "INV2": 20.0})
    store.create(original)

    updated = store.update(
        "r1",
        RecordPatch(outputs={"INV1": None}, correction_reason="sensor glitch"),
        compute_record_etag(original),
    )

    assert updated is not None
    assert dict(updated.outputs) == {"INV1": None, "INV2": 20.0}
    assert dict(updated.original_outputs) == {"INV1": 10.0, "INV2": 20.0}
    assert updated.correction_reason == "sensor glitch"
    assert updated.corrected_at is not None


def test_update_keeps_first_original_outputs(tmp_path: Path) -> None:
    """Later corrections should not overwrite the first snapshot."""
    store = _store(tmp_path)
    original = _record("r1", outputs={"INV1": 10.0})
    store.create(original)
    first = store.update("r1", RecordPatch(outputs={"INV1": 11.0}), compute_record_etag(original))

    second = store.update("r1", RecordPatch(outputs={"INV1": 12.0}), compute_record_etag(first))

    assert dict(second.outputs) == {"INV1": 12.0}
    assert dict(second.original_outputs) == {"INV1": 10.0}


def test_update_persists_correction(tmp_path: Path) -> None:
    """Corrections should be visible to a freshly opened store."""
    store = _store(tmp_path)
    original = _record("r1", outputs={"INV1": 10.0})
    store.create(original)
    updated = store.update("r1", RecordPatch(outputs={"INV1": 9.5}), compute_record_etag(original))

    reloaded = _store(tmp_path).find_by_id("r1")

    assert reloaded == updated


def test_update_rejects_stale_version(tmp_path: Path) -> None:
    """Two corrections from the same version should not both apply."""
    store = _store(tmp_path)
    original = _record("r1", outputs={"INV1": 10.0})
    store.create(original)
    version = compute_record_etag(original)
    store.update("r1", RecordPatch(outputs={"INV1": 11.0}), version)

    with pytest.raises(VersionConflictError) as error_info:
        store.update("r1", RecordPatch(outputs={"INV1": 99.0}), version)

    assert error_info.value.expected_version == version
    assert store.find_by_id("r1").outputs["INV1"] == 11.0


def test_update_ignores_missing_and_deleted_records(tmp_path: Path) -> None:
    """Absent or soft-deleted records should report not found."""
    store = _store(tmp_path)
    original = _record("r1")
    store.create(original)
    store.delete("r1")
    version = compute_record_etag(original)

    assert store.update("r1", RecordPatch(outputs={"INV1": 1.0}), version) is None
    assert store.update("missing", RecordPatch(outputs={"INV1": 1.0}), version) is None


@pytest.mark.parametrize("reading", [float("nan"), float("inf"), "12", True])
def test_update_rejects_invalid_readings(tmp_path: Path, reading: object) -> None:
    """Corrections must carry finite numbers or None."""
    store = _store(tmp_path)
    original = _record("r1")
    store.create(original)

    with pytest.raises(HelioStoreError, match="Invalid correction value"):
        store.update("r1", RecordPatch(outputs={"INV1": reading}), compute_record_etag(original))


def test_early_year_record_survives_reload(tmp_path: Path) -> None:
    """Records dated before year 1000 should load back from disk."""
    store = _store(tmp_path)
    record = EnergyRecord(
        record_id="old",
        timestamp=datetime(999, 1, 1, 12, 0, tzinfo=timezone.utc),
        outputs={"INV1": 1.0},
    )
    store.create(record)

    reloaded = _store(tmp_path).find_all()

    assert list(reloaded.records) == [record]


@pytest.mark.parametrize("field_name", ["timestamp", "corrected_at", "deleted_at"])
def test_naive_instants_are_rejected(tmp_path: Path, field_name: str) -> None:
    """Stored instants must carry a timezone."""
    store = _store(tmp_path)
    naive_record = replace(_record("naive"), **{field_name: datetime(2019, 7, 9)})

    with pytest.raises(HelioStoreError, match=f"naive {field_name}"):
        store.create(naive_record)

    assert store.find_all().record_count == 0
    assert not store.records_path.exists()


def test_aware_bounds_filter_after_rejected_naive_record(tmp_path: Path) -> None:
    """Filtering with aware bounds should keep working alongside rejected input."""
    store = _store(tmp_path)
    store.create(_record("aware"))
    with pytest.raises(HelioStoreError):
        store.create(replace(_record("naive"), timestamp=datetime(2019, 7, 9)))

    result = store.find_all(RecordListFilters(start=_BASE_TIME))

    assert [record.record_id for record in result.records] == ["aware"]


def test_instants_outside_utc_range_are_rejected(tmp_path: Path) -> None:
    """Instants with no UTC equivalent cannot be persisted."""
    store = _store(tmp_path)
    east = timezone(timedelta(hours=5))
    record = replace(_record("edge"), timestamp=datetime(1, 1, 1, 0, 0, tzinfo=east))

    with pytest.raises(HelioStoreError, match="outside the UTC range"):
        store.create(record)

    assert not store.records_path.exists()
