"""File-backed energy record store.

This module owns the in-process record cache and its on-disk JSON mirror.
Every mutation rewrites the whole collection to a temporary file and
renames it over the canonical file, so readers never see a partial write.
"""

from __future__ import annotations

import math
import os
import threading
from contextlib import suppress
from dataclasses import replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from core.config import HelioConfig
from core.constants import TEMP_FILE_SUFFIX
from core.errors import HelioStoreError, VersionConflictError
from core.logging_config import get_logger
from core.types import (
    DeviceOutputs,
    EnergyRecord,
    RecordListFilters,
    RecordListResult,
    RecordPatch,
)
from store.record_etag import compute_record_etag
from store.record_filtering import (
    filter_records,
    is_paginated,
    page_count,
    page_slice,
    total_energy,
)
from store.record_payload import dump_energy_records, load_energy_records

_LOGGER = get_logger(__name__)


class StoreState(Enum):
    """Load lifecycle of a store instance."""

    UNLOADED = "unloaded"
    LOADED = "loaded"


class RecordStore:
    """Energy record store backed by a single JSON file.

    The collection is loaded lazily on first access. All operations run
    under one re-entrant lock, so the version check and merge performed
    by ``update`` happen as a single step.
    """

    def __init__(self, records_path: Path) -> None:
        """Initialize an unloaded store.

        Args:
            records_path: Canonical JSON file holding the collection.
        """
        self._records_path = records_path
        self._records: list[EnergyRecord] = []
        self._index: dict[str, int] = {}
        self._state = StoreState.UNLOADED
        self._lock = threading.RLock()

    @classmethod
    def from_config(cls, config: HelioConfig) -> "RecordStore":
        """Create a store at the configured records path."""
        return cls(config.records_path)

    @property
    def records_path(self) -> Path:
        """Return the canonical records file path."""
        return self._records_path

    @property
    def state(self) -> StoreState:
        """Return the current load state."""
        return self._state

    @property
    def is_loaded(self) -> bool:
        """Return whether the collection has been read from disk."""
        return self._state is StoreState.LOADED

    def find_all(self, filters: RecordListFilters | None = None) -> RecordListResult:
        """List records matching filters, with an energy total.

        Args:
            filters: Optional listing constraints; defaults list live records.

        Returns:
            Matching records (or one page) plus aggregate counts.

        Raises:
            HelioStoreError: If the backing file cannot be loaded.
        """
        filters = filters or RecordListFilters()
        with self._lock:
            self._ensure_loaded()
            matching = filter_records(self._records, filters)
        energy = total_energy(matching, filters.device)
        total_count = len(matching)
        if not is_paginated(filters):
            return RecordListResult(
                records=tuple(matching),
                total_energy=energy,
                record_count=total_count,
            )
        page = filters.page or 0
        page_size = filters.page_size or 1
        return RecordListResult(
            records=tuple(page_slice(matching, page, page_size)),
            total_energy=energy,
            record_count=total_count,
            total_count=total_count,
            page_count=page_count(total_count, page_size),
            page=page,
            page_size=page_size,
        )

    def find_by_id(self, record_id: str, include_deleted: bool = False) -> EnergyRecord | None:
        """Look up one record by id.

        Args:
            record_id: Record identifier.
            include_deleted: Whether a soft-deleted record may be returned.

        Returns:
            The record, or None when absent or hidden by soft deletion.
        """
        with self._lock:
            self._ensure_loaded()
            position = self._index.get(record_id)
            if position is None:
                return None
            record = self._records[position]
        if record.is_deleted and not include_deleted:
            return None
        return record

    def create(self, record: EnergyRecord) -> EnergyRecord:
        """Append one record and persist.

        Raises:
            HelioStoreError: If the id already exists, an instant is naive, or
                persistence fails.
        """
        with self._lock:
            self._ensure_loaded()
            self._commit([*self._records, record])
        _LOGGER.info("records_created", record_count=1, records_path=str(self._records_path))
        return record

    def create_many(self, records: list[EnergyRecord]) -> None:
        """Append several records and persist once.

        Raises:
            HelioStoreError: If any id already exists, an instant is naive, or
                persistence fails.
        """
        with self._lock:
            self._ensure_loaded()
            self._commit([*self._records, *records])
        _LOGGER.info(
            "records_created", record_count=len(records), records_path=str(self._records_path)
        )

    def replace_all(self, records: list[EnergyRecord]) -> None:
        """Discard the whole collection and install a new one.

        Soft-deleted records are discarded as well; nothing is merged.

        Args:
            records: New collection in the order it should be kept.

        Raises:
            HelioStoreError: If ids repeat, an instant is naive, or persistence fails.
        """
        with self._lock:
            self._ensure_loaded()
            previous_count = len(self._records)
            self._commit(list(records))
        _LOGGER.info(
            "records_replaced",
            previous_count=previous_count,
            record_count=len(records),
            records_path=str(self._records_path),
        )

    def update(
        self,
        record_id: str,
        patch: RecordPatch,
        expected_version: str,
    ) -> EnergyRecord | None:
        """Apply a correction if the caller's version is still current.

        Only supplied output keys are overwritten; a ``None`` value clears a
        reading. The first correction snapshots the pre-update outputs into
        ``original_outputs``.

        Args:
            record_id: Record identifier.
            patch: Outputs and reason to apply.
            expected_version: Fingerprint the caller last observed.

        Returns:
            Updated record, or None when absent or soft-deleted.

        Raises:
            VersionConflictError: If the record changed since expected_version.
            HelioStoreError: If the patch is invalid or persistence fails.
        """
        patch_outputs = _validated_patch_outputs(patch.outputs)
        with self._lock:
            self._ensure_loaded()
            position = self._index.get(record_id)
            if position is None:
                return None
            existing = self._records[position]
            if existing.is_deleted:
                return None
            current_version = compute_record_etag(existing)
            if current_version != expected_version:
                raise VersionConflictError(record_id, expected_version, current_version)
            updated = _apply_patch(existing, patch_outputs, patch.correction_reason)
            records = list(self._records)
            records[position] = updated
            self._commit(records)
        _LOGGER.info(
            "record_updated",
            record_id=record_id,
            devices=sorted(patch_outputs),
            first_correction=existing.original_outputs is None,
        )
        return updated

    def delete(self, record_id: str) -> bool:
        """Soft-delete one record.

        Returns:
            False when the record is absent or already deleted, else True.

        Raises:
            HelioStoreError: If persistence fails.
        """
        with self._lock:
            self._ensure_loaded()
            position = self._index.get(record_id)
            if position is None:
                return False
            existing = self._records[position]
            if existing.is_deleted:
                return False
            records = list(self._records)
            records[position] = replace(existing, deleted_at=_utc_now())
            self._commit(records)
        _LOGGER.info("record_deleted", record_id=record_id)
        return True

    def _ensure_loaded(self) -> None:
        if self._state is StoreState.LOADED:
            return
        records = _read_records_file(self._records_path)
        self._index = _build_index(records, self._records_path)
        self._records = records
        self._state = StoreState.LOADED
        _LOGGER.info(
            "records_loaded", record_count=len(records), records_path=str(self._records_path)
        )

    def _commit(self, records: list[EnergyRecord]) -> None:
        """Persist a new collection, then make it the cache."""
        _check_storable_instants(records)
        index = _build_index(records, self._records_path)
        _write_records_file(self._records_path, records)
        self._records = records
        self._index = index
        _LOGGER.debug(
            "records_persisted", record_count=len(records), records_path=str(self._records_path)
        )


def _read_records_file(records_path: Path) -> list[EnergyRecord]:
    """Read the backing file; a missing file is an empty collection.

    Raises:
        HelioStoreError: If the file is unreadable or malformed.
    """
    try:
        text = records_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return []
    except OSError as error:
        raise HelioStoreError(
            f"Failed to read records file at {records_path}: {error.strerror or error}. "
            "Check file permissions and retry."
        ) from error
    try:
        return load_energy_records(text)
    except ValueError as error:
        raise HelioStoreError(
            f"Failed to parse records file at {records_path}: {error}. "
            "Restore the file from a backup or upload the CSV again."
        ) from error


def _write_records_file(records_path: Path, records: list[EnergyRecord]) -> None:
    """Atomically replace the backing file with the given collection.

    Raises:
        HelioStoreError: If the directory, temp file, or rename fails.
    """
    temp_path = records_path.with_name(records_path.name + TEMP_FILE_SUFFIX)
    content = dump_energy_records(records)
    try:
        records_path.parent.mkdir(parents=True, exist_ok=True)
        with temp_path.open("w", encoding="utf-8") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, records_path)
    except OSError as error:
        with suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise HelioStoreError(
            f"Failed to persist records file at {records_path}: {error.strerror or error}. "
            "Check free disk space and permissions, then retry."
        ) from error


def _build_index(records: list[EnergyRecord], records_path: Path) -> dict[str, int]:
    """Map record ids to cache positions, rejecting duplicates."""
    index: dict[str, int] = {}
    for position, record in enumerate(records):
        if record.record_id in index:
            raise HelioStoreError(
                f"Duplicate record id '{record.record_id}' for {records_path}. "
                "Record ids must be unique across the collection."
            )
        index[record.record_id] = position
    return index


def _check_storable_instants(records: list[EnergyRecord]) -> None:
    """Reject instants that cannot be stored as UTC.

    Raises:
        HelioStoreError: If any instant is naive or falls outside the UTC range.
    """
    for record in records:
        for field_name in ("timestamp", "corrected_at", "deleted_at"):
            value = getattr(record, field_name)
            if value is None:
                continue
            if value.utcoffset() is None:
                raise HelioStoreError(
                    f"Record '{record.record_id}' has a naive {field_name} "
                    f"({value.isoformat()}). "
                    "Attach a timezone before storing records."
                )
            try:
                value.astimezone(timezone.utc)
            except OverflowError as error:
                raise HelioStoreError(
                    f"Record '{record.record_id}' has a {field_name} outside the UTC range "
                    f"({value.isoformat()})."
                ) from error


def _validated_patch_outputs(outputs: DeviceOutputs | None) -> dict[str, float | None]:
    """Check patch readings are finite numbers or None.

    Raises:
        HelioStoreError: If a device name or reading is invalid.
    """
    validated: dict[str, float | None] = {}
    for device_name, reading in (outputs or {}).items():
        if not isinstance(device_name, str) or not device_name:
            raise HelioStoreError(f"Invalid device name {device_name!r} in correction.")
        if reading is None:
            validated[device_name] = None
            continue
        if isinstance(reading, bool) or not isinstance(reading, (int, float)):
            raise HelioStoreError(
                f"Invalid correction value {reading!r} for {device_name}: expected a number."
            )
        if not math.isfinite(reading):
            raise HelioStoreError(
                f"Invalid correction value {reading!r} for {device_name}: "
                "value must be finite (no NaN or Infinity)."
            )
        validated[device_name] = float(reading)
    return validated


def _apply_patch(
    existing: EnergyRecord,
    patch_outputs: dict[str, float | None],
    correction_reason: str | None,
) -> EnergyRecord:
    """Merge a validated correction into a record."""
    merged_outputs = dict(existing.outputs)
    merged_outputs.update(patch_outputs)
    original_outputs = existing.original_outputs
    if original_outputs is None:
        original_outputs = dict(existing.outputs)
    return replace(
        existing,
        outputs=merged_outputs,
        corrected_at=_utc_now(),
        correction_reason=correction_reason,
        original_outputs=original_outputs,
    )


def _utc_now() -> datetime:
    """Return the current UTC instant at the stored millisecond precision."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)
