"""Shared typed models.

This module defines immutable data models used by ingest, store,
SDK, and CLI layers to keep interfaces explicit and stable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping, Optional

DeviceOutputs = Mapping[str, Optional[float]]


@dataclass(frozen=True)
class EnergyRecord:
    """One timestamped snapshot of device readings.

    Attributes:
        record_id: Opaque unique identifier minted at ingestion.
        timestamp: Absolute measurement instant.
        outputs: Device name to reading, ``None`` meaning no reading.
        corrected_at: Instant of the last manual correction.
        correction_reason: Audit note supplied with the last correction.
        original_outputs: Outputs as first ingested, captured on first correction.
        deleted_at: Soft-deletion instant; set means the record is inactive.
    """

    record_id: str
    timestamp: datetime
    outputs: DeviceOutputs = field(default_factory=dict)
    corrected_at: datetime | None = None
    correction_reason: str | None = None
    original_outputs: DeviceOutputs | None = None
    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        """Return whether the record has been soft-deleted."""
        return self.deleted_at is not None


@dataclass(frozen=True)
class ParsedCsvRow:
    """One validated CSV data row before an id is assigned.

    Attributes:
        timestamp: Parsed row instant.
        outputs: Device readings in header column order.
    """

    timestamp: datetime
    outputs: DeviceOutputs


@dataclass(frozen=True)
class RecordListFilters:
    """Listing constraints for the record store.

    Attributes:
        start: Optional inclusive lower bound on timestamp.
        end: Optional inclusive upper bound on timestamp.
        device: Optional device name; limits records and energy totals.
        include_deleted: Whether soft-deleted records are visible.
        page: Optional zero-based page index.
        page_size: Optional page length.
    """

    start: datetime | None = None
    end: datetime | None = None
    device: str | None = None
    include_deleted: bool = False
    page: int | None = None
    page_size: int | None = None


@dataclass(frozen=True)
class RecordListResult:
    """Listing result with aggregate totals.

    Attributes:
        records: Matching records, or one page of them.
        total_energy: Sum of non-negative readings over all matching records.
        record_count: Number of matching records before pagination.
        total_count: Same as record_count when paginated, else None.
        page_count: Number of pages when paginated, else None.
        page: Requested page when paginated, else None.
        page_size: Requested page size when paginated, else None.
    """

    records: tuple[EnergyRecord, ...]
    total_energy: float
    record_count: int
    total_count: int | None = None
    page_count: int | None = None
    page: int | None = None
    page_size: int | None = None


@dataclass(frozen=True)
class RecordPatch:
    """Partial correction applied to one record.

    Attributes:
        outputs: Device readings to overwrite; ``None`` values clear a reading.
        correction_reason: Optional audit note for the correction.
    """

    outputs: DeviceOutputs | None = None
    correction_reason: str | None = None


@dataclass(frozen=True)
class UploadResult:
    """Outcome of a successful CSV upload.

    Attributes:
        record_count: Number of records installed.
        device_names: Device columns found in the upload header.
    """

    record_count: int
    device_names: tuple[str, ...]


@dataclass(frozen=True)
class ParsedCsvDocument:
    """Fully validated CSV upload.

    Attributes:
        device_names: Device columns in header order.
        rows: Parsed data rows in source order.
    """

    device_names: tuple[str, ...]
    rows: tuple[ParsedCsvRow, ...]


@dataclass(frozen=True)
class VersionedRecord:
    """Record paired with its current fingerprint.

    Attributes:
        record: Stored record.
        version: Fingerprint to send back with a correction.
    """

    record: EnergyRecord
    version: str
