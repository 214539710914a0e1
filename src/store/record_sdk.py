"""Python SDK for energy record operations.

This module exposes high-level APIs for upload, listing, lookup,
correction, and soft deletion backed by the record store.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

from core.config import HelioConfig
from core.types import (
    RecordListFilters,
    RecordListResult,
    RecordPatch,
    UploadResult,
    VersionedRecord,
)
from ingest.upload import upload_csv, upload_source
from store.record_etag import compute_record_etag
from store.record_store import RecordStore


class HelioClient:
    """Primary SDK entry point for record workflows."""

    def __init__(self, config: HelioConfig | None = None) -> None:
        """Create SDK client.

        Args:
            config: Optional runtime configuration.
        """
        self._config = config or HelioConfig.from_env()
        self._store = RecordStore.from_config(self._config)

    @property
    def config(self) -> HelioConfig:
        """Return the runtime configuration."""
        return self._config

    @property
    def store(self) -> RecordStore:
        """Return the underlying record store."""
        return self._store

    def upload(self, source_uri: str) -> UploadResult:
        """Replace all records with the contents of a CSV source.

        Args:
            source_uri: Local CSV path or ``s3://bucket/key``.

        Returns:
            Upload outcome.

        Raises:
            HelioIngestError: If the source or CSV is invalid.
            HelioStoreError: If persistence fails.
        """
        return upload_source(source_uri, self._store, self._config)

    def upload_bytes(self, data: bytes) -> UploadResult:
        """Replace all records with an in-memory CSV upload."""
        return upload_csv(data, self._store, self._config.max_csv_rows)

    def list_records(self, filters: RecordListFilters | None = None) -> RecordListResult:
        """List records with totals and optional pagination."""
        return self._store.find_all(filters)

    def get_record(
        self,
        record_id: str,
        include_deleted: bool = False,
    ) -> VersionedRecord | None:
        """Load one record with the version needed to correct it.

        Args:
            record_id: Record identifier.
            include_deleted: Whether soft-deleted records are visible.

        Returns:
            Record and version, or None when not found.
        """
        record = self._store.find_by_id(record_id, include_deleted=include_deleted)
        if record is None:
            return None
        return VersionedRecord(record=record, version=compute_record_etag(record))

    def correct_record(
        self,
        record_id: str,
        patch: RecordPatch,
        expected_version: str,
    ) -> VersionedRecord | None:
        """Apply a correction guarded by the caller's version.

        Args:
            record_id: Record identifier.
            patch: Outputs and reason to apply.
            expected_version: Version returned by ``get_record``.

        Returns:
            Updated record and its new version, or None when not found.

        Raises:
            VersionConflictError: If the record changed in the meantime.
        """
        updated = self._store.update(record_id, patch, _strip_etag_quotes(expected_version))
        if updated is None:
            return None
        return VersionedRecord(record=updated, version=compute_record_etag(updated))

    def record_version(self, record_id: str) -> str | None:
        """Return the current version of a live record, or None when not found."""
        versioned = self.get_record(record_id)
        return versioned.version if versioned is not None else None

    def delete_record(self, record_id: str) -> bool:
        """Soft-delete one record; False when absent or already deleted."""
        return self._store.delete(record_id)

    def with_data_root(self, data_root: str) -> "HelioClient":
        """Clone the client with a different local data root.

        Args:
            data_root: New data root path.

        Returns:
            New SDK client instance.
        """
        resolved_root = Path(data_root).expanduser().resolve()
        updated_config = replace(self._config, data_root=resolved_root)
        return HelioClient(updated_config)


def _strip_etag_quotes(version: str) -> str:
    """Accept versions copied verbatim from an HTTP ETag header."""
    stripped = version.strip()
    if len(stripped) >= 2 and stripped.startswith('"') and stripped.endswith('"'):
        return stripped[1:-1]
    return stripped
