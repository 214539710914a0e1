"""Upload orchestration.

This module composes CSV parsing with the store's whole-collection
replace. A successful upload discards every prior record, including
soft-deleted ones; a failed parse leaves the store untouched.
"""

from __future__ import annotations

import io
from uuid import uuid4

from core.config import HelioConfig
from core.constants import MAX_CSV_ROWS
from core.logging_config import get_logger
from core.types import EnergyRecord, ParsedCsvDocument, UploadResult
from ingest.csv_pipeline import parse_csv_stream
from ingest.source_reader import read_upload_bytes
from store.record_store import RecordStore

_LOGGER = get_logger(__name__)


def upload_csv(data: bytes, store: RecordStore, max_rows: int = MAX_CSV_ROWS) -> UploadResult:
    """Parse CSV bytes and replace the stored collection.

    Args:
        data: Raw CSV upload.
        store: Target record store.
        max_rows: Maximum number of accepted data rows.

    Returns:
        Count and device names of the installed records.

    Raises:
        HelioIngestError: If the CSV is invalid; the store is not modified.
        HelioStoreError: If the new collection cannot be persisted.
    """
    document = parse_csv_stream(io.BytesIO(data), max_rows)
    records = build_records(document)
    store.replace_all(records)
    _LOGGER.info(
        "upload_completed",
        record_count=len(records),
        device_count=len(document.device_names),
        records_path=str(store.records_path),
    )
    return UploadResult(record_count=len(records), device_names=document.device_names)


def upload_source(source_uri: str, store: RecordStore, config: HelioConfig) -> UploadResult:
    """Read an upload from a local path or S3 and install it.

    Args:
        source_uri: Local CSV path or ``s3://bucket/key``.
        store: Target record store.
        config: Runtime configuration.

    Returns:
        Upload outcome.
    """
    data = read_upload_bytes(source_uri, config)
    _LOGGER.info("upload_source_read", source_uri=source_uri, byte_count=len(data))
    return upload_csv(data, store, config.max_csv_rows)


def build_records(document: ParsedCsvDocument) -> list[EnergyRecord]:
    """Mint fresh records, one per parsed row, in source order."""
    return [
        EnergyRecord(record_id=str(uuid4()), timestamp=row.timestamp, outputs=dict(row.outputs))
        for row in document.rows
    ]
