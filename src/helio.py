"""Public SDK surface for Helio.

This module provides a stable import path for library users.
It re-exports the primary client and typed models.
"""

from __future__ import annotations

from core.config import HelioConfig
from core.errors import (
    HelioError,
    HelioIngestError,
    HelioStoreError,
    VersionConflictError,
)
from core.types import (
    EnergyRecord,
    RecordListFilters,
    RecordListResult,
    RecordPatch,
    UploadResult,
    VersionedRecord,
)
from ingest.csv_pipeline import parse_csv_bytes
from ingest.upload import upload_csv
from store.record_etag import compute_record_etag
from store.record_sdk import HelioClient
from store.record_store import RecordStore

__all__ = [
    "EnergyRecord",
    "HelioClient",
    "HelioConfig",
    "HelioError",
    "HelioIngestError",
    "HelioStoreError",
    "RecordListFilters",
    "RecordListResult",
    "RecordPatch",
    "RecordStore",
    "UploadResult",
    "VersionConflictError",
    "VersionedRecord",
    "compute_record_etag",
    "parse_csv_bytes",
    "upload_csv",
]
