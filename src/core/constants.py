"""Core constants used across Helio modules.

This module centralizes storage names, CSV contract values, and bounds.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_DATA_ROOT = Path(".helio")
RECORDS_FILE_NAME = "records.json"
TEMP_FILE_SUFFIX = ".tmp"
TIMESTAMP_COLUMN = "timestamp"
OUTPUT_MIN = -10.0
OUTPUT_MAX = 2000.0
MAX_CSV_ROWS = 1_000_000
CSV_ENCODING = "utf-8-sig"
HASH_ALGORITHM = "sha256"
SUPPORTED_CSV_EXTENSIONS = (".csv",)
MAX_PAGE_SIZE = 1000
