"""Runtime configuration model for Helio.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from core.constants import DEFAULT_DATA_ROOT, MAX_CSV_ROWS, RECORDS_FILE_NAME
from core.errors import HelioConfigError


@dataclass(frozen=True)
class HelioConfig:
    """Validated runtime configuration.

    Attributes:
        data_root: Local root directory holding the records file.
        s3_region: Optional default AWS region for S3 uploads.
        s3_profile: Optional AWS profile for boto3 session initialization.
        max_csv_rows: Maximum number of data rows accepted per upload.
    """

    data_root: Path
    s3_region: str | None
    s3_profile: str | None
    max_csv_rows: int = MAX_CSV_ROWS

    @property
    def records_path(self) -> Path:
        """Return the canonical records file path."""
        return self.data_root / RECORDS_FILE_NAME

    @classmethod
    def from_env(cls) -> "HelioConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            HelioConfigError: If environment values are invalid.
        """
        data_root_value = os.getenv("HELIO_DATA_ROOT", str(DEFAULT_DATA_ROOT))
        s3_region = os.getenv("HELIO_S3_REGION")
        s3_profile = os.getenv("HELIO_S3_PROFILE")
        max_rows_value = os.getenv("HELIO_MAX_CSV_ROWS", str(MAX_CSV_ROWS))
        return cls(
            data_root=Path(data_root_value).expanduser().resolve(),
            s3_region=s3_region,
            s3_profile=s3_profile,
            max_csv_rows=_parse_max_csv_rows(max_rows_value),
        )


def _parse_max_csv_rows(raw_value: str) -> int:
    """Parse the row cap environment value.

    Args:
        raw_value: Raw string from environment.

    Returns:
        Parsed positive row cap.

    Raises:
        HelioConfigError: If value is not a positive integer.
    """
    try:
        max_rows = int(raw_value)
    except ValueError as error:
        raise HelioConfigError(
            "Invalid HELIO_MAX_CSV_ROWS value: "
            f"expected integer, got '{raw_value}'. "
            "Set HELIO_MAX_CSV_ROWS to a positive number."
        ) from error
    if max_rows <= 0:
        raise HelioConfigError(
            f"Invalid HELIO_MAX_CSV_ROWS value: expected a positive integer, got {max_rows}."
        )
    return max_rows
