"""Helio exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each subsystem raises a specific error type for debuggability.
"""

from __future__ import annotations


class HelioError(Exception):
    """Base exception for all Helio failures."""


class HelioConfigError(HelioError):
    """Raised for invalid runtime configuration."""


class HelioDependencyError(HelioError):
    """Raised when an optional runtime dependency is missing."""


class HelioIngestError(HelioError):
    """Raised for upload source and CSV parsing failures."""


class CsvHeaderError(HelioIngestError):
    """Raised when the CSV header row has an unusable shape."""


class MissingTimestampColumnError(CsvHeaderError):
    """Raised when no header column is named ``timestamp``."""


class NoDeviceColumnsError(CsvHeaderError):
    """Raised when the header has no device columns besides ``timestamp``."""


class DuplicateColumnError(CsvHeaderError):
    """Raised when the header repeats a column name."""


class CsvRowError(HelioIngestError):
    """Raised for a data row failure, with its one-based row number."""

    def __init__(self, message: str, row_number: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.row_number = row_number

    def __str__(self) -> str:
        if self.row_number is None:
            return self.message
        return f"Row {self.row_number}: {self.message}"


class MissingTimestampError(CsvRowError):
    """Raised when a data row has a blank timestamp cell."""


class InvalidTimestampError(CsvRowError):
    """Raised when a timestamp does not match ``M/D/YYYY H:MM``."""


class InvalidOutputValueError(CsvRowError):
    """Raised when a device cell is not a finite number."""


class OutputOutOfRangeError(CsvRowError):
    """Raised when a device reading is outside the plausible range."""


class RowLimitExceededError(CsvRowError):
    """Raised when an upload exceeds the accepted row cap."""


class HelioStoreError(HelioError):
    """Raised for record store persistence and consistency failures."""


class VersionConflictError(HelioStoreError):
    """Raised when an update carries a stale record version."""

    def __init__(self, record_id: str, expected_version: str, current_version: str) -> None:
        super().__init__(
            f"Record '{record_id}' was modified: expected version {expected_version}, "
            f"current version is {current_version}. Reload the record and retry."
        )
        self.record_id = record_id
        self.expected_version = expected_version
        self.current_version = current_version
