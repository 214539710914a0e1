"""Streaming CSV ingestion for energy uploads.

This module validates the header shape and converts each data row into
typed device readings. Parsing is all-or-nothing: the first bad row aborts
the whole upload and the input stream is closed immediately.
"""

from __future__ import annotations

import csv
import io
import math
from dataclasses import dataclass
from typing import BinaryIO, Iterator

from core.constants import (
    CSV_ENCODING,
    MAX_CSV_ROWS,
    OUTPUT_MAX,
    OUTPUT_MIN,
    TIMESTAMP_COLUMN,
)
from core.errors import (
    CsvHeaderError,
    DuplicateColumnError,
    HelioIngestError,
    InvalidOutputValueError,
    InvalidTimestampError,
    MissingTimestampColumnError,
    MissingTimestampError,
    NoDeviceColumnsError,
    OutputOutOfRangeError,
    RowLimitExceededError,
)
from core.types import ParsedCsvDocument, ParsedCsvRow
from ingest.timestamp_parser import parse_csv_timestamp


@dataclass(frozen=True)
class CsvLayout:
    """Column positions resolved from a validated header row."""

    timestamp_index: int
    device_columns: tuple[tuple[int, str], ...]

    @property
    def device_names(self) -> tuple[str, ...]:
        """Return device names in header order."""
        return tuple(name for _, name in self.device_columns)


def parse_csv_bytes(data: bytes, max_rows: int = MAX_CSV_ROWS) -> list[ParsedCsvRow]:
    """Parse an in-memory CSV upload.

    Args:
        data: Raw CSV bytes, UTF-8 with optional BOM.
        max_rows: Maximum number of accepted data rows.

    Returns:
        Parsed rows in source order.

    Raises:
        HelioIngestError: If the header, any row, or the encoding is invalid.
    """
    return list(parse_csv_stream(io.BytesIO(data), max_rows).rows)


def parse_csv_stream(stream: BinaryIO, max_rows: int = MAX_CSV_ROWS) -> ParsedCsvDocument:
    """Parse a binary CSV stream row by row.

    The stream is consumed and closed, including when parsing fails part way.

    Args:
        stream: Readable binary stream positioned at the header row.
        max_rows: Maximum number of accepted data rows.

    Returns:
        Device names and parsed rows in source order.

    Raises:
        HelioIngestError: If the header, any row, or the encoding is invalid.
    """
    with io.TextIOWrapper(stream, encoding=CSV_ENCODING, newline="") as text_stream:
        reader = csv.reader(text_stream)
        try:
            layout = read_csv_layout(reader)
            rows = tuple(_iter_parsed_rows(reader, layout, max_rows))
            return ParsedCsvDocument(device_names=layout.device_names, rows=rows)
        except UnicodeDecodeError as error:
            raise HelioIngestError(
                f"CSV is not valid UTF-8 text: {error.reason}. Re-save the file as UTF-8."
            ) from error
        except csv.Error as error:
            raise HelioIngestError(
                f"Malformed CSV at line {reader.line_num}: {error}."
            ) from error


def read_csv_layout(reader: Iterator[list[str]]) -> CsvLayout:
    """Consume and validate the header row.

    Args:
        reader: CSV row iterator positioned at the header.

    Returns:
        Resolved column layout.

    Raises:
        CsvHeaderError: If the header is missing or has an invalid shape.
    """
    header = next(reader, None)
    columns = [name.strip() for name in header or []]
    timestamp_count = columns.count(TIMESTAMP_COLUMN)
    if timestamp_count == 0:
        raise MissingTimestampColumnError(
            f'Missing "{TIMESTAMP_COLUMN}" column. '
            f'Header must include exactly one column named "{TIMESTAMP_COLUMN}".'
        )
    if timestamp_count > 1:
        raise DuplicateColumnError(
            f'Header must include exactly one column named "{TIMESTAMP_COLUMN}", '
            f"found {timestamp_count}."
        )
    timestamp_index = columns.index(TIMESTAMP_COLUMN)
    device_columns = tuple(
        (index, name) for index, name in enumerate(columns) if index != timestamp_index
    )
    if not device_columns:
        raise NoDeviceColumnsError(
            f"At least one device column required (besides {TIMESTAMP_COLUMN})."
        )
    _check_device_names([name for _, name in device_columns])
    return CsvLayout(timestamp_index=timestamp_index, device_columns=device_columns)


def _check_device_names(device_names: list[str]) -> None:
    """Reject blank or repeated device column names."""
    if "" in device_names:
        raise CsvHeaderError(
            f"Header column {device_names.index('') + 2} has a blank name. "
            "Name every device column."
        )
    seen: set[str] = set()
    for name in device_names:
        if name in seen:
            raise DuplicateColumnError(
                f'Device column "{name}" appears more than once in the header.'
            )
        seen.add(name)


def _iter_parsed_rows(
    reader: Iterator[list[str]],
    layout: CsvLayout,
    max_rows: int,
) -> Iterator[ParsedCsvRow]:
    """Yield parsed rows, enforcing the row cap before each row."""
    accepted = 0
    row_number = 0
    for cells in reader:
        if not cells:
            continue
        row_number += 1
        if accepted >= max_rows:
            raise RowLimitExceededError(
                f"CSV exceeds maximum of {max_rows:,} rows.", row_number
            )
        yield _parse_row(cells, layout, row_number)
        accepted += 1


def _parse_row(cells: list[str], layout: CsvLayout, row_number: int) -> ParsedCsvRow:
    """Convert one data row into typed readings.

    Args:
        cells: Raw cell values.
        layout: Resolved column layout.
        row_number: One-based data row number.

    Returns:
        Parsed row.

    Raises:
        CsvRowError: If the timestamp or any device value is invalid.
    """
    raw_timestamp = _cell(cells, layout.timestamp_index)
    if not raw_timestamp:
        raise MissingTimestampError("Missing timestamp.", row_number)
    try:
        timestamp = parse_csv_timestamp(raw_timestamp)
    except InvalidTimestampError as error:
        raise InvalidTimestampError(error.message, row_number) from error
    outputs: dict[str, float | None] = {}
    for index, device_name in layout.device_columns:
        outputs[device_name] = _parse_output(_cell(cells, index), device_name, row_number)
    return ParsedCsvRow(timestamp=timestamp, outputs=outputs)


def _parse_output(raw_value: str, device_name: str, row_number: int) -> float | None:
    """Parse one device cell; blank means no reading."""
    if not raw_value:
        return None
    try:
        value = float(raw_value)
    except ValueError:
        value = math.nan
    # float() also accepts "1_000", "nan" and "inf"
    if "_" in raw_value or not math.isfinite(value):
        raise InvalidOutputValueError(
            f"Output value '{raw_value}' for {device_name} is not a finite number.",
            row_number,
        )
    if value < OUTPUT_MIN or value > OUTPUT_MAX:
        raise OutputOutOfRangeError(
            f"Output value {raw_value} for {device_name} out of range "
            f"({OUTPUT_MIN:g} to {OUTPUT_MAX:g}).",
            row_number,
        )
    return value


def _cell(cells: list[str], index: int) -> str:
    """Return a trimmed cell value, empty when the row is short."""
    if index >= len(cells):
        return ""
    return cells[index].strip()
