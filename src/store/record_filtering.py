"""Record filtering, aggregation, and pagination helpers.

This module applies listing constraints used by the record store.
It keeps the store focused on cache and persistence flow.
"""

from __future__ import annotations

import math
from datetime import datetime

from core.types import DeviceOutputs, EnergyRecord, RecordListFilters


def filter_records(
    records: list[EnergyRecord],
    filters: RecordListFilters,
) -> list[EnergyRecord]:
    """Filter records by visibility, time window, and device.

    Args:
        records: Records in stored order.
        filters: Filter constraints.

    Returns:
        Matching records, order preserved.
    """
    start = _as_aware(filters.start)
    end = _as_aware(filters.end)
    filtered: list[EnergyRecord] = []
    for record in records:
        if record.is_deleted and not filters.include_deleted:
            continue
        if start is not None and record.timestamp < start:
            continue
        if end is not None and record.timestamp > end:
            continue
        if filters.device is not None and record.outputs.get(filters.device) is None:
            continue
        filtered.append(record)
    return filtered


def sum_energy(outputs: DeviceOutputs, device: str | None = None) -> float:
    """Sum non-negative readings, optionally for a single device.

    Args:
        outputs: Device readings of one record.
        device: Optional device to restrict the sum to.

    Returns:
        Energy produced; ``None`` and negative readings contribute nothing.
    """
    device_names = [device] if device is not None else list(outputs)
    total = 0.0
    for device_name in device_names:
        reading = outputs.get(device_name)
        if reading is not None and reading >= 0:
            total += reading
    return total


def total_energy(records: list[EnergyRecord], device: str | None = None) -> float:
    """Sum energy across records."""
    return sum(sum_energy(record.outputs, device) for record in records)


def is_paginated(filters: RecordListFilters) -> bool:
    """Return whether both page parameters are present and valid."""
    return (
        filters.page is not None
        and filters.page >= 0
        and filters.page_size is not None
        and filters.page_size > 0
    )


def page_slice(records: list[EnergyRecord], page: int, page_size: int) -> list[EnergyRecord]:
    """Return one page; pages past the end are empty."""
    skip = page * page_size
    return records[skip : skip + page_size]


def page_count(total_count: int, page_size: int) -> int:
    """Return the number of pages needed for total_count records."""
    return math.ceil(total_count / page_size)


def _as_aware(value: datetime | None) -> datetime | None:
    """Interpret naive bounds in local time, like CSV timestamps."""
    if value is None or value.tzinfo is not None:
        return value
    return value.astimezone()
