"""Record fingerprints for optimistic concurrency.

A fingerprint covers only the fields a correction can change: id,
timestamp, and outputs. Correction bookkeeping is excluded so that
only a conflicting data change invalidates a caller's version.
"""

from __future__ import annotations

import hashlib
import json

from core.constants import HASH_ALGORITHM
from core.types import DeviceOutputs, EnergyRecord
from store.record_payload import format_instant


def compute_record_etag(record: EnergyRecord) -> str:
    """Compute a stable content hash for one record.

    Args:
        record: Record to fingerprint.

    Returns:
        Hex digest that changes whenever id, timestamp, or any output changes.
    """
    payload = {
        "id": record.record_id,
        "timestamp": format_instant(record.timestamp),
        "outputs": _canonical_outputs(record.outputs),
    }
    normalized = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    hash_builder = hashlib.new(HASH_ALGORITHM)
    hash_builder.update(normalized.encode("utf-8"))
    return hash_builder.hexdigest()


def _canonical_outputs(outputs: DeviceOutputs) -> dict[str, int | float | None]:
    """Return outputs with integral readings collapsed to int (10 == 10.0)."""
    canonical: dict[str, int | float | None] = {}
    for device_name in sorted(outputs):
        reading = outputs[device_name]
        if reading is not None and float(reading).is_integer():
            canonical[device_name] = int(reading)
        else:
            canonical[device_name] = reading
    return canonical
