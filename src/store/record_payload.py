"""Shared JSON serialization for EnergyRecord payloads.

This module centralizes the on-disk record format: a JSON array of
objects with ISO-8601 UTC instants and optional fields omitted when unset.
"""

from __future__ import annotations

import json
import math
from datetime import datetime, timezone
from typing import Any

from core.types import EnergyRecord


def format_instant(value: datetime) -> str:
    """Render an instant as ISO-8601 UTC with millisecond precision.

    Naive datetimes are treated as UTC.

    Args:
        value: Instant to render.

    Returns:
        String such as ``2019-07-09T07:00:00.000Z``.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    utc_value = value.astimezone(timezone.utc)
    return utc_value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_instant(value: str) -> datetime:
    """Parse an ISO-8601 instant, treating naive values as UTC.

    Raises:
        ValueError: If the text is not ISO-8601.
    """
    text = value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def energy_record_to_payload(record: EnergyRecord) -> dict[str, object]:
    """Serialize EnergyRecord into a JSON-safe payload.

    Args:
        record: Energy record instance.

    Returns:
        Dictionary payload for JSON encoding.
    """
    payload: dict[str, object] = {
        "id": record.record_id,
        "timestamp": format_instant(record.timestamp),
        "outputs": dict(record.outputs),
    }
    if record.corrected_at is not None:
        payload["correctedAt"] = format_instant(record.corrected_at)
    if record.correction_reason is not None:
        payload["correctionReason"] = record.correction_reason
    if record.original_outputs is not None:
        payload["originalOutputs"] = dict(record.original_outputs)
    if record.deleted_at is not None:
        payload["deletedAt"] = format_instant(record.deleted_at)
    return payload


def energy_record_from_payload(payload: dict[str, Any]) -> EnergyRecord:
    """Deserialize a JSON payload into EnergyRecord.

    Args:
        payload: Serialized record payload.

    Returns:
        Parsed EnergyRecord.

    Raises:
        ValueError: If required fields are missing or mistyped.
    """
    record_id = payload.get("id")
    if not isinstance(record_id, str) or not record_id:
        raise ValueError("record is missing a string 'id'")
    original_outputs = payload.get("originalOutputs")
    correction_reason = payload.get("correctionReason")
    if correction_reason is not None and not isinstance(correction_reason, str):
        raise ValueError(f"record '{record_id}' has a non-string 'correctionReason'")
    return EnergyRecord(
        record_id=record_id,
        timestamp=_required_instant(payload, "timestamp", record_id),
        outputs=_outputs_from_payload(payload.get("outputs"), "outputs", record_id),
        corrected_at=_optional_instant(payload, "correctedAt", record_id),
        correction_reason=correction_reason,
        original_outputs=None
        if original_outputs is None
        else _outputs_from_payload(original_outputs, "originalOutputs", record_id),
        deleted_at=_optional_instant(payload, "deletedAt", record_id),
    )


def dump_energy_records(records: list[EnergyRecord]) -> str:
    """Encode a record collection as the canonical JSON document."""
    payloads = [energy_record_to_payload(record) for record in records]
    return json.dumps(payloads, indent=2, allow_nan=False) + "\n"


def load_energy_records(text: str) -> list[EnergyRecord]:
    """Decode the canonical JSON document into records.

    Args:
        text: Raw document text.

    Returns:
        Records in stored order.

    Raises:
        ValueError: If the document or any record is invalid.
    """
    payload = json.loads(text)
    if not isinstance(payload, list):
        raise ValueError("expected a JSON array of records at top level")
    records: list[EnergyRecord] = []
    for position, item in enumerate(payload):
        if not isinstance(item, dict):
            raise ValueError(f"record at position {position} is not a JSON object")
        records.append(energy_record_from_payload(item))
    return records


def _outputs_from_payload(value: object, field_name: str, record_id: str) -> dict[str, float | None]:
    """Validate and convert a device outputs object."""
    if not isinstance(value, dict):
        raise ValueError(f"record '{record_id}' has a non-object '{field_name}'")
    outputs: dict[str, float | None] = {}
    for device_name, reading in value.items():
        if reading is None:
            outputs[device_name] = None
            continue
        if isinstance(reading, bool) or not isinstance(reading, (int, float)):
            raise ValueError(
                f"record '{record_id}' has a non-numeric {field_name} value for '{device_name}'"
            )
        if not math.isfinite(reading):
            raise ValueError(
                f"record '{record_id}' has a non-finite {field_name} value for '{device_name}'"
            )
        outputs[device_name] = float(reading)
    return outputs


def _required_instant(payload: dict[str, Any], field_name: str, record_id: str) -> datetime:
    """Parse a mandatory instant field."""
    value = payload.get(field_name)
    if not isinstance(value, str):
        raise ValueError(f"record '{record_id}' is missing a string '{field_name}'")
    return parse_instant(value)


def _optional_instant(payload: dict[str, Any], field_name: str, record_id: str) -> datetime | None:
    """Parse an optional instant field."""
    if payload.get(field_name) is None:
        return None
    return _required_instant(payload, field_name, record_id)
