"""Unit tests for record fingerprints."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

from core.types import EnergyRecord
from store.record_etag import compute_record_etag

_RECORD = EnergyRecord(
    record_id="r1",
    timestamp=datetime(2019, 7, 9, 7, 0, tzinfo=timezone.utc),
    outputs={"INV1": 10.0, "INV2": None},
)


def test_etag_is_deterministic_hex_digest() -> None:
    """Same content should always hash to the same sha256 digest."""
    first = compute_record_etag(_RECORD)
    second = compute_record_etag(replace(_RECORD))

    assert first == second
    assert len(first) == 64
    assert all(character in "0123456789abcdef" for character in first)


def test_etag_ignores_output_key_order() -> None:
    """Device order should not affect the fingerprint."""
    reordered = replace(_RECORD, outputs={"INV2": None, "INV1": 10.0})

    assert compute_record_etag(reordered) == compute_record_etag(_RECORD)


def test_etag_treats_integral_floats_as_integers() -> None:
    """A reading of 10 and 10.0 should fingerprint identically."""
    integral = replace(_RECORD, outputs={"INV1": 10, "INV2": None})

    assert compute_record_etag(integral) == compute_record_etag(_RECORD)


def test_etag_ignores_equivalent_timezones() -> None:
    """The same instant in another offset should fingerprint identically."""
    shifted = replace(
        _RECORD,
        timestamp=_RECORD.timestamp.astimezone(timezone(timedelta(hours=-7))),
    )

    assert compute_record_etag(shifted) == compute_record_etag(_RECORD)


def test_etag_changes_with_outputs_timestamp_and_id() -> None:
    """Any change to a fingerprinted field should produce a new version."""
    baseline = compute_record_etag(_RECORD)
    variants = [
        replace(_RECORD, outputs={"INV1": 10.5, "INV2": None}),
        replace(_RECORD, outputs={"INV1": 10.0, "INV2": 0.0}),
        replace(_RECORD, outputs={"INV1": 10.0}),
        replace(_RECORD, timestamp=_RECORD.timestamp + timedelta(milliseconds=1)),
        replace(_RECORD, record_id="r2"),
    ]

    assert all(compute_record_etag(variant) != baseline for variant in variants)


def test_etag_ignores_correction_bookkeeping() -> None:
    """Correction metadata and deletion should not change the version."""
    corrected = replace(
        _RECORD,
        corrected_at=datetime(2020, 1, 1, tzinfo=timezone.utc),
        correction_reason="audit",
        original_outputs={"INV1": 1.0},
        deleted_at=datetime(2020, 1, 2, tzinfo=timezone.utc),
    )

    assert compute_record_etag(corrected) == compute_record_etag(_RECORD)
