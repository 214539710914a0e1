"""Legacy CSV timestamp parsing.

Upload files carry instants as ``M/D/YYYY H:MM`` in local time, not ISO-8601.
This module decomposes that layout strictly and rejects anything that would
need clamping or roll-over to become a valid calendar instant.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone

from core.errors import InvalidTimestampError

_TIMESTAMP_PATTERN = re.compile(
    r"^(?P<month>\d{1,2})/(?P<day>\d{1,2})/(?P<year>\d{4})"
    r"(?:\s+(?P<hour>\d{1,2}):(?P<minute>\d{1,2}))?$",
    re.ASCII,
)


def parse_csv_timestamp(value: str) -> datetime:
    """Parse an ``M/D/YYYY H:MM`` string into an aware local instant.

    The time part may be omitted, in which case midnight is used.

    Args:
        value: Raw timestamp cell text.

    Returns:
        Timezone-aware datetime in the local system timezone.

    Raises:
        InvalidTimestampError: If the text does not match the layout or
            names a date or time that does not exist or cannot be
            represented in UTC.
    """
    match = _TIMESTAMP_PATTERN.match(value.strip())
    if match is None:
        raise InvalidTimestampError(
            f"Invalid timestamp: '{value}'. Expected format M/D/YYYY H:MM."
        )
    try:
        naive = datetime(
            int(match["year"]),
            int(match["month"]),
            int(match["day"]),
            int(match["hour"] or 0),
            int(match["minute"] or 0),
        )
        local = naive.astimezone()
        # persisted in UTC, so that form must be representable as well
        local.astimezone(timezone.utc)
    except (ValueError, OverflowError, OSError) as error:
        raise InvalidTimestampError(f"Invalid timestamp: '{value}' ({error}).") from error
    return local
