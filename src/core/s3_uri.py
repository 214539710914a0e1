"""S3 URI parsing helpers.

This module validates ``s3://bucket/key`` upload sources so the
source reader receives a typed location instead of a raw string.
"""

from __future__ import annotations

from dataclasses import dataclass

from core.errors import HelioIngestError


@dataclass(frozen=True)
class S3Location:
    """Parsed S3 object location."""

    bucket: str
    key: str

    @property
    def uri(self) -> str:
        """Return the canonical ``s3://`` form."""
        return f"s3://{self.bucket}/{self.key}"


def is_s3_uri(uri: str) -> bool:
    """Return whether a source string names an S3 object."""
    return uri.startswith("s3://")


def parse_s3_uri(uri: str) -> S3Location:
    """Parse and validate an S3 object URI.

    Args:
        uri: URI in format ``s3://bucket/key``.

    Returns:
        Parsed bucket and key pair.

    Raises:
        HelioIngestError: If bucket or key is missing.
    """
    stripped_uri = uri.removeprefix("s3://")
    bucket, _, key = stripped_uri.partition("/")
    if not bucket or not key or key.endswith("/"):
        raise HelioIngestError(
            f"Invalid S3 URI '{uri}': expected s3://bucket/key. "
            "Provide both bucket and object key of a CSV file."
        )
    return S3Location(bucket=bucket, key=key)
