"""Upload source readers.

This module loads raw CSV bytes from a local file or an S3 object.
It checks the source shape before any parsing takes place.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from core.config import HelioConfig
from core.constants import SUPPORTED_CSV_EXTENSIONS
from core.errors import HelioDependencyError, HelioIngestError
from core.s3_uri import S3Location, is_s3_uri, parse_s3_uri


def read_upload_bytes(source_uri: str, config: HelioConfig) -> bytes:
    """Load upload bytes from a local path or S3.

    Args:
        source_uri: Local CSV file path or ``s3://bucket/key`` URI.
        config: Runtime configuration for S3 session defaults.

    Returns:
        Raw file content.

    Raises:
        HelioIngestError: If the source is missing, unreadable, or not CSV.
        HelioDependencyError: If an S3 source is given without boto3.
    """
    if is_s3_uri(source_uri):
        location = parse_s3_uri(source_uri)
        _check_csv_extension(location.key, source_uri)
        return _read_s3_object(location, config)
    return _read_local_file(Path(source_uri).expanduser())


def _read_local_file(source_path: Path) -> bytes:
    """Read one local CSV file.

    Args:
        source_path: Input file path.

    Returns:
        File content.

    Raises:
        HelioIngestError: If path is missing, not a file, or unreadable.
    """
    if not source_path.exists():
        raise HelioIngestError(
            f"Failed to read upload at {source_path}: path does not exist. "
            "Provide an existing CSV file."
        )
    if not source_path.is_file():
        raise HelioIngestError(
            f"Failed to read upload at {source_path}: not a regular file. "
            "Provide a single CSV file, not a directory."
        )
    _check_csv_extension(source_path.name, str(source_path))
    try:
        return source_path.read_bytes()
    except OSError as error:
        raise HelioIngestError(
            f"Failed to read upload at {source_path}: {error.strerror or error}."
        ) from error


def _read_s3_object(location: S3Location, config: HelioConfig) -> bytes:
    """Download one S3 object body.

    Args:
        location: Target bucket and key.
        config: Runtime config for region/profile.

    Returns:
        Object content.

    Raises:
        HelioIngestError: If the download fails.
    """
    s3_client = _create_s3_client(config)
    try:
        response = s3_client.get_object(Bucket=location.bucket, Key=location.key)
        return response["Body"].read()
    except Exception as error:
        raise HelioIngestError(
            f"Failed to download upload from {location.uri}: {error}. "
            "Check the object key and AWS credentials."
        ) from error


def _create_s3_client(config: HelioConfig) -> Any:
    """Create a boto3 S3 client.

    Args:
        config: Runtime config containing optional profile/region.

    Returns:
        Boto3 S3 client.

    Raises:
        HelioDependencyError: If boto3 is missing.
    """
    try:
        import boto3
    except ImportError as error:
        raise HelioDependencyError(
            "S3 uploads require boto3, but it is not installed. "
            "Install helio[s3] to upload from s3:// sources."
        ) from error
    session_kwargs: dict[str, str] = {}
    if config.s3_profile:
        session_kwargs["profile_name"] = config.s3_profile
    if config.s3_region:
        session_kwargs["region_name"] = config.s3_region
    session = boto3.session.Session(**session_kwargs)
    return session.client("s3")


def _check_csv_extension(name: str, source_uri: str) -> None:
    """Reject sources whose extension is not a supported CSV suffix."""
    if Path(name).suffix.lower() not in SUPPORTED_CSV_EXTENSIONS:
        raise HelioIngestError(
            f"Invalid upload type for {source_uri}: expected one of "
            f"{SUPPORTED_CSV_EXTENSIONS}."
        )
